from app import SlideshowApp
from logging_utils import setup_logging
from playlist_builder import build_store
import config, web_remote

def main():
    setup_logging()
    if config.RUN_PLAYLIST_BUILDER == True:
        build_store(config.MEDIA_PATH, config.STORE_PATH)
    app = SlideshowApp()
    if config.WEB_REMOTE:
        web_remote.start(app)
    app.run()

if __name__ == "__main__":
    main()
