"""Tests for the in-memory and JSON-backed playlist stores."""

import json
import os

import pytest

from conftest import image, video
from media import EmptyCollection, InvalidIndex, MediaType, Ordering
from playlist_store import JsonPlaylistStore, PlaylistStore


class TestPlaylistStore:
    def test_defaults(self):
        store = PlaylistStore()
        assert store.count() == 0
        assert store.ordering() is Ordering.SELECTION
        assert store.current_index() == 0
        assert store.last_advance_timestamp() == 0.0
        assert store.interval_seconds() == 5

    def test_reference_at_wraps(self):
        store = PlaylistStore([image("a"), image("b"), image("c")])
        assert store.reference_at(3).uri == "a"
        assert store.reference_at(-1).uri == "c"

    def test_reference_at_empty(self):
        with pytest.raises(EmptyCollection):
            PlaylistStore().reference_at(0)

    def test_checked_index(self):
        store = PlaylistStore([image("a"), image("b")], current_index=1)
        assert store.checked_index() == 1
        store.set_current_index(2)
        with pytest.raises(InvalidIndex):
            store.checked_index()
        with pytest.raises(InvalidIndex):
            PlaylistStore().checked_index()

    def test_commit_writes_index_and_time_together(self):
        store = PlaylistStore([image("a"), image("b")])
        store.commit(1, 123.5)
        assert (store.current_index(), store.last_advance_timestamp()) == (1, 123.5)

    def test_commit_without_timestamp_keeps_old_one(self):
        store = PlaylistStore([image("a")], last_advance=50.0)
        store.commit(0, None)
        assert store.last_advance_timestamp() == 50.0

    def test_random_ordering_is_a_stable_permutation(self):
        items = [image(str(i)) for i in range(20)]
        store = PlaylistStore(items, ordering=Ordering.RANDOM, shuffle_seed=42)
        order = [store.reference_at(i) for i in range(20)]
        assert sorted(r.uri for r in order) == sorted(r.uri for r in items)
        assert [store.reference_at(i) for i in range(20)] == order

        again = PlaylistStore(items, ordering="random", shuffle_seed=42)
        assert [again.reference_at(i) for i in range(20)] == order

    def test_selection_ordering_ignores_seed(self):
        items = [image(str(i)) for i in range(5)]
        store = PlaylistStore(items, shuffle_seed=3)
        assert [store.reference_at(i) for i in range(5)] == items
        assert store.reference_at(2, Ordering.RANDOM) in items

    def test_unknown_ordering_falls_back_to_selection(self):
        assert PlaylistStore(ordering="sideways").ordering() is Ordering.SELECTION


class TestJsonPlaylistStore:
    def test_missing_file_starts_empty(self, tmp_path):
        store = JsonPlaylistStore(str(tmp_path / "none.json"))
        assert store.count() == 0

    def test_round_trip(self, tmp_path):
        path = str(tmp_path / "show" / "slideshow.json")
        store = JsonPlaylistStore(path)
        store.set_items([image("/m/a.jpg"), video("/m/b.mp4")])
        store.set_interval_seconds(8)
        store.set_ordering("random")
        store.commit(1, 99.0)

        again = JsonPlaylistStore(path)
        assert again.items() == [image("/m/a.jpg"), video("/m/b.mp4")]
        assert again.items()[1].media_type is MediaType.VIDEO
        assert again.interval_seconds() == 8
        assert again.ordering() is Ordering.RANDOM
        assert again.current_index() == 1
        assert again.last_advance_timestamp() == 99.0
        assert again.reference_at(0) == store.reference_at(0)

    def test_no_temp_files_left_behind(self, tmp_path):
        path = tmp_path / "slideshow.json"
        store = JsonPlaylistStore(str(path))
        store.set_items([image("a.jpg")])
        store.commit(0, 1.0)
        assert os.listdir(tmp_path) == ["slideshow.json"]

    def test_external_edit_is_picked_up(self, tmp_path):
        path = tmp_path / "slideshow.json"
        store = JsonPlaylistStore(str(path))
        store.set_items([image("a.jpg")])

        data = json.loads(path.read_text())
        data["items"].append({"uri": "b.mp4", "type": "video"})
        path.write_text(json.dumps(data))
        st = os.stat(path)
        os.utime(path, (st.st_atime, st.st_mtime + 10))

        assert store.count() == 2
        assert store.reference_at(1).is_video

    def test_unknown_type_is_guessed_from_uri(self, tmp_path):
        path = tmp_path / "slideshow.json"
        path.write_text(json.dumps({"items": [{"uri": "clip.mp4"}, {"uri": "pic.png"}]}))
        store = JsonPlaylistStore(str(path))
        assert [r.media_type for r in store.items()] == [MediaType.VIDEO, MediaType.IMAGE]

    def test_corrupt_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "slideshow.json"
        path.write_text("{not json")
        store = JsonPlaylistStore(str(path))
        assert store.count() == 0
        assert store.interval_seconds() == 5
