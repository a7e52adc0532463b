"""Tests for the media value types."""

import dataclasses

import pytest

from media import (CurrentMedia, LoadError, MediaReference, MediaType, Ordering,
                   PlaybackState, determine_type, uri_to_path)


def test_references_equal_by_uri():
    a = MediaReference("/m/a.mp4", MediaType.VIDEO)
    b = MediaReference("/m/a.mp4", MediaType.IMAGE)
    assert a == b
    assert len({a, b}) == 1
    assert a != MediaReference("/m/b.mp4", MediaType.VIDEO)


def test_reference_is_immutable():
    ref = MediaReference("/m/a.jpg")
    with pytest.raises(dataclasses.FrozenInstanceError):
        ref.uri = "/m/b.jpg"


@pytest.mark.parametrize("uri, kind", [
    ("/m/a.jpg", MediaType.IMAGE),
    ("/m/a.PNG", MediaType.IMAGE),
    ("/m/a.mp4", MediaType.VIDEO),
    ("file:///m/a.mov", MediaType.VIDEO),
    ("/m/readme", MediaType.IMAGE),
])
def test_determine_type(uri, kind):
    assert determine_type(uri) is kind
    assert MediaReference.from_uri(uri).media_type is kind


def test_name():
    assert MediaReference("file:///m/holiday%20one.jpg").name == "holiday one.jpg"
    assert MediaReference("/m/b.jpg").name == "b.jpg"


def test_uri_to_path():
    assert uri_to_path("/m/a.jpg") == "/m/a.jpg"
    assert uri_to_path("file:///m/a%20b.jpg") == "/m/a b.jpg"
    with pytest.raises(LoadError):
        uri_to_path("http://host/a.jpg")


def test_ordering_parse():
    assert Ordering.parse("RANDOM") is Ordering.RANDOM
    assert Ordering.parse(Ordering.RANDOM) is Ordering.RANDOM
    assert Ordering.parse(None) is Ordering.SELECTION


def test_substate_change_makes_new_instance():
    cur = CurrentMedia(MediaReference("/m/v.mp4", MediaType.VIDEO), None,
                       PlaybackState.PREPARING, 0)
    nxt = dataclasses.replace(cur, playback=PlaybackState.PLAYING)
    assert cur.playback is PlaybackState.PREPARING
    assert nxt.is_video
