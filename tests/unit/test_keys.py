"""
Unit tests for key and id derivation.
"""

import threading

import pytest

from farmgirl.core.media.errors import InvalidReferenceError, MissingFieldError
from farmgirl.core.media.keys import (
    MonotonicClock,
    build_poster_key,
    build_upload_key,
    extract_external_video_id,
    key_basename,
    key_from_url,
    sanitize_filename,
)
from farmgirl.core.media.models import ContentType


class TestMonotonicClock:
    """Tests for collision-free ids."""

    def test_same_millisecond_gives_distinct_values(self):
        """Two calls within one tick must not collide."""
        clock = MonotonicClock(time_source=lambda: 1700000000.0)

        first = clock.next()
        second = clock.next()

        assert first == "1700000000000"
        assert second == "1700000000001"

    def test_never_goes_backwards(self):
        """A wall clock that jumps back still yields increasing values."""
        times = iter([1700000000.5, 1699999999.0])
        clock = MonotonicClock(time_source=lambda: next(times))

        first = int(clock.next())
        second = int(clock.next())

        assert second > first

    def test_distinct_across_threads(self):
        clock = MonotonicClock(time_source=lambda: 1700000000.0)
        results = []

        def worker():
            for _ in range(100):
                results.append(clock.next())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(results)) == 800


class TestUploadKeys:

    def test_key_layout(self):
        key = build_upload_key(ContentType.PHOTOS, "1700000000000", "cat.png")

        assert key == "photos/1700000000000-cat.png"

    def test_whitespace_becomes_underscores(self):
        assert sanitize_filename("my  barn photo.jpg") == "my_barn_photo.jpg"

    def test_path_parts_are_dropped(self):
        """A filename can't climb out of its namespace."""
        assert sanitize_filename("../../etc/passwd") == "passwd"
        assert sanitize_filename("C:\\Users\\me\\cat.png") == "cat.png"

    def test_empty_name_is_rejected(self):
        with pytest.raises(MissingFieldError):
            sanitize_filename("   ")


class TestPosterKeys:

    def test_poster_key_from_video_key(self):
        assert build_poster_key("videos/1700000000000-barn.mp4") == "thumbnails/1700000000000-barn.jpg"

    def test_basename_without_extension(self):
        assert key_basename("videos/clip") == "clip"
        assert key_basename("videos/a.b.mov") == "a.b"


class TestKeyFromUrl:

    def test_absolute_url(self):
        url = "https://bucket.s3.amazonaws.com/photos/1-cat.png"

        assert key_from_url(url) == "photos/1-cat.png"

    def test_old_local_url(self):
        assert key_from_url("/uploads/photos/1-cat.png") == "photos/1-cat.png"

    def test_path_style_url_drops_bucket(self):
        url = "https://r2.example.com/farm-bucket/videos/1-barn.mp4"

        assert key_from_url(url) == "videos/1-barn.mp4"

    def test_percent_encoding_is_decoded(self):
        assert key_from_url("https://cdn.example.com/photos/1-my%20cat.png") == "photos/1-my cat.png"


class TestExternalVideoId:
    """Tests for YouTube link parsing."""

    def test_short_link(self):
        assert extract_external_video_id("https://youtu.be/dQw4w9WgXcQ") == "dQw4w9WgXcQ"

    def test_watch_link(self):
        url = "https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=42s"

        assert extract_external_video_id(url) == "dQw4w9WgXcQ"

    @pytest.mark.parametrize("url", ["", "https://example.com/video", "not a url"])
    def test_rejects_links_without_id(self, url):
        with pytest.raises(InvalidReferenceError):
            extract_external_video_id(url)
