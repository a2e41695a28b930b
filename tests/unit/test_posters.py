"""
Unit tests for video poster extraction.

The extractor is tested with a fake frame grabber; the FFmpeg processor
is tested with asyncio.create_subprocess_exec replaced, so no ffmpeg
binary is needed.
"""

import asyncio
import json
import os
import subprocess

import pytest

from farmgirl.core.media.errors import (
    DecodeFailureError,
    FrameExtractionError,
    MediaTimeoutError,
    SourceNotFoundError,
)
from farmgirl.core.media.models import (
    IMMUTABLE_CACHE_CONTROL,
    ContentType,
    MediaEntry,
    MediaEventKind,
)
from farmgirl.core.media.posters import PosterExtractor
from farmgirl.core.media.timeouts import bounded
from farmgirl.infrastructure.video import (
    FFmpegVideoProcessor,
    MockVideoProcessor,
    scoped_workspace,
)

from tests.conftest import image_size

VIDEO_KEY = "videos/1700000000000-barn.mp4"
POSTER_KEY = "thumbnails/1700000000000-barn.jpg"


class FakeProcessor:
    """Records calls and returns a fixed frame."""

    def __init__(self, frame: bytes = b"\xff\xd8frame"):
        self.frame = frame
        self.calls = []

    async def extract_poster_frame(self, video_data, offset_seconds, width):
        self.calls.append((video_data, offset_seconds, width))
        return self.frame


@pytest.fixture
def video(store) -> bytes:
    data = b"\x00\x00\x00\x18ftypmp42 fake video"
    asyncio.run(store.put(VIDEO_KEY, data, "video/mp4"))
    return data


@pytest.fixture
def processor() -> FakeProcessor:
    return FakeProcessor()


@pytest.fixture
def extractor(store, processor, index, sink) -> PosterExtractor:
    return PosterExtractor(store, processor, index, events=sink)


class TestExtractPoster:
    """Tests for poster generation and entry update."""

    def test_stores_poster_under_thumbnails(self, extractor, store, processor, video):
        poster = asyncio.run(extractor.extract_poster(VIDEO_KEY))

        assert poster.key == POSTER_KEY
        assert poster.url == f"https://cdn.example.com/{POSTER_KEY}"
        assert store.objects[POSTER_KEY].data == processor.frame
        assert store.objects[POSTER_KEY].content_type == "image/jpeg"
        assert store.objects[POSTER_KEY].cache_control == IMMUTABLE_CACHE_CONTROL
        assert not poster.entry_updated

    def test_requests_frame_at_two_seconds_640_wide(self, extractor, processor, video):
        asyncio.run(extractor.extract_poster(VIDEO_KEY))

        assert processor.calls == [(video, 2.0, 640)]

    def test_attaches_poster_to_entry_by_id(self, extractor, index, video):
        index.insert(ContentType.VIDEOS, MediaEntry(
            id="7", content_type=ContentType.VIDEOS, storage_key=VIDEO_KEY,
        ))

        poster = asyncio.run(extractor.extract_poster(VIDEO_KEY, entry_id="7"))

        entry = index.find_by_id(ContentType.VIDEOS, "7")
        assert poster.entry_updated
        assert entry.poster_key == POSTER_KEY
        assert entry.poster_url == poster.url

    def test_attaches_poster_by_storage_key(self, extractor, index, video):
        """Clients that only know the key still get the entry updated."""
        index.insert(ContentType.VIDEOS, MediaEntry(
            id="7", content_type=ContentType.VIDEOS, storage_key=VIDEO_KEY,
        ))

        asyncio.run(extractor.extract_poster(VIDEO_KEY, entry_id="unknown"))

        assert index.find_by_key(ContentType.VIDEOS, VIDEO_KEY).poster_key == POSTER_KEY

    def test_missing_entry_still_stores_poster(self, extractor, store, video):
        poster = asyncio.run(extractor.extract_poster(VIDEO_KEY, entry_id="404"))

        assert not poster.entry_updated
        assert POSTER_KEY in store.objects

    def test_always_regenerates(self, extractor, processor, store, video):
        """No existence check: a repeat call grabs a new frame."""
        asyncio.run(extractor.extract_poster(VIDEO_KEY))
        asyncio.run(extractor.extract_poster(VIDEO_KEY))

        assert len(processor.calls) == 2
        assert store.calls["head"] == 0

    def test_missing_video(self, extractor, store, processor):
        with pytest.raises(SourceNotFoundError):
            asyncio.run(extractor.extract_poster("videos/nope.mp4"))

        assert processor.calls == []
        assert store.calls["put"] == 0

    def test_failed_extraction_writes_nothing(self, store, index, video):
        class FailingProcessor:
            async def extract_poster_frame(self, video_data, offset_seconds, width):
                raise FrameExtractionError("no frame")

        extractor = PosterExtractor(store, FailingProcessor(), index)

        with pytest.raises(FrameExtractionError):
            asyncio.run(extractor.extract_poster(VIDEO_KEY))

        assert POSTER_KEY not in store.objects

    def test_emits_event(self, extractor, sink, video):
        asyncio.run(extractor.extract_poster(VIDEO_KEY, entry_id="7"))

        assert sink.events[0].kind is MediaEventKind.POSTER_EXTRACTED
        assert sink.events[0].key == POSTER_KEY


class TestMockVideoProcessor:

    def test_returns_jpeg_of_requested_width(self):
        frame = asyncio.run(MockVideoProcessor().extract_poster_frame(b"video", 2.0, 640))

        assert image_size(frame) == (640, 360)

    def test_empty_video_fails_to_decode(self):
        with pytest.raises(DecodeFailureError):
            asyncio.run(MockVideoProcessor().extract_poster_frame(b"", 2.0, 640))


class TestScopedWorkspace:

    def test_removed_after_use(self):
        async def use():
            async with scoped_workspace(b"video") as (workdir, video_path):
                assert os.path.exists(video_path)
            return workdir

        workdir = asyncio.run(use())

        assert not os.path.exists(workdir)

    def test_removed_after_error(self):
        seen = []

        async def use():
            async with scoped_workspace(b"video") as (workdir, _):
                seen.append(workdir)
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            asyncio.run(use())

        assert not os.path.exists(seen[0])


# ---------------------------------------------------------------------------
# FFmpeg Processor Tests
# ---------------------------------------------------------------------------

class FakeProcess:
    """Stands in for asyncio.subprocess.Process."""

    def __init__(self, returncode=0, stdout=b"", stderr=b"", hang=False):
        self._result = returncode
        self._stdout = stdout
        self._stderr = stderr
        self._hang = hang
        self.returncode = None
        self.killed = False

    async def communicate(self):
        if self._hang:
            await asyncio.sleep(3600)
        self.returncode = self._result
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True

    async def wait(self):
        if self.killed:
            self.returncode = -9
        return self.returncode


class FakeFFmpeg:
    """
    Stands in for asyncio.create_subprocess_exec.

    `duration` is what ffprobe reports. Frames can only be grabbed at the
    offsets in `frame_offsets`; elsewhere ffmpeg exits non-zero. With
    `hang` set every child runs until it is killed.
    """

    def __init__(self, duration=10.0, frame_offsets=("2.0", "0.0"), has_video=True, hang=False):
        self.duration = duration
        self.frame_offsets = set(frame_offsets)
        self.has_video = has_video
        self.hang = hang
        self.commands = []
        self.workdirs = []
        self.processes = []

    async def __call__(self, *cmd, stdout=None, stderr=None):
        cmd = list(cmd)
        self.commands.append(cmd)
        proc = self._respond(cmd)
        self.processes.append(proc)
        return proc

    def _respond(self, cmd) -> FakeProcess:
        if cmd[0] == "ffprobe":
            self.workdirs.append(os.path.dirname(cmd[-1]))

        if self.hang:
            return FakeProcess(hang=True)

        if cmd[0] == "ffprobe":
            streams = [{"codec_type": "audio"}]
            if self.has_video:
                streams.append({
                    "codec_type": "video", "width": 1920, "height": 1080, "codec_name": "h264",
                })
            payload = {"format": {"duration": str(self.duration)}, "streams": streams}
            return FakeProcess(stdout=json.dumps(payload).encode())

        offset = cmd[cmd.index("-ss") + 1]
        if offset not in self.frame_offsets:
            return FakeProcess(returncode=1, stderr=b"seek past end")
        with open(cmd[-1], "wb") as f:
            f.write(f"frame@{offset}".encode())
        return FakeProcess()

    def grab_offsets(self):
        return [c[c.index("-ss") + 1] for c in self.commands if "-ss" in c]


def _version_ok(cmd, **kwargs):
    return subprocess.CompletedProcess(cmd, 0, stdout="ffmpeg version 6", stderr="")


class TestFFmpegVideoProcessor:

    def _processor(self, monkeypatch, fake: FakeFFmpeg, command_timeout=5.0) -> FFmpegVideoProcessor:
        monkeypatch.setattr(subprocess, "run", _version_ok)
        monkeypatch.setattr(asyncio, "create_subprocess_exec", fake)
        return FFmpegVideoProcessor(
            ffmpeg_path="ffmpeg",
            ffprobe_path="ffprobe",
            command_timeout=command_timeout,
        )

    def test_grabs_frame_at_offset(self, monkeypatch):
        fake = FakeFFmpeg()
        processor = self._processor(monkeypatch, fake)

        frame = asyncio.run(processor.extract_poster_frame(b"video", 2.0, 640))

        assert frame == b"frame@2.0"
        assert fake.grab_offsets() == ["2.0"]

    def test_scales_without_enlarging(self, monkeypatch):
        fake = FakeFFmpeg()
        processor = self._processor(monkeypatch, fake)

        asyncio.run(processor.extract_poster_frame(b"video", 2.0, 640))

        grab = next(c for c in fake.commands if "-ss" in c)
        assert grab[grab.index("-vf") + 1] == "scale='min(640,iw)':-2"

    def test_short_clip_uses_first_frame(self, monkeypatch):
        """A clip shorter than the offset gets its first frame."""
        fake = FakeFFmpeg(duration=1.5)
        processor = self._processor(monkeypatch, fake)

        frame = asyncio.run(processor.extract_poster_frame(b"video", 2.0, 640))

        assert frame == b"frame@0.0"
        assert fake.grab_offsets() == ["0.0"]

    def test_falls_back_to_first_frame(self, monkeypatch):
        """If the seek yields nothing, the first frame is tried."""
        fake = FakeFFmpeg(frame_offsets=("0.0",))
        processor = self._processor(monkeypatch, fake)

        frame = asyncio.run(processor.extract_poster_frame(b"video", 2.0, 640))

        assert frame == b"frame@0.0"
        assert fake.grab_offsets() == ["2.0", "0.0"]

    def test_no_frame_at_all(self, monkeypatch):
        fake = FakeFFmpeg(frame_offsets=())
        processor = self._processor(monkeypatch, fake)

        with pytest.raises(FrameExtractionError):
            asyncio.run(processor.extract_poster_frame(b"video", 2.0, 640))

        assert not os.path.exists(fake.workdirs[0])

    def test_no_video_stream(self, monkeypatch):
        fake = FakeFFmpeg(has_video=False)
        processor = self._processor(monkeypatch, fake)

        with pytest.raises(DecodeFailureError):
            asyncio.run(processor.extract_poster_frame(b"audio only", 2.0, 640))

        assert not os.path.exists(fake.workdirs[0])

    def test_hung_ffmpeg_is_killed_on_command_timeout(self, monkeypatch):
        fake = FakeFFmpeg(hang=True)
        processor = self._processor(monkeypatch, fake, command_timeout=0.05)

        with pytest.raises(MediaTimeoutError):
            asyncio.run(processor.extract_poster_frame(b"video", 2.0, 640))

        proc = fake.processes[0]
        assert proc.killed
        assert proc.returncode is not None
        assert not os.path.exists(fake.workdirs[0])

    def test_hung_ffmpeg_is_killed_when_caller_gives_up(self, monkeypatch):
        """An outer deadline cancels the run; the child is reaped first."""
        fake = FakeFFmpeg(hang=True)
        processor = self._processor(monkeypatch, fake, command_timeout=60.0)

        with pytest.raises(MediaTimeoutError):
            asyncio.run(bounded(
                processor.extract_poster_frame(b"video", 2.0, 640),
                0.2,
                "Poster extraction",
            ))

        proc = fake.processes[0]
        assert proc.killed
        assert proc.returncode is not None
        assert not os.path.exists(fake.workdirs[0])

    def test_workspace_removed_on_success(self, monkeypatch):
        fake = FakeFFmpeg()
        processor = self._processor(monkeypatch, fake)

        asyncio.run(processor.extract_poster_frame(b"video", 2.0, 640))

        assert not os.path.exists(fake.workdirs[0])

    def test_missing_ffmpeg_binary(self, monkeypatch):
        def not_found(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr(subprocess, "run", not_found)

        with pytest.raises(RuntimeError):
            FFmpegVideoProcessor()


@pytest.mark.skipif(not os.path.exists("/bin/sh"), reason="needs a POSIX shell")
class TestFFmpegChildProcess:
    """Runs a real child that never finishes in place of ffprobe."""

    def test_child_is_gone_after_timeout(self, monkeypatch, tmp_path):
        pidfile = tmp_path / "pid"
        script = tmp_path / "ffprobe"
        script.write_text(f"#!/bin/sh\necho $$ > {pidfile}\nexec sleep 30\n")
        script.chmod(0o755)
        monkeypatch.setattr(subprocess, "run", _version_ok)
        processor = FFmpegVideoProcessor(ffprobe_path=str(script), command_timeout=1.0)

        with pytest.raises(MediaTimeoutError):
            asyncio.run(processor.extract_poster_frame(b"video", 2.0, 640))

        pid = int(pidfile.read_text())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)
