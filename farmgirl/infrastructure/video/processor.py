"""
Video processing service using FFmpeg.

Extracts poster frames from uploaded videos:
1. Probe the video for its duration (FFprobe)
2. Grab one frame at the poster offset, or the first frame if the clip is
   shorter than that
3. Scale it down to the poster width and encode as JPEG

FFmpeg works best with file paths, so each extraction gets its own
temporary directory holding the input video and the output frame. The
directory is removed on every exit path: success, decode failure,
extraction failure or timeout. A child process still running when the
caller gives up (timeout or cancellation) is killed and reaped before
the directory goes away.
"""

import asyncio
import io
import json
import logging
import os
import shutil
import subprocess
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from ...core.media.errors import (
    DecodeFailureError,
    FrameExtractionError,
    MediaTimeoutError,
)
from ...core.media.protocols import VideoProcessor

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_TIMEOUT = 60.0


@dataclass
class VideoInfo:
    """Video metadata extracted via FFprobe."""
    duration_seconds: float
    width: int
    height: int
    codec: str


def _write_file(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


@asynccontextmanager
async def scoped_workspace(video_data: bytes, suffix: str = ".mp4") -> AsyncIterator[tuple[str, str]]:
    """
    Write video bytes into a fresh temp directory.

    Yields (directory, video_path). Everything in the directory is
    deleted when the block exits, however it exits. The write and the
    removal both run in a worker thread; videos can be hundreds of MB.
    """
    workdir = await asyncio.to_thread(tempfile.mkdtemp, prefix="poster-")
    try:
        video_path = os.path.join(workdir, f"source{suffix}")
        await asyncio.to_thread(_write_file, video_path, video_data)
        yield workdir, video_path
    finally:
        await asyncio.to_thread(shutil.rmtree, workdir, True)


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill a child that is still running and wait for it to exit."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()


class FFmpegVideoProcessor:
    """VideoProcessor using FFmpeg/FFprobe binaries."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    ):
        """
        Initialize processor with FFmpeg paths.

        Args:
            ffmpeg_path: Path to ffmpeg binary (default assumes it's in PATH)
            ffprobe_path: Path to ffprobe binary
            command_timeout: Upper bound for a single ffmpeg/ffprobe run
        """
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path
        self._command_timeout = command_timeout

        # verify ffmpeg is available
        try:
            result = subprocess.run(
                [self._ffmpeg, "-version"],
                capture_output=True,
                text=True,
                timeout=5
            )
            if result.returncode != 0:
                raise RuntimeError("FFmpeg not working properly")
            logger.info("FFmpeg video processor initialized")
        except FileNotFoundError:
            raise RuntimeError(
                "FFmpeg not found. Install with: apt-get install ffmpeg"
            )

    async def extract_poster_frame(
        self,
        video_data: bytes,
        offset_seconds: float,
        width: int,
    ) -> bytes:
        async with scoped_workspace(video_data) as (workdir, video_path):
            info = await self._probe(video_path)

            offset = offset_seconds if info.duration_seconds > offset_seconds else 0.0
            output_path = os.path.join(workdir, "poster.jpg")

            frame = await self._grab_frame(video_path, output_path, offset, width)
            if frame is None and offset > 0:
                # duration metadata can overstate short or truncated clips
                frame = await self._grab_frame(video_path, output_path, 0.0, width)

            if frame is None:
                raise FrameExtractionError("FFmpeg produced no frame")

            logger.info(
                "Extracted poster frame",
                extra={
                    "offset": offset,
                    "duration": info.duration_seconds,
                    "resolution": f"{info.width}x{info.height}",
                }
            )
            return frame

    async def _probe(self, video_path: str) -> VideoInfo:
        """
        Extract video metadata using FFprobe.

        FFprobe outputs JSON with stream info; a file without a video
        stream is a decode failure.
        """
        cmd = [
            self._ffprobe,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            video_path
        ]

        result = await self._run(cmd)
        if result.returncode != 0:
            raise DecodeFailureError(f"FFprobe failed: {result.stderr.decode(errors='replace')}")

        try:
            info = json.loads(result.stdout or b"{}")
        except json.JSONDecodeError:
            raise DecodeFailureError("FFprobe returned unreadable output")

        video_stream = None
        for stream in info.get("streams", []):
            if stream.get("codec_type") == "video":
                video_stream = stream
                break

        if not video_stream:
            raise DecodeFailureError("No video stream found")

        # get duration from format or stream
        duration = float(info.get("format", {}).get("duration", 0) or 0)
        if duration == 0:
            duration = float(video_stream.get("duration", 0) or 0)

        return VideoInfo(
            duration_seconds=duration,
            width=int(video_stream.get("width", 0)),
            height=int(video_stream.get("height", 0)),
            codec=video_stream.get("codec_name", "unknown"),
        )

    async def _grab_frame(
        self,
        video_path: str,
        output_path: str,
        offset: float,
        width: int,
    ) -> Optional[bytes]:
        # -ss before -i for fast seeking
        # min(width,iw) keeps small videos from being scaled up; -2 keeps
        # the height even, which the mjpeg encoder wants
        cmd = [
            self._ffmpeg,
            "-ss", str(offset),
            "-i", video_path,
            "-frames:v", "1",
            "-vf", f"scale='min({width},iw)':-2",
            "-q:v", "2",
            "-y",
            output_path
        ]

        result = await self._run(cmd)
        if result.returncode != 0 or not os.path.exists(output_path):
            stderr = result.stderr.decode(errors="replace") if result.stderr else ""
            logger.warning(f"Failed to extract frame at {offset}s: {stderr[-300:]}")
            return None

        data = await asyncio.to_thread(_read_file, output_path)
        return data or None

    async def _run(self, cmd: list[str]) -> subprocess.CompletedProcess:
        """
        Run one ffmpeg/ffprobe command as an asyncio child process.

        The child never outlives this call: on timeout, or when the caller
        is cancelled, it is killed and reaped before the error propagates.
        """
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(),
                timeout=self._command_timeout,
            )
        except asyncio.TimeoutError:
            await _reap(proc)
            raise MediaTimeoutError(f"{os.path.basename(cmd[0])} timed out")
        except asyncio.CancelledError:
            await _reap(proc)
            raise

        return subprocess.CompletedProcess(cmd, proc.returncode, stdout, stderr)


class MockVideoProcessor:
    """
    Mock video processor for local development without FFmpeg.

    Returns a solid-colour 16:9 JPEG of the requested width.
    """

    def __init__(self):
        logger.info("Initialized mock video processor")

    async def extract_poster_frame(
        self,
        video_data: bytes,
        offset_seconds: float,
        width: int,
    ) -> bytes:
        from PIL import Image

        if not video_data:
            raise DecodeFailureError("Empty video")

        out = io.BytesIO()
        Image.new("RGB", (width, max(1, width * 9 // 16)), (90, 120, 60)).save(
            out, format="JPEG", quality=80
        )
        return out.getvalue()


def create_video_processor(
    mock_mode: bool = False,
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
) -> VideoProcessor:
    """
    Factory function for video processor.

    Args:
        mock_mode: If True, return mock processor (no FFmpeg required)
        command_timeout: Upper bound for a single ffmpeg/ffprobe run

    Returns:
        VideoProcessor implementation
    """
    if mock_mode:
        return MockVideoProcessor()

    return FFmpegVideoProcessor(
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
        command_timeout=command_timeout,
    )
