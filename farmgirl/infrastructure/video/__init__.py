"""
Video processing infrastructure.

Handles server-side poster frame extraction using FFmpeg.
"""

from .processor import (
    FFmpegVideoProcessor,
    MockVideoProcessor,
    VideoInfo,
    create_video_processor,
    scoped_workspace,
)

__all__ = [
    "FFmpegVideoProcessor",
    "MockVideoProcessor",
    "VideoInfo",
    "create_video_processor",
    "scoped_workspace",
]
