"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Object storage (S3/R2) via boto3
- imaging: Image resizing and encoding via Pillow
- video: Poster frame extraction via FFmpeg
- metadata: JSON-file metadata index
- events: Analytics event sinks

These wrappers translate between external formats and our domain models.
"""
