"""
Farm Girl Media - media backend for the Life of an Old Farm Girl site.

This package contains the complete application:
- core: Framework-agnostic upload and derivative logic
- infrastructure: Object storage, imaging, video and metadata integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
