"""
Image processing infrastructure.

Resizes and re-encodes images for the derivative cache using Pillow.
"""

from .transformer import PillowImageTransformer, create_image_transformer, fit_inside

__all__ = [
    "PillowImageTransformer",
    "create_image_transformer",
    "fit_inside",
]
