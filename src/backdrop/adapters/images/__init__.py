from .base import ImageSourceAdapter, ImageSourceError
from .openai_images import OpenAIImageAdapter
from .themes import random_criteria
from .unsplash import UnsplashImageAdapter

__all__ = [
    "ImageSourceAdapter",
    "ImageSourceError",
    "OpenAIImageAdapter",
    "UnsplashImageAdapter",
    "random_criteria",
]
