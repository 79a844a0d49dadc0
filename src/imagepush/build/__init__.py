"""
Image build and push drivers.

    - pull_cache: Seed --cache-from with previously pushed images
    - ImageBuilder: Build cache stages and the final image
    - ImagePusher: Tag and push the final image and its stages
"""

from .cache import pull_cache
from .image_builder import ImageBuilder
from .pusher import ImagePusher

__all__ = ["pull_cache", "ImageBuilder", "ImagePusher"]
