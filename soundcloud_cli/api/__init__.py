"""
SoundCloud API Layer.

This package handles all communication with the SoundCloud v2 API.
"""

from .client import SoundcloudAPIClient
from .resolver import Resolver

__all__ = ["Resolver", "SoundcloudAPIClient"]
