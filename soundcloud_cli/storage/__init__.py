"""
Storage Layer.

This package handles local persistence of the OAuth token.
"""

from .token_store import TokenStore

__all__ = ["TokenStore"]
