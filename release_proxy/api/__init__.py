"""
Upstream API Layer.

This package handles all outbound communication: the shared HTTP session and
the release API client.
"""

from .http import SessionPool
from .release_resolver import ReleaseAsset, ReleaseResolver

__all__ = ["ReleaseAsset", "ReleaseResolver", "SessionPool"]
