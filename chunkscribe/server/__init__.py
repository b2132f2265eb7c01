"""HTTP surface for ChunkScribe."""

from .app import create_app

__all__ = ["create_app"]
