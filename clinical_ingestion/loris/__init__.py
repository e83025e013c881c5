"""Client helpers for LORIS REST interactions."""

from .client import LorisAuthError, LorisClient, LorisError, UploadAction

__all__ = ["LorisAuthError", "LorisClient", "LorisError", "UploadAction"]
