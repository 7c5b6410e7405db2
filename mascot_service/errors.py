"""Errors that end a request because no lower fallback exists for them."""
from __future__ import annotations


class MascotServiceError(RuntimeError):
    """Base class for fatal pipeline failures."""

    user_message = "Something went wrong. Please try another photo."


class DecodeError(MascotServiceError):
    """Input photo bytes could not be decoded as an image."""


class AssetUnavailableError(MascotServiceError):
    """The mascot asset could not be read or fetched."""


class CompositingError(MascotServiceError):
    """Local rendering failed, e.g. the mascot bytes are corrupt."""


__all__ = [
    "AssetUnavailableError",
    "CompositingError",
    "DecodeError",
    "MascotServiceError",
]
