"""Exception types raised to callers of the receipt pipeline."""

from __future__ import annotations


class MyKhataError(Exception):
    """Base class for errors raised by mykhata."""


class InvalidImageError(MyKhataError, ValueError):
    """The uploaded image is missing or empty."""


class ValidationError(MyKhataError, ValueError):
    """A transaction field failed validation.

    The message is meant to be relayed to the end user as-is.
    """


class RecognitionError(MyKhataError, RuntimeError):
    """The OCR engine failed to recognize text in an image."""


class PoolClosedError(MyKhataError, RuntimeError):
    """Work was scheduled on (or still waiting for) a pool that has shut down."""
