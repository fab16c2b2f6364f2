"""Harness error types that are fatal to a verification attempt."""

from __future__ import annotations


class ProvisionError(RuntimeError):
    """Port bind or readiness failure, or a malformed build-result shape."""


__all__ = ["ProvisionError"]
