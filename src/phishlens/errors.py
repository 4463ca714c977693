"""
Error taxonomy for the analysis adapter.

Every error is local to a single request. The normalization helpers in
scoring/fusion/agent never raise; these are raised only at the boundary.
"""

from typing import Optional


class PhishLensError(Exception):
    """Base class for all request-level failures."""


class ValidationError(PhishLensError):
    """Raised when an analysis request is malformed (empty value, bad URL)."""


class UnsupportedModeError(PhishLensError):
    """Raised for request modes the upstream does not implement (image)."""

    def __init__(self, mode: str = "image"):
        self.mode = mode
        super().__init__("Image ingress is not yet enabled in this build.")


class UpstreamUnreachable(PhishLensError):
    """Raised when the analysis backend fails or answers with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class MisconfiguredEnvironment(PhishLensError):
    """Raised when live mode is expected but no upstream is configured."""
