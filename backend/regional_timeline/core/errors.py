"""
Error taxonomy for the timeline pipeline.

Only configuration and region errors abort a request. Source and
classification errors are absorbed by the component that produced them.
"""
from __future__ import annotations


class TimelineError(Exception):
    """Base class for errors rendered as ``{"error": message}``."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(TimelineError):
    """Region configuration is missing or unparseable."""

    status_code = 500


class UnknownRegionError(TimelineError):
    """The requested region code is not configured."""

    status_code = 404

    def __init__(self, region: str):
        super().__init__(f"No instance config for region: {region}")
        self.region = region


class EmptyInstanceListError(TimelineError):
    """The region exists but lists no usable instance domains."""

    status_code = 400

    def __init__(self, region: str):
        super().__init__(f"Empty instance list for region: {region}")
        self.region = region


class InvalidRequestError(TimelineError):
    """Malformed client input."""

    status_code = 400


class SourceFetchError(TimelineError):
    """A single instance could not be read. Recoverable."""

    status_code = 502

    def __init__(self, domain: str, reason: str):
        super().__init__(f"{domain}: {reason}")
        self.domain = domain
        self.reason = reason


class ClassificationError(TimelineError):
    """The classifier failed for a single text. Recoverable."""


__all__ = [
    "TimelineError",
    "ConfigurationError",
    "UnknownRegionError",
    "EmptyInstanceListError",
    "InvalidRequestError",
    "SourceFetchError",
    "ClassificationError",
]
