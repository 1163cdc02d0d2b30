# confessional/errors.py
"""
Error taxonomy for the confessional services.

Each class carries the HTTP status and the short error code used in the
JSON envelope, so the API layer can translate without a lookup table.
"""


class ConfessionalError(Exception):
    """Base exception for service errors."""
    status_code = 500
    code = "server_error"


class InvalidArgument(ConfessionalError):
    """A required field is missing or malformed."""
    status_code = 400
    code = "invalid_argument"


class NotFound(ConfessionalError):
    """Unknown confession or feedback id."""
    status_code = 404
    code = "not_found"


class Conflict(ConfessionalError):
    """The record is not in a state that allows the transition."""
    status_code = 409
    code = "conflict"


class UpstreamUnavailable(ConfessionalError):
    """An external AI service failed and there is no local fallback."""
    status_code = 502
    code = "upstream_unavailable"


__all__ = [
    "ConfessionalError",
    "InvalidArgument",
    "NotFound",
    "Conflict",
    "UpstreamUnavailable",
]
