"""
Exception types raised by the hook.
"""


class ValidationError(Exception):
    """Raised when validation fails."""
    pass


class AuthenticationError(ValidationError):
    """Raised when an attestation cannot be authenticated."""
    pass


class Unauthorized(ValidationError):
    """Raised when a caller may not perform an admin operation."""
    pass


class RelayError(ValidationError):
    """Raised when swap callbacks run out of order."""
    pass
