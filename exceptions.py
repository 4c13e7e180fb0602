"""
License client exceptions.

None of these are fatal to the host: the client turns them into
notices, and the HTTP layer maps the rest onto status codes.
"""
from typing import Optional


class LicenseClientError(Exception):
    """Base exception for all license client errors."""

    def __init__(self, message: str, code: str = None):
        """
        Initialize license client error.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class TransportError(LicenseClientError):
    """Raised when the request to the license server fails."""

    def __init__(self, message: str):
        super().__init__(message, code="TRANSPORT_ERROR")


class MalformedResponseError(LicenseClientError):
    """Raised when the license server answers with an unusable body."""

    def __init__(self, message: str = "Unexpected response from the license server"):
        super().__init__(message, code="MALFORMED_RESPONSE")


class ApiError(LicenseClientError):
    """The license server refused the license (invalid, expired or at its limit)."""

    def __init__(self, message: str, license_status: str, error: Optional[str] = None):
        super().__init__(message, code=(error or "invalid").upper())
        self.license_status = license_status
        self.error = error

    @classmethod
    def from_result(cls, result, store_url: str) -> "ApiError":
        if result.error == "no_activations_left":
            message = (
                "You've reached your activation limit. You must upgrade your license "
                f"({store_url}) to use it on this site."
            )
        elif result.error == "expired":
            message = (
                f"Your license is expired. You must extend your license ({store_url}) "
                "in order to use it again."
            )
        else:
            message = "Failed to activate your license, your license key seems to be invalid."

        return cls(message, license_status=result.license, error=result.error)


class InvalidNonceError(LicenseClientError):
    """Raised when a form submission carries a missing, forged or stale token."""

    def __init__(self, message: str = "The link you followed has expired"):
        super().__init__(message, code="INVALID_NONCE")
