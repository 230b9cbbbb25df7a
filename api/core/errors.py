"""Service-level exceptions mapped to HTTP responses by main.py.

Every subclass carries the status code it surfaces as. The handler renders
``{"error": message}`` so API clients get one error shape.
"""


class ServiceError(Exception):
    """Base class for errors with a defined HTTP status."""

    status_code: int = 500
    public_message: str | None = None

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    @property
    def client_message(self) -> str:
        return self.public_message or self.message


class ConfigurationError(ServiceError):
    """Server credentials are missing. Not retried."""

    status_code = 500
    public_message = "Server configuration missing"


class AuthenticationError(ServiceError):
    """No resolvable caller identity."""

    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class CertificateValidationError(ServiceError):
    """A required field is missing or malformed."""

    status_code = 400


class CertificateOwnershipError(ServiceError):
    """The certificate id is already registered to a different account."""

    status_code = 403

    def __init__(self, cert_id: str):
        self.cert_id = cert_id
        super().__init__("Certificate belongs to another account")


class UpstreamStoreError(ServiceError):
    """The record store or blob store call failed."""

    status_code = 500


class RenderingError(ServiceError):
    """The certificate document could not be produced."""

    status_code = 500
