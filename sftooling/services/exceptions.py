"""Error kinds raised by the authentication and HTTP layers"""
from typing import Any, Optional


class SalesforceError(Exception):
    """Base class for every error raised by sftooling services"""


class ConfigurationError(SalesforceError):
    """No authentication strategy can be satisfied from the configuration"""


class AuthenticationError(SalesforceError):
    """A specific strategy failed to produce an access token"""

    def __init__(self, message: str, strategy: Optional[str] = None):
        super().__init__(message)
        self.strategy = strategy


class CliSessionUnavailable(AuthenticationError):
    """The SF CLI cannot supply a session; the next strategy is tried"""

    def __init__(self, message: str):
        super().__init__(message, strategy="cli_session")


class TransportError(SalesforceError):
    """Network failure or non-2xx response from Salesforce"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
        url: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url


class AuthorizationError(TransportError):
    """HTTP 401: the token was rejected"""


class BadRequestError(TransportError):
    """HTTP 400: Salesforce refused the request"""
