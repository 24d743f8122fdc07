"""
Error taxonomy for calls made to the bus booking backend.
"""


class GatewayError(Exception):
    """Base class for every failure raised by the API gateway."""

    def __init__(self, message: str = ''):
        super().__init__(message)
        self.message = message

    def user_message(self) -> str:
        return self.message or 'The booking service could not complete the request.'


class NetworkError(GatewayError):
    """The backend could not be reached (connection refused, DNS, timeout)."""

    def user_message(self) -> str:
        return 'Unable to reach the booking service. Please check your connection and try again.'


class HttpError(GatewayError):
    """The backend answered with a 4xx or 5xx status."""

    def __init__(self, status: int, body: str = ''):
        super().__init__(f"HTTP {status}: {body}".strip())
        self.status = status
        self.body = body

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    def user_message(self) -> str:
        if self.body and self.is_client_error:
            return self.body
        return f'The booking service returned an error ({self.status}).'


class DecodeError(GatewayError):
    """The backend answered with a payload that does not match its schema."""

    def user_message(self) -> str:
        return 'The booking service returned an unexpected response.'


class PartialLoadError(GatewayError):
    """
    A secondary section of a page failed to load.
    Never raised out of a workflow step; recorded so the page can show
    degraded content while the rest of the flow stays usable.
    """

    def __init__(self, section: str, cause: GatewayError):
        super().__init__(f"{section}: {cause.message}")
        self.section = section
        self.cause = cause

    def user_message(self) -> str:
        return f'Failed to load {self.section}.'
