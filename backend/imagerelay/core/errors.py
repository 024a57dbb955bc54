from typing import Optional


class ImageRelayError(Exception):
    """
    Base class for failures that end a request with a known HTTP status.
    """
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ImageRelayError):
    status_code = 400


class InvalidUrl(ImageRelayError):
    status_code = 400


class UpstreamFetchError(ImageRelayError):
    """
    The image host answered with a non-2xx status. The status is passed
    through to our own caller.
    """

    def __init__(self, message: str, status_code: int, body: Optional[str] = None):
        super().__init__(message, status_code=status_code)
        self.body = body


class ImageDecodeError(ImageRelayError):
    status_code = 422


class TextRenderError(ImageRelayError):
    status_code = 500


class TransportError(ImageRelayError):
    status_code = 500


class StorageError(ImageRelayError):
    status_code = 500


class ThirdPartyPushError(ImageRelayError):
    """
    Emoji push failure. Reported inside a successful response, never raised
    to the client.
    """
    status_code = 200

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status
