"""
Domain errors raised by the service layer.

Each carries the HTTP status it maps to; the handlers registered in
``newsdesk.main`` render them into the uniform response envelope.
"""


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    status_code = 404


class ValidationError(ServiceError):
    status_code = 400


class ForbiddenError(ServiceError):
    status_code = 403


class UpstreamError(ServiceError):
    """The remote image host rejected or failed a request."""

    status_code = 400
