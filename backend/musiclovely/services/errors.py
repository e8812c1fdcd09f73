"""Domain errors raised by services and rendered by the API layer."""


class ServiceError(Exception):
    """Base class; ``status_code`` is the HTTP status the API answers with."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class InvalidStateError(ServiceError):
    status_code = 400


class ConflictError(ServiceError):
    status_code = 409
