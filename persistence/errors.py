from __future__ import annotations


class RepositoryError(Exception):
    """Base class for domain errors raised by the repositories."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RepositoryError):
    status_code = 400


class PermissionDeniedError(RepositoryError):
    status_code = 403


class NotFoundError(RepositoryError):
    status_code = 404


class ConflictError(RepositoryError):
    status_code = 409


class UserExistsError(ConflictError):
    pass
