"""Service-level exceptions.

Services raise these instead of `HTTPException` so they stay usable from
scripts; `main.py` registers one handler that turns them into the same
`{"detail": ...}` body FastAPI uses for its own HTTP errors.
"""


class ServiceError(Exception):
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class PermissionDeniedError(ServiceError):
    status_code = 403


class ConflictError(ServiceError):
    status_code = 409
