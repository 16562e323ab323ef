"""
PhishNet - HTTP error mapping
Translates case engine exceptions into HTTPException status codes.
"""
from fastapi import HTTPException, status

from ..exceptions import (
    ConcurrentModificationError,
    ConstraintViolationError,
    NotFoundError,
    PhishNetError,
    StorageUnavailableError,
    ValidationError,
)

STATUS_BY_ERROR = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConstraintViolationError, status.HTTP_409_CONFLICT),
    (ConcurrentModificationError, status.HTTP_409_CONFLICT),
    (StorageUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def to_http_exception(error: PhishNetError) -> HTTPException:
    """Pick the status code for a case engine error; unknown kinds are 500."""
    for error_cls, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_cls):
            return HTTPException(status_code=status_code, detail=error.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error.message)
