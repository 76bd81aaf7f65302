"""HTTP errors that carry a machine-readable category next to the message."""

from fastapi import Request, status
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class ServiceError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    category = 'error'

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)


class ValidationFailed(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    category = 'validation'


class NotAuthenticated(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    category = 'unauthenticated'


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    category = 'forbidden'


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    category = 'not_found'


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    category = 'conflict'


class StoreUnavailable(ServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    category = 'unavailable'

    def __init__(self, detail: str = 'Database unavailable. Verify DATABASE_URL and database credentials.'):
        super().__init__(detail)


STATUS_CATEGORIES = {
    status.HTTP_400_BAD_REQUEST: ValidationFailed.category,
    status.HTTP_401_UNAUTHORIZED: NotAuthenticated.category,
    status.HTTP_403_FORBIDDEN: Forbidden.category,
    status.HTTP_404_NOT_FOUND: NotFound.category,
    status.HTTP_405_METHOD_NOT_ALLOWED: 'method_not_allowed',
    status.HTTP_409_CONFLICT: Conflict.category,
    status.HTTP_503_SERVICE_UNAVAILABLE: StoreUnavailable.category,
}


def first_error_message(errors) -> str:
    """Flatten pydantic's error list into the message of its first entry."""
    if not errors:
        return 'Invalid request'

    error = errors[0]
    message = error.get('msg', 'Invalid request')
    if message.startswith('Value error, '):
        message = message[len('Value error, '):]

    location = [str(part) for part in error.get('loc', ()) if part not in ('body', 'query', 'path')]
    if location:
        return f"{'.'.join(location)}: {message}"
    return message


async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    category = getattr(exc, 'category', None) or STATUS_CATEGORIES.get(exc.status_code, 'error')
    return JSONResponse(
        status_code=exc.status_code,
        content={'detail': exc.detail, 'category': category},
        headers=getattr(exc, 'headers', None),
    )


async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'detail': first_error_message(exc.errors()), 'category': ValidationFailed.category},
    )
