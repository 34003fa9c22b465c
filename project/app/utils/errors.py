# app/utils/errors.py

"""
Иерархия ошибок API и обработчики, приводящие любой сбой
к JSON вида {"error": ..., "details": ...}.
"""

from typing import Any, Dict, Iterable, List, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

ErrorMap = Dict[str, List[str]]

# ключ для сообщений, не относящихся к одному полю
FORM_ERRORS_KEY = "_errors"

STALE_RECORD_MESSAGE = "This record has been modified. Please refresh and try again."

# части запроса, которые FastAPI добавляет в начало loc
_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}

# понятные формулировки для частых ошибок pydantic
FIELD_MESSAGES = {
    ("fullName", "string_too_short"): "Name must be at least 2 characters",
    ("fullName", "string_too_long"): "Name cannot exceed 80 characters",
    ("email", "value_error"): "Invalid email address",
    ("phone", "string_too_short"): "Phone must be at least 10 digits",
    ("phone", "string_too_long"): "Phone cannot exceed 15 digits",
    ("notes", "string_too_long"): "Notes cannot exceed 1000 characters",
}


class ApiError(HTTPException):
    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_default = "Internal server error"

    def __init__(
        self,
        details: Any = None,
        error: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        **extra: Any,
    ):
        self.error = error or self.error_default
        self.details = details
        self.extra = extra
        super().__init__(status_code=self.status_code_default, detail=self.error, headers=headers)

    def content(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra)
        return body


class ValidationFailed(ApiError):
    status_code_default = status.HTTP_400_BAD_REQUEST
    error_default = "Validation error"


class CsvRowsInvalid(ValidationFailed):
    error_default = "Validation errors in CSV data"

    def __init__(self, invalid_rows: List[Dict[str, Any]]):
        super().__init__(invalidRows=invalid_rows)


class Unauthorized(ApiError):
    status_code_default = status.HTTP_401_UNAUTHORIZED
    error_default = "Unauthorized"


class Forbidden(ApiError):
    status_code_default = status.HTTP_403_FORBIDDEN
    error_default = "Forbidden"


class NotFound(ApiError):
    status_code_default = status.HTTP_404_NOT_FOUND
    error_default = "Not found"


class Conflict(ApiError):
    status_code_default = status.HTTP_409_CONFLICT
    error_default = "Conflict"


class RateLimited(ApiError):
    status_code_default = status.HTTP_429_TOO_MANY_REQUESTS
    error_default = "Too many requests. Please try again later."


class InternalError(ApiError):
    pass


# ────────────── Карты ошибок ──────────────
def add_error(errors: ErrorMap, field: str, message: str) -> None:
    errors.setdefault(field, []).append(message)


def merge_errors(target: ErrorMap, source: ErrorMap) -> ErrorMap:
    for field, messages in source.items():
        for message in messages:
            add_error(target, field, message)
    return target


def format_errors(errors: Iterable[Dict[str, Any]]) -> ErrorMap:
    """Группирует ошибки pydantic по имени поля, сохраняя порядок."""
    result: ErrorMap = {}
    for err in errors:
        loc = list(err.get("loc", ()))
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        field = str(loc[0]) if loc else FORM_ERRORS_KEY
        message = FIELD_MESSAGES.get((field, err.get("type")), err.get("msg", "Invalid value"))
        add_error(result, field, message)
    return result


def translate_integrity_error(exc: IntegrityError) -> ApiError:
    """Переводит нарушения ограничений БД в ошибки API."""
    text = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    if "foreign key" in text:
        return ValidationFailed(
            error="Foreign key constraint failed",
            details="Referenced record does not exist.",
        )
    if "unique" in text or "duplicate" in text:
        return Conflict(
            error="Duplicate entry",
            details="A record with these values already exists.",
        )
    return InternalError(details="Something went wrong. Please try again later.")


def as_api_error(exc: Exception) -> ApiError:
    """Ошибка API, которую роут пробрасывает при непредвиденном сбое."""
    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, IntegrityError):
        return translate_integrity_error(exc)
    if isinstance(exc, StaleDataError):
        return Conflict(details=STALE_RECORD_MESSAGE)
    return InternalError(details="Something went wrong. Please try again later.")


# ────────────── Обработчики ──────────────
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(exc.content(), status_code=exc.status_code, headers=exc.headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        {"error": "Validation error", "details": format_errors(exc.errors())},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    log = getattr(request.app.state, "log", None)
    if log:
        await log.log_error("app", f"Необработанная ошибка: {exc}", {"path": request.url.path})
    return JSONResponse(
        {"error": "Internal server error", "details": "Something went wrong. Please try again later."},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
