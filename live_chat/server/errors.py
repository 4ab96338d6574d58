"""Error types and the uniform failure envelope."""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class ChatError(Exception):
    """Base class for failures reported to the caller as ``success: false``."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(ChatError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationFailed(ChatError):
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(ChatError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ChatError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(ChatError):
    status_code = status.HTTP_409_CONFLICT


class UploadFailed(ChatError):
    status_code = status.HTTP_502_BAD_GATEWAY


def failure(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


async def chat_error_handler(_request: Request, exc: ChatError) -> JSONResponse:
    return failure(exc.message, exc.status_code)


async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return failure(str(exc.detail), exc.status_code)


async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"
    return failure(message, status.HTTP_400_BAD_REQUEST)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChatError, chat_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
