# app/utils/errors.py
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("app.errors")


class SelectionError(Exception):
    """Base for errors surfaced to the caller with a readable message."""

    status_code = 400

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ValidationError(SelectionError):
    status_code = 400


class ConflictError(SelectionError):
    status_code = 409


class NotFoundError(SelectionError):
    status_code = 404


class TransactionError(SelectionError):
    """DB 鎖逾時 / deadlock / 斷線：整筆交易已 rollback，可以重試。"""

    status_code = 500

    def __init__(self, message: str = "Internal server error, please retry"):
        super().__init__("TRANSACTION_FAILED", message)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(SelectionError)
    async def handle_selection_error(request: Request, exc: SelectionError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "code": exc.code, "message": exc.message},
        )
