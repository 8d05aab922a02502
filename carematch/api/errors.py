# carematch/api/errors.py
"""
Преобразование доменных ошибок в HTTP-ответы.
"""

from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from carematch.core.exceptions import (
    CareMatchError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    PricingUnavailableError,
    UnauthorizedError,
    ValidationError,
)
from carematch.api.schemas import ErrorResponse

# Ошибка -> HTTP статус. Проигранная гонка и недопустимый переход оба 409,
# различаются полем error
ERROR_STATUS_CODES: dict[type[CareMatchError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PricingUnavailableError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
}


def status_code_for(error: CareMatchError) -> int:
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return status.HTTP_400_BAD_REQUEST


def error_response(error: CareMatchError) -> JSONResponse:
    body = ErrorResponse(
        error=error.code,
        detail=error.message,
        order_id=error.order_id,
        current_status=getattr(error, "current_status", None),
    )
    return JSONResponse(
        status_code=status_code_for(error),
        content=body.model_dump(exclude_none=True),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Регистрирует обработчик доменных ошибок."""

    @app.exception_handler(CareMatchError)
    async def handle_domain_error(request: Request, exc: CareMatchError) -> JSONResponse:
        return error_response(exc)
