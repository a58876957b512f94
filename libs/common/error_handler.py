from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from libs.common.logging import get_logger

logger = get_logger(__name__)


def scrub_validation_errors(errors) -> list[dict]:
    """Drop the submitted values from validation errors.

    Request bodies carry card numbers and CVVs, so a 422 reports where and
    why a field failed but never what was sent.
    """
    return [
        {key: value for key, value in error.items() if key not in ("input", "ctx")}
        for error in errors
    ]


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = scrub_validation_errors(exc.errors())
    logger.warning(
        "Rejected %s %s: %d invalid field(s)",
        request.method,
        request.url.path,
        len(errors),
    )
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(errors)},
    )


def add_exception_handlers(app: FastAPI) -> None:
    """Register the shared exception handlers on an app."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
