"""Map booking-rule exceptions onto HTTP responses."""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .availability import InvalidDateError
from .booking_status import InvalidTransitionError


def invalid_date_handler(_: Request, exc: InvalidDateError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})


def invalid_transition_handler(_: Request, exc: InvalidTransitionError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


def apply_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InvalidDateError, invalid_date_handler)
    app.add_exception_handler(InvalidTransitionError, invalid_transition_handler)
