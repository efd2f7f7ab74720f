"""
Typed errors raised by the reservation and rating engines.

Every error carries a stable machine-readable ``kind`` (e.g. ``Conflict:SlotTaken``)
and a human-readable message. The API layer renders them with a single
exception handler, so services never build HTTP responses themselves.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.logging import get_logger

logger = get_logger(__name__)


class BookingAPIError(Exception):
    """Base class for all engine errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    kind: str = "Invalid"

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        if kind is not None:
            self.kind = kind
        self.context = context or {}
        super().__init__(message)


class NotFoundError(BookingAPIError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"{entity} not found", kind=f"NotFound:{entity}")


class InvalidRequestError(BookingAPIError):
    """Malformed or out-of-range input. ``reason`` names the offending field or rule."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message, kind=f"Invalid:{reason}")


class InvalidStateError(InvalidRequestError):
    def __init__(self, message: str) -> None:
        super().__init__("State", message)


class ForbiddenError(BookingAPIError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str, reason: Optional[str] = None) -> None:
        super().__init__(message, kind=f"Forbidden:{reason}" if reason else "Forbidden")


class SlotTakenError(BookingAPIError):
    status_code = status.HTTP_409_CONFLICT
    kind = "Conflict:SlotTaken"

    def __init__(self, court: str, date: Any, start: str, end: str) -> None:
        super().__init__(
            f"Court '{court}' is already booked on {date} between {start} and {end}",
            context={
                "court": court,
                "date": str(date),
                "time_slot": {"start": start, "end": end},
            },
        )


class AlreadyRatedError(BookingAPIError):
    status_code = status.HTTP_409_CONFLICT
    kind = "Conflict:AlreadyRated"

    def __init__(self) -> None:
        super().__init__("You have already rated this venue")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingAPIError)
    async def booking_error_handler(request: Request, exc: BookingAPIError) -> JSONResponse:
        logger.info(
            "request_rejected",
            kind=exc.kind,
            status_code=exc.status_code,
            reason=exc.message,
        )
        body: dict[str, Any] = {"kind": exc.kind, "detail": exc.message}
        if exc.context:
            body["context"] = exc.context
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        field, reason, msg = _engine_field(errors)
        if reason:
            # Same kind and status the engine uses when it rejects this field's value
            detail = f"Invalid {field}: {msg}"
            logger.info("request_rejected", kind=f"Invalid:{reason}", status_code=400, reason=detail)
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"kind": f"Invalid:{reason}", "detail": detail},
            )

        logger.info("request_rejected", kind="Invalid:Request", status_code=422, errors=errors)
        return JSONResponse(
            status_code=422,
            content={
                "kind": "Invalid:Request",
                "detail": "Request validation failed",
                "context": {"errors": errors},
            },
        )


# Body fields the engines validate themselves; a value of the wrong type is
# reported under the engine's kind rather than as a generic schema error
ENGINE_FIELD_KINDS = {
    "score": "Score",
    "comment": "Comment",
    "total_price": "Price",
    "time_slot": "TimeWindow",
}


def _engine_field(errors: list[dict]) -> tuple[Optional[str], Optional[str], Optional[str]]:
    for error in errors:
        loc = error.get("loc") or ()
        if len(loc) > 1 and loc[0] == "body" and loc[1] in ENGINE_FIELD_KINDS:
            return loc[1], ENGINE_FIELD_KINDS[loc[1]], error.get("msg")
    return None, None, None
