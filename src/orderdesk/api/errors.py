"""Map fulfillment order errors to HTTP responses.

State-machine violations are conflicts (409), bad input is 400 and unknown
orders are 404. Every body carries ``error``, ``message`` and ``order_id``.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from orderdesk.fulfillment_order.errors import FulfillmentOrderError, describe_error


def _order_id(request: Request) -> str | None:
    return request.path_params.get("order_id")


async def _fulfillment_order_error(request: Request, exc: FulfillmentOrderError) -> JSONResponse:
    body = exc.to_dict()
    body["order_id"] = body["order_id"] or _order_id(request)
    return JSONResponse(status_code=409, content=body)


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    kind, message = describe_error(exc)
    return JSONResponse(
        status_code=400,
        content={
            "error": kind,
            "message": message,
            "order_id": _order_id(request),
            "details": getattr(exc, "messages", None),
        },
    )


async def _not_found(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    kind, message = describe_error(exc)
    return JSONResponse(
        status_code=404,
        content={"error": kind, "message": message, "order_id": _order_id(request)},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install Protean's handlers, then the fulfillment-order specific ones on top."""
    register_exception_handlers(app)
    app.add_exception_handler(FulfillmentOrderError, _fulfillment_order_error)
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
