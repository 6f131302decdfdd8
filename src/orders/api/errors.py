"""Map order-review rejections onto HTTP responses.

Protean's handlers cover the generic cases (ValidationError → 400,
ObjectNotFoundError → 404). The domain-specific ValidationError subclasses
get their own status codes; Starlette resolves handlers by walking the
exception's MRO, so the subclass handlers win.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError
from protean.integrations.fastapi import register_exception_handlers

from orders.review.errors import ActionNotPermitted, InvalidItemReference, InvalidTransition

ERROR_STATUS_CODES: dict[type, int] = {
    InvalidTransition: 409,
    InvalidItemReference: 422,
    ActionNotPermitted: 403,
}


async def order_review_error_handler(request: Request, exc: Exception) -> JSONResponse:
    content = {"error": exc.messages, "error_type": type(exc).__name__}
    if isinstance(exc, InvalidTransition):
        content["current_status"] = exc.current_status
        content["trigger"] = exc.trigger
    elif isinstance(exc, InvalidItemReference):
        content["item_id"] = exc.item_id
    return JSONResponse(status_code=ERROR_STATUS_CODES[type(exc)], content=content)


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc), "error_type": "ObjectNotFoundError"})


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    for exc_class in ERROR_STATUS_CODES:
        app.add_exception_handler(exc_class, order_review_error_handler)
