# FILE: hims_billing/api/exception_handlers.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from hims_billing.core.errors import BillingError
from hims_billing.utils.resp import err

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BillingError)
    async def billing_exception_handler(request: Request,
                                        exc: BillingError) -> JSONResponse:
        logger.info("%s %s -> %s: %s", request.method, request.url.path,
                    exc.status_code, exc.msg)
        return err(msg=exc.msg, status_code=exc.status_code, code=exc.code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
            request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # exc.detail can be str/dict/list
        msg = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return err(msg=msg, status_code=exc.status_code, code="http_error")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
            request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:])
        msg = f"{field}: {first.get('msg')}" if field else "Validation error"
        return err(msg=msg, status_code=422, code="validation_error")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request,
                                          exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method,
                         request.url.path)
        return err(msg="Internal server error",
                   status_code=500,
                   code="internal_error")
