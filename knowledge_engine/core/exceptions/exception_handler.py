import logging
import re
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from knowledge_engine.core.config.settings import settings
from knowledge_engine.core.exceptions.error_messages import ErrorKey, get_error_message
from knowledge_engine.core.exceptions.exception_classes import AppException


logger = logging.getLogger(__name__)

# Regex for:  Key (name)=(Summarizer12) already exists.
_DUP_DETAIL_RE = re.compile(r"Key \((?P<field>[^)]+)\)=\((?P<value>[^)]+)\)")


def init_error_handlers(app):
    @app.exception_handler(AppException)
    def handle_app_exception(request: Request, error: AppException):
        if error.error_detail:
            logger.warning(f"{error.error_key.value}: {error.error_detail}")
        logger.info(f"Handled application error: {error} ({error.status_code})")
        response = {
            "error": get_error_message(
                request=request,
                error_key=error.error_key,
                error_variables=error.error_variables,
            ),
            "error_code": error.status_code,
            "error_key": error.error_key.value,
            "error_detail": error.error_detail if settings.DEV else None,
        }
        return JSONResponse(
            content=jsonable_encoder(response), status_code=error.status_code
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        orig = exc.orig
        detail: str = getattr(orig, "detail", "") or str(orig)
        match = _DUP_DETAIL_RE.search(detail)
        field = match.group("field") if match else None
        value = match.group("value") if match else None
        logger.warning(f"Integrity error on {request.url.path}: {detail}")

        return JSONResponse(
            status_code=409,
            content={
                "error": (
                    f"{field}='{value}' already exists" if field
                    else get_error_message(ErrorKey.DUPLICATE_VALUE, request=request)
                ),
                "error_code": 409,
                "error_key": ErrorKey.DUPLICATE_VALUE.value,
            },
        )

    @app.exception_handler(500)
    def handle_internal_server_error(request: Request, _: Exception):
        response = {
            "error": get_error_message(
                error_key=ErrorKey.INTERNAL_ERROR, request=request
            ),
        }
        return JSONResponse(content=jsonable_encoder(response), status_code=500)
