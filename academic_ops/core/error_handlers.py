from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging

from .exceptions import AcademicOpsError

logger = logging.getLogger(__name__)


async def academic_ops_exception_handler(request: Request, exc: AcademicOpsError):
    """Handle domain exceptions raised by the services"""
    if exc.status_code >= 500:
        logger.error(f"{exc.kind}: {exc.message} - Path: {request.url.path}")
    else:
        logger.info(f"{exc.kind}: {exc.message} - Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.to_dict()}
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.exception(f"Unexpected error: {str(exc)} - Path: {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {"kind": "InternalError", "message": "Internal server error"}
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AcademicOpsError, academic_ops_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
