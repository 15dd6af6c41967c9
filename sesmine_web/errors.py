"""Maps SesmineError subclasses to JSON error responses"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sesmine.utils.exceptions import PersistenceError, SesmineError
from sesmine.utils.logger import get_logger

logger = get_logger(__name__)


async def sesmine_error_handler(request: Request, exc: SesmineError) -> JSONResponse:
    if isinstance(exc, PersistenceError):
        logger.error("Persistence failure", path=request.url.path, error=exc.message)
    else:
        logger.info("Request rejected", path=request.url.path, code=exc.code)
    return JSONResponse(
        status_code=exc.http_status,
        content={"status": "error", "error": exc.to_dict()},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SesmineError, sesmine_error_handler)
