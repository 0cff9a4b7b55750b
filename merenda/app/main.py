from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from merenda.app.api.v1.router import router as v1_router
from merenda.app.logging_config import configure_logging, get_logger
from merenda.services.errors import (
    AlreadyAdjusted,
    AlreadyProcessed,
    DataIntegrityError,
    MerendaError,
    NotConfirmed,
    NotFound,
)

log = get_logger("api")

# First match wins; anything else is a 400
ERROR_STATUS = (
    (NotFound, 404),
    (AlreadyProcessed, 409),
    (AlreadyAdjusted, 409),
    (NotConfirmed, 409),
    (DataIntegrityError, 500),
)


def status_for(exc: MerendaError) -> int:
    for exc_type, status_code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return 400


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="MERENDA", version="0.1.0")
    app.include_router(v1_router, prefix="/v1")

    @app.exception_handler(MerendaError)
    async def merenda_error_handler(request: Request, exc: MerendaError):
        status_code = status_for(exc)
        if status_code >= 500:
            log.error("request failed", exc_info=exc, extra={"path": request.url.path})
        else:
            log.warning(
                "request rejected",
                extra={"path": request.url.path, "error_code": exc.code},
            )
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code, **exc.context()},
        )

    return app


app = create_app()
