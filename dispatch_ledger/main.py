import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dispatch_ledger import __version__
from dispatch_ledger.api import create_api_router
from dispatch_ledger.core.config import get_settings
from dispatch_ledger.domain.common import (
    LedgerConsistencyError,
    SettlementConflictError,
    SettlementError,
    SettlementNotFoundError,
    SettlementValidationError,
)
from dispatch_ledger.infrastructure.database.session import init_db

settings = get_settings()
logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    SettlementValidationError: status.HTTP_400_BAD_REQUEST,
    SettlementNotFoundError: status.HTTP_404_NOT_FOUND,
    SettlementConflictError: status.HTTP_409_CONFLICT,
    LedgerConsistencyError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield


async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    status_code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error("Ledger consistency error on %s: %s %s", request.url.path, exc.message, exc.details)
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code, "detail": exc.message, "details": exc.details},
    )


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.project_name,
        description="派单结算与钱包账本服务",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SettlementError, settlement_error_handler)
    app.include_router(create_api_router(settings.api_prefix))
    return app


app = create_app()
