import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wager_ledger.core.config import settings
from wager_ledger.core.database import get_db, init_database
from wager_ledger.core.errors import InvalidInput, LedgerError, StorageUnavailable
from wager_ledger.routes import games, players, withdrawals

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title="Wager Ledger")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(players.router)
    app.include_router(games.router)
    app.include_router(withdrawals.router)

    @app.on_event("startup")
    def on_startup():
        init_database()
        logger.info("Ledger started (%s)", settings.ENVIRONMENT)

    # =========================
    #  ERRORS
    # =========================
    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        err = InvalidInput(f"Invalid request: {fields}")
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Storage error on %s: %s", request.url.path, exc)
        err = StorageUnavailable("Storage is unavailable, nothing was applied")
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    # =========================
    #  ROUTES
    # =========================
    @app.get("/")
    def read_root():
        return {"message": "Wager ledger running"}

    @app.get("/health")
    def health_check(db: Session = Depends(get_db)):
        try:
            db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Database check failed: {e}") from e
        return {"status": "ok"}

    return app


app = create_app()
