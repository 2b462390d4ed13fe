import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from moodapp.core.config import settings
from moodapp.core.database import create_tables
from moodapp.core.exceptions import StorageError, ValidationError
from moodapp.core.logging import configure_logging
from moodapp.api.routes.mood import router as mood_router
from moodapp.api.routes.push import router as push_router
from moodapp.api.routes.realtime import router as realtime_router
from moodapp.services.push_dispatcher import PushConfig
from moodapp.services.realtime import ConnectionHub

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tabellen beim Start anlegen (SQLite / lokale Entwicklung)
    await create_tables()
    if not app.state.push_config.enabled:
        logger.warning("VAPID_PRIVATE_KEY nicht gesetzt – Web Push deaktiviert")
    yield


app = FastAPI(
    title="Mood Tracker API",
    description="Mood-Tracker mit Live-Updates und Web Push",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# Prozessweiter Zustand: einmal vor dem Serving angelegt, danach unverändert
app.state.push_config = PushConfig.from_settings(settings)
app.state.hub = ConnectionHub()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.warning("Validation error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": exc.message},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Invalid request body", "details": jsonable_errors(exc)},
    )


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage error on %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": exc.message},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]


API_PREFIX = "/api"

app.include_router(push_router, prefix=API_PREFIX)
app.include_router(mood_router, prefix=API_PREFIX)
app.include_router(realtime_router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "Mood Tracker API", "version": "1.0.0"}
