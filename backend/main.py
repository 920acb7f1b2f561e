import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from magazine_api.api.endpoints import payments, portone, public
from magazine_api.core.database import Base, engine
from magazine_api.core.errors import AppError, ValidationError
from magazine_api.core.settings import settings
from magazine_api.models import payment as _payment_models  # noqa: F401  (registers tables)
from magazine_api.models import webhook_event as _webhook_models  # noqa: F401
from magazine_api.services.portone.client import build_portone_client

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger("magazine_api")

WEBHOOK_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

app = FastAPI(title="Magazine Platform Billing API")

origins = settings.resolved_cors_origins()
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
def startup() -> None:
    missing = settings.missing_required()
    for name in missing:
        logger.error("config.missing name=%s", name)
    if missing and settings.is_production:
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")
    if settings.db_auto_create:
        Base.metadata.create_all(bind=engine)
    app.state.gateway = build_portone_client(settings)


@app.on_event("shutdown")
def shutdown() -> None:
    gateway = getattr(app.state, "gateway", None)
    if gateway is not None:
        gateway.close()


def _failure_body(request: Request) -> dict:
    body: dict = {"success": False}
    checklist = getattr(request.state, "checklist", None)
    if checklist is not None:
        body["checklist"] = checklist.as_list()
    return body


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("api.error path=%s error=%s %s", request.url.path, type(exc).__name__, exc.log_line())
    else:
        logger.warning("api.rejected path=%s error=%s %s", request.url.path, type(exc).__name__, exc.log_line())
    return JSONResponse(status_code=exc.status_code, content=_failure_body(request))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ",".join(".".join(str(p) for p in err.get("loc", ())) for err in exc.errors())
    logger.warning("api.invalid_body path=%s fields=%s", request.url.path, fields)
    return JSONResponse(status_code=ValidationError.status_code, content=_failure_body(request))


@app.middleware("http")
async def webhook_cache_headers(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith("/api/portone"):
        for key, value in WEBHOOK_HEADERS.items():
            response.headers[key] = value
    return response


app.include_router(payments.router, prefix="/api", tags=["payments"])
app.include_router(portone.router, prefix="/api", tags=["webhooks"])
app.include_router(public.router, prefix="/api", tags=["public"])


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
