from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import OperationalError
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from memberhub.core import config
from memberhub.core.database.engine import init_db
from memberhub.core.errors import ApplicationError, TransientStorageError
from memberhub.core.rate_limit import limiter
from memberhub.features.audit.routes import router as audit_router
from memberhub.features.delegation.routes import router as event_router
from memberhub.features.identities.routes import application_router, member_router
from memberhub.features.verification.routes import router as verification_router
from memberhub.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="MemberHub",
    description="Membership registry with scoped administration, public verification and event delegation",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
app.state.limiter = limiter


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.memberhub.features."), timing=timing, tags=tags))


app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

if config.ENABLE_DOCS:
    log.warning("Docs enabled")
if config.ALLOW_ORIGIN:
    log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
    origins = [config.ALLOW_ORIGIN]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
if config.BREAK_GLASS_EMAILS:
    log.warning("Break-glass access configured for %d address(es)", len(config.BREAK_GLASS_EMAILS))


@app.exception_handler(ApplicationError)
async def application_error_handler(_request: Request, exc: ApplicationError):
    headers = {"Retry-After": "1"} if isinstance(exc, TransientStorageError) else None
    content = {"detail": exc.message, **exc.extra}
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(content), headers=headers)


@app.exception_handler(OperationalError)
async def storage_error_handler(_request: Request, exc: OperationalError):
    log.error("Storage unavailable: %s", exc)
    error = TransientStorageError("Storage is temporarily unavailable")
    return await application_error_handler(_request, error)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.on_event("startup")
async def startup():
    """Initialize database on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "MemberHub API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "authentication": {
            "info": "Protected endpoints require Bearer token in Authorization header",
            "protected_endpoints": [
                "/members/*", "/applications (list, review)", "/events/managers", "/events/form",
                "/events/delegates", "/audit",
            ],
            "public_endpoints": [
                "/verify/{token}", "/verify/delegates/{id}", "POST /applications",
                "/events/{manager_id}/form", "POST /events/{manager_id}/register",
            ],
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Public verification
app.include_router(verification_router, prefix="/verify", tags=["verification"])

# Membership applications and members
app.include_router(application_router, prefix="/applications", tags=["applications"])
app.include_router(member_router, prefix="/members", tags=["members"])

# Event manager delegation
app.include_router(event_router, prefix="/events", tags=["events"])

# Audit log
app.include_router(audit_router, prefix="/audit", tags=["audit"])
