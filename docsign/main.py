"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docsign.api import routes
from docsign.config import settings
from docsign.utils.logger import logger

UPLOAD_HINT = (
    "Do NOT send JSON. Use Content-Type: multipart/form-data. "
    "Required: 'file' (PDF). "
    "Example: curl -X POST ... -F 'file=@doc.pdf'"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    settings.ensure_directories()
    logger.info("Application startup complete")
    yield
    # Shutdown
    await routes.close_sessions()
    logger.info("Application shutdown")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Place signature images on PDF pages and bake them into the document.",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(routes.router, prefix="/api/v1")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return 422 with validation details and a hint for uploads."""
    detail = jsonable_encoder(exc.errors())
    payload: dict[str, object] = {"detail": detail}
    if request.method == "POST" and request.url.path.rstrip("/").endswith("/documents"):
        hint = UPLOAD_HINT
        ct = request.headers.get("content-type", "")
        if "multipart/form-data" not in ct:
            payload["content_type_received"] = ct or "(none)"
            hint += " Your request had Content-Type: " + (ct or "missing") + "."
        payload["hint"] = hint
    logger.warning("Validation error on %s: %s", request.url.path, detail)
    return JSONResponse(status_code=422, content=payload)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "operational",
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}
