import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from taxonomy_api.exceptions import TaxonomyError
from taxonomy_api.rate_limit import limiter
from taxonomy_api.routers.concepts import router as concepts_router
from taxonomy_api.routers.edges import router as edges_router
from taxonomy_api.routers.graph import router as graph_router
from taxonomy_api.routers.search import router as search_router
from taxonomy_api.services.taxonomy import close_taxonomy, get_taxonomy

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await get_taxonomy().warm_up()
    yield
    await close_taxonomy()


app = FastAPI(title="Taxonomy DAG API", version="0.1.0", lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(TaxonomyError)
async def taxonomy_error_handler(request: Request, exc: TaxonomyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# --- Optional API token authentication ---
# Set TAXONOMY_API_TOKEN to require a Bearer token on all /api/ endpoints.
_api_token = os.environ.get("TAXONOMY_API_TOKEN")


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if _api_token and request.url.path.startswith("/api/") and request.url.path != "/api/health":
            auth = request.headers.get("Authorization", "")
            if auth != f"Bearer {_api_token}":
                return JSONResponse(
                    status_code=401,
                    content={"detail": "Invalid or missing API token"},
                )
        return await call_next(request)


if _api_token:
    app.add_middleware(AuthMiddleware)

# CORS: load origins from env (comma-separated), default to localhost dev server
_cors_env = os.environ.get("CORS_ORIGINS", "http://localhost:5173")
cors_origins = [o.strip() for o in _cors_env.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    return response


app.include_router(concepts_router)
app.include_router(edges_router)
app.include_router(graph_router)
app.include_router(search_router)


@app.get("/api/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
