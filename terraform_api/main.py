import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from terraform_api.config import settings
from terraform_api.core.exceptions import TerraformApiError, ValidationError
from terraform_api.core.redaction import redact
from terraform_api.modules.terraform import routes as terraform_routes

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    redirect_slashes=False,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(TerraformApiError)
async def terraform_api_exception_handler(request: Request, exc: TerraformApiError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.error, "details": exc.details})


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"Validation failed for {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": ValidationError.error, "details": str(exc.errors())})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    details = "Internal server error" if settings.is_production else redact(str(exc))
    return JSONResponse(status_code=500, content={"error": "Internal Server Error", "details": details})


class SecurityHeadersMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"].extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                ])
            await send(message)

        await self.app(scope, receive, send_with_headers)


class RequestLoggingMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http":
            logger.info(f"{scope['method']} {scope['path']}")
        await self.app(scope, receive, send)


app.add_middleware(SlowAPIMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(terraform_routes.router)

ENDPOINTS = [
    {"method": "GET", "path": "/health", "description": "Health check endpoint"},
    {"method": "POST", "path": "/terraform/init", "description": "Initialize Terraform for a specific template"},
    {"method": "POST", "path": "/terraform/apply", "description": "Apply Terraform configuration for a specific template"},
    {"method": "POST", "path": "/terraform/destroy", "description": "Destroy Terraform resources for a specific template"},
    {"method": "GET", "path": "/terraform/status", "description": "Get status of active templates"},
    {"method": "POST", "path": "/terraform/cleanup", "description": "Clean up all temporary resources"},
]


@app.on_event("startup")
async def startup_event():
    logger.info("Application startup")
    logger.info(f"Using Terraform project path: {settings.terraform_path}")
    logger.info(f"Using AWS region: {settings.aws_region}")
    logger.info(f"Using workspace directory: {settings.get_workspace_root()}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Application shutdown")


@app.get("/")
async def root():
    """API description document"""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "API for managing Terraform operations",
        "endpoints": ENDPOINTS,
        "terraformPath": settings.terraform_path,
    }


@app.get("/health")
@limiter.exempt
async def health():
    return {"status": "ok", "message": "Terraform API is running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("terraform_api.main:app", host="0.0.0.0", port=settings.port)
