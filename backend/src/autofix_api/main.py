from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from .routers import fixes, health
from .config import settings
from .logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Security Autofix API",
    description="Automated vulnerability remediation: fix branches, pull requests and risk annotations",
    version="0.1.0"
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"], # Allow all for local dev; restrict in prod
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        is_health_check = request.url.path == "/health"
        
        # Log start only if not health check
        if not is_health_check:
            logger.info(f"REQUEST START: {request.method} {request.url.path} from {request.client.host if request.client else 'unknown'}")
        
        try:
            response = await call_next(request)
            
            # Log end only if not health check OR if health check failed (non-2xx)
            if not is_health_check or not (200 <= response.status_code < 300):
                logger.info(f"REQUEST END: {request.method} {request.url.path} - Status: {response.status_code}")
                
            return response
        except Exception as e:
            logger.error(f"REQUEST FAILED: {request.method} {request.url.path} - Error: {e}", exc_info=True)
            raise

app.add_middleware(LoggingMiddleware)

# Include Routers
app.include_router(health.router, tags=["Health"])
app.include_router(fixes.router, prefix="/api/v1", tags=["Fix PRs"])

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting API server on port 8000 (Env: {settings.APP_ENV})")
    uvicorn.run(app, host="0.0.0.0", port=8000)
