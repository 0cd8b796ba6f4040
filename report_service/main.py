"""Main FastAPI application for Report Service"""
import asyncio
import logging
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .models import HealthCheckResponse
from .routes import router as report_router
from .services.database_client import get_database_client

# Set up logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.SERVICE_NAME,
    description="Natural Language to SQL Report Generation Service",
    version="1.0.0"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(report_router)


@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """
    Health check endpoint.

    Returns service health and dependency status.
    """
    dependencies = {}

    # Check database
    try:
        healthy = await asyncio.to_thread(get_database_client().test_connection)
        dependencies["database"] = "healthy" if healthy else "unhealthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        dependencies["database"] = "unhealthy"

    dependencies["llm"] = settings.LLM_PROVIDER

    status = "healthy" if dependencies["database"] == "healthy" else "degraded"

    return HealthCheckResponse(
        status=status,
        service=settings.SERVICE_NAME,
        version="1.0.0",
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies=dependencies
    )


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": settings.SERVICE_NAME,
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "generate_report_stream": "/api/ai/generate-report-stream",
            "generate_report": "/api/ai/generate-report"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "report_service.main:app",
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
        reload=True
    )
