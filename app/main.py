"""
FastAPI Main Application

Backend service that turns short-form video posts into structured
knowledge artifacts.
"""

import os
import logging
from pathlib import Path
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from core.config import Config

# Load environment variables from .env.local
load_dotenv('.env.local')

# Setup logging with rotation
log_file = Config.setup_logging(Path(__file__).parent.parent / 'logs')

logger = logging.getLogger(__name__)
logger.info(f"Logging to file: {log_file}")

# Import routes
from app.routes import reel
from app.services.reel_service import ReelService
from core.errors import PipelineError, ReelPipelineError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for startup and shutdown"""
    # Startup
    logger.info("🚀 Starting Reel Processing Backend")
    logger.info(f"   Environment: {os.getenv('ENVIRONMENT', 'development')}")
    logger.info(f"   Playwright Headless: {Config.is_headless()}")
    logger.info(f"   Max frames per run: {Config.get_frame_max_count()}")

    env_status = Config.validate_environment()
    missing_vars = [name for name, present in env_status['required'].items() if not present]
    if missing_vars:
        logger.error(f"❌ Missing required environment variables: {', '.join(missing_vars)}")
    else:
        logger.info("✅ All required environment variables present")

    app.state.reel_service = ReelService.from_config()

    yield

    # Shutdown
    logger.info("👋 Shutting down Reel Processing Backend")
    await app.state.reel_service.shutdown()


# Create FastAPI app
app = FastAPI(
    title="Reel Processing API",
    description="Backend service for extracting knowledge from short-form video posts",
    version=Config.PROCESSING_VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(reel.router, prefix="/api", tags=["reels"])


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Reel Processing API",
        "version": Config.PROCESSING_VERSION,
        "status": "online"
    }


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    service = getattr(request.app.state, 'reel_service', None)
    env_status = Config.validate_environment()

    return {
        "status": "healthy",
        "environment": os.getenv('ENVIRONMENT', 'development'),
        "environment_complete": env_status['all_required_present'],
        "queue": service.queue.get_status() if service else None,
        "browser": service.pool.get_status() if service else None,
    }


@app.exception_handler(PipelineError)
async def pipeline_exception_handler(request: Request, exc: PipelineError):
    """A run failed at a load-bearing step"""
    logger.error(f"Pipeline failed at {exc.step}: {exc.root_cause}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "step": exc.step,
            "message": exc.message,
            "details": exc.details,
        }
    )


@app.exception_handler(ReelPipelineError)
async def reel_exception_handler(request: Request, exc: ReelPipelineError):
    """Classified errors raised before a run starts (e.g. invalid URL)"""
    logger.warning(f"Request rejected: {exc.error_code}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": str(exc),
            "path": str(request.url)
        }
    )
