"""
FastAPI Main Application

Entry point for the Interact Agent API.
"""
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from api.routes import chain, health, verification
from interact_agent.config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="Interact Agent API - action chaining and tiered verification",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix=settings.api_prefix, tags=["Health"])
app.include_router(chain.router, prefix=settings.api_prefix, tags=["Chain"])
app.include_router(verification.router, prefix=settings.api_prefix, tags=["Verification"])


@app.on_event("startup")
async def startup_event():
    """Startup event handler"""
    logger.info("Interact Agent API starting up")
    logger.info(f"API Version: {settings.api_version}")
    logger.info(f"Max Chain Size: {settings.max_chain_size}")
    logger.info(f"LLM Provider: {settings.llm_provider}")


@app.on_event("shutdown")
async def shutdown_event():
    """Shutdown event handler"""
    logger.info("Interact Agent API shutting down")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Interact Agent API",
        "version": settings.api_version,
        "status": "running",
    }
