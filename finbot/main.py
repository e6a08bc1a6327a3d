"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from finbot.assistant import routes as assistant_routes
from finbot.config import settings
from finbot.database import init_models
from finbot.ledger import routes as ledger_routes

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DATABASE_URL.startswith("sqlite"):
        # Postgres deployments are migrated with Alembic instead
        await init_models()
    logger.info(f"Primary model {settings.MODEL_NORMAL} via {settings.MODEL_NORMAL_PROVIDER}")
    if settings.backup_configured:
        logger.info(f"Backup model {settings.MODEL_NORMAL_BACKUP} via {settings.MODEL_NORMAL_BACKUP_PROVIDER}")
    yield


# Create FastAPI app
app = FastAPI(
    title="Finbot API",
    description="Conversational assistant with a personal finance ledger",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(assistant_routes.router, prefix=settings.API_V1_PREFIX, tags=["Assistant"])
app.include_router(ledger_routes.router, prefix=settings.API_V1_PREFIX, tags=["Ledger"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "finbot.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
