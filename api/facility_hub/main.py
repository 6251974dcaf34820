# facility_hub/main.py
# Facility Hub - multi-facility inventory API
from __future__ import annotations
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from facility_hub.settings import settings
from facility_hub.config_registry import registry
from facility_hub.database import init_db, close_db, create_all, check_db_health
from facility_hub.routers.facilities import router as facilities_router
from facility_hub.routers.products import router as products_router
from facility_hub.routers.sections import router as sections_router
from facility_hub.routers.purchase_orders import router as purchase_orders_router

# ---------------------------------------------------------
# Logging setup
# ---------------------------------------------------------
from facility_hub.logging_setup import setup_logging
setup_logging(settings)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------
# Lifespan: Database init/cleanup
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    await init_db()
    await create_all()
    logger.info("Facility Hub started with %d facility configurations", len(registry.ids()))
    yield
    await close_db()
    logger.info("Facility Hub stopped")


# ---------------------------------------------------------
# FastAPI app + CORS
# ---------------------------------------------------------
app = FastAPI(
    title="Facility Hub API",
    version="1.0.0",
    description="Multi-facility inventory: configuration resolution, batches, FIFO distribution",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(facilities_router)
app.include_router(products_router)
app.include_router(sections_router)
app.include_router(purchase_orders_router)


@app.get("/health")
async def health():
    db = await check_db_health()
    return {"ok": db["status"] == "healthy", "facilities": len(registry.ids()), **db}
