"""Scribe FastAPI application."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import chats, documents, plans, tools
from chats.service import ChatService
from config import settings
from document.locks import DocumentLocks
from document.service import DocumentService
from models import async_session_factory, create_tables
from plans.service import PlanService
from storage.blob import create_blob_store

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Scribe API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chats.router)
app.include_router(documents.router)
app.include_router(plans.router)
app.include_router(tools.router)


@app.on_event("startup")
async def startup():
    """Create database tables and wire services into app state."""
    logger.info("Creating database tables...")
    await create_tables()
    logger.info("Database tables ready.")

    storage = create_blob_store(settings)
    locks = DocumentLocks.from_settings(settings)
    app.state.documents = DocumentService(async_session_factory, storage, settings, locks)
    app.state.chats = ChatService(async_session_factory, storage)
    app.state.plans = PlanService(async_session_factory)
    logger.info(f"Services ready (redis locks: {'on' if settings.redis_url else 'off'})")


@app.get("/api/health")
async def health():
    return {"status": "ok"}
