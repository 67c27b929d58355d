import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from labrecord.api.routes import generate, records, maintenance, health
from labrecord.core import config
from labrecord.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(config.LOG_LEVEL)
    if config.RUN_MIGRATIONS:
        from labrecord.db.migrate import run_migrations
        run_migrations()
    else:
        from labrecord.db.init_db import init_db
        init_db()
    logger.info("Lab Record API started")
    yield


# ============================================
# ✅ FASTAPI APP INIT
# ============================================

app = FastAPI(title="Lab Record Generator", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
    expose_headers=["Content-Disposition"],
)


# ============================================
# ✅ REGISTER ALL ROUTERS
# ============================================

app.include_router(generate.router)
app.include_router(records.router)
app.include_router(maintenance.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"status": "Lab Record API running"}
