import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from app.api.deps import require_admin
from app.api.routes import api_router
from app.config import settings
from app.database import AsyncSessionLocal, Base, engine, get_db
from app.errors import register_error_handlers
from app.models.base import utcnow
from app.seed import run_seed
from app.services.balance import select_adjuster
from app.services.events import EventBus, StatusChanged
from app.services.notifications import EmailNotifier

logger = logging.getLogger(__name__)


async def _init_db():
    """Retry DB connection and create tables until the database is reachable."""
    for attempt in range(30):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database initialized successfully")
            return
        except Exception as e:
            wait = min(2**attempt, 30)
            logger.warning("DB init failed (attempt %d/30), retrying in %ds: %s", attempt + 1, wait, e)
            await asyncio.sleep(wait)
    logger.error("Database initialization failed after 30 attempts")


def build_event_bus() -> EventBus:
    bus = EventBus()
    notifier = EmailNotifier(settings, AsyncSessionLocal)
    bus.subscribe(StatusChanged, notifier.on_status_changed, name="email")
    return bus


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.admin_secret_key:
        logger.warning("ADMIN_SECRET_KEY is not set; every admin request will be rejected")
    await _init_db()
    # Adjustment path is chosen once the tables exist.
    app.state.adjuster = await select_adjuster(engine, settings.balance_adjust_mode)
    app.state.event_bus = build_event_bus()
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="Admin API for reviewing wallet top-ups, adjusting balances and reading the ledger.",
    lifespan=lifespan,
)
register_error_handlers(app)
app.include_router(api_router, prefix="/api")


@app.post("/seed", summary="Seed database", dependencies=[Depends(require_admin)])
async def seed_db(db=Depends(get_db)):
    """Seed demo users, balances and top-up requests. Idempotent."""
    msg = await run_seed(db)
    return {"status": "ok", "message": msg}


@app.get("/health")
def health():
    return {"status": "OK", "timestamp": utcnow().isoformat()}
