import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from slotbook.api.bookings import router as bookings_router
from slotbook.api.jobs import router as jobs_router
from slotbook.api.ledger import router as ledger_router
from slotbook.core.config import settings
from slotbook.wiring.dependencies import close_adapters

class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("booking_id", "account_id", "resource_id", "period", "error", "reason"):
            value = getattr(record, key, None)
            if value not in (None, ""):
                extras.append(f"{key}={value}")
        base = super().format(record)
        if extras:
            return f"{base} | " + " ".join(extras)
        return base


handler = logging.StreamHandler()
handler.setFormatter(ContextFormatter("%(levelname)s:%(name)s:%(message)s"))

root = logging.getLogger()
root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
root.handlers.clear()
root.addHandler(handler)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("Application shutting down...")
    close_adapters()


app = FastAPI(title="Slotbook", version="1.0.0", lifespan=lifespan)

app.include_router(bookings_router, tags=["bookings"])
app.include_router(ledger_router, tags=["ledger"])
app.include_router(jobs_router, tags=["jobs"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
