import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from booking_bot.api.receipts import router as receipts_router
from booking_bot.api.webhooks import router as webhooks_router
from booking_bot.core.config import settings
from booking_bot.wiring.dependencies import get_sweep_sessions_use_case


class ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extras = []
        for key in ("message_id", "address", "stage", "command", "slot_id", "reason", "error"):
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


async def _sweep_loop(interval_seconds: float) -> None:
    sweeper = get_sweep_sessions_use_case()
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(sweeper.execute)
        except Exception as e:
            logger.exception("Session sweep failed", extra={"error": str(e)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    task = asyncio.create_task(_sweep_loop(settings.SESSION_SWEEP_INTERVAL_SECONDS))
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


app = FastAPI(title="WhatsApp Booking Bot", version="1.0.0", lifespan=lifespan)

app.include_router(webhooks_router, tags=["webhooks"])
app.include_router(receipts_router, tags=["receipts"])


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
