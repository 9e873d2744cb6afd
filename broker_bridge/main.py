from fastapi import FastAPI

from broker_bridge import __version__
from broker_bridge.config import settings
from broker_bridge.database import close_db, init_db
from broker_bridge.logging_config import get_logger, setup_logging
from broker_bridge.routers import webhook

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="LINE Broker Bridge",
    description="Relays LINE chat events to a conversational broker and replies with its answers",
    version=__version__,
)

app.include_router(webhook.router)


@app.on_event("startup")
async def startup() -> None:
    await init_db()
    logger.info("LINE broker bridge started", extra={"context": {"port": settings.port}})


@app.on_event("shutdown")
async def shutdown() -> None:
    await close_db()


@app.get("/")
async def read_root():
    return {"message": "LINE broker bridge is ready"}


@app.get("/health")
async def health():
    return {"status": "ok"}
