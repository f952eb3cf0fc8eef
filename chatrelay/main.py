from fastapi import FastAPI

from chatrelay import __version__
from chatrelay.config import get_settings
from chatrelay.dependencies import build_relay_pipeline
from chatrelay.logging_config import get_logger, setup_logging
from chatrelay.routers import webhook

settings = get_settings()
setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="Chat Relay",
    description="Relays WhatsApp messages to an LLM and replies with text or voice notes",
    version=__version__,
)

app.include_router(webhook.router)


@app.on_event("startup")
async def create_relay_pipeline() -> None:
    app.state.relay_pipeline = build_relay_pipeline(settings)
    if not settings.phone_number:
        logger.warning("PHONE_NUMBER is not set; every inbound message will be ignored")
    logger.info(
        "Relay started",
        extra={
            "context": {
                "llm_provider": settings.llm_provider,
                "gateway": settings.whatsapp_api_url,
                "epoch": app.state.relay_pipeline.session.epoch,
            }
        },
    )


@app.get("/health")
async def health():
    return {"status": "ok"}
