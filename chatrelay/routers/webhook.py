from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.requests import ClientDisconnect

from chatrelay.dependencies import get_relay_pipeline
from chatrelay.logging_config import get_logger
from chatrelay.schemas.webhook import InboundPayload, RelayStatus, WebhookResponse
from chatrelay.services.admission_service import event_from_payload
from chatrelay.services.relay_service import ReplyPipeline

logger = get_logger("webhook")

router = APIRouter(prefix="/api")

IDENTITY_PAYLOAD = {"message": "WhatsApp Relay API"}


async def _parse_payload(request: Request) -> InboundPayload | None:
    """Read the webhook body; None means it cannot carry a message."""
    try:
        payload = await request.json()
    except ClientDisconnect:
        logger.info("Webhook client disconnected during read")
        return None
    except ValueError as exc:
        raw = await request.body()
        logger.warning(
            "Webhook payload is not valid JSON",
            extra={"context": {"error": str(exc), "body_preview": raw[:200].decode("utf-8", "ignore")}},
        )
        return None

    if not isinstance(payload, dict):
        logger.warning("Webhook payload is not an object", extra={"context": {"type": type(payload).__name__}})
        return None

    try:
        return InboundPayload.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Webhook payload validation failed", extra={"context": {"error": str(exc)}})
        return None


@router.post("/message", response_model=WebhookResponse, response_model_exclude_none=True)
async def handle_message(request: Request, pipeline: ReplyPipeline = Depends(get_relay_pipeline)):
    """Relay an inbound WhatsApp message. Always answers 200 so the gateway never retries."""
    try:
        payload = await _parse_payload(request)
        if payload is None:
            return WebhookResponse(status=RelayStatus.IGNORED_NO_TEXT)

        event = event_from_payload(payload)
        outcome = await run_in_threadpool(pipeline.handle, event)
        return WebhookResponse(status=outcome.status)
    except Exception as exc:
        logger.exception("Webhook handling failed")
        return WebhookResponse(status=RelayStatus.ERROR, error=str(exc))


@router.get("/message")
async def identify():
    return IDENTITY_PAYLOAD
