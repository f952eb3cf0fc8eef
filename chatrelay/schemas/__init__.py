from chatrelay.schemas.webhook import InboundMessageBody, InboundPayload, RelayStatus, WebhookResponse

__all__ = ["InboundMessageBody", "InboundPayload", "RelayStatus", "WebhookResponse"]
