from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RelayStatus(str, Enum):
    IGNORED = "ignored"
    IGNORED_SELF = "ignored_self"
    IGNORED_OLD = "ignored_old"
    IGNORED_NO_TEXT = "ignored_no_text"
    IGNORED_DUPLICATE = "ignored_duplicate"
    SUCCESS = "success"
    ERROR = "error"


class InboundMessageBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: Optional[Any] = None
    id: Optional[Any] = None
    timestamp: Optional[Any] = None


class InboundPayload(BaseModel):
    """Webhook body posted by the WhatsApp gateway.

    Fields are loosely typed on purpose: gateways differ in how they encode ids and
    timestamps, and coercion happens when the payload becomes an InboundEvent.
    """

    model_config = ConfigDict(extra="allow")

    sender: Optional[Any] = Field(default=None, alias="from")
    fromMe: Optional[Any] = None
    id: Optional[Any] = None
    timestamp: Optional[Any] = None
    message: Optional[Any] = None


class WebhookResponse(BaseModel):
    status: RelayStatus
    error: Optional[str] = None
