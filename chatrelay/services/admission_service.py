"""Admission rules for inbound webhook events."""

import math
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from chatrelay.logging_config import get_logger
from chatrelay.schemas.webhook import InboundMessageBody, InboundPayload, RelayStatus

logger = get_logger("admission")

DEFAULT_SEEN_IDS_LIMIT = 100


class RejectReason(str, Enum):
    NOT_TARGET_SENDER = "not_target_sender"
    SELF_ECHO = "self_echo"
    STALE = "stale"
    NO_TEXT = "no_text"
    DUPLICATE = "duplicate"


REJECT_STATUS = {
    RejectReason.NOT_TARGET_SENDER: RelayStatus.IGNORED,
    RejectReason.SELF_ECHO: RelayStatus.IGNORED_SELF,
    RejectReason.STALE: RelayStatus.IGNORED_OLD,
    RejectReason.NO_TEXT: RelayStatus.IGNORED_NO_TEXT,
    RejectReason.DUPLICATE: RelayStatus.IGNORED_DUPLICATE,
}


@dataclass(frozen=True)
class InboundEvent:
    sender: Optional[str]
    from_me: bool = False
    timestamp: Optional[float] = None
    message_id: Optional[str] = None
    text: Optional[str] = None


@dataclass(frozen=True)
class AdmissionDecision:
    admitted: bool
    text: Optional[str] = None
    reason: Optional[RejectReason] = None

    @staticmethod
    def proceed(text: str) -> "AdmissionDecision":
        return AdmissionDecision(admitted=True, text=text)

    @staticmethod
    def reject(reason: RejectReason) -> "AdmissionDecision":
        return AdmissionDecision(admitted=False, reason=reason)

    @property
    def status(self) -> Optional[RelayStatus]:
        return REJECT_STATUS.get(self.reason) if self.reason else None


def _coerce_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, tuple, bool)):
        return None
    text = str(value).strip()
    return text or None


def _coerce_timestamp(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        timestamp = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(timestamp) or timestamp <= 0:
        return None
    return timestamp


def event_from_payload(payload: InboundPayload) -> InboundEvent:
    """Flatten a gateway payload; top-level id/timestamp win over the nested message's."""
    message = None
    if isinstance(payload.message, dict):
        message = InboundMessageBody.model_validate(payload.message)

    text = message.text if message and isinstance(message.text, str) else None
    message_id = _coerce_str(payload.id) or (_coerce_str(message.id) if message else None)
    timestamp = _coerce_timestamp(payload.timestamp)
    if timestamp is None and message:
        timestamp = _coerce_timestamp(message.timestamp)

    return InboundEvent(
        sender=_coerce_str(payload.sender),
        from_me=payload.fromMe is True,
        timestamp=timestamp,
        message_id=message_id,
        text=text,
    )


class SeenMessageIds:
    """Insertion-ordered id set; the oldest insert is evicted past `limit`."""

    def __init__(self, limit: int = DEFAULT_SEEN_IDS_LIMIT):
        if limit < 1:
            raise ValueError("seen ids limit must be positive")
        self.limit = limit
        self._ids: OrderedDict[str, None] = OrderedDict()

    def add(self, message_id: str) -> bool:
        """Record an id. Returns False if it was already present."""
        if message_id in self._ids:
            return False
        self._ids[message_id] = None
        while len(self._ids) > self.limit:
            self._ids.popitem(last=False)
        return True

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)


class MessageGate:
    """Decide whether an inbound event is relayed.

    Rules run in order and the first match wins: sender, self echo, staleness,
    missing text, duplicate id. Only the last one mutates state, so admitting the
    same id twice yields a duplicate rejection the second time.
    """

    def __init__(self, target_number: str, epoch: float, seen_ids: SeenMessageIds):
        self.target_number = (target_number or "").strip()
        self.epoch = epoch
        self.seen_ids = seen_ids

    def _is_target(self, sender: Optional[str]) -> bool:
        if not sender or not self.target_number:
            return False
        return self.target_number in sender

    def admit(self, event: InboundEvent) -> AdmissionDecision:
        if not self._is_target(event.sender):
            if not self.target_number:
                logger.warning("Target recipient not configured, dropping event")
            return AdmissionDecision.reject(RejectReason.NOT_TARGET_SENDER)

        if event.from_me:
            return AdmissionDecision.reject(RejectReason.SELF_ECHO)

        if event.timestamp is not None and event.timestamp < self.epoch:
            logger.info(
                "Dropping message sent before startup",
                extra={"context": {"message_id": event.message_id, "timestamp": event.timestamp}},
            )
            return AdmissionDecision.reject(RejectReason.STALE)

        if not event.text or not event.text.strip():
            return AdmissionDecision.reject(RejectReason.NO_TEXT)

        if event.message_id and not self.seen_ids.add(event.message_id):
            logger.info("Duplicate message_id", extra={"context": {"message_id": event.message_id}})
            return AdmissionDecision.reject(RejectReason.DUPLICATE)

        return AdmissionDecision.proceed(event.text)
