from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from chatrelay.logging_config import ContextLoggerAdapter, for_message, get_logger
from chatrelay.schemas.webhook import RelayStatus
from chatrelay.services.admission_service import InboundEvent, MessageGate, RejectReason
from chatrelay.services.ai_service import generate_reply
from chatrelay.services.alert_service import alert_error
from chatrelay.services.conversation_window import Role
from chatrelay.services.intent_service import classify
from chatrelay.services.llm import LLMProvider
from chatrelay.services.result import Result
from chatrelay.services.session import RelaySession
from chatrelay.services.tts_service import DEFAULT_MAX_CHARS, SpeechSynthesizer
from chatrelay.services.whatsapp_service import WhatsAppGateway

logger = get_logger("relay_service")


class DeliveryChannel(str, Enum):
    VOICE = "voice"
    TEXT = "text"


@dataclass(frozen=True)
class DeliveryAttempt:
    channel: DeliveryChannel
    ok: bool
    error: Optional[str] = None


@dataclass
class DeliveryOutcome:
    status: RelayStatus
    reason: Optional[RejectReason] = None
    wants_voice: bool = False
    cleaned_text: Optional[str] = None
    reply_text: Optional[str] = None
    channel: Optional[DeliveryChannel] = None
    attempts: List[DeliveryAttempt] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return self.channel is not None


class ReplyPipeline:
    """Admit an inbound event, ask the completion engine, deliver the reply.

    Delivery is an ordered list of strategies where the first success wins:
    voice then text when the user asked for audio, text alone otherwise.
    """

    def __init__(
        self,
        session: RelaySession,
        target_number: str,
        provider: LLMProvider,
        synthesizer: SpeechSynthesizer,
        gateway: WhatsAppGateway,
        tts_max_chars: int = DEFAULT_MAX_CHARS,
        keep_audio_files: bool = False,
    ):
        target_number = (target_number or "").strip()
        self.session = session
        self.gate = MessageGate(target_number, session.epoch, session.seen_ids)
        self.recipient = f"{target_number}@s.whatsapp.net"
        self.provider = provider
        self.synthesizer = synthesizer
        self.gateway = gateway
        self.tts_max_chars = tts_max_chars
        self.keep_audio_files = keep_audio_files

    def handle(self, event: InboundEvent) -> DeliveryOutcome:
        with self.session.locked():
            decision = self.gate.admit(event)
        if not decision.admitted:
            return DeliveryOutcome(status=decision.status, reason=decision.reason)

        log = for_message(logger, event.message_id)
        intent = classify(decision.text)
        log.info("User message admitted", context={"wants_voice": intent.wants_voice})

        # The prompt is window + cleaned text, so the newest turn appears twice
        with self.session.locked():
            self.session.window.append(Role.USER, intent.cleaned_text)
            history = self.session.window.snapshot()

        reply = generate_reply(self.provider, history, intent.cleaned_text)

        with self.session.locked():
            self.session.window.append(Role.ASSISTANT, reply)

        outcome = DeliveryOutcome(
            status=RelayStatus.SUCCESS,
            wants_voice=intent.wants_voice,
            cleaned_text=intent.cleaned_text,
            reply_text=reply,
        )
        self._deliver(reply, intent.wants_voice, outcome, log)
        return outcome

    def _strategies(self, wants_voice: bool) -> list[tuple[DeliveryChannel, Callable[[str], Result]]]:
        strategies = [(DeliveryChannel.TEXT, self._send_text)]
        if wants_voice:
            strategies.insert(0, (DeliveryChannel.VOICE, self._send_voice))
        return strategies

    def _deliver(self, reply: str, wants_voice: bool, outcome: DeliveryOutcome, log: ContextLoggerAdapter) -> None:
        for channel, send in self._strategies(wants_voice):
            try:
                result = send(reply)
            except Exception as e:
                log.exception(f"{channel.value} delivery raised")
                result = Result.failure(str(e), "unexpected_error")

            outcome.attempts.append(DeliveryAttempt(channel=channel, ok=result.ok, error=result.error))
            if result.ok:
                outcome.channel = channel
                log.info(f"Reply delivered via {channel.value}", context={"attempts": len(outcome.attempts)})
                return
            log.warning(f"{channel.value} delivery failed: {result.describe()}")

        errors = {attempt.channel.value: attempt.error for attempt in outcome.attempts}
        log.error("Reply could not be delivered", context=errors)
        alert_error("WhatsApp reply not delivered", {"recipient": self.recipient, **errors})

    def _send_text(self, reply: str) -> Result:
        return self.gateway.send_text(self.recipient, reply)

    def _send_voice(self, reply: str) -> Result:
        synthesized = self.synthesizer.synthesize(reply[: self.tts_max_chars])
        if not synthesized.ok:
            return synthesized

        artifact = synthesized.value
        try:
            return self.gateway.send_voice_note(self.recipient, artifact.path, artifact.mime_type)
        finally:
            if not self.keep_audio_files:
                _discard(artifact.path)


def _discard(path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove voice note {path}: {e}")
