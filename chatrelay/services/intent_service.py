import re
from dataclasses import dataclass

from chatrelay.logging_config import get_logger

logger = get_logger("intent_service")

# Matched as plain lowercase substrings; the padded entries only hit mid-sentence words.
VOICE_KEYWORDS = (
    "voice note",
    "voice message",
    "send voice",
    "send audio",
    "as voice",
    "in voice",
    " voice ",
    "speak it",
    "say it",
    " audio ",
    "voice clip",
)

# Letters outside ASCII never count as word characters or fold case,
# but Unicode spaces such as NBSP still separate the trigger words.
SPACE = r"[\s\u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff]"
PATTERN_FLAGS = re.IGNORECASE | re.ASCII

SEND_VOICE_PATTERN = re.compile(rf"send{SPACE}+(me{SPACE}+)?(a{SPACE}+)?(voice|audio)", PATTERN_FLAGS)

VOICE_PHRASE_PATTERNS = (
    SEND_VOICE_PATTERN,
    re.compile(rf"(as{SPACE}+)?(voice{SPACE}+note|voice{SPACE}+message)", PATTERN_FLAGS),
    re.compile(rf"\b(speak|say{SPACE}+it)\b", PATTERN_FLAGS),
    re.compile(r"\bvoice\b", PATTERN_FLAGS),
)

WHITESPACE_PATTERN = re.compile(rf"{SPACE}+", re.ASCII)

MIN_CLEANED_LENGTH = 5


@dataclass(frozen=True)
class VoiceIntent:
    wants_voice: bool
    cleaned_text: str


def wants_voice_response(message: str) -> bool:
    lowered = message.lower()
    return any(keyword in lowered for keyword in VOICE_KEYWORDS)


def strip_voice_request(message: str) -> str:
    """Remove voice-request phrasing, keeping the actual question.

    Falls back to removing only the "send (me) (a) voice" phrase when the full
    strip leaves fewer than MIN_CLEANED_LENGTH characters.
    """
    cleaned = message
    for pattern in VOICE_PHRASE_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = WHITESPACE_PATTERN.sub(" ", cleaned).strip()

    if len(cleaned) < MIN_CLEANED_LENGTH:
        cleaned = SEND_VOICE_PATTERN.sub("", message).strip()
    return cleaned


def classify(message: str) -> VoiceIntent:
    if not wants_voice_response(message):
        return VoiceIntent(wants_voice=False, cleaned_text=message)

    cleaned = strip_voice_request(message)
    logger.debug("Voice reply requested", extra={"context": {"cleaned_text": cleaned}})
    return VoiceIntent(wants_voice=True, cleaned_text=cleaned)
