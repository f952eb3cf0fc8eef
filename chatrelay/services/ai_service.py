from typing import Iterable, List

from chatrelay.config import Settings
from chatrelay.logging_config import get_logger
from chatrelay.services.conversation_window import ConversationTurn
from chatrelay.services.llm import GeminiProvider, LLMProvider, OpenAIProvider

logger = get_logger("ai_service")

EMPTY_REPLY_RESPONSE = "Sorry, I could not generate a response."
AI_ERROR_RESPONSE = "Sorry, I am having trouble responding right now. Please try again."

# Primer pair sent ahead of the history. Without it the model tends to refuse
# voice requests even though the relay synthesizes the audio itself.
SYSTEM_INSTRUCTION = (
    "You are a helpful WhatsApp AI assistant. IMPORTANT: You CAN and DO send audio/voice "
    "messages when users request them. Never say \"I cannot provide audio files\" or "
    "apologize about audio - you ARE providing it successfully. Always give direct, complete "
    "answers with actual content. Never write meta-commentary. When asked to explain "
    "something, provide a thorough explanation in 5-8 sentences with clear details and "
    "examples. Use plain text only."
)
SYSTEM_ACKNOWLEDGEMENT = (
    "Absolutely! I can send audio messages. I will give direct, thorough explanations with "
    "good detail and examples, without any refusals or meta-commentary."
)

PRIMER_MESSAGES = (
    {"role": "user", "content": SYSTEM_INSTRUCTION},
    {"role": "assistant", "content": SYSTEM_ACKNOWLEDGEMENT},
)


def get_llm_provider(settings: Settings) -> LLMProvider:
    """Build the completion engine selected by LLM_PROVIDER."""
    provider = settings.llm_provider.strip().lower()
    if provider == "openai":
        return OpenAIProvider(
            api_key=settings.openai_api_key,
            default_model=settings.openai_model,
            default_timeout=settings.http_timeout_seconds,
        )
    if provider != "gemini":
        logger.warning(f"Unknown LLM_PROVIDER={settings.llm_provider!r}, using gemini")
    return GeminiProvider(
        api_key=settings.gemini_api_key,
        default_model=settings.gemini_model,
        base_url=settings.gemini_api_url,
        default_timeout=settings.http_timeout_seconds,
    )


def build_messages(history: Iterable[ConversationTurn], prompt: str) -> List[dict]:
    messages = [dict(message) for message in PRIMER_MESSAGES]
    messages.extend(turn.as_message() for turn in history)
    messages.append({"role": "user", "content": prompt or ""})
    return messages


def generate_reply(provider: LLMProvider, history: Iterable[ConversationTurn], prompt: str) -> str:
    """
    Ask the completion engine for a reply to `prompt` given prior turns.

    Never raises: an empty completion yields EMPTY_REPLY_RESPONSE and any provider
    failure yields AI_ERROR_RESPONSE, both of which are relayed like a real answer.
    """
    messages = build_messages(history, prompt)
    try:
        response = provider.generate(messages)
    except Exception as e:
        logger.error(
            "Completion failed",
            extra={"context": {"provider": provider.name, "error": str(e)}},
        )
        return AI_ERROR_RESPONSE

    content = (response.content or "").strip()
    if not content:
        logger.warning("Completion returned empty content", extra={"context": {"model": response.model}})
        return EMPTY_REPLY_RESPONSE
    return content
