from fastapi import Request

from chatrelay.config import Settings
from chatrelay.services.ai_service import get_llm_provider
from chatrelay.services.relay_service import ReplyPipeline
from chatrelay.services.session import RelaySession
from chatrelay.services.tts_service import SystemSpeechSynthesizer
from chatrelay.services.whatsapp_service import WhatsAppGateway


def build_relay_pipeline(settings: Settings) -> ReplyPipeline:
    """Wire the pipeline and a fresh session; the session epoch is taken now."""
    session = RelaySession(history_limit=settings.history_limit, seen_ids_limit=settings.seen_ids_limit)
    return ReplyPipeline(
        session=session,
        target_number=settings.phone_number,
        provider=get_llm_provider(settings),
        synthesizer=SystemSpeechSynthesizer(
            audio_dir=settings.audio_dir,
            engine=settings.tts_engine,
            max_chars=settings.tts_max_chars,
            timeout_seconds=settings.tts_timeout_seconds,
        ),
        gateway=WhatsAppGateway(settings.whatsapp_api_url, timeout=settings.http_timeout_seconds),
        tts_max_chars=settings.tts_max_chars,
        keep_audio_files=settings.keep_audio_files,
    )


def get_relay_pipeline(request: Request) -> ReplyPipeline:
    return request.app.state.relay_pipeline
