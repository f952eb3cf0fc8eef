from pathlib import Path
from unittest.mock import Mock

import pytest

from chatrelay.config import get_settings
from chatrelay.services.admission_service import InboundEvent
from chatrelay.services.llm import LLMProvider, LLMResponse
from chatrelay.services.relay_service import ReplyPipeline
from chatrelay.services.result import Result
from chatrelay.services.session import RelaySession
from chatrelay.services.tts_service import SpeechArtifact, SpeechSynthesizer
from chatrelay.services.whatsapp_service import WhatsAppGateway

TARGET = "15551234567"
TARGET_JID = f"{TARGET}@s.whatsapp.net"
EPOCH = 1_700_000_000.0


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep alerts off and settings fresh for every test."""
    monkeypatch.delenv("ALERT_BOT_TOKEN", raising=False)
    monkeypatch.delenv("ALERT_CHAT_ID", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def mock_env(monkeypatch):
    monkeypatch.setenv("PHONE_NUMBER", TARGET)
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("WHATSAPP_API_URL", "http://gateway.test")


@pytest.fixture
def make_event():
    def _make(**overrides) -> InboundEvent:
        fields = {
            "sender": TARGET_JID,
            "from_me": False,
            "timestamp": EPOCH + 10,
            "message_id": "m1",
            "text": "explain osmosis",
        }
        fields.update(overrides)
        return InboundEvent(**fields)

    return _make


@pytest.fixture
def provider():
    mock = Mock(spec=LLMProvider)
    mock.name = "fake"
    mock.generate.return_value = LLMResponse(content="Osmosis is the movement of water.", model="fake-model")
    return mock


@pytest.fixture
def synthesizer(tmp_path):
    audio_file = tmp_path / "voice_1.wav"
    audio_file.write_bytes(b"RIFF....WAVE")
    mock = Mock(spec=SpeechSynthesizer)
    mock.synthesize.return_value = Result.success(
        SpeechArtifact(path=audio_file, file_name=audio_file.name, size_bytes=audio_file.stat().st_size)
    )
    return mock


@pytest.fixture
def gateway():
    mock = Mock(spec=WhatsAppGateway)
    mock.send_text.return_value = Result.success({"status": "sent"})
    mock.send_voice_note.return_value = Result.success({"status": "sent"})
    return mock


@pytest.fixture
def session():
    return RelaySession(epoch=EPOCH)


@pytest.fixture
def pipeline(session, provider, synthesizer, gateway):
    return ReplyPipeline(
        session=session,
        target_number=TARGET,
        provider=provider,
        synthesizer=synthesizer,
        gateway=gateway,
    )


@pytest.fixture
def audio_dir(tmp_path) -> Path:
    return tmp_path / "audio"
