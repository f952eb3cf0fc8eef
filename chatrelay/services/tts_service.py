"""
Text-to-speech for voice-note replies.

The relay only needs a playable WAV file on disk; how it is produced is up to the
SpeechSynthesizer implementation. SystemSpeechSynthesizer shells out to whatever
the host OS ships:

- Windows: System.Speech via a temporary PowerShell script
- macOS:   `say`
- Linux:   `espeak-ng` (or `espeak`)

Every failure mode (missing binary, non-zero exit, timeout, empty output) comes back
as Result.failure so the caller can fall back to a text reply.
"""

import shutil
import subprocess
import sys
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from chatrelay.logging_config import get_logger
from chatrelay.services.result import TTS_ERROR, Result

logger = get_logger("tts_service")

DEFAULT_MAX_CHARS = 1500
DEFAULT_TIMEOUT_SECONDS = 60.0

ENGINE_POWERSHELL = "powershell"
ENGINE_SAY = "say"
ENGINE_ESPEAK = "espeak"
ENGINES = {ENGINE_POWERSHELL, ENGINE_SAY, ENGINE_ESPEAK}

POWERSHELL_SCRIPT = """Add-Type -AssemblyName System.Speech
$synth = New-Object System.Speech.Synthesis.SpeechSynthesizer
$synth.SetOutputToWaveFile("{output_path}")
$synth.Speak("{text}")
$synth.Dispose()
"""


@dataclass(frozen=True)
class SpeechArtifact:
    path: Path
    file_name: str
    size_bytes: int
    mime_type: str = "audio/wav"


class SpeechSynthesizer(ABC):
    @abstractmethod
    def synthesize(self, text: str) -> Result[SpeechArtifact]:
        """Render `text` to an audio file."""
        raise NotImplementedError


def detect_engine(platform: Optional[str] = None) -> str:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return ENGINE_POWERSHELL
    if platform == "darwin":
        return ENGINE_SAY
    return ENGINE_ESPEAK


def _escape_powershell(value: str) -> str:
    """Escape for a double-quoted PowerShell string literal."""
    return value.replace("`", "``").replace("$", "`$").replace('"', '""')


class SystemSpeechSynthesizer(SpeechSynthesizer):
    def __init__(
        self,
        audio_dir: Path,
        engine: str = "auto",
        max_chars: int = DEFAULT_MAX_CHARS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.audio_dir = Path(audio_dir)
        self.engine = detect_engine() if engine == "auto" else engine
        if self.engine not in ENGINES:
            raise ValueError(f"Unsupported TTS engine: {engine}")
        self.max_chars = max_chars
        self.timeout_seconds = timeout_seconds

    def _new_output_path(self) -> Path:
        stamp = int(time.time() * 1000)
        return self.audio_dir / f"voice_{stamp}_{uuid.uuid4().hex[:8]}.wav"

    def _espeak_binary(self) -> Optional[str]:
        return shutil.which("espeak-ng") or shutil.which("espeak")

    def _run(self, command: list[str], stdin_text: Optional[str] = None) -> subprocess.CompletedProcess:
        return subprocess.run(
            command,
            input=stdin_text,
            capture_output=True,
            text=True,
            timeout=self.timeout_seconds,
            check=False,
        )

    def _render(self, text: str, output_path: Path) -> subprocess.CompletedProcess:
        if self.engine == ENGINE_POWERSHELL:
            script_path = output_path.with_name(f"tts_{output_path.stem}.ps1")
            script_path.write_text(
                POWERSHELL_SCRIPT.format(output_path=str(output_path), text=_escape_powershell(text)),
                encoding="utf-8",
            )
            try:
                return self._run(["powershell", "-ExecutionPolicy", "Bypass", "-File", str(script_path)])
            finally:
                script_path.unlink(missing_ok=True)

        if self.engine == ENGINE_SAY:
            return self._run(["say", "-o", str(output_path), "--data-format=LEI16@22050", "-f", "-"], text)

        binary = self._espeak_binary()
        if not binary:
            raise FileNotFoundError("espeak-ng / espeak not found on PATH")
        return self._run([binary, "-w", str(output_path), "--stdin"], text)

    def synthesize(self, text: str) -> Result[SpeechArtifact]:
        short_text = (text or "")[: self.max_chars]
        if not short_text.strip():
            return Result.failure("Nothing to synthesize", TTS_ERROR)

        output_path = self._new_output_path()

        try:
            self.audio_dir.mkdir(parents=True, exist_ok=True)
            completed = self._render(short_text, output_path)
        except subprocess.TimeoutExpired:
            logger.error(f"TTS timed out after {self.timeout_seconds}s", extra={"context": {"engine": self.engine}})
            return Result.failure("Speech synthesis timed out", TTS_ERROR)
        except OSError as e:
            logger.error(f"TTS error: {e}", extra={"context": {"engine": self.engine}})
            return Result.failure(str(e), TTS_ERROR)

        if completed.returncode != 0:
            stderr = (completed.stderr or "").strip()[:300]
            logger.error(
                f"TTS exited with code {completed.returncode}",
                extra={"context": {"engine": self.engine, "stderr": stderr}},
            )
            return Result.failure(f"Synthesizer exited with {completed.returncode}: {stderr}", TTS_ERROR)

        if not output_path.exists() or output_path.stat().st_size == 0:
            logger.error("TTS error: file not created or empty", extra={"context": {"path": str(output_path)}})
            output_path.unlink(missing_ok=True)
            return Result.failure("Synthesizer produced no audio", TTS_ERROR)

        size = output_path.stat().st_size
        logger.info(f"TTS file created: {output_path.name} ({size} bytes)")
        return Result.success(SpeechArtifact(path=output_path, file_name=output_path.name, size_bytes=size))
