"""Narration synthesis engines."""

import hashlib
import json
import logging
import platform
import shutil
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from moviepy import AudioFileClip

from ..errors import NarrationError
from ..models.project import VoiceConfig
from ..render.media import get_audio_duration

logger = logging.getLogger(__name__)

# Sample rate of synthesized narration.
NARRATION_SAMPLE_RATE = 22050
TEXT_PREVIEW_CHARS = 80


@dataclass
class SynthesisResult:
    """Result of one synthesis call."""

    audio_path: Path
    duration_seconds: float
    cached: bool = False


class NarrationEngine(ABC):
    """Text-to-speech backend.

    Engines are synchronous; the render pipeline runs them in a worker
    thread.
    """

    name = "engine"

    @abstractmethod
    def synthesize(
        self,
        text: str,
        voice: Optional[str],
        speed: float,
        output_path: Path,
    ) -> SynthesisResult:
        """Synthesize ``text`` into a WAV file at ``output_path``.

        Raises:
            NarrationError: If synthesis fails.
        """


class CommandNarrationEngine(NarrationEngine):
    """Engine backed by the platform's speech command.

    macOS uses the built-in ``say``; elsewhere ``espeak-ng`` is used.
    """

    name = "native"

    # Words per minute at speed 1.0.
    SAY_RATE = 200
    ESPEAK_RATE = 175

    def __init__(self, command: Optional[str] = None) -> None:
        self.command = command or ("say" if platform.system() == "Darwin" else "espeak-ng")
        if shutil.which(self.command) is None:
            raise NarrationError(f"Speech command '{self.command}' not found on this system")

    def synthesize(
        self,
        text: str,
        voice: Optional[str],
        speed: float,
        output_path: Path,
    ) -> SynthesisResult:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if self.command == "say":
            self._synthesize_say(text, voice, speed, output_path)
        else:
            self._synthesize_espeak(text, voice, speed, output_path)

        try:
            duration = get_audio_duration(output_path)
        except OSError as e:
            raise NarrationError(f"Could not read synthesized audio {output_path}: {e}") from e

        return SynthesisResult(audio_path=output_path, duration_seconds=duration)

    def _run(self, cmd: list) -> None:
        logger.debug(f"narration: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        except OSError as e:
            raise NarrationError(f"Failed to run '{cmd[0]}': {e}") from e
        if result.returncode != 0:
            raise NarrationError(f"'{cmd[0]}' failed: {result.stderr.strip()}")

    def _synthesize_say(self, text: str, voice: Optional[str], speed: float, output_path: Path) -> None:
        # say writes AIFF; convert to WAV
        aiff_path = output_path.with_suffix(".aiff")
        cmd = ["say"]
        if voice:
            cmd += ["-v", voice]
        cmd += ["-r", str(int(speed * self.SAY_RATE)), "-o", str(aiff_path), "--", text]
        self._run(cmd)

        clip = AudioFileClip(str(aiff_path))
        try:
            clip.write_audiofile(
                str(output_path),
                fps=NARRATION_SAMPLE_RATE,
                codec="pcm_s16le",
                logger=None,
            )
        except OSError as e:
            raise NarrationError(f"AIFF to WAV conversion failed: {e}") from e
        finally:
            clip.close()
            aiff_path.unlink(missing_ok=True)

    def _synthesize_espeak(self, text: str, voice: Optional[str], speed: float, output_path: Path) -> None:
        cmd = [self.command]
        if voice:
            cmd += ["-v", voice]
        cmd += ["-s", str(int(speed * self.ESPEAK_RATE)), "-w", str(output_path), "--", text]
        self._run(cmd)


def cache_key(engine_name: str, voice: Optional[str], speed: float, text: str) -> str:
    """SHA-256 over every input that changes the synthesized audio."""
    payload = f"{engine_name}\0{voice or ''}\0{speed:g}\0{text}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class CachedNarrationEngine(NarrationEngine):
    """Wraps an engine with a content-addressed file cache.

    Cached audio lives at ``<cache_dir>/<hash>.wav`` with a ``<hash>.json``
    sidecar holding its duration. Both files must exist and the sidecar must
    be readable for a hit; anything else re-synthesizes.
    """

    def __init__(self, engine: NarrationEngine, cache_dir: Path) -> None:
        self.engine = engine
        self.cache_dir = cache_dir
        self.name = engine.name

    def paths(self, key: str) -> tuple:
        return self.cache_dir / f"{key}.wav", self.cache_dir / f"{key}.json"

    def synthesize(
        self,
        text: str,
        voice: Optional[str],
        speed: float,
        output_path: Path,
    ) -> SynthesisResult:
        key = cache_key(self.engine.name, voice, speed, text)
        cached_wav, sidecar = self.paths(key)

        if cached_wav.exists() and sidecar.exists():
            duration = read_sidecar(sidecar)
            if duration is not None:
                logger.debug(f"Narration cache hit: {key[:12]}")
                output_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(cached_wav, output_path)
                return SynthesisResult(audio_path=output_path, duration_seconds=duration, cached=True)

        result = self.engine.synthesize(text, voice, speed, output_path)

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(result.audio_path, cached_wav)
        write_sidecar(sidecar, result.duration_seconds, self.engine.name, voice, text)
        return result


def read_sidecar(path: Path) -> Optional[float]:
    """Read the cached duration; ``None`` when the sidecar is unusable."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return float(data["duration_secs"])
    except (OSError, ValueError, KeyError, TypeError):
        return None


def write_sidecar(path: Path, duration: float, engine: str, voice: Optional[str], text: str) -> None:
    data = {
        "duration_secs": duration,
        "engine": engine,
        "voice": voice or "",
        "text_preview": text[:TEXT_PREVIEW_CHARS],
    }
    try:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    except OSError as e:
        logger.warning(f"Failed to write narration sidecar {path}: {e}")


def create_engine(voice: VoiceConfig, cache_dir: Optional[Path] = None) -> NarrationEngine:
    """Create the engine named by ``voice.engine``, cached when ``cache_dir`` is given.

    Raises:
        NarrationError: If the engine is unknown or unavailable.
    """
    if voice.engine == "native":
        engine: NarrationEngine = CommandNarrationEngine()
    else:
        raise NarrationError(f"Unknown narration engine: '{voice.engine}'. Supported: native")

    if cache_dir is not None:
        return CachedNarrationEngine(engine, cache_dir)
    return engine
