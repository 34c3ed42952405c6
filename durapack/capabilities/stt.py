"""Speech-to-text capability."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Protocol

from durapack.config import require_config
from durapack.durability import ModelCodec, durable_call
from durapack.errors import ProviderError
from durapack.log import init_logging

NAMESPACE = "durakit.stt"


@dataclass(slots=True)
class TranscriptionOptions:
    language: str | None = None
    model: str | None = None
    prompt: str | None = None
    speaker_diarization: bool = False
    vocabulary: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "language": self.language,
            "model": self.model,
            "prompt": self.prompt,
            "speaker_diarization": self.speaker_diarization,
            "vocabulary": list(self.vocabulary),
        }


@dataclass(slots=True)
class TranscriptionRequest:
    request_id: str
    audio: bytes
    audio_format: str = "wav"
    options: TranscriptionOptions = field(default_factory=TranscriptionOptions)

    def to_dict(self) -> dict[str, Any]:
        """Persisted form; audio bytes are base64 encoded."""
        return {
            "request_id": self.request_id,
            "audio_base64": base64.b64encode(self.audio).decode("ascii"),
            "audio_format": self.audio_format,
            "options": self.options.to_dict(),
        }


@dataclass(slots=True)
class TranscriptionSegment:
    start_seconds: float
    end_seconds: float
    text: str
    speaker: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_seconds": self.start_seconds,
            "end_seconds": self.end_seconds,
            "text": self.text,
            "speaker": self.speaker,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "TranscriptionSegment":
        return cls(
            start_seconds=float(raw["start_seconds"]),
            end_seconds=float(raw["end_seconds"]),
            text=raw["text"],
            speaker=raw.get("speaker"),
        )


@dataclass(slots=True)
class TranscriptionResult:
    request_id: str
    transcript: str
    language: str | None = None
    model: str | None = None
    duration_seconds: float | None = None
    audio_size_bytes: int | None = None
    segments: list[TranscriptionSegment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "transcript": self.transcript,
            "language": self.language,
            "model": self.model,
            "duration_seconds": self.duration_seconds,
            "audio_size_bytes": self.audio_size_bytes,
            "segments": [segment.to_dict() for segment in self.segments],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "TranscriptionResult":
        return cls(
            request_id=raw["request_id"],
            transcript=raw.get("transcript", ""),
            language=raw.get("language"),
            model=raw.get("model"),
            duration_seconds=raw.get("duration_seconds"),
            audio_size_bytes=raw.get("audio_size_bytes"),
            segments=[TranscriptionSegment.from_dict(item) for item in raw.get("segments", [])],
        )


@dataclass(slots=True)
class FailedTranscription:
    request_id: str
    error: ProviderError

    def to_dict(self) -> dict[str, Any]:
        return {"request_id": self.request_id, "error": self.error.to_dict()}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "FailedTranscription":
        return cls(request_id=raw["request_id"], error=ProviderError.from_dict(raw["error"]))


@dataclass(slots=True)
class MultiTranscriptionResult:
    successes: list[TranscriptionResult] = field(default_factory=list)
    failures: list[FailedTranscription] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "successes": [item.to_dict() for item in self.successes],
            "failures": [item.to_dict() for item in self.failures],
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "MultiTranscriptionResult":
        return cls(
            successes=[TranscriptionResult.from_dict(item) for item in raw.get("successes", [])],
            failures=[FailedTranscription.from_dict(item) for item in raw.get("failures", [])],
        )


@dataclass(frozen=True, slots=True)
class LanguageInfo:
    code: str
    name: str
    native_name: str | None = None


class SttProvider(Protocol):
    name: str
    required_config: tuple[str, ...]

    def transcribe(self, request: TranscriptionRequest) -> TranscriptionResult:
        ...

    def list_languages(self) -> list[LanguageInfo]:
        ...


def transcribe_each(provider: SttProvider, requests: list[TranscriptionRequest]) -> MultiTranscriptionResult:
    """Transcribe requests one by one, collecting per-request failures."""
    result = MultiTranscriptionResult()
    for request in requests:
        try:
            result.successes.append(provider.transcribe(request))
        except ProviderError as error:
            result.failures.append(FailedTranscription(request_id=request.request_id, error=error))
    return result


class DurableStt:
    def __init__(self, provider: SttProvider) -> None:
        self.provider = provider

    def _check_config(self) -> None:
        require_config(self.provider.required_config)

    def transcribe(self, request: TranscriptionRequest) -> TranscriptionResult:
        return durable_call(
            NAMESPACE,
            "transcribe",
            "write_remote",
            {"request": request.to_dict()},
            lambda: self.provider.transcribe(request),
            codec=ModelCodec(TranscriptionResult),
            live_preflight=self._check_config,
        )

    def transcribe_many(self, requests: list[TranscriptionRequest]) -> MultiTranscriptionResult:
        def run() -> MultiTranscriptionResult:
            batch = getattr(self.provider, "transcribe_many", None)
            if batch is not None:
                return batch(list(requests))
            return transcribe_each(self.provider, list(requests))

        return durable_call(
            NAMESPACE,
            "transcribe_many",
            "write_remote",
            {"requests": [request.to_dict() for request in requests]},
            run,
            codec=ModelCodec(MultiTranscriptionResult),
            live_preflight=self._check_config,
        )

    def list_languages(self) -> list[LanguageInfo]:
        """Static provider data; not recorded."""
        init_logging()
        return self.provider.list_languages()
