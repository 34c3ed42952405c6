"""Video generation capability: asynchronous jobs addressed by id."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from durapack.config import require_config
from durapack.durability import ModelCodec, durable_call

NAMESPACE = "durakit.video"

JobStatus = Literal["pending", "running", "succeeded", "failed", "cancelled"]


@dataclass(slots=True)
class MediaInput:
    """Text prompt, optionally with a reference image."""

    prompt: str
    image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"prompt": self.prompt, "image_url": self.image_url}


@dataclass(slots=True)
class GenerationConfig:
    model: str | None = None
    duration_seconds: float | None = None
    aspect_ratio: str | None = None
    resolution: str | None = None
    seed: int | None = None
    negative_prompt: str | None = None
    provider_options: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "duration_seconds": self.duration_seconds,
            "aspect_ratio": self.aspect_ratio,
            "resolution": self.resolution,
            "seed": self.seed,
            "negative_prompt": self.negative_prompt,
            "provider_options": dict(self.provider_options),
        }


@dataclass(slots=True)
class Video:
    uri: str | None = None
    mime_type: str = "video/mp4"
    duration_seconds: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"uri": self.uri, "mime_type": self.mime_type, "duration_seconds": self.duration_seconds}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Video":
        return cls(
            uri=raw.get("uri"),
            mime_type=raw.get("mime_type", "video/mp4"),
            duration_seconds=raw.get("duration_seconds"),
        )


@dataclass(slots=True)
class VideoResult:
    job_id: str
    status: JobStatus
    videos: list[Video] = field(default_factory=list)
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status,
            "videos": [video.to_dict() for video in self.videos],
            "error_message": self.error_message,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "VideoResult":
        return cls(
            job_id=raw["job_id"],
            status=raw["status"],
            videos=[Video.from_dict(item) for item in raw.get("videos", [])],
            error_message=raw.get("error_message"),
        )


class VideoProvider(Protocol):
    name: str
    required_config: tuple[str, ...]

    def generate(self, media: MediaInput, config: GenerationConfig) -> str:
        """Submit a job and return its id."""

    def poll(self, job_id: str) -> VideoResult:
        ...

    def cancel(self, job_id: str) -> str:
        ...


class DurableVideo:
    def __init__(self, provider: VideoProvider) -> None:
        self.provider = provider

    def _check_config(self) -> None:
        require_config(self.provider.required_config)

    def generate(self, media: MediaInput, config: GenerationConfig) -> str:
        return durable_call(
            NAMESPACE,
            "generate",
            "write_remote",
            {"input": media.to_dict(), "config": config.to_dict()},
            lambda: self.provider.generate(media, config),
            live_preflight=self._check_config,
        )

    def poll(self, job_id: str) -> VideoResult:
        return durable_call(
            NAMESPACE,
            "poll",
            "read_remote",
            {"job_id": job_id},
            lambda: self.provider.poll(job_id),
            codec=ModelCodec(VideoResult),
            live_preflight=self._check_config,
        )

    def cancel(self, job_id: str) -> str:
        return durable_call(
            NAMESPACE,
            "cancel",
            "write_remote",
            {"job_id": job_id},
            lambda: self.provider.cancel(job_id),
            live_preflight=self._check_config,
        )
