"""Byte-budget truncation for tool output, with overflow offloaded to artifacts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from minicode.session.artifacts import ArtifactStore
from minicode.session.schema import ArtifactReference

TRUNCATION_MARKER = "\n...[truncated]"


def artifact_marker(artifact_id: str) -> str:
    return f"\n[full output stored as artifact {artifact_id}]"


@dataclass(frozen=True)
class TruncatedText:
    text: str
    truncated: bool


@dataclass(frozen=True)
class OffloadedText:
    text: str
    truncated: bool
    artifact: ArtifactReference | None = None
    artifact_error: str | None = None

    def meta(self) -> dict[str, Any]:
        meta: dict[str, Any] = {"truncated": self.truncated}
        if self.artifact is not None:
            meta["artifact"] = self.artifact.model_dump(mode="json", by_alias=True)
        if self.artifact_error is not None:
            meta["artifact_error"] = self.artifact_error
        return meta


def to_well_formed(text: str) -> str:
    """Replace unpaired surrogates with U+FFFD; valid pairs become one code point."""

    return text.encode("utf-16", "surrogatepass").decode("utf-16", "replace")


def byte_length(text: str) -> int:
    return len(text.encode("utf-8", "surrogatepass"))


def truncate_by_bytes(text: str, max_bytes: int) -> TruncatedText:
    """Keep the longest character prefix whose UTF-8 encoding fits `max_bytes`."""

    text = to_well_formed(text)
    if byte_length(text) <= max_bytes:
        return TruncatedText(text=text, truncated=False)

    low, high, best = 0, len(text), 0
    while low <= high:
        mid = (low + high) // 2
        if byte_length(text[:mid]) <= max_bytes:
            best = mid
            low = mid + 1
        else:
            high = mid - 1
    return TruncatedText(text=f"{text[:best]}{TRUNCATION_MARKER}", truncated=True)


async def truncate_with_artifact(
    text: str,
    max_bytes: int,
    *,
    artifact_store: ArtifactStore | None = None,
    session_id: str | None = None,
    label: str | None = None,
) -> OffloadedText:
    """Truncate `text`; when possible store the untruncated text as an artifact.

    Artifact write failures are reported in `artifact_error` and never raised.
    """

    text = to_well_formed(text)
    result = truncate_by_bytes(text, max_bytes)
    if not result.truncated or artifact_store is None or not session_id:
        return OffloadedText(text=result.text, truncated=result.truncated)

    try:
        artifact = await artifact_store.write_text(session_id, text, label=label)
    except Exception as exc:
        logger.opt(exception=exc).warning("tool.artifact.write_failed session={} label={}", session_id, label)
        return OffloadedText(text=result.text, truncated=True, artifact_error=str(exc) or type(exc).__name__)

    logger.info("tool.artifact.written session={} id={} bytes={}", session_id, artifact.id, artifact.byte_length)
    return OffloadedText(
        text=f"{result.text}{artifact_marker(artifact.id)}",
        truncated=True,
        artifact=artifact,
    )
