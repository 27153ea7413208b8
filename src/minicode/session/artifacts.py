"""Filesystem artifact store for overflow tool output."""

from __future__ import annotations

import asyncio
import re
import time
import uuid
from pathlib import Path
from typing import Literal, Protocol

from minicode.errors import ArtifactStoreError
from minicode.session.paths import (
    SESSION_ARTIFACTS_DIR_NAME,
    normalize_sessions_dir,
    resolve_session_artifact_file_path,
)
from minicode.session.repository import check_session_id
from minicode.session.schema import ArtifactReference

_UNSAFE_CHARS = re.compile(r"[^a-z0-9._-]+")


class ArtifactStore(Protocol):
    async def write_text(
        self,
        session_id: str,
        text: str,
        *,
        label: str | None = None,
        extension: str | None = "txt",
    ) -> ArtifactReference: ...

    async def write_bytes(
        self,
        session_id: str,
        data: bytes,
        *,
        label: str | None = None,
        extension: str | None = None,
    ) -> ArtifactReference: ...


def sanitize_file_component(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = _UNSAFE_CHARS.sub("-", value.strip().lower()).strip("-")
    return cleaned or None


def normalize_extension(extension: str | None) -> str:
    if not extension:
        return ""
    cleaned = sanitize_file_component(extension.lstrip("."))
    return f".{cleaned}" if cleaned else ""


class FsArtifactStore:
    """Writes artifacts to `<sessions_dir>/<session>/artifacts/<label>-<id><ext>`."""

    def __init__(self, sessions_dir: Path | str) -> None:
        self.sessions_dir = normalize_sessions_dir(sessions_dir)

    async def write_text(
        self,
        session_id: str,
        text: str,
        *,
        label: str | None = None,
        extension: str | None = "txt",
    ) -> ArtifactReference:
        return await self._write("text", session_id, text.encode("utf-8"), label=label, extension=extension)

    async def write_bytes(
        self,
        session_id: str,
        data: bytes,
        *,
        label: str | None = None,
        extension: str | None = None,
    ) -> ArtifactReference:
        return await self._write("bytes", session_id, bytes(data), label=label, extension=extension)

    async def _write(
        self,
        kind: Literal["text", "bytes"],
        session_id: str,
        data: bytes,
        *,
        label: str | None,
        extension: str | None,
    ) -> ArtifactReference:
        normalized_session = check_session_id(session_id)
        artifact_id = uuid.uuid4().hex
        safe_label = sanitize_file_component(label)
        file_name = f"{safe_label}-{artifact_id}" if safe_label else artifact_id
        file_name += normalize_extension(extension)
        absolute_path = resolve_session_artifact_file_path(self.sessions_dir, normalized_session, file_name)

        try:
            await asyncio.to_thread(_write_file, absolute_path, data)
        except OSError as exc:
            raise ArtifactStoreError(f"failed to write artifact for session '{normalized_session}': {exc}") from exc

        return ArtifactReference(
            id=artifact_id,
            session_id=normalized_session,
            kind=kind,
            relative_path=f"{normalized_session}/{SESSION_ARTIFACTS_DIR_NAME}/{file_name}",
            byte_length=len(data),
            created_at=int(time.time() * 1000),
        )


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
