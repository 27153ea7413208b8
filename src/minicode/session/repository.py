"""Filesystem session repository: one JSON document per session directory."""

from __future__ import annotations

import asyncio
import json
import shutil
import uuid
from pathlib import Path
from typing import Protocol

from loguru import logger
from pydantic import ValidationError

from minicode.errors import (
    SessionCorruptError,
    SessionError,
    SessionExistsError,
    SessionNotFoundError,
    SessionSchemaError,
)
from minicode.session.paths import (
    SESSION_FILE_NAME,
    normalize_sessions_dir,
    resolve_session_dir,
    resolve_session_file_path,
)
from minicode.session.schema import SessionState, SessionSummary, dump_state


class SessionRepository(Protocol):
    async def exists(self, session_id: str) -> bool: ...

    async def load(self, session_id: str) -> SessionState: ...

    async def save(self, state: SessionState) -> None: ...

    async def create(self, initial: SessionState) -> None: ...

    async def list(self) -> list[SessionSummary]: ...

    async def delete(self, session_id: str) -> None: ...


def format_validation_error(error: ValidationError) -> str:
    issues = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue["loc"]) or "<root>"
        issues.append(f"{location}: {issue['msg']}")
    return "; ".join(issues)


def check_session_id(session_id: str) -> str:
    normalized = session_id.strip()
    if not normalized or normalized in {".", ".."} or "/" in normalized or "\\" in normalized:
        raise SessionError(f"Invalid session id '{session_id}'")
    return normalized


def read_session_file(file_path: Path, session_id: str) -> SessionState:
    if not file_path.is_file():
        raise SessionNotFoundError(f"Session '{session_id}' not found")
    try:
        payload = json.loads(file_path.read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SessionCorruptError(f"Session '{session_id}' contains invalid JSON at '{file_path}'") from exc
    try:
        return SessionState.model_validate(payload)
    except ValidationError as exc:
        raise SessionSchemaError(
            f"Session '{session_id}' failed schema validation: {format_validation_error(exc)}"
        ) from exc


def write_session_file_atomic(file_path: Path, state: SessionState) -> None:
    file_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = file_path.parent / f".session.{uuid.uuid4().hex}.tmp"
    text = json.dumps(dump_state(state), ensure_ascii=False, indent=2) + "\n"
    try:
        temp_path.write_text(text, encoding="utf-8")
        temp_path.replace(file_path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


class FsSessionRepository:
    """Stores `<sessions_dir>/<id>/session.json`, written via temp file + rename."""

    def __init__(self, sessions_dir: Path | str) -> None:
        self.sessions_dir = normalize_sessions_dir(sessions_dir)

    async def exists(self, session_id: str) -> bool:
        file_path = resolve_session_file_path(self.sessions_dir, check_session_id(session_id))
        return await asyncio.to_thread(file_path.is_file)

    async def load(self, session_id: str) -> SessionState:
        normalized = check_session_id(session_id)
        file_path = resolve_session_file_path(self.sessions_dir, normalized)
        state = await asyncio.to_thread(read_session_file, file_path, normalized)
        logger.debug("session.load id={} messages={}", state.id, len(state.messages))
        return state

    async def save(self, state: SessionState) -> None:
        parsed = SessionState.model_validate(dump_state(state))
        file_path = resolve_session_file_path(self.sessions_dir, check_session_id(parsed.id))
        await asyncio.to_thread(write_session_file_atomic, file_path, parsed)
        logger.debug("session.save id={} updated_at={}", parsed.id, parsed.updated_at)

    async def create(self, initial: SessionState) -> None:
        parsed = SessionState.model_validate(dump_state(initial))
        if await self.exists(parsed.id):
            raise SessionExistsError(f"Session '{parsed.id}' already exists")
        await self.save(parsed)
        logger.info("session.create id={} provider={} model={}", parsed.id, parsed.provider, parsed.model)

    async def list(self) -> list[SessionSummary]:
        if not self.sessions_dir.is_dir():
            return []

        summaries: list[SessionSummary] = []
        for entry in sorted(self.sessions_dir.iterdir()):
            if not entry.is_dir() or not (entry / SESSION_FILE_NAME).is_file():
                continue
            state = await self.load(entry.name)
            summaries.append(SessionSummary.from_state(state))
        return sorted(summaries, key=lambda item: item.updated_at, reverse=True)

    async def delete(self, session_id: str) -> None:
        session_dir = resolve_session_dir(self.sessions_dir, check_session_id(session_id))
        await asyncio.to_thread(shutil.rmtree, session_dir, True)
        logger.info("session.delete id={}", session_id)
