"""Stable on-disk layout for sessions and their artifacts."""

from __future__ import annotations

from pathlib import Path

SESSION_FILE_NAME = "session.json"
SESSION_ARTIFACTS_DIR_NAME = "artifacts"


def normalize_sessions_dir(sessions_dir: Path | str) -> Path:
    return Path(sessions_dir).expanduser().resolve()


def resolve_session_dir(sessions_dir: Path | str, session_id: str) -> Path:
    return normalize_sessions_dir(sessions_dir) / session_id


def resolve_session_file_path(sessions_dir: Path | str, session_id: str) -> Path:
    return resolve_session_dir(sessions_dir, session_id) / SESSION_FILE_NAME


def resolve_session_artifacts_dir(sessions_dir: Path | str, session_id: str) -> Path:
    return resolve_session_dir(sessions_dir, session_id) / SESSION_ARTIFACTS_DIR_NAME


def resolve_session_artifact_file_path(sessions_dir: Path | str, session_id: str, file_name: str) -> Path:
    return resolve_session_artifacts_dir(sessions_dir, session_id) / file_name
