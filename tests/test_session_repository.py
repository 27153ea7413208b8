import json
from pathlib import Path

import pytest

from minicode.errors import (
    SessionCorruptError,
    SessionError,
    SessionExistsError,
    SessionNotFoundError,
    SessionSchemaError,
)
from minicode.runner.types import TurnUsage
from minicode.session.paths import (
    resolve_session_artifact_file_path,
    resolve_session_artifacts_dir,
    resolve_session_file_path,
)
from minicode.session.repository import FsSessionRepository
from minicode.session.schema import ArtifactReference, SessionState


def _state(session_id: str = "s1", *, updated_at: int = 200) -> SessionState:
    return SessionState(
        id=session_id,
        cwd="/work",
        created_at=100,
        updated_at=updated_at,
        provider="echo",
        model="echo-1",
        messages=[{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
        metadata={"title": "greeting"},
        usage_totals=TurnUsage(input_tokens=3, total_tokens=5),
        artifacts=[
            ArtifactReference(
                id="a1",
                session_id=session_id,
                kind="text",
                relative_path=f"{session_id}/artifacts/read-output-a1.txt",
                byte_length=10,
                created_at=150,
            )
        ],
    )


def test_paths_follow_session_layout(tmp_path: Path) -> None:
    assert resolve_session_file_path(tmp_path, "s1") == tmp_path.resolve() / "s1" / "session.json"
    assert resolve_session_artifacts_dir(tmp_path, "s1") == tmp_path.resolve() / "s1" / "artifacts"
    assert resolve_session_artifact_file_path(tmp_path, "s1", "x.txt").name == "x.txt"


@pytest.mark.asyncio
async def test_save_then_load_round_trips(tmp_path: Path) -> None:
    repository = FsSessionRepository(tmp_path)
    state = _state()

    await repository.save(state)
    loaded = await repository.load("s1")

    assert loaded == state
    document = json.loads((tmp_path / "s1" / "session.json").read_text(encoding="utf-8"))
    assert document["updatedAt"] == 200
    assert document["usageTotals"] == {"inputTokens": 3, "totalTokens": 5}
    assert document["artifacts"][0]["relativePath"] == "s1/artifacts/read-output-a1.txt"
    assert [path.name for path in (tmp_path / "s1").iterdir()] == ["session.json"]


@pytest.mark.asyncio
async def test_create_refuses_existing_session(tmp_path: Path) -> None:
    repository = FsSessionRepository(tmp_path)
    await repository.create(_state())

    assert await repository.exists("s1")
    with pytest.raises(SessionExistsError):
        await repository.create(_state())


@pytest.mark.asyncio
async def test_list_sorts_by_most_recent_update(tmp_path: Path) -> None:
    repository = FsSessionRepository(tmp_path)
    await repository.save(_state("old", updated_at=100))
    await repository.save(_state("new", updated_at=900))

    summaries = await repository.list()

    assert [summary.id for summary in summaries] == ["new", "old"]
    assert summaries[0].message_count == 2


@pytest.mark.asyncio
async def test_missing_corrupt_and_invalid_files_are_distinct(tmp_path: Path) -> None:
    repository = FsSessionRepository(tmp_path)
    with pytest.raises(SessionNotFoundError):
        await repository.load("missing")

    (tmp_path / "broken").mkdir()
    (tmp_path / "broken" / "session.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(SessionCorruptError, match="invalid JSON"):
        await repository.load("broken")

    (tmp_path / "binary").mkdir()
    (tmp_path / "binary" / "session.json").write_bytes(b'{"id": "\xff"}')
    with pytest.raises(SessionCorruptError, match="invalid JSON"):
        await repository.load("binary")

    (tmp_path / "invalid").mkdir()
    (tmp_path / "invalid" / "session.json").write_text(json.dumps({"id": "invalid", "version": 2}), encoding="utf-8")
    with pytest.raises(SessionSchemaError, match="failed schema validation"):
        await repository.load("invalid")


@pytest.mark.asyncio
@pytest.mark.parametrize("version", [True, 1.0, "1"])
async def test_version_must_be_the_integer_one(tmp_path: Path, version: object) -> None:
    repository = FsSessionRepository(tmp_path)
    document = {**_state().model_dump(mode="json", by_alias=True), "version": version}
    (tmp_path / "s1").mkdir()
    (tmp_path / "s1" / "session.json").write_text(json.dumps(document), encoding="utf-8")

    with pytest.raises(SessionSchemaError, match="failed schema validation"):
        await repository.load("s1")


@pytest.mark.asyncio
async def test_delete_removes_session_directory(tmp_path: Path) -> None:
    repository = FsSessionRepository(tmp_path)
    await repository.save(_state())
    (tmp_path / "s1" / "artifacts").mkdir()

    await repository.delete("s1")

    assert not (tmp_path / "s1").exists()
    assert not await repository.exists("s1")


@pytest.mark.asyncio
@pytest.mark.parametrize("session_id", ["", "..", "a/b", "a\\b"])
async def test_unsafe_session_ids_are_rejected(tmp_path: Path, session_id: str) -> None:
    repository = FsSessionRepository(tmp_path)
    with pytest.raises(SessionError):
        await repository.exists(session_id)
