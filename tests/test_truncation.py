from pathlib import Path

import pytest

from minicode.session.artifacts import FsArtifactStore
from minicode.session.schema import ArtifactReference
from minicode.tools.truncation import (
    TRUNCATION_MARKER,
    artifact_marker,
    byte_length,
    to_well_formed,
    truncate_by_bytes,
    truncate_with_artifact,
)


class FailingStore:
    async def write_text(self, session_id: str, text: str, *, label=None, extension="txt") -> ArtifactReference:
        raise OSError("disk full")

    async def write_bytes(self, session_id: str, data: bytes, *, label=None, extension=None) -> ArtifactReference:
        raise OSError("disk full")


@pytest.mark.parametrize("text", ["", "short", "ünïcödé"])
def test_text_within_budget_is_unchanged(text: str) -> None:
    result = truncate_by_bytes(text, 64)
    assert result.text == text
    assert not result.truncated


@pytest.mark.parametrize(
    ("text", "budget"),
    [
        ("a" * 100, 10),
        ("é" * 10, 5),
        ("😀" * 4, 7),
        ("ab😀cd", 3),
    ],
)
def test_over_budget_text_keeps_longest_whole_character_prefix(text: str, budget: int) -> None:
    result = truncate_by_bytes(text, budget)

    assert result.truncated
    assert result.text.endswith(TRUNCATION_MARKER)
    prefix = result.text.removesuffix(TRUNCATION_MARKER)
    assert text.startswith(prefix)
    assert byte_length(prefix) <= budget
    if len(prefix) < len(text):
        assert byte_length(text[: len(prefix) + 1]) > budget


@pytest.mark.asyncio
async def test_overflow_is_offloaded_to_artifact(tmp_path: Path) -> None:
    store = FsArtifactStore(tmp_path)
    text = "line\n" * 50

    result = await truncate_with_artifact(text, 20, artifact_store=store, session_id="s1", label="read-output")

    assert result.truncated
    assert result.artifact is not None
    assert result.text.endswith(artifact_marker(result.artifact.id))
    assert (tmp_path / result.artifact.relative_path).read_text(encoding="utf-8") == text
    assert result.meta()["artifact"]["relativePath"] == result.artifact.relative_path


@pytest.mark.asyncio
async def test_artifact_failure_is_reported_not_raised() -> None:
    result = await truncate_with_artifact("x" * 100, 10, artifact_store=FailingStore(), session_id="s1")

    assert result.truncated
    assert result.artifact is None
    assert result.artifact_error == "disk full"
    assert result.text == "x" * 10 + TRUNCATION_MARKER
    assert result.meta() == {"truncated": True, "artifact_error": "disk full"}


@pytest.mark.asyncio
async def test_no_artifact_without_session(tmp_path: Path) -> None:
    store = FsArtifactStore(tmp_path)
    result = await truncate_with_artifact("x" * 100, 10, artifact_store=store, session_id=None)

    assert result.artifact is None
    assert not any(tmp_path.iterdir())


def test_lone_surrogates_are_replaced_before_measuring() -> None:
    text = "ab\ud800cd"

    assert to_well_formed(text) == "ab�cd"
    assert to_well_formed("😀") == "\U0001f600"
    assert byte_length(text) == 7

    result = truncate_by_bytes(text * 3, 5)
    assert result.truncated
    assert result.text == f"ab�{TRUNCATION_MARKER}"


@pytest.mark.asyncio
async def test_lone_surrogates_do_not_break_artifact_offload(tmp_path: Path) -> None:
    result = await truncate_with_artifact(
        "x\udc80" * 20, 8, artifact_store=FsArtifactStore(tmp_path), session_id="s1", label="bash-output"
    )

    assert result.artifact is not None
    assert result.artifact_error is None
    stored = (tmp_path / result.artifact.relative_path).read_text(encoding="utf-8")
    assert stored == "x�" * 20
