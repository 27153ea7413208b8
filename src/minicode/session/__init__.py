"""Session state machine, persistence and artifact storage."""

from minicode.session.artifacts import ArtifactStore, FsArtifactStore
from minicode.session.core import ResponseCommit, Session, build_next_state, merge_usage
from minicode.session.queue import SerialTaskQueue
from minicode.session.repository import FsSessionRepository, SessionRepository
from minicode.session.schema import ArtifactReference, CoreSessionState, SessionState, SessionSummary

__all__ = [
    "ArtifactReference",
    "ArtifactStore",
    "CoreSessionState",
    "FsArtifactStore",
    "FsSessionRepository",
    "ResponseCommit",
    "SerialTaskQueue",
    "Session",
    "SessionRepository",
    "SessionState",
    "SessionSummary",
    "build_next_state",
    "merge_usage",
]
