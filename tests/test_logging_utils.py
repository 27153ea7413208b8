import pytest
from loguru import logger

from minicode import logging_utils
from minicode.config import Settings


def test_configure_logging_tags_records_with_scope(monkeypatch: pytest.MonkeyPatch, settings: Settings) -> None:
    monkeypatch.setattr(logging_utils, "_active", None)
    logging_utils.configure_logging(settings=settings.model_copy(update={"log_level": "warning"}))
    assert logging_utils._active == ("default", "WARNING")

    records: list[dict] = []
    sink_id = logger.add(lambda message: records.append(message.record), level="INFO")
    try:
        logger.info("from host")
        logger.bind(plugin="./demo.py").info("from plugin")
    finally:
        logger.remove(sink_id)

    assert [record["extra"]["scope"] for record in records] == ["host", "./demo.py"]


def test_configure_logging_is_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr(logging_utils, "_active", ("chat", "INFO"))
    monkeypatch.setattr(logging_utils.logger, "remove", lambda *args: calls.append("remove"))

    logging_utils.configure_logging(profile="chat", level="info")

    assert calls == []
