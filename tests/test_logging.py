import logging

import pytest

from layer_builder.foundation.logging_utils import setup_operational_logger, timed_step


def test_operational_logger_writes_utf8_file(tmp_path):
    logger, log_file = setup_operational_logger(str(tmp_path / "logs"), "unit_build")
    logger.info("Applying patch → café")
    for handler in logger.handlers:
        handler.flush()

    content = open(log_file, encoding="utf-8").read()
    assert "Operational logging initialized for build unit_build" in content
    assert "Applying patch → café" in content
    assert logger.propagate is False


def test_operational_logger_does_not_duplicate_handlers(tmp_path):
    setup_operational_logger(str(tmp_path), "again")
    logger, _ = setup_operational_logger(str(tmp_path), "again")

    assert len(logger.handlers) == 2


def test_timed_step_logs_success_and_failure(caplog):
    logger = logging.getLogger("layer_builder.tests.timed")

    with caplog.at_level(logging.INFO, logger="layer_builder.tests.timed"):
        with timed_step(logger, "Loading git tooling"):
            pass
        with pytest.raises(RuntimeError):
            with timed_step(logger, "Broken step"):
                raise RuntimeError("nope")

    messages = [record.getMessage() for record in caplog.records]
    assert "Loading git tooling ..." in messages
    assert any(m.startswith("Loading git tooling done") for m in messages)
    assert any(m.startswith("Broken step failed after") for m in messages)
