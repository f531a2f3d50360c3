import logging

import pytest

from branchguard.infrastructure.monitoring.logger_setup import setup_logging

from conftest import VALID_TOKEN


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_file_handlers_redact_tokens(tmp_path, restore_root_logger):
    log_file = tmp_path / "run.log"
    error_file = tmp_path / "error.log"

    setup_logging(log_level=logging.INFO, log_file=str(log_file), error_log_file=str(error_file))
    logger = logging.getLogger("branchguard.test")
    logger.info(f"using token {VALID_TOKEN}")
    logger.error("Authorization: Bearer abc123")
    for handler in restore_root_logger.handlers:
        handler.flush()

    everything = log_file.read_text(encoding="utf-8")
    errors_only = error_file.read_text(encoding="utf-8")
    assert VALID_TOKEN not in everything
    assert "[REDACTED_TOKEN]" in everything
    assert "abc123" not in everything
    assert "using token" not in errors_only
    assert "[ERROR] branchguard.test" in errors_only


def test_httpx_is_quiet_unless_verbose(restore_root_logger):
    setup_logging(log_level=logging.INFO)
    assert logging.getLogger("httpx").level == logging.WARNING
    setup_logging(log_level=logging.DEBUG)
    assert logging.getLogger("httpx").level == logging.DEBUG
