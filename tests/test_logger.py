"""Tests for logger setup and log masking."""

import logging

import pytest

from threadboard.core.logger import SensitiveDataFilter, get_logger, setup_logger


@pytest.fixture
def clean_logger():
    logger = logging.getLogger("threadboard")
    saved = list(logger.handlers)
    logger.handlers.clear()
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved


def make_record(msg):
    return logging.LogRecord("threadboard", logging.INFO, __file__, 1, msg, None, None)


class TestSensitiveDataFilter:
    def test_masks_urls(self):
        record = make_record("GET https://firestore.googleapis.com/v1/projects/x failed")
        SensitiveDataFilter().filter(record)
        assert record.msg == "GET [URL_MASKED] failed"

    def test_masks_keys_and_tokens(self):
        record = make_record("retry with key=AIzaSecret&token=abc")
        SensitiveDataFilter().filter(record)
        assert "AIzaSecret" not in record.msg
        assert "abc" not in record.msg


class TestSetupLogger:
    def test_adds_console_and_file_handlers(self, clean_logger, tmp_dir):
        logger = setup_logger("DEBUG", mask_logs=True, log_dir=tmp_dir / "logs")
        assert logger is get_logger()
        assert len(logger.handlers) == 2
        assert (tmp_dir / "logs" / "threadboard.log").exists()
        assert all(
            any(isinstance(f, SensitiveDataFilter) for f in h.filters)
            for h in logger.handlers
        )

    def test_second_call_keeps_handlers(self, clean_logger, tmp_dir):
        setup_logger("INFO", log_dir=tmp_dir)
        setup_logger("INFO", log_dir=tmp_dir)
        assert len(clean_logger.handlers) == 2

    def test_masking_can_be_disabled(self, clean_logger, tmp_dir):
        logger = setup_logger("INFO", mask_logs=False, log_dir=tmp_dir)
        assert all(not h.filters for h in logger.handlers)
