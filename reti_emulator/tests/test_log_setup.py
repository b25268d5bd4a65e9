"""
ReTI Emulator — logging setup tests.
"""

import logging
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

import pytest
from rich.logging import RichHandler

from reti_emulator.log_setup import setup_logging


@pytest.fixture
def logger_name(request):
    name = f"reti_test.{request.node.name}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_console_handler_only(logger_name):
    logger = setup_logging(logger_name, console_level=logging.ERROR)
    assert len(logger.handlers) == 1
    handler = logger.handlers[0]
    assert isinstance(handler, RichHandler)
    assert handler.level == logging.ERROR


def test_file_handler_captures_debug(logger_name, tmp_path):
    logger = setup_logging(logger_name, log_dir=tmp_path / "logs")
    logger.debug("trace line %d", 7)
    for handler in logger.handlers:
        handler.flush()
    files = list((tmp_path / "logs").glob("*.log"))
    assert len(files) == 1
    text = files[0].read_text(encoding="utf-8")
    assert "| DEBUG   |" in text
    assert "trace line 7" in text


def test_second_call_replaces_console_level(logger_name):
    first = setup_logging(logger_name)
    second = setup_logging(logger_name, console_level=logging.DEBUG)
    assert first is second
    assert len(second.handlers) == 1
    assert second.handlers[0].level == logging.DEBUG


def test_later_call_adds_log_file(logger_name, tmp_path):
    setup_logging(logger_name)
    logger = setup_logging(logger_name, log_dir=tmp_path / "logs")
    assert len(logger.handlers) == 2
    logger.debug("second run")
    for handler in logger.handlers:
        handler.flush()
    files = list((tmp_path / "logs").glob(f"{logger_name}_*.log"))
    assert len(files) == 1
    assert "second run" in files[0].read_text(encoding="utf-8")

    logger = setup_logging(logger_name)
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], RichHandler)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
