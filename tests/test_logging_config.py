# tests/test_logging_config.py
import logging

import pytest

from explainit.logging_config import get_logger, setup_logging, with_error_handling, with_performance_logging


def test_setup_logging_writes_file(tmp_path):
    setup_logging(level="DEBUG", log_file="explainit.log", console=False, log_dir=tmp_path)
    try:
        logging.getLogger("test").info("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello file" in (tmp_path / "explainit.log").read_text(encoding="utf-8")
    finally:
        setup_logging(level="INFO")


def test_get_logger_returns_structlog_logger():
    logger = get_logger("dispatcher")
    assert hasattr(logger, "info")


def test_decorators_wrap_sync_functions():
    @with_error_handling("test")
    @with_performance_logging("test")
    def add(a, b):
        return a + b

    assert add(2, 3) == 5
    assert add.__name__ == "add"


@pytest.mark.asyncio
async def test_decorators_wrap_coroutines():
    @with_error_handling("test")
    @with_performance_logging("test")
    async def explode():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await explode()
