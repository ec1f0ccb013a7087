import logging

import pytest

from nginx_deployer.logging_config import PACKAGE_LOGGER, configure_logging, log, resolve_level


@pytest.fixture
def package_logger():
    yield logging.getLogger(PACKAGE_LOGGER)
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_nginx_deployer", False):
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


def test_levels_below_minimum_are_dropped(capsys, package_logger):
    configure_logging("warn")

    log("info", "quiet message")
    log("warn", "loud message")

    out = capsys.readouterr().out
    assert "quiet message" not in out
    assert "loud message" in out
    assert "WARNING" in out


def test_errors_go_to_stderr_only(capsys, package_logger):
    configure_logging("debug")

    log("debug", "debug line")
    log("error", "error line")

    captured = capsys.readouterr()
    assert "debug line" in captured.out
    assert "error line" in captured.err
    assert "error line" not in captured.out
    assert "debug line" not in captured.err


def test_reconfiguring_does_not_duplicate_handlers(package_logger):
    configure_logging("info")
    configure_logging("info")

    ours = [h for h in package_logger.handlers if getattr(h, "_nginx_deployer", False)]
    assert len(ours) == 2


def test_broken_stream_does_not_raise(package_logger):
    class BrokenStream:
        def write(self, data):
            raise OSError("stream closed")

        def flush(self):
            raise OSError("stream closed")

    configure_logging("info")
    for handler in package_logger.handlers:
        if getattr(handler, "_nginx_deployer", False):
            handler.setStream(BrokenStream())

    log("info", "still fine")
    log("error", "still fine")


def test_resolve_level_aliases():
    assert resolve_level("WARN") == logging.WARNING
    assert resolve_level("warning") == logging.WARNING
    assert resolve_level(logging.ERROR) == logging.ERROR
    with pytest.raises(ValueError):
        resolve_level("verbose")
