import logging

import colorama
import pytest

from proto_builder import log


def make_record(level: int, msg: str = "message") -> logging.LogRecord:
    return logging.LogRecord("test", level, __file__, 1, msg, None, None)


@pytest.mark.parametrize(
    "level, prefix",
    (
        (logging.DEBUG, colorama.Fore.CYAN),
        (logging.INFO, colorama.Fore.GREEN),
        (logging.WARNING, colorama.Fore.YELLOW),
        (logging.ERROR, colorama.Fore.RED),
    ),
)
def test_formatter__color(level, prefix):
    formatter = log.ProtoBuilderLogFormatter(use_color=True)

    actual = formatter.format(make_record(level))

    assert actual == (
        f"{prefix}{logging.getLevelName(level)} message{colorama.Style.RESET_ALL}"
    )


def test_formatter__no_color():
    formatter = log.ProtoBuilderLogFormatter(use_color=False)

    assert formatter.format(make_record(logging.ERROR, "boom")) == "ERROR boom"


def test_setup_log():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    try:
        log.setup_log("debug", use_color=False)

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, log.ProtoBuilderLogFormatter)
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)
