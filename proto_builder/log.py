from __future__ import annotations

import logging

import colorama

LEVEL_COLORS = {
    logging.DEBUG: colorama.Fore.CYAN,
    logging.INFO: colorama.Fore.GREEN,
    logging.WARNING: colorama.Fore.YELLOW,
    logging.ERROR: colorama.Fore.RED,
    logging.CRITICAL: colorama.Fore.RED + colorama.Style.BRIGHT,
}


def color(col: str, msg: str, reset: bool = True) -> str:
    return col + msg + (colorama.Style.RESET_ALL if reset else "")


class ProtoBuilderLogFormatter(logging.Formatter):
    def __init__(self, use_color: bool = True) -> None:
        super().__init__(fmt="%(levelname)s %(message)s")
        self._use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        if not self._use_color:
            return formatted
        prefix = LEVEL_COLORS.get(record.levelno, "")
        return color(prefix, formatted) if prefix else formatted


def setup_log(log_level: int | str = logging.INFO, use_color: bool = True) -> None:
    """Configure the root logger for the command line tool."""
    if isinstance(log_level, str):
        log_level = logging.getLevelName(log_level.upper())

    colorama.just_fix_windows_console()

    handler = logging.StreamHandler()
    handler.setFormatter(ProtoBuilderLogFormatter(use_color=use_color))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)
