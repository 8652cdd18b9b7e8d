# filecadence/core/logging.py
import logging
import os
import sys
from datetime import datetime

# Module-level default log level, can be changed by set_default_level()
_default_level: int = logging.INFO

_RESET = '\033[0m'
_TIME = '\033[94m'
_TEXT = '\033[97m'

_LEVEL_COLORS = {
    'DEBUG': '\033[90m',
    'INFO': '\033[92m',
    'WARNING': '\033[93m',
    'ERROR': '\033[91m',
    'CRITICAL': '\033[1;91m',
}


class ColoredFormatter(logging.Formatter):
    """
    Tabular formatter: ``[time] [component]   [LEVEL]    message``.

    Colors are dropped when ``use_colors`` is False or, by default, when the
    NO_COLOR environment variable is set.
    """

    def __init__(self, use_colors: bool | None = None):
        super().__init__()
        if use_colors is None:
            use_colors = os.environ.get('NO_COLOR') is None
        self.use_colors = use_colors

    def _paint(self, color: str, text: str) -> str:
        return f'{color}{text}{_RESET}' if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')

        # 'filecadence.checker' -> 'checker'
        component = record.name.rsplit('.', 1)[-1]

        formatted = (
            self._paint(_TIME, f'[{time_str}]')
            + ' '
            + self._paint(_TEXT, f'[{component}]'.ljust(14))
            + self._paint(_LEVEL_COLORS.get(record.levelname, _TEXT), f'[{record.levelname}]'.ljust(10))
            + self._paint(_TEXT, record.getMessage())
        )

        if record.exc_info:
            formatted += '\n' + self.formatException(record.exc_info)

        return formatted


def set_default_level(level: int) -> None:
    """Set the default log level for new loggers."""
    global _default_level
    _default_level = level


def get_logger(component_name: str) -> logging.Logger:
    """Return the ``filecadence.<component_name>`` logger, attaching a stdout handler once."""
    logger = logging.getLogger(f'filecadence.{component_name}')

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ColoredFormatter())
        handler.setLevel(_default_level)
        logger.addHandler(handler)
        logger.setLevel(_default_level)
        logger.propagate = False

    return logger


def setup_logging(loglevel: str) -> None:
    """Apply a log level to every filecadence logger created so far."""
    level = getattr(logging, loglevel.upper(), logging.INFO)
    set_default_level(level)

    logging.getLogger('filecadence').setLevel(level)

    for name in list(logging.Logger.manager.loggerDict):
        if isinstance(name, str) and name.startswith('filecadence.'):
            lgr = logging.getLogger(name)
            lgr.setLevel(level)
            for handler in lgr.handlers:
                handler.setLevel(level)
