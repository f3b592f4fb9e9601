import copy
import logging
import sys

# ANSI colors per level name
COLORS = {
    'GUI': '\033[90m',       # Gray
    'TRACE': '\033[90m',     # Gray
    'DEBUG': '\033[36m',     # Cyan
    'INFO': '\033[32m',      # Green
    'WARNING': '\033[33m',   # Yellow
    'ERROR': '\033[31m',     # Red
    'CRITICAL': '\033[35m',  # Magenta
    'RESET': '\033[0m',
}

SIMPLE_FORMAT = '%(levelname)s | %(message)s'
VERBOSE_FORMAT = '%(levelname)s | %(filename)s:%(lineno)d | %(message)s'


class ColoredFormatter(logging.Formatter):
    def format(self, record):
        # color a copy, other handlers (pytest caplog) see the plain level name
        record = copy.copy(record)
        color = COLORS.get(record.levelname, '')
        reset = COLORS['RESET']
        record.levelname = f"{color}{record.levelname: <8}{reset}"
        return super().format(record)

# Standard levels for reference:
# CRITICAL = 50, ERROR = 40, WARNING = 30, INFO = 20, DEBUG = 10

TRACE = 5     # Below DEBUG: per-row layout details
GUI_INFO = 3  # Below TRACE: tk event chatter

logging.addLevelName(TRACE, 'TRACE')
logging.addLevelName(GUI_INFO, 'GUI')


def gui_info(self, message, *args, **kwargs):
    if self.isEnabledFor(GUI_INFO):
        self._log(GUI_INFO, message, args, stacklevel=2, **kwargs)


def trace(self, message, *args, **kwargs):
    if self.isEnabledFor(TRACE):
        self._log(TRACE, message, args, stacklevel=2, **kwargs)


logging.Logger.gui_info = gui_info
logging.Logger.trace = trace

handler = logging.StreamHandler(sys.stderr)
handler.setFormatter(ColoredFormatter(SIMPLE_FORMAT))

logger = logging.getLogger('attrtreemap')
logger.addHandler(handler)
logger.setLevel('INFO')


def set_verbosity(level):
    """Set log level and format based on verbosity (0=INFO, 1=DEBUG, 2=TRACE, 3+=GUI)."""
    if level >= 1:
        handler.setFormatter(ColoredFormatter(VERBOSE_FORMAT))
    else:
        handler.setFormatter(ColoredFormatter(SIMPLE_FORMAT))

    if level <= 0:
        logger.setLevel('INFO')
    elif level == 1:
        logger.setLevel('DEBUG')
    elif level == 2:
        logger.setLevel('TRACE')
    else:
        logger.setLevel('GUI')
