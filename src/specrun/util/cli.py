from io import TextIOBase
import sys

# ------------------------------------------------------------------------------
# Terminal Colors

_USE_COLORS = True

# ANSI color codes
TERMINAL_FG_BLUE =          '\033[0;34m'
TERMINAL_FG_RED =           '\033[0;31m'
TERMINAL_FG_BOLD_RED =      '\033[1;31m'
TERMINAL_FG_GREEN =         '\033[0;32m'
TERMINAL_FG_YELLOW =        '\033[0;33m'
TERMINAL_RESET =            '\033[0m'


def set_use_colors(use_colors: bool) -> None:
    global _USE_COLORS
    _USE_COLORS = use_colors


def print_error(message: str, file: TextIOBase | None=None) -> None:
    print(colorize(TERMINAL_FG_RED, message), file=file)


def print_warning(message: str, file: TextIOBase | None=None) -> None:
    print(colorize(TERMINAL_FG_YELLOW, message), file=(file or sys.stderr))


def colorize(color_code: str, str_value: str) -> str:
    return (color_code + str_value + TERMINAL_RESET) if _USE_COLORS else str_value


# ------------------------------------------------------------------------------
# Indentation

def indent(message: str, spaces: int=4) -> str:
    """
    Indents every line of `message` by the specified number of spaces.
    """
    prefix = ' ' * spaces
    return prefix + message.replace('\n', '\n' + prefix)


# ------------------------------------------------------------------------------
