"""Some CLI styling helpers"""

from colorama import Fore, Style

ENABLED = True


def enable():
    global ENABLED
    ENABLED = True


def disable():
    global ENABLED
    ENABLED = False


def _style(code, string):
    if not ENABLED:
        return string
    return code + string + Style.RESET_ALL


def prompt(string):
    return _style(Fore.YELLOW, string)
