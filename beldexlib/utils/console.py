import os
import sys

from colorama import Fore, Style, init
init(autoreset=True)

_LEVELS = {"debug": 10, "info": 20, "warn": 30, "error": 40}


def _enabled(level: str) -> bool:
    configured = os.getenv("BELDEXLIB_LOG_LEVEL", "info").lower()
    return _LEVELS[level] >= _LEVELS.get(configured, 20)


# --- Unicode-safe print for Windows console ---
def safe_print(*args, **kwargs):
    try:
        print(*args, **kwargs)
    except UnicodeEncodeError:
        encoding = getattr(sys.stdout, 'encoding', None) or 'utf-8'
        print(*(str(a).encode(encoding, errors='replace').decode(encoding) for a in args), **kwargs)


def print_info(msg):
    if _enabled("info"):
        safe_print(Fore.CYAN + str(msg) + Style.RESET_ALL)


def print_warn(msg):
    if _enabled("warn"):
        safe_print(Fore.YELLOW + str(msg) + Style.RESET_ALL)


def print_error(msg):
    if _enabled("error"):
        safe_print(Fore.RED + str(msg) + Style.RESET_ALL)


def print_success(msg):
    if _enabled("info"):
        safe_print(Fore.GREEN + str(msg) + Style.RESET_ALL)


def print_debug(msg):
    if _enabled("debug"):
        safe_print(Fore.MAGENTA + str(msg) + Style.RESET_ALL)
