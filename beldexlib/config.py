"""Runtime configuration profiles for beldexlib."""
from __future__ import annotations

import os
from typing import Dict

PROFILE = os.getenv("BELDEXLIB_PROFILE", "default")

PROFILES: Dict[str, Dict[str, str]] = {
    "default": {
        "BELDEXLIB_SYNC_INTERVAL_MS": "5000",
        "BELDEXLIB_SAVE_INTERVAL_MS": "10000",
        "BELDEXLIB_PROGRESS_STRIDE": "10",
        "BELDEXLIB_LIGHTWALLET_SERVER": "http://127.0.0.1:8443",
        "BELDEXLIB_HTTP_TIMEOUT": "30",
        "BELDEXLIB_LOG_LEVEL": "info",
    },
    "quiet": {
        "BELDEXLIB_SYNC_INTERVAL_MS": "5000",
        "BELDEXLIB_SAVE_INTERVAL_MS": "10000",
        "BELDEXLIB_PROGRESS_STRIDE": "10",
        "BELDEXLIB_LIGHTWALLET_SERVER": "http://127.0.0.1:8443",
        "BELDEXLIB_HTTP_TIMEOUT": "30",
        "BELDEXLIB_LOG_LEVEL": "error",
    },
}


def apply_profile() -> None:
    profile = os.getenv("BELDEXLIB_PROFILE", PROFILE)
    if not profile:
        return
    settings = PROFILES.get(profile)
    if not settings:
        return
    for key, value in settings.items():
        os.environ.setdefault(key, value)


def get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default
