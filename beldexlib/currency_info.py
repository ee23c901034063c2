"""Static description of the Beldex currency."""
import os
from typing import Dict

PRIMARY_CURRENCY = "BDX"

# Atomic units per BDX
BDX_MULTIPLIER = "1000000000"

DEFAULT_SERVER = os.getenv("BELDEXLIB_LIGHTWALLET_SERVER", "http://127.0.0.1:8443")

CURRENCY_INFO: Dict = {
    "plugin_id": "beldex",
    "wallet_type": "wallet:beldex",
    "currency_code": PRIMARY_CURRENCY,
    "display_name": "Beldex",
    "denominations": [
        {"name": "BDX", "multiplier": BDX_MULTIPLIER},
    ],
    "default_settings": {
        "enable_custom_servers": False,
        "beldex_lightwallet_server": DEFAULT_SERVER,
    },
    "meta_tokens": [],
}
