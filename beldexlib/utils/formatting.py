import json
import os
from decimal import Decimal
from typing import Any, Dict, Optional

from .amounts import to_decimal, to_string

_LOG_HIDDEN_FIELDS = ("signed_tx", "tx_secret", "other_params")


def _format_number(value: Decimal, decimals: int) -> str:
    quantum = Decimal(1).scaleb(-decimals)
    return to_string(value.quantize(quantum))


def format_amount(native_amount: Optional[str], unit: Optional[str] = None,
                  multiplier: Optional[str] = None) -> str:
    """Format an atomic-unit amount for humans, e.g. "1500000000" -> "1.5 BDX"."""
    if native_amount is None or native_amount == "":
        native_amount = "0"

    try:
        value = to_decimal(native_amount)
    except ValueError:
        value = Decimal(0)

    base_unit = unit or os.getenv("BELDEXLIB_CURRENCY_UNIT", "BDX")
    scale = to_decimal(multiplier or os.getenv("BELDEXLIB_CURRENCY_MULTIPLIER", "1000000000"))
    decimals = int(os.getenv("BELDEXLIB_AMOUNT_DECIMALS", "9"))
    if decimals < 0:
        decimals = 0

    return f"{_format_number(value / scale, decimals)} {base_unit}"


def clean_tx_logs(transaction: Any) -> str:
    """Render a transaction for logs without its signed payload or secrets."""
    if hasattr(transaction, "to_dict"):
        data: Dict = transaction.to_dict()
    else:
        data = dict(transaction)
    for key in _LOG_HIDDEN_FIELDS:
        data.pop(key, None)
    return json.dumps(data, sort_keys=True)
