import re
from typing import Optional

# Beldex standard, subaddress and integrated addresses are base58 text
_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{95,106}$")
_HEX_RE = re.compile(r"^[0-9a-f]+$", re.IGNORECASE)
_AMOUNT_RE = re.compile(r"^-?[0-9]+$")

MAX_TEXT_LEN = 256


def is_safe_text(value: Optional[str], max_len: int = MAX_TEXT_LEN) -> bool:
    if value is None:
        return False
    text = str(value)
    if len(text) == 0 or len(text) > max_len:
        return False
    for ch in text:
        code = ord(ch)
        if code < 32 or code == 127:
            return False
    return True


def is_valid_address(addr: Optional[str]) -> bool:
    if not is_safe_text(addr, max_len=128):
        return False
    return bool(_ADDRESS_RE.fullmatch(str(addr)))


def _is_hex(value: Optional[str], length: int) -> bool:
    if value is None:
        return False
    text = str(value).lower().strip()
    if len(text) != length:
        return False
    return bool(_HEX_RE.fullmatch(text))


def is_valid_key(key: Optional[str]) -> bool:
    """Private and public view/spend keys are 32 bytes of hex."""
    return _is_hex(key, 64)


def is_valid_tx_hash(value: Optional[str]) -> bool:
    return _is_hex(value, 64)


def is_native_amount(value: Optional[str]) -> bool:
    if value is None:
        return False
    return bool(_AMOUNT_RE.fullmatch(str(value).strip()))


def normalize_txid(txid: Optional[str]) -> str:
    """Normalize a transaction id for comparison"""
    if not txid:
        return ''
    text = str(txid).strip("'\" ").lower()
    return text[2:] if text.startswith('0x') else text
