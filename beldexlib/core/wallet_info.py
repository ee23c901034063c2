"""Wallet key material and user settings accepted by the engine."""

from dataclasses import dataclass
from typing import Dict, Optional, Union

from beldexlib.currency_info import CURRENCY_INFO
from beldexlib.utils.validation import is_valid_address, is_valid_key


@dataclass(frozen=True)
class SafeWalletInfo:
    """Public wallet material. The private view key is needed to scan."""
    id: str
    type: str
    beldex_address: str
    beldex_view_key_private: str
    beldex_view_key_public: str = ""
    beldex_spend_key_public: str = ""

    @classmethod
    def from_dict(cls, data: Dict) -> "SafeWalletInfo":
        keys = data.get("keys") or {}
        address = keys.get("beldex_address")
        view_key = keys.get("beldex_view_key_private")
        if not is_valid_address(address):
            raise ValueError(f"Invalid beldex address: {address!r}")
        if not is_valid_key(view_key):
            raise ValueError("Invalid private view key")
        return cls(
            id=str(data.get("id", "")),
            type=str(data.get("type", CURRENCY_INFO["wallet_type"])),
            beldex_address=address,
            beldex_view_key_private=view_key,
            beldex_view_key_public=keys.get("beldex_view_key_public", ""),
            beldex_spend_key_public=keys.get("beldex_spend_key_public", ""),
        )


@dataclass(frozen=True)
class PrivateKeys:
    """Spend material supplied per call, never stored"""
    beldex_key: str
    beldex_spend_key_private: str
    beldex_spend_key_public: str

    @classmethod
    def from_dict(cls, data: Optional[Union[Dict, "PrivateKeys"]]) -> "PrivateKeys":
        if isinstance(data, PrivateKeys):
            return data
        if not data:
            raise ValueError("Private keys are required")
        spend_private = data.get("beldex_spend_key_private")
        spend_public = data.get("beldex_spend_key_public")
        if not is_valid_key(spend_private) or not is_valid_key(spend_public):
            raise ValueError("Invalid spend keys")
        return cls(
            beldex_key=str(data.get("beldex_key", "")),
            beldex_spend_key_private=spend_private,
            beldex_spend_key_public=spend_public,
        )


@dataclass(frozen=True)
class BeldexUserSettings:
    enable_custom_servers: bool = False
    beldex_lightwallet_server: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "BeldexUserSettings":
        merged = dict(CURRENCY_INFO["default_settings"])
        merged.update(data or {})
        server = merged.get("beldex_lightwallet_server")
        return cls(
            enable_custom_servers=bool(merged.get("enable_custom_servers", False)),
            beldex_lightwallet_server=str(server) if server else None,
        )
