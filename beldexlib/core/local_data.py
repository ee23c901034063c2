"""
Persisted wallet snapshot

BeldexLocalData is the single document written to the storage backend: block
height, balances, transaction history and login bookkeeping for one address.
The engine owns the instance and mutates it under its state lock; the
``dirty`` flag lives in memory only and tells the persistence loop that a
write is due.
"""

import json
from dataclasses import dataclass, field, asdict, fields
from typing import Dict, List, Optional

from beldexlib.currency_info import PRIMARY_CURRENCY

WALLET_DATA_FILE = "walletLocalData.json"


@dataclass
class TransactionRecord:
    """A wallet transaction as reported to the host"""
    txid: str
    date: float
    block_height: int
    native_amount: str
    network_fee: str = "0"
    currency_code: str = PRIMARY_CURRENCY
    wallet_id: str = ""
    is_send: bool = False
    memos: List[Dict] = field(default_factory=list)
    our_receive_addresses: List[str] = field(default_factory=list)
    signed_tx: str = ""
    tx_secret: Optional[str] = None
    other_params: Dict = field(default_factory=dict)
    token_id: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "TransactionRecord":
        if not isinstance(data, dict):
            raise ValueError("Transaction record must be an object")
        for required in ("txid", "date", "block_height", "native_amount"):
            if required not in data:
                raise ValueError(f"Transaction record missing field: {required}")
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        values["block_height"] = int(values["block_height"])
        values["native_amount"] = str(values["native_amount"])
        values["network_fee"] = str(values.get("network_fee", "0"))
        return cls(**values)


class BeldexLocalData:
    """Snapshot of one wallet's synchronized state"""

    def __init__(self, json_text: Optional[str] = None):
        self.block_height: int = 0
        self.last_address_query_height: int = 0
        self.locked_balance: str = "0"
        self.beldex_address: str = ""
        self.beldex_view_key_private: str = ""
        self.enabled_tokens: List[str] = [PRIMARY_CURRENCY]
        self.total_balances: Dict[str, str] = {PRIMARY_CURRENCY: "0"}
        self.transactions: Dict[str, List[TransactionRecord]] = {PRIMARY_CURRENCY: []}
        self.has_logged_in: bool = False
        # Unsaved changes since the last successful write; never serialized
        self.dirty: bool = False

        if json_text is not None:
            self._load(json.loads(json_text))

    @classmethod
    def fresh(cls, address: str, view_key: str,
              enabled_tokens: Optional[List[str]] = None) -> "BeldexLocalData":
        data = cls()
        data.beldex_address = address
        data.beldex_view_key_private = view_key
        if enabled_tokens:
            data.enabled_tokens = _unique(enabled_tokens)
        return data

    @classmethod
    def from_json(cls, json_text: str) -> "BeldexLocalData":
        return cls(json_text)

    def _load(self, data: Dict) -> None:
        if not isinstance(data, dict):
            raise ValueError("Wallet snapshot must be a JSON object")

        self.block_height = int(data.get("block_height", 0))
        self.last_address_query_height = int(data.get("last_address_query_height", 0))
        self.locked_balance = str(data.get("locked_balance", "0"))
        self.beldex_address = str(data.get("beldex_address", ""))
        self.beldex_view_key_private = str(data.get("beldex_view_key_private", ""))
        self.has_logged_in = bool(data.get("has_logged_in", False))

        if "enabled_tokens" in data:
            self.enabled_tokens = _unique(str(code) for code in data["enabled_tokens"])

        if "total_balances" in data:
            self.total_balances = {
                str(code): str(amount) for code, amount in data["total_balances"].items()
            }

        if "transactions" in data:
            self.transactions = {
                str(code): [TransactionRecord.from_dict(tx) for tx in txs]
                for code, txs in data["transactions"].items()
            }

    def to_dict(self) -> Dict:
        return {
            "block_height": self.block_height,
            "last_address_query_height": self.last_address_query_height,
            "locked_balance": self.locked_balance,
            "beldex_address": self.beldex_address,
            "beldex_view_key_private": self.beldex_view_key_private,
            "enabled_tokens": list(self.enabled_tokens),
            "total_balances": dict(self.total_balances),
            "transactions": {
                code: [tx.to_dict() for tx in txs] for code, txs in self.transactions.items()
            },
            "has_logged_in": self.has_logged_in,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    def get_transactions(self, currency_code: str) -> List[TransactionRecord]:
        return self.transactions.setdefault(currency_code, [])


def _unique(codes) -> List[str]:
    result: List[str] = []
    for code in codes:
        if code not in result:
            result.append(code)
    return result
