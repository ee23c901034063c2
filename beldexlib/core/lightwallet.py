# beldexlib/core/lightwallet.py
"""
Lightwallet server access

RemoteClient is the contract the engine consumes. LightwalletClient speaks
the MyMonero-style JSON API exposed by Beldex lightwallet servers over
requests; building and signing transactions (and generating key images) is
delegated to a TransactionBuilder backed by the native Beldex library.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import requests

from beldexlib.config import get_int
from beldexlib.currency_info import DEFAULT_SERVER
from beldexlib.utils.amounts import add, sub
from beldexlib.utils.console import print_debug, print_warn


class LightwalletError(Exception):
    """A lightwallet request failed or was rejected"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class WalletCredentials:
    address: str
    view_key_private: str
    spend_key_private: str
    spend_key_public: str


@dataclass(frozen=True)
class LoginResult:
    is_new_session: bool


@dataclass(frozen=True)
class AddressInfo:
    block_height: int
    total_received: str
    total_sent: str
    locked_balance: str


@dataclass(frozen=True)
class RemoteTransaction:
    hash: str
    height: int
    mempool: bool
    timestamp: str
    total_received: str
    total_sent: str
    fee: Optional[str] = None
    payment_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "RemoteTransaction":
        fee = data.get("fee")
        payment_id = data.get("payment_id")
        return cls(
            hash=str(data["hash"]),
            height=int(data.get("height") or 0),
            mempool=bool(data.get("mempool", False)),
            timestamp=str(data.get("timestamp", "")),
            total_received=str(data.get("total_received", "0")),
            total_sent=str(data.get("total_sent", "0")),
            fee=str(fee) if fee is not None else None,
            payment_id=str(payment_id) if payment_id else None,
        )


@dataclass(frozen=True)
class CreateTransactionOptions:
    amount: str
    target_address: str
    priority: int
    is_sweep_tx: bool = False


@dataclass(frozen=True)
class CreatedTransaction:
    total_sent: str
    used_fee: str
    serialized_signed_tx: str
    tx_hash: str
    tx_key: str
    final_total_wo_fee: str

    @classmethod
    def from_dict(cls, data: Dict) -> "CreatedTransaction":
        total_sent = str(data["total_sent"])
        used_fee = str(data["used_fee"])
        final_total = data.get("final_total_wo_fee")
        return cls(
            total_sent=total_sent,
            used_fee=used_fee,
            serialized_signed_tx=str(data["serialized_signed_tx"]),
            tx_hash=str(data["tx_hash"]),
            tx_key=str(data.get("tx_key", "")),
            final_total_wo_fee=str(final_total) if final_total is not None else sub(total_sent, used_fee),
        )


class RemoteClient:
    """Operations the engine needs from a lightwallet backend"""

    def login(self, credentials: WalletCredentials) -> LoginResult:
        raise NotImplementedError

    def get_address_info(self, credentials: WalletCredentials) -> AddressInfo:
        raise NotImplementedError

    def get_transactions(self, credentials: WalletCredentials) -> List[RemoteTransaction]:
        raise NotImplementedError

    def create_transaction(self, credentials: WalletCredentials,
                           options: CreateTransactionOptions) -> CreatedTransaction:
        raise NotImplementedError

    def broadcast_transaction(self, signed_tx: str) -> None:
        raise NotImplementedError

    def change_server(self, server: str, api_key: str = "") -> None:
        pass

    def clear_key_image_cache(self) -> None:
        pass


class TransactionBuilder:
    """Bridge to the native library that derives key images and signs transactions."""

    def generate_key_image(self, tx_pub_key: str, view_key_private: str,
                           spend_key_public: str, spend_key_private: str,
                           output_index: int) -> str:
        raise NotImplementedError

    def create_transaction(self, credentials: WalletCredentials,
                           options: CreateTransactionOptions,
                           unspent_outs: Dict,
                           get_random_outs: Callable[[List[str], int], Dict]) -> Dict:
        """Return a dict with total_sent, used_fee, serialized_signed_tx, tx_hash, tx_key."""
        raise NotImplementedError


class LightwalletClient(RemoteClient):
    """HTTP client for a Beldex lightwallet server"""

    def __init__(self, server: Optional[str] = None, api_key: str = "",
                 session: Optional[requests.Session] = None,
                 builder: Optional[TransactionBuilder] = None,
                 timeout: Optional[int] = None):
        self.server = (server or DEFAULT_SERVER).rstrip('/')
        self.api_key = api_key
        self.session = session or requests.Session()
        self.builder = builder
        self.timeout = timeout or get_int("BELDEXLIB_HTTP_TIMEOUT", 30)
        self.mixin = get_int("BELDEXLIB_RING_MIXIN", 10)
        # key image cache: "tx_pub_key:out_index" -> key image
        self.key_image_cache: Dict[str, str] = {}

    def change_server(self, server: str, api_key: str = "") -> None:
        self.server = server.rstrip('/')
        self.api_key = api_key
        print_debug(f"Lightwallet server set to {self.server}")

    def clear_key_image_cache(self) -> None:
        self.key_image_cache = {}

    def _post(self, endpoint: str, body: Dict) -> Dict:
        url = f"{self.server}/{endpoint}"
        payload = dict(body)
        if self.api_key:
            payload["api_key"] = self.api_key
        headers = {
            'Content-Type': 'application/json',
            'User-Agent': 'beldexlib/1.0'
        }

        started = time.time()
        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise LightwalletError(f"{endpoint} request failed: {e}") from e

        print_debug(f"DEBUG: {endpoint} -> {response.status_code} in {time.time() - started:.2f}s")
        if response.status_code not in (200, 201):
            raise LightwalletError(
                f"{endpoint} failed: HTTP {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise LightwalletError(f"{endpoint} returned invalid JSON") from e

    @staticmethod
    def _account(credentials: WalletCredentials) -> Dict:
        return {"address": credentials.address, "view_key": credentials.view_key_private}

    def _key_image(self, credentials: WalletCredentials, tx_pub_key: str, out_index: int) -> str:
        cache_key = f"{tx_pub_key}:{out_index}"
        cached = self.key_image_cache.get(cache_key)
        if cached is None:
            cached = self.builder.generate_key_image(
                tx_pub_key,
                credentials.view_key_private,
                credentials.spend_key_public,
                credentials.spend_key_private,
                out_index,
            )
            self.key_image_cache[cache_key] = cached
        return cached

    def _verified_total_sent(self, credentials: WalletCredentials, reported_total: str,
                             spent_outputs: Optional[List[Dict]]) -> str:
        """Sum only the spent outputs whose key image is really ours.

        The server can only guess which outputs were spent; without a builder
        there is nothing to check against and its figure is used as-is.
        """
        if self.builder is None:
            return str(reported_total)
        total = "0"
        for output in spent_outputs or []:
            key_image = self._key_image(credentials, output["tx_pub_key"], int(output["out_index"]))
            if key_image == output.get("key_image"):
                total = add(total, output.get("amount", "0"))
        return total

    def login(self, credentials: WalletCredentials) -> LoginResult:
        result = self._post("login", {
            **self._account(credentials),
            "create_account": True,
            "generated_locally": True,
        })
        return LoginResult(is_new_session="new_address" in result)

    def get_address_info(self, credentials: WalletCredentials) -> AddressInfo:
        result = self._post("get_address_info", self._account(credentials))
        return AddressInfo(
            block_height=int(result.get("blockchain_height", 0)),
            total_received=str(result.get("total_received", "0")),
            total_sent=self._verified_total_sent(
                credentials, result.get("total_sent", "0"), result.get("spent_outputs")
            ),
            locked_balance=str(result.get("locked_funds", "0")),
        )

    def get_transactions(self, credentials: WalletCredentials) -> List[RemoteTransaction]:
        result = self._post("get_address_txs", self._account(credentials))
        transactions = []
        for raw in result.get("transactions") or []:
            raw = dict(raw)
            raw["total_sent"] = self._verified_total_sent(
                credentials, raw.get("total_sent", "0"), raw.get("spent_outputs")
            )
            transactions.append(RemoteTransaction.from_dict(raw))
        return transactions

    def get_unspent_outs(self, credentials: WalletCredentials) -> Dict:
        return self._post("get_unspent_outs", {
            **self._account(credentials),
            "amount": "0",
            "mixin": self.mixin,
            "use_dust": True,
            "dust_threshold": "2000000000",
        })

    def get_random_outs(self, amounts: List[str], count: int) -> Dict:
        return self._post("get_random_outs", {"amounts": amounts, "count": count})

    def create_transaction(self, credentials: WalletCredentials,
                           options: CreateTransactionOptions) -> CreatedTransaction:
        if self.builder is None:
            raise LightwalletError("No transaction builder configured")
        unspent_outs = self.get_unspent_outs(credentials)
        if not unspent_outs.get("outputs"):
            print_warn("⚠️  Lightwallet reported no unspent outputs")
        result = self.builder.create_transaction(credentials, options, unspent_outs, self.get_random_outs)
        return CreatedTransaction.from_dict(result)

    def broadcast_transaction(self, signed_tx: str) -> None:
        self._post("submit_raw_tx", {"tx": signed_tx})
