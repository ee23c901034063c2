# beldexlib/core/reconciler.py
"""
Transaction reconciliation

Turns the lightwallet's transaction list into TransactionRecords and merges
them into BeldexLocalData without duplicates. Records that changed are
collected in a batch which the engine hands to the host once per sync pass.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from beldexlib.currency_info import PRIMARY_CURRENCY
from beldexlib.core.lightwallet import RemoteTransaction
from beldexlib.core.local_data import BeldexLocalData, TransactionRecord
from beldexlib.utils.amounts import is_negative, sub
from beldexlib.utils.console import print_debug, print_info, print_warn
from beldexlib.utils.validation import normalize_txid


_FRACTION_RE = re.compile(r"\.(\d+)")


class ReconcileResult(Enum):
    NEW = "new"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def parse_timestamp(value: str) -> float:
    """ISO-8601 timestamp from the server -> epoch seconds, 0.0 if unreadable"""
    if not value:
        return 0.0
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    text = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        print_warn(f"⚠️  Unreadable transaction timestamp {value!r}")
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


class TransactionReconciler:
    def __init__(self, local_data: BeldexLocalData, wallet_id: str, address: str):
        self.local_data = local_data
        self.wallet_id = wallet_id
        self.address = address
        self._changed: List[TransactionRecord] = []

    def to_record(self, tx: RemoteTransaction) -> TransactionRecord:
        net_native_amount = sub(tx.total_received, tx.total_sent)
        is_send = is_negative(net_native_amount)

        our_receive_addresses = []
        if not is_send:
            our_receive_addresses.append(self.address.lower())

        # Legacy payment ids predate integrated addresses; surface them as memos
        memos = []
        if tx.payment_id is not None:
            memos.append({"memo_name": "payment id", "type": "hex", "value": tx.payment_id})

        return TransactionRecord(
            txid=tx.hash,
            date=parse_timestamp(tx.timestamp),
            block_height=0 if tx.mempool else tx.height,
            native_amount=net_native_amount,
            network_fee=tx.fee if tx.fee is not None else "0",
            currency_code=PRIMARY_CURRENCY,
            wallet_id=self.wallet_id,
            is_send=is_send,
            memos=memos,
            our_receive_addresses=our_receive_addresses,
        )

    def find_transaction(self, currency_code: str, txid: str) -> int:
        transactions = self.local_data.transactions.get(currency_code)
        if not transactions:
            return -1
        target = normalize_txid(txid)
        for idx, existing in enumerate(transactions):
            if normalize_txid(existing.txid) == target:
                return idx
        return -1

    def reconcile(self, tx: RemoteTransaction) -> ReconcileResult:
        record = self.to_record(tx)
        idx = self.find_transaction(PRIMARY_CURRENCY, record.txid)
        if idx == -1:
            print_info(f"New transaction: {record.txid}")
            self._insert(PRIMARY_CURRENCY, record, queue_change=True)
            return ReconcileResult.NEW

        stored = self.local_data.transactions[PRIMARY_CURRENCY][idx]
        if stored.block_height == record.block_height:
            return ReconcileResult.UNCHANGED

        # Amounts reported right after a height change are not reliable yet;
        # the amount we already stored wins.
        record.native_amount = stored.native_amount
        print_info(f"Update transaction: {record.txid} height:{record.block_height}")
        self._replace(PRIMARY_CURRENCY, record, idx, queue_change=True)
        return ReconcileResult.UPDATED

    def upsert(self, record: TransactionRecord, queue_change: bool = True) -> ReconcileResult:
        """Insert a complete record, or replace the stored one with the same txid."""
        idx = self.find_transaction(record.currency_code, record.txid)
        if idx == -1:
            self._insert(record.currency_code, record, queue_change)
            return ReconcileResult.NEW
        self._replace(record.currency_code, record, idx, queue_change)
        return ReconcileResult.UPDATED

    def _insert(self, currency_code: str, record: TransactionRecord, queue_change: bool) -> None:
        transactions = self.local_data.get_transactions(currency_code)
        print_debug(f"DEBUG: adding and sorting {record.txid} {record.native_amount}")
        transactions.append(record)
        transactions.sort(key=lambda t: t.date, reverse=True)
        self.local_data.dirty = True
        if queue_change:
            self._changed.append(record)

    def _replace(self, currency_code: str, record: TransactionRecord, idx: int, queue_change: bool) -> None:
        self.local_data.transactions[currency_code][idx] = record
        self.local_data.dirty = True
        if queue_change:
            self._changed.append(record)

    def pending_changes(self) -> int:
        return len(self._changed)

    def drain_changed(self) -> Optional[List[TransactionRecord]]:
        """Hand over the batch of changed records, or None if nothing changed."""
        if not self._changed:
            return None
        batch = self._changed
        self._changed = []
        return batch

    def clear(self) -> None:
        self._changed = []
