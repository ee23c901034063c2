# beldexlib/core/spend.py
"""
Spend workflow

Validates a single-output spend, asks the remote client to build and sign
it, and returns the outgoing TransactionRecord. Broadcasting is a separate
step so the host can store the signed record first.
"""

import json
import re
import time
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from beldexlib.currency_info import PRIMARY_CURRENCY
from beldexlib.core.errors import (
    BroadcastRejectedError,
    InsufficientFundsError,
    MissingDestinationError,
    MultipleOutputsError,
    NoAmountSpecifiedError,
    PendingFundsError,
    TransactionBuildError,
)
from beldexlib.core.lightwallet import (
    CreateTransactionOptions,
    CreatedTransaction,
    RemoteClient,
    WalletCredentials,
)
from beldexlib.core.local_data import TransactionRecord
from beldexlib.utils.amounts import div, eq, gte, lt
from beldexlib.utils.console import print_error, print_info, print_success, print_warn
from beldexlib.utils.formatting import clean_tx_logs, format_amount

FEE_PRIORITIES = {
    "normal": 1,
    "flash": 5,
}
DEFAULT_FEE_PRIORITY = 5

# The builder takes amounts in whole coins at 9 decimal places
BUILDER_AMOUNT_DIVISOR = "100000000"
BUILDER_AMOUNT_DECIMALS = 9

BROADCAST_REJECTED_MESSAGE = (
    "The Beldex network rejected this transaction. "
    "You may need to wait for more confirmations"
)

# Cosmetic rewrites of builder error text. The wording comes from the
# native library and may change; unmatched messages pass through untouched.
PROVIDER_MESSAGE_REWRITES = [
    (re.compile(r" Have (\d*\.?\d+) BDX; need (\d*\.?\d+) BDX."), "\nHave: \\1 BDX.\nNeed: \\2 BDX."),
]


@dataclass
class SpendTarget:
    public_address: Optional[str] = None
    native_amount: Optional[str] = None


@dataclass
class SpendInfo:
    spend_targets: List[SpendTarget] = field(default_factory=list)
    network_fee_option: Optional[str] = None
    memos: List[Dict] = field(default_factory=list)
    currency_code: str = PRIMARY_CURRENCY

    @classmethod
    def from_dict(cls, data: Dict) -> "SpendInfo":
        targets = [
            SpendTarget(
                public_address=target.get("public_address"),
                native_amount=target.get("native_amount"),
            )
            for target in data.get("spend_targets", [])
        ]
        return cls(
            spend_targets=targets,
            network_fee_option=data.get("network_fee_option"),
            memos=list(data.get("memos", [])),
            currency_code=data.get("currency_code", PRIMARY_CURRENCY),
        )


def translate_fee(fee_option: Optional[str]) -> int:
    if not fee_option:
        return DEFAULT_FEE_PRIORITY
    return FEE_PRIORITIES.get(str(fee_option).lower(), DEFAULT_FEE_PRIORITY)


def normalize_provider_message(message: str) -> str:
    for pattern, replacement in PROVIDER_MESSAGE_REWRITES:
        message = pattern.sub(replacement, message)
    return message


class SpendWorkflow:
    def __init__(self, client: RemoteClient, wallet_id: str):
        self.client = client
        self.wallet_id = wallet_id

    def create_transaction(self, credentials: WalletCredentials,
                           options: CreateTransactionOptions) -> CreatedTransaction:
        try:
            return self.client.create_transaction(credentials, options)
        except Exception as e:
            print_error(str(e))
            raise TransactionBuildError(normalize_provider_message(str(e))) from e

    @staticmethod
    def _single_target(spend_info: SpendInfo) -> SpendTarget:
        if len(spend_info.spend_targets) != 1:
            raise MultipleOutputsError()
        target = spend_info.spend_targets[0]
        if not target.public_address:
            raise MissingDestinationError()
        return target

    def get_max_spendable(self, spend_info: SpendInfo, credentials: WalletCredentials) -> str:
        if not spend_info.spend_targets:
            raise MissingDestinationError()
        target = spend_info.spend_targets[0]
        if not target.public_address:
            raise MissingDestinationError()

        options = CreateTransactionOptions(
            amount="0",
            target_address=target.public_address,
            priority=translate_fee(spend_info.network_fee_option),
            is_sweep_tx=True,
        )
        result = self.create_transaction(credentials, options)
        return result.final_total_wo_fee

    def make_spend(self, spend_info: SpendInfo, credentials: WalletCredentials,
                   total_balance: str, locked_balance: str) -> TransactionRecord:
        # Beldex transactions built here carry exactly one output
        target = self._single_target(spend_info)
        native_amount = target.native_amount
        if native_amount is None or eq(native_amount, "0"):
            raise NoAmountSpecifiedError()

        if gte(native_amount, total_balance):
            if lt(native_amount, locked_balance):
                raise PendingFundsError()
            raise InsufficientFundsError()

        options = CreateTransactionOptions(
            amount=div(native_amount, BUILDER_AMOUNT_DIVISOR, BUILDER_AMOUNT_DECIMALS),
            target_address=target.public_address,
            priority=translate_fee(spend_info.network_fee_option),
            is_sweep_tx=False,
        )
        print_info(f"Creating transaction: {json.dumps(asdict(options), indent=1)}")

        result = self.create_transaction(credentials, options)

        print_info(f"Total sent: {format_amount(result.total_sent)}, Fee: {format_amount(result.used_fee)}")
        record = TransactionRecord(
            txid=result.tx_hash,
            date=time.time(),
            block_height=0,
            native_amount="-" + result.total_sent,
            network_fee=result.used_fee,
            currency_code=PRIMARY_CURRENCY,
            wallet_id=self.wallet_id,
            is_send=True,
            memos=list(spend_info.memos),
            our_receive_addresses=[],
            signed_tx=result.serialized_signed_tx,
            tx_secret=result.tx_key,
        )
        print_warn(f"makeSpend transaction {clean_tx_logs(record)}")
        return record

    def broadcast(self, record: TransactionRecord) -> TransactionRecord:
        try:
            self.client.broadcast_transaction(record.signed_tx)
        except Exception as e:
            print_error(f"❌ broadcastTx failed: {e} {clean_tx_logs(record)}")
            if getattr(e, "status_code", None) == 422 or " 422 " in str(e):
                raise BroadcastRejectedError(BROADCAST_REJECTED_MESSAGE) from e
            raise
        print_success(f"✅ broadcastTx success {clean_tx_logs(record)}")
        return record
