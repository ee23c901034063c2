# beldexlib/core/engine.py
"""
Beldex currency engine

Keeps one address's BeldexLocalData in step with a lightwallet server:

1. Logs in until the server acknowledges the address
2. Polls address info for block height, balance and locked funds
3. Polls the transaction list and reconciles it into local history
4. Persists the snapshot on its own write-behind loop
5. Builds and broadcasts single-output spends

All reads and writes of the snapshot happen under ``state_lock``; results
of network calls that come back after ``kill_engine`` are dropped.
"""

import threading
from typing import Dict, List, Optional, Union

from beldexlib.config import get_int
from beldexlib.currency_info import CURRENCY_INFO, PRIMARY_CURRENCY
from beldexlib.core.callbacks import EngineCallbacks
from beldexlib.core.lightwallet import LightwalletClient, RemoteClient, WalletCredentials
from beldexlib.core.local_data import BeldexLocalData, TransactionRecord
from beldexlib.core.persistence import PersistenceGate
from beldexlib.core.reconciler import TransactionReconciler
from beldexlib.core.scheduler import LoopName, LoopTimers
from beldexlib.core.spend import SpendInfo, SpendWorkflow
from beldexlib.core.wallet_info import BeldexUserSettings, PrivateKeys, SafeWalletInfo
from beldexlib.utils.amounts import sub
from beldexlib.utils.console import print_debug, print_error, print_info, print_warn

SYNC_INTERVAL_MILLISECONDS = 5000
SAVE_DATASTORE_MILLISECONDS = 10000
PROGRESS_STRIDE = 10

KeysArg = Union[Dict, PrivateKeys]
SpendArg = Union[Dict, SpendInfo]


class BeldexEngine:
    def __init__(self, wallet_info: SafeWalletInfo, data_store,
                 callbacks: Optional[EngineCallbacks] = None,
                 client: Optional[RemoteClient] = None,
                 user_settings: Optional[Dict] = None,
                 api_key: str = "",
                 timer_factory=threading.Timer):
        self.wallet_info = wallet_info
        self.wallet_id = wallet_info.id
        self.callbacks = callbacks or EngineCallbacks()
        self.api_key = api_key
        self.client = client or LightwalletClient(api_key=api_key)
        self.persistence = PersistenceGate(data_store)
        self.timers = LoopTimers(timer_factory)

        self.sync_interval_ms = get_int("BELDEXLIB_SYNC_INTERVAL_MS", SYNC_INTERVAL_MILLISECONDS)
        self.save_interval_ms = get_int("BELDEXLIB_SAVE_INTERVAL_MS", SAVE_DATASTORE_MILLISECONDS)
        self.progress_stride = max(1, get_int("BELDEXLIB_PROGRESS_STRIDE", PROGRESS_STRIDE))

        self.engine_on = False
        self.logged_in = False
        self.addresses_checked = False

        self.state_lock = threading.RLock()
        self._sync_lock = threading.Lock()
        self._sync_loop_keys: Optional[PrivateKeys] = None

        self.local_data = BeldexLocalData.fresh(
            wallet_info.beldex_address, wallet_info.beldex_view_key_private
        )
        self.reconciler = TransactionReconciler(
            self.local_data, self.wallet_id, wallet_info.beldex_address
        )
        self.spend_workflow = SpendWorkflow(self.client, self.wallet_id)

        self.current_settings = BeldexUserSettings.from_dict(user_settings)
        if self.current_settings.enable_custom_servers and self.current_settings.beldex_lightwallet_server:
            self.client.change_server(self.current_settings.beldex_lightwallet_server, "")

        print_info(f"Created wallet type {wallet_info.type} for currency plugin {CURRENCY_INFO['plugin_id']}")

    # =========================================================================
    # Setup helpers
    # =========================================================================

    def load_local_data(self) -> None:
        local_data = self.persistence.load(
            self.wallet_info.beldex_address, self.wallet_info.beldex_view_key_private
        )
        with self.state_lock:
            self._set_local_data(local_data)

    def _set_local_data(self, local_data: BeldexLocalData) -> None:
        self.local_data = local_data
        self.reconciler.local_data = local_data
        self.reconciler.clear()

    def _credentials(self, private_keys: PrivateKeys) -> WalletCredentials:
        return WalletCredentials(
            address=self.wallet_info.beldex_address,
            view_key_private=self.wallet_info.beldex_view_key_private,
            spend_key_private=private_keys.beldex_spend_key_private,
            spend_key_public=private_keys.beldex_spend_key_public,
        )

    # =========================================================================
    # Sync cycle
    # =========================================================================

    def login_if_new_address(self, private_keys: PrivateKeys) -> None:
        try:
            result = self.client.login(self._credentials(private_keys))
        except Exception as e:
            print_error(f"❌ Error logging into beldex: {e}")
            return

        with self.state_lock:
            if not self.engine_on or not result.is_new_session or self.logged_in:
                return
            self.logged_in = True
            self.local_data.has_logged_in = True
            self.local_data.dirty = True
            print_info("🔓 Logged into lightwallet server")
            # Registered under the lock; LoopTimers refuses new loops once kill_engine closed it
            if self.engine_on:
                self.timers.add(LoopName.SAVE_WALLET, self.save_wallet_loop, self.save_interval_ms)

    def check_address_inner_loop(self, private_keys: PrivateKeys) -> None:
        try:
            addr_result = self.client.get_address_info(self._credentials(private_keys))
            native_balance = sub(addr_result.total_received, addr_result.total_sent)
        except Exception as e:
            print_error(f"❌ Error fetching address info: {self.wallet_info.beldex_address} {e}")
            return

        with self.state_lock:
            if not self.engine_on:
                return
            local_data = self.local_data

            if local_data.block_height != addr_result.block_height:
                local_data.block_height = addr_result.block_height
                local_data.dirty = True
                self.callbacks.emit("on_block_height_changed", local_data.block_height)

            if local_data.total_balances.get(PRIMARY_CURRENCY) != native_balance:
                local_data.total_balances[PRIMARY_CURRENCY] = native_balance
                local_data.dirty = True
                self.callbacks.emit("on_balance_changed", PRIMARY_CURRENCY, native_balance)

            if local_data.locked_balance != addr_result.locked_balance:
                local_data.locked_balance = addr_result.locked_balance
                local_data.dirty = True

    def update_on_addresses_checked(self, num_tx: int, total_txs: int) -> None:
        if self.addresses_checked:
            return
        if num_tx != total_txs:
            self.callbacks.emit("on_addresses_checked", num_tx / total_txs)
        else:
            self.addresses_checked = True
            self.callbacks.emit("on_addresses_checked", 1.0)
            self.local_data.last_address_query_height = self.local_data.block_height
            self.local_data.dirty = True

    def check_transactions_inner_loop(self, private_keys: PrivateKeys) -> None:
        try:
            transactions = self.client.get_transactions(self._credentials(private_keys))
        except Exception as e:
            print_error(f"❌ checkTransactionsInnerLoop: {e}")
            return

        print_debug(f"DEBUG: Fetched transactions count: {len(transactions)}")
        with self.state_lock:
            if not self.engine_on:
                return
            total = len(transactions)
            for i, tx in enumerate(transactions):
                try:
                    self.reconciler.reconcile(tx)
                except Exception as e:
                    print_error(f"❌ checkTransactionsInnerLoop: skipping {tx.hash}: {e}")
                if i % self.progress_stride == 0:
                    self.update_on_addresses_checked(i, total)
            self.update_on_addresses_checked(total, total)

            batch = self.reconciler.drain_changed()
            if batch:
                self.callbacks.emit("on_transactions_changed", batch)

    def sync_network(self, private_keys: KeysArg) -> int:
        """Run one sync cycle and return the recommended delay before the next."""
        keys = PrivateKeys.from_dict(private_keys)
        if not self._sync_lock.acquire(blocking=False):
            print_warn("⚠️  Sync already in progress")
            return self.sync_interval_ms
        try:
            if not self.logged_in:
                self.login_if_new_address(keys)
            self.check_address_inner_loop(keys)
            self.check_transactions_inner_loop(keys)
        finally:
            self._sync_lock.release()
        return self.sync_interval_ms

    def start_sync_loop(self, private_keys: KeysArg) -> None:
        """Let the engine drive sync_network on its own timer.

        Returns at once; the first cycle runs on the timer thread.
        """
        keys = PrivateKeys.from_dict(private_keys)
        if not self.engine_on:
            print_warn("⚠️  Engine is not running; sync loop not started")
            return
        self._sync_loop_keys = keys
        self.timers.add(LoopName.SYNC_NETWORK, lambda: self.sync_network(keys), self.sync_interval_ms,
                        run_now=False)

    def save_wallet_loop(self) -> None:
        with self.state_lock:
            self.persistence.flush_if_dirty(self.local_data)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def do_initial_callbacks(self) -> None:
        for currency_code in self.local_data.enabled_tokens:
            self.callbacks.emit(
                "on_balance_changed",
                currency_code,
                self.local_data.total_balances.get(currency_code, "0"),
            )

    def start_engine(self) -> None:
        with self.state_lock:
            self.engine_on = True
            self.timers.reopen()
            self.do_initial_callbacks()

    def kill_engine(self) -> None:
        with self.state_lock:
            self.engine_on = False
            self.logged_in = False
            self.timers.cancel_all()

    def resync_blockchain(self) -> None:
        resume_sync_loop = self.timers.is_running(LoopName.SYNC_NETWORK)
        self.kill_engine()
        self.client.clear_key_image_cache()
        with self.state_lock:
            local_data = BeldexLocalData.fresh(
                self.wallet_info.beldex_address,
                self.wallet_info.beldex_view_key_private,
                enabled_tokens=self.local_data.enabled_tokens,
            )
            local_data.dirty = True
            self._set_local_data(local_data)
            self.addresses_checked = False
            self.persistence.force_flush(self.local_data)
        self.start_engine()
        if resume_sync_loop and self._sync_loop_keys is not None:
            self.start_sync_loop(self._sync_loop_keys)

    def change_user_settings(self, user_settings: Dict) -> None:
        self.current_settings = BeldexUserSettings.from_dict(user_settings)
        settings = self.current_settings
        if settings.enable_custom_servers and settings.beldex_lightwallet_server:
            self.client.change_server(settings.beldex_lightwallet_server, "")
        else:
            default_server = CURRENCY_INFO["default_settings"]["beldex_lightwallet_server"]
            self.client.change_server(default_server, self.api_key)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_block_height(self) -> int:
        with self.state_lock:
            return self.local_data.block_height

    def get_balance(self, currency_code: str = PRIMARY_CURRENCY) -> str:
        with self.state_lock:
            return self.local_data.total_balances.get(currency_code, "0")

    def get_num_transactions(self, currency_code: str = PRIMARY_CURRENCY) -> int:
        with self.state_lock:
            return len(self.local_data.transactions.get(currency_code, []))

    def get_transactions(self, currency_code: str = PRIMARY_CURRENCY) -> List[TransactionRecord]:
        with self.state_lock:
            return list(self.local_data.transactions.get(currency_code, []))

    def get_fresh_address(self) -> Dict:
        return {"public_address": self.wallet_info.beldex_address}

    def add_gap_limit_addresses(self, addresses: List[str]) -> None:
        pass

    def is_address_used(self, address: str) -> bool:
        return False

    # Tokens are not supported on Beldex
    def enable_tokens(self, tokens: List[str]) -> None:
        pass

    def disable_tokens(self, tokens: List[str]) -> None:
        pass

    def get_enabled_tokens(self) -> List[str]:
        return []

    def add_custom_token(self, token: Dict) -> None:
        pass

    def get_token_status(self, token: str) -> bool:
        return False

    # =========================================================================
    # Spending
    # =========================================================================

    def get_max_spendable(self, spend_info: SpendArg, private_keys: KeysArg) -> str:
        keys = PrivateKeys.from_dict(private_keys)
        info = spend_info if isinstance(spend_info, SpendInfo) else SpendInfo.from_dict(spend_info)
        return self.spend_workflow.get_max_spendable(info, self._credentials(keys))

    def make_spend(self, spend_info: SpendArg, private_keys: KeysArg) -> TransactionRecord:
        keys = PrivateKeys.from_dict(private_keys)
        info = spend_info if isinstance(spend_info, SpendInfo) else SpendInfo.from_dict(spend_info)
        with self.state_lock:
            total_balance = self.local_data.total_balances.get(PRIMARY_CURRENCY, "0")
            locked_balance = self.local_data.locked_balance
        return self.spend_workflow.make_spend(info, self._credentials(keys), total_balance, locked_balance)

    def sign_tx(self, transaction: TransactionRecord, private_keys: Optional[Dict] = None) -> TransactionRecord:
        # Already signed by the builder in make_spend
        return transaction

    def broadcast_tx(self, transaction: TransactionRecord) -> TransactionRecord:
        return self.spend_workflow.broadcast(transaction)

    def save_tx(self, transaction: TransactionRecord) -> None:
        with self.state_lock:
            self.reconciler.upsert(transaction, queue_change=False)
            self.callbacks.emit("on_transactions_changed", [transaction])

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def get_display_private_seed(self, private_keys: KeysArg) -> str:
        return PrivateKeys.from_dict(private_keys).beldex_key

    def get_display_public_seed(self) -> str:
        return self.wallet_info.beldex_view_key_private or ""

    def dump_data(self) -> Dict:
        with self.state_lock:
            return {
                "wallet_id": self.wallet_id,
                "wallet_type": self.wallet_info.type,
                "plugin_type": CURRENCY_INFO["plugin_id"],
                "data": {
                    "wallet_local_data": self.local_data.to_dict(),
                    "engine_on": self.engine_on,
                    "logged_in": self.logged_in,
                    "addresses_checked": self.addresses_checked,
                    "dirty": self.local_data.dirty,
                },
            }


def make_currency_engine(wallet_info: Union[Dict, SafeWalletInfo], data_store,
                         callbacks: Optional[EngineCallbacks] = None,
                         client: Optional[RemoteClient] = None,
                         user_settings: Optional[Dict] = None,
                         api_key: str = "",
                         timer_factory=threading.Timer) -> BeldexEngine:
    """Build an engine and load its stored snapshot."""
    safe_info = wallet_info if isinstance(wallet_info, SafeWalletInfo) else SafeWalletInfo.from_dict(wallet_info)
    engine = BeldexEngine(
        safe_info,
        data_store,
        callbacks=callbacks,
        client=client,
        user_settings=user_settings,
        api_key=api_key,
        timer_factory=timer_factory,
    )
    engine.load_local_data()
    return engine
