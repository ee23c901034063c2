import pytest
import tempfile
from collections import Counter

from beldexlib.core.callbacks import EngineCallbacks
from beldexlib.core.engine import make_currency_engine
from beldexlib.core.lightwallet import (
    AddressInfo,
    CreatedTransaction,
    LoginResult,
    RemoteClient,
    RemoteTransaction,
)
from beldexlib.storage.database import FileDataStore

TEST_ADDRESS = "bx" + "A" * 95
TEST_VIEW_KEY = "a" * 64
TEST_SPEND_PRIVATE = "b" * 64
TEST_SPEND_PUBLIC = "c" * 64
DESTINATION = "bx" + "D" * 95


class FakeLightwalletClient(RemoteClient):
    """RemoteClient double that counts calls and replays canned answers"""

    def __init__(self):
        self.calls = Counter()
        self.login_result = LoginResult(is_new_session=True)
        self.login_error = None
        self.address_info = AddressInfo(block_height=0, total_received="0", total_sent="0", locked_balance="0")
        self.address_error = None
        self.transactions = []
        self.transactions_error = None
        self.created = CreatedTransaction(
            total_sent="1000000000",
            used_fee="2500000",
            serialized_signed_tx="signed-hex",
            tx_hash="f" * 64,
            tx_key="tx-secret-key",
            final_total_wo_fee="4997500000",
        )
        self.create_error = None
        self.create_options = []
        self.broadcast_error = None
        self.broadcasted = []
        self.server = None
        self.on_get_transactions = None

    def login(self, credentials):
        self.calls["login"] += 1
        if self.login_error:
            raise self.login_error
        return self.login_result

    def get_address_info(self, credentials):
        self.calls["get_address_info"] += 1
        if self.address_error:
            raise self.address_error
        return self.address_info

    def get_transactions(self, credentials):
        self.calls["get_transactions"] += 1
        if self.on_get_transactions:
            self.on_get_transactions()
        if self.transactions_error:
            raise self.transactions_error
        return list(self.transactions)

    def create_transaction(self, credentials, options):
        self.calls["create_transaction"] += 1
        self.create_options.append(options)
        if self.create_error:
            raise self.create_error
        return self.created

    def broadcast_transaction(self, signed_tx):
        self.calls["broadcast_transaction"] += 1
        if self.broadcast_error:
            raise self.broadcast_error
        self.broadcasted.append(signed_tx)

    def change_server(self, server, api_key=""):
        self.calls["change_server"] += 1
        self.server = server

    def clear_key_image_cache(self):
        self.calls["clear_key_image_cache"] += 1


class RecordingCallbacks(EngineCallbacks):
    def __init__(self):
        self.events = []
        super().__init__(
            on_block_height_changed=lambda height: self.events.append(("block_height", height)),
            on_balance_changed=lambda code, amount: self.events.append(("balance", code, amount)),
            on_addresses_checked=lambda fraction: self.events.append(("addresses_checked", fraction)),
            on_transactions_changed=lambda batch: self.events.append(("transactions", list(batch))),
        )

    def of(self, kind):
        return [event for event in self.events if event[0] == kind]


class FakeTimer:
    def __init__(self, clock, interval, function):
        self.clock = clock
        self.interval = interval
        self.function = function
        self.daemon = False
        self.cancelled = False
        self.due = None

    def start(self):
        self.due = self.clock.now + self.interval
        self.clock.pending.append(self)

    def cancel(self):
        self.cancelled = True


class FakeClock:
    """Stands in for threading.Timer; time only moves on advance()"""

    def __init__(self):
        self.now = 0.0
        self.pending = []

    def timer_factory(self, interval, function):
        return FakeTimer(self, interval, function)

    def active(self):
        return [timer for timer in self.pending if not timer.cancelled]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = sorted(
                (t for t in self.pending if not t.cancelled and t.due <= target),
                key=lambda t: t.due,
            )
            if not due:
                break
            timer = due[0]
            self.pending.remove(timer)
            self.now = timer.due
            timer.function()
        self.now = target


def make_raw_tx(tx_hash, height=0, mempool=False, received="0", sent="0",
                timestamp="2024-01-01T00:00:00Z", fee=None, payment_id=None):
    return RemoteTransaction(
        hash=tx_hash,
        height=height,
        mempool=mempool,
        timestamp=timestamp,
        total_received=received,
        total_sent=sent,
        fee=fee,
        payment_id=payment_id,
    )


@pytest.fixture
def temp_dir():
    """Create temporary directory for test data"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def wallet_info():
    return {
        "id": "wallet-1",
        "type": "wallet:beldex",
        "keys": {
            "beldex_address": TEST_ADDRESS,
            "beldex_view_key_private": TEST_VIEW_KEY,
        },
    }


@pytest.fixture
def private_keys():
    return {
        "beldex_key": "seed words here",
        "beldex_spend_key_private": TEST_SPEND_PRIVATE,
        "beldex_spend_key_public": TEST_SPEND_PUBLIC,
    }


@pytest.fixture
def fake_client():
    return FakeLightwalletClient()


@pytest.fixture
def callbacks():
    return RecordingCallbacks()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def data_store(temp_dir):
    return FileDataStore(temp_dir)


@pytest.fixture
def engine(wallet_info, data_store, callbacks, fake_client, clock):
    """Engine wired to fakes; not started"""
    return make_currency_engine(
        wallet_info,
        data_store,
        callbacks=callbacks,
        client=fake_client,
        timer_factory=clock.timer_factory,
    )


@pytest.fixture
def running_engine(engine, callbacks):
    engine.start_engine()
    callbacks.events.clear()
    return engine
