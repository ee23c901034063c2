import json

import pytest

from beldexlib.core.engine import SYNC_INTERVAL_MILLISECONDS, make_currency_engine
from beldexlib.core.lightwallet import AddressInfo, LightwalletError, LoginResult
from beldexlib.core.local_data import TransactionRecord, WALLET_DATA_FILE
from beldexlib.core.scheduler import LoopName

from conftest import TEST_ADDRESS, make_raw_tx


class TestSyncCycle:
    def test_fresh_wallet_first_poll(self, running_engine, fake_client, callbacks, private_keys):
        fake_client.address_info = AddressInfo(block_height=100, total_received="500",
                                               total_sent="200", locked_balance="0")

        interval = running_engine.sync_network(private_keys)

        assert interval == SYNC_INTERVAL_MILLISECONDS
        assert running_engine.get_balance("BDX") == "300"
        assert running_engine.get_block_height() == 100
        assert callbacks.of("block_height") == [("block_height", 100)]
        assert callbacks.of("balance") == [("balance", "BDX", "300")]

    def test_balance_uses_exact_string_math(self, running_engine, fake_client, private_keys):
        fake_client.address_info = AddressInfo(block_height=1,
                                               total_received="100000000000000000000001",
                                               total_sent="99999999999999999999999",
                                               locked_balance="0")
        running_engine.sync_network(private_keys)
        assert running_engine.get_balance() == "2"

    def test_unchanged_address_info_is_silent(self, running_engine, fake_client, callbacks, private_keys):
        fake_client.address_info = AddressInfo(block_height=100, total_received="5", total_sent="0",
                                               locked_balance="3")
        running_engine.sync_network(private_keys)
        callbacks.events.clear()

        running_engine.sync_network(private_keys)

        assert callbacks.of("block_height") == []
        assert callbacks.of("balance") == []
        assert running_engine.local_data.locked_balance == "3"

    def test_network_failures_never_raise(self, running_engine, fake_client, private_keys):
        fake_client.login_error = LightwalletError("login failed: HTTP 500 boom", status_code=500)
        fake_client.address_error = LightwalletError("down")
        fake_client.transactions_error = ConnectionError("reset")

        assert running_engine.sync_network(private_keys) == SYNC_INTERVAL_MILLISECONDS
        assert running_engine.logged_in is False
        assert fake_client.calls["get_address_info"] == 1
        assert fake_client.calls["get_transactions"] == 1

    def test_login_retried_until_it_succeeds(self, running_engine, fake_client, private_keys):
        fake_client.login_error = LightwalletError("nope")
        running_engine.sync_network(private_keys)
        assert running_engine.logged_in is False

        fake_client.login_error = None
        running_engine.sync_network(private_keys)
        running_engine.sync_network(private_keys)

        assert running_engine.logged_in is True
        assert fake_client.calls["login"] == 2

    def test_login_without_new_address_keeps_trying(self, running_engine, fake_client, private_keys):
        fake_client.login_result = LoginResult(is_new_session=False)
        running_engine.sync_network(private_keys)
        running_engine.sync_network(private_keys)

        assert running_engine.logged_in is False
        assert fake_client.calls["login"] == 2
        assert not running_engine.timers.is_running(LoopName.SAVE_WALLET)

    def test_login_starts_persistence_loop(self, running_engine, fake_client, data_store, clock, private_keys):
        running_engine.sync_network(private_keys)

        assert running_engine.timers.is_running(LoopName.SAVE_WALLET)
        stored = json.loads(data_store.get_text(WALLET_DATA_FILE))
        assert stored["has_logged_in"] is True

        fake_client.address_info = AddressInfo(block_height=77, total_received="9", total_sent="0",
                                               locked_balance="0")
        running_engine.sync_network(private_keys)
        assert running_engine.local_data.dirty is True

        clock.advance(10)
        stored = json.loads(data_store.get_text(WALLET_DATA_FILE))
        assert stored["block_height"] == 77
        assert running_engine.local_data.dirty is False

    def test_results_dropped_when_engine_not_running(self, engine, fake_client, callbacks, private_keys):
        fake_client.address_info = AddressInfo(block_height=100, total_received="5", total_sent="0",
                                               locked_balance="0")
        fake_client.transactions = [make_raw_tx("a", received="5")]

        engine.sync_network(private_keys)

        assert engine.get_block_height() == 0
        assert engine.get_num_transactions() == 0
        assert callbacks.events == []

    def test_callback_errors_do_not_break_cycle(self, running_engine, fake_client, private_keys):
        def broken(*args):
            raise RuntimeError("ui exploded")

        running_engine.callbacks.on_block_height_changed = broken
        fake_client.address_info = AddressInfo(block_height=5, total_received="8", total_sent="0",
                                               locked_balance="0")

        running_engine.sync_network(private_keys)

        assert running_engine.get_balance() == "8"

    def test_malformed_address_amount_is_logged_not_raised(self, running_engine, fake_client,
                                                          callbacks, private_keys):
        fake_client.address_info = AddressInfo(block_height=100, total_received="None",
                                               total_sent="0", locked_balance="0")
        fake_client.transactions = [make_raw_tx("a", received="1")]

        assert running_engine.sync_network(private_keys) == SYNC_INTERVAL_MILLISECONDS

        assert running_engine.get_block_height() == 0
        assert callbacks.of("block_height") == []
        assert fake_client.calls["get_transactions"] == 1
        assert running_engine.get_num_transactions() == 1


class TestTransactionPass:
    def test_progress_reported_every_tenth_record(self, running_engine, fake_client, callbacks, private_keys):
        fake_client.address_info = AddressInfo(block_height=500, total_received="0", total_sent="0",
                                               locked_balance="0")
        fake_client.transactions = [
            make_raw_tx(f"tx{i}", height=i + 1, received="1", timestamp=f"2024-01-01T00:00:{i:02d}Z")
            for i in range(25)
        ]

        running_engine.sync_network(private_keys)

        fractions = [event[1] for event in callbacks.of("addresses_checked")]
        assert fractions == [0.0, 10 / 25, 20 / 25, 1.0]
        assert running_engine.addresses_checked is True
        assert running_engine.local_data.last_address_query_height == 500

        callbacks.events.clear()
        running_engine.sync_network(private_keys)
        assert callbacks.of("addresses_checked") == []

    def test_bad_record_does_not_abort_pass(self, running_engine, fake_client, callbacks, private_keys):
        fake_client.transactions = [
            make_raw_tx("odd-date", received="2", timestamp="bad"),
            make_raw_tx("broken", received="None"),
            make_raw_tx("ok", received="1"),
        ]

        running_engine.sync_network(private_keys)

        assert sorted(r.txid for r in running_engine.get_transactions()) == ["odd-date", "ok"]
        assert running_engine.addresses_checked is True
        assert callbacks.of("addresses_checked")[-1] == ("addresses_checked", 1.0)
        assert len(callbacks.of("transactions")) == 1

    def test_empty_history_counts_as_checked(self, running_engine, callbacks, private_keys):
        running_engine.sync_network(private_keys)
        assert callbacks.of("addresses_checked") == [("addresses_checked", 1.0)]

    def test_one_batch_per_pass(self, running_engine, fake_client, callbacks, private_keys):
        fake_client.transactions = [make_raw_tx("a", received="1"), make_raw_tx("b", received="2")]

        running_engine.sync_network(private_keys)

        batches = callbacks.of("transactions")
        assert len(batches) == 1
        assert sorted(r.txid for r in batches[0][1]) == ["a", "b"]
        assert running_engine.get_num_transactions() == 2

    def test_identical_second_pass_emits_nothing(self, running_engine, fake_client, callbacks, private_keys):
        fake_client.transactions = [make_raw_tx("a", height=3, received="1")]
        running_engine.sync_network(private_keys)
        running_engine.local_data.dirty = False
        callbacks.events.clear()

        running_engine.sync_network(private_keys)

        assert callbacks.of("transactions") == []
        assert running_engine.local_data.dirty is False

    def test_mempool_to_confirmed_keeps_stored_amount(self, running_engine, fake_client, callbacks, private_keys):
        fake_client.transactions = [make_raw_tx("a", mempool=True, received="100")]
        running_engine.sync_network(private_keys)
        callbacks.events.clear()

        fake_client.transactions = [make_raw_tx("a", height=50, received="90")]
        running_engine.sync_network(private_keys)

        record = running_engine.get_transactions()[0]
        assert record.native_amount == "100"
        assert record.block_height == 50
        batches = callbacks.of("transactions")
        assert len(batches) == 1
        assert len(batches[0][1]) == 1


class TestLifecycle:
    def test_start_replays_balances(self, engine, callbacks):
        engine.local_data.total_balances["BDX"] = "42"

        engine.start_engine()

        assert callbacks.events == [("balance", "BDX", "42")]
        assert engine.engine_on is True

    def test_stop_cancels_loops_and_silences_engine(self, running_engine, fake_client, callbacks, clock, private_keys):
        fake_client.address_info = AddressInfo(block_height=10, total_received="1", total_sent="0",
                                               locked_balance="0")
        running_engine.start_sync_loop(private_keys)
        clock.advance(0)
        assert fake_client.calls["get_address_info"] == 1
        assert running_engine.timers.is_running(LoopName.SYNC_NETWORK)
        assert running_engine.timers.is_running(LoopName.SAVE_WALLET)

        running_engine.kill_engine()
        events_at_stop = len(callbacks.events)
        fake_client.address_info = AddressInfo(block_height=11, total_received="2", total_sent="0",
                                               locked_balance="0")
        clock.advance(60)

        assert len(callbacks.events) == events_at_stop
        assert fake_client.calls["get_address_info"] == 1
        assert clock.active() == []
        assert running_engine.logged_in is False

    def test_sync_loop_repeats_on_interval(self, running_engine, fake_client, clock, private_keys):
        running_engine.start_sync_loop(private_keys)
        clock.advance(5)
        clock.advance(5)

        assert fake_client.calls["get_address_info"] == 3

    def test_sync_loop_first_cycle_runs_on_timer(self, running_engine, fake_client, clock, private_keys):
        running_engine.start_sync_loop(private_keys)
        assert fake_client.calls["get_address_info"] == 0

        clock.advance(0)
        assert fake_client.calls["get_address_info"] == 1

    def test_stop_during_login_leaves_no_save_loop(self, running_engine, clock, private_keys, monkeypatch):
        import beldexlib.core.engine as engine_module

        original_print_info = engine_module.print_info

        def stop_on_login(msg):
            original_print_info(msg)
            if "Logged into" in str(msg):
                running_engine.kill_engine()

        monkeypatch.setattr(engine_module, "print_info", stop_on_login)

        running_engine.sync_network(private_keys)

        assert running_engine.engine_on is False
        assert not running_engine.timers.is_running(LoopName.SAVE_WALLET)
        assert clock.active() == []

    def test_loops_refused_after_stop_until_restart(self, running_engine, private_keys):
        running_engine.kill_engine()
        assert running_engine.timers.add(LoopName.SAVE_WALLET, lambda: None, 1000) is None

        running_engine.start_engine()
        running_engine.start_sync_loop(private_keys)
        assert running_engine.timers.is_running(LoopName.SYNC_NETWORK)

    def test_sync_loop_needs_running_engine(self, engine, fake_client, private_keys):
        engine.start_sync_loop(private_keys)
        assert fake_client.calls["get_address_info"] == 0

    def test_in_flight_result_after_stop_is_discarded(self, running_engine, fake_client, callbacks, private_keys):
        fake_client.transactions = [make_raw_tx("late", received="1")]
        fake_client.on_get_transactions = running_engine.kill_engine

        running_engine.sync_network(private_keys)

        assert running_engine.get_num_transactions() == 0
        assert callbacks.of("transactions") == []

    def test_resync_rebuilds_snapshot(self, running_engine, fake_client, data_store, callbacks, private_keys):
        fake_client.address_info = AddressInfo(block_height=100, total_received="500", total_sent="0",
                                               locked_balance="0")
        fake_client.transactions = [make_raw_tx("a", height=90, received="500")]
        running_engine.sync_network(private_keys)
        assert running_engine.addresses_checked is True

        running_engine.resync_blockchain()

        assert running_engine.engine_on is True
        assert running_engine.logged_in is False
        assert running_engine.addresses_checked is False
        assert running_engine.get_block_height() == 0
        assert running_engine.get_num_transactions() == 0
        assert fake_client.calls["clear_key_image_cache"] == 1
        stored = json.loads(data_store.get_text(WALLET_DATA_FILE))
        assert stored["block_height"] == 0
        assert stored["beldex_address"] == TEST_ADDRESS
        assert stored["transactions"] == {"BDX": []}

    def test_resync_resumes_engine_driven_loop(self, running_engine, clock, private_keys):
        running_engine.start_sync_loop(private_keys)
        running_engine.resync_blockchain()
        assert running_engine.timers.is_running(LoopName.SYNC_NETWORK)

    def test_engine_loads_stored_snapshot(self, wallet_info, data_store, fake_client, clock, running_engine, private_keys):
        fake_client.address_info = AddressInfo(block_height=321, total_received="10", total_sent="4",
                                               locked_balance="0")
        running_engine.sync_network(private_keys)
        running_engine.save_wallet_loop()

        reloaded = make_currency_engine(wallet_info, data_store, client=fake_client,
                                        timer_factory=clock.timer_factory)

        assert reloaded.get_block_height() == 321
        assert reloaded.get_balance() == "6"


class TestQueries:
    def test_save_tx_stores_and_notifies(self, running_engine, callbacks):
        record = TransactionRecord(txid="out", date=1.0, block_height=0, native_amount="-5", is_send=True)

        running_engine.save_tx(record)

        assert running_engine.get_num_transactions() == 1
        assert callbacks.of("transactions") == [("transactions", [record])]
        assert running_engine.local_data.dirty is True

    def test_unknown_currency_defaults(self, running_engine):
        assert running_engine.get_balance("XYZ") == "0"
        assert running_engine.get_num_transactions("XYZ") == 0
        assert running_engine.get_transactions("XYZ") == []

    def test_fresh_address_and_seeds(self, running_engine, private_keys):
        assert running_engine.get_fresh_address() == {"public_address": TEST_ADDRESS}
        assert running_engine.get_display_private_seed(private_keys) == "seed words here"
        assert running_engine.get_display_public_seed() == "a" * 64

    def test_token_support_is_stubbed(self, running_engine):
        running_engine.enable_tokens(["ABC"])
        assert running_engine.get_enabled_tokens() == []
        assert running_engine.get_token_status("ABC") is False
        assert running_engine.is_address_used(TEST_ADDRESS) is False

    def test_dump_data(self, running_engine):
        dump = running_engine.dump_data()
        assert dump["wallet_id"] == "wallet-1"
        assert dump["plugin_type"] == "beldex"
        assert dump["data"]["wallet_local_data"]["beldex_address"] == TEST_ADDRESS

    def test_change_user_settings_switches_server(self, running_engine, fake_client):
        running_engine.change_user_settings({
            "enable_custom_servers": True,
            "beldex_lightwallet_server": "https://lws.example",
        })
        assert fake_client.server == "https://lws.example"

        running_engine.change_user_settings({})
        assert fake_client.server == "http://127.0.0.1:8443"

    def test_invalid_private_keys_rejected(self, running_engine):
        with pytest.raises(ValueError):
            running_engine.sync_network({"beldex_spend_key_private": "short"})
