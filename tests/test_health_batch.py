"""Tests for the all-users health batch and its CLI."""

from unittest.mock import patch

from conftest import TODAY, add_asset, add_transaction, add_user
from ledgerly.database.db import SQLiteStore
from ledgerly.database.store import StoreError
from ledgerly.health.batch import calculate_all_users, main


class FlakyStore(SQLiteStore):
    """SQLite store whose reads fail for one user."""

    failing_user = "user_2"

    def fetch(self, table, filters=(), **kwargs):
        if any(f[0] == "user_id" and f[2] == self.failing_user for f in filters):
            raise StoreError(table, "timeout")
        return super().fetch(table, filters, **kwargs)


def _seed_three_users(store):
    for user_id in ("user_1", "user_2", "user_3"):
        add_user(store, user_id)
        add_transaction(store, user_id, 1000, "income", "2024-05-01")
        add_transaction(store, user_id, 600, "expense", "2024-05-02")
        add_asset(store, user_id, 1200, "Conta Bancária")


class TestCalculateAllUsers:
    """Tests for calculate_all_users."""

    def test_one_failing_user_does_not_stop_the_batch(self, tmp_path):
        """Three users where the second fails: three results, the others persisted."""
        store = FlakyStore(str(tmp_path / "batch.db"))
        _seed_three_users(store)

        batch = calculate_all_users(store, TODAY)

        assert batch.processed == 3
        assert batch.succeeded == 2
        assert batch.failed == 1
        assert [r.user_id for r in batch.results] == ["user_1", "user_2", "user_3"]
        assert [r.success for r in batch.results] == [True, False, True]
        assert "timeout" in batch.results[1].error

        saved = {row["user_id"] for row in SQLiteStore(store.db_path).fetch("health_snapshots")}
        assert saved == {"user_1", "user_3"}

    def test_users_without_data_succeed_with_skipped_modes(self, store):
        add_user(store, "quiet")

        batch = calculate_all_users(store, TODAY)

        assert batch.succeeded == 1
        assert batch.results[0].modes_skipped == ["personal", "business"]
        assert store.fetch("health_snapshots") == []

    def test_rerun_is_idempotent(self, store):
        _seed_three_users(store)

        calculate_all_users(store, TODAY)
        calculate_all_users(store, TODAY)

        assert len(store.fetch("health_snapshots")) == 3

    def test_empty_store(self, store):
        batch = calculate_all_users(store, TODAY)

        assert batch.processed == 0
        assert batch.results == []


class TestBatchCli:
    """Tests for the command-line entry point."""

    def test_main_returns_zero_when_all_succeed(self, store, capsys):
        _seed_three_users(store)

        with patch("ledgerly.database.db_config.create_store", return_value=store):
            exit_code = main(["--sqlite", "--quiet", "--date", "2024-06-15"])

        assert exit_code == 0
        assert "Processed 3 users: 3 succeeded, 0 failed" in capsys.readouterr().out

    def test_main_returns_one_when_a_user_fails(self, tmp_path):
        store = FlakyStore(str(tmp_path / "cli.db"))
        _seed_three_users(store)

        with patch("ledgerly.database.db_config.create_store", return_value=store):
            exit_code = main(["--quiet"])

        assert exit_code == 1

    def test_main_single_user(self, store, capsys):
        _seed_three_users(store)

        with patch("ledgerly.database.db_config.create_store", return_value=store):
            exit_code = main(["--user-id", "user_1", "--quiet", "--date", "2024-06-15"])

        assert exit_code == 0
        assert "User user_1" in capsys.readouterr().out
        assert len(store.fetch("health_snapshots")) == 1
