"""
DatabaseManager Tests — named connection cache.
"""

import threading

import pytest

from tessera.config import DatabaseConfig
from tessera.db.backends import SQLiteAdapter
from tessera.db.manager import DatabaseManager
from tessera.faults import TransactionFault, UnknownConnectionFault, UnsupportedDriverFault


def build_manager(**connections) -> DatabaseManager:
    connections = connections or {"main": {"driver": "sqlite", "database": ":memory:"}}
    return DatabaseManager(DatabaseConfig.from_dict({"connections": connections}))


@pytest.fixture
def manager():
    mgr = build_manager(
        main={"driver": "sqlite", "database": ":memory:"},
        other={"driver": "sqlite3", "database": ":memory:"},
    )
    yield mgr
    mgr.disconnect_all()


class TestConnectionCache:
    """Test lazy creation and caching."""

    def test_same_instance_until_disconnect(self, manager):
        first = manager.connection("main")
        assert manager.connection("main") is first
        manager.disconnect("main")
        second = manager.connection("main")
        assert second is not first
        assert first.is_connected is False
        assert second.is_connected is True

    def test_default_connection(self, manager):
        assert manager.default_connection == "main"
        assert manager.connection() is manager.connection("main")

    def test_connections_are_independent(self, manager):
        main = manager.connection("main")
        other = manager.connection("other")
        assert main is not other
        assert sorted(manager.get_connections()) == ["main", "other"]

    def test_unknown_connection(self, manager):
        with pytest.raises(UnknownConnectionFault):
            manager.connection("missing")

    def test_unsupported_driver(self):
        mgr = build_manager(legacy={"driver": "oracle", "database": "x"})
        with pytest.raises(UnsupportedDriverFault):
            mgr.connection("legacy")

    def test_disconnect_unknown_is_noop(self, manager):
        manager.disconnect("other")
        assert manager.get_connections() == {}

    def test_disconnect_all(self, manager):
        main = manager.connection("main")
        other = manager.connection("other")
        manager.disconnect_all()
        assert manager.get_connections() == {}
        assert not main.is_connected
        assert not other.is_connected

    def test_reconnect(self, manager):
        first = manager.connection("main")
        second = manager.reconnect("main")
        assert second is not first
        assert second.scalar("SELECT 1") == 1

    def test_set_default_connection(self, manager):
        manager.set_default_connection("other")
        assert manager.connection() is manager.connection("other")

    def test_set_default_connection_unknown(self, manager):
        with pytest.raises(UnknownConnectionFault):
            manager.set_default_connection("missing")

    def test_concurrent_first_use_builds_one_connection(self):
        mgr = build_manager(main={"driver": "sqlite", "database": ":memory:", "check_same_thread": False})
        barrier = threading.Barrier(8)
        seen = []

        def grab():
            barrier.wait()
            seen.append(mgr.connection("main"))

        threads = [threading.Thread(target=grab) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len({id(c) for c in seen}) == 1
        mgr.disconnect_all()


class TestExtension:
    """Test custom adapter factories."""

    def test_extend_replaces_factory(self):
        built = []

        class TrackingAdapter(SQLiteAdapter):
            pass

        def factory(config):
            built.append(config.name)
            return TrackingAdapter()

        mgr = build_manager()
        mgr.extend("sqlite", factory)
        conn = mgr.connection("main")
        assert built == ["main"]
        assert isinstance(conn.adapter, TrackingAdapter)
        mgr.disconnect_all()

    def test_table_shortcut(self, manager):
        conn = manager.connection("main")
        conn.statement("CREATE TABLE widgets (id INTEGER PRIMARY KEY, name TEXT)")
        conn.statement("INSERT INTO widgets (name) VALUES (?)", ["Foo"])
        assert manager.table("widgets").pluck("name") == ["Foo"]


class TestTransactionShortcuts:
    """Test transaction control forwarded to a managed connection."""

    @pytest.fixture
    def main(self, manager):
        conn = manager.connection("main")
        conn.statement("CREATE TABLE widgets (id INTEGER PRIMARY KEY, name TEXT)")
        return conn

    def test_manual_commit_and_rollback(self, manager, main):
        manager.begin_transaction()
        main.table("widgets").insert({"name": "kept"})
        manager.commit()
        manager.begin_transaction()
        main.table("widgets").insert({"name": "dropped"})
        assert manager.connection().in_transaction()
        manager.rollback()
        assert main.table("widgets").pluck("name") == ["kept"]
        assert not main.in_transaction()

    def test_context_manager(self, manager, main):
        with pytest.raises(RuntimeError):
            with manager.transaction():
                main.table("widgets").insert({"name": "dropped"})
                raise RuntimeError("abort")
        assert main.table("widgets").count() == 0

    def test_named_connection(self, manager, main):
        other = manager.connection("other")
        manager.begin_transaction("other")
        assert other.in_transaction()
        assert not main.in_transaction()
        manager.rollback("other")

    def test_commit_without_transaction(self, manager):
        with pytest.raises(TransactionFault):
            manager.commit()
