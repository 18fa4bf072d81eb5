"""Tests for database connection manager."""
import json
import pytest
from unittest.mock import MagicMock, patch

from clearline.shared.database.connection import (
    DatabaseConfig,
    ConnectionManager,
    get_connection_manager,
)


def _manager_with_pool(cursor=None):
    manager = ConnectionManager(DatabaseConfig(host="localhost"))
    conn = MagicMock()
    cur = cursor or MagicMock()
    conn.cursor.return_value.__enter__.return_value = cur
    manager._pool = MagicMock()
    manager._pool.getconn.return_value = conn
    return manager, conn, cur


class TestDatabaseConfig:
    """Tests for DatabaseConfig dataclass."""

    def test_default_values(self):
        config = DatabaseConfig(host="localhost")

        assert config.host == "localhost"
        assert config.port == 5432
        assert config.database == "clearline"
        assert config.min_connections == 2
        assert config.max_connections == 10
        assert config.ssl_mode == "require"

    def test_from_env(self):
        with patch.dict("os.environ", {
            "DB_HOST": "env-host",
            "DB_PORT": "5434",
            "DB_NAME": "env_db",
            "DB_USER": "env_user",
            "DB_PASSWORD": "env_pass",
            "DB_MAX_CONN": "25",
        }):
            config = DatabaseConfig.from_env()

        assert config.host == "env-host"
        assert config.port == 5434
        assert config.database == "env_db"
        assert config.username == "env_user"
        assert config.password == "env_pass"
        assert config.max_connections == 25

    def test_config_is_immutable(self):
        config = DatabaseConfig(host="localhost")
        with pytest.raises(Exception):
            config.host = "other"

    def test_from_secrets_manager(self):
        secret = {
            "host": "secret-host",
            "port": 6543,
            "dbname": "secret_db",
            "username": "svc",
            "password": "pw",
        }
        client = MagicMock()
        client.get_secret_value.return_value = {"SecretString": json.dumps(secret)}

        with patch("boto3.client", return_value=client) as boto_client:
            config = DatabaseConfig.from_secrets_manager("arn:aws:secret:db", region="eu-west-1")

        boto_client.assert_called_once_with("secretsmanager", region_name="eu-west-1")
        assert config.host == "secret-host"
        assert config.port == 6543
        assert config.database == "secret_db"
        assert config.username == "svc"

    def test_from_secrets_manager_propagates_errors(self):
        client = MagicMock()
        client.get_secret_value.side_effect = RuntimeError("access denied")

        with patch("boto3.client", return_value=client):
            with pytest.raises(RuntimeError):
                DatabaseConfig.from_secrets_manager("arn:aws:secret:db")


class TestConnectionManager:
    """Tests for ConnectionManager."""

    def test_not_initialized_health(self):
        manager = ConnectionManager(DatabaseConfig(host="localhost"))

        assert manager.initialized is False
        assert manager.health_check() == {"status": "not_initialized", "healthy": False}

    def test_initialize_creates_pool(self):
        manager = ConnectionManager(DatabaseConfig(host="db", database="x"))

        with patch("psycopg2.pool.ThreadedConnectionPool") as pool_cls:
            manager.initialize()
            manager.initialize()

        pool_cls.assert_called_once()
        assert pool_cls.call_args.kwargs["host"] == "db"
        assert manager.initialized is True

    def test_get_connection_returns_to_pool(self):
        manager, conn, _ = _manager_with_pool()

        with manager.get_connection() as borrowed:
            assert borrowed is conn

        manager._pool.putconn.assert_called_once_with(conn)

    def test_get_connection_rolls_back_on_error(self):
        manager, conn, _ = _manager_with_pool()

        with pytest.raises(ValueError):
            with manager.get_connection():
                raise ValueError("boom")

        conn.rollback.assert_called_once()
        manager._pool.putconn.assert_called_once_with(conn)

    def test_health_check_connected(self):
        manager, _, cur = _manager_with_pool()

        result = manager.health_check()

        cur.execute.assert_called_once_with("SELECT 1")
        assert result["healthy"] is True
        assert result["status"] == "connected"

    def test_health_check_error(self):
        cur = MagicMock()
        cur.execute.side_effect = RuntimeError("connection refused")
        manager, _, _ = _manager_with_pool(cursor=cur)

        result = manager.health_check()

        assert result["healthy"] is False
        assert "connection refused" in result["error"]

    def test_close(self):
        manager, _, _ = _manager_with_pool()
        pool = manager._pool

        manager.close()

        pool.closeall.assert_called_once()
        assert manager.initialized is False


class TestGlobalManager:
    def test_get_connection_manager_is_singleton(self):
        with patch("clearline.shared.database.connection._connection_manager", None):
            first = get_connection_manager()
            with patch("clearline.shared.database.connection._connection_manager", first):
                assert get_connection_manager() is first

    def test_get_connection_manager_loads_secret(self):
        config = DatabaseConfig(host="secret-host")
        env = {"DB_SECRET_ARN": "arn:aws:secretsmanager:eu-west-1:1:secret:db", "AWS_REGION": "eu-west-1"}

        with patch.dict("os.environ", env), \
                patch("clearline.shared.database.connection._connection_manager", None), \
                patch.object(DatabaseConfig, "from_secrets_manager", return_value=config) as loader:
            manager = get_connection_manager()

        assert manager.config.host == "secret-host"
        loader.assert_called_once_with(env["DB_SECRET_ARN"], region="eu-west-1")
