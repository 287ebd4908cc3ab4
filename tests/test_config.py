import json

import pytest
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from linker_app.config import (
    DEFAULT_CONFIG,
    DEFAULT_TIMEOUT,
    DatabaseSettings,
    Settings,
    load_settings,
    parse_listen_address,
)
from linker_app.database.connection import build_database_url, create_db_engine, driver_connect_args
from linker_app.errors import ConfigError


def write_config(tmp_path, data):
    path = tmp_path / "linker.conf"
    path.write_text(data if isinstance(data, str) else json.dumps(data))
    return str(path)


class TestLoadSettings:
    """Test loading the JSON configuration file"""

    def test_default_config_loads(self, tmp_path):
        settings = load_settings(write_config(tmp_path, DEFAULT_CONFIG))
        assert settings.listen == "0.0.0.0:80"
        assert settings.timeout == 5
        assert settings.default == "https://duckduckgo.com"
        assert settings.db.name == "linker"
        assert settings.db.username == "linker_user"
        assert settings.tls_enabled is False

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, {"listen": ":8080", "db": {"url": "sqlite://"}})
        monkeypatch.setenv("LINKER_CONFIG", path)
        settings = load_settings()
        assert settings.listen == ":8080"
        assert settings.db.url == "sqlite://"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="unable to access"):
            load_settings(str(tmp_path / "nope.conf"))

    def test_directory(self, tmp_path):
        with pytest.raises(ConfigError, match="is a directory"):
            load_settings(str(tmp_path))

    def test_invalid_json(self, tmp_path):
        with pytest.raises(ConfigError, match="unable to parse") as excinfo:
            load_settings(write_config(tmp_path, "{not json"))
        assert excinfo.value.__cause__ is not None

    def test_invalid_values(self, tmp_path):
        with pytest.raises(ConfigError, match="unable to parse"):
            load_settings(write_config(tmp_path, {"timeout": 900, "db": {"url": "sqlite://"}}))

    def test_missing_database_block(self, tmp_path):
        with pytest.raises(ConfigError, match="valid database configuration"):
            load_settings(write_config(tmp_path, {"db": {"name": "linker"}}))

    def test_zero_timeout_uses_default(self):
        assert Settings(timeout=0).effective_timeout == DEFAULT_TIMEOUT
        assert Settings(timeout=30).effective_timeout == 30


class TestListenAddress:
    """Test splitting the listen address"""

    @pytest.mark.parametrize("listen, expected", [
        ("0.0.0.0:80", ("0.0.0.0", 80)),
        ("127.0.0.1:8080", ("127.0.0.1", 8080)),
        (":8080", ("0.0.0.0", 8080)),
        ("[::1]:443", ("::1", 443)),
    ])
    def test_valid(self, listen, expected):
        assert parse_listen_address(listen) == expected

    @pytest.mark.parametrize("listen", ["localhost", "host:port", "host:70000", ""])
    def test_invalid(self, listen):
        with pytest.raises(ConfigError):
            parse_listen_address(listen)


class TestDatabaseURL:
    """Test building the SQLAlchemy URL from the db block"""

    def test_from_fields(self):
        url = build_database_url(DatabaseSettings(
            name="linker", server="db.local:3307", username="user", password="p@ss"
        ))
        assert url.drivername == "mysql+pymysql"
        assert url.host == "db.local"
        assert url.port == 3307
        assert url.username == "user"
        assert url.password == "p@ss"
        assert url.database == "linker"

    def test_go_style_server(self):
        url = build_database_url(DatabaseSettings(
            name="linker", server="tcp(localhost:3306)", username="user"
        ))
        assert url.host == "localhost"
        assert url.port == 3306

    def test_url_override(self):
        url = build_database_url(DatabaseSettings(url="sqlite:///links.db"))
        assert url.get_backend_name() == "sqlite"

    def test_incomplete(self):
        with pytest.raises(ConfigError):
            build_database_url(DatabaseSettings(server="localhost"))

    def test_bad_port(self):
        with pytest.raises(ConfigError):
            build_database_url(DatabaseSettings(name="l", server="localhost:abc", username="u"))

    def test_malformed_url(self):
        with pytest.raises(ConfigError, match="invalid database URL") as excinfo:
            build_database_url(DatabaseSettings(url="not a url"))
        assert isinstance(excinfo.value.__cause__, ArgumentError)


class TestCreateEngine:
    """Test engine creation and driver arguments"""

    def test_unknown_driver(self):
        url = build_database_url(DatabaseSettings(
            name="linker", server="localhost", username="user", driver="nosuchdb"
        ))
        with pytest.raises(ConfigError, match="unable to load database driver") as excinfo:
            create_db_engine(url)
        assert isinstance(excinfo.value.__cause__, ArgumentError)

    def test_sqlite_shares_connections_across_threads(self):
        args = driver_connect_args(make_url("sqlite:///links.db"), timeout=5)
        assert args == {"check_same_thread": False}

    def test_mysql_queries_bounded_by_timeout(self):
        url = build_database_url(DatabaseSettings(name="linker", server="localhost", username="user"))
        assert driver_connect_args(url, timeout=5) == {"read_timeout": 5, "write_timeout": 5}
        assert driver_connect_args(url) == {}
