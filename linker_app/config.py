import json
import os
from typing import Optional, Tuple

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from linker_app.errors import ConfigError

DEFAULT_FILE = "/etc/linker.conf"
DEFAULT_URL = "https://duckduckgo.com"
DEFAULT_TIMEOUT = 5

# Sample configuration, printed by ``linker default-config``
DEFAULT_CONFIG = """{
    "key": "",
    "cert": "",
    "listen": "0.0.0.0:80",
    "timeout": 5,
    "default": "https://duckduckgo.com",
    "db": {
        "name": "linker",
        "server": "localhost:3306",
        "username": "linker_user",
        "password": "password"
    }
}"""


class DatabaseSettings(BaseModel):
    """Connection parameters for the links database"""

    name: str = ""
    server: str = ""
    username: str = ""
    password: str = ""
    driver: str = "mysql+pymysql"
    # Full SQLAlchemy URL, overrides the fields above when set
    url: Optional[str] = None

    def is_complete(self) -> bool:
        if self.url:
            return True
        return bool(self.username and self.server and self.name)


class Settings(BaseSettings):
    """
    Application settings.

    Loading priority (highest to lowest):
    1. Values from the JSON configuration file
    2. Environment variables (``LINKER_`` prefix, ``__`` for nested keys)
    3. .env file
    4. Default values below
    """

    # TLS, both must be set to serve HTTPS
    key: str = ""
    cert: str = ""

    # Server
    listen: str = "0.0.0.0:80"
    timeout: int = Field(DEFAULT_TIMEOUT, ge=0, le=255)  # seconds

    # Redirect target used when no short name resolves
    default: str = DEFAULT_URL

    # Database
    db: DatabaseSettings = Field(default_factory=DatabaseSettings)

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="LINKER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def effective_timeout(self) -> int:
        """Server timeout in seconds, zero falls back to the default"""
        return self.timeout or DEFAULT_TIMEOUT

    @property
    def tls_enabled(self) -> bool:
        return bool(self.key and self.cert)


def resolve_config_path(path: Optional[str] = None) -> str:
    """Pick the config file: explicit path, then $LINKER_CONFIG, then the default file."""
    if path:
        return path
    return os.environ.get("LINKER_CONFIG", DEFAULT_FILE)


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from a JSON configuration file.

    Raises:
        ConfigError: the file is missing, unreadable, not valid JSON, fails
            validation or has no usable database block
    """
    path = resolve_config_path(path)
    if not os.path.exists(path):
        raise ConfigError(f'unable to access file "{path}"')
    if os.path.isdir(path):
        raise ConfigError(f'file "{path}" is a directory')
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as err:
        raise ConfigError(f'unable to read file "{path}": {err}') from err
    except ValueError as err:
        raise ConfigError(f'unable to parse file "{path}": {err}') from err
    if not isinstance(data, dict):
        raise ConfigError(f'unable to parse file "{path}": expected a JSON object')
    try:
        settings = Settings(**data)
    except ValidationError as err:
        raise ConfigError(f'unable to parse file "{path}": {err}') from err
    if not settings.db.is_complete():
        raise ConfigError(f'file "{path}" does not contain a valid database configuration')
    return settings


def parse_listen_address(listen: str) -> Tuple[str, int]:
    """
    Split a ``host:port`` listen address.

    An empty host (``":8080"``) binds every interface, IPv6 hosts may be
    bracketed (``"[::1]:8080"``).
    """
    host, sep, port = listen.strip().rpartition(":")
    if not sep:
        raise ConfigError(f'invalid listen address "{listen}"')
    host = host.strip("[]") or "0.0.0.0"
    try:
        number = int(port)
    except ValueError as err:
        raise ConfigError(f'invalid listen port in "{listen}"') from err
    if not 0 <= number <= 65535:
        raise ConfigError(f'invalid listen port in "{listen}"')
    return host, number
