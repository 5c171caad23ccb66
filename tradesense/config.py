"""Configuration loading and component wiring.

Configuration lives in ``~/.config/tradesense/config.toml``:

    [data]
    provider = "yahoo"          # or "angelone"
    quote_ttl = 60
    request_timeout = 10

    [alerts]
    symbol_delay = 0.1
    batch_deadline = 120

    [telegram]
    bot_token = "..."
    chat_id = "..."             # default chat

    [telegram.chats]            # optional per-user chats
    u1 = "123456789"

A missing file yields the defaults. ``TELEGRAM_BOT_TOKEN`` and
``TRADESENSE_DB`` override their config keys.
"""

import logging
import os
from pathlib import Path
from typing import Literal, Optional

import toml
from pydantic import BaseModel, Field, ValidationError, field_validator

from tradesense.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "tradesense"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.toml"
DEFAULT_DB_PATH = DEFAULT_CONFIG_DIR / "tradesense.db"


class DataConfig(BaseModel):
    """Market data settings."""

    provider: Literal["yahoo", "angelone"] = Field(default="yahoo", description="Data provider")
    quote_ttl: float = Field(default=60.0, gt=0, description="Quote cache lifetime (s)")
    history_ttl: float = Field(default=300.0, gt=0, description="History cache lifetime (s)")
    request_timeout: float = Field(default=10.0, gt=0, description="Provider timeout (s)")
    history_days: int = Field(default=365, gt=0, description="Days of closes to fetch")


class AlertsConfig(BaseModel):
    """Alert batch settings."""

    symbol_delay: float = Field(default=0.1, ge=0, description="Min seconds between provider calls")
    batch_deadline: Optional[float] = Field(
        default=None, gt=0, description="Seconds after which a batch stops"
    )


class SignalsConfig(BaseModel):
    """Trade signal settings."""

    expiry_days: int = Field(default=14, gt=0, description="Signal lifetime in days")


class TelegramConfig(BaseModel):
    """Telegram bot settings."""

    bot_token: Optional[str] = Field(default=None, description="Bot API token")
    chat_id: Optional[str] = Field(default=None, description="Default chat to notify")
    chats: dict[str, str] = Field(default_factory=dict, description="Chat ID per user ID")

    @field_validator("chat_id", mode="before")
    @classmethod
    def _chat_id_as_text(cls, value):
        return str(value) if isinstance(value, int) else value

    @field_validator("chats", mode="before")
    @classmethod
    def _chat_ids_as_text(cls, value):
        if isinstance(value, dict):
            return {str(user): str(chat) for user, chat in value.items()}
        return value


class AngelOneConfig(BaseModel):
    """Angel One SmartAPI credentials."""

    api_key: Optional[str] = None
    client_id: Optional[str] = None
    pin: Optional[str] = None
    totp_secret: Optional[str] = None


class DatabaseConfig(BaseModel):
    """SQLite settings."""

    path: Path = Field(default=DEFAULT_DB_PATH, description="Database file")


class AppConfig(BaseModel):
    """Complete application configuration."""

    data: DataConfig = Field(default_factory=DataConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    signals: SignalsConfig = Field(default_factory=SignalsConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    angelone: AngelOneConfig = Field(default_factory=AngelOneConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load configuration from a TOML file.

    Args:
        path: Config file; defaults to ``~/.config/tradesense/config.toml``.

    Returns:
        AppConfig with environment overrides applied.

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    raw: dict = {}

    if config_path.exists():
        try:
            raw = toml.load(config_path)
        except (toml.TomlDecodeError, OSError) as e:
            raise ConfigError(f"Cannot read {config_path}: {e}") from e
    else:
        logger.debug("No config at %s, using defaults", config_path)

    bot_token = os.environ.get("TELEGRAM_BOT_TOKEN")
    if bot_token:
        raw.setdefault("telegram", {})["bot_token"] = bot_token

    db_path = os.environ.get("TRADESENSE_DB")
    if db_path:
        raw.setdefault("database", {})["path"] = db_path

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e


def get_data_provider(config: AppConfig):
    """Build the configured data provider.

    Raises:
        ConfigError: If Angel One is selected without credentials.
    """
    if config.data.provider == "angelone":
        creds = config.angelone
        missing = [
            name
            for name in ("api_key", "client_id", "pin", "totp_secret")
            if not getattr(creds, name)
        ]
        if missing:
            raise ConfigError(f"Missing [angelone] settings: {', '.join(missing)}")

        from tradesense.providers.angelone import AngelOneDataProvider

        return AngelOneDataProvider(
            api_key=creds.api_key,
            client_id=creds.client_id,
            pin=creds.pin,
            totp_secret=creds.totp_secret,
            token_path=DEFAULT_CONFIG_DIR / "session.json",
            timeout=config.data.request_timeout,
            history_days=config.data.history_days,
        )

    from tradesense.providers.yahoo import YahooDataProvider

    return YahooDataProvider(timeout=config.data.request_timeout)


def get_data_cache(config: AppConfig, provider=None):
    """Build a rate-limited data cache over the configured provider."""
    from tradesense.cache import DataCache
    from tradesense.ratelimit import RateLimiter

    limiter = None
    if config.alerts.symbol_delay > 0:
        limiter = RateLimiter.from_interval(config.alerts.symbol_delay)

    return DataCache(
        provider if provider is not None else get_data_provider(config),
        quote_ttl=config.data.quote_ttl,
        history_ttl=config.data.history_ttl,
        rate_limiter=limiter,
    )


def get_data_store(config: AppConfig):
    """Open the SQLite store."""
    from tradesense.db.store import DataStore

    return DataStore(Path(config.database.path).expanduser())


def get_notifier(config: AppConfig):
    """Build the Telegram dispatcher, or None when Telegram is not configured."""
    telegram = config.telegram
    if not telegram.bot_token or not (telegram.chat_id or telegram.chats):
        return None

    from tradesense.notifications.telegram import TelegramDispatcher

    return TelegramDispatcher(telegram.bot_token, chat_id=telegram.chat_id, chats=telegram.chats)
