"""Angel One data provider using SmartAPI."""

import json
import logging
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional

import pyotp
from SmartApi import SmartConnect

from tradesense.errors import DataUnavailableError
from tradesense.providers.base import BaseDataProvider, ProviderQuote, split_exchange_suffix

logger = logging.getLogger(__name__)

# Days of daily candles averaged for avg_volume
AVG_VOLUME_DAYS = 20

# Common NSE symbol tokens, avoids a searchScrip round trip
COMMON_TOKENS = {
    "RELIANCE": ("2885", "RELIANCE-EQ"),
    "TCS": ("11536", "TCS-EQ"),
    "INFY": ("1594", "INFY-EQ"),
    "HDFCBANK": ("1333", "HDFCBANK-EQ"),
    "ICICIBANK": ("4963", "ICICIBANK-EQ"),
    "SBIN": ("3045", "SBIN-EQ"),
    "BHARTIARTL": ("10604", "BHARTIARTL-EQ"),
    "ITC": ("1660", "ITC-EQ"),
    "KOTAKBANK": ("1922", "KOTAKBANK-EQ"),
    "LT": ("11483", "LT-EQ"),
    "AXISBANK": ("5900", "AXISBANK-EQ"),
    "HINDUNILVR": ("1394", "HINDUNILVR-EQ"),
    "BAJFINANCE": ("317", "BAJFINANCE-EQ"),
    "MARUTI": ("10999", "MARUTI-EQ"),
    "TITAN": ("3506", "TITAN-EQ"),
    "WIPRO": ("3787", "WIPRO-EQ"),
    "HCLTECH": ("7229", "HCLTECH-EQ"),
    "SUNPHARMA": ("3351", "SUNPHARMA-EQ"),
    "TATASTEEL": ("3499", "TATASTEEL-EQ"),
    "NTPC": ("11630", "NTPC-EQ"),
}


class AngelOneDataProvider(BaseDataProvider):
    """Quotes and daily closes from Angel One SmartAPI.
    
    Handles TOTP login and reuses the session token stored on disk so a
    scheduled check does not log in on every run.
    """

    name = "angelone"

    def __init__(
        self,
        api_key: str,
        client_id: str,
        pin: str,
        totp_secret: str,
        token_path: Optional[Path] = None,
        timeout: float = 10.0,
        history_days: int = 365,
    ):
        """Initialize Angel One provider.
        
        Args:
            api_key: Angel One API key.
            client_id: Angel One client ID.
            pin: Angel One PIN.
            totp_secret: TOTP secret for 2FA.
            token_path: Path to store session tokens.
            timeout: Per-request timeout in seconds.
            history_days: Calendar days of daily closes to fetch.
        """
        self.api_key = api_key
        self.client_id = client_id
        self.pin = pin
        self.totp_secret = totp_secret
        self.token_path = token_path or Path.home() / ".config" / "tradesense" / "session.json"
        self.timeout = timeout
        self.history_days = history_days
        
        self._smart_api: Optional[SmartConnect] = None
        self._auth_token: Optional[str] = None
        self._refresh_token: Optional[str] = None

    def _new_client(self) -> SmartConnect:
        return SmartConnect(api_key=self.api_key, timeout=self.timeout)

    def _generate_totp(self) -> str:
        """Generate TOTP code for authentication."""
        clean_secret = self.totp_secret.replace("-", "").replace(" ", "").upper()
        return pyotp.TOTP(clean_secret).now()

    def _save_session(self) -> None:
        """Save session tokens to file."""
        if not self._auth_token:
            return
        
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        session_data = {
            "auth_token": self._auth_token,
            "refresh_token": self._refresh_token,
            "timestamp": datetime.now().isoformat(),
        }
        self.token_path.write_text(json.dumps(session_data))

    def _load_session(self) -> bool:
        """Load session tokens from file.
        
        Returns:
            True if a session token was loaded.
        """
        if not self.token_path.exists():
            return False
        
        try:
            session_data = json.loads(self.token_path.read_text())
        except json.JSONDecodeError:
            return False
        self._auth_token = session_data.get("auth_token")
        self._refresh_token = session_data.get("refresh_token")
        return bool(self._auth_token)

    def login(self) -> bool:
        """Authenticate with Angel One using TOTP.
        
        Returns:
            True if authentication successful, False otherwise.
        """
        self._smart_api = self._new_client()
        try:
            data = self._smart_api.generateSession(
                clientCode=self.client_id,
                password=self.pin,
                totp=self._generate_totp(),
            )
        except Exception as e:
            logger.warning("Angel One login failed: %s", e)
            return False
        
        if data and data.get("status"):
            self._auth_token = data["data"]["jwtToken"]
            self._refresh_token = data["data"]["refreshToken"]
            self._save_session()
            return True
        
        logger.warning(
            "Angel One login rejected: %s",
            data.get("message", "Unknown error") if data else "No response from API",
        )
        return False

    def is_authenticated(self) -> bool:
        """Check if a session token is held."""
        return self._auth_token is not None and self._smart_api is not None

    def _ensure_authenticated(self, symbol: str) -> None:
        """Ensure we have a session, reusing a stored one if possible."""
        if self.is_authenticated():
            return
        
        if self._load_session():
            self._smart_api = self._new_client()
            token = self._auth_token or ""
            # SmartAPI adds its own "Bearer " prefix
            if token.startswith("Bearer "):
                token = token[7:]
            self._smart_api.setAccessToken(token)
            if self._refresh_token:
                self._smart_api.setRefreshToken(self._refresh_token)
            return
        
        if not self.login():
            raise DataUnavailableError(symbol, "failed to authenticate with Angel One")

    def _get_symbol_info(self, symbol: str) -> tuple[str, str, str]:
        """Resolve a symbol to (exchange, symbol token, trading symbol)."""
        base, exchange = split_exchange_suffix(symbol)
        
        if exchange == "NSE" and base in COMMON_TOKENS:
            token, trading_symbol = COMMON_TOKENS[base]
            return exchange, token, trading_symbol
        
        try:
            search_result = self._smart_api.searchScrip(exchange, base)
        except Exception as e:
            raise DataUnavailableError(symbol, f"symbol lookup failed: {e}") from e
        
        items = (search_result or {}).get("data") or []
        # Prefer an exact match, then the equity (-EQ) series
        for item in items:
            if item.get("tradingsymbol", "").upper() == base:
                return exchange, item["symboltoken"], item["tradingsymbol"]
        for item in items:
            if item.get("tradingsymbol", "").upper() == f"{base}-EQ":
                return exchange, item["symboltoken"], item["tradingsymbol"]
        
        raise DataUnavailableError(symbol, "symbol not found")

    def _get_daily_candles(self, symbol: str, days: int) -> list[list]:
        exchange, token, _ = self._get_symbol_info(symbol)
        to_date = date.today()
        from_date = to_date - timedelta(days=days)
        params = {
            "exchange": exchange,
            "symboltoken": token,
            "interval": "ONE_DAY",
            "fromdate": f"{from_date.isoformat()} 09:15",
            "todate": f"{to_date.isoformat()} 15:30",
        }
        try:
            data = self._smart_api.getCandleData(params)
        except Exception as e:
            raise DataUnavailableError(symbol, f"candle fetch failed: {e}") from e
        
        if not data or not data.get("status", True):
            raise DataUnavailableError(symbol, (data or {}).get("message", "no candle data"))
        # Rows are [timestamp, open, high, low, close, volume]
        return data.get("data") or []

    def get_quote(self, symbol: str) -> ProviderQuote:
        """Get the current quote via SmartAPI FULL market data."""
        self._ensure_authenticated(symbol)
        exchange, token, _ = self._get_symbol_info(symbol)
        
        try:
            response = self._smart_api.getMarketData("FULL", {exchange: [token]})
        except Exception as e:
            raise DataUnavailableError(symbol, str(e)) from e
        
        fetched = ((response or {}).get("data") or {}).get("fetched") or []
        if not fetched:
            raise DataUnavailableError(symbol, "empty market data response")
        data = fetched[0]
        
        # A failed average only drops the volume ratio, not the quote
        try:
            rows = self._get_daily_candles(symbol, AVG_VOLUME_DAYS * 2)
            volumes = [
                float(row[5])
                for row in rows[-AVG_VOLUME_DAYS:]
                if len(row) > 5 and row[5] is not None
            ]
            avg_volume = sum(volumes) / len(volumes) if volumes else None
        except DataUnavailableError as e:
            logger.warning("Average volume unavailable for %s: %s", symbol, e)
            avg_volume = None
        
        return ProviderQuote(
            symbol=symbol,
            price=data.get("ltp"),
            previous_close=data.get("close"),
            volume=data.get("tradeVolume"),
            avg_volume=avg_volume,
            day_high=data.get("high"),
            day_low=data.get("low"),
        )

    def get_history(self, symbol: str) -> list[float]:
        """Get daily closes for the configured number of days."""
        self._ensure_authenticated(symbol)
        rows = self._get_daily_candles(symbol, self.history_days)
        return [float(row[4]) for row in rows]
