import os


def _getenv(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value if value else default


def _getenv_bool(name: str, default: bool = False) -> bool:
    raw = _getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def _getenv_float(name: str, default: float) -> float:
    raw = _getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")


class Settings:
    def __init__(self) -> None:
        self.environment = (_getenv("ENVIRONMENT", "development") or "development").lower()
        self.log_level = (_getenv("LOG_LEVEL", "INFO") or "INFO").upper()
        self.database_url = _getenv("DATABASE_URL", "sqlite:///./sql_app.db") or "sqlite:///./sql_app.db"
        self.db_auto_create = _getenv_bool("DB_AUTO_CREATE", default=True)
        self.cors_allow_origins = _getenv("CORS_ALLOW_ORIGINS")

        self.supabase_url = _getenv("SUPABASE_URL") or _getenv("NEXT_PUBLIC_SUPABASE_URL")
        self.supabase_anon_key = _getenv("SUPABASE_ANON_KEY") or _getenv("NEXT_PUBLIC_SUPABASE_ANON_KEY")
        self.supabase_jwt_secret = _getenv("SUPABASE_JWT_SECRET")
        self.supabase_jwt_audience = _getenv("SUPABASE_JWT_AUD", "authenticated")

        self.portone_api_secret = _getenv("PORTONE_API_SECRET")
        self.portone_base_url = _getenv("PORTONE_BASE_URL", "https://api.portone.io") or "https://api.portone.io"
        self.portone_timeout_s = _getenv_float("PORTONE_TIMEOUT_S", 30.0)
        self.portone_store_id = _getenv("PORTONE_STORE_ID") or _getenv("NEXT_PUBLIC_PORTONE_STORE_ID")
        self.portone_channel_key = _getenv("PORTONE_CHANNEL_KEY") or _getenv("NEXT_PUBLIC_PORTONE_CHANNEL_KEY")

        self.billing_currency = (_getenv("BILLING_CURRENCY", "KRW") or "KRW").upper()
        # Asia/Seoul has no DST, so a fixed offset is exact for the home market.
        self.billing_utc_offset_minutes = _getenv_int("BILLING_UTC_OFFSET_MINUTES", 540)
        self.billing_cancel_reason = _getenv("BILLING_CANCEL_REASON", "Cancelled by subscriber") or "Cancelled by subscriber"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def missing_required(self) -> list[str]:
        missing: list[str] = []
        if not self.portone_api_secret:
            missing.append("PORTONE_API_SECRET")
        if not self.supabase_url and not self.supabase_jwt_secret:
            missing.append("SUPABASE_URL")
        return missing

    def resolved_cors_origins(self) -> list[str]:
        raw = self.cors_allow_origins
        if raw is None:
            return ["http://localhost:3000", "http://localhost:8000"]
        if raw.strip() == "*":
            return ["*"]
        origins = [o.strip() for o in raw.split(",") if o.strip()]
        return origins


settings = Settings()
