import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


DEFAULT_CATEGORIES: tuple[dict[str, str], ...] = (
    {"name": "Food & Dining", "icon": "🍔", "color": "#ef4444", "type": "expense"},
    {"name": "Transportation", "icon": "🚗", "color": "#3b82f6", "type": "expense"},
    {"name": "Shopping", "icon": "🛍️", "color": "#ec4899", "type": "expense"},
    {"name": "Entertainment", "icon": "🎬", "color": "#8b5cf6", "type": "expense"},
    {"name": "Bills & Utilities", "icon": "💡", "color": "#f59e0b", "type": "expense"},
    {"name": "Healthcare", "icon": "🏥", "color": "#10b981", "type": "expense"},
    {"name": "Education", "icon": "📚", "color": "#06b6d4", "type": "expense"},
    {"name": "Salary", "icon": "💰", "color": "#22c55e", "type": "income"},
    {"name": "Freelance", "icon": "💼", "color": "#14b8a6", "type": "income"},
    {"name": "Other", "icon": "📌", "color": "#6b7280", "type": "both"},
)


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        default_currency: str,
        default_reminder_days: int,
        trend_months: int,
        scheduler_enabled: bool,
        default_categories: Optional[tuple[dict[str, str], ...]] = None,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.default_currency = default_currency
        self.default_reminder_days = default_reminder_days
        self.trend_months = trend_months
        self.scheduler_enabled = scheduler_enabled
        self.default_categories = (
            default_categories if default_categories is not None else DEFAULT_CATEGORIES
        )


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINTRACK_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "fintrack.db"
    database_url = os.getenv("FINTRACK_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINTRACK_TIMEZONE", "Africa/Nairobi")
    default_currency = os.getenv("FINTRACK_CURRENCY", "KES").upper()
    default_reminder_days = int(os.getenv("FINTRACK_REMINDER_DAYS", "3"))
    trend_months = int(os.getenv("FINTRACK_TREND_MONTHS", "6"))
    scheduler_enabled = _env_flag("FINTRACK_SCHEDULER_ENABLED", "true")
    return Settings(
        database_url=database_url,
        timezone=timezone,
        default_currency=default_currency,
        default_reminder_days=default_reminder_days,
        trend_months=trend_months,
        scheduler_enabled=scheduler_enabled,
    )
