# backend/shopcore/config.py
from __future__ import annotations
import os


def _int_list(value: str) -> tuple[int, ...]:
    return tuple(int(part) for part in value.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopcore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopcore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Python weekday numbers (Monday=0). Friday is the weekly off-day by default.
    PAYROLL_WEEKEND_DAYS = _int_list(os.environ.get("PAYROLL_WEEKEND_DAYS", "4"))
    PAYROLL_DEFAULT_DAILY_HOURS = int(os.environ.get("PAYROLL_DEFAULT_DAILY_HOURS", "8"))

    ORDER_DEFAULT_PAGE_SIZE = 10
