# backend/barledger/config.py
from __future__ import annotations
import os


def _csv(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/barledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///barledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Payment methods accepted at checkout. Credit methods defer payment to the
    # customer's running balance ("fiado").
    PAYMENT_METHODS = _csv(
        "PAYMENT_METHODS",
        "Dinheiro,Pix,Cartão de Crédito,Cartão de Débito,Fiado",
    )
    CREDIT_PAYMENT_METHODS = _csv("CREDIT_PAYMENT_METHODS", "Fiado")
    CASH_PAYMENT_METHODS = _csv("CASH_PAYMENT_METHODS", "Dinheiro")

    # Used for products without their own low_stock_threshold
    LOW_STOCK_DEFAULT_THRESHOLD = int(os.environ.get("LOW_STOCK_DEFAULT_THRESHOLD", "0"))

    # Fallback monthly cost goal when no expenses were recorded for the month
    DEFAULT_MONTHLY_GOAL_CENTS = int(os.environ.get("DEFAULT_MONTHLY_GOAL_CENTS", "3000000"))

    # Reports bucket hours, weekdays and days in the bar's local time
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "America/Sao_Paulo").strip()

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "12"))

    # OpenAI-compatible endpoint for the insights panel
    GENAI_BASE_URL = os.environ.get("GENAI_BASE_URL", "https://api.openai.com").rstrip("/")
    GENAI_API_KEY = os.environ.get("GENAI_API_KEY", "").strip()
    GENAI_MODEL = os.environ.get("GENAI_MODEL", "gpt-4o-mini").strip()
    GENAI_TIMEOUT_SECONDS = float(os.environ.get("GENAI_TIMEOUT_SECONDS", "30"))

    CORS_ALLOWED_ORIGINS = _csv(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:9002",
    )


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    GENAI_API_KEY = ""
    SESSION_TTL_HOURS = 1
