# backend/stocksimple/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stocksimple.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stocksimple.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # JWT signing; falls back to SECRET_KEY when not set separately
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY") or SECRET_KEY
    JWT_ALGORITHM = "HS256"
    JWT_ACCESS_TOKEN_EXPIRES = _int_env("JWT_ACCESS_TOKEN_EXPIRES", 7 * 24 * 3600)
    JWT_REFRESH_TOKEN_EXPIRES = _int_env("JWT_REFRESH_TOKEN_EXPIRES", 30 * 24 * 3600)

    BCRYPT_LOG_ROUNDS = _int_env("BCRYPT_LOG_ROUNDS", 12)

    # Seconds a SQLite connection waits on a locked database before failing
    SQLITE_BUSY_TIMEOUT = _int_env("SQLITE_BUSY_TIMEOUT", 30)

    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    ]

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    # bcrypt minimum cost keeps the suite fast
    BCRYPT_LOG_ROUNDS = 4
    LOG_LEVEL = "WARNING"
