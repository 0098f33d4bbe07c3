from __future__ import annotations

from pathlib import Path
from typing import List

import motor.motor_asyncio
from loguru import logger
from pydantic_settings import BaseSettings, SettingsConfigDict
from pymongo.errors import ConfigurationError


BASE_DIR = Path(__file__).resolve().parents[1]
ENV_FILES = [BASE_DIR / ".env.local", BASE_DIR / ".env"]


class Settings(BaseSettings):
    mongodb_url: str = "mongodb://localhost:27017/hemolink"
    mongo_server_timeout_ms: int = 2000
    mongo_connect_timeout_ms: int = 2000
    mongo_socket_timeout_ms: int = 2000
    jwt_secret: str = "supersecret"
    jwt_algorithm: str = "HS256"
    jwt_expires_min: int = 60
    token_url: str = "/auth/login"
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    donor_search_radius_km: float = 50.0
    active_request_radius_km: float = 100.0
    notify_radius_km: float = 50.0
    update_max_attempts: int = 5

    model_config = SettingsConfigDict(
        env_file=[str(path) for path in ENV_FILES],
        case_sensitive=False,
        env_prefix="",
    )


def get_settings() -> Settings:
    return Settings()


settings = get_settings()
FALLBACK_MONGO_URL = "mongodb://localhost:27017/hemolink"
DEFAULT_DATABASE = "hemolink"


def _create_client(uri: str) -> motor.motor_asyncio.AsyncIOMotorClient:
    connect_kwargs = {
        "serverSelectionTimeoutMS": settings.mongo_server_timeout_ms,
        "connectTimeoutMS": settings.mongo_connect_timeout_ms,
        "socketTimeoutMS": settings.mongo_socket_timeout_ms,
        "tz_aware": True,
    }
    try:
        return motor.motor_asyncio.AsyncIOMotorClient(uri, **connect_kwargs)
    except ConfigurationError as exc:
        if uri == FALLBACK_MONGO_URL:
            raise
        logger.warning(
            "MongoDB DNS resolution failed for {} ({}). Falling back to local Mongo at {}.",
            uri,
            exc,
            FALLBACK_MONGO_URL,
        )
        return motor.motor_asyncio.AsyncIOMotorClient(FALLBACK_MONGO_URL, **connect_kwargs)


client = _create_client(settings.mongodb_url)
db = client.get_default_database(default=DEFAULT_DATABASE)


async def ensure_indexes() -> None:
    """Create the geospatial and lookup indexes the stores rely on."""
    await db.get_collection("users").create_index([("location", "2dsphere")])
    await db.get_collection("users").create_index("bloodType")
    requests = db.get_collection("blood_requests")
    await requests.create_index([("hospital.location", "2dsphere")])
    await requests.create_index([("status", 1), ("urgency", -1), ("createdAt", -1)])
    await requests.create_index("patient")
    await requests.create_index("matchedDonors.donor")
    await db.get_collection("notifications").create_index(
        [("recipient", 1), ("isRead", 1), ("createdAt", -1)]
    )
