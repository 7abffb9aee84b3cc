# /wim_inspector/config.py
from __future__ import annotations

import os

from pydantic import BaseModel


class Settings(BaseModel):
    API_KEY: str | None = os.getenv("API_KEY")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Container reader (wimlib-imagex)
    WIMLIB_IMAGEX: str = os.getenv("WIMLIB_IMAGEX", "wimlib-imagex")
    WIMLIB_TIMEOUT_SECONDS: float = float(os.getenv("WIMLIB_TIMEOUT_SECONDS", "60.0"))
    ALLOWED_EXTENSIONS: list[str] = [".wim", ".esd"]

    # Degradation policy
    APPROXIMATE_SIZE_FALLBACK: bool = (
        os.getenv("APPROXIMATE_SIZE_FALLBACK", "false").lower() == "true"
    )

    # Celery / Redis
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CELERY_WORKER_CONCURRENCY: int = int(os.getenv("CELERY_WORKER_CONCURRENCY", "2"))
    RESULT_TTL_SECONDS: int = int(os.getenv("RESULT_TTL_SECONDS", "86400"))  # 1 day


settings = Settings()
