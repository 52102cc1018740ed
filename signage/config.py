import os
from dataclasses import dataclass
from typing import Optional


def env(key: str, default: Optional[str] = None, required: bool = False) -> str:
    value = os.getenv(key)
    if value is None or value == "":
        if required:
            raise RuntimeError(f"Missing required env var: {key}")
        return "" if default is None else str(default)
    return value


def _int_env(key: str, default: str) -> int:
    raw = env(key, default=default, required=False)
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{key} must be an integer") from e


@dataclass(frozen=True)
class Settings:
    APP_ENV: str
    SERVICE_PORT: int
    INTERNAL_API_KEY: str
    TEMPLATE_DIR: str
    FONT_DIR: str
    MAX_WORDS_PER_FIELD: int


def load_settings() -> Settings:
    app_env = env("APP_ENV", default="development", required=False)
    service_port_raw = env("PORT", default=None, required=False) or env("SERVICE_PORT", default="9000", required=False)
    try:
        service_port = int(service_port_raw)
    except ValueError as e:
        raise RuntimeError("SERVICE_PORT must be an integer") from e

    # The word-fitting search is exponential in the word count of a field.
    max_words = _int_env("MAX_WORDS_PER_FIELD", "24")
    if max_words <= 0:
        raise RuntimeError("MAX_WORDS_PER_FIELD must be > 0")

    return Settings(
        APP_ENV=app_env,
        SERVICE_PORT=service_port,
        INTERNAL_API_KEY=env("INTERNAL_API_KEY", required=True),
        TEMPLATE_DIR=env("TEMPLATE_DIR", default="", required=False),
        FONT_DIR=env("FONT_DIR", default="", required=False),
        MAX_WORDS_PER_FIELD=max_words,
    )
