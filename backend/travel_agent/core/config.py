"""
Settings for the itinerary service, read once at import time.

Values come from the process environment, then `.env`, then either the file
named by ENV_FILE or `.env.<environment>`. A variable already set in the
environment is never overridden by a file.
"""

import os

from dotenv import find_dotenv, load_dotenv

ENV_ALIASES = {"dev": "development", "prod": "production", "stg": "staging"}


def _load_env_files() -> None:
    candidates = [".env"]

    explicit = os.environ.get("ENV_FILE")
    if explicit:
        candidates.append(explicit)
    else:
        slug = (os.environ.get("ENVIRONMENT") or os.environ.get("ENV") or "").strip().lower()
        if slug:
            candidates += [f".env.{ENV_ALIASES.get(slug, slug)}", f".env.{slug}"]

    loaded = set()
    for name in candidates:
        path = name if os.path.isabs(name) else find_dotenv(name, usecwd=True)
        if path and path not in loaded:
            load_dotenv(path, override=False)
            loaded.add(path)


def _env_number(name: str, default, cast):
    """Parse a numeric variable, tolerating whitespace and a trailing semicolon."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return cast(raw.strip().rstrip(";"))
    except ValueError:
        print(f"[config] Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _csv_env(name: str, default: list[str]) -> list[str]:
    items = [part.strip() for part in os.environ.get(name, "").split(",") if part.strip()]
    return items or default


_load_env_files()

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")

# === Server ===
SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
SERVER_PORT = _env_number("SERVER_PORT", 8060, int)
# e.g. CORS_ORIGINS="http://localhost:3000,https://trips.example.com"
CORS_ORIGINS = _csv_env("CORS_ORIGINS", ["*"])

# === Database ===
MONGODB_URI = os.environ.get("MONGODB_URI")
DATABASE_NAME = os.environ.get("DATABASE_NAME", "travel_agent")
MONGODB_TIMEOUT_MS = _env_number("MONGODB_TIMEOUT_MS", 5000, int)

# === Auth ===
JWT_SECRET = os.environ.get("JWT_SECRET", "your-secret-key-change-this-in-production")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

# === LLM ===
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TEMPERATURE = _env_number("OPENAI_TEMPERATURE", 0.7, float)

# === Itineraries ===
MIN_DAYS = _env_number("MIN_DAYS", 1, int)
MAX_DAYS = _env_number("MAX_DAYS", 14, int)

# best_effort: a generated itinerary is returned with a null id when saving fails
# required: a failed save turns the whole generation into an error
PERSISTENCE_POLICY = os.environ.get("PERSISTENCE_POLICY", "best_effort").strip().lower()
if PERSISTENCE_POLICY not in ("best_effort", "required"):
    PERSISTENCE_POLICY = "best_effort"

# Seconds a client-side edit error stays visible before it is cleared
ERROR_DISPLAY_SECONDS = _env_number("ERROR_DISPLAY_SECONDS", 3.0, float)

# === Application ===
APP_NAME = "AI Travel Agent API"
APP_VERSION = "1.0.0"
API_PREFIX = "/api/v1"
