"""Project-level configuration and path helpers."""

import os
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
LOGS_DIR = PROJECT_ROOT / "logs"
DEFAULT_DB_PATH = DATA_DIR / "nexus.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DEFAULT_GATEWAY_URL = "http://localhost:8000"
DEFAULT_API_HOST = "localhost"
DEFAULT_API_PORT = 8000

DEFAULT_MODEL = "claude-sonnet-4-5"
HELPER_MODEL = "claude-3-5-haiku-latest"

# (model id, display name)
AVAILABLE_MODELS = [
    ("claude-sonnet-4-5", "Sonnet 4.5"),
    ("claude-sonnet-4-0", "Sonnet 4"),
    ("claude-3-7-sonnet-latest", "Sonnet 3.7"),
    ("claude-opus-4-1", "Opus 4.1"),
]


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        DATA_DIR.mkdir(parents=True, exist_ok=True)
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def get_gateway_url() -> str:
    """Base URL of the completion gateway the client talks to."""
    return os.getenv("NEXUS_GATEWAY_URL", DEFAULT_GATEWAY_URL).rstrip("/")


def get_api_key() -> str | None:
    """Upstream credential, read on every call so it can change at runtime."""
    key = os.getenv("ANTHROPIC_API_KEY", "").strip()
    return key or None


def is_known_model(model: str) -> bool:
    return any(model_id == model for model_id, _ in AVAILABLE_MODELS)
