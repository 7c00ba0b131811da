import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from src.chatstore.config import DEFAULT_DATABASE_PATH, SETTINGS_FILE, STORAGE_KEY

logger = logging.getLogger(__name__)

# Storage media the chat state can be written to.
STORAGE_BACKENDS = ("sqlite", "memory")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _default_settings() -> Dict[str, Any]:
    return {
        "storage_backend": "sqlite",
        "database_path": "",
        "storage_key": STORAGE_KEY,
        "coalesce_saves": True,
        "log_level": "INFO",
    }


def _normalize_backend(value: Any) -> str:
    if isinstance(value, str):
        selection = value.strip().lower()
        aliases = {
            "sqlite3": "sqlite",
            "disk": "sqlite",
            "in-memory": "memory",
            "inmemory": "memory",
        }
        selection = aliases.get(selection, selection)
        if selection in STORAGE_BACKENDS:
            return selection
    return "sqlite"


def _normalize_storage_key(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return STORAGE_KEY


def _normalize_log_level(value: Any) -> str:
    if isinstance(value, str) and value.strip().upper() in LOG_LEVELS:
        return value.strip().upper()
    return "INFO"


def _normalize_path(value: Any) -> str:
    if isinstance(value, (str, Path)):
        return str(value).strip()
    return ""


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    settings = _default_settings()
    settings["storage_backend"] = _normalize_backend(data.get("storage_backend"))
    settings["database_path"] = _normalize_path(data.get("database_path"))
    settings["storage_key"] = _normalize_storage_key(data.get("storage_key"))
    coalesce = data.get("coalesce_saves")
    settings["coalesce_saves"] = bool(coalesce) if coalesce is not None else settings["coalesce_saves"]
    settings["log_level"] = _normalize_log_level(data.get("log_level"))
    return settings


def load_store_settings() -> Dict[str, Any]:
    """
    Load store settings from disk, falling back to defaults for anything missing or invalid.
    """
    settings = _default_settings()

    if not SETTINGS_FILE.exists():
        return settings

    try:
        with open(SETTINGS_FILE, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (IOError, json.JSONDecodeError) as exc:
        logger.warning("Failed to read store settings from %s: %s", SETTINGS_FILE, exc)
        return settings

    if not isinstance(data, dict):
        logger.warning("Store settings file %s does not contain a JSON object.", SETTINGS_FILE)
        return settings

    return _normalize(data)


def save_store_settings(settings: Dict[str, Any]) -> None:
    """
    Persist the normalized settings payload to disk.
    """
    merged = _default_settings()
    merged.update({key: value for key, value in settings.items() if key in merged})
    payload = _normalize(merged)

    SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    with open(SETTINGS_FILE, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=4)

    logger.info("Store settings saved to %s", SETTINGS_FILE)


def update_store_settings(updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge and persist setting updates; unknown keys are ignored.
    """
    settings = load_store_settings()
    for key, value in updates.items():
        if key in settings:
            settings[key] = value

    save_store_settings(settings)
    return load_store_settings()


def get_database_path(settings: Optional[Dict[str, Any]] = None) -> Path:
    """
    Resolve the SQLite file the chat state is stored in.
    """
    if settings is None:
        settings = load_store_settings()

    configured = str(settings.get("database_path") or "").strip()
    if configured:
        return Path(configured).expanduser()
    return DEFAULT_DATABASE_PATH
