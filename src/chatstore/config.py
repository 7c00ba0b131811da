from pathlib import Path

# Project root, three levels up from .../src/chatstore/config.py.
ROOT_DIR = Path(__file__).resolve().parent.parent.parent

# Runtime locations; everything hangs off ROOT_DIR.
DATA_DIR = ROOT_DIR / "data"
LOGS_DIR = ROOT_DIR / "logs"
SETTINGS_FILE = ROOT_DIR / "chatstore_settings.json"
DEFAULT_DATABASE_PATH = DATA_DIR / "chat_state.db"

# Well-known key the whole store state is persisted under.
STORAGE_KEY = "chat_state"

# Placeholder title that auto-derivation is allowed to overwrite.
DEFAULT_SESSION_TITLE = "New Chat"
TITLE_MAX_CHARS = 50
TITLE_ELLIPSIS = "..."
