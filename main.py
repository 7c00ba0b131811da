import argparse
import logging
from typing import List, Optional

from src.chatstore.app.chat_store_app import ChatStoreApp
from src.chatstore.services.logging_service import LoggingService
from src.chatstore.services.store_settings_manager import load_store_settings
from src.chatstore.utils.session_groups import group_sessions_by_date


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect the persisted chat sessions.")
    parser.add_argument("--log-level", help="Console log level (overrides the settings file)")
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use in-memory storage instead of the SQLite database",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point: boot the store, print the session list, shut down.
    """
    args = parse_args(argv)
    settings = load_store_settings()
    if args.memory:
        settings["storage_backend"] = "memory"
    LoggingService.setup_logging(level=(args.log_level or settings["log_level"]).upper())

    app = ChatStoreApp(settings=settings)
    try:
        state = app.store.state
        for label, sessions in group_sessions_by_date(state.sessions).items():
            print(label)
            for session in sessions:
                marker = "*" if session.id == state.active_session_id else " "
                print(f"  {marker} {session.title} ({session.message_count} messages)")
        logging.info("Total messages across sessions: %d", app.store.get_total_message_count())
    finally:
        app.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
