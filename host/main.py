"""
Main entry point for the Inbox host process.
Wires the conversation store, the optimistic send tracker, the messaging
gateway and the notification feed together and keeps them running.
"""

import logging
import asyncio
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

# Basic logging until we load configuration
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

from inbox.messages import ConversationStore, OptimisticSendTracker
from activity.gateway import HttpMessagingGateway
from activity.notifications import NotificationListener
from activity.sync import ConversationSynchronizer

from host.config import load_settings, InboxSettings
from host.observability import setup_tracing


# Rotation is sized in bytes; assume roughly 100 characters per log line
APPROX_BYTES_PER_LOG_LINE = 100


def _rotating_file_handler(path: str, max_lines: int, max_files: int) -> RotatingFileHandler:
    log_dir = os.path.dirname(path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    return RotatingFileHandler(
        filename=path,
        maxBytes=max_lines * APPROX_BYTES_PER_LOG_LINE,
        backupCount=max(max_files - 1, 0),  # current file + backups = max_files
        encoding='utf-8'
    )


def configure_logging(settings: InboxSettings) -> None:
    """
    Replaces the root handlers with a console handler and, when enabled,
    a rotating file handler. An unknown level falls back to INFO.
    """
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        logger.error(f"Invalid log level: {settings.log_level}. Using INFO instead.")
        level = logging.INFO

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.log_to_file:
        try:
            handlers.append(_rotating_file_handler(settings.log_file_path,
                                                   settings.log_max_lines_per_file,
                                                   settings.log_max_files))
        except OSError as e:
            logger.warning(f"Failed to setup file logging: {e}. Continuing with console logging only.")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    formatter = logging.Formatter(settings.log_format)
    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
    root_logger.setLevel(level)
    logger.info(f"Logging configured: level={logging.getLevelName(level)}, "
                f"file={settings.log_file_path if len(handlers) > 1 else 'off'}")


def build_synchronizer(settings: InboxSettings,
                       store: Optional[ConversationStore] = None) -> ConversationSynchronizer:
    """
    Builds the store, tracker, gateway client and synchronizer from settings.

    Args:
        settings: Loaded inbox settings
        store: Existing store to attach to; a new one is created if omitted

    Returns:
        A ready ConversationSynchronizer. Its gateway must be closed by the caller.
    """
    if store is None:
        store = ConversationStore(match_window_seconds=settings.optimistic_match_window_seconds)
    tracker = OptimisticSendTracker(store)
    gateway = HttpMessagingGateway(
        base_url=settings.gateway_base_url,
        api_key=settings.gateway_api_key,
        account_id=settings.gateway_account_id,
        request_timeout_seconds=settings.gateway_request_timeout_seconds
    )
    return ConversationSynchronizer(
        store=store,
        gateway=gateway,
        tracker=tracker,
        send_timeout_seconds=settings.send_timeout_seconds,
        fetch_limit=settings.message_fetch_limit,
        max_message_length=settings.max_message_length
    )


def build_listener(settings: InboxSettings,
                   synchronizer: ConversationSynchronizer) -> Optional[NotificationListener]:
    """Creates the notification listener, or None when no feed URL is configured."""
    if not settings.notifications_url:
        return None
    return NotificationListener(
        url=settings.notifications_url,
        on_new_message=synchronizer.handle_new_message_notification,
        on_sync_completed=synchronizer.refresh_all,
        auth_token=settings.notifications_auth_token
    )


async def amain():
    """Asynchronous main entry point."""
    settings = load_settings()

    configure_logging(settings)

    if settings.tracing_enabled:
        setup_tracing()

    synchronizer = build_synchronizer(settings)
    listener = build_listener(settings, synchronizer)

    try:
        if listener is None:
            logger.warning("No notification feed configured (INBOX_NOTIFICATIONS_URL). Nothing to listen to; exiting.")
            return
        if not await listener.connect():
            logger.error("Could not connect to the notification feed. Exiting.")
            return
        logger.info("Inbox host running. Waiting for notifications...")
        await listener.wait()

    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received. Initiating shutdown...")
    finally:
        logger.info("Inbox host shutting down...")
        if listener:
            await listener.disconnect()
        await synchronizer.gateway.close()
        logger.info("Shutdown sequence complete.")


def main():
    """Synchronous entry point."""
    try:
        asyncio.run(amain())
    except Exception as e:
        logger.critical(f"Critical error during host execution: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
