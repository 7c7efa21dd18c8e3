import logging
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

logger = logging.getLogger(__name__)

# Environment variable prefix
ENV_PREFIX = "INBOX_"


class InboxSettings(BaseSettings):
    """Main configuration settings loaded from environment variables."""

    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    log_format: str = Field(default='%(asctime)s - %(name)s - %(levelname)s - %(message)s', description="Logging format string")
    log_to_file: bool = Field(default=False, description="Enable logging to file with rotation")
    log_file_path: str = Field(default="logs/inbox.log", description="Path to the log file (directory will be created)")
    log_max_lines_per_file: int = Field(default=5000, description="Maximum lines per log file before rotation")
    log_max_files: int = Field(default=10, description="Maximum number of log files to keep")

    # Messaging gateway (durable fetch/send)
    gateway_base_url: str = Field(default="http://localhost:8000/api/v1", description="Base URL of the messaging gateway REST API")
    gateway_api_key: Optional[str] = Field(default=None, description="Bearer token for the messaging gateway")
    gateway_account_id: Optional[str] = Field(default=None, description="Connected account the gateway should act for")
    gateway_request_timeout_seconds: float = Field(default=30.0, description="Timeout for a single gateway HTTP request")

    # Notification feed
    notifications_url: Optional[str] = Field(default=None, description="Socket.IO URL of the new-message notification feed")
    notifications_auth_token: Optional[str] = Field(default=None, description="Authentication token for the notification feed")

    # Reconciliation
    send_timeout_seconds: float = Field(default=30.0, description="Seconds before an unresolved send is marked failed")
    message_fetch_limit: int = Field(default=100, description="Maximum messages fetched per conversation refresh")
    max_message_length: int = Field(default=2000, description="Maximum characters accepted for an outgoing message")
    optimistic_match_window_seconds: Optional[float] = Field(
        default=60.0,
        description="Window for matching optimistic sends to confirmed copies during merge (unset disables matching)"
    )

    # Tracing
    tracing_enabled: bool = Field(default=False, description="Export OpenTelemetry traces over OTLP")

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file='.env',            # Load from .env file
        env_file_encoding='utf-8',
        env_prefix=ENV_PREFIX,      # Prefix for environment variables
        extra='ignore',             # Ignore extra fields found in env
        case_sensitive=False
    )


# Helper function to load settings
def load_settings(**overrides) -> InboxSettings:
    import os
    logger.info(f"Loading inbox configuration from .env file and environment variables (prefix: '{ENV_PREFIX}')...")
    logger.info(f".env file exists: {os.path.exists('.env')}")

    try:
        from dotenv import load_dotenv
        env_loaded = load_dotenv('.env', override=False)
        logger.info(f"Manual .env loading result: {env_loaded}")
    except Exception as e:
        logger.warning(f"Failed to manually load .env file: {e}")

    inbox_vars = sorted(key for key in os.environ if key.startswith(ENV_PREFIX))
    logger.debug(f"Found {len(inbox_vars)} {ENV_PREFIX} environment variables: {inbox_vars}")

    settings = InboxSettings(**overrides)
    logger.info(f"Inbox settings loaded. Gateway: {settings.gateway_base_url}, "
                f"notifications: {settings.notifications_url or 'disabled'}, "
                f"match window: {settings.optimistic_match_window_seconds}")
    return settings
