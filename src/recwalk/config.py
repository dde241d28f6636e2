from dotenv import load_dotenv
from dataclasses import dataclass
from pathlib import Path
import json
import os

from recwalk import constants

load_dotenv()  # Loads variables from .env file


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    DATABASE_URL = os.getenv("RECWALK_DATABASE_URL", "sqlite:///recwalk_data.db")  # Default to SQLite

    # Storage backend configuration
    STORE_BACKEND = os.getenv("RECWALK_STORE_BACKEND", "local")  # 'local' or 'memory'
    STORE_MAX_SIZE = int(os.getenv("RECWALK_STORE_MAX_SIZE", "100000"))

    # Site addressing
    NODE_URL_TEMPLATE = os.getenv(
        "RECWALK_NODE_URL_TEMPLATE", "https://www.youtube.com/watch?v={node_id}"
    )

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("RECWALK_LOG_FILE")


settings = Settings()


@dataclass
class TraversalConfig:
    """Configurable limits for the traversal scheduler."""

    # Retry state machine
    max_attempts_per_transition: int = constants.DEFAULT_MAX_ATTEMPTS_PER_TRANSITION
    max_selection_retries: int = constants.DEFAULT_MAX_SELECTION_RETRIES
    max_no_progress_streak: int = constants.DEFAULT_MAX_NO_PROGRESS_STREAK

    # Readiness polling after navigation (milliseconds)
    ready_timeout_ms: int = constants.READY_TIMEOUT_MS
    ready_poll_interval_ms: int = constants.READY_POLL_INTERVAL_MS

    # Reload-and-pause fallback between failed attempts
    reload_on_retry: bool = True
    retry_pause_seconds: float = constants.RETRY_PAUSE_SECONDS

    # Selection
    top_groups: int = constants.TOP_GROUPS_LIMIT

    # Metrics
    rolling_window_size: int = constants.ROLLING_WINDOW_SIZE

    # Pacing between attempts (seconds)
    pacing_base_delay: float = 1.0
    pacing_min_delay: float = 0.5
    pacing_max_delay: float = 10.0

    @classmethod
    def from_env(cls) -> "TraversalConfig":
        """Load configuration from environment variables.

        Environment variables should be prefixed with RECWALK_
        e.g., RECWALK_MAX_ATTEMPTS_PER_TRANSITION=5

        Returns:
            TraversalConfig with values from environment
        """
        config = cls()
        prefix = "RECWALK_"

        for field_name in config.__dataclass_fields__:
            env_key = f"{prefix}{field_name.upper()}"
            env_value = os.getenv(env_key)

            if env_value is not None:
                field_type = type(getattr(config, field_name))
                try:
                    if field_type is bool:
                        setattr(config, field_name, env_value.strip().lower() in ("1", "true", "yes", "on"))
                    elif field_type is int:
                        setattr(config, field_name, int(env_value))
                    elif field_type is float:
                        setattr(config, field_name, float(env_value))
                except ValueError:
                    pass  # Keep default if conversion fails

        return config

    @classmethod
    def from_file(cls, path: str) -> "TraversalConfig":
        """Load configuration from a JSON file.

        Args:
            path: Path to JSON configuration file

        Returns:
            TraversalConfig with values from file
        """
        config = cls()
        file_path = Path(path)

        if not file_path.exists():
            return config

        with open(file_path, 'r') as f:
            data = json.load(f)

        traversal = data.get('traversal', data)

        for field_name in config.__dataclass_fields__:
            if field_name in traversal:
                setattr(config, field_name, traversal[field_name])

        return config

    def to_dict(self) -> dict:
        """Convert configuration to dictionary.

        Returns:
            Dictionary of all configuration values
        """
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }

    def save_to_file(self, path: str) -> None:
        """Save current configuration to a JSON file.

        Args:
            path: Path to save configuration
        """
        with open(path, 'w') as f:
            json.dump({'traversal': self.to_dict()}, f, indent=2)
