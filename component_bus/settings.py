import os

from dotenv import load_dotenv

# Load .env file variables into environment
load_dotenv(verbose=True)

SCOPE_CONFLICT_LAST_WINS = "last_wins"
SCOPE_CONFLICT_ERROR = "error"
VALID_SCOPE_CONFLICT_POLICIES = (SCOPE_CONFLICT_LAST_WINS, SCOPE_CONFLICT_ERROR)


class Settings:
    """Application configuration settings loaded from environment variables."""

    # --- Logging Settings ---
    def get_log_level(self, default: str = "INFO") -> str:
        """Gets the configured log level, defaulting if not set."""
        return os.getenv("LOG_LEVEL", default).upper()

    # --- Dispatch Settings ---
    def get_scope_conflict_policy(self) -> str:
        """Returns how a second `to()`/`self()` modifier on the same pending event is handled."""
        policy = os.getenv("COMPONENT_BUS_SCOPE_CONFLICT", SCOPE_CONFLICT_LAST_WINS).lower()
        if policy not in VALID_SCOPE_CONFLICT_POLICIES:
            raise ValueError(
                f"Invalid COMPONENT_BUS_SCOPE_CONFLICT '{policy}'. "
                f"Valid values are: {', '.join(VALID_SCOPE_CONFLICT_POLICIES)}"
            )
        return policy

    def get_max_flush_events(self) -> int:
        """Returns the maximum number of events a single flush may deliver."""
        try:
            value = int(os.getenv("COMPONENT_BUS_MAX_FLUSH_EVENTS", "1000"))
        except ValueError:
            raise ValueError("COMPONENT_BUS_MAX_FLUSH_EVENTS environment variable must be an integer.")
        if value < 1:
            raise ValueError("COMPONENT_BUS_MAX_FLUSH_EVENTS must be at least 1.")
        return value

    # --- Server Settings ---
    def get_app_host(self) -> str:
        return os.getenv("COMPONENT_BUS_HOST", "0.0.0.0")  # nosec B104

    def get_app_port(self) -> int:
        """Returns the dev server port as an integer."""
        port_str = os.getenv("COMPONENT_BUS_PORT", "8000")
        try:
            return int(port_str)
        except ValueError:
            raise ValueError(f"Invalid COMPONENT_BUS_PORT value: {port_str}")

    def get_app_reload(self) -> bool:
        return os.getenv("COMPONENT_BUS_RELOAD", "false").lower() == "true"
