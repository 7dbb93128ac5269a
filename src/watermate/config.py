"""Runtime settings for watermate."""

import os
from dataclasses import dataclass
from pathlib import Path

# Can be overridden via WATERMATE_DATA_DIR environment variable
_default_data_dir = Path(__file__).parent.parent.parent / "data"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


@dataclass
class Settings:
    """Settings resolved from the environment."""

    data_dir: Path
    strict_transitions: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        - WATERMATE_DATA_DIR: directory holding the state blobs
        - WATERMATE_STRICT_TRANSITIONS: reject out-of-order status changes
        - WATERMATE_LOG_LEVEL: logging level name (default INFO)
        - WATERMATE_LOG_JSON: emit log records as JSON lines
        """
        return cls(
            data_dir=Path(os.environ.get("WATERMATE_DATA_DIR", _default_data_dir)),
            strict_transitions=_env_flag("WATERMATE_STRICT_TRANSITIONS"),
            log_level=os.environ.get("WATERMATE_LOG_LEVEL", "INFO").upper(),
            log_json=_env_flag("WATERMATE_LOG_JSON"),
        )

    def export_env(self) -> None:
        """Write these settings back to the environment.

        The API reads its settings per request with ``from_env``; ``serve``
        calls this before starting uvicorn, reload workers included.
        """
        os.environ["WATERMATE_DATA_DIR"] = str(self.data_dir)
        os.environ["WATERMATE_STRICT_TRANSITIONS"] = "1" if self.strict_transitions else "0"
        os.environ["WATERMATE_LOG_LEVEL"] = self.log_level
        os.environ["WATERMATE_LOG_JSON"] = "1" if self.log_json else "0"
