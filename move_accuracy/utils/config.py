"""
Configuration management for move accuracy analysis.
Loads settings from config.yaml and provides easy access.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config.yaml"


class Config:
    """
    Manages project configuration loaded from a YAML file.
    Every setting has a default, so an empty file is a valid configuration.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to config.yaml. If None, uses the project root
                copy when there is one and the built-in defaults otherwise.

        Raises:
            FileNotFoundError: If an explicit config_path does not exist
        """
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH
            if not config_path.exists():
                logger.debug("No config file at %s, using defaults", config_path)
                self.config_path = None
                self._config: Dict[str, Any] = {}
                return

        self.config_path = Path(config_path)
        with open(self.config_path, "r", encoding="utf-8") as f:
            self._config = yaml.safe_load(f) or {}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Build a config from an already-loaded mapping."""
        config = cls.__new__(cls)
        config.config_path = None
        config._config = data or {}
        return config

    def get(self, *keys: str, default=None) -> Any:
        """
        Get a config value by walking nested keys.

        Example:
            config.get("engine", "options", "Threads")
        """
        value = self._config
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    # Engine settings
    @property
    def engine_path(self) -> Union[str, List[str]]:
        """Path to the UCI engine binary, or a full argv list (e.g. [wsl, stockfish])."""
        path = self.get("engine", "path", default="stockfish")
        if isinstance(path, (list, tuple)):
            return [str(part) for part in path]
        return str(path)

    @property
    def engine_depth(self) -> int:
        """Search depth for every evaluation."""
        return int(self.get("engine", "depth", default=18))

    @property
    def engine_options(self) -> Dict[str, Any]:
        """UCI options sent after the handshake (Threads, Hash, ...)."""
        return dict(self.get("engine", "options", default={}) or {})

    @property
    def handshake_timeout(self) -> float:
        return float(self.get("engine", "handshake_timeout_seconds", default=10))

    @property
    def search_timeout(self) -> float:
        """Seconds allowed for a single search."""
        return float(self.get("engine", "search_timeout_seconds", default=60))

    @property
    def quit_grace(self) -> float:
        """Seconds the engine gets to exit after quit before it is killed."""
        return float(self.get("engine", "quit_grace_seconds", default=2))

    @property
    def mate_score(self) -> int:
        return int(self.get("engine", "mate_score", default=100000))

    @property
    def score_perspective(self) -> str:
        return str(self.get("engine", "score_perspective", default="side_to_move"))

    @property
    def timeout_retries(self) -> int:
        return int(self.get("engine", "timeout_retries", default=0))

    # Analysis settings
    @property
    def move_policy(self) -> str:
        """'strict' or 'lenient' move application."""
        return str(self.get("analysis", "move_policy", default="strict"))

    @property
    def concurrency(self) -> int:
        """Number of games analysed at once, one engine each."""
        return int(self.get("analysis", "concurrency", default=1))

    @property
    def cache_path(self) -> Optional[Path]:
        """Evaluation cache directory, None to disable the on-disk cache."""
        path = self.get("paths", "cache", default="data/cache")
        return Path(path) if path else None

    @property
    def log_level(self) -> str:
        return str(self.get("logging", "level", default="INFO")).upper()

    def __repr__(self) -> str:
        return (f"Config(engine='{self.engine_path}', depth={self.engine_depth}, "
                f"policy='{self.move_policy}')")


# Global config instance (lazy loaded)
_global_config: Optional[Config] = None


def get_config(config_path: Optional[Path] = None) -> Config:
    """
    Get the global config instance.

    Args:
        config_path: Optional path to config file (only used on first call)

    Returns:
        Config instance
    """
    global _global_config
    if _global_config is None:
        _global_config = Config(config_path)
    return _global_config
