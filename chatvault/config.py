"""
Configuration module for chatvault.

Handles the store location and the user's aliases.

Environment Variables:
    CHATVAULT_DB_PATH: Path to the SQLite store
                       (default: ~/.chatvault/chatvault.db)
    CHATVAULT_ALIASES: Comma-separated usernames that refer to the user

The import pipeline never reads configuration itself; callers pass the
store and aliases in explicitly.
"""

import os
from pathlib import Path
from typing import Iterable, List, Optional


def _clean_aliases(aliases: Iterable[str]) -> List[str]:
    """Trim, drop blanks and de-duplicate (case-insensitive), keeping order."""
    cleaned: List[str] = []
    seen = set()
    for alias in aliases:
        alias = alias.strip()
        if alias and alias.casefold() not in seen:
            seen.add(alias.casefold())
            cleaned.append(alias)
    return cleaned


class Config:
    """Configuration class for chatvault."""

    DEFAULT_DATA_PATH = Path.home() / ".chatvault"
    DEFAULT_DB_NAME = "chatvault.db"

    DB_PATH_ENV = "CHATVAULT_DB_PATH"
    ALIASES_ENV = "CHATVAULT_ALIASES"

    def __init__(
        self,
        db_path: Optional[str] = None,
        aliases: Optional[Iterable[str]] = None,
    ):
        """
        Initialize configuration.

        Args:
            db_path: Optional path to the store. Falls back to
                    CHATVAULT_DB_PATH, then ~/.chatvault/chatvault.db.
            aliases: Optional alias list. Falls back to CHATVAULT_ALIASES.
        """
        env_db_path = os.getenv(self.DB_PATH_ENV)
        if db_path:
            self._db_path = Path(db_path)
        elif env_db_path:
            self._db_path = Path(env_db_path)
        else:
            self._db_path = self.DEFAULT_DATA_PATH / self.DEFAULT_DB_NAME

        if aliases is None:
            aliases = os.getenv(self.ALIASES_ENV, "").split(",")
        self._aliases = _clean_aliases(aliases)

    @property
    def db_path(self) -> Path:
        """Get the store file path."""
        return self._db_path

    @property
    def db_path_str(self) -> str:
        """Get the store file path as a string."""
        return str(self._db_path)

    @property
    def aliases(self) -> List[str]:
        """Get the user's aliases in priority order."""
        return list(self._aliases)

    def add_alias(self, name: str) -> None:
        """Add an alias (ignored if blank or already present)."""
        self._aliases = _clean_aliases([*self._aliases, name])

    def remove_alias(self, name: str) -> None:
        """Remove an alias, matching case-insensitively."""
        folded = name.strip().casefold()
        self._aliases = [alias for alias in self._aliases if alias.casefold() != folded]

    def ensure_db_dir(self) -> None:
        """
        Ensure the store's parent directory exists.
        """
        self._db_path.parent.mkdir(parents=True, exist_ok=True)


# Global configuration instance
_config: Optional[Config] = None


def get_config(db_path: Optional[str] = None) -> Config:
    """
    Get or create the global configuration instance.

    Args:
        db_path: Optional path to the store.

    Returns:
        Config instance.
    """
    global _config
    if _config is None or db_path is not None:
        _config = Config(db_path)
    return _config


def set_config(config: Config) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Config instance to use.
    """
    global _config
    _config = config
