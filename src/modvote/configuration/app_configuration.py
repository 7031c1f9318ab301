from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict, FrozenSet, Optional
import yaml

from modvote.datatypes.escalation_datatypes import VoteMode, VotingStrategy
from modvote.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_DATABASE_PATH = "./data/escalations.db"
DEFAULT_QUORUM = 3
DEFAULT_TIMEOUT_DURATION_HOURS = 12.0
DEFAULT_SWEEP_INTERVAL_SECONDS = 300.0
DEFAULT_SWEEP_CASE_TIMEOUT_SECONDS = 30.0


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed properties with defaults for every setting the escalation engine
    reads. Uses fcntl file locks for safe concurrent access across processes.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            logger.warning("[APP CONFIGURATION] Config %s is not a mapping; using defaults", self.config_path)
            return {}
        return data

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping.

        Returns an empty dict when the file is missing or malformed, in which
        case every property falls back to its default.
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping (do not mutate)."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # Database
    # --------------------------
    @property
    def database_path(self) -> Path:
        """Path of the SQLite file holding escalations and votes."""
        value = self._section("database").get("path") or DEFAULT_DATABASE_PATH
        return Path(str(value)).resolve()

    # --------------------------
    # Escalations
    # --------------------------
    @property
    def default_quorum(self) -> int:
        """Votes a single resolution needs before a simple vote resolves early."""
        try:
            quorum = int(self._section("escalations").get("default_quorum", DEFAULT_QUORUM))
        except (TypeError, ValueError):
            return DEFAULT_QUORUM
        return quorum if quorum > 0 else DEFAULT_QUORUM

    @property
    def default_voting_strategy(self) -> VotingStrategy:
        return VotingStrategy.parse(self._section("escalations").get("default_voting_strategy"))

    @property
    def vote_mode(self) -> VoteMode:
        """Whether a voter may back several resolutions at once (``multi``) or one (``single``)."""
        return VoteMode.parse(self._section("escalations").get("vote_mode"))

    @property
    def moderator_role_ids(self) -> FrozenSet[str]:
        """Role IDs whose holders may vote, expedite and escalate."""
        roles = self._section("escalations").get("moderator_role_ids") or []
        if not isinstance(roles, (list, tuple, set)):
            roles = [roles]
        return frozenset(str(role).strip() for role in roles if str(role).strip())

    @property
    def restricted_role_id(self) -> Optional[str]:
        """Role applied to a member when a case resolves to ``restrict``."""
        value = self._section("escalations").get("restricted_role_id")
        return str(value) if value else None

    @property
    def timeout_duration_hours(self) -> float:
        """How long a ``timeout`` resolution silences the reported member."""
        value = self._section("escalations").get("timeout_duration_hours", DEFAULT_TIMEOUT_DURATION_HOURS)
        try:
            return float(value)
        except (TypeError, ValueError):
            return DEFAULT_TIMEOUT_DURATION_HOURS

    # --------------------------
    # Resolution sweep
    # --------------------------
    @property
    def sweep_interval(self) -> float:
        """Seconds between two resolution sweeps. Default is 300 (5 minutes)."""
        value = self._section("sweep").get("interval_seconds", DEFAULT_SWEEP_INTERVAL_SECONDS)
        try:
            return max(1.0, float(value))
        except (TypeError, ValueError):
            return DEFAULT_SWEEP_INTERVAL_SECONDS

    @property
    def sweep_case_timeout(self) -> float:
        """Upper bound in seconds for resolving a single due case during a sweep."""
        value = self._section("sweep").get("case_timeout_seconds", DEFAULT_SWEEP_CASE_TIMEOUT_SECONDS)
        try:
            return max(0.1, float(value))
        except (TypeError, ValueError):
            return DEFAULT_SWEEP_CASE_TIMEOUT_SECONDS


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
