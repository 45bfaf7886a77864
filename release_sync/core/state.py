"""
Persistent run state for release-sync.

The state is a single small JSON document that survives between runs:

    {
      "mode": "incremental",
      "last_run_at": "2026-10-18T07:00:02.123456+00:00",
      "bootstrap_days": 30,
      "incremental_days": 7,
      "buffer_days": 2,
      "artists": {"0OdUWJ0sBjDrqHygGUXeCF": true}
    }

It decides how far back each artist is scanned:
    - No completed run yet (last_run_at is null): bootstrap_days for everyone
    - Artist never scanned: bootstrap_days
    - Artist scanned before: incremental_days + buffer_days

Loading is forgiving: a missing or corrupt file yields the default
document, and each field is validated on its own so one bad value does
not discard the rest. Saving is atomic (temporary file + os.replace).

State Location:
    1. STATE_PATH environment variable (or state.path in config.yaml)
    2. $HOME/data/state.json on Azure App Service / Functions
       (WEBSITE_INSTANCE_ID or WEBSITE_SITE_NAME set)
    3. ./state.json

Concurrency:
    Two runs sharing one state file are not coordinated; the last
    writer wins.
"""

import json
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from release_sync.core.exceptions import StateError
from release_sync.core.logger import get_logger


logger = get_logger(__name__)

STATE_FILENAME = "state.json"

DEFAULT_BOOTSTRAP_DAYS = 30
DEFAULT_INCREMENTAL_DAYS = 7
DEFAULT_BUFFER_DAYS = 2


class RunMode(str, Enum):
    """Global run mode recorded in the state document."""
    BOOTSTRAP = "bootstrap"
    INCREMENTAL = "incremental"


@dataclass
class RunState:
    """
    In-memory form of the state document.

    Attributes:
        mode: BOOTSTRAP until the first successful run, INCREMENTAL after.
        last_run_at: UTC time of the last successful run, or None.
        bootstrap_days: Window for artists not scanned yet.
        incremental_days: Window for artists already scanned.
        buffer_days: Overlap added to incremental_days to catch releases
                     indexed late.
        artists: Artist id -> True once the artist has been scanned.
    """
    mode: RunMode = RunMode.BOOTSTRAP
    last_run_at: datetime | None = None
    bootstrap_days: int = DEFAULT_BOOTSTRAP_DAYS
    incremental_days: int = DEFAULT_INCREMENTAL_DAYS
    buffer_days: int = DEFAULT_BUFFER_DAYS
    artists: dict[str, bool] = field(default_factory=dict)

    def lookback_days(self, artist_id: str) -> int:
        """
        Return the lookback window in days for one artist.

        Args:
            artist_id: Spotify artist id.

        Returns:
            bootstrap_days while no run has completed or when the artist
            has never been scanned, otherwise incremental_days + buffer_days.
        """
        if self.last_run_at is None:
            return self.bootstrap_days
        if not self.artists.get(artist_id):
            return self.bootstrap_days
        return self.incremental_days + self.buffer_days

    def mark_scanned(self, artist_id: str) -> None:
        """Record that an artist has been scanned. Idempotent."""
        self.artists[artist_id] = True

    def complete_run(self, now: datetime | None = None) -> None:
        """Record a successful run: set last_run_at and switch to incremental mode."""
        self.last_run_at = now or datetime.now(timezone.utc)
        self.mode = RunMode.INCREMENTAL

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the JSON document layout."""
        return {
            "mode": self.mode.value,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "bootstrap_days": self.bootstrap_days,
            "incremental_days": self.incremental_days,
            "buffer_days": self.buffer_days,
            "artists": dict(self.artists),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RunState":
        """
        Build a RunState from a parsed document, field by field.

        Every field that is missing or invalid falls back to its default
        and is reported with a warning. Unknown keys are ignored.

        Args:
            data: The parsed JSON object.

        Returns:
            A valid RunState.
        """
        state = cls()

        raw_mode = data.get("mode", RunMode.BOOTSTRAP.value)
        try:
            state.mode = RunMode(raw_mode)
        except ValueError:
            logger.warning(f"State field 'mode' has invalid value {raw_mode!r}, using default")

        raw_last_run = data.get("last_run_at")
        if raw_last_run is not None:
            state.last_run_at = _parse_timestamp(raw_last_run)
            if state.last_run_at is None:
                logger.warning(f"State field 'last_run_at' has invalid value {raw_last_run!r}, using null")

        state.bootstrap_days = _day_count(data, "bootstrap_days", DEFAULT_BOOTSTRAP_DAYS, minimum=1)
        state.incremental_days = _day_count(data, "incremental_days", DEFAULT_INCREMENTAL_DAYS, minimum=0)
        state.buffer_days = _day_count(data, "buffer_days", DEFAULT_BUFFER_DAYS, minimum=0)

        raw_artists = data.get("artists", {})
        if isinstance(raw_artists, dict):
            state.artists = {
                str(artist_id): scanned
                for artist_id, scanned in raw_artists.items()
                if isinstance(scanned, bool)
            }
        else:
            logger.warning("State field 'artists' is not an object, using empty map")

        return state


def resolve_state_path(env: Mapping[str, str] | None = None) -> Path:
    """
    Work out where the state document lives.

    Args:
        env: Environment mapping, defaults to os.environ.

    Returns:
        STATE_PATH when set; $HOME/data/state.json when running on Azure
        (WEBSITE_INSTANCE_ID or WEBSITE_SITE_NAME set); else ./state.json.
    """
    if env is None:
        env = os.environ

    explicit = env.get("STATE_PATH")
    if explicit:
        return Path(explicit).expanduser()

    if env.get("WEBSITE_INSTANCE_ID") or env.get("WEBSITE_SITE_NAME"):
        home = env.get("HOME") or "/home"
        return Path(home) / "data" / STATE_FILENAME

    return Path.cwd() / STATE_FILENAME


class StateStore:
    """
    Loads and saves the RunState document at a fixed path.

    Example:
        store = StateStore(config.state.path)
        state = store.load()
        ...
        state.complete_run()
        store.save(state)
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> RunState:
        """
        Read the state document.

        Returns:
            The stored state, or a default RunState if the file is absent,
            unreadable, not valid JSON, or not a JSON object.
        """
        if not self.path.exists():
            logger.debug(f"No state file at {self.path}, starting in bootstrap mode")
            return RunState()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"State file {self.path} is unreadable ({e}), using defaults")
            return RunState()

        if not isinstance(data, dict):
            logger.warning(f"State file {self.path} does not hold a JSON object, using defaults")
            return RunState()

        return RunState.from_dict(data)

    def save(self, state: RunState) -> None:
        """
        Write the state document atomically.

        The document is written to a temporary file in the target
        directory and moved over the target with os.replace, so readers
        see either the old or the new document.

        Raises:
            StateError: If the directory cannot be created or the file
                        cannot be written.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(state.to_dict(), f, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StateError(
                f"Failed to save state to {self.path}: {e}",
                details={"file_path": str(self.path), "original_error": str(e)}
            ) from e

        logger.debug(f"State saved to {self.path}")


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        # Trailing "Z" is not accepted by fromisoformat before Python 3.11
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _day_count(data: Mapping[str, Any], key: str, default: int, minimum: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        logger.warning(f"State field '{key}' has invalid value {value!r}, using {default}")
        return default
    return value
