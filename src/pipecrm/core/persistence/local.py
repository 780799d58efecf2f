"""
Local cache adapter (state.json).

Keeps the whole workspace in one JSON blob on disk:

    {
        "entities": [ {"id": "...", "name": "...", "status": "Lead", ...} ],
        "stages": ["Lead", "Demo booked", ...],
        "selectedId": "..." | null
    }

Writes go through a temporary file and an atomic rename, and are
serialized with a lock so the sync worker and the caller never interleave
a read-modify-write.
"""

import json
import logging
import os
import shutil
import tempfile
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pipecrm.core.accounts.models import DEFAULT_STAGES, Account
from pipecrm.core.accounts.store import normalize_stages
from pipecrm.core.exceptions import CorruptStateError, PersistenceTransientError, ValidationError

from .adapter import register_adapter
from .normalize import account_from_row, account_to_row

logger = logging.getLogger(__name__)


@dataclass
class CachedState:
    """Everything the local cache holds."""

    accounts: list[Account] = field(default_factory=list)
    stages: list[str] = field(default_factory=lambda: list(DEFAULT_STAGES))
    selected_id: str | None = None


@register_adapter("local")
class LocalCacheAdapter:
    """
    Persistence adapter backed by a single JSON blob.

    Always available. A missing file reads as an empty state; a file that
    fails to parse or has the wrong shape raises CorruptStateError on load,
    and is moved aside (``.corrupt`` suffix) before the next write replaces it.

    Example:
        >>> cache = LocalCacheAdapter(Path("~/.local/share/pipecrm/state.json"))
        >>> state = cache.load_state()
        >>> cache.upsert(account)
    """

    def __init__(self, path: Path, default_stages: Iterable[str] | None = None) -> None:
        """
        Initialize the local cache.

        Args:
            path: Location of the JSON blob
            default_stages: Stages reported when the blob has none
        """
        self.path = Path(path).expanduser()
        self.default_stages = list(default_stages or DEFAULT_STAGES)
        self._lock = threading.Lock()

    @property
    def adapter_name(self) -> str:
        return "local"

    # ------------------------------------------------------------------
    # Blob I/O
    # ------------------------------------------------------------------

    def _empty_blob(self) -> dict[str, Any]:
        return {"entities": [], "stages": list(self.default_stages), "selectedId": None}

    def _read_blob(self) -> dict[str, Any]:
        """
        Read and shape-check the blob.

        Raises:
            CorruptStateError: If the file is unreadable or malformed
        """
        if not self.path.exists():
            return self._empty_blob()

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptStateError("local", f"Failed to parse {self.path}: {e}") from e
        except OSError as e:
            raise CorruptStateError("local", f"Failed to read {self.path}: {e}") from e

        if data is None:
            return self._empty_blob()
        if not isinstance(data, dict):
            raise CorruptStateError("local", f"{self.path} must hold a JSON object")

        entities = data.get("entities", [])
        if not isinstance(entities, list):
            raise CorruptStateError("local", "'entities' must be a list")
        stages = data.get("stages") or []
        if not isinstance(stages, list):
            raise CorruptStateError("local", "'stages' must be a list")
        try:
            stages = normalize_stages(stages)
        except ValidationError:
            stages = list(self.default_stages)
        selected = data.get("selectedId")

        return {
            "entities": [row for row in entities if isinstance(row, dict)],
            "stages": stages,
            "selectedId": selected if isinstance(selected, str) else None,
        }

    def _read_for_write(self) -> dict[str, Any]:
        try:
            return self._read_blob()
        except CorruptStateError as e:
            backup = self.path.with_suffix(self.path.suffix + ".corrupt")
            logger.warning("Local cache is corrupt (%s); moving it to %s", e, backup)
            try:
                shutil.move(str(self.path), backup)
            except OSError as move_error:
                logger.warning("Could not move corrupt cache aside: %s", move_error)
            return self._empty_blob()

    def _write_blob(self, data: dict[str, Any]) -> None:
        """
        Save the blob atomically.

        Raises:
            PersistenceTransientError: If the file cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=".state_", suffix=".json.tmp"
            )
        except OSError as e:
            raise PersistenceTransientError("local", f"Cannot write {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(temp_path, self.path)
        except OSError as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise PersistenceTransientError("local", f"Cannot write {self.path}: {e}") from e

    # ------------------------------------------------------------------
    # Whole-state access
    # ------------------------------------------------------------------

    def load_state(self) -> CachedState:
        """
        Load everything in the blob.

        Raises:
            CorruptStateError: If the blob is unreadable or malformed
        """
        with self._lock:
            blob = self._read_blob()
        stages = blob["stages"]
        accounts = [account_from_row(row, default_status=stages[0]) for row in blob["entities"]]
        accounts.sort(key=lambda a: a.updated_at, reverse=True)
        return CachedState(accounts=accounts, stages=stages, selected_id=blob["selectedId"])

    def save_state(
        self, accounts: Iterable[Account], stages: Iterable[str], selected_id: str | None
    ) -> None:
        """Rewrite the whole blob."""
        data = {
            "entities": [account_to_row(a) for a in accounts],
            "stages": list(stages),
            "selectedId": selected_id,
        }
        with self._lock:
            self._write_blob(data)

    def save_meta(self, stages: Iterable[str], selected_id: str | None) -> None:
        """Rewrite stages and selection, keeping stored entities."""
        with self._lock:
            blob = self._read_for_write()
            blob["stages"] = list(stages)
            blob["selectedId"] = selected_id
            self._write_blob(blob)

    # ------------------------------------------------------------------
    # PersistenceAdapter
    # ------------------------------------------------------------------

    def load_all(self) -> list[Account]:
        return self.load_state().accounts

    def upsert(self, account: Account) -> None:
        row = account_to_row(account)
        with self._lock:
            blob = self._read_for_write()
            entities = [r for r in blob["entities"] if r.get("id") != account.id]
            blob["entities"] = [row, *entities]
            self._write_blob(blob)

    def patch(self, account_id: str, fields: Mapping[str, Any]) -> None:
        with self._lock:
            blob = self._read_for_write()
            for row in blob["entities"]:
                if row.get("id") == account_id:
                    row.update(fields)
                    break
            else:
                logger.debug("Local patch for unknown account %s ignored", account_id)
                return
            self._write_blob(blob)

    def delete(self, account_id: str) -> None:
        with self._lock:
            blob = self._read_for_write()
            remaining = [r for r in blob["entities"] if r.get("id") != account_id]
            if len(remaining) == len(blob["entities"]):
                return
            blob["entities"] = remaining
            self._write_blob(blob)
