"""
Infrastructure layer: Snapshot-backed farm stores.

A FarmStore owns the in-memory collection and its lifecycle:
1. Initialize from a persisted snapshot (migrating older record shapes)
2. Serve reads from memory
3. Write every mutation through to the snapshot

Without a snapshot the store is purely in-memory, which gives each test a
fresh, isolated instance.
"""
from collections import Counter
from typing import Any, Callable, Optional
import json
import logging
import os
import tempfile
import threading

from citrus_farms.domain.errors import (
    DuplicateFarmError,
    FarmNotFoundError,
    StorageError,
)
from citrus_farms.domain.models import Farm, dump_farms
from citrus_farms.infrastructure.repository import FarmPage, FarmRepository, paginate
from citrus_farms.services.domain.schema_migration import normalize_records

logger = logging.getLogger(__name__)


class JsonFileSnapshot:
    """Persists the farm list as a JSON array in a single file."""

    def __init__(self, path: str):
        """
        Initialize the snapshot.

        Args:
            path: File holding the JSON array
        """
        self.path = path

    def read(self) -> Optional[list[Any]]:
        """
        Read the raw snapshot.

        Returns:
            Parsed JSON value, or None if the file does not exist

        Raises:
            StorageError: If the file exists but cannot be read or parsed
        """
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Could not read snapshot {self.path}: {e}") from e

    def write(self, records: list[dict[str, Any]]) -> None:
        """
        Replace the snapshot atomically via a temporary file.

        Raises:
            StorageError: If the file cannot be written
        """
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageError(f"Could not write snapshot {self.path}: {e}") from e


class FarmStore:
    """
    Explicit owner of the in-memory farm collection.

    Mutations build the new collection first and only swap it in after the
    snapshot write succeeds, so a failed write leaves the store unchanged.
    """

    def __init__(
        self,
        snapshot: Optional[JsonFileSnapshot] = None,
        initial_records: Optional[list[Any]] = None,
    ):
        """
        Initialize the store.

        Args:
            snapshot: Persistence target; None keeps the store in memory only
            initial_records: Seed records used when no snapshot exists yet
        """
        self.snapshot = snapshot
        self._farms: list[Farm] = []
        self._lock = threading.Lock()
        self._initialize(initial_records or [])

    def _initialize(self, seed: list[Any]) -> None:
        raw = self.snapshot.read() if self.snapshot else None
        if raw is None:
            result = normalize_records(seed)
            self._farms = result.farms
            if self.snapshot:
                logger.info(f"Seeding snapshot {self.snapshot.path} with {len(self._farms)} farms")
                self.snapshot.write(dump_farms(self._farms))
            return

        if not isinstance(raw, list):
            raise StorageError("Snapshot must contain a JSON array of farms")
        result = normalize_records(raw)
        self._farms = result.farms
        if result.changed:
            # Persist the migrated shape so later loads skip migration
            logger.info(f"Writing migrated snapshot back to {self.snapshot.path}")
            self.snapshot.write(dump_farms(self._farms))

    def read(self) -> list[Farm]:
        """Return deep copies of every stored farm in stored order."""
        with self._lock:
            return [farm.model_copy(deep=True) for farm in self._farms]

    def write(self, farms: list[Farm]) -> None:
        """
        Install a new collection, persisting it first.

        Raises:
            StorageError: If the snapshot write fails (store unchanged)
        """
        with self._lock:
            self._install(farms)

    def update(self, change: Callable[[list[Farm]], Optional[list[Farm]]]) -> None:
        """
        Apply a read-modify-write under the store lock.

        Args:
            change: Receives copies of the stored farms and returns the new
                collection, or None to leave the store untouched

        Raises:
            StorageError: If the snapshot write fails (store unchanged)
        """
        with self._lock:
            farms = change([farm.model_copy(deep=True) for farm in self._farms])
            if farms is not None:
                self._install(farms)

    def _install(self, farms: list[Farm]) -> None:
        # Caller holds the lock
        staged = [farm.model_copy(deep=True) for farm in farms]
        if self.snapshot:
            self.snapshot.write(dump_farms(staged))
        self._farms = staged


class InMemoryFarmRepository(FarmRepository):
    """Repository over a FarmStore; the store decides whether it persists."""

    def __init__(self, store: Optional[FarmStore] = None):
        self.store = store or FarmStore()

    def load_all(
        self,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> FarmPage:
        return paginate(self.store.read(), page, page_size)

    def get(self, farm_id: str) -> Farm:
        for farm in self.store.read():
            if farm.id == farm_id:
                return farm
        raise FarmNotFoundError(farm_id)

    def save(self, farm: Farm) -> Farm:
        def upsert(farms: list[Farm]) -> list[Farm]:
            for index, existing in enumerate(farms):
                if existing.id == farm.id:
                    farms[index] = farm
                    break
            else:
                farms.append(farm)
            return farms

        self.store.update(upsert)
        logger.debug(f"Saved farm {farm.id}")
        return farm.model_copy(deep=True)

    def insert(self, farm: Farm) -> Farm:
        def append_new(farms: list[Farm]) -> list[Farm]:
            if any(existing.id == farm.id for existing in farms):
                raise DuplicateFarmError(farm.id)
            farms.append(farm)
            return farms

        self.store.update(append_new)
        return farm.model_copy(deep=True)

    def delete(self, farm_id: str) -> None:
        def remove(farms: list[Farm]) -> Optional[list[Farm]]:
            remaining = [farm for farm in farms if farm.id != farm_id]
            return remaining if len(remaining) != len(farms) else None

        self.store.update(remove)
        logger.debug(f"Deleted farm {farm_id}")

    def replace_all(self, farms: list[Farm]) -> None:
        counts = Counter(farm.id for farm in farms)
        duplicates = {farm_id for farm_id, count in counts.items() if count > 1}
        if duplicates:
            raise StorageError(f"Duplicate farm ids in replacement set: {sorted(duplicates)}")
        self.store.write(farms)
        logger.info(f"Replaced all farms with {len(farms)} records")


class JsonFileFarmRepository(InMemoryFarmRepository):
    """Repository whose store writes through to a JSON snapshot file."""

    def __init__(self, path: str, initial_records: Optional[list[Any]] = None):
        """
        Initialize the repository.

        Args:
            path: Snapshot file location
            initial_records: Seed records when the file does not exist yet
        """
        super().__init__(FarmStore(JsonFileSnapshot(path), initial_records=initial_records))
        self.path = path
