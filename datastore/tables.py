from __future__ import annotations

import json
import os
from pathlib import Path
from threading import Lock
from typing import Callable, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.schemas import Reading, UserProfile
from services.errors import PersistenceError

ModelT = TypeVar("ModelT", bound=BaseModel)


class MockTable(Generic[ModelT]):
    """Thread-safe keyed table of pydantic models with optional JSON persistence."""

    def __init__(
        self,
        name: str,
        model: Type[ModelT],
        key: Callable[[ModelT], str],
        persistence_path: Optional[Path] = None,
    ) -> None:
        self.name = name
        self._model = model
        self._key = key
        self._items: Dict[str, ModelT] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            try:
                persistence_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise PersistenceError(f"Cannot prepare storage for table {name!r}: {exc}") from exc
            self._load_from_disk()

    def put_item(self, item: ModelT) -> None:
        with self._lock:
            key = self._key(item)
            previous = self._items.get(key)
            self._items[key] = item.model_copy(deep=True)
            try:
                self._persist()
            except PersistenceError:
                if previous is None:
                    self._items.pop(key, None)
                else:
                    self._items[key] = previous
                raise

    def get_item(self, key: str) -> Optional[ModelT]:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            return item.model_copy(deep=True)

    def scan(self) -> list[ModelT]:
        """Return deep copies of all stored items."""

        with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {
            key: item.model_dump(mode="json", by_alias=True) for key, item in self._items.items()
        }
        # Atomic swap: the table file is never left partially written.
        temp_path = self.persistence_path.with_name(f".{self.persistence_path.name}.tmp")
        try:
            temp_path.write_text(json.dumps(payload, indent=2, sort_keys=True))
            os.replace(temp_path, self.persistence_path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to write table {self.name!r}: {exc}") from exc

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(
                f"Cannot read table {self.name!r} from {self.persistence_path}: {exc}"
            ) from exc
        if not isinstance(data, dict):
            raise PersistenceError(
                f"Table {self.name!r} at {self.persistence_path} is not a JSON object"
            )

        try:
            for key, payload in data.items():
                self._items[key] = self._model.model_validate(payload)
        except ValidationError as exc:
            self._items.clear()
            raise PersistenceError(
                f"Table {self.name!r} holds an invalid record: {exc}"
            ) from exc


class ReadingTable(MockTable[Reading]):
    def __init__(self, name: str = "readings", persistence_path: Optional[Path] = None) -> None:
        super().__init__(name, Reading, lambda reading: reading.reading_id, persistence_path)


class ProfileTable(MockTable[UserProfile]):
    def __init__(self, name: str = "profiles", persistence_path: Optional[Path] = None) -> None:
        super().__init__(name, UserProfile, lambda profile: profile.device_id, persistence_path)
