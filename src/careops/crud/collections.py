# src/careops/crud/collections.py
from __future__ import annotations

import json
import logging
from typing import Any, Generic, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from src.careops.utils.logger import diagnostics
from src.careops.utils.storage import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class RecordCollection(Generic[T]):
    """
    A JSON array of typed records stored under one key.

    The record model is the only definition of a valid entry: items that fail
    validation are skipped on read, and an unparseable payload reads as empty.
    """

    def __init__(self, store: KeyValueStore, key: str, model: Type[T]) -> None:
        self.store = store
        self.key = key
        self.model = model

    # -------- Raw access --------
    def _load_raw(self) -> List[Any]:
        raw = self.store.get(self.key)
        if not raw:
            return []
        try:
            decoded = json.loads(raw)
        except (TypeError, ValueError) as e:
            diagnostics.warning("Corrupt '%s' payload, treating as empty: %s", self.key, e)
            return []
        if not isinstance(decoded, list):
            diagnostics.warning("'%s' is not a list (%s), treating as empty", self.key, type(decoded).__name__)
            return []
        return decoded

    def raw_count(self) -> int:
        return len(self._load_raw())

    # -------- Typed access --------
    def list(self) -> List[T]:
        items: List[T] = []
        for item in self._load_raw():
            try:
                items.append(self.model.model_validate(item))
            except ValidationError as e:
                logger.debug("Skipping invalid %s in '%s': %s", self.model.__name__, self.key, e.errors())
        return items

    def replace_all(self, items: Sequence[T]) -> List[T]:
        payload = [i.model_dump(mode="json") for i in items]
        self.store.set(self.key, json.dumps(payload, ensure_ascii=False))
        return list(items)

    def append(self, item: T) -> List[T]:
        items = self.list()
        items.append(item)
        return self.replace_all(items)

    def prepend(self, item: T, cap: Optional[int] = None) -> List[T]:
        """Insert newest-first, evicting from the tail beyond `cap`."""
        items = [item, *self.list()]
        if cap is not None:
            items = items[: max(0, int(cap))]
        return self.replace_all(items)

    def clear(self) -> None:
        self.store.delete(self.key)
