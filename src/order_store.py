r"""
Order Store - persistence of orders and operators.

Two collections are used, "orders" and "operators". Every entity is a plain
JSON document with an "id" key that doubles as its storage key.

Stores push the complete collection to their listeners after every change;
listeners must treat each snapshot as the whole truth and drop whatever they
held before. upsert() merges the given fields into the stored document
(last write wins per field), so callers always send whole documents.

Implementations:
    InMemoryStore  - process-local, used by tests and demos
    JsonFileStore  - one JSON registry per collection under a base directory

Storage structure of JsonFileStore:
    <DataPath>\Orders\
    ├── orders.json     {"version": "1.0", "items": [...]}
    └── operators.json
"""
import copy
import json
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Any

from exceptions import ListenError, PersistenceError
from logger import get_logger

logger = get_logger(__name__)

ORDERS = "orders"
OPERATORS = "operators"

REGISTRY_VERSION = "1.0"

SnapshotCallback = Callable[[List[Dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]


class BaseStore:
    """
    Listener bookkeeping shared by all stores.

    Subclasses implement _read(collection) and _write(collection, items).
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._listeners: Dict[str, List[SnapshotCallback]] = {}

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    def _read(self, collection: str) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def _write(self, collection: str, items: List[Dict[str, Any]]) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list_all(self, collection: str) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._read(collection))

    def listen(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None
    ) -> Callable[[], None]:
        """
        Subscribe to full snapshots of a collection.

        The current snapshot is delivered immediately. If it cannot be read,
        on_error receives a ListenError (or it is raised when on_error is None)
        and no subscription is kept.

        Returns:
            Callable that removes the subscription
        """
        try:
            snapshot = self.list_all(collection)
        except PersistenceError as e:
            error = ListenError(str(e), collection=collection)
            logger.error(f"Error listening to {collection} collection: {e}")
            if on_error is None:
                raise error from e
            on_error(error)
            return lambda: None

        with self._lock:
            self._listeners.setdefault(collection, []).append(on_snapshot)

        on_snapshot(snapshot)
        logger.debug(f"Listener added for {collection}")

        def unsubscribe():
            with self._lock:
                listeners = self._listeners.get(collection, [])
                if on_snapshot in listeners:
                    listeners.remove(on_snapshot)

        return unsubscribe

    def upsert(self, collection: str, entity: Dict[str, Any]) -> None:
        """
        Create or update a document, merging fields into the stored one.

        Raises:
            PersistenceError: Missing id or storage failure
        """
        entity_id = entity.get('id')
        if not entity_id:
            raise PersistenceError("Entity without id cannot be saved", collection=collection)

        with self._lock:
            items = self._read(collection)
            for item in items:
                if item['id'] == entity_id:
                    item.update(copy.deepcopy(entity))
                    break
            else:
                items.append(copy.deepcopy(entity))

            self._write(collection, items)

        logger.debug(f"Saved {collection}/{entity_id}")
        self._notify(collection)

    def delete_by_id(self, collection: str, entity_id: str) -> bool:
        """
        Remove a document.

        Returns:
            True if it existed
        """
        with self._lock:
            items = self._read(collection)
            remaining = [item for item in items if item['id'] != entity_id]
            if len(remaining) == len(items):
                logger.warning(f"Nothing to delete: {collection}/{entity_id}")
                return False
            self._write(collection, remaining)

        logger.info(f"Deleted {collection}/{entity_id}")
        self._notify(collection)
        return True

    def delete_completed(self, collection: str = ORDERS) -> int:
        """
        Bulk-remove every document with a non-null endTime.

        Returns:
            Number of documents removed
        """
        with self._lock:
            items = self._read(collection)
            remaining = [item for item in items if item.get('endTime') is None]
            removed = len(items) - len(remaining)
            if removed == 0:
                return 0
            self._write(collection, remaining)

        logger.info(f"Deleted {removed} completed documents from {collection}")
        self._notify(collection)
        return removed

    def _notify(self, collection: str):
        with self._lock:
            listeners = list(self._listeners.get(collection, []))
            snapshot = copy.deepcopy(self._read(collection)) if listeners else []

        for listener in listeners:
            try:
                listener(copy.deepcopy(snapshot))
            except Exception as e:
                # A broken listener must not prevent the others from updating
                logger.error(f"Listener for {collection} failed: {e}", exc_info=True)


class InMemoryStore(BaseStore):
    """Process-local store."""

    def __init__(self, initial: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        super().__init__()
        self._data: Dict[str, List[Dict[str, Any]]] = copy.deepcopy(initial or {})

    def _read(self, collection: str) -> List[Dict[str, Any]]:
        return self._data.setdefault(collection, [])

    def _write(self, collection: str, items: List[Dict[str, Any]]) -> None:
        self._data[collection] = items


class JsonFileStore(BaseStore):
    """
    Store keeping one JSON registry file per collection.

    Writes go to a temporary file that replaces the registry, so a crash never
    leaves a half-written file. A registry that cannot be parsed is moved
    aside as <name>.json.backup and the collection starts empty.

    Attributes:
        base_dir (Path): Directory holding the registry files
    """

    def __init__(self, base_dir: Path):
        super().__init__()
        self.base_dir = Path(base_dir)

        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create store directory: {e}", exc_info=True)
            raise PersistenceError(f"Cannot create data directory {self.base_dir}: {e}")

        logger.info(f"JsonFileStore initialized: {self.base_dir}")

    def _registry_path(self, collection: str) -> Path:
        return self.base_dir / f"{collection}.json"

    def _read(self, collection: str) -> List[Dict[str, Any]]:
        path = self._registry_path(collection)
        if not path.exists():
            return []

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)

        except json.JSONDecodeError as e:
            logger.error(f"Corrupted {path.name}: {e}", exc_info=True)
            backup_path = path.with_suffix('.json.backup')
            try:
                path.replace(backup_path)
            except OSError as backup_error:
                raise PersistenceError(
                    f"Cannot move corrupted {path} aside: {backup_error}", collection=collection
                )
            logger.warning(f"Corrupted file backed up to: {backup_path}")
            return []

        except OSError as e:
            raise PersistenceError(f"Cannot read {path}: {e}", collection=collection)

        items = data.get('items', []) if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise PersistenceError(f"Unexpected registry layout in {path}", collection=collection)
        return items

    def _write(self, collection: str, items: List[Dict[str, Any]]) -> None:
        path = self._registry_path(collection)
        tmp_file = path.with_suffix('.json.tmp')

        try:
            with open(tmp_file, 'w', encoding='utf-8') as f:
                json.dump({'version': REGISTRY_VERSION, 'items': items}, f, indent=2, ensure_ascii=False)
            tmp_file.replace(path)

        except OSError as e:
            logger.error(f"Failed to save {path.name}: {e}", exc_info=True)
            raise PersistenceError(f"Cannot write {path}: {e}", collection=collection)

    def refresh(self, collection: str):
        """Re-read a registry changed by another process and push it to listeners."""
        self._notify(collection)
