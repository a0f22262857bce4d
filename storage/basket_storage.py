"""
Basket storage ports - load and replace the whole basket collection.
Thin IO layer; CRUD rules live in storage.basket_store.
"""

import os
import json
import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

STORAGE_KEY = 'stockbasket_baskets'


class BasketStorageError(Exception):
    """Raised when the basket collection cannot be persisted."""
    pass


class BasketStorage:
    """Port for persisting the basket collection as one unit."""

    def load(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def save(self, baskets: List[Dict[str, Any]]) -> None:
        raise NotImplementedError


class InMemoryBasketStorage(BasketStorage):
    """Keeps a serialized copy in memory, so callers never share references with it."""

    def __init__(self, baskets: Optional[List[Dict[str, Any]]] = None):
        self._data = json.dumps(baskets or [])

    def load(self) -> List[Dict[str, Any]]:
        return json.loads(self._data)

    def save(self, baskets: List[Dict[str, Any]]) -> None:
        self._data = json.dumps(baskets)


class JsonFileBasketStorage(BasketStorage):
    """
    JSON file storage: {"stockbasket_baskets": [...]}. A file holding the bare
    array is read as well and rewritten in keyed form on the next save.

    Writes go to a temp file in the same directory, are fsynced, then renamed
    over the target so a crash never leaves a partial file.
    An unreadable file is renamed to <name>.corrupt and the store starts empty.
    """

    def __init__(self, path: Optional[Path] = None):
        if path is None:
            path = Path(os.getenv('BASKETS_PATH', './data/baskets.json'))
        self.path = Path(path)

    def load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                payload = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to parse baskets from {self.path}: {e}")
            self._set_aside()
            return []

        # A bare array is the collection itself
        if isinstance(payload, list):
            return payload

        baskets = payload.get(STORAGE_KEY, []) if isinstance(payload, dict) else None
        if not isinstance(baskets, list):
            logger.error(f"Unexpected basket payload in {self.path}, starting empty")
            self._set_aside()
            return []

        return baskets

    def _set_aside(self) -> None:
        """Move an unreadable file to <name>.corrupt so the next save cannot overwrite it."""
        backup = self.path.with_name(self.path.name + '.corrupt')
        try:
            os.replace(self.path, backup)
        except OSError as e:
            raise BasketStorageError(f"Cannot set aside unreadable basket file {self.path}: {e}") from e
        logger.warning(f"Kept unreadable basket file as {backup}")

    def save(self, baskets: List[Dict[str, Any]]) -> None:
        content = json.dumps({STORAGE_KEY: baskets}, indent=2)

        temp_path = None

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path_str = tempfile.mkstemp(
                suffix='.tmp',
                prefix=f'{self.path.stem}_',
                dir=self.path.parent
            )
            temp_path = Path(temp_path_str)

            with os.fdopen(temp_fd, 'w', encoding='utf-8') as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())

            os.replace(temp_path, self.path)

        except OSError as e:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink()
            raise BasketStorageError(f"Failed to save baskets to {self.path}: {e}") from e

        logger.debug(f"Saved {len(baskets)} baskets to {self.path}")
