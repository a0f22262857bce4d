"""
Basket store - CRUD rules for named symbol baskets.
Every mutation persists the whole collection through the injected storage port.
"""

import uuid
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from storage.basket_storage import BasketStorage, InMemoryBasketStorage

logger = logging.getLogger(__name__)


class BasketError(Exception):
    """Base class for basket store errors."""
    pass


class BasketValidationError(BasketError):
    """Raised when a basket name or symbol is invalid."""
    pass


class BasketNotFoundError(BasketError):
    """Raised when a basket ID is not found."""
    pass


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(ts: datetime) -> str:
    """ISO-8601 with millisecond precision and a Z suffix for UTC."""
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts.isoformat(timespec='milliseconds') + 'Z'


@dataclass
class BasketItem:
    """A symbol tracked in a basket."""
    symbol: str
    added_at: str
    quantity: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'symbol': self.symbol, 'addedAt': self.added_at}
        if self.quantity is not None:
            data['quantity'] = self.quantity
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BasketItem':
        """
        Raises:
            BasketValidationError: If the record has no usable symbol
        """
        if not isinstance(data, dict):
            raise BasketValidationError(f"Basket item must be a mapping, got {type(data).__name__}")
        return cls(
            symbol=clean_symbol(data.get('symbol')),
            added_at=data.get('addedAt', ''),
            quantity=data.get('quantity')
        )


@dataclass
class Basket:
    """A named, ordered collection of symbols."""
    id: str
    name: str
    created_at: str
    description: Optional[str] = None
    items: List[BasketItem] = field(default_factory=list)

    @property
    def symbols(self) -> List[str]:
        return [item.symbol for item in self.items]

    def has_symbol(self, symbol: str) -> bool:
        return any(item.symbol == symbol for item in self.items)

    def to_dict(self) -> Dict[str, Any]:
        data = {'id': self.id, 'name': self.name}
        if self.description is not None:
            data['description'] = self.description
        data['items'] = [item.to_dict() for item in self.items]
        data['createdAt'] = self.created_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Basket':
        """
        Build a basket from its persisted record.
        Symbols are cleaned the way add_item cleans them; repeats keep the first
        entry and malformed items are skipped.

        Raises:
            BasketValidationError: If id or name is missing
        """
        if not isinstance(data, dict) or not data.get('id') or not data.get('name'):
            raise BasketValidationError(f"Basket record needs an id and a name: {data!r}")

        items = []
        for raw in data.get('items') or []:
            try:
                item = BasketItem.from_dict(raw)
            except BasketValidationError as e:
                logger.warning(f"Skipping malformed item in basket {data['id']}: {e}")
                continue
            if all(existing.symbol != item.symbol for existing in items):
                items.append(item)

        return cls(
            id=data['id'],
            name=data['name'],
            created_at=data.get('createdAt', ''),
            description=data.get('description'),
            items=items
        )


def clean_symbol(symbol: str) -> str:
    """Trim and upper-case a symbol; reject empty ones."""
    if not isinstance(symbol, str) or not symbol.strip():
        raise BasketValidationError("Symbol must be a non-empty string")
    return symbol.strip().upper()


class BasketStore:
    """
    Basket CRUD over a storage port.

    The collection is loaded once at construction and saved after every
    mutation. Duplicate adds and removal of absent symbols are no-ops.
    """

    def __init__(
        self,
        storage: Optional[BasketStorage] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None
    ):
        self.storage = storage if storage is not None else InMemoryBasketStorage()
        self._clock = clock or _utc_now
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._baskets = []
        for record in self.storage.load():
            try:
                self._baskets.append(Basket.from_dict(record))
            except BasketValidationError as e:
                logger.warning(f"Skipping malformed basket record: {e}")

    def _persist(self) -> None:
        self.storage.save([b.to_dict() for b in self._baskets])

    def _require(self, basket_id: str) -> Basket:
        for basket in self._baskets:
            if basket.id == basket_id:
                return basket
        raise BasketNotFoundError(f"Basket {basket_id} not found")

    def list(self) -> List[Basket]:
        """All baskets in creation order."""
        return list(self._baskets)

    def get(self, basket_id: str) -> Basket:
        """
        Basket by ID.

        Raises:
            BasketNotFoundError: If basket_id doesn't exist
        """
        return self._require(basket_id)

    def create(self, name: str, description: Optional[str] = None) -> Basket:
        """
        Create an empty basket.

        Args:
            name: Display name (required, trimmed)
            description: Optional description; blank is stored as absent

        Raises:
            BasketValidationError: If name is empty after trimming
        """
        name = (name or '').strip()
        if not name:
            raise BasketValidationError("Basket name is required")

        if description is not None:
            description = description.strip() or None

        basket = Basket(
            id=self._id_factory(),
            name=name,
            created_at=_isoformat(self._clock()),
            description=description
        )
        self._baskets.append(basket)
        self._persist()

        logger.info(f"Created basket {basket.id} ({name})")
        return basket

    def delete(self, basket_id: str) -> None:
        """Remove a basket; unknown IDs are ignored."""
        remaining = [b for b in self._baskets if b.id != basket_id]
        if len(remaining) == len(self._baskets):
            logger.warning(f"Delete ignored, basket {basket_id} not found")
            return

        self._baskets = remaining
        self._persist()
        logger.info(f"Deleted basket {basket_id}")

    def add_item(self, basket_id: str, symbol: str) -> Basket:
        """
        Append a symbol to a basket; adding a symbol already present does nothing.

        Raises:
            BasketNotFoundError: If basket_id doesn't exist
            BasketValidationError: If symbol is empty
        """
        basket = self._require(basket_id)
        symbol = clean_symbol(symbol)

        if basket.has_symbol(symbol):
            return basket

        basket.items.append(BasketItem(symbol=symbol, added_at=_isoformat(self._clock())))
        self._persist()

        logger.info(f"Added {symbol} to basket {basket_id} ({len(basket.items)} stocks)")
        return basket

    def remove_item(self, basket_id: str, symbol: str) -> Basket:
        """
        Remove a symbol from a basket; absent symbols are ignored.

        Raises:
            BasketNotFoundError: If basket_id doesn't exist
        """
        basket = self._require(basket_id)
        symbol = clean_symbol(symbol)

        remaining = [item for item in basket.items if item.symbol != symbol]
        if len(remaining) == len(basket.items):
            return basket

        basket.items = remaining
        self._persist()

        logger.info(f"Removed {symbol} from basket {basket_id}")
        return basket

    def symbols(self, basket_id: str) -> List[str]:
        """Symbols of a basket in the order they were added."""
        return self._require(basket_id).symbols
