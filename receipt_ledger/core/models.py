"""
Data models for receipt records.
"""

import math
from dataclasses import dataclass, asdict, field, replace
from typing import Any, Dict, Optional, Tuple

# Keys used by the browser snapshot format, mapped to our field names
_CAMEL_KEYS = {
    "merchantName": "merchant_name",
    "transactionDate": "transaction_date",
    "totalAmount": "total_amount",
    "confidenceScore": "confidence_score",
}


@dataclass(frozen=True)
class LineItem:
    """One purchased line on a receipt."""
    description: str
    qty: float = 1
    price: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "LineItem":
        qty = d.get("qty")
        return LineItem(
            description=str(d.get("description") or ""),
            qty=1 if qty is None else qty,
            price=check_amount(d.get("price"), "price"),
        )


@dataclass(frozen=True)
class Record:
    """A structured receipt.

    Records are values: the only change a record ever goes through is the
    ``synced`` flag flipping to True, which produces a new record via
    :meth:`mark_synced`.
    """
    id: str
    merchant_name: str
    transaction_date: str  # ISO 8601 date
    currency: str
    total_amount: float
    category: str
    confidence_score: int  # 0-100
    items: Tuple[LineItem, ...] = field(default_factory=tuple)
    synced: bool = False

    def mark_synced(self) -> "Record":
        """Return this record flagged as present in the remote store."""
        if self.synced:
            return self
        return replace(self, synced=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the snapshot dictionary form."""
        d = asdict(self)
        d["items"] = [item.to_dict() for item in self.items]
        return d

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Record":
        """Build a record from a snapshot dict (snake_case or camelCase keys)."""
        d = {_CAMEL_KEYS.get(k, k): v for k, v in d.items()}
        if not d.get("id"):
            raise ValueError("record is missing an id")
        return Record(
            id=str(d["id"]),
            merchant_name=d.get("merchant_name") or "",
            transaction_date=d.get("transaction_date") or "",
            currency=d.get("currency") or "",
            total_amount=check_amount(d.get("total_amount"), "total_amount"),
            category=d.get("category") or "Uncategorized",
            confidence_score=clamp_confidence(d.get("confidence_score")),
            items=tuple(LineItem.from_dict(i) for i in d.get("items") or []),
            synced=bool(d.get("synced", False)),
        )


def clamp_confidence(value: Optional[Any]) -> int:
    """Coerce a confidence score to an integer in 0-100."""
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(100, score))


def check_amount(value: Optional[Any], name: str = "amount") -> float:
    """
    Coerce a stored amount to a float, treating a missing value as 0.0.

    Raises:
        ValueError: if the value is not a finite number or is negative.
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"{name} is not a number: {value!r}")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} is not a number: {value!r}") from None
    if not math.isfinite(amount):
        raise ValueError(f"{name} is not a number: {value!r}")
    if amount < 0:
        raise ValueError(f"{name} is negative: {value!r}")
    return amount
