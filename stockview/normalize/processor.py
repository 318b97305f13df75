"""Derive canonical shadow fields for stock records."""

from dataclasses import asdict, is_dataclass
from typing import Any

from stockview.db.models import RAW_FIELDS, SHADOW_FIELDS
from stockview.normalize.canonical import canonicalize


def _get(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def canonical_fields(record: Any) -> dict[str, str]:
    """
    Canonicalize every searchable attribute of ``record``.

    Accepts a StockRecord, a StockItem or a plain dict. Missing attributes
    canonicalize to "" so this never fails.

    Returns:
        Mapping of shadow column name to canonical value
    """
    return {
        shadow: canonicalize(_get(record, raw))
        for raw, shadow in SHADOW_FIELDS.items()
    }


def to_row(record: Any) -> dict[str, Any]:
    """Build an insertable stock_items row: raw attributes plus their shadows."""
    if is_dataclass(record):
        raw = asdict(record)
    else:
        raw = {name: _get(record, name) for name in RAW_FIELDS}

    row = {name: raw.get(name) for name in RAW_FIELDS}
    row.update(canonical_fields(row))
    return row
