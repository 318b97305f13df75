"""SQLAlchemy database models."""

from decimal import Decimal

from sqlalchemy import Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


# Raw text attribute -> canonical shadow column.
SHADOW_FIELDS: dict[str, str] = {
    "id": "id_norm",
    "brand": "brand_norm",
    "product": "product_norm",
    "city": "city_norm",
    "item_description": "item_description_norm",
    "size": "size_norm",
    "pattern": "pattern_norm",
    "segment": "segment_norm",
    "rim_ah": "rim_ah_norm",
}

# Attributes returned to callers. Shadow columns are never part of this list.
RAW_FIELDS: tuple[str, ...] = (
    "id",
    "brand",
    "product",
    "city",
    "quantity",
    "sell_price",
    "cost_price",
    "remarks",
    "item_description",
    "size",
    "pattern",
    "segment",
    "rim_ah",
)


class StockItem(Base):
    """One inventory line item from the stock sheet."""

    __tablename__ = "stock_items"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    brand: Mapped[str] = mapped_column(Text, default="", nullable=False)
    product: Mapped[str] = mapped_column(Text, default="", nullable=False)
    city: Mapped[str] = mapped_column(Text, default="", nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sell_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), default=Decimal("0.00"), nullable=False
    )  # "Rate" column
    cost_price: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), default=Decimal("0.00"), nullable=False
    )  # "Value" column
    remarks: Mapped[str] = mapped_column(Text, default="", nullable=False)
    item_description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    size: Mapped[str] = mapped_column(Text, default="", nullable=False)
    pattern: Mapped[str] = mapped_column(Text, default="", nullable=False)
    segment: Mapped[str] = mapped_column(Text, default="", nullable=False)
    rim_ah: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Canonical shadows, written only by the ingestion pipeline
    id_norm: Mapped[str] = mapped_column(Text, default="", nullable=False, index=True)
    brand_norm: Mapped[str] = mapped_column(Text, default="", nullable=False, index=True)
    product_norm: Mapped[str] = mapped_column(Text, default="", nullable=False, index=True)
    city_norm: Mapped[str] = mapped_column(Text, default="", nullable=False, index=True)
    item_description_norm: Mapped[str] = mapped_column(
        Text, default="", nullable=False, index=True
    )
    size_norm: Mapped[str] = mapped_column(Text, default="", nullable=False, index=True)
    pattern_norm: Mapped[str] = mapped_column(Text, default="", nullable=False, index=True)
    segment_norm: Mapped[str] = mapped_column(Text, default="", nullable=False, index=True)
    rim_ah_norm: Mapped[str] = mapped_column(Text, default="", nullable=False, index=True)

    def to_dict(self) -> dict:
        """Raw attributes only."""
        return {name: getattr(self, name) for name in RAW_FIELDS}

    def __repr__(self) -> str:
        return f"<StockItem id={self.id!r} brand={self.brand!r} city={self.city!r}>"
