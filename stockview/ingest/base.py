"""Base feed interface for stock data sources."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass
class StockRecord:
    """Typed stock record mapped from one feed row."""

    id: str
    brand: str = ""
    product: str = ""
    city: str = ""
    quantity: int = 0
    sell_price: Decimal = Decimal("0.00")
    cost_price: Decimal = Decimal("0.00")
    remarks: str = ""
    item_description: str = ""
    size: str = ""
    pattern: str = ""
    segment: str = ""
    rim_ah: str = ""


class FeedFormatError(Exception):
    """Raised when the feed does not have the expected tabular structure."""

    pass


class BaseFeedSource(ABC):
    """Abstract base class for stock feeds."""

    @abstractmethod
    async def fetch_records(self) -> list[StockRecord]:
        """
        Fetch and map the full current contents of the feed.

        Returns:
            List of StockRecord objects, invalid rows already dropped

        Raises:
            FetchError: If the feed cannot be downloaded
            FeedFormatError: If the feed is structurally malformed
        """
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """Get a short name for logs (e.g., 'google_sheet')."""
        pass
