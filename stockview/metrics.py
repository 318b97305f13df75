"""Prometheus metrics for Stockview."""

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("stockview", "Stockview application info")
app_info.info({"version": "0.1.0", "name": "stockview"})

# Sync metrics
stock_syncs_total = Counter(
    "stock_syncs_total",
    "Total number of stock refresh attempts",
    ["status"],
)

stock_sync_duration_seconds = Histogram(
    "stock_sync_duration_seconds",
    "Time spent on a full stock refresh",
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

stock_items_total = Gauge(
    "stock_items_total",
    "Number of stock items in the current snapshot",
)

feed_rows_rejected_total = Counter(
    "feed_rows_rejected_total",
    "Feed rows dropped during mapping",
    ["reason"],
)

# Fetch metrics
feed_fetch_retries_total = Counter(
    "feed_fetch_retries_total",
    "Retried feed fetch attempts",
    ["reason"],
)

# Query metrics
stock_searches_total = Counter(
    "stock_searches_total",
    "Total number of stock searches",
    ["has_text"],
)

stock_search_duration_seconds = Histogram(
    "stock_search_duration_seconds",
    "Time spent executing stock searches",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)
