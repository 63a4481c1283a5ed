"""Prometheus metrics for the post pipeline."""

from prometheus_client import Counter, Histogram

POSTS_TOTAL = Counter(
    "around_posts_total",
    "Post ingestion attempts by outcome",
    ["outcome"],
)

INGEST_SECONDS = Histogram(
    "around_ingest_seconds",
    "Time spent writing one post to all stores",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

SEARCH_TOTAL = Counter(
    "around_search_total",
    "Geo distance searches served",
)

SEARCH_FILTERED_TOTAL = Counter(
    "around_search_filtered_total",
    "Search hits dropped by the content filter",
)
