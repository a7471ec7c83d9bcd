from shared.metrics import get_counter, get_histogram

SERVICE = "reporting"

SOURCE_FETCHES = get_counter(
    "source_fetch_total",
    "Connector fetches by connector kind and outcome",
    SERVICE,
    labelnames=("kind", "outcome"),
)
QUERY_POLLS = get_counter(
    "query_polls_total", "Status polls issued against async query engines", SERVICE
)
COUNTER_PAGES = get_counter(
    "counter_pages_total", "Pages requested by paginated counters", SERVICE
)
SNAPSHOT_WRITE_FAILURES = get_counter(
    "snapshot_write_failures_total", "Snapshot writes that exhausted retries", SERVICE
)
SNAPSHOT_READ_FALLBACKS = get_counter(
    "snapshot_read_fallbacks_total",
    "Snapshot reads answered with a zero baseline",
    SERVICE,
    labelnames=("reason",),
)
RUN_DURATION = get_histogram(
    "run_duration_seconds",
    "Wall time of one report run",
    SERVICE,
    buckets=[1, 5, 15, 30, 60, 120, 300],
    labelnames=("report_type",),
)
