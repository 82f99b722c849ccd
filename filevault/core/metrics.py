from prometheus_client import Counter, Histogram

# Process and platform collectors are registered by prometheus_client itself

HTTP_REQUESTS_TOTAL = Counter(
    'filevault_http_requests_total',
    'Total HTTP requests handled',
    ['method', 'route', 'status']
)

HTTP_REQUEST_DURATION = Histogram(
    'filevault_http_request_duration_seconds',
    'HTTP request latency in seconds',
    ['method', 'route'],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)


def observe_request(method: str, route: str, status: int, duration: float) -> None:
    HTTP_REQUESTS_TOTAL.labels(method=method, route=route, status=str(status)).inc()
    HTTP_REQUEST_DURATION.labels(method=method, route=route).observe(duration)
