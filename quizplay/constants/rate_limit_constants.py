"""Request throttling limits per route class."""

ROUTE_API: str = "api"
ROUTE_AUTH: str = "auth"
ROUTE_CREATE: str = "create"
ROUTE_SCORE: str = "score"
ROUTE_SEARCH: str = "search"

# (requests allowed, window length in seconds)
RATE_LIMITS: dict[str, tuple[int, float]] = {
    ROUTE_API: (100, 60.0),
    ROUTE_AUTH: (10, 60.0),
    ROUTE_CREATE: (20, 60.0),
    ROUTE_SCORE: (30, 60.0),
    ROUTE_SEARCH: (60, 60.0),
}

SWEEP_INTERVAL_SECONDS: float = 60.0
