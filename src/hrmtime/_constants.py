"""Internal constants shared across the library."""

TIME_PATH = "/api/time"
USER_AGENT = "hrmtime/1"

#: Seconds between scheduled refreshes of the shared server-time stream.
DEFAULT_REFRESH_INTERVAL: float = 30.0
DEFAULT_REQUEST_TIMEOUT: float = 10.0

DEV_ORIGIN = "http://localhost:3000"

# Local ports of the three HRM applications in development.
DEV_SERVICE_PORTS: dict[str, int] = {
    "core": 3000,
    "metrics": 3001,
    "activities": 3002,
}
