"""Environment-driven settings for the trip planner service."""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

MIN_GEOCODE_TTL = 3600.0
MIN_SESSION_TTL = 60.0
DEFAULT_SESSION_TTL = 86400.0
DEFAULT_MAX_SESSIONS = 1000


def _get_float_env(var_name: str, default_value: float) -> float:
    raw = os.getenv(var_name)
    if raw is None or not raw.strip():
        return default_value
    try:
        return float(raw.strip())
    except ValueError:
        return default_value


def get_log_level() -> int:
    level = os.getenv("TRIP_PLANNER_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level, logging.INFO)


def get_allowed_origins() -> list[str]:
    raw = os.getenv("TRIP_PLANNER_ALLOWED_ORIGINS") or "*"
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    return origins or ["*"]


def get_route_backend() -> str:
    return os.getenv("TRIP_PLANNER_ROUTE_BACKEND", "osrm").strip().lower()


def get_google_maps_api_key() -> str:
    return os.getenv("GOOGLE_MAPS_API_KEY", "")


def get_http_timeout() -> float:
    return _get_float_env("TRIP_PLANNER_HTTP_TIMEOUT", 10.0)


def get_geocode_ttl() -> float:
    """Place coordinates rarely move; never cache for less than an hour."""
    return max(MIN_GEOCODE_TTL, _get_float_env("TRIP_PLANNER_GEOCODE_TTL", MIN_GEOCODE_TTL))


def get_session_ttl() -> float:
    """Idle time after which an abandoned trip session is forgotten."""
    return max(MIN_SESSION_TTL, _get_float_env("TRIP_PLANNER_SESSION_TTL", DEFAULT_SESSION_TTL))


def get_max_sessions() -> int:
    return max(1, int(_get_float_env("TRIP_PLANNER_MAX_SESSIONS", DEFAULT_MAX_SESSIONS)))


def get_service_urls() -> dict:
    return {
        "nominatim": os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org").rstrip("/"),
        "osrm": os.getenv("OSRM_URL", "https://router.project-osrm.org").rstrip("/"),
        "google_directions": os.getenv(
            "GOOGLE_DIRECTIONS_URL", "https://maps.googleapis.com/maps/api/directions/json"
        ),
    }


def get_user_agent() -> str:
    return os.getenv("TRIP_PLANNER_USER_AGENT", "trip-planner/1.0")


def configure_logger(logger: logging.Logger) -> logging.Logger:
    """Attach the package's stream handler once and apply the configured level."""
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(get_log_level())
    logger.propagate = False
    return logger
