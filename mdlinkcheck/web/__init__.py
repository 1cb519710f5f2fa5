"""Web link checking."""

from .checker import FetchRequest, Fetcher, TransportError, WebChecker, normalize_url
from .interpolation import InterpolationError, interpolate

__all__ = [
    "FetchRequest",
    "Fetcher",
    "InterpolationError",
    "TransportError",
    "WebChecker",
    "interpolate",
    "normalize_url",
]
