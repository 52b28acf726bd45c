"""
Evaluation context carried from the relay to the evaluation endpoint.

The relay writes the context into query parameters and the evaluation
endpoint reads it back; both directions live here so the encoding stays
symmetric.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Union

from shared.logging import get_logger

logger = get_logger("flags.context")

# Order in which context parameters are appended to the relay URL
CONTEXT_PARAMS = ("identifier", "city", "country", "region", "latitude", "longitude", "ip")

NUMERIC_FIELDS = frozenset({"latitude", "longitude"})


@dataclass(frozen=True)
class GeoLocation:
    """Geographic attributes resolved for a request."""
    city: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(frozen=True)
class EvaluationContext:
    """Request-derived attributes used to test rules. None means unknown."""
    identifier: Optional[str] = None
    ip: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_query_params(cls, params: Mapping[str, str]) -> "EvaluationContext":
        """Parse context parameters into typed fields."""
        values = {}
        for name in CONTEXT_PARAMS:
            raw = params.get(name)
            if raw is None or raw == "":
                continue
            if name in NUMERIC_FIELDS:
                number = parse_coordinate(raw)
                if number is None:
                    logger.warning("Ignoring malformed context parameter", param=name, value=raw)
                    continue
                values[name] = number
            else:
                values[name] = raw
        return cls(**values)

    @classmethod
    def from_geo(
        cls,
        geo: Optional[GeoLocation],
        identifier: Optional[str] = None,
        ip: Optional[str] = None
    ) -> "EvaluationContext":
        """Build a context from relay lookups."""
        geo = geo or GeoLocation()
        return cls(
            identifier=identifier or None,
            ip=ip or None,
            country=geo.country or None,
            region=geo.region or None,
            city=geo.city or None,
            latitude=None if geo.latitude is None else parse_coordinate(geo.latitude),
            longitude=None if geo.longitude is None else parse_coordinate(geo.longitude),
        )

    def to_query_params(self) -> Dict[str, str]:
        """Encode the known fields, omitting unknown ones."""
        params = {}
        for name in CONTEXT_PARAMS:
            value = getattr(self, name)
            if value is None:
                continue
            if name in NUMERIC_FIELDS:
                value = parse_coordinate(value)
                if value is None:
                    continue
                # repr() is the shortest string that parses back to the same float
                params[name] = repr(value)
            else:
                params[name] = str(value)
        return params

    def get(self, field_name: str):
        """Get a context field by name."""
        return getattr(self, field_name)


def parse_coordinate(raw: Union[str, float]) -> Optional[float]:
    """Parse a latitude/longitude; None when not a finite number."""
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if value != value or value in (float("inf"), float("-inf")):
        return None
    return value
