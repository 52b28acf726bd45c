"""
Context-pinning relay.

A content request is answered with a redirect to the same URL marked
``eval=true`` and carrying the request context as query parameters. The
evaluation URL is then self-describing, so a cache keyed on URLs can serve
per-context answers without seeing the original request.
"""

import inspect
from typing import Awaitable, Callable, Optional, Union
from urllib.parse import quote, unquote

from fastapi import Request
from fastapi.responses import RedirectResponse

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .context import CONTEXT_PARAMS, EvaluationContext, GeoLocation, parse_coordinate

EVAL_PARAM = "eval"

Identify = Callable[[Request], Union[Optional[str], Awaitable[Optional[str]]]]
GeoLookup = Callable[[Request], Optional[GeoLocation]]
IpLookup = Callable[[Request], Optional[str]]


def anonymous_identify(request: Request) -> Optional[str]:
    """Identify nobody."""
    return None


def cookie_identify(cookie_name: str) -> Identify:
    """Identify requests by the value of a cookie."""
    def identify(request: Request) -> Optional[str]:
        return request.cookies.get(cookie_name) or None
    return identify


def header_geo_lookup(request: Request) -> GeoLocation:
    """Read geo attributes set by the edge network."""
    headers = request.headers
    city = headers.get("x-vercel-ip-city")
    latitude = headers.get("x-vercel-ip-latitude")
    longitude = headers.get("x-vercel-ip-longitude")
    return GeoLocation(
        city=unquote(city) if city else None,
        country=headers.get("x-vercel-ip-country") or None,
        region=headers.get("x-vercel-ip-country-region") or None,
        latitude=parse_coordinate(latitude) if latitude else None,
        longitude=parse_coordinate(longitude) if longitude else None,
    )


def forwarded_ip_lookup(request: Request) -> Optional[str]:
    """Client IP as resolved by the fronting proxy."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.headers.get("x-real-ip") or None


def original_path(request: Request) -> str:
    """Request path as sent, with percent-escapes intact."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        # Some servers leave the query string on raw_path
        return raw_path.split(b"?", 1)[0].decode("latin-1")
    return quote(request.scope["path"])


class ContextRelay:
    """Captures request context once and re-issues the request as a cacheable URL."""

    def __init__(
        self,
        identify: Identify = anonymous_identify,
        geo_lookup: GeoLookup = header_geo_lookup,
        ip_lookup: IpLookup = forwarded_ip_lookup,
        logger=None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.identify = identify
        self.geo_lookup = geo_lookup
        self.ip_lookup = ip_lookup
        self.logger = logger or get_logger("flags.relay")
        self.metrics = metrics

    async def capture(self, request: Request) -> EvaluationContext:
        """Derive the evaluation context for request."""
        identifier = self.identify(request)
        if inspect.isawaitable(identifier):
            identifier = await identifier

        return EvaluationContext.from_geo(
            self.geo_lookup(request),
            identifier=identifier,
            ip=self.ip_lookup(request)
        )

    def build_location(self, request: Request, context: EvaluationContext) -> str:
        """Evaluation URL for request pinned to context."""
        url = request.url.replace(path=original_path(request))
        # Incoming identifier/ip/geo keys are dropped even when unresolved here,
        # otherwise a client could pin a context the relay never derived
        url = url.remove_query_params(CONTEXT_PARAMS)
        url = url.include_query_params(**{EVAL_PARAM: "true"}, **context.to_query_params())
        return str(url)

    async def relay(self, request: Request) -> RedirectResponse:
        """Redirect request to its context-pinned evaluation URL."""
        context = await self.capture(request)
        location = self.build_location(request, context)

        self.logger.info("relay_redirect", location=location)
        if self.metrics:
            self.metrics.increment_counter("relay_redirects_total")

        return RedirectResponse(location)
