"""
Flags service for the Edge Flags platform.
"""

from typing import Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import FlagsConfig, get_config
from shared.errors import ValidationError, NotFoundError

from .caching import CacheController
from .context import EvaluationContext
from .relay import (
    EVAL_PARAM, ContextRelay, Identify, GeoLookup, IpLookup,
    anonymous_identify, cookie_identify, header_geo_lookup, forwarded_ip_lookup
)
from .rules.engine import RuleEngine
from .rules.models import EvaluationResult
from .store import FlagStore, RedisFlagStore

SERVICE_NAME = "flags"
SERVICE_PORT = 8020


class FlagsService(BaseService):
    """Flags service implementation."""

    def __init__(
        self,
        config: Optional[FlagsConfig] = None,
        store: Optional[FlagStore] = None,
        identify: Optional[Identify] = None,
        geo_lookup: GeoLookup = header_geo_lookup,
        ip_lookup: IpLookup = forwarded_ip_lookup
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config or get_config(SERVICE_NAME, SERVICE_PORT))

        if identify is None:
            cookie = self.config.identifier_cookie
            identify = cookie_identify(cookie) if cookie else anonymous_identify

        self.store = store or RedisFlagStore(
            self.config.redis_url,
            token=self.config.redis_token,
            prefix=self.config.key_prefix,
            timeout=self.config.store_timeout_seconds
        )
        self.rule_engine = RuleEngine(logger=self.logger.bind(component="rule_engine"))
        self.cache_controller = CacheController(self.config.cache_max_age)
        self.relay = ContextRelay(
            identify=identify,
            geo_lookup=geo_lookup,
            ip_lookup=ip_lookup,
            logger=self.logger.bind(component="relay"),
            metrics=self.metrics
        )

        self._setup_flags_routes()

    def _setup_flags_routes(self):
        """Set up flags-specific routes."""

        @self.app.get("/{path:path}")
        async def handle(request: Request, path: str):
            """Relay content requests; evaluate pinned ones."""
            if request.query_params.get(EVAL_PARAM) == "true":
                return await self.evaluate(request)
            return await self.relay.relay(request)

    async def evaluate(self, request: Request) -> JSONResponse:
        """Evaluate the requested flag for the context pinned in the URL."""
        flag_name = request.query_params.get("flag")
        if not flag_name:
            raise ValidationError("Missing parameter: flag")

        context = EvaluationContext.from_query_params(request.query_params)
        environment = self.config.environment

        with self.metrics.time_operation("flag_store_fetch_duration_seconds"):
            flag = await self.store.get_flag(flag_name, environment)

        if flag is None:
            raise NotFoundError("Flag not found", {"flag": flag_name, "environment": environment})

        result: EvaluationResult = self.rule_engine.evaluate(flag, context)
        outcome = "no_match" if result.value is None else "matched"
        self.metrics.increment_counter("flag_evaluations_total", outcome=outcome)

        return self.cache_controller.apply(JSONResponse(result.to_dict(), status_code=200))

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check flags service dependencies."""
        health_check = getattr(self.store, "health_check", None)
        if health_check is None:
            return {}
        return {"flag_store": "ok" if await health_check() else "error"}

    async def start(self):
        """Start flags service components."""
        start = getattr(self.store, "start", None)
        if start is not None:
            await start()
        self.logger.info("Flags service started", environment=self.config.environment)

    async def stop(self):
        """Stop flags service components."""
        stop = getattr(self.store, "stop", None)
        if stop is not None:
            await stop()
        self.logger.info("Flags service stopped")


def create_app():
    """Create flags service application."""
    service = FlagsService()
    return service.app


if __name__ == "__main__":
    service = FlagsService()
    service.run()
