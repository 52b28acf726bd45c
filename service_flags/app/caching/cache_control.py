"""
Cache-Control directives for evaluation responses.
"""

from starlette.responses import Response

DEFAULT_MAX_AGE = 60


class CacheController:
    """Attaches a shared-cache lifetime to evaluation responses.

    Matched and unmatched results carry the same directive so a fronting
    cache treats "on" and "off" answers alike.
    """

    def __init__(self, max_age: int = DEFAULT_MAX_AGE):
        if isinstance(max_age, bool) or not isinstance(max_age, int) or max_age < 0:
            raise ValueError(f"max_age must be a non-negative integer, got {max_age!r}")
        self.max_age = max_age

    @property
    def directive(self) -> str:
        return f"s-maxage={self.max_age}, public"

    def apply(self, response: Response) -> Response:
        """Set the Cache-Control header on response."""
        response.headers["Cache-Control"] = self.directive
        return response
