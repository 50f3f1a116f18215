"""
Error taxonomy for the EOL Research engine.
Only ConfigurationError is allowed to reach callers of the orchestrator.
"""
from typing import Optional


class LifecycleResearchError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(LifecycleResearchError):
    """Search credentials are missing; research cannot run at all."""
    
    def __init__(self, missing: list):
        self.missing = list(missing)
        super().__init__(
            f"Search API not configured. Missing: {', '.join(self.missing)}"
        )


class SearchError(LifecycleResearchError):
    """A search query failed after exhausting its retries."""
    
    def __init__(self, query: str, attempts: int, status_code: Optional[int] = None, reason: str = ""):
        self.query = query
        self.attempts = attempts
        self.status_code = status_code
        self.reason = reason
        super().__init__(
            f"Search failed after {attempts} attempt(s) for {query!r}"
            f" (status={status_code}): {reason}"
        )


class FetchError(LifecycleResearchError):
    """A page could not be retrieved; callers fall back to snippet text."""
    
    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to fetch {url}: {reason}")


class ParseError(LifecycleResearchError):
    """An extraction strategy raised while parsing a page."""
    
    def __init__(self, strategy: str, cause: Exception):
        self.strategy = strategy
        self.cause = cause
        super().__init__(f"Strategy {strategy!r} failed: {cause}")


class NoResultError(LifecycleResearchError):
    """No milestone field was found anywhere for a product."""
    
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"No lifecycle milestones found for {product_id}")
