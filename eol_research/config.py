"""
Configuration management for the EOL Research engine.
Handles environment variables and engine settings.
"""
import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Engine configuration loaded from environment variables."""
    
    # Server settings
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    
    # Search API credentials (Google Custom Search JSON API)
    # Both the GOOGLE_* and GOOGLE_CSE_* spellings are accepted
    GOOGLE_API_KEY: Optional[str] = os.getenv("GOOGLE_API_KEY") or os.getenv("GOOGLE_CSE_API_KEY")
    GOOGLE_SEARCH_ENGINE_ID: Optional[str] = (
        os.getenv("GOOGLE_SEARCH_ENGINE_ID") or os.getenv("GOOGLE_CSE_CX")
    )
    SEARCH_API_URL: str = os.getenv("SEARCH_API_URL", "https://www.googleapis.com/customsearch/v1")
    
    # Search pacing and retry
    SEARCH_MIN_INTERVAL: float = float(os.getenv("SEARCH_MIN_INTERVAL", "1.0"))
    SEARCH_MAX_ATTEMPTS: int = int(os.getenv("SEARCH_MAX_ATTEMPTS", "5"))
    SEARCH_BACKOFF_BASE: float = float(os.getenv("SEARCH_BACKOFF_BASE", "2.0"))
    SEARCH_BACKOFF_CAP: float = float(os.getenv("SEARCH_BACKOFF_CAP", "32.0"))
    SEARCH_RESULTS_VENDOR: int = int(os.getenv("SEARCH_RESULTS_VENDOR", "5"))
    SEARCH_RESULTS_THIRD_PARTY: int = int(os.getenv("SEARCH_RESULTS_THIRD_PARTY", "3"))
    MAX_QUERIES_PER_PRODUCT: int = int(os.getenv("MAX_QUERIES_PER_PRODUCT", "10"))
    
    # Page fetching and cache
    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "10"))
    PAGE_CACHE_TTL: int = int(os.getenv("PAGE_CACHE_TTL", str(24 * 60 * 60)))
    PAGE_CACHE_MAX_ENTRIES: int = int(os.getenv("PAGE_CACHE_MAX_ENTRIES", "500"))
    
    # Batch research
    BATCH_CONCURRENCY: int = int(os.getenv("BATCH_CONCURRENCY", "3"))
    
    # Date plausibility windows
    DATE_MIN_YEAR: int = int(os.getenv("DATE_MIN_YEAR", "1990"))
    DATE_MAX_YEAR: int = int(os.getenv("DATE_MAX_YEAR", "2040"))
    SNIPPET_YEARS_BACK: int = int(os.getenv("SNIPPET_YEARS_BACK", "20"))
    
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")  # json or console
    
    @classmethod
    def get_missing_search_vars(cls) -> list:
        """Return list of missing search environment variables."""
        missing = []
        if not cls.GOOGLE_API_KEY:
            missing.append("GOOGLE_API_KEY")
        if not cls.GOOGLE_SEARCH_ENGINE_ID:
            missing.append("GOOGLE_SEARCH_ENGINE_ID")
        return missing


config = Config()
