"""Custom exceptions (structured hierarchy)"""
from typing import Any, Optional


class CatalogException(Exception):
    """Base class for every catalog error"""
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# Crawler / external site
class CrawlerException(CatalogException):
    """Base class for errors talking to an external site"""
    def __init__(self, message: str, error_code: str = "CRAWLER_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "CRAWLER_ERROR", details)


class NetworkFailure(CrawlerException):
    """Download or navigation failed (retryable)"""
    def __init__(self, operation: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Network failure during '{operation}': {reason}"
        super().__init__(message, "NETWORK_FAILURE",
                        details or {"operation": operation, "reason": reason})


class BotChallengeDetected(CrawlerException):
    """The site answered with a bot-verification page"""
    def __init__(self, source: str, details: Optional[dict[str, Any]] = None):
        message = f"Bot challenge detected at {source}"
        super().__init__(message, "BOT_CHALLENGE", details or {"source": source})


class BrowserException(CrawlerException):
    """Browser launch or page setup failed"""
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, "BROWSER_ERROR", details)


class ParseFailure(CrawlerException):
    """Unrecoverable parse error (e.g. spreadsheet header row missing)"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Failed to parse: {reason}"
        super().__init__(message, "PARSE_FAILURE", details or {"reason": reason})


# Validation
class ValidationFailure(CatalogException):
    """A catalog row failed validation"""
    def __init__(self, item_id: str, errors: list[str], details: Optional[dict[str, Any]] = None):
        message = f"Item {item_id or '?'}: {', '.join(errors)}"
        super().__init__(message, "VALIDATION_ERROR",
                        details or {"item_id": item_id, "errors": errors})


# Cache
class CacheException(CatalogException):
    """Cache tier error"""
    def __init__(self, message: str, error_code: str = "CACHE_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "CACHE_ERROR", details)


# Database
class DatabaseException(CatalogException):
    """Persistent store error"""
    def __init__(self, message: str, error_code: str = "DB_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "DB_ERROR", details)


class BatchWriteFailure(DatabaseException):
    """A write batch could not be committed"""
    def __init__(self, collection: str, batch_index: int, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Batch {batch_index} write to '{collection}' failed: {reason}"
        super().__init__(message, "BATCH_WRITE_FAILED",
                        details or {"collection": collection, "batch_index": batch_index, "reason": reason})
