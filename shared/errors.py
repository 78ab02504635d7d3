"""
Shared error handling for the protected static cache service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""
    
    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class StaticCacheException(Exception):
    """Base exception for the protected static cache."""

    status_code = 400
    
    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)
    
    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class AuthorizationError(StaticCacheException):
    """Caller lacks the privileged capability."""

    status_code = 403
    
    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)


class ValidationError(StaticCacheException):
    """Validation-related errors."""
    
    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class InvalidResourceIdError(ValidationError):
    """Resource identifier is not safe to embed in a cache file name."""

    def __init__(self, resource_id: Any):
        super().__init__(
            f"Invalid resource id: {resource_id!r}",
            details={"resource_id": str(resource_id)}
        )


class CacheStoreError(StaticCacheException):
    """Filesystem errors raised by the cache store."""

    status_code = 500
    
    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class CacheDirectoryError(CacheStoreError):
    """Cache directory could not be created or locked down."""
    
    def __init__(self, path: str, message: str = "Cache directory unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_DIRECTORY_ERROR", f"{message}: {path}", details)


class CacheWriteError(CacheStoreError):
    """Cache entry could not be written."""
    
    def __init__(self, path: str, message: str = "Failed to write cache file", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_WRITE_ERROR", f"{message}: {path}", details)


class CacheDeleteError(CacheStoreError):
    """Cache entry could not be removed."""
    
    def __init__(self, path: str, message: str = "Failed to remove cache file", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_DELETE_ERROR", f"{message}: {path}", details)
