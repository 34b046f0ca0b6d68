"""
Custom exception classes for the application.
Provides structured error handling across all modules.
"""

from typing import Any, Optional, Dict


class BurnTrackerException(Exception):
    """Base exception class for the burn tracker."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(BurnTrackerException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class StorageError(BurnTrackerException):
    """Raised when a burn record cannot be read from or written to the store."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "STORAGE_ERROR", details)


# RPC exceptions
class RpcError(BurnTrackerException):
    """Raised when a node call fails."""

    def __init__(self, message: str, code: str = "RPC_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code, details)


class RateLimitError(RpcError):
    """Raised when a node rejects a call because of rate limiting."""

    def __init__(self, message: str = "Rate limited by RPC endpoint", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "RATE_LIMIT_ERROR", details)


class TransientRpcError(RpcError):
    """Raised on network conditions expected to clear up (timeouts, resets)."""

    def __init__(self, message: str = "Transient RPC failure", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "TRANSIENT_RPC_ERROR", details)


class RetryError(RpcError):
    """Raised when a retrier is configured so that no attempt can be made."""

    def __init__(self, message: str = "No attempts made", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "RETRY_ERROR", details)


class EndpointError(RpcError):
    """Raised when an endpoint returns something unusable; triggers failover."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "ENDPOINT_ERROR", details)


class BlockUnavailableError(EndpointError):
    """Raised when neither the head block nor its parent can be read."""

    def __init__(self, block_number: int):
        super().__init__(
            f"Block data unavailable near head {block_number}",
            {"block_number": block_number}
        )


class NoHealthyEndpointsError(RpcError):
    """Raised when no configured endpoint passes the liveness probe."""

    def __init__(self, required: int, probed: int):
        super().__init__(
            f"No healthy RPC endpoints ({probed} probed, {required} wanted)",
            "NO_HEALTHY_ENDPOINTS",
            {"required": required, "probed": probed}
        )


# Burn calculation exceptions
class TokenDecimalsError(BurnTrackerException):
    """Raised when a token's decimals cannot be fetched."""

    def __init__(self, symbol: str, reason: str):
        super().__init__(
            f"Could not fetch decimals for {symbol}: {reason}",
            "TOKEN_DECIMALS_ERROR",
            {"symbol": symbol, "reason": reason}
        )


class JobAlreadyRunningError(BurnTrackerException):
    """Raised when a burn run is triggered while another is in flight."""

    def __init__(self, started_at: Optional[str] = None):
        super().__init__(
            "A burn calculation run is already active",
            "JOB_ALREADY_RUNNING",
            {"started_at": started_at}
        )
