"""
Error classification and recovery utilities for parsing steps.

This package provides:
- The parser error taxonomy (category x severity x recovery)
- Error-handling, retry-with-backoff and fallback-chain wrappers
- Option simplification strategies for degraded extraction
"""

from .errors import (
    ParserErrorCategory,
    ParserErrorSeverity,
    RecoveryStrategy,
    ParserErrorInfo,
    ParserError,
    Result,
    capture,
    create_parser_error,
    create_error_from_exception,
    infer_category,
    with_error_handling,
    with_error_handling_async,
)
from .retry import (
    RetryOptions,
    is_retryable_error,
    calculate_backoff,
    with_retry,
    with_retry_async,
    with_fallbacks,
)
from .simplification import (
    SimplificationStrategy,
    create_simplified_options,
)

__all__ = [
    # Errors
    "ParserErrorCategory",
    "ParserErrorSeverity",
    "RecoveryStrategy",
    "ParserErrorInfo",
    "ParserError",
    "Result",
    "capture",
    "create_parser_error",
    "create_error_from_exception",
    "infer_category",
    "with_error_handling",
    "with_error_handling_async",
    # Retry
    "RetryOptions",
    "is_retryable_error",
    "calculate_backoff",
    "with_retry",
    "with_retry_async",
    "with_fallbacks",
    # Simplification
    "SimplificationStrategy",
    "create_simplified_options",
]
