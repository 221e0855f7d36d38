"""
Parser error taxonomy for the filing pipeline.

Every failure inside the extractors and the response parser is described by
three independent tags:

- category: what kind of failure it was (input, processing, format, system)
- severity: how bad it is (advisory, used for logging)
- recovery: what the caller should do next (the operative field)

Callers must branch on ``recovery``. Severity correlates with recovery by
default (FATAL -> ABORT) but nothing enforces it.

Usage:
    try:
        sections = parse_html(html)
    except ParserError as e:
        if e.should_use_fallback():
            ...
"""

import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ParserErrorCategory(str, Enum):
    """Error categories for filing parsers."""
    # Input errors
    INVALID_INPUT = "invalid_input"
    FILE_ACCESS = "file_access"
    NETWORK = "network"

    # Processing errors
    PARSING = "parsing"
    EXTRACTION = "extraction"
    STRUCTURE = "structure"

    # Format-specific errors
    HTML = "html"
    PDF = "pdf"
    XBRL = "xbrl"

    # System errors
    RESOURCE = "resource"
    INTERNAL = "internal"

    UNKNOWN = "unknown"


class ParserErrorSeverity(str, Enum):
    """Severity levels for parser errors."""
    FATAL = "fatal"        # Completely prevents parsing
    ERROR = "error"        # Serious, may still allow partial results
    WARNING = "warning"    # Parsing continues, quality may suffer
    INFO = "info"


class RecoveryStrategy(str, Enum):
    """Recommended next step for the caller."""
    ABORT = "abort"
    RETRY = "retry"
    FALLBACK = "fallback"
    PARTIAL = "partial"
    CONTINUE = "continue"
    SIMPLIFIED = "simplified"


# Code prefix per category, e.g. "NET48213"
ERROR_PREFIXES = {
    ParserErrorCategory.INVALID_INPUT: "INPUT",
    ParserErrorCategory.FILE_ACCESS: "FILE",
    ParserErrorCategory.NETWORK: "NET",
    ParserErrorCategory.PARSING: "PARSE",
    ParserErrorCategory.EXTRACTION: "EXTRACT",
    ParserErrorCategory.STRUCTURE: "STRUCT",
    ParserErrorCategory.HTML: "HTML",
    ParserErrorCategory.PDF: "PDF",
    ParserErrorCategory.XBRL: "XBRL",
    ParserErrorCategory.RESOURCE: "RES",
    ParserErrorCategory.INTERNAL: "INT",
    ParserErrorCategory.UNKNOWN: "UNK",
}

# Keyword tables for classifying arbitrary exceptions, checked in order
_CATEGORY_KEYWORDS = [
    (ParserErrorCategory.NETWORK, ("network", "fetch", "http", "connection")),
    (ParserErrorCategory.FILE_ACCESS, ("permission", "access", "no such file")),
    (ParserErrorCategory.HTML, ("html", "beautifulsoup", "bs4", "lxml")),
    (ParserErrorCategory.PDF, ("pdf",)),
    (ParserErrorCategory.XBRL, ("xbrl", "xml")),
    (ParserErrorCategory.RESOURCE, ("memory", "timeout", "timed out", "resource")),
]


@dataclass
class ParserErrorInfo:
    """Structured, plain-value description of a parser failure."""
    category: ParserErrorCategory
    severity: ParserErrorSeverity
    message: str
    code: str
    recovery: RecoveryStrategy
    original_error: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Convert to a serializable dictionary."""
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "message": self.message,
            "code": self.code,
            "recovery": self.recovery.value,
            "original_error": repr(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp,
        }


class ParserError(Exception):
    """Exception carrying a ParserErrorInfo value."""

    def __init__(self, info: ParserErrorInfo):
        super().__init__(info.message)
        self.info = info
        self._log()

    @property
    def category(self) -> ParserErrorCategory:
        return self.info.category

    @property
    def severity(self) -> ParserErrorSeverity:
        return self.info.severity

    @property
    def recovery(self) -> RecoveryStrategy:
        return self.info.recovery

    @property
    def code(self) -> str:
        return self.info.code

    @property
    def context(self) -> dict[str, Any]:
        return self.info.context

    def _log(self):
        info = self.info
        message = (
            f"[{info.code}] {info.message} "
            f"(Category: {info.category.value}, Recovery: {info.recovery.value})"
        )
        if info.severity in (ParserErrorSeverity.FATAL, ParserErrorSeverity.ERROR):
            logger.error(message)
        elif info.severity == ParserErrorSeverity.WARNING:
            logger.warning(message)
        else:
            logger.info(message)

    def get_user_message(self) -> str:
        """Get a message suitable for display next to a filing."""
        severity = self.info.severity
        if severity == ParserErrorSeverity.FATAL:
            return f"Critical error: {self}. Unable to continue parsing."
        if severity == ParserErrorSeverity.ERROR:
            return f"Error: {self}. Results may be incomplete."
        if severity == ParserErrorSeverity.WARNING:
            return f"Warning: {self}. Results may be affected."
        return f"Note: {self}"

    def should_continue(self) -> bool:
        return self.info.recovery != RecoveryStrategy.ABORT

    def should_retry(self) -> bool:
        return self.info.recovery == RecoveryStrategy.RETRY

    def should_use_fallback(self) -> bool:
        return self.info.recovery == RecoveryStrategy.FALLBACK

    def with_overrides(
        self,
        recovery: Optional[RecoveryStrategy] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> "ParserError":
        """Apply a recovery override and merge extra context in place."""
        updates: dict[str, Any] = {}
        if recovery is not None:
            updates["recovery"] = recovery
        if context:
            updates["context"] = {**self.info.context, **context}
        if updates:
            self.info = replace(self.info, **updates)
        return self


def _default_recovery(severity: ParserErrorSeverity) -> RecoveryStrategy:
    if severity == ParserErrorSeverity.FATAL:
        return RecoveryStrategy.ABORT
    if severity == ParserErrorSeverity.ERROR:
        return RecoveryStrategy.FALLBACK
    return RecoveryStrategy.CONTINUE


def generate_error_code(category: ParserErrorCategory) -> str:
    """Build a code from the category prefix and a millisecond timestamp suffix."""
    return f"{ERROR_PREFIXES[category]}{str(int(time.time() * 1000))[-5:]}"


def create_parser_error(
    category: ParserErrorCategory,
    message: str,
    severity: ParserErrorSeverity = ParserErrorSeverity.ERROR,
    recovery: Optional[RecoveryStrategy] = None,
    code: Optional[str] = None,
    original_error: Optional[BaseException] = None,
    context: Optional[dict[str, Any]] = None,
) -> ParserError:
    """
    Create a ParserError with defaults filled in.

    Args:
        category: Error category
        message: Human-readable message
        severity: Defaults to ERROR
        recovery: Defaults from severity (FATAL->ABORT, ERROR->FALLBACK, else CONTINUE)
        code: Stable identifier, generated when omitted
        original_error: Underlying exception, if any
        context: Extra diagnostic fields

    Returns:
        The constructed (and logged) ParserError
    """
    info = ParserErrorInfo(
        category=category,
        severity=severity,
        message=message,
        code=code or generate_error_code(category),
        recovery=recovery or _default_recovery(severity),
        original_error=original_error,
        context=dict(context or {}),
    )
    return ParserError(info)


def infer_category(
    error: BaseException,
    default: ParserErrorCategory = ParserErrorCategory.UNKNOWN,
) -> ParserErrorCategory:
    """Guess a category from an exception's type name and message."""
    if isinstance(error, ConnectionError):
        return ParserErrorCategory.NETWORK
    if isinstance(error, MemoryError):
        return ParserErrorCategory.RESOURCE

    error_string = f"{type(error).__name__}: {error}".lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in error_string for keyword in keywords):
            return category
    return default


def create_error_from_exception(
    error: BaseException,
    default_category: ParserErrorCategory = ParserErrorCategory.UNKNOWN,
) -> ParserError:
    """Wrap an arbitrary exception, inferring its category."""
    if isinstance(error, ParserError):
        return error
    return create_parser_error(
        infer_category(error, default_category),
        str(error) or "An unknown error occurred",
        original_error=error,
    )


# =============================================================================
# Result values
# =============================================================================

@dataclass
class Result(Generic[T]):
    """
    Outcome of a recovery-driving operation.

    Exactly one of ``value`` / ``error`` is meaningful; ``ok`` tells which.
    """
    value: Optional[T] = None
    error: Optional[ParserErrorInfo] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ParserErrorInfo) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise ParserError(self.error)
        return self.value


def capture(
    fn: Callable[[], T],
    default_category: ParserErrorCategory = ParserErrorCategory.UNKNOWN,
    context: Optional[dict[str, Any]] = None,
) -> Result[T]:
    """Run fn and turn any exception into a failed Result."""
    try:
        return Result.success(fn())
    except Exception as e:
        parser_error = create_error_from_exception(e, default_category)
        parser_error.with_overrides(context=context)
        return Result.failure(parser_error.info)


# =============================================================================
# Error handling wrappers
# =============================================================================

def _fallback_failed(parser_error: ParserError, fallback_error: Exception) -> ParserError:
    return create_parser_error(
        ParserErrorCategory.INTERNAL,
        f"Fallback parsing method failed: {fallback_error}",
        severity=ParserErrorSeverity.FATAL,
        recovery=RecoveryStrategy.ABORT,
        original_error=fallback_error,
        context={**parser_error.context, "primary_error": parser_error.info.message},
    )


def with_error_handling(
    fn: Callable[[], T],
    fallback: Optional[Callable[[], T]] = None,
    recovery: Optional[RecoveryStrategy] = None,
    context: Optional[dict[str, Any]] = None,
    default_category: ParserErrorCategory = ParserErrorCategory.UNKNOWN,
) -> T:
    """
    Run fn, normalizing any failure into a ParserError.

    Args:
        fn: Operation to run
        fallback: Run instead when the error's recovery is FALLBACK
        recovery: Override for the error's recovery strategy
        context: Extra context merged into the error
        default_category: Category when none can be inferred

    Returns:
        Result of fn, or of fallback when it was used

    Raises:
        ParserError: The normalized error, or an INTERNAL/ABORT error when
            the fallback itself fails
    """
    try:
        return fn()
    except Exception as e:
        parser_error = create_error_from_exception(e, default_category)
        parser_error.with_overrides(recovery=recovery, context=context)

        if fallback is not None and parser_error.should_use_fallback():
            logger.info(f"Using fallback after [{parser_error.code}] {parser_error}")
            try:
                return fallback()
            except Exception as fallback_error:
                raise _fallback_failed(parser_error, fallback_error) from fallback_error

        if parser_error is e:
            raise
        raise parser_error from e


async def with_error_handling_async(
    fn: Callable[[], Any],
    fallback: Optional[Callable[[], Any]] = None,
    recovery: Optional[RecoveryStrategy] = None,
    context: Optional[dict[str, Any]] = None,
    default_category: ParserErrorCategory = ParserErrorCategory.UNKNOWN,
) -> Any:
    """Async variant of with_error_handling; fn and fallback return awaitables."""
    try:
        return await fn()
    except Exception as e:
        parser_error = create_error_from_exception(e, default_category)
        parser_error.with_overrides(recovery=recovery, context=context)

        if fallback is not None and parser_error.should_use_fallback():
            logger.info(f"Using fallback after [{parser_error.code}] {parser_error}")
            try:
                return await fallback()
            except Exception as fallback_error:
                raise _fallback_failed(parser_error, fallback_error) from fallback_error

        if parser_error is e:
            raise
        raise parser_error from e
