"""
Rule-based checks for extracted filings, with optional automatic fixes.

A RuleValidator runs its rules in order. A failed rule with a fix has the fix
applied to a working copy, so later rules see the corrected data. The input
is never modified.

Severities:
- CRITICAL: stops validation (when stop_on_critical) with the data unfixed
- ERROR / WARNING / INFO: recorded; validation continues

Usage:
    report = validate_parsed_filing(parsed)
    filing = report.fixed_data or parsed
    for failure in report.failures:
        print(failure.severity.value, failure.message)
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import BaseModel

from ..parse.models import FilingSectionType, ParsedFiling
from ..recovery.errors import (
    ParserErrorCategory,
    ParserErrorSeverity,
    RecoveryStrategy,
    create_parser_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_FILING_CHARS = 100
MAX_COMPANY_NAME_LENGTH = 200


class RuleSeverity(str, Enum):
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


_SEVERITY_ORDER = [RuleSeverity.CRITICAL, RuleSeverity.ERROR, RuleSeverity.WARNING, RuleSeverity.INFO]

_ERROR_SEVERITY = {
    RuleSeverity.CRITICAL: ParserErrorSeverity.FATAL,
    RuleSeverity.ERROR: ParserErrorSeverity.ERROR,
    RuleSeverity.WARNING: ParserErrorSeverity.WARNING,
    RuleSeverity.INFO: ParserErrorSeverity.WARNING,
}


@dataclass
class RuleResult:
    """Outcome of one rule."""
    valid: bool
    severity: RuleSeverity
    message: str
    details: Optional[str] = None
    location: Optional[str] = None

    def describe(self) -> str:
        return f"{self.severity.value}: {self.message}"


@dataclass
class RuleReport:
    """All rule outcomes for one value, plus the fixed copy if any fix ran."""
    original_data: Any
    results: list[RuleResult] = field(default_factory=list)
    fixed_data: Any = None
    is_fixed: bool = False
    valid: bool = True

    @property
    def failures(self) -> list[RuleResult]:
        return [r for r in self.results if not r.valid]

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "is_fixed": self.is_fixed,
            "results": [
                {
                    "valid": r.valid,
                    "severity": r.severity.value,
                    "message": r.message,
                    "details": r.details,
                    "location": r.location,
                }
                for r in self.results
            ],
        }


Rule = Callable[[T, dict], RuleResult]
Fix = Callable[[T, RuleResult, dict], T]


def _clone(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_copy(deep=True)
    return copy.deepcopy(data)


def _get(data: Any, name: str) -> Any:
    if isinstance(data, dict):
        return data.get(name)
    return getattr(data, name, None)


class RuleValidator(Generic[T]):
    """Ordered rules, each with an optional fix."""

    def __init__(self, name: str = "validator"):
        self.name = name
        self._rules: list[tuple[Rule, Optional[Fix]]] = []

    def add_rule(self, rule: Rule, fix: Optional[Fix] = None) -> "RuleValidator[T]":
        self._rules.append((rule, fix))
        return self

    def validate(
        self,
        data: T,
        stop_on_critical: bool = True,
        auto_fix: bool = True,
        raise_on_error: bool = False,
        context: Optional[dict] = None,
    ) -> RuleReport:
        """
        Run every rule against a working copy of data.

        Raises:
            ParserError: Category PARSING when raise_on_error is set and a
                rule fails (severity and recovery follow the worst failure)
        """
        context = dict(context or {})
        current = _clone(data)
        results: list[RuleResult] = []
        is_fixed = False

        for rule, fix in self._rules:
            try:
                result = rule(current, context)
            except Exception as e:
                logger.error(f"[{self.name}] Rule {getattr(rule, '__name__', rule)} raised: {e}")
                results.append(RuleResult(
                    valid=False,
                    severity=RuleSeverity.ERROR,
                    message=f"Validation process error: {e}",
                    details="Exception during validation rule execution",
                ))
                continue

            results.append(result)
            if result.valid:
                continue

            if stop_on_critical and result.severity == RuleSeverity.CRITICAL:
                if raise_on_error:
                    raise create_parser_error(
                        ParserErrorCategory.PARSING,
                        f"Critical validation failure: {result.message}",
                        severity=ParserErrorSeverity.FATAL,
                        recovery=RecoveryStrategy.ABORT,
                        context={"validator": self.name, "location": result.location, **context},
                    )
                logger.warning(f"[{self.name}] Stopped on critical failure: {result.message}")
                return RuleReport(original_data=data, results=results, is_fixed=is_fixed, valid=False)

            if fix is not None and auto_fix:
                try:
                    current = fix(current, result, context)
                except Exception as e:
                    logger.error(f"[{self.name}] Fix for '{result.message}' failed: {e}")
                else:
                    is_fixed = True
                    logger.debug(f"[{self.name}] Applied fix: {result.message}")

        valid = all(r.valid for r in results)
        if not valid and raise_on_error:
            worst = min(
                (r for r in results if not r.valid),
                key=lambda r: _SEVERITY_ORDER.index(r.severity),
            )
            raise create_parser_error(
                ParserErrorCategory.PARSING,
                f"Validation failure: {worst.message}",
                severity=_ERROR_SEVERITY[worst.severity],
                recovery=RecoveryStrategy.ABORT if worst.severity == RuleSeverity.CRITICAL else RecoveryStrategy.PARTIAL,
                context={
                    "validator": self.name,
                    "failures": [r.describe() for r in results if not r.valid],
                    **context,
                },
            )

        return RuleReport(
            original_data=data,
            results=results,
            fixed_data=current if is_fixed else None,
            is_fixed=is_fixed,
            valid=valid,
        )


# =============================================================================
# Rule helpers
# =============================================================================

def require_field(
    data: Any,
    field_name: str,
    severity: RuleSeverity = RuleSeverity.ERROR,
    message: Optional[str] = None,
    location: Optional[str] = None,
) -> RuleResult:
    """Present, not None, and not a blank string."""
    value = _get(data, field_name)
    valid = value is not None and not (isinstance(value, str) and not value.strip())
    return RuleResult(
        valid=valid,
        severity=severity,
        message=message or f"Required field '{field_name}' is missing or empty",
        location=location or field_name,
    )


def check_content_size(
    data: Any,
    field_name: str,
    min_length: int = 0,
    max_length: Optional[int] = None,
    severity: RuleSeverity = RuleSeverity.WARNING,
    message: Optional[str] = None,
    location: Optional[str] = None,
) -> RuleResult:
    """Length of str(field) within [min_length, max_length]; a missing field has length 0."""
    value = _get(data, field_name)
    length = len(str(value)) if value is not None else 0

    if length < min_length:
        default = f"Field '{field_name}' is too short ({length} < {min_length})"
    elif max_length is not None and length > max_length:
        default = f"Field '{field_name}' is too long ({length} > {max_length})"
    else:
        default = ""

    return RuleResult(
        valid=not default,
        severity=severity,
        message=message or default,
        location=location or field_name,
    )


def create_partial_result(partial_data: dict, template: T) -> T:
    """A copy of template with every non-None value of partial_data laid over it."""
    updates = {k: v for k, v in partial_data.items() if v is not None}
    if isinstance(template, BaseModel):
        result = template.model_copy(update=updates, deep=True)
    else:
        result = copy.deepcopy(template)
        result.update(updates)
    logger.debug(f"Created partial result with {len(updates)} fields")
    return result


# =============================================================================
# ParsedFiling rules
# =============================================================================

def _has_sections(filing: ParsedFiling, context: dict) -> RuleResult:
    return RuleResult(
        valid=bool(filing.sections),
        severity=RuleSeverity.CRITICAL,
        message="Filing produced no sections",
        location="sections",
    )


def _has_content(filing: ParsedFiling, context: dict) -> RuleResult:
    minimum = context.get("min_chars", MIN_FILING_CHARS)
    total = filing.total_chars
    return RuleResult(
        valid=total >= minimum,
        severity=RuleSeverity.ERROR,
        message=f"Extracted text is too short ({total} < {minimum} characters)",
        location="sections",
    )


def _company_name_size(filing: ParsedFiling, context: dict) -> RuleResult:
    if filing.company_name is None:
        return RuleResult(valid=True, severity=RuleSeverity.WARNING, message="", location="company_name")
    return check_content_size(filing, "company_name", min_length=2, max_length=MAX_COMPANY_NAME_LENGTH)


def _drop_company_name(filing: ParsedFiling, result: RuleResult, context: dict) -> ParsedFiling:
    filing.company_name = None
    return filing


def _company_name_present(filing: ParsedFiling, context: dict) -> RuleResult:
    return require_field(filing, "company_name", severity=RuleSeverity.WARNING)


def _filing_date_not_future(filing: ParsedFiling, context: dict) -> RuleResult:
    today = context.get("today") or date.today()
    valid = filing.filing_date is None or filing.filing_date <= today
    return RuleResult(
        valid=valid,
        severity=RuleSeverity.ERROR,
        message=f"Filing date {filing.filing_date} is in the future",
        location="filing_date",
    )


def _drop_filing_date(filing: ParsedFiling, result: RuleResult, context: dict) -> ParsedFiling:
    filing.filing_date = None
    return filing


def _tables_and_lists_match_sections(filing: ParsedFiling, context: dict) -> RuleResult:
    tables = [s for s in filing.sections if s.type == FilingSectionType.TABLE]
    lists = [s for s in filing.sections if s.type == FilingSectionType.LIST]
    return RuleResult(
        valid=filing.tables == tables and filing.lists == lists,
        severity=RuleSeverity.ERROR,
        message="Table and list views disagree with the section list",
        location="tables",
    )


def _rebuild_tables_and_lists(filing: ParsedFiling, result: RuleResult, context: dict) -> ParsedFiling:
    filing.tables = [s for s in filing.sections if s.type == FilingSectionType.TABLE]
    filing.lists = [s for s in filing.sections if s.type == FilingSectionType.LIST]
    return filing


def filing_validator(expected_sections: Optional[list[str]] = None) -> RuleValidator[ParsedFiling]:
    """
    Default rules for a ParsedFiling.

    Args:
        expected_sections: Important-section names for the filing type; when
            given, finding none of them is a WARNING
    """
    validator: RuleValidator[ParsedFiling] = RuleValidator("parsed-filing")
    validator.add_rule(_has_sections)
    validator.add_rule(_has_content)
    validator.add_rule(_tables_and_lists_match_sections, _rebuild_tables_and_lists)
    validator.add_rule(_company_name_size, _drop_company_name)
    validator.add_rule(_company_name_present)
    validator.add_rule(_filing_date_not_future, _drop_filing_date)

    if expected_sections:
        def important_sections_found(filing: ParsedFiling, context: dict) -> RuleResult:
            return RuleResult(
                valid=bool(filing.important_sections),
                severity=RuleSeverity.WARNING,
                message=f"None of the {len(expected_sections)} expected sections were found",
                location="important_sections",
            )
        validator.add_rule(important_sections_found)

    return validator


def validate_parsed_filing(
    filing: ParsedFiling,
    expected_sections: Optional[list[str]] = None,
    **options: Any,
) -> RuleReport:
    """Run filing_validator(expected_sections) over a ParsedFiling; options go to validate()."""
    report = filing_validator(expected_sections).validate(filing, **options)
    if report.failures:
        logger.info(
            f"[Validation] {len(report.failures)} issues in {filing.filing_type.value} filing"
            + (" (fixed)" if report.is_fixed else "")
        )
    return report
