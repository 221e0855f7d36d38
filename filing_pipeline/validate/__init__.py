"""
Validation of structured filing summaries.

This module provides:
- Pydantic schemas per filing family and the closed filing-type dispatch
- Strict and lenient (present-fields) validation
- Per-field salvage of partially valid replies
- Rule checks with automatic fixes for extracted filings
"""

from .schemas import (
    FilingSchema,
    MoneyItem,
    SectionSummary,
    AnnualReportSchema,
    QuarterlyReportSchema,
    CurrentReportSchema,
    InsiderTransaction,
    Form4Schema,
    ManagementMember,
    RegistrationSchema,
    Proposal,
    CompensationEntry,
    ProxyStatementSchema,
    GenericFilingSchema,
    schema_for,
)
from .validators import (
    MINIMUM_FIELDS_ERROR,
    ValidationResult,
    format_validation_errors,
    validate_against_schema,
    extract_valid_fields,
)
from .filing_rules import (
    RuleSeverity,
    RuleResult,
    RuleReport,
    RuleValidator,
    require_field,
    check_content_size,
    create_partial_result,
    filing_validator,
    validate_parsed_filing,
)

__all__ = [
    # Schemas
    "FilingSchema",
    "MoneyItem",
    "SectionSummary",
    "AnnualReportSchema",
    "QuarterlyReportSchema",
    "CurrentReportSchema",
    "InsiderTransaction",
    "Form4Schema",
    "ManagementMember",
    "RegistrationSchema",
    "Proposal",
    "CompensationEntry",
    "ProxyStatementSchema",
    "GenericFilingSchema",
    "schema_for",
    # Validators
    "MINIMUM_FIELDS_ERROR",
    "ValidationResult",
    "format_validation_errors",
    "validate_against_schema",
    "extract_valid_fields",
    # Filing rules
    "RuleSeverity",
    "RuleResult",
    "RuleReport",
    "RuleValidator",
    "require_field",
    "check_content_size",
    "create_partial_result",
    "filing_validator",
    "validate_parsed_filing",
]
