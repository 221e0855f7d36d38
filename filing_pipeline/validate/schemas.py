"""
Pydantic schemas for structured filing summaries.

One schema per filing family. Field names are snake_case in Python and
camelCase on the wire (the model's JSON reply), via an alias generator.

Types are strict: a number where a string is expected is a violation, not
something to coerce. Unknown keys are ignored by validation.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from ..parse.models import FilingType

Number = Union[StrictInt, StrictFloat]
NumberOrText = Union[StrictInt, StrictFloat, StrictStr]
TextOrList = Union[StrictStr, list[StrictStr]]


class FilingSchema(BaseModel):
    """Base for all filing schemas: camelCase aliases, extra keys dropped."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# Shared pieces
# =============================================================================

class MoneyItem(FilingSchema):
    """A labelled financial figure, e.g. Revenue / $1.2B / +8%."""
    label: StrictStr
    value: StrictStr
    growth: Optional[StrictStr] = None
    unit: Optional[StrictStr] = None


class SectionSummary(FilingSchema):
    heading: StrictStr
    content: StrictStr
    page: Optional[Number] = None


# =============================================================================
# Periodic reports (10-K / 20-F, 10-Q / 6-K)
# =============================================================================

class AnnualReportSchema(FilingSchema):
    """10-K and 20-F."""
    company: StrictStr
    period: StrictStr
    fiscal_year: Optional[StrictStr] = None
    filing_date: Optional[StrictStr] = None
    financials: list[MoneyItem]
    insights: list[StrictStr]
    risks: list[StrictStr]
    sections: Optional[list[SectionSummary]] = None
    summary: Optional[StrictStr] = None


class QuarterlyReportSchema(FilingSchema):
    """10-Q and 6-K."""
    company: StrictStr
    period: StrictStr
    fiscal_quarter: Optional[StrictStr] = None
    filing_date: Optional[StrictStr] = None
    financials: list[MoneyItem]
    insights: list[StrictStr]
    risks: list[StrictStr]
    market_outlook: Optional[StrictStr] = None
    sections: Optional[list[SectionSummary]] = None
    summary: Optional[StrictStr] = None


# =============================================================================
# Event and ownership reports (8-K, Form 4)
# =============================================================================

class CurrentReportSchema(FilingSchema):
    """8-K."""
    company: StrictStr
    report_date: StrictStr
    filing_date: Optional[StrictStr] = None
    event_type: StrictStr
    summary: StrictStr
    positive_developments: TextOrList
    potential_concerns: TextOrList
    structural_changes: Optional[TextOrList] = None
    additional_notes: Optional[StrictStr] = None


class InsiderTransaction(FilingSchema):
    type: StrictStr
    date: StrictStr
    shares: NumberOrText
    price: Optional[NumberOrText] = None
    value: Optional[NumberOrText] = None
    code: Optional[StrictStr] = None
    description: Optional[StrictStr] = None


class Form4Schema(FilingSchema):
    """Form 4 (changes in beneficial ownership)."""
    company: StrictStr
    filing_date: StrictStr
    filer_name: StrictStr
    relationship: StrictStr
    ownership_type: StrictStr
    transactions: list[InsiderTransaction]
    total_value: Optional[StrictStr] = None
    percentage_change: Optional[StrictStr] = None
    previous_stake: Optional[StrictStr] = None
    new_stake: Optional[StrictStr] = None
    summary: StrictStr


# =============================================================================
# Registration and proxy statements (S-1 / S-4, DEF 14A)
# =============================================================================

class ManagementMember(FilingSchema):
    name: StrictStr
    title: StrictStr
    background: Optional[StrictStr] = None


class RegistrationSchema(FilingSchema):
    """S-1 and S-4."""
    company: StrictStr
    filing_date: StrictStr
    offering_type: StrictStr
    offering_amount: Optional[StrictStr] = None
    use_of_proceeds: Optional[list[StrictStr]] = None
    business_overview: StrictStr
    risk_factors: list[StrictStr]
    financial_highlights: Optional[list[MoneyItem]] = None
    management_team: Optional[list[ManagementMember]] = None
    summary: StrictStr


class Proposal(FilingSchema):
    number: NumberOrText
    title: StrictStr
    description: StrictStr
    board_recommendation: Optional[StrictStr] = None


class CompensationEntry(FilingSchema):
    name: StrictStr
    title: StrictStr
    salary: Optional[StrictStr] = None
    bonus: Optional[StrictStr] = None
    stock_awards: Optional[StrictStr] = None
    option_awards: Optional[StrictStr] = None
    total: Optional[StrictStr] = None


class ProxyStatementSchema(FilingSchema):
    """DEF 14A."""
    company: StrictStr
    filing_date: StrictStr
    meeting_date: StrictStr
    meeting_type: StrictStr
    proposals: list[Proposal]
    executive_compensation: Optional[list[CompensationEntry]] = None
    summary: StrictStr


# =============================================================================
# Generic (424B and anything unrecognised)
# =============================================================================

class GenericFilingSchema(FilingSchema):
    company: StrictStr
    filing_type: StrictStr
    filing_date: StrictStr
    sections: Optional[list[SectionSummary]] = None
    key_points: list[StrictStr]
    summary: StrictStr


def schema_for(filing_type: FilingType) -> type[FilingSchema]:
    """Schema class for a filing type. Generic is the explicit final arm."""
    filing_type = FilingType.parse(filing_type)
    if filing_type in (FilingType.FORM_10K, FilingType.FORM_20F):
        return AnnualReportSchema
    elif filing_type in (FilingType.FORM_10Q, FilingType.FORM_6K):
        return QuarterlyReportSchema
    elif filing_type == FilingType.FORM_8K:
        return CurrentReportSchema
    elif filing_type == FilingType.FORM_4:
        return Form4Schema
    elif filing_type in (FilingType.FORM_S1, FilingType.FORM_S4):
        return RegistrationSchema
    elif filing_type == FilingType.DEF_14A:
        return ProxyStatementSchema
    elif filing_type in (FilingType.FORM_424B, FilingType.GENERIC):
        return GenericFilingSchema
    raise ValueError(f"No schema for filing type: {filing_type}")
