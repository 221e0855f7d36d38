"""
Degradation strategies for extractor options.

Used when a RESOURCE failure or repeated PARSING failures suggest the
original request was too ambitious for the input. Each strategy is a fixed
mutation of the options; the input options are never modified.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional, TypeVar

if TYPE_CHECKING:
    from ..parse.models import ExtractorOptions

logger = logging.getLogger(__name__)

DEFAULT_PARAGRAPH_LIMIT = 100

OptionsT = TypeVar("OptionsT", bound="ExtractorOptions")


class SimplificationStrategy(str, Enum):
    """Ways to make an extraction cheaper."""
    BASIC_TEXT = "basic_text"
    SKIP_TABLES = "skip_tables"
    SKIP_LISTS = "skip_lists"
    INCLUDE_BOILERPLATE = "include_boilerplate"
    FIRST_N_PARAGRAPHS = "first_n_paragraphs"
    LOW_MEMORY = "low_memory"


def _updates_for(
    strategy: SimplificationStrategy,
    paragraph_limit: Optional[int],
) -> dict:
    if strategy == SimplificationStrategy.BASIC_TEXT:
        return {
            "extract_tables": False,
            "extract_lists": False,
            "include_raw_html": False,
            "preserve_whitespace": False,
            "extract_sections": False,
        }
    if strategy == SimplificationStrategy.SKIP_TABLES:
        return {"extract_tables": False}
    if strategy == SimplificationStrategy.SKIP_LISTS:
        return {"extract_lists": False}
    if strategy == SimplificationStrategy.INCLUDE_BOILERPLATE:
        return {"remove_boilerplate": False}
    if strategy == SimplificationStrategy.FIRST_N_PARAGRAPHS:
        return {"paragraph_limit": paragraph_limit or DEFAULT_PARAGRAPH_LIMIT}
    if strategy == SimplificationStrategy.LOW_MEMORY:
        return {"low_memory_mode": True, "stream_processing": True}
    raise ValueError(f"Unknown simplification strategy: {strategy}")


def create_simplified_options(
    options: OptionsT,
    strategies: Iterable[SimplificationStrategy],
    paragraph_limit: Optional[int] = None,
) -> OptionsT:
    """
    Apply simplification strategies to a copy of the extractor options.

    Args:
        options: Original options (left untouched)
        strategies: Strategies applied in order
        paragraph_limit: Limit for FIRST_N_PARAGRAPHS (default 100)

    Returns:
        New options object of the same type
    """
    updates: dict = {}
    applied = []
    for strategy in strategies:
        strategy = SimplificationStrategy(strategy)
        updates.update(_updates_for(strategy, paragraph_limit))
        applied.append(strategy.value)

    logger.debug(f"Simplified extractor options with: {', '.join(applied) or 'nothing'}")
    return options.model_copy(update=updates)
