"""
Context window management for oversized filings.

Decides whether a document fits the model's context budget for its filing
type and splits it into overlapping chunks when it does not.

Token counts are the ~4 characters per token heuristic. Callers should only
rely on the needs_chunking comparison, never on exact counts.

Strategies:
- fixed: sliding window with an exact character overlap
- section-based: accumulate markdown-style sections (#, ##, ###)
- adaptive: accumulate blank-line separated paragraphs
"""

import logging
import math
import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from .models import FilingType

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
CHUNKING_THRESHOLD = 0.9  # Chunk once the estimate passes 90% of the budget

SECTION_BOUNDARY = re.compile(r"(?=\n#{1,3} )")
PARAGRAPH_BOUNDARY = re.compile(r"\n\n+")
PARAGRAPH_SEPARATOR = "\n\n"

COMPLETE_DOCUMENT = "Complete Document"


class ChunkStrategy(str, Enum):
    """How a document is split into chunks."""
    FIXED = "fixed"
    SECTION_BASED = "section-based"
    ADAPTIVE = "adaptive"


class ContextWindowConfig(BaseModel):
    """Chunk sizing for one filing type / section."""
    max_chunk_size: int = Field(gt=0)
    overlap_size: int = Field(ge=0)
    use_semantic_chunking: bool = True
    chunk_strategy: ChunkStrategy = ChunkStrategy.FIXED


def _profile(size: int, overlap: int, strategy: ChunkStrategy, semantic: bool = True) -> ContextWindowConfig:
    return ContextWindowConfig(
        max_chunk_size=size,
        overlap_size=overlap,
        use_semantic_chunking=semantic,
        chunk_strategy=strategy,
    )


# Annual reports get large budgets, event reports small adaptive ones
DEFAULT_CONTEXT_CONFIGS: dict[FilingType, ContextWindowConfig] = {
    FilingType.FORM_10K: _profile(12000, 1000, ChunkStrategy.SECTION_BASED),
    FilingType.FORM_10Q: _profile(8000, 800, ChunkStrategy.SECTION_BASED),
    FilingType.FORM_8K: _profile(4000, 400, ChunkStrategy.ADAPTIVE),
    FilingType.FORM_20F: _profile(12000, 1000, ChunkStrategy.SECTION_BASED),
    FilingType.FORM_6K: _profile(8000, 800, ChunkStrategy.ADAPTIVE),
    FilingType.FORM_S1: _profile(10000, 1000, ChunkStrategy.SECTION_BASED),
    FilingType.FORM_S4: _profile(10000, 1000, ChunkStrategy.SECTION_BASED),
    FilingType.FORM_424B: _profile(8000, 800, ChunkStrategy.ADAPTIVE),
    FilingType.DEF_14A: _profile(8000, 800, ChunkStrategy.SECTION_BASED),
    FilingType.FORM_4: _profile(4000, 400, ChunkStrategy.ADAPTIVE),
    FilingType.GENERIC: _profile(6000, 600, ChunkStrategy.FIXED, semantic=False),
}

# Section-specific token budgets
SECTION_TOKEN_BUDGETS: dict[str, int] = {
    "Risk Factors": 15000,
    "Management Discussion": 12000,
    "Business Overview": 10000,
    "Financial Statements": 8000,
    "Legal Proceedings": 6000,
    "Controls and Procedures": 4000,
    "Corporate Governance": 5000,
    "Executive Compensation": 6000,
    "Material Changes": 4000,
    COMPLETE_DOCUMENT: 25000,
}


def get_context_config(
    filing_type: Any,
    section: Optional[str] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> ContextWindowConfig:
    """
    Get the chunking profile for a filing type, optionally tightened by section.

    Args:
        filing_type: FilingType or form name (unknown names use the Generic profile)
        section: Section name from SECTION_TOKEN_BUDGETS
        overrides: Field overrides applied last

    Returns:
        A new ContextWindowConfig
    """
    config = DEFAULT_CONTEXT_CONFIGS[FilingType.parse(filing_type)]
    updates: dict[str, Any] = {}

    budget = SECTION_TOKEN_BUDGETS.get(section) if section else None
    if budget:
        updates["max_chunk_size"] = min(config.max_chunk_size, budget)
        if section == COMPLETE_DOCUMENT:
            updates["chunk_strategy"] = ChunkStrategy.SECTION_BASED

    if overrides:
        updates.update(overrides)

    return ContextWindowConfig.model_validate({**config.model_dump(), **updates})


# =============================================================================
# Chunking
# =============================================================================

def _fixed_chunks(document: str, size: int, overlap: int) -> list[str]:
    if overlap >= size:
        raise ValueError(
            f"overlap_size ({overlap}) must be smaller than max_chunk_size ({size})"
        )

    chunks = []
    position = 0
    while position < len(document):
        end = min(position + size, len(document))
        chunks.append(document[position:end])
        if end == len(document):
            break
        position = end - overlap
    return chunks


def _accumulate(pieces: list[str], size: int, overlap: int, separator: str) -> list[str]:
    """
    Pack pieces into chunks up to size characters.

    When a piece would overflow a non-empty chunk, the chunk is closed and the
    next one starts with its trailing overlap characters.
    """
    chunks = []
    current = ""
    for piece in pieces:
        if current and len(current) + len(piece) + len(separator) > size:
            chunks.append(current)
            current = current[max(0, len(current) - overlap):] + separator + piece
        else:
            current = current + separator + piece if current else piece
    if current:
        chunks.append(current)
    return chunks


def split_document_into_chunks(document: str, config: ContextWindowConfig) -> list[str]:
    """
    Split a document according to the config's strategy.

    Raises:
        ValueError: Fixed strategy with overlap_size >= max_chunk_size
    """
    size, overlap = config.max_chunk_size, config.overlap_size

    if config.chunk_strategy == ChunkStrategy.FIXED or not config.use_semantic_chunking:
        chunks = _fixed_chunks(document, size, overlap)
    elif config.chunk_strategy == ChunkStrategy.SECTION_BASED:
        sections = [s for s in SECTION_BOUNDARY.split(document) if s]
        chunks = _accumulate(sections, size, overlap, separator="")
    else:
        paragraphs = PARAGRAPH_BOUNDARY.split(document)
        chunks = _accumulate(paragraphs, size, overlap, separator=PARAGRAPH_SEPARATOR)

    logger.debug(
        f"Split {len(document)} chars into {len(chunks)} chunks "
        f"({config.chunk_strategy.value}, size={size}, overlap={overlap})"
    )
    return chunks


def estimate_token_count(text: str) -> int:
    """Rough token estimate: ceil(len / 4)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def needs_chunking(document: str, filing_type: Any, section: Optional[str] = None) -> bool:
    """True when the token estimate exceeds 90% of the profile's chunk budget."""
    config = get_context_config(filing_type, section)
    return estimate_token_count(document) > config.max_chunk_size * CHUNKING_THRESHOLD


def chunk_for_filing(
    document: str,
    filing_type: Any,
    section: Optional[str] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> list[str]:
    """Chunks for a filing document; a single chunk when it already fits."""
    config = get_context_config(filing_type, section, overrides)
    if estimate_token_count(document) <= config.max_chunk_size * CHUNKING_THRESHOLD:
        return [document]
    return split_document_into_chunks(document, config)
