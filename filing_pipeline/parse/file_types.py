"""
Raw document format detection from content.
"""

import re
from typing import Union

from .models import FileType

PDF_MAGIC = b"%PDF-"
SNIFF_LENGTH = 1000
HTML_PATTERNS = [
    re.compile(r"<html", re.IGNORECASE),
    re.compile(r"<!DOCTYPE html", re.IGNORECASE),
    re.compile(r"<body", re.IGNORECASE),
    re.compile(r"<head", re.IGNORECASE),
]
XBRL_PATTERNS = [
    re.compile(r"<(?:xbrli:)?xbrl\b", re.IGNORECASE),
    re.compile(r"<ix:header", re.IGNORECASE),
    re.compile(r"xmlns:xbrli", re.IGNORECASE),
]
INLINE_XBRL_NAMESPACE = re.compile(r"xmlns:ix\s*=", re.IGNORECASE)


def _sample(content: Union[bytes, str]) -> str:
    if isinstance(content, (bytes, bytearray)):
        return bytes(content[:SNIFF_LENGTH]).decode("utf-8", errors="replace")
    return content[:SNIFF_LENGTH]


def is_pdf(content: Union[bytes, str]) -> bool:
    """True when content starts with the PDF signature."""
    if isinstance(content, (bytes, bytearray)):
        return bytes(content[:5]) == PDF_MAGIC
    return content.startswith(PDF_MAGIC.decode("ascii"))


def is_html(content: Union[bytes, str]) -> bool:
    """True when an HTML tag appears in the first 1000 characters."""
    sample = _sample(content)
    return any(pattern.search(sample) for pattern in HTML_PATTERNS)


def is_xbrl(content: Union[bytes, str]) -> bool:
    """
    True for XBRL instance documents and inline XBRL.

    Inline XBRL is HTML whose root declares the ix namespace, so this must
    be checked before is_html.
    """
    sample = _sample(content)
    if any(pattern.search(sample) for pattern in XBRL_PATTERNS):
        return True
    return bool(HTML_PATTERNS[0].search(sample) and INLINE_XBRL_NAMESPACE.search(sample))


def detect_file_type(content: Union[bytes, str]) -> FileType:
    if is_pdf(content):
        return FileType.PDF
    if is_xbrl(content):
        return FileType.XBRL
    if is_html(content):
        return FileType.HTML
    return FileType.UNKNOWN
