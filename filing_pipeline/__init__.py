"""
SEC Filing Pipeline.

This package provides tools for turning SEC filings into structured data:
- Extracting HTML and PDF filings into section trees
- Sizing documents for a model's context window
- Parsing and validating model replies (batch and streaming)
- Error classification, retry and fallback recovery
- Parser monitoring
"""
