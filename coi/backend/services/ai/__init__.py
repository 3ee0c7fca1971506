"""
AI package for certificate extraction.

This package provides modular AI functionality split into:
- clients: Gemini and Groq provider clients
- backends: extraction backends with primary/fallback model tiers
- prompts: the ACORD 25 extraction prompt
- parsing: model output to certificate records
- validation: value normalization (limits, phone numbers, blanks)
"""

from .validation import blank_to_none, normalize_phone, parse_limit_value

__all__ = ["blank_to_none", "normalize_phone", "parse_limit_value"]
