"""
ACORD 25 Certificate Extraction Backend.

A FastAPI service that extracts structured certificate-of-insurance data
from uploaded PDFs or images using interchangeable AI backends (Gemini, Groq).
"""

__version__ = "1.0.0"
