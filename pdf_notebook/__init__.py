"""
PDF Notebook API

A small backend that turns uploaded PDFs into in-memory text and answers
questions about them through an AI model.

Features:
- PDF text extraction with PyPDF2
- In-memory document store with 24 hour expiry
- OpenRouter chat completions with a mock fallback for local development
- Page citation extraction
- Structured logging and health monitoring
"""

__version__ = "1.0.0"
__description__ = "Upload PDFs and ask questions about them with an AI model"
