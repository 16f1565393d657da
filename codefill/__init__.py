"""
codefill: find verification-code fields on a page and fill them from email.
"""

from codefill.code_extractor import ExtractionContext, extract, extract_verification_code
from codefill.field_classifier import CandidateField, FieldKind, classify
from codefill.page_snapshot import ElementSnapshot, PageSnapshot

__all__ = [
    "CandidateField",
    "ElementSnapshot",
    "ExtractionContext",
    "FieldKind",
    "PageSnapshot",
    "classify",
    "extract",
    "extract_verification_code",
]
