"""
ID document text extraction and Philippine ID heuristics.
"""
from core.idcheck.extract import (
    ExtractedDocument,
    ExtractionError,
    UnsupportedDocumentError,
    extract_text,
)
from core.idcheck.philippine_id import (
    PHILIPPINE_ID_TYPES,
    IDValidationResult,
    detect_id_type_from_filename,
    validate_philippine_id,
)

__all__ = [
    "ExtractedDocument",
    "ExtractionError",
    "UnsupportedDocumentError",
    "extract_text",
    "PHILIPPINE_ID_TYPES",
    "IDValidationResult",
    "detect_id_type_from_filename",
    "validate_philippine_id",
]
