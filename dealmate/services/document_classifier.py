"""Filename and MIME based document classification."""

from typing import List, Tuple

# (classification, name needles, type needles), checked in order
CLASSIFICATION_ORDER: List[Tuple[str, Tuple[str, ...], Tuple[str, ...]]] = [
    ("cim", ("cim", "confidential information memorandum"), ()),
    ("financial", ("financial", "model", "projection"), ("sheet", "excel", "csv")),
    ("audio", (), ("audio", "mp3", "wav")),
    ("legal", ("legal", "contract", "agreement"), ()),
    ("document", (), ("pdf", "word", "docx")),
]


def classify_document(file_name: str, file_type: str) -> str:
    """Return one of cim, financial, audio, legal, document or other."""
    name = (file_name or "").lower()
    mime = (file_type or "").lower()

    for classification, name_needles, type_needles in CLASSIFICATION_ORDER:
        if any(needle in name for needle in name_needles) or any(needle in mime for needle in type_needles):
            return classification
    return "other"
