"""Domain Services.

Generic consumers of element trees built on the visitor protocol: copying,
PII redaction and change detection.
"""

from clinical_model.domain.services.change_detector import ChangeDetector, ValueCollector
from clinical_model.domain.services.copier import CopyingVisitor
from clinical_model.domain.services.redactor import RedactingVisitor, RedactorService

__all__ = [
    "ChangeDetector",
    "CopyingVisitor",
    "RedactingVisitor",
    "RedactorService",
    "ValueCollector",
]
