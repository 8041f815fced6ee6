"""PII Redaction of Element Trees.

RedactorService holds the masking rules for individual values; the
RedactingVisitor applies them to a resource by copying it through the
visitor protocol and rewriting raw values at known element paths.

Security Impact:
    - The original tree is never modified; redaction yields a new tree
    - Birth dates are removed, not masked
    - Narrative XHTML is dropped whole because it repeats structured PII
    - Only paths and counts are logged, never the values themselves
"""

import logging
import re
from fnmatch import fnmatchcase
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from clinical_model.domain.model_support import get_type_name
from clinical_model.domain.services.copier import CopyingVisitor

logger = logging.getLogger(__name__)


class RedactorService:
    """Masks personally identifiable values.

    Every method takes a single raw value and returns the replacement; None
    means the value is removed from the copy.
    """

    SSN_PATTERN = re.compile(r'\b\d{3}-?\d{2}-?\d{4}\b')
    PHONE_PATTERN = re.compile(
        r'\b(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b'
    )
    EMAIL_PATTERN = re.compile(
        r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b'
    )

    SSN_MASK = "***-**-****"
    PHONE_MASK = "***-***-****"
    EMAIL_MASK = "***@***.***"
    NAME_MASK = "[REDACTED]"
    ADDRESS_MASK = "[REDACTED]"

    @staticmethod
    def redact_ssn(value: Optional[str]) -> Optional[str]:
        """Redact Social Security Number.

        Security Impact: Masks SSN to prevent identity theft. Identifier values
        that don't look like an SSN (MRNs, for example) are kept.

        Parameters:
            value: Identifier value to redact

        Returns:
            SSN mask if the value is an SSN, the value otherwise
        """
        if not value:
            return None
        cleaned = re.sub(r'[-\s]', '', value)
        if cleaned.isdigit() and len(cleaned) == 9:
            return RedactorService.SSN_MASK
        if RedactorService.SSN_PATTERN.search(value):
            return RedactorService.SSN_MASK
        return value

    @staticmethod
    def redact_phone(value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        if RedactorService.PHONE_PATTERN.search(value):
            return RedactorService.PHONE_MASK
        return value

    @staticmethod
    def redact_email(value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        if RedactorService.EMAIL_PATTERN.search(value):
            return RedactorService.EMAIL_MASK
        return value

    @staticmethod
    def redact_telecom(value: Optional[str]) -> Optional[str]:
        """Redact a ContactPoint value, whatever its system.

        Values that are neither a phone number nor an email address (pager
        numbers, URLs) are masked as well.
        """
        if not value:
            return None
        if RedactorService.EMAIL_PATTERN.search(value):
            return RedactorService.EMAIL_MASK
        return RedactorService.PHONE_MASK

    @staticmethod
    def redact_name(value: Optional[str]) -> Optional[str]:
        """Redact a person name part.

        Security Impact: Masks names to prevent patient identification.
        Only called for elements known to hold names, so no heuristic applies.
        """
        if not value or not value.strip():
            return None
        return RedactorService.NAME_MASK

    @staticmethod
    def redact_address(value: Optional[str]) -> Optional[str]:
        """Redact street address.

        Security Impact: Masks address lines to prevent location-based
        identification. Lines without digits ("Apartment B") are kept.
        """
        if not value:
            return None
        value_str = value.strip()
        if value_str and any(char.isdigit() for char in value_str):
            return RedactorService.ADDRESS_MASK
        return value

    @staticmethod
    def redact_date_of_birth(value: Any) -> None:
        """Redact date of birth by removing it."""
        return None

    @staticmethod
    def redact_zip_code(value: Optional[str]) -> Optional[str]:
        """Partially redact ZIP code (keep first 2 digits for analytics).

        Parameters:
            value: ZIP code string to redact

        Returns:
            Partially redacted ZIP (e.g., "12***"), or the value if it is not a ZIP code
        """
        if not value:
            return None
        value_str = value.strip()
        cleaned = value_str.replace("-", "")
        if cleaned.isdigit() and len(cleaned) >= 5:
            return value_str[:2] + "***"
        return value

    @staticmethod
    def redact_unstructured_text(value: Optional[str]) -> Optional[str]:
        """Redact structured PII (SSN, phone, email) embedded in free text.

        Security Impact: Scans clinical notes for PII patterns and replaces
        each occurrence in place, preserving the rest of the text.
        """
        if not value:
            return None
        text = RedactorService.SSN_PATTERN.sub(RedactorService.SSN_MASK, value)
        text = RedactorService.PHONE_PATTERN.sub(RedactorService.PHONE_MASK, text)
        return RedactorService.EMAIL_PATTERN.sub(RedactorService.EMAIL_MASK, text)


# Element-path patterns (fnmatch syntax, resource relative) and the rule applied
# to the primitive values found there.
DEFAULT_RULES: Tuple[Tuple[str, Callable[[Any], Any]], ...] = (
    ("*.name.text", RedactorService.redact_name),
    ("*.name.family", RedactorService.redact_name),
    ("*.name.given", RedactorService.redact_name),
    ("*.telecom.value", RedactorService.redact_telecom),
    ("*.address.text", RedactorService.redact_address),
    ("*.address.line", RedactorService.redact_address),
    ("*.address.postalCode", RedactorService.redact_zip_code),
    ("*.identifier.value", RedactorService.redact_ssn),
    ("*.birthDate", RedactorService.redact_date_of_birth),
    ("*.note.text", RedactorService.redact_unstructured_text),
)

DEFAULT_PRUNED_TYPES = ("Narrative",)


class RedactingVisitor(CopyingVisitor):
    """Copies a tree with PII values masked or removed.

    Parameters:
        rules: ``(element_path_pattern, redact)`` pairs; the first matching
            pattern wins. Defaults to ``DEFAULT_RULES``.
        pruned_types: Type names whose subtrees are left out of the copy

    Example:
        ```python
        redactor = RedactingVisitor()
        patient.accept(redactor)
        safe_patient = redactor.result
        ```
    """

    def __init__(
        self,
        rules: Optional[Sequence[Tuple[str, Callable[[Any], Any]]]] = None,
        pruned_types: Sequence[str] = DEFAULT_PRUNED_TYPES,
    ):
        super().__init__()
        self._rules = tuple(DEFAULT_RULES if rules is None else rules)
        self._pruned_types = frozenset(pruned_types)
        self._rule_cache: Dict[str, Optional[Callable[[Any], Any]]] = {}
        self.redacted_paths: List[str] = []

    def _rule_for(self, element_path: str) -> Optional[Callable[[Any], Any]]:
        if element_path not in self._rule_cache:
            self._rule_cache[element_path] = next(
                (redact for pattern, redact in self._rules if fnmatchcase(element_path, pattern)), None
            )
        return self._rule_cache[element_path]

    def pre_visit(self, visitable: Any) -> bool:
        return get_type_name(type(visitable)) not in self._pruned_types

    def copy_value(self, path: str, element_path: str, element_name: str, value: Any) -> Any:
        redact = self._rule_for(element_path)
        if redact is None:
            return value
        redacted = redact(value)
        if redacted != value:
            self.redacted_paths.append(path)
        return redacted

    def visit_end(self, element_name: str, element_index: int, visitable: Any) -> None:
        super().visit_end(element_name, element_index, visitable)
        if not self._frames:
            logger.info(
                f"Redacted {len(self.redacted_paths)} values from {get_type_name(type(visitable))}",
                extra={"resource_type": get_type_name(type(visitable))},
            )
