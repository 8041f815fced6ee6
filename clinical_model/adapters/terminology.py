"""In-memory terminology adapter.

Implements TerminologyPort using the code lists carried by the binding
markers of the schema, optionally extended with value sets registered at
runtime (for example loaded from a JSON file exported by a terminology
server).

Rules:
    - Code, Uri and String values must be one of the value set's codes
    - Coding and Quantity values must carry the binding's system and a member code
    - A CodeableConcept must contain at least one Coding that passes
    - An element whose only content is a data-absent-reason extension passes
    - With ``settings.extended_codeable_concept_validation`` off, only
      CodeableConcepts that carry a fully specified coding are checked
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from clinical_model.domain.datatypes import CodeableConcept, Coding, Quantity
from clinical_model.domain.model_support import Binding
from clinical_model.domain.ports import Result, TerminologyPort
from clinical_model.domain.primitives import String, Uri
from clinical_model.infrastructure.settings import settings

logger = logging.getLogger(__name__)

DATA_ABSENT_REASON_EXTENSION_URL = "http://hl7.org/fhir/StructureDefinition/data-absent-reason"


def _value(primitive: Any) -> Optional[str]:
    return primitive.value if primitive is not None else None


def has_data_absent_reason_extension(element: Any) -> bool:
    return any(extension.url == DATA_ABSENT_REASON_EXTENSION_URL for extension in element.extension)


def has_only_data_absent_reason_extension(element: Any) -> bool:
    """True if an element carries a data-absent-reason extension instead of a code."""
    if isinstance(element, CodeableConcept):
        return any(has_only_data_absent_reason_extension(coding) for coding in element.coding)
    if not has_data_absent_reason_extension(element):
        return False
    if isinstance(element, (Coding, Quantity)):
        return element.system is None and element.code is None
    if isinstance(element, (String, Uri)):
        return element.value is None
    return False


class InMemoryTerminologyService(TerminologyPort):
    """Value-set membership from code lists held in memory.

    Parameters:
        value_sets: Optional mapping of value-set URL to ``(system, codes)``;
            these take precedence over the codes carried by a binding
    """

    def __init__(self, value_sets: Optional[Dict[str, Tuple[Optional[str], Iterable[str]]]] = None):
        self._value_sets: Dict[str, Tuple[Optional[str], frozenset]] = {}
        for url, (system, codes) in (value_sets or {}).items():
            self.register_value_set(url, codes, system)

    def register_value_set(self, url: str, codes: Iterable[str], system: Optional[str] = None) -> None:
        """Register (or replace) the content of a value set."""
        self._value_sets[url] = (system, frozenset(codes))
        logger.debug(f"Registered value set {url}")

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "InMemoryTerminologyService":
        """Load value sets from a JSON file.

        The file maps value-set URLs to ``{"system": ..., "codes": [...]}``.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file is not valid JSON
        """
        value_set_file = Path(path)
        if not value_set_file.exists():
            raise FileNotFoundError(f"Value set file not found: {path}")
        try:
            with open(value_set_file, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in value set file: {str(e)}") from e
        return cls({url: (entry.get("system"), entry.get("codes", [])) for url, entry in data.items()})

    def _expansion(self, binding: Binding) -> Tuple[Optional[str], frozenset]:
        if binding.value_set in self._value_sets:
            return self._value_sets[binding.value_set]
        return binding.system, frozenset(binding.codes)

    def validate_code(self, element: Any, element_name: str, binding: Binding) -> Result[Any]:
        if has_only_data_absent_reason_extension(element):
            return Result.success_result(element)
        if isinstance(element, CodeableConcept):
            return self._check_codeable_concept(element, element_name, binding)
        if isinstance(element, (Coding, Quantity)):
            return self._check_coding(element, element_name, binding)
        if isinstance(element, (String, Uri)):
            return self._check_code(element.value, element_name, binding)
        return Result.success_result(element)

    def _check_codeable_concept(self, concept: CodeableConcept, element_name: str, binding: Binding) -> Result[Any]:
        system, codes = self._expansion(binding)
        if settings.extended_codeable_concept_validation:
            if any(self._check_coding(coding, element_name, binding).success for coding in concept.coding):
                return Result.success_result(concept)
        else:
            complete = [c for c in concept.coding if c.system is not None and c.code is not None]
            if not codes or not complete or any(
                _value(c.system) == system and _value(c.code) in codes for c in complete
            ):
                return Result.success_result(concept)
        return Result.failure_result(
            f"Element '{element_name}': does not contain a Coding element with a valid system and code "
            f"combination for value set: '{binding.value_set}'",
            error_details={"value_set": binding.value_set},
        )

    def _check_coding(self, coding: Any, element_name: str, binding: Binding) -> Result[Any]:
        if not settings.extended_codeable_concept_validation:
            return Result.success_result(coding)
        system, _ = self._expansion(binding)
        coding_system = _value(coding.system)
        coding_code = _value(coding.code)
        if coding_system is None or coding_code is None:
            return Result.failure_result(
                f"Element '{element_name}': does not contain a valid system and code combination "
                f"for value set: '{binding.value_set}'",
                error_details={"value_set": binding.value_set},
            )
        if system is not None and coding_system != system:
            return Result.failure_result(
                f"Element '{element_name}': '{coding_system}' is not a valid system for value set "
                f"'{binding.value_set}'",
                error_details={"value_set": binding.value_set, "system": coding_system, "code": coding_code},
            )
        return self._check_code(coding_code, element_name, binding)

    def _check_code(self, code: Optional[str], element_name: str, binding: Binding) -> Result[Any]:
        if not settings.extended_codeable_concept_validation:
            return Result.success_result(code)
        _, codes = self._expansion(binding)
        if code is None:
            return Result.failure_result(
                f"Element '{element_name}': does not contain a valid code for value set '{binding.value_set}'",
                error_details={"value_set": binding.value_set},
            )
        if codes and code not in codes:
            return Result.failure_result(
                f"Element '{element_name}': '{code}' is not a valid code for value set '{binding.value_set}'",
                error_details={"value_set": binding.value_set, "code": code},
            )
        return Result.success_result(code)
