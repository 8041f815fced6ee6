"""Validation Support - Structural Invariant Checks.

A stateless catalogue of checks that every builder runs inside ``validate()``.
Checks are fail-fast: the first violated invariant raises and construction is
aborted, nothing is accumulated.

``validate_elements`` drives the catalogue from a type's field table, in
schema declaration order (supertype fields first):

    required singular      -> require_non_null
    repeating              -> check_list / check_non_empty_list
    choice                 -> choice_element / require_choice_element
    singular element       -> check_type
    Reference              -> check_reference_type
    required binding       -> check_value_set_binding

Type-specific invariants (``require_value_or_children`` for elements, the
lexical checks of primitive types, contained-resource rules) run afterwards
from each type's ``validate_invariants``.

Security Impact:
    - Error messages name elements and types, never primitive values
"""

import logging
import re
from typing import Any, Iterable, Optional, Sequence

from clinical_model.domain.enums import BindingStrength
from clinical_model.domain.exceptions import (
    ConstraintViolation,
    EmptyRequiredList,
    InvalidChoiceType,
    InvalidElementType,
    InvalidPrimitiveValue,
    InvalidReferenceTarget,
    MissingRequiredChoice,
    MissingRequiredField,
    NullElementInList,
    UnboundedCodedValue,
    VacuousElement,
)
from clinical_model.domain.model_support import (
    Binding,
    ElementInfo,
    get_element_infos,
    get_type_name,
    is_resource_type,
)
from clinical_model.domain.ports import TerminologyPort
from clinical_model.infrastructure.settings import settings

logger = logging.getLogger(__name__)

MIN_STRING_LENGTH = 1
MAX_STRING_LENGTH = 1048576  # 1024 * 1024 = 1MB
MAX_ID_LENGTH = 64

# Control characters below 32 except tab, line feed and carriage return.
UNSUPPORTED_CONTROL_CHARS = frozenset(chr(i) for i in range(32) if i not in (9, 10, 13))
STRING_WHITESPACE = frozenset(" \t\r\n")
# No-break spaces count as content, not whitespace.
NON_BREAKING_SPACES = frozenset("\u00a0\u2007\u202f")

ID_PATTERN = re.compile(r"[A-Za-z0-9\-.]{1,64}")
REFERENCE_PATTERN = re.compile(
    r"(?P<type>[A-Z][A-Za-z]*)/(?P<id>[A-Za-z0-9\-.]{1,64})(/_history/[A-Za-z0-9\-.]{1,64})?"
)

# Allowed-target wildcard: Reference(Any)
ANY_RESOURCE = "Resource"

_terminology_service: Optional[TerminologyPort] = None


def set_terminology_service(service: Optional[TerminologyPort]) -> None:
    """Install the terminology collaborator used by check_value_set_binding.

    Parameters:
        service: TerminologyPort implementation, or None to restore the default
    """
    global _terminology_service
    _terminology_service = service


def get_terminology_service() -> TerminologyPort:
    """Return the installed terminology collaborator (lazy-loaded default)."""
    global _terminology_service
    if _terminology_service is None:
        from clinical_model.adapters.terminology import InMemoryTerminologyService
        _terminology_service = InMemoryTerminologyService()
        logger.debug("Initialized default in-memory terminology service")
    return _terminology_service


def _type_names(types: Iterable[type]) -> list:
    return [get_type_name(t) for t in types]


# ============================================================================
# Cardinality
# ============================================================================

def require_non_null(value: Any, element_name: str) -> Any:
    """Raise MissingRequiredField if a required singular element is absent."""
    if value is None:
        raise MissingRequiredField(element_name)
    return value


def check_list(values: Sequence[Any], element_name: str, element_type: Optional[type] = None) -> Sequence[Any]:
    """Check a repeating element: it may be empty but must not contain nulls.

    Parameters:
        values: The list (tuple) of elements
        element_name: Name of the element, for error messages
        element_type: Declared element type; entries must be instances of it

    Raises:
        NullElementInList: If an entry is None
        InvalidElementType: If an entry is not an instance of ``element_type``
    """
    for index, value in enumerate(values):
        if value is None:
            raise NullElementInList(element_name, index)
        if element_type is not None and not isinstance(value, element_type):
            raise InvalidElementType(
                element_name, type(value).__name__, get_type_name(element_type), repeating=True
            )
    return values


def check_non_empty_list(values: Sequence[Any], element_name: str, element_type: Optional[type] = None) -> Sequence[Any]:
    """Check a required repeating element: at least one entry, no nulls."""
    if not values:
        raise EmptyRequiredList(element_name)
    return check_list(values, element_name, element_type)


def prohibited(value: Any, element_name: str) -> None:
    """Raise ConstraintViolation if an element a profile prohibits is present."""
    if value is None or (isinstance(value, (tuple, list)) and not value):
        return
    raise ConstraintViolation("prohibited", f"Element: '{element_name}' is prohibited.", element_name)


def check_type(value: Any, element_name: str, element_type: Any) -> Any:
    """Check that a singular element holds an instance of its declared type.

    Subclasses are accepted (a Markdown is a String); only choice elements
    demand an exact type.
    """
    if value is not None and isinstance(element_type, type) and not isinstance(value, element_type):
        raise InvalidElementType(element_name, type(value).__name__, get_type_name(element_type))
    return value


# ============================================================================
# Choice elements
# ============================================================================

def choice_element(value: Any, element_name: str, *choice_types: type) -> Any:
    """Check an optional choice element.

    The runtime type must be exactly one of ``choice_types``; there is no
    subtype or supertype matching because a choice is a closed union.

    Raises:
        InvalidChoiceType: If the value's type is not one of the allowed types
    """
    if value is not None and type(value) not in choice_types:
        raise InvalidChoiceType(element_name, get_type_name(type(value)), _type_names(choice_types))
    return value


def require_choice_element(value: Any, element_name: str, *choice_types: type) -> Any:
    """Check a required choice element.

    Raises:
        MissingRequiredChoice: If the value is absent
        InvalidChoiceType: If the value's type is not one of the allowed types
    """
    if value is None:
        raise MissingRequiredChoice(element_name, _type_names(choice_types))
    return choice_element(value, element_name, *choice_types)


# ============================================================================
# References
# ============================================================================

def has_scheme(literal: str) -> bool:
    """True if ``literal`` has a URI scheme (a prefix followed by ':') and a non-empty value."""
    index = literal.find(":")
    return index > 0 and len(literal) > index + 1


def is_reference(value: Any) -> bool:
    return value is not None and get_type_name(type(value)) == "Reference"


def get_reference_literal(reference: Any) -> Optional[str]:
    return reference.reference.value if reference.reference is not None else None


def get_reference_type(reference: Any) -> Optional[str]:
    return reference.type.value if reference.type is not None else None


def resolve_reference_type(literal: Optional[str], element_name: str) -> Optional[str]:
    """Return the resource type named by a relative reference literal.

    Local (``#id``) and absolute (``scheme:...``) literals are not resolved
    here and yield None.

    Raises:
        InvalidReferenceTarget: If a relative literal names no resource type
    """
    if literal is None or literal.startswith("#") or has_scheme(literal):
        return None

    index = literal.find("?")
    if index != -1:
        # conditional reference
        return literal[:index]

    match = REFERENCE_PATTERN.fullmatch(literal)
    if match is None:
        raise InvalidReferenceTarget(
            f"Invalid reference value or resource type not found in reference value for element: '{element_name}'",
            element_name,
        )
    return match.group("type")


def _check_allowed(resource_type: str, element_name: str, reference_types: Sequence[str], source: str) -> None:
    if not is_resource_type(resource_type):
        raise InvalidReferenceTarget(
            f"Resource type found in {source}: '{resource_type}' for element: '{element_name}' "
            f"must be a valid resource type name",
            element_name, resource_type, reference_types,
        )
    if ANY_RESOURCE not in reference_types and resource_type not in reference_types:
        raise InvalidReferenceTarget(
            f"Resource type found in {source}: '{resource_type}' for element: '{element_name}' "
            f"must be one of: {list(reference_types)}",
            element_name, resource_type, reference_types,
        )


def check_reference_type(reference: Any, element_name: str, *reference_types: str) -> None:
    """Check that a Reference (or list of References) targets an allowed resource type.

    The policy is to validate what is knowable and trust what is not: the
    resource type is taken from a relative literal (``Patient/123``,
    ``Patient?identifier=...``) and from an explicit ``Reference.type``; local
    ``#id`` literals are resolved by the owning DomainResource and absolute
    URLs are never dereferenced.

    Raises:
        InvalidReferenceTarget: If a resolved type is unknown, not allowed, or
            disagrees with ``Reference.type``
    """
    if reference is None or not settings.check_reference_types:
        return
    if isinstance(reference, (tuple, list)):
        for item in reference:
            check_reference_type(item, element_name, *reference_types)
        return
    if not is_reference(reference):
        # a choice element holding a non-Reference member
        return

    resource_type = resolve_reference_type(get_reference_literal(reference), element_name)
    if resource_type is not None:
        _check_allowed(resource_type, element_name, reference_types, "reference value")

    reference_type = get_reference_type(reference)
    if reference_type is not None:
        _check_allowed(reference_type, element_name, reference_types, "Reference.type")
        if resource_type is not None and resource_type != reference_type:
            raise InvalidReferenceTarget(
                f"Resource type found in reference value: '{resource_type}' for element: '{element_name}' "
                f"does not match Reference.type: {reference_type}",
                element_name, resource_type, reference_types,
            )


def check_local_reference_type(reference: Any, element_name: str, target: Any, reference_types: Sequence[str]) -> None:
    """Check the runtime type of the contained resource a ``#id`` reference resolves to."""
    if not settings.check_reference_types:
        return
    resource_type = get_type_name(type(target))
    if ANY_RESOURCE not in reference_types and resource_type not in reference_types:
        raise InvalidReferenceTarget(
            f"Contained resource type: '{resource_type}' referenced by element: '{element_name}' "
            f"must be one of: {list(reference_types)}",
            element_name, resource_type, reference_types,
        )


# ============================================================================
# Value-set bindings
# ============================================================================

def check_value_set_binding(element: Any, element_name: str, binding: Binding) -> None:
    """Check a coded element (or list of them) against a value-set binding.

    Only REQUIRED bindings are enforced. Membership is decided by the
    installed terminology collaborator.

    Raises:
        UnboundedCodedValue: If the collaborator rejects the coded value
    """
    if element is None or binding.strength is not BindingStrength.REQUIRED:
        return
    if isinstance(element, (tuple, list)):
        for item in element:
            check_value_set_binding(item, element_name, binding)
        return

    result = get_terminology_service().validate_code(element, element_name, binding)
    if not result.success:
        details = result.error_details or {}
        raise UnboundedCodedValue(result.error, element_name, binding.value_set, details.get("code"))


# ============================================================================
# Element content
# ============================================================================

def require_value_or_children(element: Any) -> None:
    """ele-1: reject an element that has neither a value nor any children.

    An element whose only content is an extension is accepted.
    """
    if not element.has_value() and not element.has_children():
        raise VacuousElement(get_type_name(type(element)))


def check_max_length(value: Optional[str], element_name: str = "value") -> None:
    if value is not None and len(value) > MAX_STRING_LENGTH:
        raise InvalidPrimitiveValue(
            f"String value length: {len(value)} is greater than maximum allowed length: {MAX_STRING_LENGTH}",
            element_name,
        )


def is_whitespace(ch: str) -> bool:
    return ch.isspace() and ch not in NON_BREAKING_SPACES


def _check_control_char(ch: str, element_name: str) -> None:
    if settings.check_control_chars and ch in UNSUPPORTED_CONTROL_CHARS:
        raise InvalidPrimitiveValue(
            "String value contains unsupported control characters: "
            "decimal range=[0000-0008,0011,0012,0014-0031]",
            element_name,
        )


def check_string(value: Optional[str], element_name: str = "value") -> None:
    """A sequence of Unicode characters matching ``[ \\r\\n\\t\\S]+``."""
    if value is None:
        return
    check_max_length(value, element_name)
    count = 0
    for ch in value:
        if not is_whitespace(ch):
            _check_control_char(ch, element_name)
            count += 1
        elif ch not in STRING_WHITESPACE:
            raise InvalidPrimitiveValue(
                "String value is not valid with respect to pattern: [\\r\\n\\t\\S]+", element_name
            )
    if count < MIN_STRING_LENGTH:
        raise InvalidPrimitiveValue(
            f"Trimmed String value length: {count} is less than minimum required length: {MIN_STRING_LENGTH}",
            element_name,
        )


def check_code(value: Optional[str], element_name: str = "value") -> None:
    """Non-empty, no leading/trailing whitespace, single spaces only (``[^\\s]+(\\s[^\\s]+)*``)."""
    if value is None:
        return
    if not value or is_whitespace(value[0]):
        raise InvalidPrimitiveValue("Code value must begin with a non-whitespace character", element_name)
    if is_whitespace(value[-1]):
        raise InvalidPrimitiveValue("Code value must end with a non-whitespace character", element_name)
    previous_is_space = False
    for ch in value:
        if is_whitespace(ch):
            if ch != " ":
                raise InvalidPrimitiveValue(
                    "Code value must not contain whitespace other than a single space", element_name
                )
            if previous_is_space:
                raise InvalidPrimitiveValue("Code value must not contain consecutive spaces", element_name)
            previous_is_space = True
        else:
            _check_control_char(ch, element_name)
            previous_is_space = False


def check_id(value: Optional[str], element_name: str = "id") -> None:
    """Letters, numerals, '-' and '.', at most 64 characters."""
    if value is None:
        return
    if not value:
        raise InvalidPrimitiveValue("Id value must not be empty", element_name)
    if len(value) > MAX_ID_LENGTH:
        raise InvalidPrimitiveValue(
            f"Id value length: {len(value)} is greater than maximum allowed length: {MAX_ID_LENGTH}",
            element_name,
        )
    if not ID_PATTERN.fullmatch(value):
        raise InvalidPrimitiveValue("Id value contains an invalid character", element_name)


def check_uri(value: Optional[str], element_name: str = "value") -> None:
    """A URI: no whitespace (``\\S*``)."""
    if value is None:
        return
    if len(value) > MAX_STRING_LENGTH:
        raise InvalidPrimitiveValue(
            f"Uri value length: {len(value)} is greater than maximum allowed length: {MAX_STRING_LENGTH}",
            element_name,
        )
    for ch in value:
        _check_control_char(ch, element_name)
        if is_whitespace(ch):
            raise InvalidPrimitiveValue("Uri value must not contain whitespace", element_name)


# ============================================================================
# Field-table driven validation
# ============================================================================

def validate_element(instance: Any, info: ElementInfo) -> None:
    """Run the structural checks that apply to one declared field."""
    value = getattr(instance, info.name)
    name = info.element_name

    if info.repeating:
        if info.required:
            check_non_empty_list(value, name, info.type)
        else:
            check_list(value, name, info.type)
    elif info.is_choice:
        if info.required:
            require_choice_element(value, name, *info.choice_types)
        else:
            choice_element(value, name, *info.choice_types)
    else:
        if info.required:
            require_non_null(value, name)
        check_type(value, name, info.type)

    if info.is_reference:
        check_reference_type(value, name, *info.reference_types)
    if info.binding is not None:
        check_value_set_binding(value, name, info.binding)


def validate_elements(instance: Any) -> None:
    """Validate every declared field of an instance, in declaration order."""
    for info in get_element_infos(type(instance)):
        validate_element(instance, info)
