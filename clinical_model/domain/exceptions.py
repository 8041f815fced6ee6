"""Construction-time error taxonomy for the clinical element model.

Every failure raised while building an element or resource derives from
ModelValidationError. Errors are raised synchronously from ``build()`` or from
a replace-style list setter; the first violated invariant aborts construction,
so there is never a partially valid instance.

Security Impact:
    - Messages name the offending element and the expected vs. actual shape
    - Messages never embed primitive values, which may carry PHI
"""

from typing import Iterable, Optional, Sequence


def _join(type_names: Iterable[str]) -> str:
    return ", ".join(type_names)


class ModelValidationError(ValueError):
    """Base class for structural invariant violations.

    Attributes:
        element_name: Name of the element (field) that failed validation
    """

    def __init__(self, message: str, element_name: Optional[str] = None):
        super().__init__(message)
        self.element_name = element_name


class MissingRequiredField(ModelValidationError):
    """Raised when a required singular field or required element is absent."""

    def __init__(self, element_name: str):
        super().__init__(f"Missing required element: '{element_name}'", element_name)


class MissingRequiredChoice(MissingRequiredField):
    """Raised when a required choice field holds none of its allowed types.

    Attributes:
        allowed_types: Names of the concrete types the choice accepts
    """

    def __init__(self, element_name: str, allowed_types: Sequence[str]):
        ModelValidationError.__init__(
            self,
            f"Missing required choice element: '{element_name}' must be one of: "
            f"[{_join(allowed_types)}]",
            element_name,
        )
        self.allowed_types = tuple(allowed_types)


class InvalidChoiceType(ModelValidationError):
    """Raised when a choice field holds a type outside its closed union.

    Attributes:
        actual_type: Name of the offending runtime type
        allowed_types: Names of the concrete types the choice accepts
    """

    def __init__(self, element_name: str, actual_type: str, allowed_types: Sequence[str]):
        super().__init__(
            f"Invalid type: {actual_type} for choice element: '{element_name}' must be one of: "
            f"[{_join(allowed_types)}]",
            element_name,
        )
        self.actual_type = actual_type
        self.allowed_types = tuple(allowed_types)


class InvalidElementType(ModelValidationError):
    """Raised when a singular or repeating element holds an undeclared type.

    Attributes:
        actual_type: Name of the offending runtime type
        expected_type: Name of the declared element type
    """

    def __init__(self, element_name: str, actual_type: str, expected_type: str, repeating: bool = False):
        kind = "repeating element" if repeating else "element"
        super().__init__(
            f"Invalid type: {actual_type} for {kind}: '{element_name}' must be: {expected_type}",
            element_name,
        )
        self.actual_type = actual_type
        self.expected_type = expected_type


class EmptyRequiredList(ModelValidationError):
    """Raised when a 1..* list is empty."""

    def __init__(self, element_name: str):
        super().__init__(
            f"Missing required element: '{element_name}' must contain at least one item",
            element_name,
        )


class NullElementInList(ModelValidationError):
    """Raised when a repeating element contains a null entry.

    Attributes:
        index: Position of the first null entry
    """

    def __init__(self, element_name: str, index: int):
        super().__init__(
            f"Repeating element: '{element_name}' does not permit null elements",
            element_name,
        )
        self.index = index


class InvalidReferenceTarget(ModelValidationError):
    """Raised when a Reference resolves to a disallowed or unknown resource type.

    Attributes:
        resolved_type: Resource type the reference resolved to (None when the
            literal could not be parsed at all)
        allowed_types: Resource types the element may reference
    """

    def __init__(
        self,
        message: str,
        element_name: str,
        resolved_type: Optional[str] = None,
        allowed_types: Sequence[str] = (),
    ):
        super().__init__(message, element_name)
        self.resolved_type = resolved_type
        self.allowed_types = tuple(allowed_types)


class UnboundedCodedValue(ModelValidationError):
    """Raised when a coded value is outside its required value-set binding.

    Attributes:
        value_set: Canonical URL of the bound value set
        code: The offending code (codes are terminology, not PHI)
    """

    def __init__(self, message: str, element_name: str, value_set: str, code: Optional[str] = None):
        super().__init__(message, element_name)
        self.value_set = value_set
        self.code = code


class VacuousElement(ModelValidationError):
    """Raised when an element has neither a value nor any children (ele-1)."""

    def __init__(self, element_type: str):
        super().__init__(
            f"ele-1: All FHIR elements must have a @value or children: '{element_type}'",
            element_type,
        )


class InvalidPrimitiveValue(ModelValidationError):
    """Raised when a primitive value violates its lexical rules."""


class ConstraintViolation(ModelValidationError):
    """Raised when a type-specific invariant fails.

    Attributes:
        constraint: Key of the failed constraint (for example ``dom-2``)
    """

    def __init__(self, constraint: str, message: str, element_name: Optional[str] = None):
        super().__init__(f"{constraint}: {message}", element_name)
        self.constraint = constraint


class NullCollectionArgument(ModelValidationError, TypeError):
    """Raised when a replace-style list setter receives None instead of a collection."""

    def __init__(self, element_name: str):
        super().__init__(
            f"Replacement collection for '{element_name}' must not be null",
            element_name,
        )
