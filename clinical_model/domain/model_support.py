"""Model Support - Declarative Field Table and Type Registry.

Every element and resource type declares its fields as pydantic model fields
annotated with the markers defined here. The markers carry the schema facts a
code generator would otherwise stamp out per type: cardinality, the allowed
types of a choice field, the allowed targets of a Reference, value-set
bindings and whether a field is a raw attribute rather than a child element.

``get_element_infos`` turns those annotations into an ordered, cached tuple of
``ElementInfo`` records that builders, validation and visitors all share, so
no per-type code is needed anywhere else.

Architecture:
    - Pure domain module: depends only on typing and pydantic internals
    - Type names (not classes) are used inside markers so that modules can
      reference types that are defined later in the import graph
"""

import re
import types
from dataclasses import dataclass
from functools import lru_cache
from typing import Annotated, Any, Dict, Optional, Tuple, TypeVar, Union, get_args, get_origin

from pydantic import SkipValidation

from clinical_model.domain.enums import BindingStrength, ResourceType

T = TypeVar("T")

# Element-valued fields hold nodes that were validated by their own builder.
Single = Annotated[Optional[T], SkipValidation()]
Repeating = Annotated[Tuple[T, ...], SkipValidation()]


class Required:
    """Marks a field as required (1..1 or 1..*)."""

    def __repr__(self) -> str:
        return "Required()"


class Attribute:
    """Marks a raw (non-element) field such as ``id``, ``url`` or a primitive ``value``."""

    def __repr__(self) -> str:
        return "Attribute()"


class Choice:
    """Declares the closed set of concrete types a choice field may hold.

    Parameters:
        *type_names: Names of the allowed types, in schema order
    """

    def __init__(self, *type_names: str):
        if not type_names:
            raise ValueError("A choice element needs at least one allowed type")
        self.type_names = tuple(type_names)

    @property
    def types(self) -> tuple:
        return tuple(get_model_class(name) for name in self.type_names)

    def __repr__(self) -> str:
        return f"Choice({', '.join(self.type_names)})"


class ReferenceTarget:
    """Declares the resource types a Reference field may point at."""

    def __init__(self, *resource_types: str):
        self.resource_types = tuple(resource_types)

    def __repr__(self) -> str:
        return f"ReferenceTarget({', '.join(self.resource_types)})"


@dataclass(frozen=True)
class Binding:
    """Value-set binding of a coded field.

    Attributes:
        strength: Binding strength; only REQUIRED is enforced
        value_set: Canonical URL of the bound value set
        system: Code system the codes are drawn from
        codes: Codes of the value set, when it is enumerable
    """
    strength: BindingStrength
    value_set: str
    system: Optional[str] = None
    codes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ElementInfo:
    """Schema facts about one declared field of a model type.

    Attributes:
        name: Python attribute name (snake_case)
        element_name: Schema element name (camelCase)
        type: Declared element type; for choice fields the common base type
        declaring_type: Class whose body declares the field
        required: True for 1..1 and 1..* fields
        repeating: True for list-valued fields
        choice_type_names: Allowed types of a choice field (empty otherwise)
        reference_types: Allowed Reference targets (empty for non-references)
        binding: Value-set binding, if any
        attribute: True for raw attribute fields
    """
    name: str
    element_name: str
    type: Any
    declaring_type: type
    required: bool = False
    repeating: bool = False
    choice_type_names: Tuple[str, ...] = ()
    reference_types: Tuple[str, ...] = ()
    binding: Optional[Binding] = None
    attribute: bool = False

    @property
    def is_choice(self) -> bool:
        return bool(self.choice_type_names)

    @property
    def choice_types(self) -> tuple:
        return tuple(get_model_class(name) for name in self.choice_type_names)

    @property
    def is_reference(self) -> bool:
        return bool(self.reference_types)


# ============================================================================
# Type registry
# ============================================================================

_MODEL_CLASSES: Dict[str, type] = {}


def register_model_class(model_class: type) -> None:
    """Register an element or resource class under its type name."""
    _MODEL_CLASSES[get_type_name(model_class)] = model_class


def get_model_class(type_name: str) -> type:
    """Look up a registered model class by type name.

    Raises:
        KeyError: If no class with that name has been defined
    """
    try:
        return _MODEL_CLASSES[type_name]
    except KeyError:
        raise KeyError(f"Unknown model type: {type_name}") from None


def get_type_name(model_class: type) -> str:
    return model_class.__dict__.get("__type_name__", model_class.__name__)


def is_resource_type(type_name: Optional[str]) -> bool:
    """Return True if ``type_name`` names a resource type of the schema."""
    return type_name is not None and ResourceType.is_valid(type_name)


def is_abstract(model_class: type) -> bool:
    return bool(model_class.__dict__.get("__abstract__", False))


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def snake_case(name: str) -> str:
    """Convert a type or element name to snake_case (``DateTime`` -> ``date_time``)."""
    return _CAMEL_BOUNDARY.sub("_", name.replace(".", "")).lower()


def get_choice_element_name(element_name: str, type_name: str) -> str:
    """Serialized name of a choice element (``deceased`` + ``Boolean``)."""
    return element_name + type_name[0].upper() + type_name[1:]


# ============================================================================
# Field table
# ============================================================================

def _unwrap(annotation: Any) -> Tuple[Any, bool]:
    """Return the element type of an annotation and whether it repeats."""
    origin = get_origin(annotation)
    if origin is tuple:
        return get_args(annotation)[0], True
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        return (members[0] if len(members) == 1 else Union[tuple(members)]), False
    return annotation, False


def _declaring_type(model_class: type, name: str) -> type:
    for klass in reversed(model_class.__mro__):
        if name in getattr(klass, "model_fields", {}):
            return klass
    return model_class


@lru_cache(maxsize=None)
def get_element_infos(model_class: type) -> Tuple[ElementInfo, ...]:
    """Return the field table of a model type in schema declaration order.

    Supertype fields come first, followed by the fields the type itself
    declares, which is the order pydantic keeps in ``model_fields``.
    """
    infos = []
    for name, field in model_class.model_fields.items():
        element_type, repeating = _unwrap(field.annotation)
        info = dict(
            name=name,
            element_name=field.serialization_alias or name,
            type=element_type,
            declaring_type=_declaring_type(model_class, name),
            repeating=repeating,
        )
        for marker in field.metadata:
            if isinstance(marker, Required):
                info["required"] = True
            elif isinstance(marker, Attribute):
                info["attribute"] = True
            elif isinstance(marker, Choice):
                info["choice_type_names"] = marker.type_names
            elif isinstance(marker, ReferenceTarget):
                info["reference_types"] = marker.resource_types
            elif isinstance(marker, Binding):
                info["binding"] = marker
        infos.append(ElementInfo(**info))
    return tuple(infos)


def get_element_info(model_class: type, name: str) -> ElementInfo:
    """Return the ElementInfo of one field, by python name or element name.

    Raises:
        KeyError: If the type declares no such field
    """
    for info in get_element_infos(model_class):
        if name == info.name or name == info.element_name:
            return info
    raise KeyError(f"{get_type_name(model_class)} has no element named '{name}'")
