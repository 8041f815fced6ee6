"""Element Base Hierarchy - Immutable, Visitable Model Nodes.

All model nodes are frozen pydantic models derived from ``Visitable``:

    Visitable
    ├── Element                  id + extension
    │   ├── Extension            url + value[x]
    │   ├── BackboneElement      + modifierExtension
    │   ├── primitive types      + value
    │   └── complex data types
    └── Resource                 (clinical_model.domain.resource)

Instances are created only through builders and never change afterwards:
lists are tuples of already-immutable nodes, so instances can be shared
across threads. The only mutable state is the memoized hash.

Equality is structural over the declared fields. The hash is computed once
from the same fields and cached with 0 as the "unset" sentinel; a genuine
hash of 0 is simply recomputed on every call. Concurrent first computation
is a benign race: every thread computes the same value.

Architecture:
    - The field table (``model_support.get_element_infos``) drives builders,
      validation and visitor traversal; no per-type code is required
"""

import logging
from typing import Annotated, Any, ClassVar, Optional, Tuple

from pydantic import AliasGenerator, BaseModel, ConfigDict, PrivateAttr
from pydantic.alias_generators import to_camel

from clinical_model.domain import builder as builder_module
from clinical_model.domain.model_support import (
    Attribute,
    Choice,
    Repeating,
    Required,
    Single,
    get_element_infos,
    get_type_name,
    register_model_class,
)
from clinical_model.domain.validation_support import check_uri, require_value_or_children

logger = logging.getLogger(__name__)

# Every data type an extension may carry, in schema order.
EXTENSION_VALUE_TYPES = (
    "Base64Binary", "Boolean", "Canonical", "Code", "Date", "DateTime", "Decimal", "Id",
    "Instant", "Integer", "Markdown", "PositiveInt", "String", "Time", "UnsignedInt", "Uri",
    "Url", "Address", "Annotation", "CodeableConcept", "Coding", "ContactPoint", "HumanName",
    "Identifier", "Meta", "Period", "Quantity", "Reference",
)


class Visitable(BaseModel):
    """Base of every element and resource: immutability, equality, hashing,
    builders and the visitor protocol."""

    model_config = ConfigDict(
        frozen=True,
        strict=True,
        extra="forbid",
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )

    __abstract__ = True

    Builder: ClassVar[type] = builder_module.Builder

    _hash_code: int = PrivateAttr(default=0)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        register_model_class(cls)
        cls.Builder = builder_module.make_builder(cls, cls.__mro__[1].Builder)

    @classmethod
    def builder(cls):
        """Return an empty builder for this type."""
        return cls.Builder()

    def to_builder(self):
        """Return a builder seeded with this instance's values."""
        return type(self).builder().from_instance(self)

    def has_value(self) -> bool:
        return False

    def has_children(self) -> bool:
        """True if any child element (non-attribute field) is present."""
        for info in get_element_infos(type(self)):
            if info.attribute:
                continue
            value = getattr(self, info.name)
            if value is None or (info.repeating and not value):
                continue
            return True
        return False

    def validate_invariants(self) -> None:
        """Type-specific rules run after the field-table checks."""

    def accept(self, visitor, element_name: Optional[str] = None, element_index: int = -1) -> None:
        """Walk this node and its children with ``visitor``.

        Parameters:
            visitor: Visitor implementation
            element_name: Name of this node in its parent (type name for a root)
            element_index: Position in a repeating element, -1 otherwise
        """
        if element_name is None:
            element_name = get_type_name(type(self))
        if visitor.pre_visit(self):
            visitor.visit_start(element_name, element_index, self)
            if visitor.visit(element_name, element_index, self):
                for info in get_element_infos(type(self)):
                    value = getattr(self, info.name)
                    if value is None:
                        continue
                    if info.repeating:
                        _accept_list(value, info.element_name, visitor)
                    elif isinstance(value, Visitable):
                        value.accept(visitor, info.element_name, -1)
                    else:
                        visitor.visit_value(info.element_name, value)
            visitor.visit_end(element_name, element_index, self)
            visitor.post_visit(self)

    def __eq__(self, other: Any) -> bool:
        if self is other:
            return True
        if type(self) is not type(other):
            return NotImplemented
        return all(
            getattr(self, name) == getattr(other, name)
            for name in type(self).model_fields
        )

    def __hash__(self) -> int:
        result = self._hash_code
        if result == 0:
            result = hash((type(self),) + tuple(getattr(self, name) for name in type(self).model_fields))
            self._hash_code = result
        return result


def _accept_list(values: Tuple[Any, ...], element_name: str, visitor) -> None:
    if not values:
        return
    visitor.visit_start_list(element_name, values)
    for index, value in enumerate(values):
        if isinstance(value, Visitable):
            value.accept(visitor, element_name, index)
        else:
            visitor.visit_value(element_name, value)
    visitor.visit_end_list(element_name, values)


class Element(Visitable):
    """Base for all elements: an optional id and a list of extensions."""

    __abstract__ = True

    id: Annotated[Optional[str], Attribute()] = None
    extension: Repeating["Extension"] = ()

    def validate_invariants(self) -> None:
        super().validate_invariants()
        require_value_or_children(self)


class Extension(Element):
    """Open-world escape hatch: a (url, value[x]) pair owned by its element."""

    url: Annotated[Optional[str], Attribute(), Required()] = None
    value: Annotated[Single[Element], Choice(*EXTENSION_VALUE_TYPES)] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        check_uri(self.url, "url")


class BackboneElement(Element):
    """A structured sub-component nested inside a resource.

    Consumers that do not understand a modifier extension must refuse to
    process the element's content; the model only stores them.
    """

    __abstract__ = True

    modifier_extension: Repeating[Extension] = ()


Element.model_rebuild()
Extension.model_rebuild()
