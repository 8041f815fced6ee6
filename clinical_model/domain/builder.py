"""Builders - Mutable Staging Objects for Immutable Model Instances.

Every element and resource type gets a Builder subclass generated from its
field table when the type is defined. A builder accumulates field values,
then ``build()`` constructs the frozen pydantic instance and validates it.

Builders expose:
    - ``set(name, value)`` for singular fields
    - ``add(name, *values)`` to append to a repeating field
    - ``replace(name, values)`` to discard and copy a repeating field
    - one fluent method per field (``Patient.builder().gender(...)``)
    - one convenience setter per allowed choice type
      (``deceased_boolean(True)``); disallowed types get no setter
    - ``from_instance(x)`` to seed the builder from an existing instance

Builders are not thread-safe; they are meant to be short-lived and local.
"""

import logging
from typing import Any, Dict, Iterable, Optional, get_origin

from pydantic import BaseModel

from clinical_model.domain.exceptions import NullCollectionArgument
from clinical_model.domain.model_support import (
    Choice,
    ElementInfo,
    get_element_info,
    get_element_infos,
    get_model_class,
    get_type_name,
    is_abstract,
    snake_case,
)
from clinical_model.domain import validation_support
from clinical_model.infrastructure.settings import settings

logger = logging.getLogger(__name__)


class Builder:
    """Base class of all generated builders.

    Attributes:
        model: The model class this builder constructs
    """

    model: Optional[type] = None

    def __init__(self):
        if self.model is None or is_abstract(self.model):
            raise TypeError(f"Cannot instantiate a builder for abstract type: {self._type_name()}")
        self._values: Dict[str, Any] = {
            info.name: [] if info.repeating else None
            for info in get_element_infos(self.model)
        }
        self._validating = settings.validating

    @classmethod
    def _type_name(cls) -> str:
        return get_type_name(cls.model) if cls.model is not None else cls.__name__

    def _info(self, name: str) -> ElementInfo:
        try:
            return get_element_info(self.model, name)
        except KeyError:
            raise AttributeError(f"{self._type_name()} has no element named '{name}'") from None

    def _wrap(self, info: ElementInfo, value: Any) -> Any:
        """Wrap a native value into the primitive type declared for the field.

        Model instances are kept as given; a wrong type is reported by
        ``check_type`` when the builder validates.
        """
        element_type = info.type
        if (
            value is None
            or info.is_choice
            or info.attribute
            or not isinstance(element_type, type)
            or isinstance(value, BaseModel)
            or not hasattr(element_type, "of")
            or is_abstract(element_type)
        ):
            return value
        return element_type.of(value)

    def set(self, name: str, value: Any) -> "Builder":
        """Set a singular field; native values are wrapped for primitive-typed fields."""
        info = self._info(name)
        if info.repeating:
            raise TypeError(f"Element '{info.element_name}' repeats; use add() or replace()")
        self._values[info.name] = self._wrap(info, value)
        return self

    def add(self, name: str, *values: Any) -> "Builder":
        """Append one or more values to a repeating field, keeping prior content."""
        info = self._info(name)
        if not info.repeating:
            raise TypeError(f"Element '{info.element_name}' does not repeat; use set()")
        self._values[info.name].extend(self._wrap(info, value) for value in values)
        return self

    def replace(self, name: str, values: Optional[Iterable[Any]]) -> "Builder":
        """Replace the content of a repeating field with a copy of ``values``.

        Null entries inside ``values`` are accepted here and rejected by
        ``check_list`` when ``build()`` validates.

        Raises:
            NullCollectionArgument: If ``values`` is None
            TypeError: If ``values`` is a str or bytes
        """
        info = self._info(name)
        if not info.repeating:
            raise TypeError(f"Element '{info.element_name}' does not repeat; use set()")
        if values is None:
            raise NullCollectionArgument(info.element_name)
        if isinstance(values, (str, bytes)):
            raise TypeError(f"Element '{info.element_name}' expects a collection of values, not {type(values).__name__}")
        self._values[info.name] = [self._wrap(info, value) for value in values]
        return self

    def set_validating(self, validating: bool) -> "Builder":
        """Enable or disable validation in ``build()`` for this builder."""
        self._validating = validating
        return self

    def from_instance(self, instance: Any) -> "Builder":
        """Seed this builder from an existing instance.

        Nested nodes are immutable, so they are shared; lists are copied into
        fresh containers so the builder can be modified independently.
        """
        if not isinstance(instance, self.model):
            raise TypeError(f"Expected an instance of {self._type_name()}, got {type(instance).__name__}")
        for info in get_element_infos(self.model):
            value = getattr(instance, info.name)
            self._values[info.name] = list(value) if info.repeating else value
        return self

    def build(self) -> Any:
        """Construct the immutable instance and validate it.

        Returns:
            The frozen instance

        Raises:
            ModelValidationError: If a structural invariant is violated
            pydantic.ValidationError: If a raw value has the wrong Python type
        """
        values = {
            name: tuple(value) if isinstance(value, list) else value
            for name, value in self._values.items()
        }
        instance = self.model.model_validate(values)
        if self._validating:
            self.validate(instance)
        else:
            logger.debug(f"Built {self._type_name()} without validation")
        return instance

    def validate(self, instance: Any) -> None:
        """Run the field-table checks, then the type's own invariants."""
        try:
            validation_support.validate_elements(instance)
            instance.validate_invariants()
        except ValueError as e:
            logger.debug(
                f"Validation failed for {self._type_name()}: {type(e).__name__}",
                extra={"element_type": self._type_name(), "element_name": getattr(e, "element_name", None)},
            )
            raise


def _make_setter(name: str, repeating: bool):
    if repeating:
        def setter(self, *values):
            return self.add(name, *values)
        setter.__doc__ = f"Add values to '{name}'."
    else:
        def setter(self, value):
            return self.set(name, value)
        setter.__doc__ = f"Set '{name}'."
    setter.__name__ = name
    return setter


def _make_choice_setter(name: str, type_name: str):
    def setter(self, value):
        choice_type = get_model_class(type_name)
        if value is not None and not isinstance(value, choice_type) and hasattr(choice_type, "of"):
            value = choice_type.of(value)
        return self.set(name, value)
    setter.__name__ = f"{name}_{snake_case(type_name)}"
    setter.__doc__ = f"Set '{name}' to a {type_name}, wrapping native values."
    return setter


def make_builder(model: type, base: type) -> type:
    """Generate the Builder subclass of a model type.

    Only the fields the type itself declares get new methods; inherited
    fields keep the setters generated for the supertype's builder.

    Parameters:
        model: The model class
        base: Builder class of the model's supertype
    """
    namespace: Dict[str, Any] = {
        "model": model,
        "__doc__": f"Builder for {get_type_name(model)}.",
        "__module__": model.__module__,
        "__qualname__": f"{model.__qualname__}.Builder",
    }
    inherited = set(getattr(base.model, "model_fields", {})) if base.model is not None else set()
    for name, field in model.model_fields.items():
        if name in inherited:
            continue
        choice = next((m for m in field.metadata if isinstance(m, Choice)), None)
        repeating = get_origin(field.annotation) is tuple
        if not hasattr(Builder, name):
            namespace[name] = _make_setter(name, repeating)
        if choice is not None:
            for type_name in choice.type_names:
                namespace[f"{name}_{snake_case(type_name)}"] = _make_choice_setter(name, type_name)
    return type("Builder", (base,), namespace)
