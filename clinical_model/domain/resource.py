"""Resource base types.

Resource is the base of every top-level, independently identifiable record.
DomainResource adds narrative text, contained resources and extensions.

Contained resources exist only inside their container: they have no
independent identity and are referenced from the container with local
``#id`` literals. The container resolves those literals and checks the
contained resource's runtime type against the referring element's allowed
targets.
"""

import logging
from typing import Annotated, Any, Dict, Optional

from clinical_model.domain.element import Extension, Visitable
from clinical_model.domain.enums import BindingStrength
from clinical_model.domain.exceptions import ConstraintViolation
from clinical_model.domain.model_support import (
    Attribute,
    Binding,
    Repeating,
    Single,
    get_element_infos,
)
from clinical_model.domain.primitives import Code, Uri
from clinical_model.domain.datatypes import Meta, Narrative
from clinical_model.domain.validation_support import (
    check_id,
    check_local_reference_type,
    get_reference_literal,
    is_reference,
)
from clinical_model.domain.visitor import DefaultVisitor

logger = logging.getLogger(__name__)

LANGUAGES = Binding(
    strength=BindingStrength.PREFERRED,
    value_set="http://hl7.org/fhir/ValueSet/languages",
    system="urn:ietf:bcp:47",
)


class Resource(Visitable):
    """Base of all resources: logical id, metadata, implicit rules and language."""

    __abstract__ = True

    id: Annotated[Optional[str], Attribute()] = None
    meta: Single[Meta] = None
    implicit_rules: Single[Uri] = None
    language: Annotated[Single[Code], LANGUAGES] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        check_id(self.id)


class DomainResource(Resource):
    """A resource with narrative, contained resources and extensions."""

    __abstract__ = True

    text: Single[Narrative] = None
    contained: Repeating[Resource] = ()
    extension: Repeating[Extension] = ()
    modifier_extension: Repeating[Extension] = ()

    def validate_invariants(self) -> None:
        super().validate_invariants()
        for index, resource in enumerate(self.contained):
            # dom-2: contained resources SHALL NOT contain additional contained resources
            if isinstance(resource, DomainResource) and resource.contained:
                raise ConstraintViolation(
                    "dom-2",
                    "If the resource is contained in another resource, it SHALL NOT contain nested Resources",
                    f"contained[{index}]",
                )
        if self.contained:
            self.accept(LocalReferenceChecker(self))

    def get_contained(self, local_id: str) -> Optional[Resource]:
        """Return the contained resource with the given id (without '#')."""
        for resource in self.contained:
            if resource.id == local_id:
                return resource
        return None


class LocalReferenceChecker(DefaultVisitor):
    """Resolves ``#id`` references against a container's contained resources.

    A local reference that names no contained resource is left alone; only
    the type of a resolved target is checked.
    """

    def __init__(self, container: DomainResource):
        super().__init__(visit_children=True)
        self._contained: Dict[str, Resource] = {
            resource.id: resource for resource in container.contained if resource.id is not None
        }

    def visit_visitable(self, element_name: str, element_index: int, visitable: Any) -> bool:
        for info in get_element_infos(type(visitable)):
            if not info.is_reference:
                continue
            value = getattr(visitable, info.name)
            for reference in value if info.repeating else (value,):
                self._check(reference, info.element_name, info.reference_types)
        return True

    def _check(self, reference: Any, element_name: str, reference_types) -> None:
        if not is_reference(reference):
            return
        literal = get_reference_literal(reference)
        if literal is None or not literal.startswith("#") or len(literal) == 1:
            return
        target = self._contained.get(literal[1:])
        if target is None:
            logger.debug(f"Local reference in '{element_name}' does not resolve to a contained resource")
            return
        check_local_reference_type(reference, element_name, target, reference_types)
