"""Complex data types.

Structured, reusable elements shared by resources. Fields follow the R4
schema order; required bindings carry their code lists so that the default
terminology adapter can check them.
"""

from typing import Annotated

from clinical_model.domain.element import Element
from clinical_model.domain.exceptions import ConstraintViolation
from clinical_model.domain.enums import (
    AddressType,
    AddressUse,
    BindingStrength,
    ContactPointSystem,
    ContactPointUse,
    IdentifierUse,
    NameUse,
    NarrativeStatus,
    QuantityComparator,
    codes_of,
)
from clinical_model.domain.model_support import (
    Binding,
    Choice,
    ReferenceTarget,
    Repeating,
    Required,
    Single,
)
from clinical_model.domain.primitives import (
    Boolean,
    Canonical,
    Code,
    DateTime,
    Decimal,
    Id,
    Instant,
    Markdown,
    PartialDate,
    PositiveInt,
    String,
    Uri,
    Xhtml,
)
from clinical_model.domain.validation_support import get_reference_literal


def _required_binding(name: str, enum_class) -> Binding:
    return Binding(
        strength=BindingStrength.REQUIRED,
        value_set=f"http://hl7.org/fhir/ValueSet/{name}|4.0.1",
        system=f"http://hl7.org/fhir/{name}",
        codes=codes_of(enum_class),
    )


IDENTIFIER_USE = _required_binding("identifier-use", IdentifierUse)
NAME_USE = _required_binding("name-use", NameUse)
CONTACT_POINT_SYSTEM = _required_binding("contact-point-system", ContactPointSystem)
CONTACT_POINT_USE = _required_binding("contact-point-use", ContactPointUse)
ADDRESS_USE = _required_binding("address-use", AddressUse)
ADDRESS_TYPE = _required_binding("address-type", AddressType)
QUANTITY_COMPARATOR = _required_binding("quantity-comparator", QuantityComparator)
NARRATIVE_STATUS = _required_binding("narrative-status", NarrativeStatus)


class Coding(Element):
    system: Single[Uri] = None
    version: Single[String] = None
    code: Single[Code] = None
    display: Single[String] = None
    user_selected: Single[Boolean] = None


class CodeableConcept(Element):
    coding: Repeating[Coding] = ()
    text: Single[String] = None


class Period(Element):
    start: Single[DateTime] = None
    end: Single[DateTime] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        # per-1: start <= end when both have the same precision
        start = self.start.value if self.start is not None else None
        end = self.end.value if self.end is not None else None
        if type(start) is type(end) and start is not None and not isinstance(start, PartialDate) and start > end:
            raise ConstraintViolation("per-1", "If present, start SHALL have a lower value than end", "period")


class Reference(Element):
    """A typed pointer to another resource.

    The allowed target types are declared on the referring element, not
    stored per instance.
    """

    reference: Single[String] = None
    type: Single[Uri] = None
    identifier: Single["Identifier"] = None
    display: Single[String] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        # ref-1: a local reference must not carry a version
        literal = get_reference_literal(self)
        if literal is not None and literal.startswith("#") and "/_history/" in literal:
            raise ConstraintViolation("ref-1", "Local references must not be versioned", "reference")


class Identifier(Element):
    use: Annotated[Single[Code], IDENTIFIER_USE] = None
    type: Single[CodeableConcept] = None
    system: Single[Uri] = None
    value: Single[String] = None
    period: Single[Period] = None
    assigner: Annotated[Single[Reference], ReferenceTarget("Organization")] = None


Reference.model_rebuild()


class Quantity(Element):
    value: Single[Decimal] = None
    comparator: Annotated[Single[Code], QUANTITY_COMPARATOR] = None
    unit: Single[String] = None
    system: Single[Uri] = None
    code: Single[Code] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        # qty-3: if a code for the unit is present, the system SHALL also be present
        if self.code is not None and self.system is None:
            raise ConstraintViolation("qty-3", "If a code for the unit is present, the system SHALL also be present", "code")


class HumanName(Element):
    use: Annotated[Single[Code], NAME_USE] = None
    text: Single[String] = None
    family: Single[String] = None
    given: Repeating[String] = ()
    prefix: Repeating[String] = ()
    suffix: Repeating[String] = ()
    period: Single[Period] = None


class ContactPoint(Element):
    system: Annotated[Single[Code], CONTACT_POINT_SYSTEM] = None
    value: Single[String] = None
    use: Annotated[Single[Code], CONTACT_POINT_USE] = None
    rank: Single[PositiveInt] = None
    period: Single[Period] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        # cpt-2: a system is required if a value is provided
        if self.value is not None and self.system is None:
            raise ConstraintViolation("cpt-2", "A system is required if a value is provided.", "system")


class Address(Element):
    use: Annotated[Single[Code], ADDRESS_USE] = None
    type: Annotated[Single[Code], ADDRESS_TYPE] = None
    text: Single[String] = None
    line: Repeating[String] = ()
    city: Single[String] = None
    district: Single[String] = None
    state: Single[String] = None
    postal_code: Single[String] = None
    country: Single[String] = None
    period: Single[Period] = None


class Annotation(Element):
    author: Annotated[
        Single[Element],
        Choice("Reference", "String"),
        ReferenceTarget("Practitioner", "Patient", "RelatedPerson", "Organization"),
    ] = None
    time: Single[DateTime] = None
    text: Annotated[Single[Markdown], Required()] = None


class Meta(Element):
    version_id: Single[Id] = None
    last_updated: Single[Instant] = None
    source: Single[Uri] = None
    profile: Repeating[Canonical] = ()
    security: Repeating[Coding] = ()
    tag: Repeating[Coding] = ()


class Narrative(Element):
    status: Annotated[Single[Code], Required(), NARRATIVE_STATUS] = None
    div: Annotated[Single[Xhtml], Required()] = None
