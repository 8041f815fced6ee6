"""Domain layer for the clinical element model.

Importing this package defines (and registers) every element and resource
type, so choice types and references can be resolved by type name.
"""

from .element import BackboneElement, Element, Extension, Visitable
from .primitives import (
    Base64Binary,
    Boolean,
    Canonical,
    Code,
    Date,
    DateTime,
    Decimal,
    Id,
    Instant,
    Integer,
    Markdown,
    PartialDate,
    PositiveInt,
    String,
    Time,
    UnsignedInt,
    Uri,
    Url,
    Xhtml,
)
from .datatypes import (
    Address,
    Annotation,
    CodeableConcept,
    Coding,
    ContactPoint,
    HumanName,
    Identifier,
    Meta,
    Narrative,
    Period,
    Quantity,
    Reference,
)
from .resource import DomainResource, Resource
from .resources import (
    Observation,
    ObservationComponent,
    Organization,
    Patient,
    PatientContact,
    PatientLink,
    Practitioner,
)
from .visitor import CollectingVisitor, DefaultVisitor, PathTrackingVisitor, Visitor

__all__ = [
    "Visitable", "Element", "Extension", "BackboneElement",
    "Base64Binary", "Boolean", "Canonical", "Code", "Date", "DateTime", "Decimal", "Id",
    "Instant", "Integer", "Markdown", "PartialDate", "PositiveInt", "String", "Time", "UnsignedInt",
    "Uri", "Url", "Xhtml",
    "Address", "Annotation", "CodeableConcept", "Coding", "ContactPoint", "HumanName",
    "Identifier", "Meta", "Narrative", "Period", "Quantity", "Reference",
    "Resource", "DomainResource",
    "Organization", "Practitioner", "Patient", "PatientContact", "PatientLink",
    "Observation", "ObservationComponent",
    "Visitor", "DefaultVisitor", "PathTrackingVisitor", "CollectingVisitor",
]
