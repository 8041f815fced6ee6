"""Concrete resources.

Organization, Practitioner, Patient and Observation, with their backbone
elements. Field order, cardinalities, choice types, reference targets and
required bindings follow the R4 definitions of these resources.
"""

from typing import Annotated

from clinical_model.domain.datatypes import (
    Address,
    Annotation,
    CodeableConcept,
    ContactPoint,
    HumanName,
    Identifier,
    Period,
    Reference,
)
from clinical_model.domain.element import BackboneElement, Element
from clinical_model.domain.enums import (
    AdministrativeGender,
    BindingStrength,
    LinkType,
    ObservationStatus,
    codes_of,
)
from clinical_model.domain.exceptions import ConstraintViolation
from clinical_model.domain.model_support import (
    Binding,
    Choice,
    ReferenceTarget,
    Repeating,
    Required,
    Single,
)
from clinical_model.domain.primitives import Boolean, Code, Date, Instant, String
from clinical_model.domain.resource import DomainResource

ADMINISTRATIVE_GENDER = Binding(
    strength=BindingStrength.REQUIRED,
    value_set="http://hl7.org/fhir/ValueSet/administrative-gender|4.0.1",
    system="http://hl7.org/fhir/administrative-gender",
    codes=codes_of(AdministrativeGender),
)
LINK_TYPE = Binding(
    strength=BindingStrength.REQUIRED,
    value_set="http://hl7.org/fhir/ValueSet/link-type|4.0.1",
    system="http://hl7.org/fhir/link-type",
    codes=codes_of(LinkType),
)
OBSERVATION_STATUS = Binding(
    strength=BindingStrength.REQUIRED,
    value_set="http://hl7.org/fhir/ValueSet/observation-status|4.0.1",
    system="http://hl7.org/fhir/observation-status",
    codes=codes_of(ObservationStatus),
)
MARITAL_STATUS = Binding(
    strength=BindingStrength.EXTENSIBLE,
    value_set="http://hl7.org/fhir/ValueSet/marital-status",
    system="http://terminology.hl7.org/CodeSystem/v3-MaritalStatus",
)
OBSERVATION_CODES = Binding(
    strength=BindingStrength.EXAMPLE,
    value_set="http://hl7.org/fhir/ValueSet/observation-codes",
    system="http://loinc.org",
)

OBSERVATION_VALUE_TYPES = (
    "Quantity", "CodeableConcept", "String", "Boolean", "Integer", "Time", "DateTime", "Period",
)


class Organization(DomainResource):
    identifier: Repeating[Identifier] = ()
    active: Single[Boolean] = None
    type: Repeating[CodeableConcept] = ()
    name: Single[String] = None
    alias: Repeating[String] = ()
    telecom: Repeating[ContactPoint] = ()
    address: Repeating[Address] = ()
    part_of: Annotated[Single[Reference], ReferenceTarget("Organization")] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        # org-1: the organization SHALL at least have a name or an identifier
        if self.name is None and not self.identifier:
            raise ConstraintViolation(
                "org-1", "The organization SHALL at least have a name or an identifier, and possibly more than one", "name"
            )


class Practitioner(DomainResource):
    identifier: Repeating[Identifier] = ()
    active: Single[Boolean] = None
    name: Repeating[HumanName] = ()
    telecom: Repeating[ContactPoint] = ()
    address: Repeating[Address] = ()
    gender: Annotated[Single[Code], ADMINISTRATIVE_GENDER] = None
    birth_date: Single[Date] = None


class PatientContact(BackboneElement):
    """A contact party (guardian, partner, friend) for the patient."""

    __type_name__ = "Patient.Contact"

    relationship: Repeating[CodeableConcept] = ()
    name: Single[HumanName] = None
    telecom: Repeating[ContactPoint] = ()
    address: Single[Address] = None
    gender: Annotated[Single[Code], ADMINISTRATIVE_GENDER] = None
    organization: Annotated[Single[Reference], ReferenceTarget("Organization")] = None
    period: Single[Period] = None

    def validate_invariants(self) -> None:
        super().validate_invariants()
        # pat-1
        if self.name is None and not self.telecom and self.address is None and self.organization is None:
            raise ConstraintViolation(
                "pat-1", "SHALL at least contain a contact's details or a reference to an organization", "contact"
            )


class PatientLink(BackboneElement):
    """Link to another patient resource that concerns the same actual person."""

    __type_name__ = "Patient.Link"

    other: Annotated[Single[Reference], Required(), ReferenceTarget("Patient", "RelatedPerson")] = None
    type: Annotated[Single[Code], Required(), LINK_TYPE] = None


class Patient(DomainResource):
    """Demographics and other administrative information about a person receiving care."""

    identifier: Repeating[Identifier] = ()
    active: Single[Boolean] = None
    name: Repeating[HumanName] = ()
    telecom: Repeating[ContactPoint] = ()
    gender: Annotated[Single[Code], ADMINISTRATIVE_GENDER] = None
    birth_date: Single[Date] = None
    deceased: Annotated[Single[Element], Choice("Boolean", "DateTime")] = None
    address: Repeating[Address] = ()
    marital_status: Annotated[Single[CodeableConcept], MARITAL_STATUS] = None
    multiple_birth: Annotated[Single[Element], Choice("Boolean", "Integer")] = None
    contact: Repeating[PatientContact] = ()
    general_practitioner: Annotated[
        Repeating[Reference], ReferenceTarget("Organization", "Practitioner", "PractitionerRole")
    ] = ()
    managing_organization: Annotated[Single[Reference], ReferenceTarget("Organization")] = None
    link: Repeating[PatientLink] = ()


class ObservationComponent(BackboneElement):
    """A component observation, such as the systolic part of a blood pressure."""

    __type_name__ = "Observation.Component"

    code: Annotated[Single[CodeableConcept], Required(), OBSERVATION_CODES] = None
    value: Annotated[Single[Element], Choice(*OBSERVATION_VALUE_TYPES)] = None
    data_absent_reason: Single[CodeableConcept] = None
    interpretation: Repeating[CodeableConcept] = ()


class Observation(DomainResource):
    """Measurements and simple assertions made about a patient or other subject."""

    identifier: Repeating[Identifier] = ()
    based_on: Annotated[
        Repeating[Reference], ReferenceTarget("CarePlan", "DeviceRequest", "MedicationRequest", "ServiceRequest")
    ] = ()
    status: Annotated[Single[Code], Required(), OBSERVATION_STATUS] = None
    category: Repeating[CodeableConcept] = ()
    code: Annotated[Single[CodeableConcept], Required(), OBSERVATION_CODES] = None
    subject: Annotated[Single[Reference], ReferenceTarget("Patient", "Group", "Device", "Location")] = None
    encounter: Annotated[Single[Reference], ReferenceTarget("Encounter")] = None
    effective: Annotated[Single[Element], Choice("DateTime", "Period", "Instant")] = None
    issued: Single[Instant] = None
    performer: Annotated[
        Repeating[Reference],
        ReferenceTarget("Practitioner", "PractitionerRole", "Organization", "CareTeam", "Patient", "RelatedPerson"),
    ] = ()
    value: Annotated[Single[Element], Choice(*OBSERVATION_VALUE_TYPES)] = None
    data_absent_reason: Single[CodeableConcept] = None
    interpretation: Repeating[CodeableConcept] = ()
    note: Repeating[Annotation] = ()
    has_member: Annotated[
        Repeating[Reference], ReferenceTarget("Observation", "QuestionnaireResponse", "MolecularSequence")
    ] = ()
    component: Repeating[ObservationComponent] = ()

    def validate_invariants(self) -> None:
        super().validate_invariants()
        # obs-6
        if self.data_absent_reason is not None and self.value is not None:
            raise ConstraintViolation(
                "obs-6", "dataAbsentReason SHALL only be present if Observation.value[x] is not present",
                "dataAbsentReason",
            )
