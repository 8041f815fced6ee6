"""Shared fixtures: small but complete resource trees and global-state resets."""

import pytest

from clinical_model.domain import (
    Address,
    CodeableConcept,
    Coding,
    ContactPoint,
    HumanName,
    Identifier,
    Observation,
    Patient,
    Quantity,
    Reference,
)
from clinical_model.domain.validation_support import set_terminology_service
from clinical_model.infrastructure.settings import settings


@pytest.fixture(autouse=True)
def reset_model_state():
    """Restore settings and the terminology collaborator after every test."""
    saved = settings.model_dump()
    yield
    for name, value in saved.items():
        setattr(settings, name, value)
    set_terminology_service(None)


def make_patient(**overrides) -> Patient:
    builder = (
        Patient.builder()
        .id("pat-1")
        .identifier(
            Identifier.builder()
            .use("official")
            .system("http://hl7.org/fhir/sid/us-ssn")
            .value("123-45-6789")
            .build()
        )
        .active(True)
        .name(
            HumanName.builder()
            .use("official")
            .family("Chalmers")
            .given("Peter", "James")
            .build()
        )
        .telecom(
            ContactPoint.builder().system("phone").value("555-867-5309").use("home").build(),
            ContactPoint.builder().system("email").value("peter@example.org").use("work").build(),
        )
        .gender("male")
        .birth_date("1974-12-25")
        .address(
            Address.builder()
            .use("home")
            .line("534 Erewhon St")
            .city("PleasantVille")
            .state("VIC")
            .postal_code("30999")
            .build()
        )
    )
    for name, value in overrides.items():
        builder.set(name, value)
    return builder.build()


def make_observation() -> Observation:
    return (
        Observation.builder()
        .id("obs-1")
        .status("final")
        .code(
            CodeableConcept.builder()
            .coding(Coding.builder().system("http://loinc.org").code("8867-4").display("Heart rate").build())
            .build()
        )
        .subject(Reference.builder().reference("Patient/pat-1").build())
        .effective_date_time("2024-03-01T10:30:00+00:00")
        .value_quantity(
            Quantity.builder()
            .value(72)
            .unit("beats/minute")
            .system("http://unitsofmeasure.org")
            .code("/min")
            .build()
        )
        .build()
    )


@pytest.fixture
def patient() -> Patient:
    """A valid Patient with identifier, name, telecom, address and birth date."""
    return make_patient()


@pytest.fixture
def observation() -> Observation:
    """A valid heart-rate Observation referring to Patient/pat-1."""
    return make_observation()


@pytest.fixture
def patient_factory():
    """Build a Patient from the standard fixture, overriding singular fields."""
    return make_patient
