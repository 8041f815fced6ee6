"""Unit tests for PII redaction.

Security Impact:
    These tests prove that redacted copies carry no names, contact details,
    SSNs or birth dates while the original trees stay untouched.
"""

import pytest

from clinical_model.domain import Annotation, Narrative
from clinical_model.domain.services import RedactingVisitor, RedactorService


def redact(visitable, visitor=None):
    visitor = visitor or RedactingVisitor()
    visitable.accept(visitor)
    return visitor.result


class TestRedactorService:
    """Test suite for the value-level masking rules."""

    @pytest.mark.parametrize("value, expected", [
        ("123-45-6789", RedactorService.SSN_MASK),
        ("123456789", RedactorService.SSN_MASK),
        ("MRN-0042", "MRN-0042"),
        (None, None),
    ])
    def test_redact_ssn(self, value, expected):
        """Test SSN detection in identifier values."""
        assert RedactorService.redact_ssn(value) == expected

    def test_redact_phone_and_email(self):
        """Test phone and email masks."""
        assert RedactorService.redact_phone("(555) 867-5309") == RedactorService.PHONE_MASK
        assert RedactorService.redact_phone("ext. 12") == "ext. 12"
        assert RedactorService.redact_email("jane@example.org") == RedactorService.EMAIL_MASK
        assert RedactorService.redact_email("not an email") == "not an email"

    def test_redact_telecom(self):
        """Test that every telecom value is masked, by kind."""
        assert RedactorService.redact_telecom("jane@example.org") == RedactorService.EMAIL_MASK
        assert RedactorService.redact_telecom("pager 4411") == RedactorService.PHONE_MASK

    def test_redact_name(self):
        """Test that name parts are always masked."""
        assert RedactorService.redact_name("de la Cruz") == RedactorService.NAME_MASK
        assert RedactorService.redact_name("  ") is None

    def test_redact_address(self):
        """Test the address line heuristic."""
        assert RedactorService.redact_address("42 Wallaby Way") == RedactorService.ADDRESS_MASK
        assert RedactorService.redact_address("Apartment B") == "Apartment B"

    @pytest.mark.parametrize("value, expected", [
        ("90210", "90***"),
        ("90210-1234", "90***"),
        ("SW1A 1AA", "SW1A 1AA"),
    ])
    def test_redact_zip_code(self, value, expected):
        """Test partial ZIP masking."""
        assert RedactorService.redact_zip_code(value) == expected

    def test_redact_unstructured_text(self):
        """Test PII patterns embedded in free text."""
        text = "Call 555-123-4567 or mail jane@example.org, SSN 123-45-6789."
        redacted = RedactorService.redact_unstructured_text(text)
        assert RedactorService.PHONE_MASK in redacted
        assert RedactorService.EMAIL_MASK in redacted
        assert RedactorService.SSN_MASK in redacted
        assert not any(ch.isdigit() for ch in redacted)
        assert redacted.startswith("Call ")


class TestRedactingVisitor:
    """Test suite for redacted copies of resources."""

    def test_patient_is_redacted(self, patient):
        """Test the default rules against the fixture patient."""
        redacted = redact(patient)
        name = redacted.name[0]
        assert name.family.value == RedactorService.NAME_MASK
        assert [given.value for given in name.given] == [RedactorService.NAME_MASK] * 2
        assert name.use.value == "official"
        assert redacted.telecom[0].value.value == RedactorService.PHONE_MASK
        assert redacted.telecom[1].value.value == RedactorService.EMAIL_MASK
        assert redacted.identifier[0].value.value == RedactorService.SSN_MASK
        assert redacted.address[0].line[0].value == RedactorService.ADDRESS_MASK
        assert redacted.address[0].postal_code.value == "30***"
        assert redacted.birth_date is None

    def test_non_pii_is_kept(self, patient):
        """Test that ids, codes and flags are copied unchanged."""
        redacted = redact(patient)
        assert redacted.id == patient.id
        assert redacted.gender == patient.gender
        assert redacted.active == patient.active
        assert redacted.address[0].state == patient.address[0].state

    def test_original_is_untouched(self, patient):
        """Test that redaction produces a new tree."""
        before = hash(patient)
        redact(patient)
        assert patient.name[0].family.value == "Chalmers"
        assert hash(patient) == before

    def test_narrative_is_dropped(self, patient_factory):
        """Test that the narrative, which repeats PII, is left out."""
        narrative = Narrative.builder().status("generated").div(
            '<div xmlns="http://www.w3.org/1999/xhtml">Peter Chalmers, born 1974-12-25</div>'
        ).build()
        patient = patient_factory(text=narrative)
        assert redact(patient).text is None

    def test_observation_notes(self, observation):
        """Test that free-text notes are scanned for PII."""
        tree = observation.to_builder().note(
            Annotation.builder().author_string("Nurse").text("Callback 555-123-4567").build()
        ).build()
        redacted = redact(tree)
        assert redacted.note[0].text.value == f"Callback {RedactorService.PHONE_MASK}"
        assert redacted.value == observation.value

    def test_redacted_paths(self, patient):
        """Test that the visitor reports where it changed values."""
        visitor = RedactingVisitor()
        redact(patient, visitor)
        assert "Patient.birthDate" in visitor.redacted_paths
        assert "Patient.name[0].given[1]" in visitor.redacted_paths
        assert "Patient.gender" not in visitor.redacted_paths

    def test_custom_rules(self, patient):
        """Test that callers can supply their own rules."""
        visitor = RedactingVisitor(rules=[("*.address.city", lambda value: "[CITY]")], pruned_types=())
        redacted = redact(patient, visitor)
        assert redacted.address[0].city.value == "[CITY]"
        assert redacted.name == patient.name
        assert redacted.birth_date == patient.birth_date
