"""Unit tests for generated builders."""

import pytest
from pydantic import ValidationError

from clinical_model.domain import (
    Boolean,
    CodeableConcept,
    DateTime,
    Element,
    HumanName,
    Observation,
    Patient,
    String,
    Visitable,
)
from clinical_model.domain.exceptions import (
    InvalidElementType,
    MissingRequiredField,
    NullCollectionArgument,
    NullElementInList,
)
from clinical_model.infrastructure.settings import settings


class TestBuilderConstruction:
    """Test suite for builder() / build() / to_builder()."""

    def test_build_returns_frozen_instance(self, patient):
        """Test that a built instance cannot be modified."""
        with pytest.raises(ValidationError):
            patient.active = Boolean.of(False)

    def test_lists_are_tuples(self, patient):
        """Test that repeating elements are exposed as immutable tuples."""
        assert isinstance(patient.name, tuple)
        assert isinstance(patient.name[0].given, tuple)
        assert [given.value for given in patient.name[0].given] == ["Peter", "James"]

    def test_native_values_are_wrapped(self, patient):
        """Test that fluent setters wrap native values into primitive types."""
        assert isinstance(patient.active, Boolean)
        assert patient.active.value is True
        assert patient.gender.value == "male"
        assert str(patient.birth_date) == "1974-12-25"

    def test_abstract_types_have_no_usable_builder(self):
        """Test that abstract types cannot be built."""
        with pytest.raises(TypeError):
            Element.builder()
        with pytest.raises(TypeError):
            Visitable.builder()

    def test_unknown_field(self):
        """Test that naming an undeclared field fails immediately."""
        with pytest.raises(AttributeError):
            Patient.builder().set("nickname", String.of("Pete"))

    def test_set_rejects_repeating_field(self):
        """Test that set() cannot be used on a list-valued field."""
        with pytest.raises(TypeError):
            Patient.builder().set("name", HumanName.builder().family("Doe").build())

    def test_add_rejects_singular_field(self):
        """Test that add() cannot be used on a singular field."""
        with pytest.raises(TypeError):
            Patient.builder().add("gender", "male")

    def test_fields_accept_element_names(self):
        """Test that set() accepts the camelCase element name as well."""
        patient = Patient.builder().set("birthDate", "2001-02-03").build()
        assert str(patient.birth_date) == "2001-02-03"

    def test_raw_value_type_is_strict(self):
        """Test that pydantic rejects a raw value of the wrong Python type."""
        with pytest.raises(ValidationError):
            Boolean.builder().value("yes").build()

    def test_missing_required_field(self):
        """Test that a required singular field must be present."""
        builder = Observation.builder().code(CodeableConcept.builder().text("Heart rate").build())
        with pytest.raises(MissingRequiredField) as exc_info:
            builder.build()
        assert exc_info.value.element_name == "status"

    def test_wrong_element_type_is_reported_at_build(self):
        """Test that a model instance of the wrong type is kept by the setter and rejected by build()."""
        builder = Patient.builder().birth_date(DateTime.of("2024-01-01T08:00:00+00:00"))
        with pytest.raises(InvalidElementType) as exc_info:
            builder.build()
        assert exc_info.value.element_name == "birthDate"
        assert exc_info.value.actual_type == "DateTime"
        assert exc_info.value.expected_type == "Date"


class TestListAccumulation:
    """Test suite for add() / replace() semantics."""

    def test_add_preserves_prior_content(self):
        """Test that add() appends to what is already there."""
        name = HumanName.builder().given("Peter").given("James", "Paul").build()
        assert [given.value for given in name.given] == ["Peter", "James", "Paul"]

    def test_replace_discards_prior_content(self):
        """Test that replace() discards earlier values."""
        name = (
            HumanName.builder()
            .given("Peter", "James")
            .replace("given", [String.of("Paul")])
            .build()
        )
        assert [given.value for given in name.given] == ["Paul"]

    def test_replace_copies_the_collection(self):
        """Test that later changes to the source list do not leak into the builder."""
        given = [String.of("Peter")]
        builder = HumanName.builder().replace("given", given)
        given.append(String.of("James"))
        assert len(builder.build().given) == 1

    def test_replace_with_none_fails_eagerly(self):
        """Test that replacing with a null collection is a programming error."""
        builder = HumanName.builder()
        with pytest.raises(NullCollectionArgument) as exc_info:
            builder.replace("given", None)
        assert exc_info.value.element_name == "given"
        assert isinstance(exc_info.value, TypeError)

    def test_replace_rejects_a_string(self):
        """Test that a str is not taken as a collection of characters."""
        builder = HumanName.builder()
        with pytest.raises(TypeError):
            builder.replace("given", "John")
        with pytest.raises(TypeError):
            builder.replace("given", b"John")

    def test_null_entries_are_rejected_at_build(self):
        """Test that null entries are accepted by replace() and rejected by build()."""
        builder = HumanName.builder().family("Doe").replace("given", [String.of("Jane"), None])
        with pytest.raises(NullElementInList) as exc_info:
            builder.build()
        assert exc_info.value.element_name == "given"
        assert exc_info.value.index == 1

    def test_empty_optional_list_is_valid(self):
        """Test that an optional list may stay empty."""
        name = HumanName.builder().family("Doe").replace("given", []).build()
        assert name.given == ()


class TestCopyConstruction:
    """Test suite for to_builder() / from_instance()."""

    def test_round_trip(self, patient):
        """Test that to_builder().build() yields an equal instance."""
        copy = patient.to_builder().build()
        assert copy == patient
        assert copy is not patient
        assert copy.to_builder().build().to_builder().build() == patient

    def test_substructures_are_shared(self, patient):
        """Test that nested immutable nodes are shared, not copied."""
        copy = patient.to_builder().build()
        assert copy.name[0] is patient.name[0]

    def test_modifying_a_copy_leaves_original_alone(self, patient):
        """Test that a seeded builder can be modified independently."""
        original_hash = hash(patient)
        modified = (
            patient.to_builder()
            .name(HumanName.builder().use("nickname").given("Pete").build())
            .gender("other")
            .build()
        )
        assert len(modified.name) == 2
        assert len(patient.name) == 1
        assert patient.gender.value == "male"
        assert modified != patient
        assert hash(patient) == original_hash

    def test_from_instance_requires_same_type(self, observation):
        """Test that a builder cannot be seeded from another type."""
        with pytest.raises(TypeError):
            Patient.builder().from_instance(observation)


class TestValidationSwitch:
    """Test suite for unvalidated construction."""

    def test_set_validating_false(self):
        """Test that a builder can skip validate() in build()."""
        observation = Observation.builder().set_validating(False).build()
        assert observation.status is None

    def test_validate_can_be_run_later(self):
        """Test that an unvalidated instance can still be validated explicitly."""
        builder = Observation.builder().set_validating(False)
        observation = builder.build()
        with pytest.raises(MissingRequiredField):
            builder.validate(observation)

    def test_settings_default(self, monkeypatch):
        """Test that new builders take their default from the settings."""
        monkeypatch.setattr(settings, "validating", False)
        assert Observation.builder().build().status is None
