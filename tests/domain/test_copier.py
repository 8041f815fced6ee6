"""Unit tests for CopyingVisitor."""

from clinical_model.domain import Address, Patient, Reference
from clinical_model.domain.services import CopyingVisitor


def copy_of(visitable, copier=None):
    copier = copier or CopyingVisitor()
    visitable.accept(copier)
    return copier.result


class UpperCaseFamily(CopyingVisitor):
    def copy_value(self, path, element_path, element_name, value):
        if element_path == "Patient.name.family":
            return value.upper()
        return value


class DropNames(CopyingVisitor):
    def copy_value(self, path, element_path, element_name, value):
        if element_path.startswith("Patient.name."):
            return None
        return value


class SkipAddresses(CopyingVisitor):
    def pre_visit(self, visitable):
        return not isinstance(visitable, Address)


class TestCopyingVisitor:
    """Test suite for deep copies through the visitor protocol."""

    def test_copy_is_equal(self, patient):
        """Test that an untouched copy is structurally equal."""
        copy = copy_of(patient)
        assert copy == patient
        assert copy is not patient
        assert copy.name[0] is not patient.name[0]

    def test_copy_of_observation(self, observation):
        """Test copying choice values, decimals and date-times."""
        assert copy_of(observation) == observation

    def test_copy_with_contained_resource(self, observation):
        """Test that contained resources and local references survive the copy."""
        contained = Patient.builder().id("p1").active(True).build()
        tree = observation.to_builder().contained(contained).subject(
            Reference.builder().reference("#p1").build()
        ).build()
        copy = copy_of(tree)
        assert copy == tree
        assert copy.get_contained("p1") == contained

    def test_copy_value_hook(self, patient):
        """Test that copy_value can rewrite raw values."""
        copy = copy_of(patient, UpperCaseFamily())
        assert copy.name[0].family.value == "CHALMERS"
        assert patient.name[0].family.value == "Chalmers"
        assert copy.name[0].given == patient.name[0].given

    def test_vacuous_elements_are_dropped(self, patient):
        """Test that an element emptied by the hook disappears from its parent."""
        copy = copy_of(patient, DropNames())
        # HumanName.use is a Code under Patient.name too, so the whole name goes
        assert copy.name == ()
        assert copy.gender == patient.gender

    def test_pre_visit_prunes_subtrees(self, patient):
        """Test that vetoed subtrees are left out of the copy."""
        copy = copy_of(patient, SkipAddresses())
        assert copy.address == ()
        assert copy.telecom == patient.telecom

    def test_pruned_root(self, patient):
        """Test that a pruned root yields no result."""

        class SkipAll(CopyingVisitor):
            def pre_visit(self, visitable):
                return False

        assert copy_of(patient, SkipAll()) is None
