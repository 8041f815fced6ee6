"""Unit tests for the visitor protocol."""

from clinical_model.domain import (
    CollectingVisitor,
    DefaultVisitor,
    HumanName,
    PathTrackingVisitor,
    Patient,
    Reference,
    String,
    Visitor,
)


class RecordingVisitor(Visitor):
    """Records every protocol call; vetoes are configured by type name."""

    def __init__(self, skip_node=(), skip_children=()):
        self.calls = []
        self.skip_node = set(skip_node)
        self.skip_children = set(skip_children)

    def pre_visit(self, visitable):
        self.calls.append(("pre", type(visitable).__name__))
        return type(visitable).__name__ not in self.skip_node

    def visit_start(self, element_name, element_index, visitable):
        self.calls.append(("start", element_name, element_index))

    def visit(self, element_name, element_index, visitable):
        self.calls.append(("visit", element_name, element_index))
        return type(visitable).__name__ not in self.skip_children

    def visit_end(self, element_name, element_index, visitable):
        self.calls.append(("end", element_name, element_index))

    def post_visit(self, visitable):
        self.calls.append(("post", type(visitable).__name__))

    def visit_start_list(self, element_name, visitables):
        self.calls.append(("start_list", element_name, len(visitables)))

    def visit_end_list(self, element_name, visitables):
        self.calls.append(("end_list", element_name, len(visitables)))

    def visit_value(self, element_name, value):
        self.calls.append(("value", element_name, value))


def small_name():
    return HumanName.builder().family("Doe").given("Jane", "Q").build()


class TestTraversalOrder:
    """Test suite for the traversal state machine."""

    def test_full_walk(self):
        """Test the complete, ordered call sequence for a small tree."""
        visitor = RecordingVisitor()
        small_name().accept(visitor)
        assert visitor.calls == [
            ("pre", "HumanName"),
            ("start", "HumanName", -1),
            ("visit", "HumanName", -1),
            ("pre", "String"),
            ("start", "family", -1),
            ("visit", "family", -1),
            ("value", "value", "Doe"),
            ("end", "family", -1),
            ("post", "String"),
            ("start_list", "given", 2),
            ("pre", "String"),
            ("start", "given", 0),
            ("visit", "given", 0),
            ("value", "value", "Jane"),
            ("end", "given", 0),
            ("post", "String"),
            ("pre", "String"),
            ("start", "given", 1),
            ("visit", "given", 1),
            ("value", "value", "Q"),
            ("end", "given", 1),
            ("post", "String"),
            ("end_list", "given", 2),
            ("end", "HumanName", -1),
            ("post", "HumanName"),
        ]

    def test_visit_veto_still_ends_node(self):
        """Test that returning False from visit skips children but not visit_end/post_visit."""
        visitor = RecordingVisitor(skip_children={"HumanName"})
        small_name().accept(visitor)
        assert visitor.calls == [
            ("pre", "HumanName"),
            ("start", "HumanName", -1),
            ("visit", "HumanName", -1),
            ("end", "HumanName", -1),
            ("post", "HumanName"),
        ]

    def test_pre_visit_veto_skips_node(self):
        """Test that returning False from pre_visit yields no start/end for that subtree."""
        visitor = RecordingVisitor(skip_node={"String"})
        small_name().accept(visitor)
        starts = [call for call in visitor.calls if call[0] == "start"]
        ends = [call for call in visitor.calls if call[0] == "end"]
        assert starts == [("start", "HumanName", -1)]
        assert ends == [("end", "HumanName", -1)]
        assert ("start_list", "given", 2) in visitor.calls

    def test_schema_order_and_exactly_once(self, patient):
        """Test that every non-null field is started once, in declaration order."""
        visitor = RecordingVisitor()
        patient.accept(visitor)
        top_level = []
        depth = 0
        for call in visitor.calls:
            if call[0] == "start":
                if depth == 1 and call[1] not in top_level:
                    top_level.append(call[1])
                depth += 1
            elif call[0] == "end":
                depth -= 1
        assert top_level == [
            "identifier", "active", "name", "telecom", "gender", "birthDate", "address",
        ]
        starts = sum(1 for call in visitor.calls if call[0] == "start")
        ends = sum(1 for call in visitor.calls if call[0] == "end")
        assert starts == ends

    def test_absent_fields_are_skipped(self):
        """Test that absent fields and empty lists produce no calls."""
        visitor = RecordingVisitor()
        HumanName.builder().family("Doe").build().accept(visitor)
        assert not any(call[0] == "start_list" for call in visitor.calls)
        assert ("value", "id", None) not in visitor.calls

    def test_raw_attributes_are_reported(self):
        """Test that id values reach visit_value."""
        visitor = RecordingVisitor()
        Patient.builder().id("p1").build().accept(visitor)
        assert ("value", "id", "p1") in visitor.calls


class TestDefaultVisitor:
    """Test suite for per-type dispatch."""

    def test_dispatch_to_most_specific_method(self, patient):
        """Test that visit() calls the most specific visit_<type> method."""

        class NameCounter(DefaultVisitor):
            def __init__(self):
                super().__init__(visit_children=True)
                self.names = 0
                self.strings = 0

            def visit_human_name(self, element_name, element_index, human_name):
                self.names += 1
                return False

            def visit_string(self, element_name, element_index, string):
                self.strings += 1
                return True

        counter = NameCounter()
        patient.accept(counter)
        assert counter.names == 1
        # given names are skipped; Code nodes dispatch to visit_string as well
        assert counter.strings == 14

    def test_supertype_method(self, patient):
        """Test that a supertype method is used when no exact one exists."""

        class ResourceCounter(DefaultVisitor):
            def __init__(self):
                super().__init__(visit_children=False)
                self.seen = []

            def visit_domain_resource(self, element_name, element_index, resource):
                self.seen.append(element_name)
                return False

        counter = ResourceCounter()
        patient.accept(counter)
        assert counter.seen == ["Patient"]

    def test_visit_children_default(self, patient):
        """Test that visit_children=False stops at the root without a visit_<type> method."""
        collector = CollectingVisitor(String)
        patient.accept(collector)
        assert len(collector.result) > 0

        class Shallow(DefaultVisitor):
            def __init__(self):
                super().__init__(visit_children=False)
                self.started = 0

            def visit_start(self, element_name, element_index, visitable):
                self.started += 1

        shallow = Shallow()
        patient.accept(shallow)
        assert shallow.started == 1


class TestPathTracking:
    """Test suite for PathTrackingVisitor."""

    def test_paths(self, patient):
        """Test indexed and element paths of visited nodes."""

        class PathRecorder(PathTrackingVisitor):
            def __init__(self):
                super().__init__()
                self.paths = []

            def visit_value(self, element_name, value):
                self.paths.append((self.value_path(element_name), self.value_element_path(element_name)))

        recorder = PathRecorder()
        patient.accept(recorder)
        assert ("Patient.id", "Patient.id") in recorder.paths
        assert ("Patient.name[0].given[1]", "Patient.name.given") in recorder.paths
        assert ("Patient.telecom[1].value", "Patient.telecom.value") in recorder.paths
        assert ("Patient.birthDate", "Patient.birthDate") in recorder.paths

    def test_contained_paths_are_resource_relative(self, observation):
        """Test that element paths restart at a contained resource."""
        contained = Patient.builder().id("p1").gender("female").build()
        tree = observation.to_builder().contained(contained).subject(
            Reference.builder().reference("#p1").build()
        ).build()

        class PathRecorder(PathTrackingVisitor):
            def __init__(self):
                super().__init__()
                self.paths = {}

            def visit_value(self, element_name, value):
                self.paths[self.value_path(element_name)] = self.value_element_path(element_name)

        recorder = PathRecorder()
        tree.accept(recorder)
        assert recorder.paths["Observation.contained[0].gender"] == "Patient.gender"
        assert recorder.paths["Observation.status"] == "Observation.status"

    def test_non_resource_root(self):
        """Test that a data type can be the root of a walk."""
        collector = CollectingVisitor(String)
        small_name().accept(collector)
        assert [s.value for s in collector.result] == ["Doe", "Jane", "Q"]
