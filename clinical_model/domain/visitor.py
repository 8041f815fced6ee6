"""Visitor Protocol - Generic Traversal of Element Trees.

``Visitable.accept(visitor, name, index)`` drives this state machine per node:

    1. pre_visit(node)                  False skips the node entirely
    2. visit_start(name, index, node)
    3. visit(name, index, node)         False skips the node's children
    4. children, in schema declaration order; lists element by element,
       bracketed by visit_start_list / visit_end_list; raw attribute values
       (id, url, primitive value) through visit_value; absent fields skipped
    5. visit_end(name, index, node), post_visit(node)

Steps 2 and 5 always happen once step 1 passed. ``index`` is the position in
a repeating element, or -1 for a singular one. Traversal is synchronous and
keeps no state outside the visitor.
"""

from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, List, Sequence, Tuple

from clinical_model.domain.element import Visitable
from clinical_model.domain.model_support import get_type_name, snake_case


class Visitor(ABC):
    """The five-method visitor contract, plus optional list and value hooks."""

    @abstractmethod
    def pre_visit(self, visitable: Any) -> bool:
        """Return False to skip ``visitable`` and its whole subtree."""

    @abstractmethod
    def visit_start(self, element_name: str, element_index: int, visitable: Any) -> None:
        pass

    @abstractmethod
    def visit(self, element_name: str, element_index: int, visitable: Any) -> bool:
        """Return False to skip the children of ``visitable``."""

    @abstractmethod
    def visit_end(self, element_name: str, element_index: int, visitable: Any) -> None:
        pass

    @abstractmethod
    def post_visit(self, visitable: Any) -> None:
        pass

    def visit_start_list(self, element_name: str, visitables: Sequence[Any]) -> None:
        """Called before the entries of a non-empty repeating element."""

    def visit_end_list(self, element_name: str, visitables: Sequence[Any]) -> None:
        """Called after the entries of a non-empty repeating element."""

    def visit_value(self, element_name: str, value: Any) -> None:
        """Called for a raw attribute value (``id``, ``url``, a primitive's ``value``)."""


@lru_cache(maxsize=None)
def _visit_method_names(node_type: type) -> Tuple[str, ...]:
    """Names of the type-specific visit methods of a node type, most specific first."""
    names = []
    for klass in node_type.__mro__:
        if not issubclass(klass, Visitable):
            continue
        name = f"visit_{snake_case(get_type_name(klass))}"
        if name not in _PROTOCOL_METHODS:
            names.append(name)
    return tuple(names)


_PROTOCOL_METHODS = frozenset({
    "visit_start", "visit_end", "visit_value", "visit_start_list", "visit_end_list",
})


class DefaultVisitor(Visitor):
    """Visitor with no-op hooks and per-type dispatch of ``visit``.

    ``visit`` calls the most specific ``visit_<type>`` method defined on the
    visitor, walking the node's class hierarchy: for a Patient it tries
    ``visit_patient``, then ``visit_domain_resource``, ``visit_resource`` and
    finally ``visit_visitable``. Without any such method it returns
    ``visit_children``.

    Example:
        ```python
        class NameCounter(DefaultVisitor):
            def __init__(self):
                super().__init__(visit_children=True)
                self.count = 0

            def visit_human_name(self, element_name, element_index, human_name):
                self.count += 1
                return False
        ```
    """

    def __init__(self, visit_children: bool):
        self.visit_children = visit_children

    def pre_visit(self, visitable: Any) -> bool:
        return True

    def visit_start(self, element_name: str, element_index: int, visitable: Any) -> None:
        pass

    def visit(self, element_name: str, element_index: int, visitable: Any) -> bool:
        for method_name in _visit_method_names(type(visitable)):
            method = getattr(self, method_name, None)
            if method is not None:
                return method(element_name, element_index, visitable)
        return self.visit_children

    def visit_end(self, element_name: str, element_index: int, visitable: Any) -> None:
        pass

    def post_visit(self, visitable: Any) -> None:
        pass


class PathTrackingVisitor(DefaultVisitor):
    """DefaultVisitor that tracks the location of the current node.

    ``path`` is the indexed location from the root (``Patient.name[0].given[1]``);
    ``element_path`` is the index-free location relative to the nearest
    enclosing resource (``Patient.name.given``), which is what rules keyed by
    element definitions match against.
    """

    def __init__(self, visit_children: bool = True):
        super().__init__(visit_children)
        self._path: List[str] = []
        self._element_path: List[List[str]] = []
        self._opened: List[bool] = []

    @property
    def path(self) -> str:
        return ".".join(self._path)

    @property
    def element_path(self) -> str:
        return ".".join(self._element_path[-1]) if self._element_path else ""

    def value_path(self, element_name: str) -> str:
        """Path of a raw value; a primitive's ``value`` is reported at the primitive's path."""
        return self.path if element_name == "value" else f"{self.path}.{element_name}"

    def value_element_path(self, element_name: str) -> str:
        return self.element_path if element_name == "value" else f"{self.element_path}.{element_name}"

    def visit_start(self, element_name: str, element_index: int, visitable: Any) -> None:
        segment = element_name if element_index < 0 else f"{element_name}[{element_index}]"
        self._path.append(segment)
        opened = _is_resource(visitable) or not self._element_path
        if opened:
            self._element_path.append([get_type_name(type(visitable))])
        else:
            self._element_path[-1].append(element_name)
        self._opened.append(opened)

    def visit_end(self, element_name: str, element_index: int, visitable: Any) -> None:
        self._path.pop()
        if self._opened.pop():
            self._element_path.pop()
        else:
            self._element_path[-1].pop()


def _is_resource(visitable: Any) -> bool:
    return any(get_type_name(klass) == "Resource" for klass in type(visitable).__mro__)


class CollectingVisitor(DefaultVisitor):
    """Collects every node of a given type, in traversal order.

    Example:
        ```python
        collector = CollectingVisitor(Reference)
        patient.accept(collector)
        references = collector.result
        ```
    """

    def __init__(self, node_type: type):
        super().__init__(visit_children=True)
        self._node_type = node_type
        self._result: List[Any] = []

    def visit_visitable(self, element_name: str, element_index: int, visitable: Any) -> bool:
        if isinstance(visitable, self._node_type):
            self._result.append(visitable)
        return True

    @property
    def result(self) -> Tuple[Any, ...]:
        return tuple(self._result)
