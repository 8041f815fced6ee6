"""Deep copy of element trees through the visitor protocol.

CopyingVisitor walks a tree and rebuilds every node through its builder, so
each copy is validated exactly like a freshly built instance. Subclasses
transform the copy by overriding the hooks:

    - copy_value(path, element_path, element_name, value) for raw values
    - pre_visit(node) returning False to prune a subtree

An element left without a value or children by a hook (attributes such as
``id`` do not count) is dropped from its parent instead of failing ele-1.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from clinical_model.domain.element import Element
from clinical_model.domain.model_support import get_element_info, get_type_name
from clinical_model.domain.visitor import PathTrackingVisitor

logger = logging.getLogger(__name__)


@dataclass
class _Frame:
    node: Any
    values: Dict[str, Any] = field(default_factory=dict)


class CopyingVisitor(PathTrackingVisitor):
    """Visitor producing a structurally equal (or transformed) copy of a tree.

    Example:
        ```python
        copier = CopyingVisitor()
        patient.accept(copier)
        assert copier.result == patient
        ```
    """

    def __init__(self):
        super().__init__(visit_children=True)
        self._frames: List[_Frame] = []
        self._result: Optional[Any] = None

    @property
    def result(self) -> Optional[Any]:
        """The copied root, or None if the root was pruned or dropped."""
        return self._result

    def copy_value(self, path: str, element_path: str, element_name: str, value: Any) -> Any:
        """Return the value to store in the copy; None drops it."""
        return value

    def visit_start(self, element_name: str, element_index: int, visitable: Any) -> None:
        super().visit_start(element_name, element_index, visitable)
        self._frames.append(_Frame(visitable))

    def visit_value(self, element_name: str, value: Any) -> None:
        frame = self._frames[-1]
        info = get_element_info(type(frame.node), element_name)
        copied = self.copy_value(
            self.value_path(element_name), self.value_element_path(element_name), element_name, value
        )
        if copied is None:
            return
        if info.repeating:
            frame.values.setdefault(info.name, []).append(copied)
        else:
            frame.values[info.name] = copied

    def visit_end(self, element_name: str, element_index: int, visitable: Any) -> None:
        frame = self._frames.pop()
        super().visit_end(element_name, element_index, visitable)
        copy = self._build(frame)
        if copy is None:
            return
        if not self._frames:
            self._result = copy
            return
        parent = self._frames[-1]
        info = get_element_info(type(parent.node), element_name)
        if info.repeating:
            parent.values.setdefault(info.name, []).append(copy)
        else:
            parent.values[info.name] = copy

    def _build(self, frame: _Frame) -> Optional[Any]:
        if isinstance(frame.node, Element) and not any(
            not get_element_info(type(frame.node), name).attribute or name == "value" for name in frame.values
        ):
            logger.debug(f"Dropped vacuous {get_type_name(type(frame.node))} from copy")
            return None
        builder = type(frame.node).builder()
        for name, value in frame.values.items():
            if isinstance(value, list):
                builder.replace(name, value)
            else:
                builder.set(name, value)
        return builder.build()
