"""Change Detection Service.

Detects element-level changes between two versions of a resource. Each
version is flattened by a visitor into ``{path: value}`` rows, the two
tables are merged with pandas and every path is classified as inserted,
updated, deleted or unchanged.

Security Impact:
    - Compares values that may contain PII (redact first if the result is exported)
    - Only counts and resource types are logged

Architecture:
    - Pure domain service with no infrastructure dependencies
    - Uses pandas for the merge and the vectorized comparison
    - Returns domain models (ChangeEvent, UpdateResult) for use by adapters
"""

import logging
from typing import Any, List, Optional, Tuple

import pandas as pd

from clinical_model.domain.cdc_models import ChangeEvent, UpdateResult
from clinical_model.domain.enums import ChangeType
from clinical_model.domain.model_support import get_type_name
from clinical_model.domain.visitor import PathTrackingVisitor

logger = logging.getLogger(__name__)

CHANGE_COLUMNS = [
    'resource_type', 'resource_id', 'element_path', 'old_value', 'new_value', 'change_type'
]


class ValueCollector(PathTrackingVisitor):
    """Flattens a tree into ``(path, value)`` pairs, one per raw value."""

    def __init__(self):
        super().__init__(visit_children=True)
        self.values: List[Tuple[str, Any]] = []

    def visit_value(self, element_name: str, value: Any) -> None:
        self.values.append((self.value_path(element_name), value))


class ChangeDetector:
    """Service for detecting element-level changes between resource versions.

    Example:
        ```python
        detector = ChangeDetector(ingestion_id="run-42")
        changes = detector.detect_changes(stored_patient, incoming_patient)
        events = detector.changes_df_to_events(changes)
        ```
    """

    def __init__(self, ingestion_id: Optional[str] = None, source_adapter: Optional[str] = None):
        """Initialize change detector.

        Parameters:
            ingestion_id: ID of the current ingestion run
            source_adapter: Source adapter identifier
        """
        self.ingestion_id = ingestion_id
        self.source_adapter = source_adapter

    @staticmethod
    def flatten(visitable: Optional[Any]) -> pd.DataFrame:
        """Flatten a tree to a DataFrame with columns ``element_path`` and ``value``.

        Values keep their Python type (object dtype); a None tree yields an
        empty frame.
        """
        collector = ValueCollector()
        if visitable is not None:
            visitable.accept(collector)
        paths = [path for path, _ in collector.values]
        values = [value for _, value in collector.values]
        return pd.DataFrame({
            'element_path': pd.Series(paths, dtype=object),
            'value': pd.Series(values, dtype=object),
        })

    def _merge(self, old: Optional[Any], new: Optional[Any]) -> pd.DataFrame:
        if old is None and new is None:
            raise ValueError("At least one resource version is required")
        if old is not None and new is not None and type(old) is not type(new):
            raise ValueError(
                f"Cannot compare {get_type_name(type(old))} with {get_type_name(type(new))}"
            )
        merged = pd.merge(
            self.flatten(old),
            self.flatten(new),
            on='element_path',
            how='outer',
            suffixes=('_old', '_new'),
            indicator=True,
        )
        change_type = pd.Series(None, index=merged.index, dtype=object)
        change_type[merged['_merge'] == 'left_only'] = ChangeType.DELETE
        change_type[merged['_merge'] == 'right_only'] = ChangeType.INSERT
        both = merged['_merge'] == 'both'
        changed = both & (
            self._normalize_for_comparison(merged['value_old'])
            != self._normalize_for_comparison(merged['value_new'])
        )
        change_type[changed] = ChangeType.UPDATE
        merged['change_type'] = change_type
        return merged

    @staticmethod
    def _normalize_for_comparison(series: pd.Series) -> pd.Series:
        """Normalize values to strings that differ whenever the values differ.

        The type name is part of the key so that ``True`` and ``"True"`` (a
        choice element switching type) are not considered equal.
        """
        return series.apply(lambda x: '__NULL__' if x is None or x is pd.NA else f"{type(x).__name__}:{x}")

    def detect_changes(self, old: Optional[Any], new: Optional[Any]) -> pd.DataFrame:
        """Detect element-level changes between two versions of a resource.

        Parameters:
            old: Previous version, or None if the resource is new
            new: New version, or None if the resource was deleted

        Returns:
            DataFrame with columns: resource_type, resource_id, element_path,
            old_value, new_value, change_type; sorted by element_path

        Raises:
            ValueError: If both versions are None or their types differ
        """
        merged = self._merge(old, new)
        reference = new if new is not None else old
        resource_type = get_type_name(type(reference))
        changes = merged[merged['change_type'].notna()]
        if changes.empty:
            logger.debug(f"No changes detected in {resource_type}", extra={"resource_type": resource_type})
            return pd.DataFrame(columns=CHANGE_COLUMNS)

        result = pd.DataFrame({
            'resource_type': resource_type,
            'resource_id': getattr(reference, 'id', None),
            'element_path': changes['element_path'],
            'old_value': changes['value_old'],
            'new_value': changes['value_new'],
            'change_type': changes['change_type'],
        }, columns=CHANGE_COLUMNS)
        result = result.astype(object).where(result.notna(), None)
        result = result.sort_values('element_path', kind='stable').reset_index(drop=True)
        logger.info(
            f"Detected {len(result)} changes in {resource_type}",
            extra={"resource_type": resource_type},
        )
        return result

    def changes_df_to_events(self, changes_df: pd.DataFrame) -> List[ChangeEvent]:
        """Convert changes DataFrame to list of ChangeEvent objects.

        Parameters:
            changes_df: DataFrame returned by ``detect_changes``

        Returns:
            List of ChangeEvent objects, in the DataFrame's order
        """
        if changes_df.empty:
            return []
        return [
            ChangeEvent(
                resource_type=row['resource_type'],
                resource_id=row['resource_id'],
                element_path=row['element_path'],
                old_value=row['old_value'],
                new_value=row['new_value'],
                change_type=row['change_type'],
                ingestion_id=self.ingestion_id,
                source_adapter=self.source_adapter,
            )
            for row in changes_df.to_dict('records')
        ]

    def detect_change_events(self, old: Optional[Any], new: Optional[Any]) -> List[ChangeEvent]:
        """Shortcut for ``changes_df_to_events(detect_changes(old, new))``."""
        return self.changes_df_to_events(self.detect_changes(old, new))

    def summarize(self, old: Optional[Any], new: Optional[Any]) -> UpdateResult:
        """Count inserted, updated and deleted values between two versions."""
        change_type = self._merge(old, new)['change_type']
        return UpdateResult(
            values_compared=len(change_type),
            values_inserted=int((change_type == ChangeType.INSERT).sum()),
            values_updated=int((change_type == ChangeType.UPDATE).sum()),
            values_deleted=int((change_type == ChangeType.DELETE).sum()),
        )
