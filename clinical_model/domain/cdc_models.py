"""Change Data Capture (CDC) Models.

Element-level changes between two versions of a resource, as reported by
the ChangeDetector.

Security Impact:
    - Old and new values may contain PII; redact trees before comparing them
      when the events leave the process
    - Events are immutable once created
"""

import json
import uuid
from datetime import date, datetime, time
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from clinical_model.domain.enums import ChangeType


class ChangeEvent(BaseModel):
    """A single element-level change in a resource.

    Parameters:
        resource_type: Type name of the compared resource (Patient, Observation, ...)
        resource_id: Logical id of the resource, if it has one
        element_path: Indexed path of the changed value (``Patient.name[0].family``)
        old_value: Previous value (None for an INSERT)
        new_value: New value (None for a DELETE)
        change_type: INSERT, UPDATE or DELETE
        changed_at: Timestamp when the change was detected
        ingestion_id: ID of the run that compared the resources
        source_adapter: Source that provided the new version
    """

    model_config = ConfigDict(frozen=True)

    resource_type: str = Field(..., description="Type name of the resource")
    resource_id: Optional[str] = Field(None, description="Logical id of the resource")
    element_path: str = Field(..., description="Path of the changed value")
    old_value: Optional[Any] = Field(None, description="Previous value (before change)")
    new_value: Optional[Any] = Field(None, description="New value (after change)")
    change_type: ChangeType = Field(..., description="Type of change: INSERT, UPDATE, or DELETE")
    changed_at: datetime = Field(default_factory=datetime.now, description="Timestamp when change was detected")
    ingestion_id: Optional[str] = Field(None, description="ID of the ingestion run")
    source_adapter: Optional[str] = Field(None, description="Source adapter identifier")

    def to_audit_dict(self) -> dict:
        """Convert to dictionary for audit log insertion.

        Returns:
            Dictionary with values serialized to strings
        """
        return {
            'change_id': str(uuid.uuid4()),
            'resource_type': self.resource_type,
            'resource_id': self.resource_id,
            'element_path': self.element_path,
            'old_value': _serialize_value(self.old_value),
            'new_value': _serialize_value(self.new_value),
            'change_type': self.change_type.value,
            'changed_at': self.changed_at,
            'ingestion_id': self.ingestion_id,
            'source_adapter': self.source_adapter,
        }


def _serialize_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return json.dumps(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


class UpdateResult(BaseModel):
    """Summary of a comparison between two versions of a resource.

    Parameters:
        values_compared: Number of distinct paths present in either version
        values_inserted: Paths only present in the new version
        values_updated: Paths present in both with different values
        values_deleted: Paths only present in the old version
    """

    model_config = ConfigDict(frozen=True)

    values_compared: int = Field(..., description="Number of distinct paths compared")
    values_inserted: int = Field(0, description="Number of inserted values")
    values_updated: int = Field(0, description="Number of updated values")
    values_deleted: int = Field(0, description="Number of deleted values")

    @property
    def has_changes(self) -> bool:
        return bool(self.values_inserted or self.values_updated or self.values_deleted)
