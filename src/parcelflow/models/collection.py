"""
Collection Result Model

One CollectionResult is produced per collection run and never mutated.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.parcelflow.exceptions import CollectionErrorType


def utc_now() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class CollectionResult(BaseModel):
    """
    Outcome of a single collection run.

    Attributes:
        success: Whether the run produced data
        message: Human readable outcome
        data: Identifiers of the records collected
        timestamp: When the result was produced
        source_id: Source the run collected from
        metadata: Run details (rawDataPath, totalRecords, errorType, ...)
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    success: bool
    message: str
    data: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)
    source_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def raw_data_path(self) -> Optional[str]:
        """Location of the raw snapshot written during the run, if any."""
        return self.metadata.get("rawDataPath")

    @property
    def error_type(self) -> Optional[str]:
        """Failure category for unsuccessful runs."""
        return self.metadata.get("errorType")

    @classmethod
    def failure(
        cls,
        source_id: str,
        message: str,
        error_type: CollectionErrorType = CollectionErrorType.COLLECTION_ERROR,
        **metadata: Any,
    ) -> "CollectionResult":
        """Build a structured failure result."""
        return cls(
            success=False,
            message=message,
            source_id=source_id,
            metadata={"errorType": error_type.value, **metadata},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialized form consumed by the collection history view."""
        return self.model_dump(mode="json", by_alias=True)
