"""
Source Configuration Models

Pydantic models describing a configured origin of property data. Source
configurations are administered outside this package and are read-only input
to the collectors.
"""
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Region(BaseModel):
    """Jurisdiction covered by a source."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    state: str = Field(..., description="State abbreviation")
    county: str = Field("", description="County name")


class Schedule(BaseModel):
    """
    Collection schedule. Interpreted by the external scheduler, carried here
    only so source configurations round-trip intact.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    frequency: Literal["daily", "weekly", "monthly", "manual"] = "manual"
    day_of_week: Optional[int] = Field(None, ge=0, le=6)
    day_of_month: Optional[int] = Field(None, ge=1, le=31)


class SourceConfig(BaseModel):
    """
    Data source configuration.

    Attributes:
        id: Source identifier
        name: Human readable source name
        type: Source kind (e.g. 'county-website', 'arcgis')
        url: Endpoint the collector fetches from
        region: State and county covered by the source
        collector_type: Type identifier of the collector that handles the source
        schedule: Collection schedule
        metadata: Collector-specific options
        status: Administrative status
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )

    id: str = Field(..., description="Source identifier")
    name: str = Field("", description="Source name")
    type: str = Field("", description="Source kind")
    url: str = Field("", description="Source endpoint")
    region: Region = Field(default_factory=lambda: Region(state="", county=""))
    collector_type: str = Field(..., description="Registered collector type")
    schedule: Schedule = Field(default_factory=Schedule)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    status: Literal["active", "inactive", "error"] = "active"

    def source_tag(self) -> Dict[str, str]:
        """Source information stamped onto every raw record."""
        return {"id": self.id, "name": self.name, "type": self.type}
