"""
Geocoding Result Model
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class GeocodingResult(BaseModel):
    """
    Coordinates resolved for an address.

    Attributes:
        latitude: WGS84 latitude
        longitude: WGS84 longitude
        formatted_address: Address as understood by the provider
        confidence: Provider confidence between 0 and 1
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    formatted_address: str = ""
    confidence: float = Field(0.0, ge=0, le=1)
