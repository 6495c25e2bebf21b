"""
Error Types

Exceptions raised inside collectors, the transformation pipeline, and
geocoding providers.

Collection failures never escape a collector: they are converted into a
failed CollectionResult carrying the CollectionErrorType in its metadata.
Transformation failures propagate to the caller as a single TransformationError.
"""
from enum import Enum
from typing import Optional


class CollectionErrorType(str, Enum):
    """Categories of collection failures reported in CollectionResult metadata."""

    COLLECTOR_NOT_FOUND = "collector_not_found"
    SOURCE_UNAVAILABLE = "source_unavailable"
    INVALID_SOURCE = "invalid_source"
    CONNECTION_ERROR = "connection_error"
    PARSING_ERROR = "parsing_error"
    STORAGE_ERROR = "storage_error"
    COLLECTION_ERROR = "collection_error"


class ParcelflowError(Exception):
    """Base class for all parcelflow errors."""


class CollectionError(ParcelflowError):
    """
    Failure while fetching, parsing, or storing data for a source.

    Attributes:
        error_type: Failure category
        collector_type: Type identifier of the collector that failed
    """

    def __init__(
        self,
        message: str,
        error_type: CollectionErrorType = CollectionErrorType.COLLECTION_ERROR,
        collector_type: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.collector_type = collector_type


class TransformationError(ParcelflowError):
    """
    Failure anywhere in TransformationPipeline.process().

    Attributes:
        stage: Name of the pipeline stage that failed
    """

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class GeocodingError(ParcelflowError):
    """Failure inside a geocoding provider."""
