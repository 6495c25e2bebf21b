"""
Data Collectors

Collectors fetch raw property records from external sources; the
CollectorManager schedules their runs.
"""
from src.parcelflow.collectors.arcgis import ArcGISParcelCollector
from src.parcelflow.collectors.base import BaseCollector, DataCollector, load_raw_snapshot
from src.parcelflow.collectors.manager import CollectorManager
from src.parcelflow.collectors.st_marys_county import StMarysCountyCollector

__all__ = [
    "ArcGISParcelCollector",
    "BaseCollector",
    "CollectorManager",
    "DataCollector",
    "StMarysCountyCollector",
    "load_raw_snapshot",
]
