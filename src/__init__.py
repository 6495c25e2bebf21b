"""
Parcelflow - Core Package

This package contains the core property-data ingestion system, including
source collection, record standardization, geocoding, and record matching.
"""

__version__ = "0.1.0"
