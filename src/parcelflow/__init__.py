"""
Parcelflow

Collects property records from municipal data sources, standardizes them into
one canonical schema, enriches them with coordinates, and links records that
refer to the same parcel across sources.
"""

__version__ = "0.1.0"
