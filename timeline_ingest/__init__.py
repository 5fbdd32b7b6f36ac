"""
Timeline Ingest - Turn location-history exports into stay points and travel legs.

This package provides tools for:
- Detecting and parsing location-history export schemas
- Normalizing mixed coordinate/timestamp encodings into a sorted trajectory
- Removing noise-induced duplicate samples
- Extracting stay points (dwell locations) and movement segments
- Summarizing a processed timeline

Example usage:
    from timeline_ingest import process_export, generate_sample_export

    # Generate sample data
    payload = generate_sample_export('segments', seed=42)

    # Run the pipeline
    result = process_export(payload)

    for stay in result.stay_points:
        print(stay.place_name, stay.duration_minutes)
"""

from .parser import FormatParser, parse_export, ExportFormat, RawPoint
from .normalizer import PointNormalizer, normalize_points, NormalizedPoint
from .dedup import Deduplicator, deduplicate_points
from .stay_points import StayPointExtractor, extract_stay_points, StayPoint
from .movement import MovementSegmenter, extract_movements, MovementSegment
from .pipeline import TimelineEngine, process_export, EngineConfig, EngineResult
from .summary import summarize, TimelineSummary
from .sample_data import generate_sample_day, generate_sample_export

__version__ = "0.1.0"
__all__ = [
    "FormatParser",
    "parse_export",
    "ExportFormat",
    "RawPoint",
    "PointNormalizer",
    "normalize_points",
    "NormalizedPoint",
    "Deduplicator",
    "deduplicate_points",
    "StayPointExtractor",
    "extract_stay_points",
    "StayPoint",
    "MovementSegmenter",
    "extract_movements",
    "MovementSegment",
    "TimelineEngine",
    "process_export",
    "EngineConfig",
    "EngineResult",
    "summarize",
    "TimelineSummary",
    "generate_sample_day",
    "generate_sample_export",
]
