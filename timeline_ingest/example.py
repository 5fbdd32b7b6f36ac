#!/usr/bin/env python3
"""
Example usage of the timeline ingestion engine.

This script demonstrates:
1. Processing each supported export format
2. Inspecting stay points and movement segments
3. Diagnostics for malformed and unrecognized payloads
4. Custom thresholds and date filtering
5. Timeline summary statistics
"""

import json
import logging
from datetime import date

import pandas as pd
from timeline_ingest import (
    EngineConfig,
    generate_sample_export,
    process_export,
    summarize,
)


def example_basic_processing():
    """Basic example: process a semantic-segments export."""
    print("=" * 60)
    print("Example 1: Basic Processing")
    print("=" * 60)

    payload = generate_sample_export('segments', seed=42)
    result = process_export(json.dumps(payload).encode('utf-8'))

    print(f"\nDetected format: {result.source_format.value}")
    print(f"  Raw samples:      {result.raw_count}")
    print(f"  Canonical points: {len(result.points)}")
    print(f"  Duplicates:       {result.duplicate_count}")

    print(f"\nStay points:")
    for i, stay in enumerate(result.stay_points):
        print(f"  {i+1}. {stay.place_name:8s} | "
              f"{stay.arrival:%H:%M}-{stay.departure:%H:%M} UTC | "
              f"{stay.duration_minutes:3d} min | "
              f"{stay.source_point_count} points")

    print(f"\nMovement segments:")
    for i, move in enumerate(result.movements):
        print(f"  {i+1}. {move.start.address} -> {move.end.address} | "
              f"{move.distance_meters:7.0f} m | "
              f"{move.duration_minutes:3d} min | "
              f"{move.avg_speed_kmh:5.2f} km/h")

    return result


def example_all_formats():
    """Example: the same day rendered in every export schema."""
    print("\n" + "=" * 60)
    print("Example 2: Export Formats")
    print("=" * 60)

    rows = []
    for export_format in ['segments', 'timeline_objects', 'locations']:
        result = process_export(generate_sample_export(export_format, seed=42))
        rows.append({
            'format': result.source_format.value,
            'raw': result.raw_count,
            'points': len(result.points),
            'duplicates': result.duplicate_count,
            'stays': len(result.stay_points),
            'movements': len(result.movements),
        })

    print(f"\n{pd.DataFrame(rows).to_string(index=False)}")


def example_diagnostics():
    """Example: malformed samples and unrecognized payloads."""
    print("\n" + "=" * 60)
    print("Example 3: Diagnostics")
    print("=" * 60)

    payload = {'semanticSegments': [{'timelinePath': [
        {'point': '37.4797273°, 126.9150743°', 'time': '2024-05-04T09:00:00.000+09:00'},
        {'point': '95.0°, 200.0°', 'time': '2024-05-04T09:10:00.000+09:00'},
        {'point': 'not a coordinate', 'time': '2024-05-04T09:20:00.000+09:00'},
    ]}]}
    result = process_export(payload)
    print(f"\nMalformed samples: {result.skipped_count} skipped, {len(result.points)} kept")

    for bad in [b'{not json', {'somethingElse': []}]:
        result = process_export(bad)
        print(f"  {result.source_format.value:13s} ok={result.ok} reason={result.failure_reason!r}")


def example_custom_config():
    """Example: custom thresholds and a date range."""
    print("\n" + "=" * 60)
    print("Example 4: Custom Configuration")
    print("=" * 60)

    payload = generate_sample_export('segments', seed=42)

    default = process_export(payload)
    strict = process_export(payload, min_stay_minutes=90)
    other_day = process_export(payload, start_date=date(2024, 5, 5))

    print(f"\n                      Stays   Movements   Filtered")
    for label, result in [('Default', default), ('Min stay 90 min', strict), ('From 2024-05-05', other_day)]:
        print(f"  {label:18s}  {len(result.stay_points):5d}   {len(result.movements):9d}   {result.filtered_count:8d}")

    parallel = process_export(payload, config=EngineConfig(parallel=True))
    print(f"\nParallel extraction matches sequential: "
          f"{parallel.stay_points == default.stay_points and parallel.movements == default.movements}")


def example_summary():
    """Example: timeline summary statistics."""
    print("\n" + "=" * 60)
    print("Example 5: Timeline Summary")
    print("=" * 60)

    result = process_export(generate_sample_export('timeline_objects', seed=7))
    summary = summarize(result)

    print(f"\nDate range: {summary.start} ~ {summary.end} ({summary.days} days)")
    print(f"Travel: {summary.total_distance_km:.2f} km in {summary.total_travel_time_minutes} min")
    print(f"\nTop places:")
    for place in summary.top_visited_places:
        print(f"  {place.place_name:8s} visits={place.visit_count} minutes={place.total_duration_minutes}")


if __name__ == '__main__':
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    example_basic_processing()
    example_all_formats()
    example_diagnostics()
    example_custom_config()
    example_summary()

    print("\n" + "=" * 60)
    print("All examples completed!")
    print("=" * 60)
