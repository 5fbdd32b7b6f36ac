"""
End-to-end tests for the ingestion pipeline and timeline summary.
"""

import json
import pytest
from datetime import date, datetime, timedelta, timezone

from timeline_ingest import (
    EngineConfig,
    ExportFormat,
    TimelineEngine,
    generate_sample_day,
    generate_sample_export,
    process_export,
    summarize,
)
from timeline_ingest.pipeline import INVALID_JSON, NO_LOCATION_DATA
from timeline_ingest.sample_data import SEOUL_LANDMARKS, to_segments_export


KST = timezone(timedelta(hours=9))


def segment_payload(samples):
    """Build a semanticSegments payload, one single-point segment per (lat, lon, time)."""
    return {'semanticSegments': [
        {'timelinePath': [{'point': f"{lat:.7f}°, {lon:.7f}°", 'time': ts.isoformat()}]}
        for lat, lon, ts in samples
    ]}


def seoul_tour():
    """Seven samples touring six landmarks and returning to the first, 45 minutes apart."""
    stops = SEOUL_LANDMARKS + SEOUL_LANDMARKS[:1]
    start = datetime(2024, 5, 4, 9, 0, tzinfo=KST)
    return [(lat, lon, start + timedelta(minutes=45 * i)) for i, (_, lat, lon) in enumerate(stops)]


class TestEndToEnd:
    """Scenario tests over the whole pipeline."""

    def test_seoul_tour_is_all_movement(self):
        """Landmarks >= 1 km and >= 30 minutes apart give only movement segments."""
        result = process_export(segment_payload(seoul_tour()))

        assert result.ok
        assert result.source_format is ExportFormat.SEGMENTS
        assert len(result.points) == 7
        assert len(result.movements) == 6
        assert result.stay_points == []
        for move in result.movements:
            assert move.distance_meters >= 1000
            assert move.duration_minutes == 45

    def test_compressed_tour_is_one_stay(self):
        """Six samples at one place over 40 minutes give one stay and no movement."""
        _, lat, lon = SEOUL_LANDMARKS[1]
        start = datetime(2024, 5, 4, 9, 0, tzinfo=KST)
        samples = [(lat, lon, start + timedelta(minutes=8 * i)) for i in range(6)]
        result = process_export(segment_payload(samples))

        assert len(result.points) == 6
        assert result.movements == []
        assert len(result.stay_points) == 1
        assert result.stay_points[0].duration_minutes == 40
        assert result.stay_points[0].source_point_count == 6

    def test_output_sorted_for_shuffled_input(self):
        payload = generate_sample_export('locations', seed=5)
        payload['locations'] = payload['locations'][::-1]
        result = process_export(payload)

        times = [p.timestamp for p in result.points]
        assert times == sorted(times)

    def test_idempotent_on_identical_bytes(self):
        raw = json.dumps(generate_sample_export('segments', seed=11)).encode('utf-8')
        first = process_export(raw)
        second = process_export(raw)

        assert first == second

    @pytest.mark.parametrize("export_format,expected", [
        (ExportFormat.SEGMENTS, 'segments'),
        (ExportFormat.TIMELINE_OBJECTS, 'timeline_objects'),
        (ExportFormat.LOCATIONS, 'locations'),
    ])
    def test_sample_exports(self, export_format, expected):
        """A generated day (6 hour-long visits) is recovered from every schema."""
        result = process_export(generate_sample_export(expected, seed=42))

        assert result.source_format is export_format
        assert len(result.stay_points) == len(SEOUL_LANDMARKS)
        assert len(result.movements) == len(SEOUL_LANDMARKS) - 1
        assert all(s.duration_minutes == 60 for s in result.stay_points)
        assert all(m.duration_minutes == 40 for m in result.movements)

    def test_segment_start_samples_deduplicated(self):
        df = generate_sample_day(seed=42)
        result = process_export(to_segments_export(df))

        assert result.raw_count == len(df) + len(SEOUL_LANDMARKS)
        assert result.duplicate_count == len(SEOUL_LANDMARKS)
        assert len(result.points) == len(df)

    def test_place_names_from_legacy_export(self):
        result = process_export(generate_sample_export('timeline_objects', seed=42))
        assert [s.place_name for s in result.stay_points] == [name for name, _, _ in SEOUL_LANDMARKS]


class TestFailureSignals:
    """Tests for malformed and unrecognized payloads."""

    def test_invalid_json(self):
        result = process_export(b'{"semanticSegments": [')

        assert not result.ok
        assert result.failure_reason == INVALID_JSON
        assert result.source_format is ExportFormat.UNRECOGNIZED
        assert result.points == []

    def test_deeply_nested_json(self):
        """Nesting too deep for the decoder is reported, not raised."""
        result = process_export(b'[' * 200000 + b']' * 200000)

        assert not result.ok
        assert result.failure_reason == INVALID_JSON

    def test_unrecognized_payload(self):
        result = process_export('{"hello": "world"}')

        assert not result.ok
        assert result.failure_reason == NO_LOCATION_DATA
        assert result.source_format is ExportFormat.UNRECOGNIZED

    def test_malformed_samples_counted(self):
        payload = {'semanticSegments': [{'timelinePath': [
            {'point': '37.4797273°, 126.9150743°', 'time': '2024-05-04T09:00:00+09:00'},
            {'point': '95.0°, 200.0°', 'time': '2024-05-04T09:10:00+09:00'},
            {'point': '37.5700°, 126.9800°', 'time': 'not a timestamp'},
        ]}]}
        result = process_export(payload)

        assert result.ok
        assert len(result.points) == 1
        assert result.skipped_count == 2

    def test_empty_after_filter_is_not_an_exception(self):
        result = process_export(generate_sample_export('segments', seed=1), start_date=date(2030, 1, 1))

        assert result.failure_reason == NO_LOCATION_DATA
        assert result.filtered_count == result.raw_count
        assert result.stay_points == []
        assert result.movements == []


class TestConfiguration:
    """Tests for engine options."""

    def test_parallel_matches_sequential(self):
        payload = generate_sample_export('segments', seed=3)
        sequential = process_export(payload)
        parallel = TimelineEngine(EngineConfig(parallel=True)).run(payload)

        assert parallel.stay_points == sequential.stay_points
        assert parallel.movements == sequential.movements

    def test_max_locations(self):
        payload = generate_sample_export('locations', seed=3)
        result = process_export(payload, max_locations=11)

        assert len(result.points) == 11
        assert result.filtered_count == len(payload['locations']) - 11
        assert len(result.stay_points) == 1

    def test_max_locations_counts_deduplicated_points(self):
        """The cap keeps the earliest distinct points, so duplicates never use it up."""
        start = datetime(2024, 5, 4, 0, 0, tzinfo=timezone.utc)
        repeats = [(37.5, 127.0, start + timedelta(minutes=m)) for m in range(4)]
        distinct = [(37.5 + 0.01 * i, 127.0, start + timedelta(minutes=10 * i)) for i in range(1, 6)]
        payload = segment_payload(repeats + distinct)

        result = process_export(payload, max_locations=5)

        assert len(result.points) == 5
        assert result.duplicate_count == 3
        assert result.filtered_count == 1
        assert result.points[-1].timestamp == start + timedelta(minutes=40)

    def test_zero_max_locations_means_no_cap(self):
        payload = generate_sample_export('locations', seed=3)
        result = process_export(payload, max_locations=0)

        assert result.ok
        assert len(result.points) == len(payload['locations'])
        assert result.filtered_count == 0

    def test_overrides_on_config(self):
        payload = generate_sample_export('segments', seed=3)
        result = process_export(payload, config=EngineConfig(), min_stay_minutes=90)
        assert result.stay_points == []

    def test_fixed_clock_for_missing_timestamps(self):
        fixed = datetime(2030, 1, 1, tzinfo=timezone.utc)
        payload = [{'latitude': 37.5, 'longitude': 127.0}]
        result = process_export(payload, require_timestamp=False, clock=lambda: fixed)

        assert result.source_format is ExportFormat.BARE_ARRAY
        assert result.points[0].timestamp == fixed

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            EngineConfig(max_locations=-1)
        with pytest.raises(ValueError):
            EngineConfig(start_date=date(2024, 5, 5), end_date=date(2024, 5, 4))


class TestSummary:
    """Tests for timeline summary statistics."""

    def test_summary_of_sample_day(self):
        result = process_export(generate_sample_export('timeline_objects', seed=42))
        summary = summarize(result, top_n=3)

        assert summary.total_locations == len(result.points)
        assert summary.total_place_visits == 6
        assert summary.total_movement_paths == 5
        assert summary.start == date(2024, 5, 4)
        assert summary.end == date(2024, 5, 4)
        assert summary.days == 0
        assert [p.place_name for p in summary.top_visited_places] == [name for name, _, _ in SEOUL_LANDMARKS[:3]]
        assert all(p.visit_count == 1 for p in summary.top_visited_places)
        assert summary.top_visited_places[0].total_duration_minutes == 60
        assert summary.total_travel_time_minutes == 200
        assert summary.total_distance_km == pytest.approx(
            sum(m.distance_meters for m in result.movements) / 1000, abs=0.01)
        assert len(summary.daily_activity) == 1
        assert summary.daily_activity[0].place_visits == 6
        assert summary.daily_activity[0].movement_paths == 5

    def test_unnamed_stays_not_ranked(self):
        """Stays without a place name are counted but never pooled into a top place."""
        result = process_export(generate_sample_export('segments', seed=42))
        summary = summarize(result)

        assert summary.total_place_visits == 6
        assert summary.top_visited_places == []
        assert summary.daily_activity[0].place_visits == 6

    def test_repeat_visits_rank_first(self):
        _, lat, lon = SEOUL_LANDMARKS[1]
        _, lat2, lon2 = SEOUL_LANDMARKS[4]
        start = datetime(2024, 5, 4, 9, 0, tzinfo=KST)
        entries = []
        for i, (la, lo, name) in enumerate([(lat, lon, '명동'), (lat2, lon2, '강남역'), (lat, lon, '명동')]):
            for k in range(4):
                ts = start + timedelta(minutes=120 * i + 8 * k)
                entries.append({'latitude': la, 'longitude': lo, 'timestamp': ts.isoformat(), 'address': name})
        summary = summarize(process_export({'locations': entries}))

        assert summary.top_visited_places[0].place_name == '명동'
        assert summary.top_visited_places[0].visit_count == 2
        assert summary.top_visited_places[0].total_duration_minutes == 48

    def test_summary_of_empty_result(self):
        summary = summarize(process_export({'hello': 'world'}))

        assert summary.total_locations == 0
        assert summary.start is None
        assert summary.top_visited_places == []
        assert summary.daily_activity == []
        assert summary.to_dict()['dateRange'] == {'start': '', 'end': '', 'days': 0}


class TestSampleData:
    """Tests for the sample export generator."""

    def test_reproducible_with_seed(self):
        assert generate_sample_export('locations', seed=9) == generate_sample_export('locations', seed=9)
        assert generate_sample_export('locations', seed=9) != generate_sample_export('locations', seed=10)

    def test_sample_day_layout(self):
        df = generate_sample_day(seed=0, dwell_minutes=30, travel_minutes=20)

        assert df['visit'].nunique() == len(SEOUL_LANDMARKS)
        assert (df.groupby('visit').size() == 6).all()
        assert df['timestamp'].iloc[0] == datetime(2024, 5, 4, 9, 0, tzinfo=KST)

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            generate_sample_export('gpx')


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
