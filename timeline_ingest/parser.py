"""
Location-history export parser.

Detects which export schema a decoded JSON value matches and flattens it
into RawPoint samples. Recognized shapes, in priority order:
- SEGMENTS: {"semanticSegments": [{"timelinePath": [{"point", "time"}], ...}]}
- LOCATIONS: {"locations": [...]} already shaped as location entries
- TIMELINE_OBJECTS: {"timelineObjects": [{"placeVisit"}, {"activitySegment"}]}
- BARE_ARRAY: a top-level list of location entries
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional

from .coordinates import parse_coordinate_string

logger = logging.getLogger(__name__)


class ExportFormat(Enum):
    """Export schemas the parser recognizes."""
    SEGMENTS = "semantic_segments"
    LOCATIONS = "locations"
    TIMELINE_OBJECTS = "timeline_objects"
    BARE_ARRAY = "bare_array"
    UNRECOGNIZED = "unrecognized"


def coerce_float(value: Any) -> Optional[float]:
    """Coerce a JSON number or numeric string to float; None otherwise."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _to_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


@dataclass(frozen=True)
class RawPoint:
    """
    A single sample as found in an export, before normalization.

    Coordinates may be E7 integers or decimal degrees; the timestamp may be
    an ISO-8601 string or epoch milliseconds. Any field may be missing.
    """
    latitude_e7: Optional[float] = None
    longitude_e7: Optional[float] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp: Optional[str] = None
    timestamp_ms: Optional[Any] = None
    address: Optional[str] = None
    accuracy: Optional[float] = None
    source: str = "passthrough"

    @property
    def has_coordinates(self) -> bool:
        lat = self.latitude_e7 if self.latitude_e7 is not None else self.latitude
        lon = self.longitude_e7 if self.longitude_e7 is not None else self.longitude
        return lat is not None and lon is not None

    @property
    def has_timestamp(self) -> bool:
        return self.timestamp is not None or self.timestamp_ms is not None

    @classmethod
    def from_mapping(cls, entry: Mapping[str, Any], source: str = "passthrough") -> Optional["RawPoint"]:
        """
        Build a RawPoint from a loosely-shaped location entry.

        Accepts E7 keys (latitudeE7/longitudeE7), decimal keys
        (latitude/longitude), a "point" coordinate string, and timestamps
        under timestamp/time (ISO) or timestampMs (epoch ms).

        Returns:
            RawPoint, or None if a "point" string is present but invalid
        """
        latitude = coerce_float(entry.get('latitude'))
        longitude = coerce_float(entry.get('longitude'))

        point_text = entry.get('point')
        if point_text is not None and (latitude is None or longitude is None):
            coords = parse_coordinate_string(point_text)
            if coords is None:
                return None
            latitude, longitude = coords

        timestamp_ms = entry.get('timestampMs')
        if isinstance(timestamp_ms, bool):
            timestamp_ms = None

        return cls(
            latitude_e7=coerce_float(entry.get('latitudeE7')),
            longitude_e7=coerce_float(entry.get('longitudeE7')),
            latitude=latitude,
            longitude=longitude,
            timestamp=_to_text(entry.get('timestamp')) or _to_text(entry.get('time')),
            timestamp_ms=timestamp_ms,
            address=_to_text(entry.get('address')),
            accuracy=coerce_float(entry.get('accuracy')),
            source=source,
        )


@dataclass
class ParseResult:
    """Result of parsing one export payload."""
    format: ExportFormat
    points: List[RawPoint] = field(default_factory=list)
    # Entries recognized as samples but dropped (bad coordinate text, non-objects)
    skipped: int = 0

    @property
    def recognized(self) -> bool:
        return self.format is not ExportFormat.UNRECOGNIZED


class FormatParser:
    """
    Parses location-history exports by trying each known schema in turn.

    Each attempt returns a ParseResult when the payload has that schema's
    top-level shape, or None to let the next attempt run. The first
    attempt that recognizes the payload wins, even if it yields no points.
    """

    def __init__(self):
        self._attempts: List[Callable[[Any], Optional[ParseResult]]] = [
            self._parse_segments,
            self._parse_locations,
            self._parse_timeline_objects,
            self._parse_bare_array,
        ]

    def parse(self, data: Any) -> ParseResult:
        """
        Detect the export schema and extract raw points.

        Args:
            data: Decoded JSON value (dict, list, or anything else)

        Returns:
            ParseResult; format is UNRECOGNIZED with no points when no
            schema matched
        """
        for attempt in self._attempts:
            result = attempt(data)
            if result is not None:
                logger.debug(
                    "Detected %s export: %d points, %d skipped",
                    result.format.value, len(result.points), result.skipped,
                )
                return result

        logger.warning("Unrecognized export payload of type %s", type(data).__name__)
        return ParseResult(format=ExportFormat.UNRECOGNIZED)

    @staticmethod
    def _list_field(data: Any, key: str) -> Optional[list]:
        if isinstance(data, Mapping) and isinstance(data.get(key), list):
            return data[key]
        return None

    def _parse_segments(self, data: Any) -> Optional[ParseResult]:
        segments = self._list_field(data, 'semanticSegments')
        if segments is None:
            return None

        result = ParseResult(format=ExportFormat.SEGMENTS)
        for segment in segments:
            if not isinstance(segment, Mapping):
                result.skipped += 1
                continue

            path = segment.get('timelinePath')
            path = path if isinstance(path, list) else []

            for path_point in path:
                if not isinstance(path_point, Mapping):
                    result.skipped += 1
                    continue
                if not path_point.get('point') or not path_point.get('time'):
                    continue
                coords = parse_coordinate_string(path_point['point'])
                if coords is None:
                    logger.debug("Skipping invalid coordinate string %r", path_point['point'])
                    result.skipped += 1
                    continue
                result.points.append(RawPoint(
                    latitude=coords[0],
                    longitude=coords[1],
                    timestamp=_to_text(path_point['time']),
                    source="timelinePath",
                ))

            # Segment start time paired with the first path coordinate; only
            # segments with both bounds are treated as timed
            start_time = _to_text(segment.get('startTime'))
            end_time = _to_text(segment.get('endTime'))
            first = path[0] if path and isinstance(path[0], Mapping) else None
            if start_time and end_time and first is not None and first.get('point'):
                coords = parse_coordinate_string(first['point'])
                if coords is not None:
                    result.points.append(RawPoint(
                        latitude=coords[0],
                        longitude=coords[1],
                        timestamp=start_time,
                        source="segmentStart",
                    ))

        return result

    def _parse_locations(self, data: Any) -> Optional[ParseResult]:
        entries = self._list_field(data, 'locations')
        if entries is None:
            return None
        return self._parse_entries(entries, ExportFormat.LOCATIONS)

    def _parse_timeline_objects(self, data: Any) -> Optional[ParseResult]:
        objects = self._list_field(data, 'timelineObjects')
        if objects is None:
            return None

        result = ParseResult(format=ExportFormat.TIMELINE_OBJECTS)
        for obj in objects:
            if not isinstance(obj, Mapping):
                result.skipped += 1
                continue

            visit = obj.get('placeVisit')
            if isinstance(visit, Mapping) and isinstance(visit.get('location'), Mapping):
                location = visit['location']
                result.points.append(RawPoint(
                    latitude_e7=coerce_float(location.get('latitudeE7')),
                    longitude_e7=coerce_float(location.get('longitudeE7')),
                    timestamp=_to_text(_duration_start(visit)),
                    address=_to_text(location.get('address')) or _to_text(location.get('name')),
                    source="placeVisit",
                ))

            activity = obj.get('activitySegment')
            if isinstance(activity, Mapping) and isinstance(activity.get('startLocation'), Mapping):
                start = activity['startLocation']
                result.points.append(RawPoint(
                    latitude_e7=coerce_float(start.get('latitudeE7')),
                    longitude_e7=coerce_float(start.get('longitudeE7')),
                    timestamp=_to_text(_duration_start(activity)),
                    source="activitySegment",
                ))

        return result

    def _parse_bare_array(self, data: Any) -> Optional[ParseResult]:
        if not isinstance(data, list):
            return None
        return self._parse_entries(data, ExportFormat.BARE_ARRAY)

    @staticmethod
    def _parse_entries(entries: list, export_format: ExportFormat) -> ParseResult:
        result = ParseResult(format=export_format)
        for entry in entries:
            raw = RawPoint.from_mapping(entry) if isinstance(entry, Mapping) else None
            if raw is None:
                result.skipped += 1
                continue
            result.points.append(raw)
        return result


def _duration_start(obj: Mapping[str, Any]) -> Any:
    duration = obj.get('duration')
    if isinstance(duration, Mapping):
        return duration.get('startTimestamp')
    return None


def parse_export(data: Any) -> ParseResult:
    """
    Convenience function to parse a decoded export payload.

    Args:
        data: Decoded JSON value

    Returns:
        ParseResult with the detected format and raw points
    """
    return FormatParser().parse(data)
