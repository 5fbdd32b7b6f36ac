"""
End-to-end ingestion pipeline.

payload -> FormatParser -> PointNormalizer -> Deduplicator
        -> {StayPointExtractor, MovementSegmenter}

The pipeline never raises for data-shape problems. Malformed samples are
dropped and counted; an unreadable or unrecognized payload yields an empty
result whose failure_reason says why.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Callable, List, Optional

from .coordinates import METERS_PER_DEGREE
from .dedup import DEDUP_DISTANCE_DEG, DEDUP_TIME_WINDOW, Deduplicator
from .movement import MIN_MOVEMENT_DEG, MovementSegment, MovementSegmenter
from .normalizer import NormalizedPoint, PointNormalizer, utc_now
from .parser import ExportFormat, FormatParser
from .stay_points import MIN_STAY_MINUTES, STAY_DISTANCE_DEG, StayPoint, StayPointExtractor

logger = logging.getLogger(__name__)


INVALID_JSON = "invalid JSON payload"
NO_LOCATION_DATA = "no location data found"


@dataclass(frozen=True)
class EngineConfig:
    """Thresholds and options for one pipeline run."""
    dedup_distance_deg: float = DEDUP_DISTANCE_DEG
    dedup_time_window: timedelta = DEDUP_TIME_WINDOW
    stay_distance_deg: float = STAY_DISTANCE_DEG
    min_stay_minutes: int = MIN_STAY_MINUTES
    min_movement_deg: float = MIN_MOVEMENT_DEG
    meters_per_degree: float = METERS_PER_DEGREE
    # Inclusive UTC day range; None means unbounded
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    # Cap on deduplicated points kept (earliest first); None or 0 means no cap
    max_locations: Optional[int] = None
    require_timestamp: bool = True
    # Run the two extractors on a thread pool
    parallel: bool = False
    clock: Callable[[], datetime] = utc_now

    def __post_init__(self):
        if self.max_locations is not None and self.max_locations < 0:
            raise ValueError(f"max_locations must be >= 0, got {self.max_locations}")
        if self.start_date is not None and self.end_date is not None and self.start_date > self.end_date:
            raise ValueError(f"start_date {self.start_date} is after end_date {self.end_date}")


@dataclass
class EngineResult:
    """Output collections of one pipeline run plus diagnostics."""
    source_format: ExportFormat
    points: List[NormalizedPoint] = field(default_factory=list)
    stay_points: List[StayPoint] = field(default_factory=list)
    movements: List[MovementSegment] = field(default_factory=list)
    # RawPoints produced by the parser
    raw_count: int = 0
    # Samples dropped as malformed by the parser or the normalizer
    skipped_count: int = 0
    # Samples dropped by the date range, plus points past the max_locations cap
    filtered_count: int = 0
    duplicate_count: int = 0
    failure_reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failure_reason is None


def decode_payload(payload: Any) -> Any:
    """
    Decode bytes or JSON text into a JSON value.

    Already-decoded values are returned unchanged.

    Raises:
        ValueError: If the payload is not valid JSON (json.JSONDecodeError
            and UnicodeDecodeError are both ValueError subclasses)
        RecursionError: If the JSON nests deeper than the decoder can follow
    """
    if isinstance(payload, (bytes, bytearray)):
        payload = bytes(payload).decode('utf-8-sig')
    if isinstance(payload, str):
        return json.loads(payload)
    return payload


class TimelineEngine:
    """
    Runs the full ingestion pipeline on one export payload.

    The engine holds only configuration, so one instance may serve
    concurrent runs.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.parser = FormatParser()
        self.normalizer = PointNormalizer(
            require_timestamp=self.config.require_timestamp,
            clock=self.config.clock,
            start_date=self.config.start_date,
            end_date=self.config.end_date,
        )
        self.deduplicator = Deduplicator(
            distance_threshold_deg=self.config.dedup_distance_deg,
            time_window=self.config.dedup_time_window,
        )
        self.stay_extractor = StayPointExtractor(
            distance_threshold_deg=self.config.stay_distance_deg,
            min_stay_minutes=self.config.min_stay_minutes,
        )
        self.segmenter = MovementSegmenter(
            min_distance_deg=self.config.min_movement_deg,
            meters_per_degree=self.config.meters_per_degree,
        )

    def run(self, payload: Any) -> EngineResult:
        """
        Process one export payload.

        Args:
            payload: bytes, JSON text, or an already-decoded JSON value

        Returns:
            EngineResult; check ok / failure_reason before using outputs
        """
        try:
            data = decode_payload(payload)
        except (ValueError, RecursionError) as exc:
            logger.warning("Could not decode export payload: %s", exc)
            return EngineResult(source_format=ExportFormat.UNRECOGNIZED, failure_reason=INVALID_JSON)

        parsed = self.parser.parse(data)
        normalized = self.normalizer.normalize(parsed.points)

        deduplicated = self.deduplicator.deduplicate(normalized.points)
        trajectory = deduplicated
        if self.config.max_locations and len(trajectory) > self.config.max_locations:
            trajectory = trajectory[:self.config.max_locations]
        stay_points, movements = self._extract(trajectory)

        result = EngineResult(
            source_format=parsed.format,
            points=trajectory,
            stay_points=stay_points,
            movements=movements,
            raw_count=len(parsed.points),
            skipped_count=parsed.skipped + normalized.skipped,
            filtered_count=normalized.filtered_out + len(deduplicated) - len(trajectory),
            duplicate_count=len(normalized.points) - len(deduplicated),
        )
        if not trajectory:
            result.failure_reason = NO_LOCATION_DATA

        logger.info(
            "Processed %s export: %d points, %d stay points, %d movements",
            result.source_format.value, len(trajectory), len(stay_points), len(movements),
        )
        return result

    def _extract(self, trajectory: List[NormalizedPoint]):
        if not self.config.parallel:
            return self.stay_extractor.extract(trajectory), self.segmenter.segment(trajectory)

        with ThreadPoolExecutor(max_workers=2) as executor:
            stay_future = executor.submit(self.stay_extractor.extract, trajectory)
            movement_future = executor.submit(self.segmenter.segment, trajectory)
            return stay_future.result(), movement_future.result()


def process_export(payload: Any, config: Optional[EngineConfig] = None, **options) -> EngineResult:
    """
    Convenience function to run the pipeline on one payload.

    Args:
        payload: bytes, JSON text, or an already-decoded JSON value
        config: Engine configuration (defaults used if None)
        **options: EngineConfig fields overriding those of config

    Returns:
        EngineResult
    """
    if config is None:
        config = EngineConfig(**options)
    elif options:
        config = replace(config, **options)
    return TimelineEngine(config).run(payload)
