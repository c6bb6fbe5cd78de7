"""Tests for route shade analysis: fast paths, scoring, shadow buckets and debug output."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from routeshade.analyzer import (
    ShadowBucket,
    analyze_route_shade,
    estimate_arrival_offsets,
    requires_features,
)
from routeshade.config import AnalysisSettings
from routeshade.geometry import destination_point, point_in_polygon
from routeshade.models import BoundingBox, Coordinate, FeatureKind, ProfileEntry
from routeshade.shadows import project_shadow
from routeshade.solar import sun_position
from tests.helpers import IASI, circle, make_feature, square

pytestmark = pytest.mark.unit


def _short_route(start=IASI, n=3, step_deg=0.0002):
    return [Coordinate(start.lat, start.lng + i * step_deg) for i in range(n)]


class _CountingProjector:

    def __init__(self):
        self.calls = 0

    def __call__(self, feature, azimuth, altitude):
        self.calls += 1
        return project_shadow(feature, azimuth, altitude)


class _RecordingFetcher:

    def __init__(self, features=None, error=None):
        self.calls = []
        self.features = features or []
        self.error = error

    def __call__(self, bbox, when):
        self.calls.append((bbox, when))
        if self.error:
            raise self.error
        return self.features


# ---------------------------------------------------------------------------
# Fast paths
# ---------------------------------------------------------------------------

class TestFastPaths:

    @pytest.mark.parametrize("clouds", [70.5, 85, 100])
    def test_overcast_is_full_shade(self, summer_morning, clouds) -> None:
        fetcher = _RecordingFetcher()
        result = analyze_route_shade(_short_route(), summer_morning, clouds, fetcher=fetcher)
        assert result.avg_shade == 100
        assert [e.shade_level for e in result.profile] == [100, 100, 100]
        assert [e.time_offset for e in result.profile] == [0, 1, 2]
        assert fetcher.calls == []

    def test_seventy_percent_is_not_overcast(self, summer_morning) -> None:
        result = analyze_route_shade(_short_route(), summer_morning, 70, cached_features=[])
        assert result.avg_shade == 0

    def test_empty_route(self, summer_morning) -> None:
        result = analyze_route_shade([], summer_morning, 0, fetcher=_RecordingFetcher())
        assert result.avg_shade == 0
        assert result.profile == []

    def test_night_at_midpoint_is_full_shade(self, summer_night) -> None:
        fetcher = _RecordingFetcher()
        result = analyze_route_shade(_short_route(), summer_night, 0, include_debug=True,
                                     cached_features=[make_feature()], fetcher=fetcher)
        assert result.avg_shade == 100
        assert all(e.shade_level == 100 for e in result.profile)
        assert result.debug.sun_position.altitude < 0
        assert result.debug.features == []
        assert result.debug.shadows == []
        assert result.debug.bbox == BoundingBox.zero()
        assert fetcher.calls == []

    def test_night_without_debug(self, summer_night) -> None:
        result = analyze_route_shade(_short_route(), summer_night, 0, cached_features=[])
        assert result.debug is None


class TestRequiresFeatures:

    def test_daylight_needs_features(self, summer_morning) -> None:
        assert requires_features(_short_route(), summer_morning, 0)

    def test_overcast_needs_none(self, summer_morning) -> None:
        assert not requires_features(_short_route(), summer_morning, 85)

    def test_night_needs_none(self, summer_night) -> None:
        assert not requires_features(_short_route(), summer_night, 0)

    def test_empty_route_needs_none(self, summer_morning) -> None:
        assert not requires_features([], summer_morning, 0)

    def test_follows_overcast_setting(self, summer_morning) -> None:
        settings = AnalysisSettings(overcast_cloud_coverage=50)
        assert not requires_features(_short_route(), summer_morning, 60, settings=settings)


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

class TestScoring:

    def test_open_sky_is_unshaded(self) -> None:
        noon = datetime(2025, 6, 20, 10, 0, tzinfo=timezone.utc)
        assert sun_position(IASI.lat, IASI.lng, noon).altitude_deg > 45
        result = analyze_route_shade(_short_route(), noon, 0, cached_features=[])
        assert result.avg_shade == 0
        assert [e.shade_level for e in result.profile] == [0, 0, 0]

    def test_route_inside_building_shadow(self, summer_morning) -> None:
        sun = sun_position(IASI.lat, IASI.lng, summer_morning)
        assert 0 < sun.altitude_deg < 45
        shadow_bearing = (sun.compass_bearing + 180) % 360

        building = make_feature(feature_id=11, polygon=circle(IASI, 150.0), height=20.0)
        ahead = destination_point(IASI, 130.0, shadow_bearing)
        a = destination_point(ahead, 100.0, shadow_bearing + 90)
        b = destination_point(ahead, 100.0, shadow_bearing - 90)
        assert not point_in_polygon(a, building.polygon)
        assert not point_in_polygon(b, building.polygon)

        result = analyze_route_shade([a, b], summer_morning, 0, include_debug=True,
                                     cached_features=[building])
        assert [e.shade_level for e in result.profile] == [100, 100]
        assert result.avg_shade == 100
        shadow = result.debug.shadows[0]
        assert point_in_polygon(a, shadow.polygon)
        assert point_in_polygon(b, shadow.polygon)

    def test_point_on_sunny_side_is_unshaded(self, summer_morning) -> None:
        sun = sun_position(IASI.lat, IASI.lng, summer_morning)
        building = make_feature(polygon=circle(IASI, 50.0), height=20.0)
        sunny = destination_point(IASI, 80.0, sun.compass_bearing)
        result = analyze_route_shade([sunny], summer_morning, 0, cached_features=[building])
        assert result.profile == [ProfileEntry(0, 0)]

    def test_footprint_counts_at_feature_density(self, summer_morning) -> None:
        park = make_feature(kind=FeatureKind.PARK, polygon=square(IASI, 0.001),
                            height=8.0, density=0.4)
        result = analyze_route_shade([IASI], summer_morning, 0, cached_features=[park])
        assert result.profile == [ProfileEntry(0, 40)]

    def test_densest_cover_wins(self, summer_morning) -> None:
        park = make_feature(1, FeatureKind.PARK, square(IASI, 0.001), 8.0, 0.4)
        tree = make_feature(2, FeatureKind.TREE, square(IASI, 0.00003), 8.0, 0.85)
        result = analyze_route_shade([IASI], summer_morning, 0, cached_features=[park, tree])
        assert result.profile == [ProfileEntry(0, 85)]

    def test_average_rounds_half_up(self, summer_morning) -> None:
        # one point at 85, one in the open: (85 + 0) / 2 = 42.5
        tree = make_feature(2, FeatureKind.TREE, square(IASI, 0.00003), 1.0, 0.85)
        far = Coordinate(IASI.lat + 0.002, IASI.lng)
        result = analyze_route_shade([IASI, far], summer_morning, 0, cached_features=[tree])
        assert [e.shade_level for e in result.profile] == [85, 0]
        assert result.avg_shade == 43

    def test_nightfall_partway_along_route(self) -> None:
        start = datetime(2025, 6, 20, 17, 0, tzinfo=timezone.utc)
        route = [Coordinate(IASI.lat + i * 0.001, IASI.lng) for i in range(3)]
        assert sun_position(route[1].lat, route[1].lng, start).is_daylight
        result = analyze_route_shade(route, start, 0, total_duration_s=4 * 3600,
                                     cached_features=[])
        assert [e.shade_level for e in result.profile] == [0, 100, 100]
        assert result.avg_shade == 67

    def test_identical_inputs_identical_output(self, summer_morning) -> None:
        features = [make_feature(1, polygon=circle(IASI, 40.0)),
                    make_feature(2, FeatureKind.TREE, square(IASI, 0.00003), 8.0, 0.6)]
        route = _short_route(n=6, step_deg=0.0001)
        first = analyze_route_shade(route, summer_morning, 10, include_debug=True,
                                    cached_features=features)
        second = analyze_route_shade(route, summer_morning, 10, include_debug=True,
                                     cached_features=features)
        assert first == second


# ---------------------------------------------------------------------------
# Feature source
# ---------------------------------------------------------------------------

class TestFeatureSource:

    def test_fetch_uses_expanded_bbox(self, summer_morning) -> None:
        fetcher = _RecordingFetcher()
        route = _short_route()
        analyze_route_shade(route, summer_morning, 0, fetcher=fetcher)
        bbox, when = fetcher.calls[0]
        assert when == summer_morning
        assert bbox.north == pytest.approx(max(p.lat for p in route) + 0.003)
        assert bbox.west == pytest.approx(min(p.lng for p in route) - 0.003)

    def test_cached_features_skip_fetch(self, summer_morning) -> None:
        fetcher = _RecordingFetcher()
        analyze_route_shade(_short_route(), summer_morning, 0, cached_features=[], fetcher=fetcher)
        assert fetcher.calls == []

    def test_fetch_failure_means_open_sky(self, summer_morning) -> None:
        fetcher = _RecordingFetcher(error=RuntimeError("overpass down"))
        result = analyze_route_shade(_short_route(), summer_morning, 0, fetcher=fetcher)
        assert result.avg_shade == 0
        assert len(result.profile) == 3

    def test_custom_margin(self, summer_morning) -> None:
        settings = AnalysisSettings(bbox_margin_deg=0.01)
        result = analyze_route_shade(_short_route(), summer_morning, 0, include_debug=True,
                                     cached_features=[], settings=settings)
        assert result.debug.bbox.north == pytest.approx(IASI.lat + 0.01)


# ---------------------------------------------------------------------------
# Shadow buckets
# ---------------------------------------------------------------------------

class TestShadowBuckets:

    def test_short_walk_projects_once(self, summer_morning) -> None:
        features = [make_feature(i, polygon=square(Coordinate(IASI.lat + i * 0.0005, IASI.lng), 0.0001))
                    for i in range(4)]
        projector = _CountingProjector()
        analyze_route_shade(_short_route(n=5), summer_morning, 0,
                            cached_features=features, projector=projector)
        assert projector.calls == len(features)

    def test_long_walk_reprojects(self, summer_morning) -> None:
        features = [make_feature(1), make_feature(2)]
        projector = _CountingProjector()
        analyze_route_shade(_short_route(n=5), summer_morning, 0, total_duration_s=3 * 3600,
                            cached_features=features, projector=projector)
        assert projector.calls > len(features)
        assert projector.calls % len(features) == 0

    def test_bucket_threshold(self, summer_morning) -> None:
        start_sun = sun_position(IASI.lat, IASI.lng, summer_morning)
        projector = _CountingProjector()
        bucket = ShadowBucket([make_feature()], start_sun, projector)
        assert not bucket.refresh_if_moved(start_sun, 2.0)
        later = sun_position(IASI.lat, IASI.lng, summer_morning.replace(hour=8))
        assert bucket.refresh_if_moved(later, 2.0)
        assert bucket.refreshes == 1
        assert bucket.sun == later
        assert projector.calls == 2

    def test_debug_keeps_initial_bucket(self, summer_morning) -> None:
        features = [make_feature(1)]
        result = analyze_route_shade(_short_route(), summer_morning, 0, include_debug=True,
                                     total_duration_s=3 * 3600, cached_features=features)
        initial = sun_position(*_short_route()[1], summer_morning)
        assert result.debug.sun_position == initial
        assert result.debug.shadows[0].bearing_deg == pytest.approx(
            (initial.compass_bearing + 180) % 360)


# ---------------------------------------------------------------------------
# Debug snapshot and timing
# ---------------------------------------------------------------------------

class TestDebugSnapshot:

    def test_contents(self, summer_morning) -> None:
        features = [make_feature(1, polygon=square(IASI, 0.0001)),
                    make_feature(2, polygon=square(IASI, 0.00005))]
        result = analyze_route_shade(_short_route(), summer_morning, 0, include_debug=True,
                                     cached_features=features)
        debug = result.debug
        assert debug.features == features
        assert [s.feature_id for s in debug.shadows] == [1, 2]
        assert len(debug.unified_shadows) == 1
        assert debug.unified_shadows[0][0] == debug.unified_shadows[0][-1]

    def test_absent_unless_requested(self, summer_morning) -> None:
        result = analyze_route_shade(_short_route(), summer_morning, 0, cached_features=[])
        assert result.debug is None


class TestArrivalOffsets:

    def test_proportional_to_distance(self) -> None:
        route = [Coordinate(0, 0), Coordinate(0.001, 0), Coordinate(0.003, 0)]
        assert estimate_arrival_offsets(route, total_duration_s=300) == pytest.approx([0, 100, 300])

    def test_walking_speed_default(self) -> None:
        route = [Coordinate(0, 0), Coordinate(0.001, 0)]
        offsets = estimate_arrival_offsets(route, walking_speed=1.4)
        assert offsets[-1] == pytest.approx(111.32 / 1.4, rel=1e-3)

    def test_single_point(self) -> None:
        assert estimate_arrival_offsets([Coordinate(0, 0)], total_duration_s=60) == [0.0]
