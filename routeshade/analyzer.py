"""
Route shade analysis.

Walks a route point by point, estimating when the walker reaches each point,
and scores each point 0-100 by the densest shadow or footprint covering it.
Feature shadows are projected once per sun-position bucket and only
re-projected when the sun has moved past a threshold.
"""

import math
from datetime import timedelta
from functools import partial

from loguru import logger

from .config import DEFAULT_SETTINGS
from .geometry import path_distances, point_in_polygon
from .models import (
    BoundingBox,
    Coordinate,
    DebugSnapshot,
    ProfileEntry,
    ShadeAnalysisResult,
)
from .overpass import fetch_obstruction_features
from .shadows import project_shadow, unify_shadows
from .solar import sun_position

FULL_SHADE = 100


def _round_half_up(value):
    return int(math.floor(value + 0.5))


def _angle_delta(a, b):
    """Smallest absolute difference between two angles in degrees."""
    d = abs(a - b) % 360
    return 360 - d if d > 180 else d


class ShadowBucket:
    """Per-feature shadows for one cached sun position."""

    def __init__(self, features, sun, projector):
        self.features = features
        self.projector = projector
        self.refreshes = 0
        self._project(sun)

    def _project(self, sun):
        self.sun = sun
        # aligned with self.features; None where a feature casts no shadow
        self.shadows = [self.projector(f, sun.azimuth, sun.altitude) for f in self.features]

    def refresh_if_moved(self, sun, threshold_deg):
        """Re-project all shadows if ``sun`` drifted past the threshold."""
        if (_angle_delta(sun.azimuth_deg, self.sun.azimuth_deg) > threshold_deg
                or abs(sun.altitude_deg - self.sun.altitude_deg) > threshold_deg):
            self._project(sun)
            self.refreshes += 1
            return True
        return False

    def shade_level(self, point):
        """Densest cover at ``point`` in percent, footprints and shadows alike."""
        level = 0.0
        for feature, shadow in zip(self.features, self.shadows):
            if point_in_polygon(point, feature.polygon):
                level = max(level, feature.foliage_density * 100)
            if shadow is not None and point_in_polygon(point, shadow.polygon):
                level = max(level, shadow.opacity * 100)
            if level >= FULL_SHADE:
                break
        return level


def estimate_arrival_offsets(points, total_duration_s=None, walking_speed=None):
    """
    Seconds from the start at which each point is reached.

    Time is spread over the route in proportion to cumulative great-circle
    distance. Without a known duration, the walking speed sets it.
    """
    walking_speed = walking_speed or DEFAULT_SETTINGS.walking_speed_mps
    distances = path_distances(points)
    if len(distances) == 0:
        return []
    total_distance = float(distances[-1]) or 1.0
    total_seconds = total_duration_s or total_distance / walking_speed
    return [float(d) / total_distance * total_seconds for d in distances]


def requires_features(route_points, start, cloud_coverage, settings=None):
    """
    Whether ``analyze_route_shade`` will look at obstruction features.

    False when the route is empty, the sky is overcast, or the sun is below
    the horizon at the route midpoint at departure. Hosts use this to skip a
    feature fetch.
    """
    settings = settings or DEFAULT_SETTINGS
    if cloud_coverage > settings.overcast_cloud_coverage or not route_points:
        return False
    center = Coordinate(*route_points[len(route_points) // 2])
    return sun_position(center.lat, center.lng, start).is_daylight


def _fetch_features(fetcher, bbox, when):
    try:
        features = fetcher(bbox, when)
    except Exception as e:
        logger.warning(f"Feature fetch failed, assuming open sky: {e}")
        return []
    logger.info(f"Fetched {len(features)} shade features")
    return features


def _uniform(points, level):
    return [ProfileEntry(i, level) for i in range(len(points))]


def analyze_route_shade(route_points, start, cloud_coverage, include_debug=False,
                        total_duration_s=None, cached_features=None,
                        fetcher=None, projector=None, settings=None):
    """
    Estimate shade along a walking route.

    Parameters
    ----------
    route_points : sequence of (lat, lng)
        Ordered path.
    start : datetime
        Departure time; naive values are UTC.
    cloud_coverage : float
        Percent. Above the overcast threshold every point is fully shaded.
    include_debug : bool
        Attach a ``DebugSnapshot`` of the initial shadow bucket.
    total_duration_s : float, optional
        Known traversal time; otherwise derived from walking speed.
    cached_features : list[ObstructionFeature], optional
        Features from a previous fetch for the same area and date. An empty
        list counts as cached and skips the fetch.
    fetcher : callable, optional
        ``(bbox, when) -> list[ObstructionFeature]``, defaults to Overpass.
    projector : callable, optional
        ``(feature, azimuth, altitude) -> Shadow | None``.
    settings : AnalysisSettings, optional

    Returns
    -------
    ShadeAnalysisResult
    """
    settings = settings or DEFAULT_SETTINGS
    fetcher = fetcher or fetch_obstruction_features
    projector = projector or partial(project_shadow, max_length=settings.max_shadow_length_m)
    points = [Coordinate(*p) for p in route_points]

    if cloud_coverage > settings.overcast_cloud_coverage:
        return ShadeAnalysisResult(avg_shade=FULL_SHADE, profile=_uniform(points, FULL_SHADE))

    if not points:
        return ShadeAnalysisResult(avg_shade=0, profile=[])

    center = points[len(points) // 2]
    initial_sun = sun_position(center.lat, center.lng, start)

    if not initial_sun.is_daylight:
        debug = None
        if include_debug:
            debug = DebugSnapshot(features=[], shadows=[], sun_position=initial_sun,
                                  bbox=BoundingBox.zero())
        return ShadeAnalysisResult(avg_shade=FULL_SHADE, profile=_uniform(points, FULL_SHADE),
                                   debug=debug)

    bbox = BoundingBox.around(points, settings.bbox_margin_deg)

    if cached_features is not None:
        features = list(cached_features)
        logger.info(f"Using {len(features)} cached shade features")
    else:
        features = _fetch_features(fetcher, bbox, start)

    offsets = estimate_arrival_offsets(points, total_duration_s, settings.walking_speed_mps)

    bucket = ShadowBucket(features, initial_sun, projector)
    initial_shadows = bucket.shadows

    total_shade = 0.0
    profile = []
    for i, point in enumerate(points):
        point_sun = sun_position(point.lat, point.lng, start + timedelta(seconds=offsets[i]))

        if not point_sun.is_daylight:
            total_shade += FULL_SHADE
            profile.append(ProfileEntry(i, FULL_SHADE))
            continue

        bucket.refresh_if_moved(point_sun, settings.recompute_threshold_deg)
        level = bucket.shade_level(point)
        total_shade += level
        profile.append(ProfileEntry(i, _round_half_up(level)))

    if bucket.refreshes:
        logger.debug(f"Shadows re-projected {bucket.refreshes} times along {len(points)} points")

    result = ShadeAnalysisResult(
        avg_shade=_round_half_up(total_shade / len(points)),
        profile=profile,
    )

    if include_debug:
        shadows = [s for s in initial_shadows if s is not None]
        result.debug = DebugSnapshot(
            features=features,
            shadows=shadows,
            unified_shadows=unify_shadows(shadows),
            sun_position=initial_sun,
            bbox=bbox,
        )

    return result
