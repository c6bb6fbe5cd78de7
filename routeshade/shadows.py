"""
Shadow projection for single features and union of many shadows.
"""

import math

from loguru import logger
from shapely.geometry import MultiPolygon, Polygon
from shapely.ops import unary_union

from . import config
from .geometry import close_ring, convex_hull, destination_points
from .models import Coordinate, Shadow


# ── 1. Shadow projection ──────────────────────────────────────────────

def shadow_vector(height, sun_azimuth, sun_altitude, max_length=None):
    """
    Shadow length and bearing for an object of ``height`` meters.

    Parameters
    ----------
    sun_azimuth, sun_altitude : float
        Radians; azimuth 0 = south, clockwise.
    max_length : float, optional
        Clamp for the length as the sun nears the horizon.

    Returns
    -------
    length : float
        ``height / tan(altitude)`` in meters, clamped.
    bearing : float
        Degrees clockwise from north, pointing away from the sun.
    """
    max_length = config.MAX_SHADOW_LENGTH_M if max_length is None else max_length
    tan_alt = math.tan(sun_altitude)
    length = height / tan_alt if tan_alt > 0 else max_length
    length = min(length, max_length)

    sun_bearing = (math.degrees(sun_azimuth) + 180) % 360
    shadow_bearing = (sun_bearing + 180) % 360
    return length, shadow_bearing


def project_shadow(feature, sun_azimuth, sun_altitude, max_length=None):
    """
    Shadow polygon of ``feature`` for a sun position given in radians.

    The footprint is translated along the shadow bearing and the convex hull
    of footprint plus translated vertices is taken, giving one region from
    base to tip. Concave footprints are over-covered.

    Returns None when the sun is at or below the horizon or the feature has
    no height.
    """
    if sun_altitude <= 0 or feature.height <= 0:
        return None

    length, bearing = shadow_vector(feature.height, sun_azimuth, sun_altitude, max_length)
    tips = destination_points(feature.polygon, length, bearing)
    hull = convex_hull(list(feature.polygon) + tips)
    return Shadow(
        feature_id=feature.id,
        polygon=hull,
        opacity=feature.foliage_density,
        length_m=length,
        bearing_deg=bearing,
    )


# ── 2. Shadow union ───────────────────────────────────────────────────

def _to_shapely(ring):
    return Polygon([(c.lng, c.lat) for c in close_ring(ring)])


def _rings(geom):
    if isinstance(geom, Polygon):
        polys = [geom]
    elif isinstance(geom, MultiPolygon):
        polys = list(geom.geoms)
    else:
        # GeometryCollection: keep only areal parts
        polys = [g for g in getattr(geom, 'geoms', []) if isinstance(g, Polygon)]
    return [[Coordinate(lat, lng) for lng, lat in p.exterior.coords]
            for p in polys if not p.is_empty]


def unify_shadows(shadows):
    """
    Merge shadow polygons into a minimal set of closed rings.

    Null and degenerate shadows are ignored. A single shadow comes back as
    its own (closed) ring. Any geometry failure yields an empty list.
    """
    valid = [s for s in shadows if s is not None and len(s.polygon) > 2]
    if not valid:
        return []
    if len(valid) == 1:
        return [close_ring(valid[0].polygon)]

    try:
        merged = unary_union([_to_shapely(s.polygon) for s in valid])
        if not merged.is_valid:
            merged = merged.buffer(0)
        return _rings(merged)
    except Exception as e:
        logger.warning(f"Shadow union failed, returning no unified shadows: {e}")
        return []
