"""
Geometry helpers shared by feature construction, shadow projection and
route analysis.

Polygons are plain lists of ``Coordinate`` (lat, lng). Containment and hull
tests treat (lat, lng) as planar coordinates, which is fine at city scale.
Distances and destination points use great-circle math on a sphere.
"""

import math

import numpy as np
from pyproj import Geod

from .config import EARTH_RADIUS_M
from .models import Coordinate

GEOD = Geod(a=EARTH_RADIUS_M, b=EARTH_RADIUS_M)


# ── Convex hull (Graham scan) ─────────────────────────────────────────

def _cross(o, a, b):
    """Z component of (a - o) x (b - o) with lng as x and lat as y."""
    return (a.lng - o.lng) * (b.lat - o.lat) - (a.lat - o.lat) * (b.lng - o.lng)


def convex_hull(points):
    """
    Convex hull of a point set by Graham scan.

    The pivot is the lowest-latitude point (lowest longitude on ties). The
    remaining points are ordered by polar angle around the pivot, closer
    points first on equal angles. Collinear points are dropped from the
    boundary. Fewer than three points are returned unchanged.
    """
    points = [Coordinate(*p) for p in points]
    if len(points) < 3:
        return points

    pivot_idx = 0
    for i, p in enumerate(points[1:], start=1):
        lowest = points[pivot_idx]
        if p.lat < lowest.lat or (p.lat == lowest.lat and p.lng < lowest.lng):
            pivot_idx = i
    pivot = points[pivot_idx]

    rest = points[:pivot_idx] + points[pivot_idx + 1:]
    rest.sort(key=lambda p: (
        math.atan2(p.lat - pivot.lat, p.lng - pivot.lng),
        (p.lat - pivot.lat) ** 2 + (p.lng - pivot.lng) ** 2,
    ))

    hull = [pivot]
    for p in rest:
        while len(hull) > 1 and _cross(hull[-2], hull[-1], p) <= 0:
            hull.pop()
        hull.append(p)
    return hull


# ── Point in polygon ──────────────────────────────────────────────────

def point_in_polygon(point, polygon):
    """Ray-casting parity test. Works on open or closed rings."""
    lat, lng = point[0], point[1]
    inside = False
    j = len(polygon) - 1
    for i in range(len(polygon)):
        xi, yi = polygon[i][0], polygon[i][1]
        xj, yj = polygon[j][0], polygon[j][1]
        if (yi > lng) != (yj > lng):
            if lat < (xj - xi) * (lng - yi) / (yj - yi) + xi:
                inside = not inside
        j = i
    return inside


# ── Great-circle helpers ──────────────────────────────────────────────

def destination_points(points, distance_m, bearing_deg):
    """Move every point ``distance_m`` along ``bearing_deg`` (clockwise from north)."""
    if not points:
        return []
    lats = np.array([p[0] for p in points], dtype=float)
    lngs = np.array([p[1] for p in points], dtype=float)
    n = len(points)
    lon2, lat2, _ = GEOD.fwd(lngs, lats,
                             np.full(n, bearing_deg, dtype=float),
                             np.full(n, distance_m, dtype=float))
    return [Coordinate(float(la), float(lo)) for la, lo in zip(lat2, lon2)]


def destination_point(origin, distance_m, bearing_deg):
    return destination_points([origin], distance_m, bearing_deg)[0]


def distance_and_bearing(a, b):
    """Great-circle distance (m) and initial bearing (deg, [0, 360)) from a to b."""
    az12, _, dist = GEOD.inv(a[1], a[0], b[1], b[0])
    return dist, az12 % 360


def path_distances(points):
    """Cumulative great-circle distance in meters at each point of a path."""
    if len(points) == 0:
        return np.zeros(0)
    lats = np.array([p[0] for p in points], dtype=float)
    lngs = np.array([p[1] for p in points], dtype=float)
    if len(points) == 1:
        return np.zeros(1)
    _, _, legs = GEOD.inv(lngs[:-1], lats[:-1], lngs[1:], lats[1:])
    return np.concatenate([[0.0], np.cumsum(legs)])


# ── Line buffering ────────────────────────────────────────────────────

def buffer_line(line, width):
    """
    Turn a polyline into a polygon ring by offsetting each vertex along
    the normal of its neighbours' direction.

    ``width`` is in degrees. No miter or bevel correction at sharp turns.
    """
    line = [Coordinate(*p) for p in line]
    if len(line) < 2:
        return line

    left = []
    right = []
    for i, curr in enumerate(line):
        prev = line[i - 1] if i > 0 else curr
        nxt = line[i + 1] if i < len(line) - 1 else curr
        dx = nxt.lng - prev.lng
        dy = nxt.lat - prev.lat
        length = math.hypot(dx, dy) or 1.0
        # Left-hand unit normal of (dx, dy), scaled to width
        off_lat = dx / length * width
        off_lng = -dy / length * width
        left.append(Coordinate(curr.lat + off_lat, curr.lng + off_lng))
        right.append(Coordinate(curr.lat - off_lat, curr.lng - off_lng))
    return left + right[::-1]


def close_ring(ring):
    ring = [Coordinate(*p) for p in ring]
    if ring and ring[0] != ring[-1]:
        ring.append(ring[0])
    return ring


def distinct_vertices(ring):
    """Number of distinct vertices in a ring (closing duplicate ignored)."""
    return len(set(Coordinate(*p) for p in ring))
