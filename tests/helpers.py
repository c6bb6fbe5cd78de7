"""Geometry and feature builders shared across test modules."""
from __future__ import annotations

from routeshade.geometry import destination_point
from routeshade.models import Coordinate, FeatureKind, ObstructionFeature

# Iasi, Romania (UTC+3 in summer)
IASI = Coordinate(47.1585, 27.6014)


def square(center, half_deg):
    lat, lng = center
    return [
        Coordinate(lat - half_deg, lng - half_deg),
        Coordinate(lat - half_deg, lng + half_deg),
        Coordinate(lat + half_deg, lng + half_deg),
        Coordinate(lat + half_deg, lng - half_deg),
    ]


def circle(center, radius_m, step_deg=10):
    return [destination_point(center, radius_m, b) for b in range(0, 360, step_deg)]


def make_feature(feature_id=1, kind=FeatureKind.BUILDING, polygon=None, height=20.0,
                 density=1.0, name=None):
    return ObstructionFeature(
        id=feature_id,
        kind=kind,
        polygon=polygon if polygon is not None else square(IASI, 0.0001),
        height=height,
        foliage_density=density,
        name=name,
    )
