"""Shade estimation along pedestrian routes.

Obstruction features (buildings, trees, tree rows, parks, forests, covered
walkways) are projected into shadows for the sun position at each point of a
route, and every point is scored by how much shade covers it.
"""

from .analyzer import ShadowBucket, analyze_route_shade, estimate_arrival_offsets, requires_features
from .config import AnalysisSettings
from .features import features_from_overpass, features_from_records, seasonal_foliage_density
from .models import (
    BoundingBox,
    Coordinate,
    DebugSnapshot,
    FeatureFetchError,
    FeatureKind,
    ObstructionFeature,
    ProfileEntry,
    RouteShadeError,
    ShadeAnalysisResult,
    Shadow,
    SunPosition,
    UnknownFeatureKind,
)
from .overpass import fetch_obstruction_features
from .shadows import project_shadow, unify_shadows
from .solar import sun_position

__all__ = [
    'analyze_route_shade',
    'estimate_arrival_offsets',
    'requires_features',
    'ShadowBucket',
    'AnalysisSettings',
    'seasonal_foliage_density',
    'features_from_overpass',
    'features_from_records',
    'fetch_obstruction_features',
    'project_shadow',
    'unify_shadows',
    'sun_position',
    'BoundingBox',
    'Coordinate',
    'DebugSnapshot',
    'FeatureFetchError',
    'FeatureKind',
    'ObstructionFeature',
    'ProfileEntry',
    'RouteShadeError',
    'ShadeAnalysisResult',
    'Shadow',
    'SunPosition',
    'UnknownFeatureKind',
]
