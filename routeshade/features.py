"""
Obstruction features: construction rules per kind, seasonal foliage
density, and ingestion of Overpass JSON or cached feature records.
"""

import json
import math
import os
from collections import Counter
from dataclasses import asdict

from loguru import logger

from .geometry import buffer_line, distinct_vertices
from .models import BoundingBox, Coordinate, FeatureKind, ObstructionFeature, RouteShadeError

# ── Construction constants ────────────────────────────────────────────
LEVEL_HEIGHT_M = 3.5
DEFAULT_BUILDING_HEIGHT = 10.0
DEFAULT_TREE_HEIGHT = 8.0
DEFAULT_TREE_ROW_HEIGHT = 10.0
PARK_HEIGHT = 8.0
FOREST_HEIGHT = 15.0
COVERED_HEIGHT = 4.0

TREE_HALF_WIDTH_DEG = 0.00003    # ~3-4m
TREE_ROW_WIDTH_DEG = 0.00004     # ~4-5m
COVERED_WIDTH_DEG = 0.00003      # ~3m

TREE_ROW_DENSITY_FACTOR = 0.9
PARK_DENSITY_FACTOR = 0.4        # parks have gaps
FOREST_DENSITY_FACTOR = 0.85

# month -> foliage coefficient, Northern-hemisphere cycle
SEASONAL_DENSITY = {
    1: 0.15, 2: 0.15, 3: 0.3, 4: 0.6, 5: 0.85, 6: 1.0,
    7: 1.0, 8: 1.0, 9: 0.85, 10: 0.6, 11: 0.3, 12: 0.15,
}


def seasonal_foliage_density(when):
    """Foliage coefficient in [0, 1] for the calendar month of ``when``."""
    return SEASONAL_DENSITY[when.month]


def parse_height(value):
    """Parse an OSM-style height tag ("12", "12.5", "12 m"). None if unusable."""
    if value is None:
        return None
    try:
        height = float(str(value).replace('m', '').strip())
    except ValueError:
        return None
    return height if math.isfinite(height) else None


def _valid(polygon):
    return distinct_vertices(polygon) >= 3


# ── Builders ──────────────────────────────────────────────────────────

def building_feature(feature_id, polygon, height_tag=None, levels_tag=None, name=None):
    height = parse_height(height_tag)
    if height is None:
        levels = parse_height(levels_tag)
        height = levels * LEVEL_HEIGHT_M if levels is not None else DEFAULT_BUILDING_HEIGHT
    polygon = [Coordinate(*p) for p in polygon]
    if not _valid(polygon):
        return None
    return ObstructionFeature(feature_id, FeatureKind.BUILDING, polygon, height, 1.0,
                              name or f"Building #{feature_id}")


def tree_feature(feature_id, point, seasonal_density, height_tag=None, name=None):
    """Square footprint around a single tree.

    A height tag that is present but unparseable drops the tree.
    """
    if height_tag is None:
        height = DEFAULT_TREE_HEIGHT
    else:
        height = parse_height(height_tag)
        if height is None:
            return None
    lat, lng = point
    r = TREE_HALF_WIDTH_DEG
    polygon = [
        Coordinate(lat + r, lng + r),
        Coordinate(lat - r, lng + r),
        Coordinate(lat - r, lng - r),
        Coordinate(lat + r, lng - r),
    ]
    return ObstructionFeature(feature_id, FeatureKind.TREE, polygon, height,
                              seasonal_density, name or f"Tree #{feature_id}")


def tree_row_feature(feature_id, line, seasonal_density, height_tag=None, name=None):
    height = parse_height(height_tag)
    if height is None:
        height = DEFAULT_TREE_ROW_HEIGHT
    polygon = buffer_line(line, TREE_ROW_WIDTH_DEG)
    if not _valid(polygon):
        return None
    return ObstructionFeature(feature_id, FeatureKind.TREE_ROW, polygon, height,
                              seasonal_density * TREE_ROW_DENSITY_FACTOR,
                              name or f"Tree Row #{feature_id}")


def park_feature(feature_id, polygon, seasonal_density, name=None):
    polygon = [Coordinate(*p) for p in polygon]
    if not _valid(polygon):
        return None
    return ObstructionFeature(feature_id, FeatureKind.PARK, polygon, PARK_HEIGHT,
                              seasonal_density * PARK_DENSITY_FACTOR,
                              name or f"Park #{feature_id}")


def forest_feature(feature_id, polygon, seasonal_density, name=None):
    polygon = [Coordinate(*p) for p in polygon]
    if not _valid(polygon):
        return None
    return ObstructionFeature(feature_id, FeatureKind.FOREST, polygon, FOREST_HEIGHT,
                              seasonal_density * FOREST_DENSITY_FACTOR,
                              name or f"Forest #{feature_id}")


def covered_feature(feature_id, line, name=None):
    polygon = buffer_line(line, COVERED_WIDTH_DEG)
    if not _valid(polygon):
        return None
    return ObstructionFeature(feature_id, FeatureKind.COVERED, polygon, COVERED_HEIGHT, 1.0,
                              name or f"Covered Path #{feature_id}")


# ── Overpass JSON ─────────────────────────────────────────────────────

def _way_kind(tags):
    """Shade kind of a tagged way, or None if it casts no shade."""
    if tags.get('building'):
        return FeatureKind.BUILDING
    if tags.get('natural') == 'tree_row':
        return FeatureKind.TREE_ROW
    if tags.get('leisure') in ('park', 'garden'):
        return FeatureKind.PARK
    if tags.get('landuse') == 'forest' or tags.get('natural') == 'wood':
        return FeatureKind.FOREST
    if tags.get('covered') == 'yes' and tags.get('highway'):
        return FeatureKind.COVERED
    return None


def _build_way(kind, way_id, coords, tags, seasonal_density):
    name = tags.get('name')
    if kind is FeatureKind.BUILDING:
        return building_feature(way_id, coords, tags.get('height'),
                                tags.get('building:levels'), name)
    if kind is FeatureKind.TREE_ROW:
        return tree_row_feature(way_id, coords, seasonal_density, tags.get('height'), name)
    if kind is FeatureKind.PARK:
        return park_feature(way_id, coords, seasonal_density, name)
    if kind is FeatureKind.FOREST:
        return forest_feature(way_id, coords, seasonal_density, name)
    return covered_feature(way_id, coords, name)


def features_from_overpass(payload, when):
    """
    Parse an Overpass ``out body; >; out skel`` response into features.

    Nodes are cached first (and single trees emitted), then tagged ways are
    resolved against the node cache and classified. Elements that cannot
    form a footprint are dropped one by one.
    """
    seasonal_density = seasonal_foliage_density(when)
    elements = payload.get('elements') or []
    nodes = {}
    features = []

    for el in elements:
        if el.get('type') != 'node' or 'lat' not in el or 'lon' not in el:
            continue
        nodes[el['id']] = Coordinate(el['lat'], el['lon'])
        tags = el.get('tags') or {}
        if tags.get('natural') == 'tree':
            tree = tree_feature(el['id'], nodes[el['id']], seasonal_density,
                                tags.get('height'), tags.get('name'))
            if tree is None:
                logger.debug(f"Dropped tree {el['id']}: unparseable height {tags.get('height')!r}")
            else:
                features.append(tree)

    for el in elements:
        if el.get('type') != 'way' or not el.get('nodes'):
            continue
        kind = _way_kind(el.get('tags') or {})
        if kind is None:
            continue
        coords = [nodes[nid] for nid in el['nodes'] if nid in nodes]
        # lines need two nodes; area kinds are held to three distinct vertices by the builders
        if len(coords) < 2:
            logger.debug(f"Dropped way {el['id']}: {len(coords)} resolved nodes")
            continue
        feature = _build_way(kind, el['id'], coords, el['tags'], seasonal_density)
        if feature is None:
            logger.debug(f"Dropped {kind.value} way {el['id']}: degenerate footprint")
            continue
        features.append(feature)

    return features


# ── Cached records ────────────────────────────────────────────────────

def features_from_records(records):
    """Build features from host-cached dict records, skipping bad ones."""
    features = []
    for record in records:
        try:
            feature = ObstructionFeature.from_record(record)
        except RouteShadeError as e:
            logger.warning(f"Skipping feature record: {e}")
            continue
        except (KeyError, TypeError, ValueError, IndexError) as e:
            logger.warning(f"Skipping malformed feature record {record.get('id', '?')}: {e!r}")
            continue
        if not _valid(feature.polygon):
            logger.debug(f"Dropped feature {feature.id}: fewer than 3 distinct vertices")
            continue
        features.append(feature)
    return features


def summarize_features(features):
    """Count of features per kind, every kind present (zero if absent)."""
    counts = Counter(f.kind for f in features)
    return {kind.value: counts.get(kind, 0) for kind in FeatureKind}


# ── Feature cache file ────────────────────────────────────────────────

def load_feature_cache(path, bbox, when):
    """
    Features cached for an area covering ``bbox`` in the month of ``when``.

    Returns None when the file is missing, unreadable, or was written for
    another area or month (seasonal density is baked into cached features).
    """
    if not path or not os.path.exists(path):
        return None
    try:
        with open(path, 'r') as f:
            data = json.load(f)
        cached_bbox = BoundingBox(**data['bbox'])
        month = int(data['month'])
        records = data['features']
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning(f"Ignoring feature cache {path}: {e!r}")
        return None

    if month != when.month:
        logger.info(f"Feature cache {path} is for month {month}, need {when.month}")
        return None
    if not cached_bbox.covers(bbox):
        logger.info(f"Feature cache {path} does not cover the route area")
        return None
    return features_from_records(records)


def save_feature_cache(path, bbox, when, features):
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, 'w') as f:
        json.dump({
            'bbox': asdict(bbox),
            'month': when.month,
            'features': [feat.to_record() for feat in features],
        }, f)
    return path
