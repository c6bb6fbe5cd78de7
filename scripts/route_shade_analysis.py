#!/usr/bin/env python3
"""
Route Shade Analysis
====================
Estimates how much of a walking route lies in shade when walked from a given
start time. Shadows from buildings, trees, tree rows, parks, forests and
covered walkways are projected for the sun position along the walk.

Outputs a per-point shade profile CSV and, optionally, a debug GeoJSON with
footprints, shadows and unified shadow polygons.

Usage:
    python scripts/route_shade_analysis.py route.geojson --start 2025-06-20T09:00:00+03:00
    python scripts/route_shade_analysis.py route.csv --start 2025-06-20T06:00:00 \
        --features-cache cache/features.json --debug-geojson out/debug.geojson
"""

import argparse
import os
import time
from datetime import datetime

import geopandas as gpd
import pandas as pd

from routeshade import (
    BoundingBox,
    analyze_route_shade,
    estimate_arrival_offsets,
    fetch_obstruction_features,
    requires_features,
)
from routeshade.config import DEFAULT_SETTINGS
from routeshade.export import profile_frame, save_debug_geojson
from routeshade.features import load_feature_cache, save_feature_cache, summarize_features
from routeshade.models import FeatureFetchError

OUT_DIR = os.path.join(os.path.dirname(__file__), '..', 'output', 'route_shade')


# ── 1. Route loading ─────────────────────────────────────────────────

def load_route(path):
    """
    Read route points as (lat, lng) tuples.

    GeoJSON/GeoPackage/Shapefile: first LineString geometry (or all points in
    order). CSV: ``lat`` and ``lng`` (or ``lon``) columns in route order.
    """
    if path.lower().endswith('.csv'):
        df = pd.read_csv(path)
        lng_col = 'lng' if 'lng' in df.columns else 'lon'
        return list(zip(df['lat'].astype(float), df[lng_col].astype(float)))

    gdf = gpd.read_file(path)
    if gdf.crs is not None and gdf.crs.to_epsg() != 4326:
        gdf = gdf.to_crs('EPSG:4326')
    lines = gdf[gdf.geometry.geom_type == 'LineString']
    if len(lines) > 0:
        return [(y, x) for x, y, *_ in lines.geometry.iloc[0].coords]
    points = gdf[gdf.geometry.geom_type == 'Point']
    return [(g.y, g.x) for g in points.geometry]


# ── 2. Feature cache ─────────────────────────────────────────────────

def load_or_fetch_features(cache_path, bbox, start):
    """
    Load features from the JSON cache, or fetch and rewrite the cache.

    The cache is reused only when it covers the route area and was written
    for the same month as ``start``.
    """
    features = load_feature_cache(cache_path, bbox, start)
    if features is not None:
        print(f"  Loaded {len(features)} features from cache")
        return features

    print("  Querying Overpass API for shade features...")
    try:
        features = fetch_obstruction_features(bbox, start)
    except FeatureFetchError as e:
        print(f"  WARNING: {e} - continuing with open sky")
        return []

    if cache_path:
        save_feature_cache(cache_path, bbox, start, features)
        print(f"  Cached to {cache_path}")
    return features


# ── 3. Main Pipeline ─────────────────────────────────────────────────

def parse_args():
    parser = argparse.ArgumentParser(description='Estimate shade along a walking route')
    parser.add_argument('route', help='Route file (GeoJSON LineString or CSV with lat/lng)')
    parser.add_argument('--start', required=True,
                        help='Start time, ISO 8601 (naive values are UTC)')
    parser.add_argument('--clouds', type=float, default=0.0, help='Cloud coverage percent')
    parser.add_argument('--duration', type=float, default=None,
                        help='Total walking time in seconds (default: from walking speed)')
    parser.add_argument('--features-cache', default=None,
                        help='JSON file of cached features for this area and date')
    parser.add_argument('--debug-geojson', default=None,
                        help='Write footprints and shadows to this GeoJSON file')
    parser.add_argument('--out-dir', default=OUT_DIR)
    return parser.parse_args()


def main(args):
    t0 = time.time()
    os.makedirs(args.out_dir, exist_ok=True)
    start = datetime.fromisoformat(args.start)

    print("=" * 60)
    print("  ROUTE SHADE ANALYSIS")
    print(f"  Start: {start.isoformat()}   Clouds: {args.clouds:.0f}%")
    print("=" * 60)

    # ── Step 1: Route ──
    print("\n[1/4] Loading route...")
    points = load_route(args.route)
    print(f"  Route points: {len(points)}")
    if not points:
        print("  Nothing to analyze.")
        return

    # ── Step 2: Features ──
    print("\n[2/4] Loading shade features...")
    if requires_features(points, start, args.clouds):
        bbox = BoundingBox.around(points, DEFAULT_SETTINGS.bbox_margin_deg)
        features = load_or_fetch_features(args.features_cache, bbox, start)
        for kind, count in summarize_features(features).items():
            print(f"    {kind:>10}: {count}")
    else:
        print("  Overcast sky or sun below the horizon - no features needed")
        features = []

    # ── Step 3: Analysis ──
    print("\n[3/4] Projecting shadows along the route...")
    t_start = time.time()
    result = analyze_route_shade(
        points, start, args.clouds,
        include_debug=args.debug_geojson is not None,
        total_duration_s=args.duration,
        cached_features=features,
    )
    print(f"  Analysis completed in {time.time() - t_start:.2f}s")
    if result.debug is not None:
        sun = result.debug.sun_position
        print(f"  Sun at start: altitude={sun.altitude_deg:.1f}°, "
              f"compass bearing={sun.compass_bearing:.1f}°")

    # ── Step 4: Outputs ──
    print("\n[4/4] Writing outputs...")
    offsets = estimate_arrival_offsets(points, args.duration, DEFAULT_SETTINGS.walking_speed_mps)
    df = profile_frame(result, start=start, offsets=offsets)
    csv_path = os.path.join(args.out_dir, 'shade_profile.csv')
    df.to_csv(csv_path, index=False)
    print(f"  Saved: {csv_path}")

    if args.debug_geojson and result.debug is not None:
        save_debug_geojson(result.debug, args.debug_geojson)
        print(f"  Saved: {args.debug_geojson}")
    elif args.debug_geojson:
        print(f"  NOTE: overcast sky gives no debug snapshot, {args.debug_geojson} not written")

    shaded = int((df['shade_level'] >= 50).sum())
    exposed = int((df['shade_level'] < 20).sum())
    print(f"\n  === Summary ===")
    print(f"  Average shade: {result.avg_shade}%")
    print(f"  Shaded points (>=50%): {shaded} / {len(df)}")
    print(f"  Exposed points (<20%): {exposed} / {len(df)}")

    print(f"\n{'=' * 60}")
    print(f"  COMPLETE - Total time: {time.time() - t0:.1f}s")
    print(f"{'=' * 60}")


if __name__ == '__main__':
    main(parse_args())
