"""
Tabular and GeoJSON views of analysis results, for charts and map overlays.
"""

from datetime import timedelta

import geopandas as gpd
import pandas as pd
from shapely.geometry import Polygon

from .geometry import close_ring

WGS84 = 'EPSG:4326'


def profile_frame(result, start=None, offsets=None):
    """
    Shade profile as a DataFrame.

    Parameters
    ----------
    result : ShadeAnalysisResult
    start : datetime, optional
        With ``offsets``, adds an ``eta`` column of arrival times.
    offsets : list[float], optional
        Seconds from start per point, as from ``estimate_arrival_offsets``.
    """
    df = pd.DataFrame({
        'time_offset': [e.time_offset for e in result.profile],
        'shade_level': [e.shade_level for e in result.profile],
    })
    if start is not None and offsets is not None:
        df['eta'] = [start + timedelta(seconds=s) for s in offsets]
    return df


def _polygon(ring):
    return Polygon([(c.lng, c.lat) for c in close_ring(ring)])


def debug_frame(debug):
    """One row per feature footprint, feature shadow and unified shadow ring."""
    rows = []
    geoms = []
    by_id = {f.id: f for f in debug.features}

    for f in debug.features:
        rows.append({'layer': 'feature', 'feature_id': f.id, 'kind': f.kind.value,
                     'name': f.name, 'height': f.height, 'density': f.foliage_density})
        geoms.append(_polygon(f.polygon))

    for s in debug.shadows:
        f = by_id.get(s.feature_id)
        rows.append({'layer': 'shadow', 'feature_id': s.feature_id,
                     'kind': f.kind.value if f else None, 'name': f.name if f else None,
                     'height': f.height if f else None, 'density': s.opacity})
        geoms.append(_polygon(s.polygon))

    for ring in debug.unified_shadows or []:
        rows.append({'layer': 'unified', 'feature_id': None, 'kind': None,
                     'name': None, 'height': None, 'density': None})
        geoms.append(_polygon(ring))

    gdf = gpd.GeoDataFrame(rows, geometry=geoms, crs=WGS84,
                           columns=['layer', 'feature_id', 'kind', 'name', 'height', 'density'])
    gdf.attrs['sun_azimuth_deg'] = debug.sun_position.azimuth_deg
    gdf.attrs['sun_altitude_deg'] = debug.sun_position.altitude_deg
    return gdf


def save_debug_geojson(debug, path):
    debug_frame(debug).to_file(path, driver='GeoJSON')
    return path
