"""
Configuration for route shade analysis.

Values can be overridden from the environment or a ``.env`` file in the
working directory, e.g.::

    ROUTESHADE_OVERPASS_URL=https://overpass.kumi.systems/api/interpreter
    ROUTESHADE_SUN_RECOMPUTE_DEG=1.0
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

# ── Feature source ─────────────────────────────────────────────────────
OVERPASS_URL = os.getenv('ROUTESHADE_OVERPASS_URL', 'https://overpass-api.de/api/interpreter')
OVERPASS_TIMEOUT = int(os.getenv('ROUTESHADE_OVERPASS_TIMEOUT', '30'))  # seconds, server side
USER_AGENT = os.getenv('ROUTESHADE_USER_AGENT', 'routeshade/0.1')

# ── Analysis ───────────────────────────────────────────────────────────
BBOX_MARGIN_DEG = float(os.getenv('ROUTESHADE_BBOX_MARGIN_DEG', '0.003'))  # ~300m
SUN_RECOMPUTE_THRESHOLD_DEG = float(os.getenv('ROUTESHADE_SUN_RECOMPUTE_DEG', '2.0'))
WALKING_SPEED_MPS = float(os.getenv('ROUTESHADE_WALKING_SPEED', '1.4'))  # ~5 km/h
OVERCAST_CLOUD_COVERAGE = float(os.getenv('ROUTESHADE_OVERCAST_PCT', '70'))
MAX_SHADOW_LENGTH_M = float(os.getenv('ROUTESHADE_MAX_SHADOW_M', '5000'))

# Spherical earth for great-circle math
EARTH_RADIUS_M = 6378137.0


@dataclass(frozen=True)
class AnalysisSettings:
    """Tunables consumed by the route analyzer."""
    bbox_margin_deg: float = BBOX_MARGIN_DEG
    recompute_threshold_deg: float = SUN_RECOMPUTE_THRESHOLD_DEG
    walking_speed_mps: float = WALKING_SPEED_MPS
    overcast_cloud_coverage: float = OVERCAST_CLOUD_COVERAGE
    max_shadow_length_m: float = MAX_SHADOW_LENGTH_M


DEFAULT_SETTINGS = AnalysisSettings()
