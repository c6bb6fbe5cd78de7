"""Data models only. Geometry and analysis logic live in the sibling modules."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional


class RouteShadeError(Exception):
    """Base class for errors raised by routeshade."""


class UnknownFeatureKind(RouteShadeError, ValueError):
    """A feature record carries a type tag outside the known kinds."""


class FeatureFetchError(RouteShadeError):
    """The feature source could not deliver obstruction features."""


class Coordinate(NamedTuple):
    lat: float
    lng: float


class FeatureKind(str, Enum):
    BUILDING = 'building'
    TREE = 'tree'
    TREE_ROW = 'tree_row'
    PARK = 'park'
    FOREST = 'forest'
    COVERED = 'covered'

    @classmethod
    def parse(cls, tag):
        if isinstance(tag, cls):
            return tag
        try:
            return cls(str(tag).strip().lower())
        except ValueError:
            raise UnknownFeatureKind(f"unknown feature type: {tag!r}") from None


@dataclass
class ObstructionFeature:
    id: int
    kind: FeatureKind
    polygon: List[Coordinate]
    height: float
    foliage_density: float
    name: Optional[str] = None

    @classmethod
    def from_record(cls, record):
        """Build a feature from a plain dict as stored by a host cache.

        Raises ``UnknownFeatureKind`` for an unknown ``type`` and ``KeyError`` /
        ``TypeError`` / ``ValueError`` for malformed records. A density outside
        [0, 1] or a non-finite height is malformed.
        """
        height = float(record['height'])
        density = float(record['foliage_density'])
        if not math.isfinite(height):
            raise ValueError(f"non-finite height: {height!r}")
        if not 0.0 <= density <= 1.0:
            raise ValueError(f"foliage density out of range: {density!r}")
        polygon = [Coordinate(float(c['lat']), float(c['lng'])) if isinstance(c, dict)
                   else Coordinate(float(c[0]), float(c[1]))
                   for c in record['coordinates']]
        return cls(
            id=int(record['id']),
            kind=FeatureKind.parse(record['type']),
            polygon=polygon,
            height=height,
            foliage_density=density,
            name=record.get('name'),
        )

    def to_record(self):
        return {
            'id': self.id,
            'type': self.kind.value,
            'coordinates': [{'lat': c.lat, 'lng': c.lng} for c in self.polygon],
            'height': self.height,
            'foliage_density': self.foliage_density,
            'name': self.name,
        }


@dataclass(frozen=True)
class SunPosition:
    """Sun position in radians. Azimuth 0 = south, clockwise (west = +pi/2)."""
    azimuth: float
    altitude: float

    @property
    def azimuth_deg(self):
        return math.degrees(self.azimuth)

    @property
    def altitude_deg(self):
        return math.degrees(self.altitude)

    @property
    def compass_bearing(self):
        """Bearing of the sun clockwise from north, degrees in [0, 360)."""
        return (self.azimuth_deg + 180) % 360

    @property
    def is_daylight(self):
        return self.altitude > 0


@dataclass
class Shadow:
    feature_id: int
    polygon: List[Coordinate]
    opacity: float
    length_m: float = 0.0
    bearing_deg: float = 0.0


@dataclass(frozen=True)
class BoundingBox:
    north: float
    south: float
    east: float
    west: float

    @classmethod
    def around(cls, points, margin=0.0):
        lats = [p[0] for p in points]
        lngs = [p[1] for p in points]
        return cls(
            north=max(lats) + margin,
            south=min(lats) - margin,
            east=max(lngs) + margin,
            west=min(lngs) - margin,
        )

    @classmethod
    def zero(cls):
        return cls(0.0, 0.0, 0.0, 0.0)

    def covers(self, other):
        return (self.north >= other.north and self.south <= other.south
                and self.east >= other.east and self.west <= other.west)

    def as_overpass(self):
        """Overpass bbox order: south,west,north,east."""
        return f"{self.south},{self.west},{self.north},{self.east}"


@dataclass(frozen=True)
class ProfileEntry:
    time_offset: int
    shade_level: int


@dataclass
class DebugSnapshot:
    """Diagnostic view of one analysis. Never fed back into scoring."""
    features: List[ObstructionFeature]
    shadows: List[Shadow]
    sun_position: SunPosition
    bbox: BoundingBox
    unified_shadows: Optional[List[List[Coordinate]]] = None


@dataclass
class ShadeAnalysisResult:
    avg_shade: int
    profile: List[ProfileEntry] = field(default_factory=list)
    debug: Optional[DebugSnapshot] = None


__all__ = [
    "RouteShadeError",
    "UnknownFeatureKind",
    "FeatureFetchError",
    "Coordinate",
    "FeatureKind",
    "ObstructionFeature",
    "SunPosition",
    "Shadow",
    "BoundingBox",
    "ProfileEntry",
    "DebugSnapshot",
    "ShadeAnalysisResult",
]
