from __future__ import annotations
from enum import Enum

# Factory flag bits
FLAG_LENIENT_MULTI_POLYGON = 1
FLAG_HAS_Z = 2
FLAG_HAS_M = 4

# GEOS type ids (GEOSGeomTypes)
GEOS_POINT = 0
GEOS_LINESTRING = 1
GEOS_LINEARRING = 2
GEOS_POLYGON = 3
GEOS_MULTIPOINT = 4
GEOS_MULTILINESTRING = 5
GEOS_MULTIPOLYGON = 6
GEOS_GEOMETRYCOLLECTION = 7


class EngineUnavailableError(RuntimeError):
    """The native geometry engine library could not be loaded."""


class IndeterminateComparisonError(ValueError):
    """A comparison could not be completed by the engine."""


def require(cond: bool, msg: str):
    if not cond:
        raise ValueError(msg)


class GeometryKind(Enum):
    POINT = "point"
    LINE_STRING = "line_string"
    LINEAR_RING = "linear_ring"
    POLYGON = "polygon"
    MULTI_POINT = "multi_point"
    MULTI_LINE_STRING = "multi_line_string"
    MULTI_POLYGON = "multi_polygon"
    GEOMETRY_COLLECTION = "geometry_collection"
    GENERIC = "generic"

    @classmethod
    def from_type_id(cls, type_id: int | None) -> "GeometryKind":
        return _KIND_BY_TYPE_ID.get(type_id, cls.GENERIC)

    @property
    def type_id(self) -> int | None:
        return _TYPE_ID_BY_KIND.get(self)

    @property
    def is_collection(self) -> bool:
        return self in _COLLECTION_KINDS


_KIND_BY_TYPE_ID = {
    GEOS_POINT: GeometryKind.POINT,
    GEOS_LINESTRING: GeometryKind.LINE_STRING,
    GEOS_LINEARRING: GeometryKind.LINEAR_RING,
    GEOS_POLYGON: GeometryKind.POLYGON,
    GEOS_MULTIPOINT: GeometryKind.MULTI_POINT,
    GEOS_MULTILINESTRING: GeometryKind.MULTI_LINE_STRING,
    GEOS_MULTIPOLYGON: GeometryKind.MULTI_POLYGON,
    GEOS_GEOMETRYCOLLECTION: GeometryKind.GEOMETRY_COLLECTION,
}

_TYPE_ID_BY_KIND = {kind: type_id for type_id, kind in _KIND_BY_TYPE_ID.items()}

_COLLECTION_KINDS = frozenset({
    GeometryKind.MULTI_POINT,
    GeometryKind.MULTI_LINE_STRING,
    GeometryKind.MULTI_POLYGON,
    GeometryKind.GEOMETRY_COLLECTION,
})
