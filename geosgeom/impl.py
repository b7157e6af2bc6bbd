# geosgeom/impl.py
from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from geosgeom.common import GeometryKind, IndeterminateComparisonError, require
from geosgeom.equality import Equality, geometries_strict_eql, klass_and_factory_eql
from geosgeom.handle import GeometryData, clone_wrap, extract_or_cast
from geosgeom.protocol import NativeEngine, Ptr

# ======================================================================
# Low-level helpers
# ======================================================================

def _coordinate_array(engine: NativeEngine, ctx: Ptr, geom: Ptr, has_z: bool) -> np.ndarray:
    dims = 3 if has_z else 2
    seq = engine.geom_get_coord_seq(ctx, geom)
    require(seq is not None, "Geometry has no coordinate sequence.")
    size = engine.coordseq_size(ctx, seq)
    require(size is not None, "Could not read coordinate sequence size.")

    out = np.zeros((size, dims), dtype=float)
    for i in range(size):
        x = engine.coordseq_get_x(ctx, seq, i)
        y = engine.coordseq_get_y(ctx, seq, i)
        require(x is not None and y is not None, f"Could not read coordinate {i}.")
        out[i, 0] = x
        out[i, 1] = y
        if has_z:
            z = engine.coordseq_get_z(ctx, seq, i)
            out[i, 2] = z if z is not None else np.nan
    return out


# ======================================================================
# Geometry classes
# ======================================================================

class GeosGeometry:
    """Base host class; also the fallback for unrecognized type tags."""

    KIND = GeometryKind.GENERIC

    def __init__(self, data: GeometryData):
        self._data = data

    def _native(self) -> Tuple[NativeEngine, Ptr, Ptr]:
        data = self._data
        require(data.geom is not None, f"{type(self).__name__} holds no native geometry (detached).")
        return data.context.engine, data.context.handle, data.geom

    @property
    def factory(self):
        return self._data.factory

    @property
    def geometry_type(self) -> GeometryKind:
        return self.KIND

    @property
    def srid(self) -> Optional[int]:
        engine, ctx, geom = self._native()
        return engine.geom_get_srid(ctx, geom)

    def is_empty(self) -> Optional[bool]:
        engine, ctx, geom = self._native()
        return engine.geom_is_empty(ctx, geom)

    @property
    def dimension(self) -> Optional[int]:
        """Topological dimension; -1 for an empty geometry."""
        engine, ctx, geom = self._native()
        empty = engine.geom_is_empty(ctx, geom)
        if empty is None:
            return None
        if empty:
            return -1
        return engine.geom_dimension(ctx, geom)

    def as_text(self) -> Optional[str]:
        self._native()
        return self.factory.generate_wkt(self)

    def as_binary(self) -> Optional[bytes]:
        self._native()
        return self.factory.generate_wkb(self)

    def clone(self):
        _, _, geom = self._native()
        klasses = self._data.klasses
        return clone_wrap(self.factory, geom, klasses if klasses is not None else type(self))

    def eql(self, other: Any) -> Equality:
        """Strict representational equality: same class, same factory, same coordinates."""
        _, _, geom = self._native()
        if not klass_and_factory_eql(self, other):
            return Equality.NOT_EQUAL
        return geometries_strict_eql(self._data.context, geom, other._data.geom, self.factory.has_z)

    def equals(self, other: Any) -> Optional[bool]:
        """Geometric (point-set) equality, computed by the engine."""
        engine, ctx, geom = self._native()
        borrowed = extract_or_cast(self.factory, other)
        if borrowed is None:
            return None
        return engine.geom_equals(ctx, geom, borrowed.geom)

    def __eq__(self, other):
        if not isinstance(other, GeosGeometry):
            return NotImplemented
        if other is self:
            return True
        res = self.eql(other)
        if res is Equality.INDETERMINATE:
            raise IndeterminateComparisonError(f"Cannot compare {self!r} with {other!r}")
        return res is Equality.EQUAL

    __hash__ = None

    def __repr__(self):
        if self._data.geom is None:
            return f"<{type(self).__name__} (detached)>"
        return f"<{type(self).__name__} {self.as_text()}>"

    def _serialize(self) -> Dict[str, Any]:
        return {
            "type": self.geometry_type.value,
            "srid": self.srid,
            "wkt": self.as_text(),
        }


class GeosPoint(GeosGeometry):
    KIND = GeometryKind.POINT

    def _ordinate(self, getter_name: str) -> Optional[float]:
        engine, ctx, geom = self._native()
        seq = engine.geom_get_coord_seq(ctx, geom)
        if seq is None or not engine.coordseq_size(ctx, seq):
            return None
        return getattr(engine, getter_name)(ctx, seq, 0)

    @property
    def x(self) -> Optional[float]:
        return self._ordinate("coordseq_get_x")

    @property
    def y(self) -> Optional[float]:
        return self._ordinate("coordseq_get_y")

    @property
    def z(self) -> Optional[float]:
        if not self.factory.has_z:
            return None
        return self._ordinate("coordseq_get_z")

    def coordinates(self) -> np.ndarray:
        engine, ctx, geom = self._native()
        arr = _coordinate_array(engine, ctx, geom, self.factory.has_z)
        return arr[0] if len(arr) else arr.reshape(-1)

    def _serialize(self) -> Dict[str, Any]:
        out = super()._serialize()
        out["coordinates"] = self.coordinates().tolist()
        return out


class GeosLineString(GeosGeometry):
    KIND = GeometryKind.LINE_STRING

    @property
    def num_points(self) -> int:
        engine, ctx, geom = self._native()
        seq = engine.geom_get_coord_seq(ctx, geom)
        size = engine.coordseq_size(ctx, seq) if seq is not None else None
        require(size is not None, "Could not read coordinate sequence size.")
        return size

    def coordinates(self) -> np.ndarray:
        engine, ctx, geom = self._native()
        return _coordinate_array(engine, ctx, geom, self.factory.has_z)

    def point_n(self, n: int):
        coords = self.coordinates()
        require(0 <= n < len(coords), f"point_n index {n} out of range.")
        return self.factory.point(*coords[n].tolist())

    @property
    def points(self) -> List[GeosPoint]:
        return [self.factory.point(*c) for c in self.coordinates().tolist()]

    def _serialize(self) -> Dict[str, Any]:
        out = super()._serialize()
        out["coordinates"] = self.coordinates().tolist()
        return out


class GeosLinearRing(GeosLineString):
    KIND = GeometryKind.LINEAR_RING


class GeosPolygon(GeosGeometry):
    KIND = GeometryKind.POLYGON

    @property
    def exterior_ring(self) -> Optional[GeosLinearRing]:
        engine, ctx, geom = self._native()
        return clone_wrap(self.factory, engine.geom_exterior_ring(ctx, geom), self.factory.registry.linear_ring)

    @property
    def num_interior_rings(self) -> int:
        engine, ctx, geom = self._native()
        n = engine.geom_num_interior_rings(ctx, geom)
        require(n is not None, "Could not read interior ring count.")
        return n

    def interior_ring_n(self, n: int) -> Optional[GeosLinearRing]:
        require(0 <= n < self.num_interior_rings, f"interior_ring_n index {n} out of range.")
        engine, ctx, geom = self._native()
        return clone_wrap(self.factory, engine.geom_interior_ring_n(ctx, geom, n), self.factory.registry.linear_ring)

    @property
    def interior_rings(self) -> List[GeosLinearRing]:
        return [self.interior_ring_n(i) for i in range(self.num_interior_rings)]


class GeosGeometryCollection(GeosGeometry):
    KIND = GeometryKind.GEOMETRY_COLLECTION

    @property
    def num_geometries(self) -> int:
        engine, ctx, geom = self._native()
        n = engine.geom_num_geometries(ctx, geom)
        require(n is not None, "Could not read member count.")
        return n

    def geometry_n(self, n: int):
        count = self.num_geometries
        require(0 <= n < count, f"geometry_n index {n} out of range.")
        engine, ctx, geom = self._native()
        klasses = self._data.klasses
        klass = klasses[n] if klasses is not None and n < len(klasses) else None
        return clone_wrap(self.factory, engine.geom_geometry_n(ctx, geom, n), klass)

    def __len__(self) -> int:
        return self.num_geometries

    def __iter__(self) -> Iterator[GeosGeometry]:
        for i in range(self.num_geometries):
            yield self.geometry_n(i)

    def to_list(self) -> List[GeosGeometry]:
        return list(self)

    def _serialize(self) -> Dict[str, Any]:
        out = super()._serialize()
        out["num_geometries"] = self.num_geometries
        return out


class GeosMultiPoint(GeosGeometryCollection):
    KIND = GeometryKind.MULTI_POINT


class GeosMultiLineString(GeosGeometryCollection):
    KIND = GeometryKind.MULTI_LINE_STRING


class GeosMultiPolygon(GeosGeometryCollection):
    KIND = GeometryKind.MULTI_POLYGON
