# geosgeom/factory.py
from __future__ import annotations

import weakref
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from helpers import log
from geosgeom.common import (
    FLAG_HAS_M,
    FLAG_HAS_Z,
    FLAG_LENIENT_MULTI_POLYGON,
    GEOS_GEOMETRYCOLLECTION,
    GEOS_MULTILINESTRING,
    GEOS_MULTIPOINT,
    GEOS_MULTIPOLYGON,
)
from geosgeom.handle import DetachedGeometry, detach, extract_or_cast, native_data, wrap
from geosgeom.protocol import EngineContext, NativeEngine, Ptr
from geosgeom.registry import Registry, initialize


class FactoryData:
    __slots__ = (
        "context", "flags", "srid", "buffer_resolution",
        "wkt_reader", "wkb_reader", "wkt_writer", "wkb_writer",
    )

    def __init__(self, context: EngineContext, flags: int, srid: int, buffer_resolution: int):
        self.context = context
        self.flags = flags
        self.srid = srid
        self.buffer_resolution = buffer_resolution
        self.wkt_reader = None
        self.wkb_reader = None
        self.wkt_writer = None
        self.wkb_writer = None


def _destroy_factory(data: FactoryData) -> None:
    engine, ctx = data.context.engine, data.context.handle
    if data.wkt_reader is not None:
        engine.wkt_reader_destroy(ctx, data.wkt_reader)
    if data.wkb_reader is not None:
        engine.wkb_reader_destroy(ctx, data.wkb_reader)
    if data.wkt_writer is not None:
        engine.wkt_writer_destroy(ctx, data.wkt_writer)
    if data.wkb_writer is not None:
        engine.wkb_writer_destroy(ctx, data.wkb_writer)
    engine.context_destroy(ctx)


class Factory:
    """
    One engine context plus its serialization resources.

    Geometries keep a reference to the factory that made them, so the
    context is released only after all of them are gone.
    """

    def __init__(self, data: FactoryData, registry: Registry):
        self._data = data
        self._registry = registry

    @classmethod
    def create(
        cls,
        flags: int = 0,
        srid: int = 0,
        buffer_resolution: int = 1,
        engine: Optional[NativeEngine] = None,
        registry: Optional[Registry] = None,
    ) -> Optional["Factory"]:
        if engine is None:
            from geosgeom.geos_backend import default_engine
            engine = default_engine()
        if registry is None:
            registry = initialize()

        ctx = engine.context_create()
        if ctx is None:
            log("Factory.create: engine context allocation failed", level=1)
            return None

        data = FactoryData(EngineContext(engine, ctx), int(flags), int(srid), int(buffer_resolution))
        factory = cls(data, registry)
        factory._finalizer = weakref.finalize(factory, _destroy_factory, data)
        return factory

    # -------------------------
    # ACCESSORS
    # -------------------------

    @property
    def srid(self) -> int:
        return self._data.srid

    @property
    def buffer_resolution(self) -> int:
        return self._data.buffer_resolution

    @property
    def flags(self) -> int:
        return self._data.flags

    @property
    def has_z(self) -> bool:
        return bool(self._data.flags & FLAG_HAS_Z)

    @property
    def has_m(self) -> bool:
        return bool(self._data.flags & FLAG_HAS_M)

    @property
    def lenient_multi_polygon_assertions(self) -> bool:
        return bool(self._data.flags & FLAG_LENIENT_MULTI_POLYGON)

    @property
    def context(self) -> EngineContext:
        return self._data.context

    @property
    def engine(self) -> NativeEngine:
        return self._data.context.engine

    @property
    def registry(self) -> Registry:
        return self._registry

    def __eq__(self, other):
        if not isinstance(other, Factory) or type(self) is not type(other):
            return NotImplemented
        return (self.srid, self.buffer_resolution, self.flags) == (other.srid, other.buffer_resolution, other.flags)

    def __hash__(self):
        return hash((type(self), self.srid, self.buffer_resolution, self.flags))

    def __repr__(self):
        return f"Factory(srid={self.srid}, buffer_resolution={self.buffer_resolution}, flags={self.flags})"

    # -------------------------
    # SERIALIZATION RESOURCES (created once, on first use)
    # -------------------------

    def _output_dimension(self) -> int:
        return 3 if self.has_z else 2

    def _wkt_reader(self) -> Optional[Ptr]:
        d = self._data
        if d.wkt_reader is None:
            d.wkt_reader = d.context.engine.wkt_reader_create(d.context.handle)
        return d.wkt_reader

    def _wkb_reader(self) -> Optional[Ptr]:
        d = self._data
        if d.wkb_reader is None:
            d.wkb_reader = d.context.engine.wkb_reader_create(d.context.handle)
        return d.wkb_reader

    def _wkt_writer(self) -> Optional[Ptr]:
        d = self._data
        if d.wkt_writer is None:
            d.wkt_writer = d.context.engine.wkt_writer_create(d.context.handle, self._output_dimension())
        return d.wkt_writer

    def _wkb_writer(self) -> Optional[Ptr]:
        d = self._data
        if d.wkb_writer is None:
            d.wkb_writer = d.context.engine.wkb_writer_create(d.context.handle, self._output_dimension())
        return d.wkb_writer

    # -------------------------
    # PARSE / GENERATE
    # -------------------------

    def parse_wkt(self, text: str):
        if not isinstance(text, str):
            raise TypeError(f"parse_wkt expects str, got {type(text).__name__}")
        # the engine reads a C string; anything after a NUL would be dropped
        if "\x00" in text:
            log("parse_wkt: text contains a NUL character", level=2)
            return None
        reader = self._wkt_reader()
        if reader is None:
            return None
        geom = self.engine.wkt_reader_read(self.context.handle, reader, text)
        if geom is None:
            log(f"parse_wkt: could not parse {text[:80]!r}", level=2)
            return None
        return wrap(self, geom)

    def parse_wkb(self, data: bytes):
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"parse_wkb expects bytes, got {type(data).__name__}")
        reader = self._wkb_reader()
        if reader is None:
            return None
        geom = self.engine.wkb_reader_read(self.context.handle, reader, bytes(data))
        if geom is None:
            log(f"parse_wkb: could not parse {len(data)} bytes", level=2)
            return None
        return wrap(self, geom)

    def generate_wkt(self, geometry) -> Optional[str]:
        borrowed = extract_or_cast(self, geometry)
        writer = self._wkt_writer()
        if borrowed is None or writer is None:
            return None
        return self.engine.wkt_writer_write(self.context.handle, writer, borrowed.geom)

    def generate_wkb(self, geometry) -> Optional[bytes]:
        borrowed = extract_or_cast(self, geometry)
        writer = self._wkb_writer()
        if borrowed is None or writer is None:
            return None
        return self.engine.wkb_writer_write(self.context.handle, writer, borrowed.geom)

    # -------------------------
    # CREATE GEO
    # -------------------------

    def _coords(self, x: float, y: float, z: Optional[float]) -> Tuple[float, ...]:
        if self.has_z:
            return (float(x), float(y), float(z if z is not None else 0.0))
        return (float(x), float(y))

    def _point_coords(self, points: Iterable[Any]) -> Optional[List[Tuple[float, ...]]]:
        engine, ctx = self.engine, self.context.handle
        coords = []
        for p in points:
            borrowed = extract_or_cast(self, p, self._registry.point)
            if borrowed is None:
                return None
            seq = engine.geom_get_coord_seq(ctx, borrowed.geom)
            if seq is None or engine.coordseq_size(ctx, seq) != 1:
                return None
            x = engine.coordseq_get_x(ctx, seq, 0)
            y = engine.coordseq_get_y(ctx, seq, 0)
            if x is None or y is None:
                return None
            z = engine.coordseq_get_z(ctx, seq, 0) if self.has_z else None
            coords.append(self._coords(x, y, z))
        return coords

    def _release(self, detached: List[DetachedGeometry]) -> None:
        for d in detached:
            self.engine.geom_destroy(self.context.handle, d.geom)

    def point(self, x: float, y: float, z: Optional[float] = None):
        engine, ctx = self.engine, self.context.handle
        seq = engine.coordseq_create(ctx, [self._coords(x, y, z)], self._output_dimension())
        if seq is None:
            return None
        geom = engine.geom_create_point(ctx, seq)
        if geom is None:
            return None
        return wrap(self, geom, self._registry.point)

    def line_string(self, points: Iterable[Any]):
        coords = self._point_coords(points)
        if coords is None:
            return None
        engine, ctx = self.engine, self.context.handle
        seq = engine.coordseq_create(ctx, coords, self._output_dimension())
        if seq is None:
            return None
        geom = engine.geom_create_line_string(ctx, seq)
        if geom is None:
            return None
        return wrap(self, geom, self._registry.line_string)

    def line(self, start: Any, end: Any):
        return self.line_string([start, end])

    def linear_ring(self, points: Iterable[Any]):
        coords = self._point_coords(points)
        if coords is None:
            return None
        if coords and coords[0] != coords[-1]:
            coords.append(coords[0])
        engine, ctx = self.engine, self.context.handle
        seq = engine.coordseq_create(ctx, coords, self._output_dimension())
        if seq is None:
            return None
        geom = engine.geom_create_linear_ring(ctx, seq)
        if geom is None:
            return None
        return wrap(self, geom, self._registry.linear_ring)

    def polygon(self, outer_ring: Any, inner_rings: Optional[Iterable[Any]] = None):
        ring_type = self._registry.linear_ring
        shell = detach(outer_ring, self, ring_type)
        if shell is None:
            return None
        holes: List[DetachedGeometry] = []
        for ring in inner_rings or []:
            hole = detach(ring, self, ring_type)
            if hole is None:
                self._release([shell] + holes)
                return None
            holes.append(hole)
        # shell and holes belong to the engine call from here on, success or not
        geom = self.engine.geom_create_polygon(self.context.handle, shell.geom, [h.geom for h in holes])
        if geom is None:
            return None
        return wrap(self, geom, self._registry.polygon)

    def _flatten(self, elems: Iterable[Any], member_type: type) -> Iterator[Any]:
        """Yield leaf members, descending into collections that are not themselves `member_type`."""
        for elem in elems:
            data = native_data(elem)
            if (
                data is not None
                and data.geom is not None
                and isinstance(elem, self._registry.geometry_collection)
                and not isinstance(elem, member_type)
            ):
                yield from self._flatten(elem, member_type)
            else:
                yield elem

    def _collection(self, type_id: int, elems: Iterable[Any], member_type: Optional[type]):
        if member_type is not None:
            elems = self._flatten(elems, member_type)
        detached: List[DetachedGeometry] = []
        for elem in elems:
            d = detach(elem, self, member_type)
            if d is None:
                self._release(detached)
                return None
            detached.append(d)
        geom = self.engine.geom_create_collection(self.context.handle, type_id, [d.geom for d in detached])
        if geom is None:
            return None
        return wrap(self, geom, [d.klass for d in detached])

    def collection(self, elems: Iterable[Any]):
        return self._collection(GEOS_GEOMETRYCOLLECTION, elems, None)

    def multi_point(self, elems: Iterable[Any]):
        return self._collection(GEOS_MULTIPOINT, elems, self._registry.point)

    def multi_line_string(self, elems: Iterable[Any]):
        return self._collection(GEOS_MULTILINESTRING, elems, self._registry.line_string)

    def multi_polygon(self, elems: Iterable[Any]):
        return self._collection(GEOS_MULTIPOLYGON, elems, self._registry.polygon)
