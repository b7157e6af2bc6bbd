# geosgeom/protocol.py
from __future__ import annotations

from typing import Any, List, NamedTuple, Optional, Protocol, Sequence

# Opaque native pointers. None is the null pointer.
Ptr = Any


class NativeEngine(Protocol):
    """
    Primitives consumed from the native geometry engine.

    Every call takes the raw context it runs against. Calls that can fail
    report it by returning None (or False for setters) rather than raising.
    """

    # ---- context
    def context_create(self) -> Optional[Ptr]: ...
    def context_destroy(self, ctx: Ptr) -> None: ...
    def version(self) -> str: ...

    # ---- readers / writers
    def wkt_reader_create(self, ctx: Ptr) -> Optional[Ptr]: ...
    def wkt_reader_destroy(self, ctx: Ptr, reader: Ptr) -> None: ...
    def wkt_reader_read(self, ctx: Ptr, reader: Ptr, text: str) -> Optional[Ptr]: ...
    def wkb_reader_create(self, ctx: Ptr) -> Optional[Ptr]: ...
    def wkb_reader_destroy(self, ctx: Ptr, reader: Ptr) -> None: ...
    def wkb_reader_read(self, ctx: Ptr, reader: Ptr, data: bytes) -> Optional[Ptr]: ...
    def wkt_writer_create(self, ctx: Ptr, output_dimension: int) -> Optional[Ptr]: ...
    def wkt_writer_destroy(self, ctx: Ptr, writer: Ptr) -> None: ...
    def wkt_writer_write(self, ctx: Ptr, writer: Ptr, geom: Ptr) -> Optional[str]: ...
    def wkb_writer_create(self, ctx: Ptr, output_dimension: int) -> Optional[Ptr]: ...
    def wkb_writer_destroy(self, ctx: Ptr, writer: Ptr) -> None: ...
    def wkb_writer_write(self, ctx: Ptr, writer: Ptr, geom: Ptr) -> Optional[bytes]: ...

    # ---- geometry lifecycle and tags
    def geom_clone(self, ctx: Ptr, geom: Ptr) -> Optional[Ptr]: ...
    def geom_destroy(self, ctx: Ptr, geom: Ptr) -> None: ...
    def geom_type_id(self, ctx: Ptr, geom: Ptr) -> Optional[int]: ...
    def geom_get_srid(self, ctx: Ptr, geom: Ptr) -> Optional[int]: ...
    def geom_set_srid(self, ctx: Ptr, geom: Ptr, srid: int) -> None: ...
    def geom_is_empty(self, ctx: Ptr, geom: Ptr) -> Optional[bool]: ...
    def geom_dimension(self, ctx: Ptr, geom: Ptr) -> Optional[int]: ...
    def geom_equals(self, ctx: Ptr, geom_a: Ptr, geom_b: Ptr) -> Optional[bool]: ...

    # ---- coordinate sequences
    def geom_get_coord_seq(self, ctx: Ptr, geom: Ptr) -> Optional[Ptr]: ...
    def coordseq_size(self, ctx: Ptr, seq: Ptr) -> Optional[int]: ...
    def coordseq_get_x(self, ctx: Ptr, seq: Ptr, idx: int) -> Optional[float]: ...
    def coordseq_get_y(self, ctx: Ptr, seq: Ptr, idx: int) -> Optional[float]: ...
    def coordseq_get_z(self, ctx: Ptr, seq: Ptr, idx: int) -> Optional[float]: ...
    def coordseq_create(self, ctx: Ptr, coords: Sequence[Sequence[float]], dims: int) -> Optional[Ptr]: ...
    def coordseq_destroy(self, ctx: Ptr, seq: Ptr) -> None: ...

    # ---- construction (ownership of the arguments moves into the result)
    def geom_create_point(self, ctx: Ptr, seq: Ptr) -> Optional[Ptr]: ...
    def geom_create_line_string(self, ctx: Ptr, seq: Ptr) -> Optional[Ptr]: ...
    def geom_create_linear_ring(self, ctx: Ptr, seq: Ptr) -> Optional[Ptr]: ...
    def geom_create_polygon(self, ctx: Ptr, shell: Ptr, holes: List[Ptr]) -> Optional[Ptr]: ...
    def geom_create_collection(self, ctx: Ptr, type_id: int, geoms: List[Ptr]) -> Optional[Ptr]: ...

    # ---- traversal (results are borrowed from the parent)
    def geom_num_geometries(self, ctx: Ptr, geom: Ptr) -> Optional[int]: ...
    def geom_geometry_n(self, ctx: Ptr, geom: Ptr, n: int) -> Optional[Ptr]: ...
    def geom_exterior_ring(self, ctx: Ptr, geom: Ptr) -> Optional[Ptr]: ...
    def geom_num_interior_rings(self, ctx: Ptr, geom: Ptr) -> Optional[int]: ...
    def geom_interior_ring_n(self, ctx: Ptr, geom: Ptr, n: int) -> Optional[Ptr]: ...


class EngineContext(NamedTuple):
    """A raw engine context together with the engine that created it."""
    engine: NativeEngine
    handle: Ptr


class Caster(Protocol):
    def __call__(
        self,
        value: Any,
        factory: Any,
        requested_type: Optional[type] = None,
        force_new: bool = False,
        keep_subtype: bool = False,
    ) -> Any: ...
