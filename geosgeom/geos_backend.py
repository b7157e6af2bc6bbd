# geosgeom/geos_backend.py
from __future__ import annotations

import ctypes
import ctypes.util
import os
from functools import lru_cache
from typing import List, Optional, Sequence

from helpers import log
from geosgeom.common import EngineUnavailableError
from geosgeom.protocol import Ptr

from ctypes import (
    CFUNCTYPE,
    POINTER,
    byref,
    c_byte,
    c_char_p,
    c_double,
    c_int,
    c_size_t,
    c_uint,
    c_void_p,
)

# ======================================================================
# Library loading
# ======================================================================

_LIBRARY_NAMES = (
    "libgeos_c.so.1",
    "libgeos_c.so",
    "libgeos_c.dylib",
    "geos_c.dll",
)

def _candidate_paths(library_path: Optional[str]) -> List[str]:
    paths: List[str] = []
    explicit = library_path or os.getenv("GEOS_LIBRARY_PATH")
    if explicit:
        paths.append(explicit)
    found = ctypes.util.find_library("geos_c")
    if found:
        paths.append(found)
    paths.extend(_LIBRARY_NAMES)
    return paths

def load_library(library_path: Optional[str] = None) -> ctypes.CDLL:
    errors = []
    for path in _candidate_paths(library_path):
        try:
            lib = ctypes.CDLL(path)
        except OSError as e:
            errors.append(f"{path}: {e}")
            continue
        log(f"Loaded GEOS C library from {path}", level=3)
        return lib
    log(f"Unable to load GEOS C library ({'; '.join(errors)})", level=1)
    raise EngineUnavailableError("Could not load libgeos_c. Set GEOS_LIBRARY_PATH to its location.")


# ======================================================================
# Message handlers
# ======================================================================

# typedef void (*GEOSMessageHandler_r)(const char *message, void *userdata);
GEOSMessageHandler_r = CFUNCTYPE(None, c_char_p, c_void_p)

def _notice(message, userdata):
    log(f"GEOS notice: {message.decode('utf-8', 'replace') if message else ''}", level=3)

def _error(message, userdata):
    log(f"GEOS error: {message.decode('utf-8', 'replace') if message else ''}", level=2)

# module level so the callbacks outlive every context
_notice_handler = GEOSMessageHandler_r(_notice)
_error_handler = GEOSMessageHandler_r(_error)


# ======================================================================
# Prototypes
# ======================================================================

_PROTOTYPES = {
    "GEOSversion": (c_char_p, []),
    "GEOS_init_r": (c_void_p, []),
    "GEOS_finish_r": (None, [c_void_p]),
    "GEOSContext_setNoticeMessageHandler_r": (c_void_p, [c_void_p, GEOSMessageHandler_r, c_void_p]),
    "GEOSContext_setErrorMessageHandler_r": (c_void_p, [c_void_p, GEOSMessageHandler_r, c_void_p]),
    "GEOSFree_r": (None, [c_void_p, c_void_p]),

    "GEOSWKTReader_create_r": (c_void_p, [c_void_p]),
    "GEOSWKTReader_destroy_r": (None, [c_void_p, c_void_p]),
    "GEOSWKTReader_read_r": (c_void_p, [c_void_p, c_void_p, c_char_p]),
    "GEOSWKBReader_create_r": (c_void_p, [c_void_p]),
    "GEOSWKBReader_destroy_r": (None, [c_void_p, c_void_p]),
    "GEOSWKBReader_read_r": (c_void_p, [c_void_p, c_void_p, c_char_p, c_size_t]),
    "GEOSWKTWriter_create_r": (c_void_p, [c_void_p]),
    "GEOSWKTWriter_destroy_r": (None, [c_void_p, c_void_p]),
    "GEOSWKTWriter_setTrim_r": (None, [c_void_p, c_void_p, c_byte]),
    "GEOSWKTWriter_setOutputDimension_r": (None, [c_void_p, c_void_p, c_int]),
    "GEOSWKTWriter_write_r": (c_void_p, [c_void_p, c_void_p, c_void_p]),
    "GEOSWKBWriter_create_r": (c_void_p, [c_void_p]),
    "GEOSWKBWriter_destroy_r": (None, [c_void_p, c_void_p]),
    "GEOSWKBWriter_setOutputDimension_r": (None, [c_void_p, c_void_p, c_int]),
    "GEOSWKBWriter_write_r": (c_void_p, [c_void_p, c_void_p, c_void_p, POINTER(c_size_t)]),

    "GEOSGeom_clone_r": (c_void_p, [c_void_p, c_void_p]),
    "GEOSGeom_destroy_r": (None, [c_void_p, c_void_p]),
    "GEOSGeomTypeId_r": (c_int, [c_void_p, c_void_p]),
    "GEOSGetSRID_r": (c_int, [c_void_p, c_void_p]),
    "GEOSSetSRID_r": (None, [c_void_p, c_void_p, c_int]),
    "GEOSisEmpty_r": (c_byte, [c_void_p, c_void_p]),
    "GEOSEquals_r": (c_byte, [c_void_p, c_void_p, c_void_p]),
    "GEOSGeom_getDimensions_r": (c_int, [c_void_p, c_void_p]),

    "GEOSGeom_getCoordSeq_r": (c_void_p, [c_void_p, c_void_p]),
    "GEOSCoordSeq_getSize_r": (c_int, [c_void_p, c_void_p, POINTER(c_uint)]),
    "GEOSCoordSeq_getDimensions_r": (c_int, [c_void_p, c_void_p, POINTER(c_uint)]),
    "GEOSCoordSeq_getX_r": (c_int, [c_void_p, c_void_p, c_uint, POINTER(c_double)]),
    "GEOSCoordSeq_getY_r": (c_int, [c_void_p, c_void_p, c_uint, POINTER(c_double)]),
    "GEOSCoordSeq_getZ_r": (c_int, [c_void_p, c_void_p, c_uint, POINTER(c_double)]),
    "GEOSCoordSeq_create_r": (c_void_p, [c_void_p, c_uint, c_uint]),
    "GEOSCoordSeq_destroy_r": (None, [c_void_p, c_void_p]),
    "GEOSCoordSeq_setX_r": (c_int, [c_void_p, c_void_p, c_uint, c_double]),
    "GEOSCoordSeq_setY_r": (c_int, [c_void_p, c_void_p, c_uint, c_double]),
    "GEOSCoordSeq_setZ_r": (c_int, [c_void_p, c_void_p, c_uint, c_double]),

    "GEOSGeom_createPoint_r": (c_void_p, [c_void_p, c_void_p]),
    "GEOSGeom_createLineString_r": (c_void_p, [c_void_p, c_void_p]),
    "GEOSGeom_createLinearRing_r": (c_void_p, [c_void_p, c_void_p]),
    "GEOSGeom_createPolygon_r": (c_void_p, [c_void_p, c_void_p, POINTER(c_void_p), c_uint]),
    "GEOSGeom_createCollection_r": (c_void_p, [c_void_p, c_int, POINTER(c_void_p), c_uint]),

    "GEOSGetNumGeometries_r": (c_int, [c_void_p, c_void_p]),
    "GEOSGetGeometryN_r": (c_void_p, [c_void_p, c_void_p, c_int]),
    "GEOSGetExteriorRing_r": (c_void_p, [c_void_p, c_void_p]),
    "GEOSGetNumInteriorRings_r": (c_int, [c_void_p, c_void_p]),
    "GEOSGetInteriorRingN_r": (c_void_p, [c_void_p, c_void_p, c_int]),
}

def _bind(lib: ctypes.CDLL) -> ctypes.CDLL:
    for name, (restype, argtypes) in _PROTOTYPES.items():
        fn = getattr(lib, name)
        fn.restype = restype
        fn.argtypes = argtypes
    return lib


# ======================================================================
# Backend (adapter)
# ======================================================================

class GeosBackend:
    """
    NativeEngine implementation over the reentrant GEOS C API.

    Pointers are plain ints as returned by ctypes (None is NULL). Calls that
    GEOS reports as failed (NULL, 0, -1 or 2 depending on the function) come
    back as None.
    """

    def __init__(self, library_path: Optional[str] = None):
        self._lib = _bind(load_library(library_path))

    # -------------------------
    # CONTEXT
    # -------------------------

    def version(self) -> str:
        return self._lib.GEOSversion().decode("ascii")

    def context_create(self) -> Optional[Ptr]:
        ctx = self._lib.GEOS_init_r()
        if not ctx:
            return None
        self._lib.GEOSContext_setNoticeMessageHandler_r(ctx, _notice_handler, None)
        self._lib.GEOSContext_setErrorMessageHandler_r(ctx, _error_handler, None)
        return ctx

    def context_destroy(self, ctx: Ptr) -> None:
        self._lib.GEOS_finish_r(ctx)

    # -------------------------
    # READERS / WRITERS
    # -------------------------

    def wkt_reader_create(self, ctx: Ptr) -> Optional[Ptr]:
        return self._lib.GEOSWKTReader_create_r(ctx)

    def wkt_reader_destroy(self, ctx: Ptr, reader: Ptr) -> None:
        self._lib.GEOSWKTReader_destroy_r(ctx, reader)

    def wkt_reader_read(self, ctx: Ptr, reader: Ptr, text: str) -> Optional[Ptr]:
        return self._lib.GEOSWKTReader_read_r(ctx, reader, text.encode("utf-8"))

    def wkb_reader_create(self, ctx: Ptr) -> Optional[Ptr]:
        return self._lib.GEOSWKBReader_create_r(ctx)

    def wkb_reader_destroy(self, ctx: Ptr, reader: Ptr) -> None:
        self._lib.GEOSWKBReader_destroy_r(ctx, reader)

    def wkb_reader_read(self, ctx: Ptr, reader: Ptr, data: bytes) -> Optional[Ptr]:
        # explicit length: WKB routinely contains zero bytes
        return self._lib.GEOSWKBReader_read_r(ctx, reader, bytes(data), len(data))

    def wkt_writer_create(self, ctx: Ptr, output_dimension: int) -> Optional[Ptr]:
        writer = self._lib.GEOSWKTWriter_create_r(ctx)
        if writer:
            self._lib.GEOSWKTWriter_setTrim_r(ctx, writer, 1)
            self._lib.GEOSWKTWriter_setOutputDimension_r(ctx, writer, int(output_dimension))
        return writer

    def wkt_writer_destroy(self, ctx: Ptr, writer: Ptr) -> None:
        self._lib.GEOSWKTWriter_destroy_r(ctx, writer)

    def wkt_writer_write(self, ctx: Ptr, writer: Ptr, geom: Ptr) -> Optional[str]:
        raw = self._lib.GEOSWKTWriter_write_r(ctx, writer, geom)
        if not raw:
            return None
        try:
            return ctypes.string_at(raw).decode("utf-8")
        finally:
            self._lib.GEOSFree_r(ctx, raw)

    def wkb_writer_create(self, ctx: Ptr, output_dimension: int) -> Optional[Ptr]:
        writer = self._lib.GEOSWKBWriter_create_r(ctx)
        if writer:
            self._lib.GEOSWKBWriter_setOutputDimension_r(ctx, writer, int(output_dimension))
        return writer

    def wkb_writer_destroy(self, ctx: Ptr, writer: Ptr) -> None:
        self._lib.GEOSWKBWriter_destroy_r(ctx, writer)

    def wkb_writer_write(self, ctx: Ptr, writer: Ptr, geom: Ptr) -> Optional[bytes]:
        size = c_size_t(0)
        raw = self._lib.GEOSWKBWriter_write_r(ctx, writer, geom, byref(size))
        if not raw:
            return None
        try:
            return ctypes.string_at(raw, size.value)
        finally:
            self._lib.GEOSFree_r(ctx, raw)

    # -------------------------
    # GEOMETRY LIFECYCLE / TAGS
    # -------------------------

    def geom_clone(self, ctx: Ptr, geom: Ptr) -> Optional[Ptr]:
        return self._lib.GEOSGeom_clone_r(ctx, geom)

    def geom_destroy(self, ctx: Ptr, geom: Ptr) -> None:
        self._lib.GEOSGeom_destroy_r(ctx, geom)

    def geom_type_id(self, ctx: Ptr, geom: Ptr) -> Optional[int]:
        type_id = self._lib.GEOSGeomTypeId_r(ctx, geom)
        return None if type_id < 0 else type_id

    def geom_get_srid(self, ctx: Ptr, geom: Ptr) -> Optional[int]:
        return self._lib.GEOSGetSRID_r(ctx, geom)

    def geom_set_srid(self, ctx: Ptr, geom: Ptr, srid: int) -> None:
        self._lib.GEOSSetSRID_r(ctx, geom, int(srid))

    def geom_is_empty(self, ctx: Ptr, geom: Ptr) -> Optional[bool]:
        res = self._lib.GEOSisEmpty_r(ctx, geom)
        return None if res == 2 else bool(res)

    def geom_dimension(self, ctx: Ptr, geom: Ptr) -> Optional[int]:
        # topological dimension of the type: 0 points, 1 lines, 2 areas
        return self._lib.GEOSGeom_getDimensions_r(ctx, geom)

    def geom_equals(self, ctx: Ptr, geom_a: Ptr, geom_b: Ptr) -> Optional[bool]:
        res = self._lib.GEOSEquals_r(ctx, geom_a, geom_b)
        return None if res == 2 else bool(res)

    # -------------------------
    # COORDINATE SEQUENCES
    # -------------------------

    def geom_get_coord_seq(self, ctx: Ptr, geom: Ptr) -> Optional[Ptr]:
        return self._lib.GEOSGeom_getCoordSeq_r(ctx, geom)

    def coordseq_size(self, ctx: Ptr, seq: Ptr) -> Optional[int]:
        size = c_uint(0)
        if not self._lib.GEOSCoordSeq_getSize_r(ctx, seq, byref(size)):
            return None
        return int(size.value)

    def _coordseq_get(self, fn, ctx: Ptr, seq: Ptr, idx: int) -> Optional[float]:
        val = c_double(0.0)
        if not fn(ctx, seq, int(idx), byref(val)):
            return None
        return float(val.value)

    def coordseq_get_x(self, ctx: Ptr, seq: Ptr, idx: int) -> Optional[float]:
        return self._coordseq_get(self._lib.GEOSCoordSeq_getX_r, ctx, seq, idx)

    def coordseq_get_y(self, ctx: Ptr, seq: Ptr, idx: int) -> Optional[float]:
        return self._coordseq_get(self._lib.GEOSCoordSeq_getY_r, ctx, seq, idx)

    def coordseq_get_z(self, ctx: Ptr, seq: Ptr, idx: int) -> Optional[float]:
        # A 2D sequence hands back NaN for Z; report that as a failed read.
        dims = c_uint(0)
        if not self._lib.GEOSCoordSeq_getDimensions_r(ctx, seq, byref(dims)) or dims.value < 3:
            return None
        return self._coordseq_get(self._lib.GEOSCoordSeq_getZ_r, ctx, seq, idx)

    def coordseq_create(self, ctx: Ptr, coords: Sequence[Sequence[float]], dims: int) -> Optional[Ptr]:
        seq = self._lib.GEOSCoordSeq_create_r(ctx, len(coords), int(dims))
        if not seq:
            return None
        setters = (self._lib.GEOSCoordSeq_setX_r, self._lib.GEOSCoordSeq_setY_r, self._lib.GEOSCoordSeq_setZ_r)
        for i, coord in enumerate(coords):
            for setter, val in zip(setters[:dims], coord):
                if not setter(ctx, seq, i, float(val)):
                    self._lib.GEOSCoordSeq_destroy_r(ctx, seq)
                    return None
        return seq

    def coordseq_destroy(self, ctx: Ptr, seq: Ptr) -> None:
        self._lib.GEOSCoordSeq_destroy_r(ctx, seq)

    # -------------------------
    # CONSTRUCTION
    # -------------------------

    def geom_create_point(self, ctx: Ptr, seq: Ptr) -> Optional[Ptr]:
        return self._lib.GEOSGeom_createPoint_r(ctx, seq)

    def geom_create_line_string(self, ctx: Ptr, seq: Ptr) -> Optional[Ptr]:
        return self._lib.GEOSGeom_createLineString_r(ctx, seq)

    def geom_create_linear_ring(self, ctx: Ptr, seq: Ptr) -> Optional[Ptr]:
        return self._lib.GEOSGeom_createLinearRing_r(ctx, seq)

    def geom_create_polygon(self, ctx: Ptr, shell: Ptr, holes: List[Ptr]) -> Optional[Ptr]:
        arr = (c_void_p * len(holes))(*holes)
        return self._lib.GEOSGeom_createPolygon_r(ctx, shell, arr, len(holes))

    def geom_create_collection(self, ctx: Ptr, type_id: int, geoms: List[Ptr]) -> Optional[Ptr]:
        arr = (c_void_p * len(geoms))(*geoms)
        return self._lib.GEOSGeom_createCollection_r(ctx, int(type_id), arr, len(geoms))

    # -------------------------
    # TRAVERSAL
    # -------------------------

    def geom_num_geometries(self, ctx: Ptr, geom: Ptr) -> Optional[int]:
        n = self._lib.GEOSGetNumGeometries_r(ctx, geom)
        return None if n < 0 else n

    def geom_geometry_n(self, ctx: Ptr, geom: Ptr, n: int) -> Optional[Ptr]:
        return self._lib.GEOSGetGeometryN_r(ctx, geom, int(n))

    def geom_exterior_ring(self, ctx: Ptr, geom: Ptr) -> Optional[Ptr]:
        return self._lib.GEOSGetExteriorRing_r(ctx, geom)

    def geom_num_interior_rings(self, ctx: Ptr, geom: Ptr) -> Optional[int]:
        n = self._lib.GEOSGetNumInteriorRings_r(ctx, geom)
        return None if n < 0 else n

    def geom_interior_ring_n(self, ctx: Ptr, geom: Ptr, n: int) -> Optional[Ptr]:
        return self._lib.GEOSGetInteriorRingN_r(ctx, geom, int(n))


@lru_cache(maxsize=None)
def default_engine() -> GeosBackend:
    """The process-wide GEOS backend; raises EngineUnavailableError if GEOS is missing."""
    return GeosBackend()
