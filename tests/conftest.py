from __future__ import annotations

import copy
import dataclasses
import gc
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import pytest

from geosgeom.cast import cast
from geosgeom.common import FLAG_HAS_Z
from geosgeom.factory import Factory
from geosgeom.registry import initialize

# ======================================================================
# In-memory engine
# ======================================================================

POINT, LINESTRING, LINEARRING, POLYGON = 0, 1, 2, 3
MULTIPOINT, MULTILINESTRING, MULTIPOLYGON, COLLECTION = 4, 5, 6, 7
TRIANGLE = 99  # a tag the dispatcher does not know

_NAMES = {
    "POINT": POINT,
    "LINESTRING": LINESTRING,
    "LINEARRING": LINEARRING,
    "POLYGON": POLYGON,
    "MULTIPOINT": MULTIPOINT,
    "MULTILINESTRING": MULTILINESTRING,
    "MULTIPOLYGON": MULTIPOLYGON,
    "GEOMETRYCOLLECTION": COLLECTION,
    "TRIANGLE": TRIANGLE,
}
_TAGS = {v: k for k, v in _NAMES.items()}

_MEMBER_TYPES = {
    MULTIPOINT: (POINT,),
    MULTILINESTRING: (LINESTRING, LINEARRING),
    MULTIPOLYGON: (POLYGON,),
}

FAKE_WKB_MAGIC = b"FAKE\x00"


@dataclass(eq=False)
class FakeSeq:
    coords: List[Tuple[float, ...]]
    dims: int


@dataclass(eq=False)
class FakeGeom:
    type_id: int
    seq: Optional[FakeSeq] = None
    children: List["FakeGeom"] = field(default_factory=list)
    srid: int = 0


class _WktParser:
    _token = re.compile(r"\s*([-+]?[0-9.][0-9.eE+-]*|[A-Za-z]+|\(|\)|,)")

    def __init__(self, text: str):
        self.toks = self._token.findall(text)
        if "".join(self.toks) != re.sub(r"\s+", "", text):
            raise ValueError("bad characters")
        self.pos = 0

    def peek(self):
        return self.toks[self.pos] if self.pos < len(self.toks) else None

    def take(self, expected=None):
        tok = self.peek()
        if tok is None or (expected is not None and tok.upper() != expected):
            raise ValueError(f"expected {expected}, got {tok}")
        self.pos += 1
        return tok

    def coord(self) -> Tuple[float, ...]:
        vals = []
        while self.peek() is not None and re.fullmatch(r"[-+0-9.eE]+", self.peek()):
            vals.append(float(self.take()))
        if len(vals) not in (2, 3):
            raise ValueError("bad coordinate")
        return tuple(vals)

    def coords(self) -> List[Tuple[float, ...]]:
        self.take("(")
        out = [self.coord()]
        while self.peek() == ",":
            self.take(",")
            out.append(self.coord())
        self.take(")")
        return out

    def _seq(self, coords, dims):
        return FakeSeq([c[:dims] for c in coords], dims)

    def body(self, type_id: int, dims: int) -> FakeGeom:
        if type_id == POINT:
            return FakeGeom(POINT, self._seq(self.coords(), dims))
        if type_id in (LINESTRING, LINEARRING, TRIANGLE):
            return FakeGeom(type_id, self._seq(self.coords(), dims))
        self.take("(")
        members = [self.member(type_id, dims)]
        while self.peek() == ",":
            self.take(",")
            members.append(self.member(type_id, dims))
        self.take(")")
        return FakeGeom(type_id, children=members)

    def member(self, type_id: int, dims: int) -> FakeGeom:
        if type_id == POLYGON:
            return FakeGeom(LINEARRING, self._seq(self.coords(), dims))
        if type_id == MULTIPOINT:
            if self.peek() == "(":
                return FakeGeom(POINT, self._seq(self.coords(), dims))
            return FakeGeom(POINT, self._seq([self.coord()], dims))
        if type_id == MULTILINESTRING:
            return FakeGeom(LINESTRING, self._seq(self.coords(), dims))
        if type_id == MULTIPOLYGON:
            return self.body(POLYGON, dims)
        return self.geometry()

    def geometry(self) -> FakeGeom:
        name = self.take().upper()
        if name not in _NAMES:
            raise ValueError(f"unknown type {name}")
        type_id = _NAMES[name]
        dims = 2
        if self.peek() is not None and self.peek().upper() == "Z":
            self.take()
            dims = 3
        if self.peek() is not None and self.peek().upper() == "EMPTY":
            self.take()
            if type_id in (POINT, LINESTRING, LINEARRING):
                return FakeGeom(type_id, FakeSeq([], dims))
            return FakeGeom(type_id)
        geom = self.body(type_id, dims)
        return geom

    def parse(self) -> FakeGeom:
        geom = self.geometry()
        if self.peek() is not None:
            raise ValueError("trailing input")
        return geom


def _fmt(v: float) -> str:
    return "%.17g" % v


def _dims_of(g: FakeGeom) -> int:
    if g.seq is not None:
        return g.seq.dims
    return max([_dims_of(c) for c in g.children] or [2])


def _write(g: FakeGeom, out_dims: int, tagged: bool = True) -> str:
    dims = min(_dims_of(g), out_dims)
    name = _TAGS[g.type_id] + (" Z" if dims == 3 else "") if tagged else ""

    def cs(seq):
        return "(" + ", ".join(" ".join(_fmt(v) for v in c[:dims]) for c in seq.coords) + ")"

    if g.seq is not None:
        body = cs(g.seq) if g.seq.coords else "EMPTY"
    elif not g.children:
        body = "EMPTY"
    elif g.type_id == POLYGON:
        body = "(" + ", ".join(cs(r.seq) for r in g.children) + ")"
    elif g.type_id in (MULTIPOINT, MULTILINESTRING):
        body = "(" + ", ".join(cs(c.seq) for c in g.children) + ")"
    elif g.type_id == MULTIPOLYGON:
        body = "(" + ", ".join(_write(c, out_dims, tagged=False) for c in g.children) + ")"
    else:
        body = "(" + ", ".join(_write(c, out_dims) for c in g.children) + ")"
    return f"{name} {body}".strip()


def _all_coords(g: FakeGeom):
    if g.seq is not None:
        yield from (c[:2] for c in g.seq.coords)
    for c in g.children:
        yield from _all_coords(c)


class FakeEngine:
    """
    NativeEngine stand-in that keeps score of native ownership.

    `owned` holds every root geometry currently owned by the caller side;
    anything destroyed or consumed that is not in it lands in `bad_frees`.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.live_contexts = set()
        self.owned = set()
        self.bad_frees: List[FakeGeom] = []
        self.fail_context = False
        self.fail_clone = False
        self.fail_size = False
        self.fail_z = False
        self._counter = 0

    def _next(self, kind):
        self._counter += 1
        return (kind, self._counter)

    def _own(self, g: Optional[FakeGeom]) -> Optional[FakeGeom]:
        if g is not None:
            self.owned.add(g)
        return g

    def _consume(self, g: FakeGeom) -> None:
        if g in self.owned:
            self.owned.remove(g)
        else:
            self.bad_frees.append(g)

    def called(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)

    # ---- context
    def version(self):
        return "fake-1.0"

    def context_create(self):
        self.calls.append(("context_create",))
        if self.fail_context:
            return None
        ctx = self._next("ctx")
        self.live_contexts.add(ctx)
        return ctx

    def context_destroy(self, ctx):
        self.calls.append(("context_destroy", ctx))
        self.live_contexts.discard(ctx)

    # ---- readers / writers
    def wkt_reader_create(self, ctx):
        self.calls.append(("wkt_reader_create",))
        return self._next("wkt_reader")

    def wkt_reader_destroy(self, ctx, reader):
        self.calls.append(("wkt_reader_destroy", reader))

    def wkt_reader_read(self, ctx, reader, text):
        self.calls.append(("wkt_reader_read",))
        try:
            return self._own(_WktParser(text).parse())
        except (ValueError, IndexError):
            return None

    def wkb_reader_create(self, ctx):
        self.calls.append(("wkb_reader_create",))
        return self._next("wkb_reader")

    def wkb_reader_destroy(self, ctx, reader):
        self.calls.append(("wkb_reader_destroy", reader))

    def wkb_reader_read(self, ctx, reader, data):
        if not data.startswith(FAKE_WKB_MAGIC):
            return None
        return self.wkt_reader_read(ctx, reader, data[len(FAKE_WKB_MAGIC):].decode("utf-8"))

    def wkt_writer_create(self, ctx, output_dimension):
        self.calls.append(("wkt_writer_create", output_dimension))
        return ("wkt_writer", output_dimension, self._next("w"))

    def wkt_writer_destroy(self, ctx, writer):
        self.calls.append(("wkt_writer_destroy", writer))

    def wkt_writer_write(self, ctx, writer, geom):
        return _write(geom, writer[1])

    def wkb_writer_create(self, ctx, output_dimension):
        self.calls.append(("wkb_writer_create", output_dimension))
        return ("wkb_writer", output_dimension, self._next("w"))

    def wkb_writer_destroy(self, ctx, writer):
        self.calls.append(("wkb_writer_destroy", writer))

    def wkb_writer_write(self, ctx, writer, geom):
        return FAKE_WKB_MAGIC + _write(geom, writer[1]).encode("utf-8")

    # ---- lifecycle / tags
    def geom_clone(self, ctx, geom):
        if self.fail_clone:
            return None
        return self._own(copy.deepcopy(geom))

    def geom_destroy(self, ctx, geom):
        self.calls.append(("geom_destroy",))
        self._consume(geom)

    def geom_type_id(self, ctx, geom):
        return geom.type_id

    def geom_get_srid(self, ctx, geom):
        return geom.srid

    def geom_set_srid(self, ctx, geom, srid):
        geom.srid = srid

    def geom_is_empty(self, ctx, geom):
        if geom.seq is not None:
            return not geom.seq.coords
        return not geom.children

    def geom_dimension(self, ctx, geom):
        if geom.type_id == POINT:
            return 0
        if geom.type_id in (LINESTRING, LINEARRING):
            return 1
        if geom.type_id in (POLYGON, TRIANGLE):
            return 2
        return max([self.geom_dimension(ctx, c) for c in geom.children] or [0])

    def geom_equals(self, ctx, geom_a, geom_b):
        return set(_all_coords(geom_a)) == set(_all_coords(geom_b))

    # ---- coordinate sequences
    def geom_get_coord_seq(self, ctx, geom):
        return geom.seq

    def coordseq_size(self, ctx, seq):
        return None if self.fail_size else len(seq.coords)

    def _ordinate(self, seq, idx, i):
        if idx >= len(seq.coords) or i >= seq.dims:
            return None
        return seq.coords[idx][i]

    def coordseq_get_x(self, ctx, seq, idx):
        return self._ordinate(seq, idx, 0)

    def coordseq_get_y(self, ctx, seq, idx):
        return self._ordinate(seq, idx, 1)

    def coordseq_get_z(self, ctx, seq, idx):
        return None if self.fail_z else self._ordinate(seq, idx, 2)

    def coordseq_create(self, ctx, coords, dims):
        return FakeSeq([tuple(float(v) for v in c[:dims]) for c in coords], dims)

    def coordseq_destroy(self, ctx, seq):
        self.calls.append(("coordseq_destroy",))

    # ---- construction
    def geom_create_point(self, ctx, seq):
        if len(seq.coords) > 1:
            return None
        return self._own(FakeGeom(POINT, seq))

    def geom_create_line_string(self, ctx, seq):
        if len(seq.coords) == 1:
            return None
        return self._own(FakeGeom(LINESTRING, seq))

    def geom_create_linear_ring(self, ctx, seq):
        if seq.coords and (len(seq.coords) < 4 or seq.coords[0] != seq.coords[-1]):
            return None
        return self._own(FakeGeom(LINEARRING, seq))

    def geom_create_polygon(self, ctx, shell, holes):
        for ring in [shell] + list(holes):
            self._consume(ring)
        if any(r.type_id != LINEARRING for r in [shell] + list(holes)):
            return None
        return self._own(FakeGeom(POLYGON, children=[shell] + list(holes)))

    def geom_create_collection(self, ctx, type_id, geoms):
        for g in geoms:
            self._consume(g)
        allowed = _MEMBER_TYPES.get(type_id)
        if allowed is not None and any(g.type_id not in allowed for g in geoms):
            return None
        return self._own(FakeGeom(type_id, children=list(geoms)))

    # ---- traversal
    def geom_num_geometries(self, ctx, geom):
        if geom.type_id in (MULTIPOINT, MULTILINESTRING, MULTIPOLYGON, COLLECTION):
            return len(geom.children)
        return 1

    def geom_geometry_n(self, ctx, geom, n):
        return geom.children[n] if 0 <= n < len(geom.children) else None

    def geom_exterior_ring(self, ctx, geom):
        return geom.children[0] if geom.children else None

    def geom_num_interior_rings(self, ctx, geom):
        return max(len(geom.children) - 1, 0)

    def geom_interior_ring_n(self, ctx, geom, n):
        return geom.children[n + 1] if 0 <= n < len(geom.children) - 1 else None


# ======================================================================
# Fixtures
# ======================================================================

class CastSpy:
    """Delegates to the real cast and remembers what it handed out."""

    def __init__(self):
        self.results = []

    def __call__(self, value, factory, requested_type=None, force_new=False, keep_subtype=False):
        res = cast(value, factory, requested_type, force_new=force_new, keep_subtype=keep_subtype)
        self.results.append(res)
        return res


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def factory(engine):
    f = Factory.create(engine=engine)
    assert f is not None
    return f


@pytest.fixture
def factory_z(engine):
    f = Factory.create(flags=FLAG_HAS_Z, engine=engine)
    assert f is not None
    return f


@pytest.fixture
def cast_spy():
    return CastSpy()


@pytest.fixture
def spy_factory(engine, cast_spy):
    registry = dataclasses.replace(initialize(), caster=cast_spy)
    f = Factory.create(engine=engine, registry=registry)
    assert f is not None
    return f


@pytest.fixture
def collect():
    def _collect():
        gc.collect()
    return _collect
