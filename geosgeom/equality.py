# geosgeom/equality.py
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from geosgeom.common import (
    GEOS_GEOMETRYCOLLECTION,
    GEOS_LINEARRING,
    GEOS_LINESTRING,
    GEOS_MULTILINESTRING,
    GEOS_MULTIPOINT,
    GEOS_MULTIPOLYGON,
    GEOS_POINT,
    GEOS_POLYGON,
)
from geosgeom.handle import native_data
from geosgeom.protocol import EngineContext, Ptr


class Equality(Enum):
    EQUAL = "equal"
    NOT_EQUAL = "not_equal"
    INDETERMINATE = "indeterminate"

    def __bool__(self):
        raise TypeError("Equality is three-valued; compare against Equality members explicitly")


def coordseq_eql(context: EngineContext, geom_a: Optional[Ptr], geom_b: Optional[Ptr], check_z: bool) -> Equality:
    """
    Exact, ordered comparison of two geometries' coordinate sequences.

    Any failed read (sequence, size, or ordinate) makes the result
    INDETERMINATE; under check_z a Z that cannot be read on either side does
    too, even where X/Y already matched.
    """
    if geom_a is None or geom_b is None:
        return Equality.INDETERMINATE

    engine, ctx = context.engine, context.handle
    cs1 = engine.geom_get_coord_seq(ctx, geom_a)
    cs2 = engine.geom_get_coord_seq(ctx, geom_b)
    if cs1 is None or cs2 is None:
        return Equality.INDETERMINATE

    len1 = engine.coordseq_size(ctx, cs1)
    len2 = engine.coordseq_size(ctx, cs2)
    if len1 is None or len2 is None:
        return Equality.INDETERMINATE
    if len1 != len2:
        return Equality.NOT_EQUAL

    getters = [engine.coordseq_get_x, engine.coordseq_get_y]
    if check_z:
        getters.append(engine.coordseq_get_z)

    for i in range(len1):
        for get in getters:
            val1 = get(ctx, cs1, i)
            if val1 is None:
                return Equality.INDETERMINATE
            val2 = get(ctx, cs2, i)
            if val2 is None:
                return Equality.INDETERMINATE
            if val1 != val2:
                return Equality.NOT_EQUAL

    return Equality.EQUAL


def klass_and_factory_eql(obj_a: Any, obj_b: Any) -> bool:
    if type(obj_a) is not type(obj_b):
        return False
    data_a, data_b = native_data(obj_a), native_data(obj_b)
    if data_a is None or data_b is None:
        return False
    return bool(data_a.factory == data_b.factory)


def geometries_strict_eql(context: EngineContext, geom_a: Optional[Ptr], geom_b: Optional[Ptr], check_z: bool) -> Equality:
    """Structural comparison following the type tags down to coordinates."""
    if geom_a is None or geom_b is None:
        return Equality.INDETERMINATE

    engine, ctx = context.engine, context.handle
    type_a = engine.geom_type_id(ctx, geom_a)
    type_b = engine.geom_type_id(ctx, geom_b)
    if type_a is None or type_b is None:
        return Equality.INDETERMINATE
    if type_a != type_b:
        return Equality.NOT_EQUAL

    if type_a in (GEOS_POINT, GEOS_LINESTRING, GEOS_LINEARRING):
        return coordseq_eql(context, geom_a, geom_b, check_z)

    if type_a == GEOS_POLYGON:
        empty_a = engine.geom_is_empty(ctx, geom_a)
        empty_b = engine.geom_is_empty(ctx, geom_b)
        if empty_a is None or empty_b is None:
            return Equality.INDETERMINATE
        if empty_a or empty_b:
            return Equality.EQUAL if empty_a == empty_b else Equality.NOT_EQUAL
        n1 = engine.geom_num_interior_rings(ctx, geom_a)
        n2 = engine.geom_num_interior_rings(ctx, geom_b)
        if n1 is None or n2 is None:
            return Equality.INDETERMINATE
        if n1 != n2:
            return Equality.NOT_EQUAL
        res = coordseq_eql(context, engine.geom_exterior_ring(ctx, geom_a), engine.geom_exterior_ring(ctx, geom_b), check_z)
        for i in range(n1):
            if res is not Equality.EQUAL:
                break
            res = coordseq_eql(context, engine.geom_interior_ring_n(ctx, geom_a, i), engine.geom_interior_ring_n(ctx, geom_b, i), check_z)
        return res

    if type_a in (GEOS_MULTIPOINT, GEOS_MULTILINESTRING, GEOS_MULTIPOLYGON, GEOS_GEOMETRYCOLLECTION):
        n1 = engine.geom_num_geometries(ctx, geom_a)
        n2 = engine.geom_num_geometries(ctx, geom_b)
        if n1 is None or n2 is None:
            return Equality.INDETERMINATE
        if n1 != n2:
            return Equality.NOT_EQUAL
        for i in range(n1):
            res = geometries_strict_eql(context, engine.geom_geometry_n(ctx, geom_a, i), engine.geom_geometry_n(ctx, geom_b, i), check_z)
            if res is not Equality.EQUAL:
                return res
        return Equality.EQUAL

    return Equality.INDETERMINATE
