# geosgeom/registry.py
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Dict

from geosgeom.common import GeometryKind
from geosgeom.protocol import Caster


@dataclass(frozen=True)
class Registry:
    """
    Kind -> host class table plus the cast collaborator.

    Built once by initialize() and handed to every factory; nothing mutates
    it afterwards.
    """
    point: type
    line_string: type
    linear_ring: type
    polygon: type
    multi_point: type
    multi_line_string: type
    multi_polygon: type
    geometry_collection: type
    generic: type
    caster: Caster

    def klass_for(self, kind: GeometryKind) -> type:
        return getattr(self, kind.value)

    def classes(self) -> Dict[GeometryKind, type]:
        return {kind: self.klass_for(kind) for kind in GeometryKind}


@lru_cache(maxsize=None)
def initialize() -> Registry:
    from geosgeom import impl
    from geosgeom.cast import cast

    return Registry(
        point=impl.GeosPoint,
        line_string=impl.GeosLineString,
        linear_ring=impl.GeosLinearRing,
        polygon=impl.GeosPolygon,
        multi_point=impl.GeosMultiPoint,
        multi_line_string=impl.GeosMultiLineString,
        multi_polygon=impl.GeosMultiPolygon,
        geometry_collection=impl.GeosGeometryCollection,
        generic=impl.GeosGeometry,
        caster=cast,
    )
