# geosgeom/interface.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from geosgeom.common import (
    EngineUnavailableError,
    FLAG_HAS_M,
    FLAG_HAS_Z,
    FLAG_LENIENT_MULTI_POLYGON,
)
from geosgeom.factory import Factory
from geosgeom.protocol import NativeEngine


class FactoryOptions(BaseModel):
    srid: int = 0
    buffer_resolution: int = 1
    has_z_coordinate: bool = False
    has_m_coordinate: bool = False
    lenient_multi_polygon_assertions: bool = False

    @property
    def flags(self) -> int:
        flags = 0
        if self.lenient_multi_polygon_assertions:
            flags |= FLAG_LENIENT_MULTI_POLYGON
        if self.has_z_coordinate:
            flags |= FLAG_HAS_Z
        if self.has_m_coordinate:
            flags |= FLAG_HAS_M
        return flags


def supported() -> bool:
    """Whether the GEOS C library can be loaded in this process."""
    from geosgeom.geos_backend import default_engine
    try:
        default_engine()
    except EngineUnavailableError:
        return False
    return True


def preferred_factory(engine: Optional[NativeEngine] = None, **opts) -> Factory:
    """
    Create a GEOS-backed factory.

    Options are those of FactoryOptions; unknown keys are ignored. Raises
    EngineUnavailableError when GEOS cannot be loaded and RuntimeError when
    the engine refuses to allocate a context.
    """
    options = FactoryOptions(**{k: v for k, v in opts.items() if k in FactoryOptions.model_fields})
    factory = Factory.create(options.flags, options.srid, options.buffer_resolution, engine=engine)
    if factory is None:
        raise RuntimeError("Failed to allocate a geometry engine context.")
    return factory

factory = preferred_factory
