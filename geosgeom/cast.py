# geosgeom/cast.py
from __future__ import annotations

from typing import Any, Optional

from geosgeom.handle import clone_wrap, native_data, wrap


def cast(
    value: Any,
    factory,
    requested_type: Optional[type] = None,
    force_new: bool = False,
    keep_subtype: bool = False,
):
    """
    Coerce `value` into a geometry bound to `factory`.

    Only geometries created by this package are accepted. A requested type
    must be a superclass of the value's class; without keep_subtype the
    result takes the requested class itself. With force_new the result is
    always a fresh native copy, never the input object.
    """
    data = native_data(value)
    if data is None or data.geom is None:
        return None

    klass = type(value)
    if requested_type is not None and not issubclass(klass, requested_type):
        return None
    target = klass if (keep_subtype or requested_type is None) else requested_type

    if data.factory is factory:
        if not force_new and target is klass:
            return value
        return clone_wrap(factory, data.geom, data.klasses if data.klasses is not None else target)

    # Different factory: move the content across contexts through WKB.
    wkb = data.factory.generate_wkb(value)
    if wkb is None:
        return None
    reader = factory._wkb_reader()
    if reader is None:
        return None
    geom = factory.engine.wkb_reader_read(factory.context.handle, reader, wkb)
    if geom is None:
        return None
    return wrap(factory, geom, data.klasses if data.klasses is not None else target)
