# geosgeom/handle.py
from __future__ import annotations

import threading
import weakref
from typing import Any, List, NamedTuple, Optional, Sequence, Union

from helpers import log
from geosgeom.common import GeometryKind
from geosgeom.protocol import EngineContext, Ptr

# Guards the read-then-clear of a handle's fields during detach, and the
# release of a handle's pointer during finalization.
_TRANSFER_LOCK = threading.RLock()


class GeometryData:
    """
    Native state behind a host geometry object.

    `geom` is either an owned native pointer or None (empty: detached or
    never populated). `klasses` is only set for collection kinds assembled
    from already-typed members.
    """
    __slots__ = ("geom", "context", "factory", "klasses")

    def __init__(self, geom: Optional[Ptr], context: Optional[EngineContext], factory: Any, klasses: Optional[List[type]] = None):
        self.geom = geom
        self.context = context
        self.factory = factory
        self.klasses = klasses

    def clear(self) -> None:
        self.geom = None
        self.context = None
        self.factory = None
        self.klasses = None


class DetachedGeometry(NamedTuple):
    """A native pointer moved out of a handle; bind it to exactly one new owner."""
    geom: Ptr
    klass: Union[type, List[type]]


class BorrowedGeometry(NamedTuple):
    """A native pointer still owned by `owner`; valid while `owner` is referenced."""
    geom: Ptr
    owner: Any


def _destroy_geometry(data: GeometryData) -> None:
    with _TRANSFER_LOCK:
        geom, context = data.geom, data.context
        data.geom = None
    if geom is not None:
        context.engine.geom_destroy(context.handle, geom)


# ======================================================================
# Type dispatch
# ======================================================================

def infer_kind(context: EngineContext, geom: Ptr) -> GeometryKind:
    return GeometryKind.from_type_id(context.engine.geom_type_id(context.handle, geom))

def infer_class(registry, context: EngineContext, geom: Ptr) -> type:
    return registry.klass_for(infer_kind(context, geom))


# ======================================================================
# Wrapping
# ======================================================================

def wrap(factory, geom: Optional[Ptr], explicit_class: Union[type, Sequence[type], None] = None):
    """
    Bind `geom` (ownership included) to a new host object of the right class.

    A concrete class is used as given. Otherwise the class comes from the
    geometry's type tag, and a class list is kept as the per-member override
    when that tag is a collection kind.
    """
    if geom is None and not isinstance(explicit_class, type):
        return None

    context = factory.context
    klass = explicit_class
    klasses = None
    if not isinstance(explicit_class, type):
        kind = infer_kind(context, geom)
        if isinstance(explicit_class, (list, tuple)) and kind.is_collection:
            klasses = list(explicit_class)
        klass = factory.registry.klass_for(kind)

    if geom is not None:
        context.engine.geom_set_srid(context.handle, geom, factory.srid)

    data = GeometryData(geom, context, factory, klasses)
    obj = klass(data)
    obj._finalizer = weakref.finalize(obj, _destroy_geometry, data)
    return obj

def clone_wrap(factory, geom: Optional[Ptr], explicit_class: Union[type, Sequence[type], None] = None):
    if geom is None:
        return None
    context = factory.context
    clone = context.engine.geom_clone(context.handle, geom)
    if clone is None:
        return None
    return wrap(factory, clone, explicit_class)

def is_native_handle(value: Any) -> bool:
    """True only for objects produced by wrap() above."""
    fin = getattr(value, "_finalizer", None)
    if not isinstance(fin, weakref.finalize):
        return False
    info = fin.peek()
    return info is not None and info[0] is value and info[1] is _destroy_geometry

def native_data(value: Any) -> Optional[GeometryData]:
    return value._data if is_native_handle(value) else None


# ======================================================================
# Conversion and ownership transfer
# ======================================================================

def extract_or_cast(factory, value: Any, requested_type: Optional[type] = None) -> Optional[BorrowedGeometry]:
    data = native_data(value)
    if requested_type is None and data is not None and data.factory is factory:
        obj = value
    else:
        obj = factory.registry.caster(value, factory, requested_type)
    if obj is None or obj._data.geom is None:
        return None
    return BorrowedGeometry(obj._data.geom, obj)

def detach(value: Any, factory, requested_type: Optional[type] = None) -> Optional[DetachedGeometry]:
    """
    Move a fresh copy of `value`'s native geometry out to the caller.

    The cast result is emptied in place, so its finalizer releases nothing.
    When the cast fails nothing is touched.
    """
    obj = factory.registry.caster(value, factory, requested_type, force_new=True, keep_subtype=True)
    if obj is None:
        log(f"detach: cannot cast {type(value).__name__} to {getattr(requested_type, '__name__', requested_type)}", level=3)
        return None

    with _TRANSFER_LOCK:
        data = obj._data
        geom = data.geom
        klass = data.klasses if data.klasses is not None else type(obj)
        data.clear()

    if geom is None:
        return None
    return DetachedGeometry(geom, klass)
