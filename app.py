from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, model_validator

import os
import base64
import binascii
from typing import Any, Dict, List, Literal, Optional, Tuple

from dotenv import load_dotenv

from helpers import log
from geosgeom.common import EngineUnavailableError
from geosgeom.factory import Factory
from geosgeom.interface import FactoryOptions

# Load environment variables from .env file if not in production
ENV = os.getenv("ENV", "DEV").upper()
if ENV != "PROD":
    load_dotenv()

DEFAULT_SRID = int(os.getenv("DEFAULT_SRID", "0"))
BUFFER_RESOLUTION = int(os.getenv("BUFFER_RESOLUTION", "1"))

app = FastAPI()

origins = [o for o in os.getenv("CORS_ORIGINS", "").split(",") if o]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_origin_regex=r"^http://(localhost|127\.0\.0\.1):\d+$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ----------------------------------------------------------------------
# Factories
# ----------------------------------------------------------------------

class FactoryPool:
    """One factory per (srid, has_z), created on first use."""

    def __init__(self, engine=None):
        self._engine = engine
        self._factories: Dict[Tuple[int, bool], Factory] = {}

    def get(self, srid: Optional[int] = None, has_z: bool = False) -> Factory:
        key = (DEFAULT_SRID if srid is None else int(srid), bool(has_z))
        factory = self._factories.get(key)
        if factory is None:
            opts = FactoryOptions(srid=key[0], buffer_resolution=BUFFER_RESOLUTION, has_z_coordinate=key[1])
            factory = Factory.create(opts.flags, opts.srid, opts.buffer_resolution, engine=self._engine)
            if factory is None:
                raise HTTPException(status_code=500, detail="Failed to allocate a geometry engine context")
            self._factories[key] = factory
        return factory

    def version(self) -> Optional[str]:
        return self.get().engine.version()

_pool: Optional[FactoryPool] = None

async def get_pool() -> FactoryPool:
    global _pool
    if _pool is None:
        try:
            _pool = FactoryPool()
            _pool.get()
        except EngineUnavailableError as e:
            _pool = None
            raise HTTPException(status_code=500, detail=str(e))
    return _pool

# ----------------------------------------------------------------------
# Pydantic models for requests
# ----------------------------------------------------------------------

class GeometryInput(BaseModel):
    wkt: Optional[str] = None
    wkb: Optional[str] = None  # base64

    @model_validator(mode="after")
    def one_encoding(self):
        if (self.wkt is None) == (self.wkb is None):
            raise ValueError("exactly one of 'wkt' or 'wkb' is required")
        return self

class ParseRequest(BaseModel):
    geometry: GeometryInput
    srid: Optional[int] = None
    has_z: bool = False

class CompareRequest(BaseModel):
    a: GeometryInput
    b: GeometryInput
    srid: Optional[int] = None
    has_z: bool = False

class CollectRequest(BaseModel):
    kind: Literal["multi_point", "multi_line_string", "multi_polygon", "geometry_collection"]
    members: List[GeometryInput]
    srid: Optional[int] = None
    has_z: bool = False

# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def parse_input(factory: Factory, geo: GeometryInput, label: str = "geometry"):
    if geo.wkt is not None:
        geom = factory.parse_wkt(geo.wkt)
    else:
        try:
            data = base64.b64decode(geo.wkb, validate=True)
        except (binascii.Error, ValueError) as e:
            raise HTTPException(status_code=400, detail=f"{label}: invalid base64 WKB: {e}")
        geom = factory.parse_wkb(data)
    if geom is None:
        raise HTTPException(status_code=400, detail=f"{label}: could not be parsed")
    return geom

def geometry_payload(geom) -> Dict[str, Any]:
    out = geom._serialize()
    wkb = geom.as_binary()
    out["wkb"] = base64.b64encode(wkb).decode("ascii") if wkb is not None else None
    return out

# ----------------------------------------------------------------------
# Endpoints
# ----------------------------------------------------------------------

@app.get("/health")
async def health(pool: FactoryPool = Depends(get_pool)):
    return {"status": "ok", "geos_version": pool.version()}

@app.post("/parse")
async def parse(req: ParseRequest, pool: FactoryPool = Depends(get_pool)):
    factory = pool.get(req.srid, req.has_z)
    geom = parse_input(factory, req.geometry)
    return geometry_payload(geom)

@app.post("/compare")
async def compare(req: CompareRequest, pool: FactoryPool = Depends(get_pool)):
    factory = pool.get(req.srid, req.has_z)
    a = parse_input(factory, req.a, "a")
    b = parse_input(factory, req.b, "b")
    eql = a.eql(b)
    return {
        "eql": eql.value,
        "equals": a.equals(b),
    }

@app.post("/collect")
async def collect(req: CollectRequest, pool: FactoryPool = Depends(get_pool)):
    factory = pool.get(req.srid, req.has_z)
    members = [parse_input(factory, m, f"members[{i}]") for i, m in enumerate(req.members)]

    builders = {
        "multi_point": factory.multi_point,
        "multi_line_string": factory.multi_line_string,
        "multi_polygon": factory.multi_polygon,
        "geometry_collection": factory.collection,
    }
    geom = builders[req.kind](members)
    if geom is None:
        log(f"collect: could not assemble {req.kind} from {len(members)} members", level=2)
        raise HTTPException(status_code=400, detail=f"Members cannot be assembled into a {req.kind}")
    return geometry_payload(geom)
