import ctypes

import pytest

from geosgeom import geos_backend
from geosgeom.common import EngineUnavailableError


def test_candidate_paths_prefer_explicit(monkeypatch):
    monkeypatch.setenv("GEOS_LIBRARY_PATH", "/opt/geos/lib/libgeos_c.so")
    monkeypatch.setattr(geos_backend.ctypes.util, "find_library", lambda name: "libgeos_c.so.1")
    paths = geos_backend._candidate_paths(None)
    assert paths[0] == "/opt/geos/lib/libgeos_c.so"
    assert paths[1] == "libgeos_c.so.1"
    assert geos_backend._candidate_paths("/x/libgeos_c.so")[0] == "/x/libgeos_c.so"


def test_load_library_failure(monkeypatch):
    def refuse(path):
        raise OSError(f"cannot open {path}")

    monkeypatch.delenv("GEOS_LIBRARY_PATH", raising=False)
    monkeypatch.setattr(geos_backend.ctypes.util, "find_library", lambda name: None)
    monkeypatch.setattr(geos_backend.ctypes, "CDLL", refuse)
    with pytest.raises(EngineUnavailableError):
        geos_backend.load_library()


def test_every_prototype_names_a_geos_function():
    assert all(name.startswith("GEOS") for name in geos_backend._PROTOTYPES)
    assert geos_backend._PROTOTYPES["GEOSWKBReader_read_r"][1][-1] is ctypes.c_size_t
