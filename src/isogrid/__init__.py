"""isogrid: Marching Squares による等値線・等値面・等値帯の計算。"""

from __future__ import annotations

from isogrid.core.builder import ContourBuilder
from isogrid.core.errors import (
    BadDimensionError,
    ContourError,
    ErrorKind,
    InsufficientThresholdsError,
    InternalInconsistencyError,
)
from isogrid.core.features import Band, Contour, Line
from isogrid.core.geometry import MultiLineString, MultiPolygon, Polygon
from isogrid.core.grid import Grid
from isogrid.core.isoring import IsoRingBuilder, contour_rings

__all__ = [
    "BadDimensionError",
    "Band",
    "Contour",
    "ContourBuilder",
    "ContourError",
    "ErrorKind",
    "Grid",
    "InsufficientThresholdsError",
    "InternalInconsistencyError",
    "IsoRingBuilder",
    "Line",
    "MultiLineString",
    "MultiPolygon",
    "Polygon",
    "contour_rings",
]
