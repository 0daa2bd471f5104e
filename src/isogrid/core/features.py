# src/isogrid/core/features.py
# ContourBuilder が返す値オブジェクト（ジオメトリ + 閾値属性）。

from __future__ import annotations

from dataclasses import dataclass

from isogrid.core.geometry import MultiLineString, MultiPolygon


@dataclass(frozen=True, slots=True, eq=False)
class Contour:
    """閾値以上の領域を表す多角形集合と、その閾値。"""

    geometry: MultiPolygon
    threshold: float

    def into_inner(self) -> tuple[MultiPolygon, float]:
        return self.geometry, self.threshold


@dataclass(frozen=True, slots=True, eq=False)
class Line:
    """閾値の等値線（ポリライン集合）と、その閾値。"""

    geometry: MultiLineString
    threshold: float

    def into_inner(self) -> tuple[MultiLineString, float]:
        return self.geometry, self.threshold


@dataclass(frozen=True, slots=True, eq=False)
class Band:
    """`min_v <= 値 < max_v` の領域を表す多角形集合と、その閾値対。"""

    geometry: MultiPolygon
    min_v: float
    max_v: float

    def into_inner(self) -> tuple[MultiPolygon, float, float]:
        return self.geometry, self.min_v, self.max_v
