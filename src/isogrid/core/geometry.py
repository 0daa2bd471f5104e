# src/isogrid/core/geometry.py
# 等値線・等値帯の出力ジオメトリ（穴あき多角形とその集合、ポリライン集合）。

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence

import numpy as np


def _as_closed_ring(ring: np.ndarray | Sequence[Sequence[float]], *, name: str) -> np.ndarray:
    """リングを shape `(N, 2)` の読み取り専用配列に揃え、必要なら先頭点を末尾に複製する。"""

    arr = np.array(ring, copy=True)
    if arr.size == 0:
        arr = arr.reshape(0, 2)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"{name} は shape (N,2) の配列である必要がある: shape={arr.shape}")
    if arr.dtype.kind != "f":
        arr = arr.astype(np.float64)
    if arr.shape[0] > 0 and not np.array_equal(arr[0], arr[-1]):
        arr = np.concatenate([arr, arr[0:1]], axis=0)
    arr.setflags(write=False)
    return arr


def _as_line(line: np.ndarray | Sequence[Sequence[float]]) -> np.ndarray:
    arr = np.array(line, copy=True)
    if arr.size == 0:
        arr = arr.reshape(0, 2)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"line は shape (N,2) の配列である必要がある: shape={arr.shape}")
    if arr.dtype.kind != "f":
        arr = arr.astype(np.float64)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, slots=True, eq=False)
class Polygon:
    """外周 1 本と 0 本以上の穴からなる多角形。

    Parameters
    ----------
    exterior : np.ndarray
        shape `(N, 2)` の外周リング。
    interiors : tuple[np.ndarray, ...]
        穴リング列。

    Notes
    -----
    リングは閉じた形（先頭 == 末尾）に正規化し、writeable=False で保持する。
    """

    exterior: np.ndarray
    interiors: tuple[np.ndarray, ...] = ()

    def __post_init__(self) -> None:
        exterior = _as_closed_ring(self.exterior, name="exterior")
        interiors = tuple(_as_closed_ring(r, name="interior") for r in self.interiors)
        object.__setattr__(self, "exterior", exterior)
        object.__setattr__(self, "interiors", interiors)

    def rings(self) -> Iterator[np.ndarray]:
        """外周、穴の順にリングを返す。"""
        yield self.exterior
        yield from self.interiors


@dataclass(frozen=True, slots=True, eq=False)
class MultiPolygon:
    """多角形の集合。1 つの閾値（または閾値対）に対応する。"""

    polygons: tuple[Polygon, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "polygons", tuple(self.polygons))

    def __len__(self) -> int:
        return len(self.polygons)

    def __iter__(self) -> Iterator[Polygon]:
        return iter(self.polygons)

    def __getitem__(self, index: int) -> Polygon:
        return self.polygons[index]

    @property
    def is_empty(self) -> bool:
        return not self.polygons


@dataclass(frozen=True, slots=True, eq=False)
class MultiLineString:
    """ポリラインの集合。等値線の出力に使う。"""

    lines: tuple[np.ndarray, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(_as_line(ln) for ln in self.lines))

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.lines)

    def __getitem__(self, index: int) -> np.ndarray:
        return self.lines[index]

    @property
    def is_empty(self) -> bool:
        return not self.lines
