"""リング（閉曲線）に対する幾何カーネル。

符号付き面積と、点／リングの内外判定を Numba でコンパイルして提供する。
多角形組み立てと isoband のネスト解決は「リング数の 2 乗」回ここを呼ぶため、
Python ループにせずカーネル化している。

規約
----
- リングは shape `(N, 2)` の float 配列で、先頭点を末尾に複製した閉じた形を想定する。
- 面積は `Σ y[i-1] * x[i] - x[i-1] * y[i]`（1/2 しない）。y 軸下向きの格子座標で
  時計回りに見えるリング（外周）が正になる。
- 和は `y[n-2] * x[0] - x[n-2] * y[0]` から始めて `i = 1..n-1` を足す（n は点数）。
  閉じ辺の直前の辺を 2 回数えるため、値は真の 2 倍面積からずれる。
  isoband の並び順（`int(|面積|)` の安定ソート）はこの値で決まるので、式を変えないこと。
- 内外判定の戻り値は `1`（内側）, `-1`（外側）, `0`（境界上）。
"""

from __future__ import annotations

import numpy as np
from numba import njit  # type: ignore[import-untyped]

INSIDE = 1
OUTSIDE = -1
BOUNDARY = 0


def machine_epsilon(dtype: np.dtype | type) -> float:
    """dtype の機械イプシロンを返す。"""

    return float(np.finfo(dtype).eps)


@njit(cache=True)
def _ring_area_numba(ring: np.ndarray) -> float:
    n = int(ring.shape[0]) - 1
    if n < 1:
        return 0.0
    area = float(ring[n - 1, 1]) * float(ring[0, 0]) - float(ring[n - 1, 0]) * float(ring[0, 1])
    for i in range(1, n + 1):
        area += float(ring[i - 1, 1]) * float(ring[i, 0]) - float(ring[i - 1, 0]) * float(ring[i, 1])
    return area


@njit(cache=True)
def _within(p: float, q: float, r: float) -> bool:
    return (p <= q and q <= r) or (r <= q and q <= p)


@njit(cache=True)
def _segment_contains(
    ax: float,
    ay: float,
    bx: float,
    by: float,
    cx: float,
    cy: float,
    eps: float,
) -> bool:
    """点 c が線分 ab 上にあるか（共線判定はイプシロン許容）。

    閉リングの末尾→先頭は長さ 0 の辺になるため、x / y の両区間で判定する
    （片方の軸だけだと、先頭点と同じ行の点がすべて境界扱いになる）。
    """

    cross = (bx - ax) * (cy - ay) - (cx - ax) * (by - ay)
    if abs(cross) > eps:
        return False
    return _within(ax, cx, bx) and _within(ay, cy, by)


@njit(cache=True)
def _ring_contains_point_numba(ring: np.ndarray, px: float, py: float, eps: float) -> int:
    """レイキャスティングで点の内外を判定する。

    辺上の点はパリティを反転させず、その場で境界（0）を返す。
    """

    n = int(ring.shape[0])
    contains = -1
    j = n - 1
    for i in range(n):
        xi = float(ring[i, 0])
        yi = float(ring[i, 1])
        xj = float(ring[j, 0])
        yj = float(ring[j, 1])
        if _segment_contains(xi, yi, xj, yj, px, py, eps):
            return 0
        if ((yi > py) != (yj > py)) and (px < (xj - xi) * (py - yi) / (yj - yi) + xi):
            contains = -contains
        j = i
    return contains


@njit(cache=True)
def _ring_contains_ring_numba(ring: np.ndarray, hole: np.ndarray, eps: float) -> int:
    """`hole` の点を先頭から調べ、境界上でない最初の点の判定結果を返す。"""

    for k in range(int(hole.shape[0])):
        c = _ring_contains_point_numba(ring, float(hole[k, 0]), float(hole[k, 1]), eps)
        if c != 0:
            return c
    return 0


def ring_area(ring: np.ndarray) -> float:
    """リングの符号付き面積（2 倍値。閉じ辺の直前の辺を重複して数える）を返す。"""

    return float(_ring_area_numba(np.ascontiguousarray(ring)))


def ring_contains_point(ring: np.ndarray, point: tuple[float, float], *, eps: float) -> int:
    """点がリングの内側なら 1、外側なら -1、境界上なら 0 を返す。"""

    return int(
        _ring_contains_point_numba(
            np.ascontiguousarray(ring), float(point[0]), float(point[1]), float(eps)
        )
    )


def contains(ring: np.ndarray, hole: np.ndarray, *, eps: float) -> int:
    """リング `hole` がリング `ring` に含まれるかを判定する。

    Returns
    -------
    int
        境界上でない最初の `hole` 頂点についての判定（1 / -1）。
        全頂点が境界上なら 0。呼び出し側は `!= -1` を「含まれる」とみなす。
    """

    return int(
        _ring_contains_ring_numba(
            np.ascontiguousarray(ring), np.ascontiguousarray(hole), float(eps)
        )
    )
