"""隣り合う 2 閾値のリング集合から isoband（等値帯）の多角形を組み立てる。

アルゴリズム
------------
1. 下側閾値のリングと上側閾値のリングを連結し、帯の境界候補とする。
2. |面積| の整数部で昇順に安定ソートする（内側のリングから処理するための並べ替え）。
3. 各リングについて「自分を含む他のリング」の数を数える。
   - 偶数: 帯の外周
   - 奇数: 穴。出現順に外周を調べ、最初に含む外周へ付ける（含む外周が無ければ捨てる）
4. 最後に多角形の並びを反転する。この並びは出力順の契約として固定している。
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

import numpy as np

from isogrid.core.features import Band
from isogrid.core.geometry import MultiPolygon, Polygon
from isogrid.core.ring_ops import OUTSIDE, contains, ring_area

logger = logging.getLogger(__name__)


def _area_sort_key(area: float) -> int:
    """|面積| の整数部をソートキーにする（非有限値も順序が定まるように丸める）。"""

    a = abs(float(area))
    if math.isnan(a):
        return 0
    if math.isinf(a):
        return 2**64 - 1
    return int(a)


def assemble_band(
    lower_rings: Sequence[np.ndarray],
    upper_rings: Sequence[np.ndarray],
    *,
    eps: float,
) -> MultiPolygon:
    """下側・上側閾値のリングから 1 本の帯の多角形集合を作る。"""

    candidates = [*lower_rings, *upper_rings]
    ordered = sorted(candidates, key=lambda r: _area_sort_key(ring_area(r)))

    n = len(ordered)
    depth = [0] * n
    for i in range(n):
        count = 0
        for j in range(n):
            if i == j:
                continue
            if contains(ordered[j], ordered[i], eps=eps) != OUTSIDE:
                count += 1
        depth[i] = count

    shells: list[np.ndarray] = []
    inner: list[np.ndarray] = []
    for ring, d in zip(ordered, depth):
        if d % 2 == 0:
            shells.append(ring)
        else:
            inner.append(ring)

    interiors: list[list[np.ndarray]] = [[] for _ in shells]
    dropped = 0
    for ring in inner:
        for k, shell in enumerate(shells):
            if contains(shell, ring, eps=eps) != OUTSIDE:
                interiors[k].append(ring)
                break
        else:
            dropped += 1
    if dropped:
        logger.debug("%d interior ring(s) matched no band shell and were dropped", dropped)

    polygons = [
        Polygon(exterior=shell, interiors=tuple(ints)) for shell, ints in zip(shells, interiors)
    ]
    polygons.reverse()
    return MultiPolygon(tuple(polygons))


def assemble_bands(
    rings_by_threshold: Sequence[tuple[Sequence[np.ndarray], float]],
    *,
    eps: float,
) -> list[Band]:
    """閾値ごとのリング集合（閾値の入力順）から、隣接ペアごとの `Band` を作る。

    Parameters
    ----------
    rings_by_threshold : Sequence[tuple[Sequence[np.ndarray], float]]
        `(rings, threshold)` の列。長さ N に対して N - 1 本の帯を返す。
    eps : float
        境界判定に使う機械イプシロン。
    """

    bands: list[Band] = []
    for (lower, min_v), (upper, max_v) in zip(rings_by_threshold, rings_by_threshold[1:]):
        geometry = assemble_band(lower, upper, eps=eps)
        bands.append(Band(geometry=geometry, min_v=min_v, max_v=max_v))
    return bands
