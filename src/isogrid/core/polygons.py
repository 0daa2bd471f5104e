# src/isogrid/core/polygons.py
# 1 閾値分の閉リング列を、外周（shell）と穴（hole）に振り分けて多角形集合へ組み立てる。

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from isogrid.core.geometry import MultiPolygon, Polygon
from isogrid.core.ring_ops import OUTSIDE, contains, ring_area

logger = logging.getLogger(__name__)


def assemble_polygons(rings: Sequence[np.ndarray], *, eps: float) -> MultiPolygon:
    """リング列から穴あき多角形の集合を作る。

    Parameters
    ----------
    rings : Sequence[np.ndarray]
        同一閾値の閉リング列（スムージング・座標変換済み）。
    eps : float
        境界判定に使う機械イプシロン。

    Returns
    -------
    MultiPolygon
        外周の出現順に並んだ多角形集合。

    Notes
    -----
    - 符号付き面積 > 0 のリングを外周、それ以外を穴候補とする。
    - 穴は、外周を出現順に調べて最初に「外側ではない」（`contains != -1`）と判定された
      外周へ付ける（先勝ち）。どの外周にも含まれない穴は捨てる。
    """

    shells: list[np.ndarray] = []
    holes: list[np.ndarray] = []
    for ring in rings:
        if ring_area(ring) > 0.0:
            shells.append(ring)
        else:
            holes.append(ring)

    interiors: list[list[np.ndarray]] = [[] for _ in shells]
    dropped = 0
    for hole in holes:
        for i, shell in enumerate(shells):
            if contains(shell, hole, eps=eps) != OUTSIDE:
                interiors[i].append(hole)
                break
        else:
            dropped += 1

    if dropped:
        logger.debug("%d hole(s) matched no shell and were dropped", dropped)

    return MultiPolygon(
        tuple(Polygon(exterior=shell, interiors=tuple(ints)) for shell, ints in zip(shells, interiors))
    )
