"""Marching Squares で格子を走査し、線分を閉じたリングへ縫合する。

処理の全体像（読む順）
----------------------
1. `case_codes()` が閾値判定のマスクを 0 で 1 周パディングし、
   双対格子 `(dy + 1) x (dx + 1)` セルの 4 bit ケースコードを一括で求める
   （格子外の隅は常に 0 扱い = 先頭/末尾の行・列の特別扱いと同じ結果）。
2. `IsoRingBuilder.compute()` が非自明なセル（0 / 15 以外）をラスタ順に訪問し、
   `CASES` の線分をセル位置だけ平行移動して `_stitch()` に渡す。
3. `_stitch()` は端点キーで引ける 2 つの dict（start / end）と断片アリーナを使い、
   線分を既存断片へ「前に付ける / 後ろに付ける / 2 断片を連結する / 閉じる」。
4. 閉じた断片はリング（先頭点 == 末尾点の `(N, 2)` 配列）として出力する。

不変条件
--------
- アリーナ内の各断片は、start キーが `fragment_by_start` に、end キーが `fragment_by_end` に
  ちょうど 1 回ずつ登録されている。
- 格子境界の外側は 0 扱いなので、走査完了時には全断片が閉じている。
  どちらかが破れた場合は実装バグとして `InternalInconsistencyError` を送出する。
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any

import numpy as np

from isogrid.core.case_table import CASES, EMPTY_CASES, Segment
from isogrid.core.errors import InternalInconsistencyError
from isogrid.core.grid import Grid, as_grid, validate_dimensions

logger = logging.getLogger(__name__)

Point = tuple[float, float]


@dataclass(slots=True)
class _Fragment:
    """縫合途中の開いたポリライン。`IsoRingBuilder` の外には出さない。"""

    start: int
    end: int
    ring: deque[Point]


def case_codes(grid: Grid, threshold: float) -> np.ndarray:
    """双対格子の各セルの 4 bit ケースコードを返す。

    Returns
    -------
    np.ndarray
        uint8 型 shape `(dy + 1, dx + 1)`。要素 `[y + 1, x + 1]` がセル `(x, y)`
        （`-1 <= x < dx`, `-1 <= y < dy`）のコード。
    """

    above = np.zeros((grid.dy + 2, grid.dx + 2), dtype=np.uint8)
    # NaN は比較が常に False なので「閾値未満」側に入る。
    above[1:-1, 1:-1] = grid.matrix >= threshold

    codes = above[1:, :-1].copy()  # bit 0: (x, y+1)
    codes |= above[1:, 1:] << 1  # bit 1: (x+1, y+1)
    codes |= above[:-1, 1:] << 2  # bit 2: (x+1, y)
    codes |= above[:-1, :-1] << 3  # bit 3: (x, y)
    return codes


class IsoRingBuilder:
    """閾値ごとのリングを計算する Marching Squares + 縫合エンジン。

    同じインスタンスを複数の閾値で使い回せる（断片アリーナや dict の再確保を避けるため）。
    使い回した場合も、毎回 `compute()` 冒頭で内部状態を全消去するので結果は新規インスタンスと同一。
    スレッド間での共有はしないこと（1 スレッド 1 インスタンス）。
    """

    def __init__(self, dx: int, dy: int) -> None:
        self.dx, self.dy = validate_dimensions(dx, dy)
        self._fragment_by_start: dict[int, int] = {}
        self._fragment_by_end: dict[int, int] = {}
        self._fragments: dict[int, _Fragment] = {}
        self._next_id = 0
        self._is_empty = True

    def compute(self, values: Any, threshold: float) -> list[np.ndarray]:
        """`values >= threshold` の領域境界をリング列として返す。

        Parameters
        ----------
        values : Any
            `Grid`、長さ `dx * dy` の 1 次元配列、または shape `(dy, dx)` の 2 次元配列。
        threshold : float
            閾値。

        Returns
        -------
        list[np.ndarray]
            float64 型 shape `(N, 2)` のリング列（先頭点 == 末尾点）。

        Raises
        ------
        BadDimensionError
            値配列の長さが `dx * dy` と一致しない場合。
        InternalInconsistencyError
            縫合の不変条件が破れた場合。
        """

        grid = as_grid(values, self.dx, self.dy)
        if not self._is_empty:
            self.clear()

        codes = case_codes(grid, float(threshold))
        active = (codes != EMPTY_CASES[0]) & (codes != EMPTY_CASES[1])

        result: list[deque[Point]] = []
        # np.argwhere は行優先（y → x）の順で返すので、走査順はラスタ順になる。
        for cy, cx in np.argwhere(active).tolist():
            x = cx - 1
            y = cy - 1
            for segment in CASES[int(codes[cy, cx])]:
                self._stitch(segment, x, y, result)

        self._is_empty = False
        if self._fragments:
            raise InternalInconsistencyError(
                f"走査完了後に閉じていない断片が残っている: n={len(self._fragments)}"
            )

        logger.debug("threshold=%r: %d rings", threshold, len(result))
        return [np.asarray(list(ring), dtype=np.float64).reshape(-1, 2) for ring in result]

    def clear(self) -> None:
        """断片アリーナと端点 dict を空にする。"""
        self._fragments.clear()
        self._fragment_by_start.clear()
        self._fragment_by_end.clear()
        self._next_id = 0
        self._is_empty = True

    def _key(self, point: Point) -> int:
        """半整数格子上の端点を一意な整数キーへ写す（幾何には使わない）。"""
        return int(point[0] * 2.0 + point[1] * (self.dx + 1.0) * 4.0)

    def _insert(self, fragment: _Fragment) -> int:
        fid = self._next_id
        self._next_id += 1
        self._fragments[fid] = fragment
        self._fragment_by_start[fragment.start] = fid
        self._fragment_by_end[fragment.end] = fid
        return fid

    def _get(self, fid: int) -> _Fragment:
        try:
            return self._fragments[fid]
        except KeyError as exc:
            raise InternalInconsistencyError(f"断片がアリーナに存在しない: id={fid}") from exc

    def _take(self, fid: int) -> _Fragment:
        try:
            return self._fragments.pop(fid)
        except KeyError as exc:
            raise InternalInconsistencyError(f"断片がアリーナに存在しない: id={fid}") from exc

    @staticmethod
    def _pop_key(mapping: dict[int, int], key: int) -> int:
        try:
            return mapping.pop(key)
        except KeyError as exc:
            raise InternalInconsistencyError(f"端点キーが登録されていない: key={key}") from exc

    def _stitch(self, segment: Segment, x: int, y: int, result: list[deque[Point]]) -> None:
        """線分 1 本を既存断片へ縫い込む。閉じたリングは `result` に追加する。"""

        (sx, sy), (ex, ey) = segment
        start = (sx + x, sy + y)
        end = (ex + x, ey + y)
        start_key = self._key(start)
        end_key = self._key(end)

        if start_key in self._fragment_by_end:
            if end_key in self._fragment_by_start:
                f_id = self._pop_key(self._fragment_by_end, start_key)
                g_id = self._pop_key(self._fragment_by_start, end_key)
                if f_id == g_id:
                    f = self._take(f_id)
                    f.ring.append(end)
                    result.append(f.ring)
                else:
                    # f の末尾 == 線分の始点、g の先頭 == 線分の終点なので、f → g の順に繋ぐ。
                    f = self._get(f_id)
                    g = self._take(g_id)
                    f.ring.extend(g.ring)
                    f.end = g.end
                    self._fragment_by_end[g.end] = f_id
            else:
                f_id = self._pop_key(self._fragment_by_end, start_key)
                f = self._get(f_id)
                f.ring.append(end)
                f.end = end_key
                self._fragment_by_end[end_key] = f_id
        elif end_key in self._fragment_by_start:
            f_id = self._pop_key(self._fragment_by_start, end_key)
            f = self._get(f_id)
            f.ring.appendleft(start)
            f.start = start_key
            self._fragment_by_start[start_key] = f_id
        else:
            self._insert(_Fragment(start=start_key, end=end_key, ring=deque((start, end))))


def contour_rings(values: Any, threshold: float, dx: int, dy: int) -> list[np.ndarray]:
    """単一閾値のリング列を計算する（`IsoRingBuilder` を 1 回だけ使う簡易版）。"""

    return IsoRingBuilder(dx, dy).compute(values, threshold)
