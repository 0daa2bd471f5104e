"""矩形格子の値から等値線・等値面（contour）・等値帯（isoband）を計算する公開 API。

使い方
------
```python
builder = ContourBuilder(10, 10, smooth=True).with_transform(x_step=2.0, x_origin=100.0)
contours = builder.contours(values, [0.5, 1.5])
bands = builder.isobands(values, [0.5, 1.5, 2.5])
```

処理の流れ
----------
1. 値配列を `Grid` に変換する（長さ不一致はここで `BadDimensionError`）。
2. 閾値ごとに `IsoRingBuilder.compute()` でリングを得る。
   - 逐次モードでは 1 つの `IsoRingBuilder` を閾値間で使い回す。
   - `workers > 1` ではスレッドごとに 1 つの `IsoRingBuilder` を持ち、
     `ThreadPoolExecutor.map()` で計算する（結果は閾値の入力順のまま）。
3. リングを後処理（スムージング → 重複除去（isoband のみ）→ 座標変換）する。
4. `lines` はそのままポリライン集合に、`contours` は外周/穴の多角形に、
   `isobands` は隣接閾値ペアの帯多角形に組み立てる。
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Sequence, TypeVar

import numpy as np

from isogrid.core.bands import assemble_bands
from isogrid.core.errors import InsufficientThresholdsError
from isogrid.core.features import Band, Contour, Line
from isogrid.core.geometry import MultiLineString
from isogrid.core.grid import Grid, as_grid, resolve_dtype, validate_dimensions
from isogrid.core.isoring import IsoRingBuilder
from isogrid.core.polygons import assemble_polygons
from isogrid.core.postprocess import dedup_ring, smooth_linear, transform_ring
from isogrid.core.ring_ops import machine_epsilon
from isogrid.core.runtime_config import runtime_config

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# isoband では、重複除去後にこの点数以下のリングを捨てる。
_MIN_BAND_RING_POINTS = 3


@dataclass(frozen=True, slots=True)
class ContourBuilder:
    """格子寸法・スムージング・座標変換をまとめた不変の計算設定。

    Parameters
    ----------
    dx, dy : int
        格子の列数・行数（正の整数）。
    smooth : bool
        True のとき、交点を隣接サンプルの線形補間位置へ寄せる。
    x_origin, y_origin : float
        出力座標の原点。既定 0。
    x_step, y_step : float
        1 セルあたりの出力座標の刻み。既定 1。
    workers : int | None
        閾値ごとの計算に使うスレッド数。None なら `runtime_config().workers`。
    dtype : Any
        計算精度（float32 / float64）。None なら `runtime_config().dtype`。
    """

    dx: int
    dy: int
    smooth: bool
    x_origin: float = field(default=0.0, kw_only=True)
    y_origin: float = field(default=0.0, kw_only=True)
    x_step: float = field(default=1.0, kw_only=True)
    y_step: float = field(default=1.0, kw_only=True)
    workers: int | None = field(default=None, kw_only=True)
    dtype: Any = field(default=None, kw_only=True)

    def __post_init__(self) -> None:
        dx, dy = validate_dimensions(self.dx, self.dy)
        object.__setattr__(self, "dx", dx)
        object.__setattr__(self, "dy", dy)
        object.__setattr__(self, "smooth", bool(self.smooth))
        for name in ("x_origin", "y_origin", "x_step", "y_step"):
            object.__setattr__(self, name, float(getattr(self, name)))
        if self.workers is not None:
            if isinstance(self.workers, bool) or int(self.workers) <= 0:
                raise ValueError(f"workers は正の整数である必要がある: got={self.workers!r}")
            object.__setattr__(self, "workers", int(self.workers))
        if self.dtype is not None:
            object.__setattr__(self, "dtype", resolve_dtype(self.dtype))

    def with_transform(
        self,
        *,
        x_origin: float | None = None,
        y_origin: float | None = None,
        x_step: float | None = None,
        y_step: float | None = None,
    ) -> ContourBuilder:
        """原点・刻みを差し替えた新しい builder を返す（None の項目は現状維持）。"""

        return replace(
            self,
            x_origin=self.x_origin if x_origin is None else x_origin,
            y_origin=self.y_origin if y_origin is None else y_origin,
            x_step=self.x_step if x_step is None else x_step,
            y_step=self.y_step if y_step is None else y_step,
        )

    def lines(self, values: Any, thresholds: Sequence[float]) -> list[Line]:
        """閾値ごとの等値線（`Line`）を返す。"""

        grid = self._grid(values)
        levels = [float(t) for t in thresholds]
        logger.debug("lines: dx=%d dy=%d thresholds=%d", self.dx, self.dy, len(levels))

        def run(isoring: IsoRingBuilder, threshold: float) -> Line:
            rings = self._rings(isoring, grid, threshold, dedup=False)
            return Line(geometry=MultiLineString(tuple(rings)), threshold=threshold)

        return self._map_thresholds(levels, run)

    def contours(self, values: Any, thresholds: Sequence[float]) -> list[Contour]:
        """閾値ごとの「値 >= 閾値」領域の多角形集合（`Contour`）を返す。"""

        grid = self._grid(values)
        levels = [float(t) for t in thresholds]
        eps = machine_epsilon(grid.values.dtype)
        logger.debug("contours: dx=%d dy=%d thresholds=%d", self.dx, self.dy, len(levels))

        def run(isoring: IsoRingBuilder, threshold: float) -> Contour:
            rings = self._rings(isoring, grid, threshold, dedup=False)
            return Contour(geometry=assemble_polygons(rings, eps=eps), threshold=threshold)

        return self._map_thresholds(levels, run)

    def isobands(self, values: Any, thresholds: Sequence[float]) -> list[Band]:
        """隣接する閾値ペアごとの等値帯（`Band`）を返す。

        Raises
        ------
        BadDimensionError
            値配列の長さが `dx * dy` と一致しない場合（閾値の検証より先に判定する）。
        InsufficientThresholdsError
            閾値が 2 つ未満の場合。
        """

        grid = self._grid(values)
        levels = [float(t) for t in thresholds]
        if len(levels) < 2:
            raise InsufficientThresholdsError(
                f"isobands には 2 つ以上の閾値が必要: got={len(levels)}"
            )
        eps = machine_epsilon(grid.values.dtype)
        logger.debug("isobands: dx=%d dy=%d thresholds=%d", self.dx, self.dy, len(levels))

        def run(isoring: IsoRingBuilder, threshold: float) -> tuple[list[np.ndarray], float]:
            rings = self._rings(isoring, grid, threshold, dedup=True)
            return [r for r in rings if r.shape[0] > _MIN_BAND_RING_POINTS], threshold

        rings_by_threshold = self._map_thresholds(levels, run)
        return assemble_bands(rings_by_threshold, eps=eps)

    def _resolved_dtype(self) -> np.dtype:
        if self.dtype is not None:
            return self.dtype
        return runtime_config().dtype

    def _resolved_workers(self) -> int:
        if self.workers is not None:
            return self.workers
        return runtime_config().workers

    def _grid(self, values: Any) -> Grid:
        return as_grid(values, self.dx, self.dy, dtype=self._resolved_dtype())

    def _rings(
        self,
        isoring: IsoRingBuilder,
        grid: Grid,
        threshold: float,
        *,
        dedup: bool,
    ) -> list[np.ndarray]:
        """1 閾値分のリングを計算し、後処理まで済ませて返す。"""

        dtype = grid.values.dtype
        out: list[np.ndarray] = []
        for ring in isoring.compute(grid, threshold):
            if self.smooth:
                ring = smooth_linear(ring, grid, threshold)
            else:
                ring = ring.astype(dtype, copy=False)
            if dedup:
                ring = dedup_ring(ring)
            ring = transform_ring(
                ring,
                x_step=self.x_step,
                y_step=self.y_step,
                x_origin=self.x_origin,
                y_origin=self.y_origin,
            )
            out.append(ring)
        return out

    def _map_thresholds(
        self,
        thresholds: list[float],
        fn: Callable[[IsoRingBuilder, float], _T],
    ) -> list[_T]:
        """閾値ごとに `fn` を適用し、入力順の結果列を返す。"""

        workers = min(self._resolved_workers(), len(thresholds))
        if workers <= 1:
            isoring = IsoRingBuilder(self.dx, self.dy)
            return [fn(isoring, t) for t in thresholds]

        local = threading.local()

        def task(threshold: float) -> _T:
            isoring = getattr(local, "isoring", None)
            if isoring is None:
                isoring = IsoRingBuilder(self.dx, self.dy)
                local.isoring = isoring
            return fn(isoring, threshold)

        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(task, thresholds))
