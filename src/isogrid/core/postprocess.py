"""縫合直後のリングに対する後処理（線形スムージング・重複除去・アフィン変換）。

処理順
------
1. `smooth_linear()`（`smooth=True` のときだけ）
2. `dedup_ring()`（isoband のときだけ）
3. `transform_ring()`（恒等変換なら省略）

スムージングを省略した場合、交点はセル辺の中点（0.5）に固定される。
粗いが速いモードとして意図的に残している。
"""

from __future__ import annotations

import numpy as np
from numba import njit  # type: ignore[import-untyped]

from isogrid.core.grid import Grid
from isogrid.core.ring_ops import machine_epsilon


@njit(cache=True)
def _smooth_linear_numba(
    ring: np.ndarray,
    values: np.ndarray,
    dx: int,
    dy: int,
    value: float,
    eps: float,
) -> None:
    """格子線上にある頂点を、隣接 2 サンプルの線形補間位置へ動かす（in-place）。

    Notes
    -----
    - x が整数の頂点は左右 2 サンプル、y が整数の頂点は上下 2 サンプルで補間する。
    - 格子外周（x == 0, x == dx, y == 0, y == dy）の頂点は動かさない。
    - 参照サンプルは「元の座標」の切り捨て位置で決める（x を動かした後も y 側は元の xt を使う）。
    """

    n_values = int(values.shape[0])
    for k in range(int(ring.shape[0])):
        x = float(ring[k, 0])
        y = float(ring[k, 1])
        xt = int(x)
        yt = int(y)
        ix = yt * dx + xt
        if ix < 0 or ix >= n_values:
            continue
        v1 = float(values[ix])
        if x > 0.0 and x < float(dx) and abs(float(xt) - x) < eps:
            v0 = float(values[yt * dx + xt - 1])
            ring[k, 0] = x + (value - v0) / (v1 - v0) - 0.5
        if y > 0.0 and y < float(dy) and abs(float(yt) - y) < eps:
            v0 = float(values[(yt - 1) * dx + xt])
            ring[k, 1] = y + (value - v0) / (v1 - v0) - 0.5


def smooth_linear(ring: np.ndarray, grid: Grid, threshold: float) -> np.ndarray:
    """リング頂点を閾値の線形補間位置へ寄せた新しい配列を返す。

    Parameters
    ----------
    ring : np.ndarray
        shape `(N, 2)` の頂点配列（格子座標）。
    grid : Grid
        リングを計算した格子。
    threshold : float
        リングの閾値。

    Returns
    -------
    np.ndarray
        スムージング後の頂点配列（入力とは別配列、dtype は格子に合わせる）。
    """

    out = np.array(ring, dtype=grid.values.dtype, copy=True)
    if out.shape[0] == 0:
        return out
    _smooth_linear_numba(
        out,
        grid.values,
        int(grid.dx),
        int(grid.dy),
        float(threshold),
        machine_epsilon(grid.values.dtype),
    )
    return out


def dedup_ring(ring: np.ndarray) -> np.ndarray:
    """連続して重複する頂点を 1 つにまとめる（先頭と末尾の一致は残す）。"""

    if ring.shape[0] < 2:
        return ring
    keep = np.empty((ring.shape[0],), dtype=bool)
    keep[0] = True
    keep[1:] = np.any(ring[1:] != ring[:-1], axis=1)
    if bool(np.all(keep)):
        return ring
    return ring[keep]


def is_identity_transform(
    x_step: float,
    y_step: float,
    x_origin: float,
    y_origin: float,
) -> bool:
    """格子→出力座標の変換が恒等かどうか。"""

    return (x_origin, y_origin) == (0.0, 0.0) and (x_step, y_step) == (1.0, 1.0)


def transform_ring(
    ring: np.ndarray,
    *,
    x_step: float,
    y_step: float,
    x_origin: float,
    y_origin: float,
) -> np.ndarray:
    """`x' = x * x_step + x_origin`, `y' = y * y_step + y_origin` を適用する。

    恒等変換のときは入力をそのまま返す（結果は変換した場合と同じ）。
    """

    if is_identity_transform(x_step, y_step, x_origin, y_origin):
        return ring
    out = np.array(ring, copy=True)
    dtype = out.dtype.type
    out[:, 0] = out[:, 0] * dtype(x_step) + dtype(x_origin)
    out[:, 1] = out[:, 1] * dtype(y_step) + dtype(y_origin)
    return out
