# src/isogrid/core/grid.py
# 入力格子（dx * dy のサンプル列）のモデルと検証ロジック。

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np

from isogrid.core.errors import BadDimensionError

_FLOAT_DTYPES = (np.dtype(np.float32), np.dtype(np.float64))


def resolve_dtype(dtype: Any) -> np.dtype:
    """座標・サンプル計算に使う浮動小数 dtype を正規化する。

    `None` は float64 とみなす。float32 / float64 以外は ValueError。
    """

    if dtype is None:
        return np.dtype(np.float64)
    try:
        resolved = np.dtype(dtype)
    except TypeError as exc:
        raise ValueError(f"dtype は float32 または float64 である必要がある: got={dtype!r}") from exc
    if resolved not in _FLOAT_DTYPES:
        raise ValueError(f"dtype は float32 または float64 である必要がある: got={dtype!r}")
    return resolved


def validate_dimensions(dx: Any, dy: Any) -> tuple[int, int]:
    """格子寸法が正の整数であることを検証して返す。"""

    for name, v in (("dx", dx), ("dy", dy)):
        if isinstance(v, bool) or not isinstance(v, (int, np.integer)):
            raise ValueError(f"{name} は整数である必要がある: got={v!r}")
        if int(v) <= 0:
            raise ValueError(f"{name} は正の値である必要がある: got={v!r}")
    return int(dx), int(dy)


@dataclass(frozen=True, slots=True)
class Grid:
    """`dx * dy` 個のスカラー値を持つ矩形格子。

    Parameters
    ----------
    values : np.ndarray
        行優先（`index = y * dx + x`）の 1 次元配列、または shape `(dy, dx)` の 2 次元配列。
    dx : int
        列数。
    dy : int
        行数。

    Notes
    -----
    - values は内部でコピーし、1 次元・writeable=False に固定する。
      格子は複数の閾値計算（スレッドを含む）から同時に参照されるため、不変を契約とする。
    - 長さが `dx * dy` と一致しない場合は `BadDimensionError`。
    """

    values: np.ndarray
    dx: int
    dy: int

    def __post_init__(self) -> None:
        """寸法と値配列を検証し、不変条件を満たす形に固定する。"""
        dx, dy = validate_dimensions(self.dx, self.dy)
        raw = np.asarray(self.values)

        if raw.ndim == 2:
            if tuple(raw.shape) != (dy, dx):
                raise BadDimensionError(
                    f"values の shape {tuple(raw.shape)} が (dy, dx)=({dy}, {dx}) と一致しない"
                )
            raw = raw.reshape(-1)
        elif raw.ndim != 1:
            raise BadDimensionError(f"values は 1 次元または 2 次元である必要がある: ndim={raw.ndim}")

        if int(raw.shape[0]) != dx * dy:
            raise BadDimensionError()

        dtype = raw.dtype if raw.dtype in _FLOAT_DTYPES else np.dtype(np.float64)
        values = np.array(raw, dtype=dtype, copy=True)
        values.setflags(write=False)

        object.__setattr__(self, "values", values)
        object.__setattr__(self, "dx", dx)
        object.__setattr__(self, "dy", dy)

    @property
    def matrix(self) -> np.ndarray:
        """shape `(dy, dx)` の読み取り専用ビューを返す。"""
        return self.values.reshape(self.dy, self.dx)


def as_grid(values: Any, dx: int, dy: int, *, dtype: Any = None) -> Grid:
    """任意の値配列を `Grid` に変換する。

    `values` がすでに同じ寸法・dtype の `Grid` なら、そのまま返す（コピーしない）。
    """

    target = resolve_dtype(dtype) if dtype is not None else None
    if isinstance(values, Grid):
        if (values.dx, values.dy) != (int(dx), int(dy)):
            raise BadDimensionError()
        if target is None or values.values.dtype == target:
            return values
        return Grid(values=values.values.astype(target), dx=values.dx, dy=values.dy)

    arr = np.asarray(values)
    if target is not None:
        arr = arr.astype(target, copy=False)
    return Grid(values=arr, dx=dx, dy=dy)
