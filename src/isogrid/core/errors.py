# src/isogrid/core/errors.py
# 等値線計算で送出する例外の分類。

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """`ContourError` の種別。"""

    BAD_DIMENSION = "bad_dimension"
    INSUFFICIENT_THRESHOLDS = "insufficient_thresholds"
    UNEXPECTED = "unexpected"


class ContourError(Exception):
    """isogrid が送出する例外の基底クラス。

    Notes
    -----
    `kind` で種別を判定できる。呼び出し側は個別のサブクラスで捕捉してもよい。
    """

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message if message is not None else self.default_message())

    @classmethod
    def default_message(cls) -> str:
        return "Unexpected error while computing contours"


class BadDimensionError(ContourError, ValueError):
    """値配列の長さが格子寸法 `dx * dy` と一致しない。"""

    kind = ErrorKind.BAD_DIMENSION

    @classmethod
    def default_message(cls) -> str:
        return "The length of provided values doesn't match the (dx, dy) dimensions of the grid"


class InsufficientThresholdsError(ContourError, ValueError):
    """isoband の計算に必要な 2 つ以上の閾値が与えられていない。"""

    kind = ErrorKind.INSUFFICIENT_THRESHOLDS

    @classmethod
    def default_message(cls) -> str:
        return "At least 2 thresholds are required to compute isobands"


class InternalInconsistencyError(ContourError, RuntimeError):
    """リング縫合の不変条件が壊れた（実装のバグを示す）。

    入力データでは修復できないため、再試行しても結果は変わらない。
    """

    kind = ErrorKind.UNEXPECTED
