"""Marching Squares のケース表。

4 bit のケースコード（セル 4 隅が閾値以上かどうか）から、
単位正方形内の線分（0〜2 本）を引く定数表を提供する。

ビットと隅の対応（セル `(x, y)` の場合）
----------------------------------------
- bit 0: サンプル `(x, y + 1)`
- bit 1: サンプル `(x + 1, y + 1)`
- bit 2: サンプル `(x + 1, y)`
- bit 3: サンプル `(x, y)`

Notes
-----
- 線分座標は半整数格子上にあり、セルのオフセット `(x, y)` を足して絶対座標にする。
- 線分の始点→終点の向きが、縫合後のリングの巻き方向を決める（並べ替え禁止）。
- 鞍点（5 と 10）は中心値を見ずに、常に表のとおり 2 本を出す。
"""

from __future__ import annotations

Segment = tuple[tuple[float, float], tuple[float, float]]

CASES: tuple[tuple[Segment, ...], ...] = (
    (),
    (((1.0, 1.5), (0.5, 1.0)),),
    (((1.5, 1.0), (1.0, 1.5)),),
    (((1.5, 1.0), (0.5, 1.0)),),
    (((1.0, 0.5), (1.5, 1.0)),),
    (
        ((1.0, 1.5), (0.5, 1.0)),
        ((1.0, 0.5), (1.5, 1.0)),
    ),
    (((1.0, 0.5), (1.0, 1.5)),),
    (((1.0, 0.5), (0.5, 1.0)),),
    (((0.5, 1.0), (1.0, 0.5)),),
    (((1.0, 1.5), (1.0, 0.5)),),
    (
        ((0.5, 1.0), (1.0, 0.5)),
        ((1.5, 1.0), (1.0, 1.5)),
    ),
    (((1.5, 1.0), (1.0, 0.5)),),
    (((0.5, 1.0), (1.5, 1.0)),),
    (((1.0, 1.5), (1.5, 1.0)),),
    (((0.5, 1.0), (1.0, 1.5)),),
    (),
)

# 全隅が同じ側にあり、線分を出さないケース。
EMPTY_CASES = (0, 15)
