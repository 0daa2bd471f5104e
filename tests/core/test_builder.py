"""core.builder の `ContourBuilder`（lines / contours / isobands）をテスト。"""

from __future__ import annotations

import numpy as np
import pytest

from isogrid.core.builder import ContourBuilder
from isogrid.core.errors import BadDimensionError, InsufficientThresholdsError
from isogrid.core.ring_ops import (
    INSIDE,
    OUTSIDE,
    contains,
    machine_epsilon,
    ring_area,
    ring_contains_point,
)

BLOCK_EXTERIOR = [
    (6.0, 7.5),
    (6.0, 6.5),
    (6.0, 5.5),
    (6.0, 4.5),
    (6.0, 3.5),
    (5.5, 3.0),
    (4.5, 3.0),
    (3.5, 3.0),
    (3.0, 3.5),
    (3.0, 4.5),
    (3.0, 5.5),
    (3.0, 6.5),
    (3.0, 7.5),
    (3.5, 8.0),
    (4.5, 8.0),
    (5.5, 8.0),
    (6.0, 7.5),
]


def _grid(rows: dict[int, list[float]], dx: int = 10, dy: int = 10) -> np.ndarray:
    """行番号 → 値列の指定から `dx * dy` の 1 次元配列を作る（未指定は 0）。"""
    m = np.zeros((dy, dx), dtype=np.float64)
    for y, row in rows.items():
        m[y, : len(row)] = row
    return m.reshape(-1)


def _block_grid() -> np.ndarray:
    row = [0, 0, 0, 1, 1, 1, 0, 0, 0, 0]
    return _grid({y: row for y in range(3, 8)})


def _frame_grid() -> np.ndarray:
    solid = [0, 0, 0, 1, 1, 1, 0, 0, 0, 0]
    hollow = [0, 0, 0, 1, 0, 1, 0, 0, 0, 0]
    return _grid({3: solid, 4: hollow, 5: hollow, 6: hollow, 7: solid})


def _two_blocks_grid() -> np.ndarray:
    row = [0, 0, 0, 1, 1, 0, 1, 0, 0, 0]
    return _grid({y: row for y in range(3, 8)})


def _two_frames_grid() -> np.ndarray:
    solid = [0, 1, 1, 1, 0, 1, 1, 1, 0, 0]
    hollow = [0, 1, 0, 1, 0, 1, 0, 1, 0, 0]
    return _grid({3: solid, 4: hollow, 5: solid})


def _stepped_grid() -> np.ndarray:
    return _grid(
        {
            3: [0, 0, 0, 1, 1, 1, 1, 0, 0, 0],
            4: [0, 0, 0, 1, 1, 1, 1, 0, 0, 0],
            5: [0, 0, 0, 1, 2, 2, 1, 0, 0, 0],
            6: [0, 0, 0, 1, 1, 2, 1, 0, 0, 0],
            7: [0, 0, 0, 1, 1, 1, 1, 0, 0, 0],
            8: [0, 0, 0, 1, 1, 1, 1, 0, 0, 0],
        }
    )


def _hills(dx: int, dy: int) -> np.ndarray:
    ys, xs = np.mgrid[0:dy, 0:dx].astype(np.float64)
    z = np.exp(-((xs - 12.0) ** 2 + (ys - 10.0) ** 2) / 40.0)
    z += 0.7 * np.exp(-((xs - 30.0) ** 2 + (ys - 25.0) ** 2) / 60.0)
    z /= z.max()
    return (90.0 + 110.0 * z).reshape(-1)


def _assert_ring(actual: np.ndarray, expected: list[tuple[float, float]]) -> None:
    np.testing.assert_allclose(actual, np.asarray(expected, dtype=np.float64))


def test_contours_single_block() -> None:
    res = ContourBuilder(10, 10, True, workers=1).contours(_block_grid(), [0.5])

    assert len(res) == 1
    assert res[0].threshold == 0.5
    mp = res[0].geometry
    assert len(mp) == 1
    _assert_ring(mp[0].exterior, BLOCK_EXTERIOR)
    assert mp[0].interiors == ()


def test_contours_block_with_hole() -> None:
    res = ContourBuilder(10, 10, True, workers=1).contours(_frame_grid(), [0.5])

    mp = res[0].geometry
    assert len(mp) == 1
    _assert_ring(mp[0].exterior, BLOCK_EXTERIOR)
    assert len(mp[0].interiors) == 1
    _assert_ring(
        mp[0].interiors[0],
        [
            (4.5, 7.0),
            (4.0, 6.5),
            (4.0, 5.5),
            (4.0, 4.5),
            (4.5, 4.0),
            (5.0, 4.5),
            (5.0, 5.5),
            (5.0, 6.5),
            (4.5, 7.0),
        ],
    )
    assert ring_area(mp[0].interiors[0]) < 0.0


def test_contours_two_polygons() -> None:
    res = ContourBuilder(10, 10, True, workers=1).contours(_two_blocks_grid(), [0.5])

    mp = res[0].geometry
    assert len(mp) == 2
    _assert_ring(
        mp[0].exterior,
        [
            (5.0, 7.5),
            (5.0, 6.5),
            (5.0, 5.5),
            (5.0, 4.5),
            (5.0, 3.5),
            (4.5, 3.0),
            (3.5, 3.0),
            (3.0, 3.5),
            (3.0, 4.5),
            (3.0, 5.5),
            (3.0, 6.5),
            (3.0, 7.5),
            (3.5, 8.0),
            (4.5, 8.0),
            (5.0, 7.5),
        ],
    )
    _assert_ring(
        mp[1].exterior,
        [
            (7.0, 7.5),
            (7.0, 6.5),
            (7.0, 5.5),
            (7.0, 4.5),
            (7.0, 3.5),
            (6.5, 3.0),
            (6.0, 3.5),
            (6.0, 4.5),
            (6.0, 5.5),
            (6.0, 6.5),
            (6.0, 7.5),
            (6.5, 8.0),
            (7.0, 7.5),
        ],
    )
    assert all(p.interiors == () for p in mp)


def test_contours_two_polygons_with_transform() -> None:
    builder = ContourBuilder(10, 10, True, workers=1).with_transform(
        x_step=2.0, y_step=2.0, x_origin=100.0, y_origin=200.0
    )
    mp = builder.contours(_two_blocks_grid(), [0.5])[0].geometry

    assert len(mp) == 2
    _assert_ring(
        mp[0].exterior,
        [
            (110.0, 215.0),
            (110.0, 213.0),
            (110.0, 211.0),
            (110.0, 209.0),
            (110.0, 207.0),
            (109.0, 206.0),
            (107.0, 206.0),
            (106.0, 207.0),
            (106.0, 209.0),
            (106.0, 211.0),
            (106.0, 213.0),
            (106.0, 215.0),
            (107.0, 216.0),
            (109.0, 216.0),
            (110.0, 215.0),
        ],
    )
    _assert_ring(
        mp[1].exterior,
        [
            (114.0, 215.0),
            (114.0, 213.0),
            (114.0, 211.0),
            (114.0, 209.0),
            (114.0, 207.0),
            (113.0, 206.0),
            (112.0, 207.0),
            (112.0, 209.0),
            (112.0, 211.0),
            (112.0, 213.0),
            (112.0, 215.0),
            (113.0, 216.0),
            (114.0, 215.0),
        ],
    )


def test_contours_two_polygons_each_with_hole() -> None:
    mp = ContourBuilder(10, 10, True, workers=1).contours(_two_frames_grid(), [0.5])[0].geometry

    assert len(mp) == 2
    _assert_ring(
        mp[0].exterior,
        [
            (4.0, 5.5),
            (4.0, 4.5),
            (4.0, 3.5),
            (3.5, 3.0),
            (2.5, 3.0),
            (1.5, 3.0),
            (1.0, 3.5),
            (1.0, 4.5),
            (1.0, 5.5),
            (1.5, 6.0),
            (2.5, 6.0),
            (3.5, 6.0),
            (4.0, 5.5),
        ],
    )
    _assert_ring(mp[0].interiors[0], [(2.5, 5.0), (2.0, 4.5), (2.5, 4.0), (3.0, 4.5), (2.5, 5.0)])
    _assert_ring(
        mp[1].exterior,
        [
            (8.0, 5.5),
            (8.0, 4.5),
            (8.0, 3.5),
            (7.5, 3.0),
            (6.5, 3.0),
            (5.5, 3.0),
            (5.0, 3.5),
            (5.0, 4.5),
            (5.0, 5.5),
            (5.5, 6.0),
            (6.5, 6.0),
            (7.5, 6.0),
            (8.0, 5.5),
        ],
    )
    _assert_ring(mp[1].interiors[0], [(6.5, 5.0), (6.0, 4.5), (6.5, 4.0), (7.0, 4.5), (6.5, 5.0)])


def test_contours_without_smoothing_uses_cell_midpoints() -> None:
    values = _grid(
        {
            3: [0, 0, 0, 2, 1, 2, 0, 0, 0, 0],
            4: [0, 0, 0, 2, 2, 2, 0, 0, 0, 0],
            5: [0, 0, 0, 1, 2, 1, 0, 0, 0, 0],
            6: [0, 0, 0, 2, 2, 2, 0, 0, 0, 0],
            7: [0, 0, 0, 2, 1, 2, 0, 0, 0, 0],
        }
    )
    mp = ContourBuilder(10, 10, False, workers=1).contours(values, [0.5])[0].geometry

    assert len(mp) == 1
    _assert_ring(mp[0].exterior, BLOCK_EXTERIOR)
    assert mp[0].interiors == ()


def test_contours_multiple_thresholds() -> None:
    res = ContourBuilder(10, 10, True, workers=1).contours(_stepped_grid(), [0.5, 1.5])

    assert [c.threshold for c in res] == [0.5, 1.5]
    _assert_ring(
        res[0].geometry[0].exterior,
        [
            (7.0, 8.5),
            (7.0, 7.5),
            (7.0, 6.5),
            (7.0, 5.5),
            (7.0, 4.5),
            (7.0, 3.5),
            (6.5, 3.0),
            (5.5, 3.0),
            (4.5, 3.0),
            (3.5, 3.0),
            (3.0, 3.5),
            (3.0, 4.5),
            (3.0, 5.5),
            (3.0, 6.5),
            (3.0, 7.5),
            (3.0, 8.5),
            (3.5, 9.0),
            (4.5, 9.0),
            (5.5, 9.0),
            (6.5, 9.0),
            (7.0, 8.5),
        ],
    )
    _assert_ring(
        res[1].geometry[0].exterior,
        [
            (6.0, 6.5),
            (6.0, 5.5),
            (5.5, 5.0),
            (4.5, 5.0),
            (4.0, 5.5),
            (4.5, 6.0),
            (5.0, 6.5),
            (5.5, 7.0),
            (6.0, 6.5),
        ],
    )


def test_contours_smoothing_interpolates_between_samples() -> None:
    values = _grid({y: [0, 0, 0, 1, 1, 1, 0, 0, 0, 0] for y in range(3, 8)})
    mp = ContourBuilder(10, 10, True, workers=1).contours(values, [0.25])[0].geometry

    xs = mp[0].exterior[:, 0]
    # 0.25 の等値点は 0（中心 2.5）と 1（中心 3.5）の間で 2.75、右側は 6.25。
    assert xs.min() == pytest.approx(2.75)
    assert xs.max() == pytest.approx(6.25)


def test_contours_empty_grid() -> None:
    res = ContourBuilder(10, 10, True, workers=1).contours(np.zeros(100), [0.5])

    assert len(res) == 1
    assert res[0].geometry.is_empty


def test_contours_with_no_thresholds() -> None:
    assert ContourBuilder(10, 10, True, workers=1).contours(np.zeros(100), []) == []


def test_contours_float32() -> None:
    builder = ContourBuilder(10, 10, True, workers=1, dtype="float32")
    mp = builder.contours(_block_grid(), [0.5])[0].geometry

    assert mp[0].exterior.dtype == np.float32
    _assert_ring(mp[0].exterior, BLOCK_EXTERIOR)


def test_lines_single_block() -> None:
    res = ContourBuilder(10, 10, True, workers=1).lines(_block_grid(), [0.5])

    assert len(res) == 1
    assert res[0].threshold == 0.5
    mls = res[0].geometry
    assert len(mls) == 1
    _assert_ring(mls[0], BLOCK_EXTERIOR)


def test_lines_frame_returns_outer_and_inner_rings() -> None:
    mls = ContourBuilder(10, 10, True, workers=1).lines(_frame_grid(), [0.5])[0].geometry
    assert len(mls) == 2


def test_transform_is_affine_image_of_grid_coordinates() -> None:
    values = _hills(40, 32)
    thresholds = [100.0, 150.0]
    base = ContourBuilder(40, 32, True, workers=1)
    moved = base.with_transform(x_step=0.5, y_step=3.0, x_origin=-10.0, y_origin=7.0)

    for a, b in zip(base.lines(values, thresholds), moved.lines(values, thresholds)):
        assert len(a.geometry) == len(b.geometry)
        for la, lb in zip(a.geometry, b.geometry):
            np.testing.assert_allclose(lb[:, 0], la[:, 0] * 0.5 - 10.0)
            np.testing.assert_allclose(lb[:, 1], la[:, 1] * 3.0 + 7.0)


def test_with_transform_keeps_unspecified_fields() -> None:
    base = ContourBuilder(4, 3, False, x_step=2.0, workers=2)
    moved = base.with_transform(y_origin=5.0)

    assert (moved.dx, moved.dy, moved.smooth, moved.workers) == (4, 3, False, 2)
    assert (moved.x_step, moved.y_step, moved.x_origin, moved.y_origin) == (2.0, 1.0, 0.0, 5.0)
    assert base.y_origin == 0.0


def test_threaded_results_match_sequential() -> None:
    values = _hills(40, 32)
    thresholds = [float(t) for t in range(95, 200, 10)]
    seq = ContourBuilder(40, 32, True, workers=1)
    par = ContourBuilder(40, 32, True, workers=4)

    c_seq = seq.contours(values, thresholds)
    c_par = par.contours(values, thresholds)
    assert [c.threshold for c in c_par] == thresholds
    for a, b in zip(c_seq, c_par):
        assert len(a.geometry) == len(b.geometry)
        for pa, pb in zip(a.geometry, b.geometry):
            np.testing.assert_array_equal(pa.exterior, pb.exterior)
            assert len(pa.interiors) == len(pb.interiors)

    b_seq = seq.isobands(values, thresholds)
    b_par = par.isobands(values, thresholds)
    for a, b in zip(b_seq, b_par):
        assert (a.min_v, a.max_v) == (b.min_v, b.max_v)
        assert len(a.geometry) == len(b.geometry)
        for pa, pb in zip(a.geometry, b.geometry):
            np.testing.assert_array_equal(pa.exterior, pb.exterior)


def test_isobands_ring_between_two_thresholds() -> None:
    bands = ContourBuilder(10, 10, True, workers=1).isobands(_stepped_grid(), [0.5, 1.5])
    contours = ContourBuilder(10, 10, True, workers=1).contours(_stepped_grid(), [0.5, 1.5])

    assert len(bands) == 1
    assert (bands[0].min_v, bands[0].max_v) == (0.5, 1.5)
    mp = bands[0].geometry
    assert len(mp) == 1
    np.testing.assert_allclose(mp[0].exterior, contours[0].geometry[0].exterior)
    assert len(mp[0].interiors) == 1
    np.testing.assert_allclose(mp[0].interiors[0], contours[1].geometry[0].exterior)


def test_isobands_sample_centres_fall_in_matching_band() -> None:
    values = _stepped_grid()
    bands = ContourBuilder(10, 10, True, workers=1).isobands(values, [0.5, 1.5, 2.5])
    eps = machine_epsilon(np.float64)
    m = values.reshape(10, 10)

    for band in bands:
        for y in range(10):
            for x in range(10):
                centre = (x + 0.5, y + 0.5)
                inside = any(
                    ring_contains_point(poly.exterior, centre, eps=eps) == INSIDE
                    and all(
                        ring_contains_point(hole, centre, eps=eps) != INSIDE
                        for hole in poly.interiors
                    )
                    for poly in band.geometry
                )
                assert inside == (band.min_v <= m[y, x] < band.max_v), (band.min_v, x, y)


def test_isobands_elevation_thresholds() -> None:
    thresholds = [float(t) for t in range(90, 205, 5)]
    bands = ContourBuilder(40, 32, True, workers=1).isobands(_hills(40, 32), thresholds)

    assert len(bands) == 22
    assert [b.min_v for b in bands] == thresholds[:-1]
    assert [b.max_v for b in bands] == thresholds[1:]
    assert not bands[0].geometry.is_empty


def test_isobands_requires_two_thresholds() -> None:
    builder = ContourBuilder(10, 10, True, workers=1)
    with pytest.raises(InsufficientThresholdsError):
        builder.isobands(_block_grid(), [0.5])
    with pytest.raises(InsufficientThresholdsError):
        builder.isobands(_block_grid(), [])


@pytest.mark.parametrize("method", ["lines", "contours", "isobands"])
def test_bad_dimension_is_reported_first(method: str) -> None:
    builder = ContourBuilder(10, 10, True, workers=1)
    with pytest.raises(BadDimensionError):
        getattr(builder, method)(np.zeros(99), [0.5])


@pytest.mark.parametrize(
    "kwargs",
    [
        {"dx": 0, "dy": 10},
        {"dx": 10, "dy": -1},
        {"dx": 10, "dy": 10, "workers": 0},
        {"dx": 10, "dy": 10, "dtype": "int16"},
    ],
)
def test_builder_rejects_invalid_configuration(kwargs) -> None:
    with pytest.raises(ValueError):
        ContourBuilder(smooth=True, **kwargs)


@pytest.mark.parametrize(
    ("values", "thresholds"),
    [
        (_hills(40, 32), [100.0, 130.0, 160.0, 190.0]),
        (np.random.default_rng(3).random(40 * 32), [0.3, 0.5, 0.7]),
    ],
)
def test_contours_winding_and_hole_containment(values: np.ndarray, thresholds: list[float]) -> None:
    eps = machine_epsilon(np.float64)
    res = ContourBuilder(40, 32, True, workers=1).contours(values, thresholds)

    for contour in res:
        for poly in contour.geometry:
            assert ring_area(poly.exterior) > 0.0
            for hole in poly.interiors:
                assert ring_area(hole) <= 0.0
                assert contains(poly.exterior, hole, eps=eps) != OUTSIDE


def test_isobands_polygons_follow_reversed_area_order() -> None:
    thresholds = [float(t) for t in range(90, 205, 5)]
    bands = ContourBuilder(40, 32, True, workers=1).isobands(_hills(40, 32), thresholds)

    for band in bands:
        keys = [int(abs(ring_area(p.exterior))) for p in band.geometry]
        assert keys == sorted(keys, reverse=True)
