"""
どこで: `src/isogrid/devtools/benchmark.py`。
何を: 合成格子に対して `contours` / `lines` / `isobands` / リング計算を計測し、JSON を出力する。
なぜ: 格子サイズやリング数（穴判定の 2 乗コスト）でどこが遅くなるかを比較するため。

主な流れ（読む順）:
- `main()` が:
  - `build_default_cases()` で合成格子（ケース）を作り、
  - ケース × 計測対象（op）で `_bench_one()` を回し、
  - 集計結果を `<out>/runs/<run_id>.json` に書く。

実行例:
    python -m isogrid.devtools.benchmark --repeats 5 --only contours,isobands
"""

from __future__ import annotations

import argparse
import gc
import json
import platform
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import numpy as np

from isogrid.core.builder import ContourBuilder
from isogrid.core.errors import ContourError
from isogrid.core.isoring import IsoRingBuilder


@dataclass(frozen=True, slots=True)
class BenchmarkCase:
    """計測入力 1 件（格子 + 閾値列）。"""

    case_id: str
    description: str
    values: np.ndarray
    dx: int
    dy: int
    thresholds: tuple[float, ...]


@dataclass(frozen=True, slots=True)
class _BenchStats:
    """計測結果（ns の列）を ms 単位で要約した統計量。"""

    mean_ms: float
    stdev_ms: float
    min_ms: float
    max_ms: float
    n: int


def _hills(dx: int, dy: int, *, seed: int, n_hills: int) -> np.ndarray:
    """ガウス山を重ねた標高風の格子を作る（値域はおおよそ 90〜200）。"""
    rng = np.random.default_rng(seed)
    ys, xs = np.mgrid[0:dy, 0:dx].astype(np.float64)
    z = np.zeros((dy, dx), dtype=np.float64)
    for _ in range(n_hills):
        cx = rng.uniform(0.0, dx)
        cy = rng.uniform(0.0, dy)
        sigma = rng.uniform(0.05, 0.2) * float(max(dx, dy))
        height = rng.uniform(0.3, 1.0)
        z += height * np.exp(-((xs - cx) ** 2 + (ys - cy) ** 2) / (2.0 * sigma**2))
    z -= float(z.min())
    peak = float(z.max())
    if peak > 0.0:
        z /= peak
    return 90.0 + 110.0 * z


def build_default_cases(*, seed: int = 0) -> list[BenchmarkCase]:
    """既定の計測ケース列を作る。"""

    block = np.zeros((11, 10), dtype=np.float64)
    block[3:8, 3:6] = 1.0
    block[4:7, 4] = 0.0

    noise = np.random.default_rng(seed).random((48, 48))

    return [
        BenchmarkCase(
            case_id="frame_small",
            description="10x11 の枠（外周 + 穴 1 つ）",
            values=block.reshape(-1),
            dx=10,
            dy=11,
            thresholds=(0.5,),
        ),
        BenchmarkCase(
            case_id="hills_256",
            description="256x256 のガウス山、閾値 90..200 step 5",
            values=_hills(256, 256, seed=seed, n_hills=12).reshape(-1),
            dx=256,
            dy=256,
            thresholds=tuple(float(t) for t in range(90, 205, 5)),
        ),
        BenchmarkCase(
            case_id="noise_48",
            description="48x48 の一様乱数（小リングが多い = 穴判定の最悪ケース寄り）",
            values=noise.reshape(-1),
            dx=48,
            dy=48,
            thresholds=(0.25, 0.5, 0.75),
        ),
    ]


def _ops_for_case(case: BenchmarkCase) -> dict[str, Callable[[], Any]]:
    """ケースごとの計測対象（op 名 → 引数なし関数）を返す。"""

    smooth = ContourBuilder(case.dx, case.dy, True, workers=1)
    rough = ContourBuilder(case.dx, case.dy, False, workers=1)
    isoring = IsoRingBuilder(case.dx, case.dy)
    ops: dict[str, Callable[[], Any]] = {
        "contours": lambda: smooth.contours(case.values, case.thresholds),
        "contours_no_smoothing": lambda: rough.contours(case.values, case.thresholds),
        "lines": lambda: smooth.lines(case.values, case.thresholds),
        "isoring": lambda: [isoring.compute(case.values, t) for t in case.thresholds],
    }
    if len(case.thresholds) >= 2:
        ops["isobands"] = lambda: smooth.isobands(case.values, case.thresholds)
    return ops


def main(argv: list[str] | None = None) -> int:
    """ベンチマーク CLI のエントリポイント。

    Returns
    -------
    int
        終了コード（0: 成功、2: 入力不備などで実行不可）。
    """
    args = _parse_args(argv)

    out_root = Path(args.out).expanduser().resolve()
    run_id = _normalize_run_id(str(args.run_id))
    runs_dir = out_root / "runs"
    runs_dir.mkdir(parents=True, exist_ok=True)
    json_path = runs_dir / f"{run_id}.json"

    cases = build_default_cases(seed=int(args.seed))
    if args.cases:
        only = {c.strip() for c in str(args.cases).split(",") if c.strip()}
        cases = [c for c in cases if c.case_id in only]
    if not cases:
        print("ケースが 0 件です。--cases を確認してください。")  # noqa: T201
        return 2

    only_ops = {s.strip() for s in str(args.only).split(",") if s.strip()}

    meta: dict[str, Any] = {
        "run_id": run_id,
        "created_at": datetime.now().isoformat(timespec="seconds"),
        "python": sys.version.replace("\n", " "),
        "platform": platform.platform(),
        "repeats": int(args.repeats),
        "warmup": int(args.warmup),
        "seed": int(args.seed),
    }
    results: dict[str, Any] = {"meta": meta, "cases": []}

    for case in cases:
        entry: dict[str, Any] = {
            "id": case.case_id,
            "description": case.description,
            "dx": case.dx,
            "dy": case.dy,
            "n_thresholds": len(case.thresholds),
            "results": {},
        }
        for name, func in _ops_for_case(case).items():
            if only_ops and name not in only_ops:
                continue
            entry["results"][name] = _bench_one(
                func=func,
                warmup=int(args.warmup),
                repeats=int(args.repeats),
                disable_gc=bool(args.disable_gc),
            )
        results["cases"].append(entry)

    json_path.write_text(json.dumps(results, ensure_ascii=False, indent=2), encoding="utf-8")
    print(f"[isogrid-bench] wrote: {json_path}")  # noqa: T201
    return 0


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    """CLI 引数を定義してパースする。"""
    p = argparse.ArgumentParser(prog="isogrid-benchmark")
    p.add_argument(
        "--out",
        default="data/output/benchmarks",
        help="出力ルート（<out>/runs/<run_id>.json を作る）",
    )
    p.add_argument("--run-id", default="", help="出力ファイル名（%%Y%%m%%d_%%H%%M%%S。省略時は現在時刻）")
    p.add_argument("--repeats", type=int, default=10, help="本計測の反復回数")
    p.add_argument("--warmup", type=int, default=2, help="ウォームアップ回数（JIT コンパイル除外用）")
    p.add_argument("--seed", type=int, default=0, help="ケース生成用 seed")
    p.add_argument("--only", default="", help="op をカンマ区切りで指定（例: contours,isobands）")
    p.add_argument("--cases", default="", help="ケース id をカンマ区切りで指定（例: hills_256）")
    p.add_argument(
        "--disable-gc",
        action="store_true",
        help="計測中の GC を無効化する（ノイズ低減。メモリ増に注意）",
    )
    return p.parse_args(argv)


def _normalize_run_id(value: str) -> str:
    """`--run-id` を正規化して返す（空なら現在時刻）。"""
    if not value:
        value = datetime.now().strftime("%Y%m%d_%H%M%S")
    try:
        datetime.strptime(value, "%Y%m%d_%H%M%S")
    except ValueError:
        raise SystemExit(f"--run-id must be %Y%m%d_%H%M%S: {value}")
    return value


def _bench_one(
    *,
    func: Callable[[], Any],
    warmup: int,
    repeats: int,
    disable_gc: bool,
) -> dict[str, Any]:
    """単一 op × 単一ケースの計測を行う。

    - warmup 回は計測せずに実行（Numba の初回コンパイルを除外する）
    - repeats 回の実行時間を ns で収集し、ms に直して要約する
    - `ContourError` は `error` として JSON に載せる
    """
    w = max(int(warmup), 0)
    r = max(int(repeats), 1)

    try:
        for _ in range(w):
            func()
    except ContourError as exc:
        return {"status": "error", "error": f"{exc.__class__.__name__}: {exc}"}

    times_ns: list[int] = []
    was_gc_enabled = False
    if disable_gc:
        was_gc_enabled = gc.isenabled()
        gc.disable()

    try:
        for _ in range(r):
            t0 = time.perf_counter_ns()
            func()
            times_ns.append(int(time.perf_counter_ns() - t0))
    except ContourError as exc:
        return {"status": "error", "error": f"{exc.__class__.__name__}: {exc}"}
    finally:
        if disable_gc and was_gc_enabled:
            gc.enable()

    stats = _summarize(times_ns)
    return {
        "status": "ok",
        "mean_ms": stats.mean_ms,
        "stdev_ms": stats.stdev_ms,
        "min_ms": stats.min_ms,
        "max_ms": stats.max_ms,
        "n": stats.n,
    }


def _summarize(times_ns: list[int]) -> _BenchStats:
    """ns の計測列を、平均/標準偏差/最小/最大（ms）に要約する。"""
    if not times_ns:
        return _BenchStats(mean_ms=0.0, stdev_ms=0.0, min_ms=0.0, max_ms=0.0, n=0)

    n = int(len(times_ns))
    mean_ns = float(sum(times_ns)) / float(n)
    if n <= 1:
        stdev_ns = 0.0
    else:
        var = float(sum((float(t) - mean_ns) ** 2 for t in times_ns)) / float(n - 1)
        stdev_ns = float(var**0.5)

    return _BenchStats(
        mean_ms=mean_ns / 1_000_000.0,
        stdev_ms=stdev_ns / 1_000_000.0,
        min_ms=float(min(times_ns)) / 1_000_000.0,
        max_ms=float(max(times_ns)) / 1_000_000.0,
        n=n,
    )


if __name__ == "__main__":
    raise SystemExit(main())
