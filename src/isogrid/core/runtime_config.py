# どこで: `src/isogrid/core/runtime_config.py`。
# 何を: config.yaml による実行時設定（探索・ロード・キャッシュ）を提供する。
# なぜ: 並列数や計算精度を、コードを変えずに環境ごとに切り替えられるようにするため。

"""実行時設定（`config.yaml`）の探索・ロード・キャッシュを担当する。

このモジュールは、以下を提供する:

- `config.yaml` を「同梱デフォルト → ユーザー設定（任意）」の順に適用して `RuntimeConfig` を構築
- 探索パス（CWD / HOME）と、明示指定（`set_config_path()`）の両方に対応
- 1 回ロードした結果をプロセス内でキャッシュ（設定を切り替える場合は `set_config_path()` で破棄）

`ContourBuilder` は `workers` / `dtype` を省略された場合にここを参照する。

実装メモ
--------
- ユーザー設定の適用は `dict.update()`（トップレベルの浅い上書き）で行う。
  ネストした mapping（`compute:`）は「部分的にマージ」されず「丸ごと置換」される。
"""

from __future__ import annotations

from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any

import numpy as np

_SUPPORTED_DTYPES = ("float32", "float64")


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """isogrid の実行時設定。

    Attributes
    ----------
    config_path:
        実際に採用されたユーザー設定ファイルのパス。ユーザー設定が無い場合は None。
    workers:
        閾値ごとの計算に使うワーカースレッド数。1 なら逐次計算。
    dtype:
        座標・サンプル計算に使う浮動小数 dtype（float32 / float64）。
    """

    config_path: Path | None
    workers: int
    dtype: np.dtype


_EXPLICIT_CONFIG_PATH: Path | None = None
_CONFIG_CACHE: RuntimeConfig | None = None


def set_config_path(path: str | Path | None) -> None:
    """以降の設定探索で使う明示 config パスを設定する。

    Notes
    -----
    - `path` を None にすると明示指定を解除し、既定の探索に戻る。
    - 設定が変わるため、`runtime_config()` のキャッシュを破棄する。
    """

    global _EXPLICIT_CONFIG_PATH, _CONFIG_CACHE
    if path is None:
        _EXPLICIT_CONFIG_PATH = None
        _CONFIG_CACHE = None
        return
    _EXPLICIT_CONFIG_PATH = Path(str(path)).expanduser()
    _CONFIG_CACHE = None


def _default_config_candidates() -> tuple[Path, ...]:
    """既定の `config.yaml` 探索候補を返す。

    探索順（先勝ち）:
    - `./.isogrid/config.yaml`
    - `~/.config/isogrid/config.yaml`
    """

    return (
        Path.cwd() / ".isogrid" / "config.yaml",
        Path.home() / ".config" / "isogrid" / "config.yaml",
    )


def _as_mapping(value: Any, *, key: str) -> dict[str, Any]:
    """任意値を mapping として解釈し、dict に正規化して返す。"""

    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    raise RuntimeError(f"{key} は mapping である必要があります: got={value!r}")


def _as_int(value: Any, *, key: str) -> int | None:
    """YAML の整数値を返す（未設定なら None）。bool や文字列は受け付けない。"""

    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise RuntimeError(f"{key} は整数である必要があります: got={value!r}")
    return value


def _load_yaml_text(text: str, *, source: str) -> dict[str, Any]:
    """YAML テキストを読み、トップレベル mapping を dict として返す。"""

    import yaml  # type: ignore[import-untyped]

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RuntimeError(f"config.yaml の読み込みに失敗しました: source={source}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise RuntimeError(f"config.yaml は mapping である必要があります: source={source}")

    return dict(data)


def _load_yaml_config(path: Path) -> dict[str, Any]:
    """UTF-8 の YAML ファイルを読み、dict を返す。"""

    text = path.read_text(encoding="utf-8")
    return _load_yaml_text(text, source=str(path))


def _load_packaged_default_config() -> dict[str, Any]:
    """同梱デフォルト config（`isogrid/resource/default_config.yaml`）をロードする。"""

    blob = (
        resources.files("isogrid")
        .joinpath("resource", "default_config.yaml")
        .read_text(encoding="utf-8")
    )
    return _load_yaml_text(blob, source="isogrid/resource/default_config.yaml")


def runtime_config() -> RuntimeConfig:
    """実行時設定をロードして返す（キャッシュ）。

    読み込み元の優先順位（後勝ち）:
    1) 同梱 `isogrid/resource/default_config.yaml`
    2) 探索で見つかった `config.yaml`（任意）
    3) `set_config_path()` で明示指定された `config.yaml`（任意）
    """

    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None:
        return _CONFIG_CACHE

    explicit_path = _EXPLICIT_CONFIG_PATH
    if explicit_path is not None and not explicit_path.is_file():
        raise FileNotFoundError(f"config.yaml が見つかりません: {explicit_path}")

    discovered_path: Path | None = None
    for p in _default_config_candidates():
        if p.is_file():
            discovered_path = p
            break

    payload = _load_packaged_default_config()
    if discovered_path is not None:
        payload.update(_load_yaml_config(discovered_path))
    if explicit_path is not None:
        payload.update(_load_yaml_config(explicit_path))

    version = _as_int(payload.get("version"), key="version")
    if version is None:
        raise RuntimeError(
            "config.yaml の version が未設定です（同梱 default_config.yaml を確認してください）"
        )
    if version != 1:
        raise RuntimeError(f"未対応の config.yaml version です: got={version}")

    compute = _as_mapping(payload.get("compute"), key="compute")

    workers = _as_int(compute.get("workers"), key="compute.workers")
    if workers is None:
        workers = 1
    if workers <= 0:
        raise ValueError(f"compute.workers は正の値である必要があります: got={workers}")

    dtype_name = compute.get("dtype")
    dtype_s = "float64" if dtype_name is None else str(dtype_name).strip()
    if dtype_s not in _SUPPORTED_DTYPES:
        raise ValueError(
            f"compute.dtype は {list(_SUPPORTED_DTYPES)} のいずれかである必要があります: got={dtype_name!r}"
        )

    cfg = RuntimeConfig(
        config_path=explicit_path or discovered_path,
        workers=int(workers),
        dtype=np.dtype(dtype_s),
    )
    _CONFIG_CACHE = cfg
    return cfg
