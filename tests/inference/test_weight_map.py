from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest
from safetensors.numpy import save_file

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
for entry in (ROOT, SRC):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from face_detection_net.inference import weight_map as wm
from tests.weight_fixtures import build_weight_map


def _write_safetensors(path: Path) -> dict:
    tensors = build_weight_map()
    save_file(tensors, str(path))
    return tensors


def test_load_weight_map_from_safetensors_file(tmp_path: Path) -> None:
    path = tmp_path / "weights.safetensors"
    tensors = _write_safetensors(path)

    loaded = wm.load_weight_map(path)

    assert set(loaded) == set(tensors)
    key = "Output/extra_dim"
    np.testing.assert_array_equal(loaded[key], tensors[key])
    assert loaded[key].dtype == np.float32


def test_load_weight_map_is_read_only(tmp_path: Path) -> None:
    path = tmp_path / "weights.safetensors"
    _write_safetensors(path)

    loaded = wm.load_weight_map(path)

    with pytest.raises(TypeError):
        loaded["Output/extra_dim"] = None  # type: ignore[index]


def test_load_weight_map_from_directory_uses_model_name(tmp_path: Path) -> None:
    _write_safetensors(tmp_path / f"{wm.DEFAULT_MODEL_NAME}.safetensors")

    loaded = wm.load_weight_map(tmp_path)

    assert "MobilenetV1/Conv2d_13_depthwise/BatchNorm/moving_variance" in loaded


def test_load_weight_map_falls_back_to_npz(tmp_path: Path) -> None:
    tensors = build_weight_map()
    np.savez(tmp_path / "custom.npz", **tensors)

    loaded = wm.load_weight_map(str(tmp_path), model_name="custom")

    np.testing.assert_array_equal(
        loaded["Prediction/BoxPredictor_0/ClassPredictor/weights"],
        tensors["Prediction/BoxPredictor_0/ClassPredictor/weights"],
    )


def test_default_source_honours_environment(tmp_path: Path, monkeypatch) -> None:
    _write_safetensors(tmp_path / f"{wm.DEFAULT_MODEL_NAME}.safetensors")
    monkeypatch.setenv(wm.MODEL_DIR_ENV, str(tmp_path))

    assert wm.default_model_dir() == tmp_path
    assert len(wm.load_weight_map()) == 134


def test_missing_source_raises_load_error(tmp_path: Path) -> None:
    with pytest.raises(wm.WeightLoadError, match="does not exist"):
        wm.load_weight_map(tmp_path / "absent")


def test_directory_without_weights_raises_load_error(tmp_path: Path) -> None:
    with pytest.raises(wm.WeightLoadError, match="face_detection_model.safetensors"):
        wm.load_weight_map(tmp_path)


def test_corrupt_safetensors_raises_load_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.safetensors"
    path.write_bytes(b"\x00\x01not a safetensors payload")

    with pytest.raises(wm.WeightLoadError) as excinfo:
        wm.load_weight_map(path)

    assert excinfo.value.__cause__ is not None


def test_unsupported_suffix_raises_load_error(tmp_path: Path) -> None:
    path = tmp_path / "weights.bin"
    path.write_bytes(b"payload")

    with pytest.raises(wm.WeightLoadError, match="Unsupported weight file"):
        wm.load_weight_map(path)


def test_hub_locator_downloads_model_file(tmp_path: Path, monkeypatch) -> None:
    huggingface_hub = pytest.importorskip("huggingface_hub")
    local = tmp_path / "cached.safetensors"
    _write_safetensors(local)
    calls = []

    def fake_download(*, repo_id, filename, revision):
        calls.append((repo_id, filename, revision))
        return str(local)

    monkeypatch.setattr(huggingface_hub, "hf_hub_download", fake_download)

    loaded = wm.load_weight_map("hf://acme/face-detector@v2")

    assert calls == [("acme/face-detector", "face_detection_model.safetensors", "v2")]
    assert len(loaded) == 134


def test_hub_download_failure_is_wrapped(monkeypatch) -> None:
    huggingface_hub = pytest.importorskip("huggingface_hub")

    def failing_download(**kwargs):
        raise OSError("network unreachable")

    monkeypatch.setattr(huggingface_hub, "hf_hub_download", failing_download)

    with pytest.raises(wm.WeightLoadError, match="network unreachable"):
        wm.load_weight_map("hf://acme/face-detector")


def test_hub_locator_requires_repository() -> None:
    with pytest.raises(wm.WeightLoadError, match="does not name a repository"):
        wm.load_weight_map("hf://")
