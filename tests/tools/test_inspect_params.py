from __future__ import annotations

import json
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

from face_detection_net.tools import inspect_params
from tests.weight_fixtures import build_weight_map


@pytest.fixture
def weights_file(tmp_path: Path) -> Path:
    tensors = build_weight_map()
    tensors["Prediction/BoxPredictor_6/ClassPredictor/weights"] = np.zeros(
        (1, 1, 2, 4), dtype=np.float32
    )
    path = tmp_path / "face_detection_model.safetensors"
    save_file(tensors, str(path))
    return path


def test_cli_prints_table_summary(weights_file: Path, capsys) -> None:
    exit_code = inspect_params.main(["--source", str(weights_file)])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Face Detection Parameter Summary" in out
    assert "backbone=93, prediction=40, output=1" in out
    assert "Prediction/BoxPredictor_6/ClassPredictor/weights" in out
    assert "Total tensors: 134" in out


def test_cli_writes_json_summary(weights_file: Path, tmp_path: Path) -> None:
    output = tmp_path / "reports" / "summary.json"

    exit_code = inspect_params.main(
        [
            "--source",
            str(weights_file.parent),
            "--summary-format",
            "json",
            "--summary-output",
            str(output),
        ]
    )

    assert exit_code == 0
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["tensor_count"] == 134
    assert payload["sections"] == {"backbone": 93, "prediction": 40, "output": 1}
    assert payload["unused_keys"] == ["Prediction/BoxPredictor_6/ClassPredictor/weights"]
    first = payload["tensors"][0]
    assert first == {
        "key": "MobilenetV1/Conv2d_0_pointwise/weights",
        "dtype": "float32",
        "shape": [3, 3, 2, 4],
    }


def test_cli_reports_validation_failure(tmp_path: Path, capsys) -> None:
    tensors = build_weight_map()
    tensors["Output/extra_dim"] = np.zeros((1, 4), dtype=np.float32)
    path = tmp_path / "weights.safetensors"
    save_file(tensors, str(path))

    exit_code = inspect_params.main(["--source", str(path)])

    err = capsys.readouterr().err
    assert exit_code == 1
    assert err.startswith("face-detection-params: expected weight_map[Output/extra_dim]")


def test_cli_reports_load_failure(tmp_path: Path, capsys) -> None:
    exit_code = inspect_params.main(["--source", str(tmp_path / "nowhere")])

    assert exit_code == 1
    assert "does not exist" in capsys.readouterr().err


def test_summary_parameter_count() -> None:
    from face_detection_net.inference.extract import extract_params

    params = extract_params(build_weight_map())
    summary = inspect_params.summarize(params)

    # 47 rank-4 tensors of 72 values, 86 rank-1 of 4, one rank-3 of 4.
    assert summary.parameter_count == 47 * 72 + 86 * 4 + 4
    assert summary.unused_keys == ()


def test_render_summary_rejects_unknown_format() -> None:
    from face_detection_net.inference.extract import extract_params

    summary = inspect_params.summarize(extract_params(build_weight_map()))

    with pytest.raises(ValueError):
        inspect_params.render_summary(summary, format="yaml")


def test_parse_args_reads_verbose_env(monkeypatch) -> None:
    monkeypatch.setenv(inspect_params.VERBOSE_ENV, "1")

    args = inspect_params._parse_args([])

    assert args.verbose is True
    assert args.source is None
