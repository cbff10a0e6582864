"""Validate a face detection weight map and report what was bound."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Tuple

from face_detection_net.inference.common import (
    DEFAULT_MODEL_NAME,
    ParamValidationError,
    tensor_shape,
)
from face_detection_net.inference.extract import (
    extract_params,
    iter_param_tensors,
    unused_keys,
)
from face_detection_net.inference.params import NetParams
from face_detection_net.inference.weight_map import WeightLoadError, load_weight_map

logger = logging.getLogger(__name__)

VERBOSE_ENV = "FACE_DETECTION_VERBOSE"

_SECTIONS = (
    ("backbone", "MobilenetV1/"),
    ("prediction", "Prediction/"),
    ("output", "Output/"),
)


@dataclass(frozen=True)
class TensorInfo:
    """Shape and size of a single bound tensor."""

    key: str
    dtype: str
    shape: Tuple[int, ...]

    @property
    def size(self) -> int:
        total = 1
        for dim in self.shape:
            total *= dim
        return total


@dataclass(frozen=True)
class ParamsSummary:
    """Summary of a validated parameter tree."""

    source: str
    model_name: str
    tensors: Tuple[TensorInfo, ...]
    unused_keys: Tuple[str, ...]

    @property
    def tensor_count(self) -> int:
        return len(self.tensors)

    @property
    def parameter_count(self) -> int:
        return sum(info.size for info in self.tensors)

    def section_counts(self) -> Dict[str, int]:
        counts = {name: 0 for name, _ in _SECTIONS}
        for info in self.tensors:
            for name, prefix in _SECTIONS:
                if info.key.startswith(prefix):
                    counts[name] += 1
                    break
        return counts

    def to_dict(self) -> Dict[str, object]:
        return {
            "source": self.source,
            "model_name": self.model_name,
            "tensor_count": self.tensor_count,
            "parameter_count": self.parameter_count,
            "sections": self.section_counts(),
            "tensors": [
                {"key": info.key, "dtype": info.dtype, "shape": list(info.shape)}
                for info in self.tensors
            ],
            "unused_keys": list(self.unused_keys),
        }


def summarize(
    params: NetParams,
    weight_map: Optional[Mapping[str, object]] = None,
    *,
    source: str = "<memory>",
    model_name: str = DEFAULT_MODEL_NAME,
) -> ParamsSummary:
    tensors = tuple(
        TensorInfo(
            key=key,
            dtype=str(getattr(tensor, "dtype", type(tensor).__name__)),
            shape=tensor_shape(tensor) or (),
        )
        for key, tensor in iter_param_tensors(params)
    )
    extra = tuple(unused_keys(weight_map)) if weight_map is not None else ()
    return ParamsSummary(
        source=source, model_name=model_name, tensors=tensors, unused_keys=extra
    )


def format_summary(summary: ParamsSummary, *, show_tensors: bool = True) -> str:
    """Return a human-friendly multi-line report for ``summary``."""

    header = "Face Detection Parameter Summary"
    lines = [header, "=" * len(header)]
    lines.append(f"Source: {summary.source}")
    lines.append(f"Model : {summary.model_name}")
    counts = summary.section_counts()
    lines.append(
        "Sections: " + ", ".join(f"{name}={count}" for name, count in counts.items())
    )

    if show_tensors:
        lines.append("")
        lines.append("Tensors:")
        key_width = max(len(info.key) for info in summary.tensors)
        dtype_width = max(len(info.dtype) for info in summary.tensors)
        header_row = f"  {'Key'.ljust(key_width)}  {'DType'.ljust(dtype_width)}  Shape"
        lines.append(header_row)
        lines.append("  " + "-" * (len(header_row) - 2))
        for info in summary.tensors:
            shape_text = " × ".join(str(dim) for dim in info.shape) or "scalar"
            lines.append(
                f"  {info.key.ljust(key_width)}  {info.dtype.ljust(dtype_width)}  {shape_text}"
            )

    if summary.unused_keys:
        lines.append("")
        lines.append("Unused weight map keys:")
        for key in summary.unused_keys:
            lines.append(f"  {key}")

    lines.append("")
    lines.append(
        f"Total tensors: {summary.tensor_count} | Total parameters: {summary.parameter_count}"
    )
    return "\n".join(lines)


def render_summary(
    summary: ParamsSummary, *, format: str = "table", show_tensors: bool = True
) -> str:
    normalized = format.lower()
    if normalized == "table":
        return format_summary(summary, show_tensors=show_tensors)
    if normalized == "json":
        return json.dumps(summary.to_dict(), indent=2, sort_keys=True)
    raise ValueError(f"Unsupported summary format: {format}")


def inspect(source, model_name: str = DEFAULT_MODEL_NAME) -> ParamsSummary:
    weight_map = load_weight_map(source, model_name)
    params = extract_params(weight_map)
    logger.debug("Validated %d-tensor weight map for %s", len(weight_map), model_name)
    label = str(source) if source is not None else "<default model directory>"
    return summarize(params, weight_map, source=label, model_name=model_name)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Load a face detection weight map, validate every tensor against the "
            "MobileNetV1-SSD layout, and print a summary."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--source",
        default=None,
        help=(
            "Weight file, directory containing <model-name>.safetensors/.npz, or "
            "hf://<repo_id>[@revision]. Defaults to the model directory."
        ),
    )
    parser.add_argument(
        "--model-name",
        default=DEFAULT_MODEL_NAME,
        help="Base file name of the weights inside a directory or hub repository",
    )
    parser.add_argument(
        "--summary-format",
        choices=("table", "json"),
        default="table",
        help="Format to use when rendering the summary",
    )
    parser.add_argument(
        "--summary-output",
        type=Path,
        help="Optional path to write the summary to",
    )
    parser.add_argument(
        "--no-tensors",
        dest="show_tensors",
        action="store_false",
        help="Omit the per-tensor table from the table summary",
    )
    parser.add_argument(
        "--verbose",
        dest="verbose",
        action="store_true",
        default=None,
        help=f"Enable verbose logging (can also set {VERBOSE_ENV}=1)",
    )
    parser.add_argument(
        "--quiet",
        dest="verbose",
        action="store_false",
        help="Disable verbose logging",
    )
    args = parser.parse_args(argv)

    if args.summary_output is not None:
        args.summary_output = args.summary_output.expanduser()

    if args.verbose is None:
        env_value = os.environ.get(VERBOSE_ENV)
        if env_value is None:
            args.verbose = False
        else:
            args.verbose = env_value.lower() not in {"", "0", "false", "no"}
    return args


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.verbose and not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO)

    try:
        summary = inspect(args.source, args.model_name)
    except (WeightLoadError, ParamValidationError) as exc:
        print(f"face-detection-params: {exc}", file=sys.stderr)
        return 1

    rendered = render_summary(
        summary, format=args.summary_format, show_tensors=args.show_tensors
    )
    if args.summary_output is not None:
        args.summary_output.parent.mkdir(parents=True, exist_ok=True)
        text = rendered if rendered.endswith("\n") else rendered + "\n"
        args.summary_output.write_text(text, encoding="utf-8")
    else:
        print(rendered)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
