"""Resolve a source locator into a flat, read-only weight map.

Supported locators:

* ``None``: the default model directory (``models/`` or the directory named
  by ``FACE_DETECTION_MODEL_DIR``).
* a path to a ``.safetensors`` or ``.npz`` file.
* a directory containing ``<model_name>.safetensors`` or ``<model_name>.npz``.
* ``hf://<repo_id>[@<revision>]``: ``<model_name>.safetensors`` downloaded
  from the Hugging Face Hub (reusing the local hub cache).
"""

from __future__ import annotations

import logging
import os
import zipfile
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Optional, Tuple, Union

import numpy as _np
from safetensors import SafetensorError

from .common import DEFAULT_MODEL_NAME, TensorStore

logger = logging.getLogger(__name__)

DEFAULT_MODEL_DIR = Path("models")
MODEL_DIR_ENV = "FACE_DETECTION_MODEL_DIR"
HUB_SCHEME = "hf://"
SAFETENSORS_SUFFIX = ".safetensors"
NPZ_SUFFIX = ".npz"

SourceLocator = Union[str, os.PathLike, None]


class WeightLoadError(RuntimeError):
    """Raised when the weight map cannot be acquired from its source."""


def default_model_dir() -> Path:
    override = os.environ.get(MODEL_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return DEFAULT_MODEL_DIR


def _parse_hub_locator(locator: str) -> Tuple[str, Optional[str]]:
    remainder = locator[len(HUB_SCHEME) :].strip("/")
    repo_id, _, revision = remainder.partition("@")
    if not repo_id:
        raise WeightLoadError(f"Hub locator {locator!r} does not name a repository")
    return repo_id, revision or None


def _download_from_hub(locator: str, model_name: str) -> Path:
    try:
        from huggingface_hub import hf_hub_download
    except ImportError as exc:  # pragma: no cover - defensive
        raise WeightLoadError(
            "huggingface_hub is required to download weights. Install it with"
            " `pip install huggingface-hub`."
        ) from exc

    repo_id, revision = _parse_hub_locator(locator)
    filename = model_name + SAFETENSORS_SUFFIX
    logger.info("Downloading %s from %s (revision=%s)", filename, repo_id, revision)
    try:
        path = hf_hub_download(repo_id=repo_id, filename=filename, revision=revision)
    except Exception as exc:
        raise WeightLoadError(
            f"Unable to download {filename} from {repo_id}: {exc}"
        ) from exc
    return Path(path)


def resolve_weight_file(source: SourceLocator, model_name: str = DEFAULT_MODEL_NAME) -> Path:
    """Return the on-disk weight file that ``source`` refers to."""

    if isinstance(source, str) and source.startswith(HUB_SCHEME):
        return _download_from_hub(source, model_name)

    base = default_model_dir() if source is None else Path(source).expanduser()
    if base.is_file():
        return base
    if base.is_dir():
        for suffix in (SAFETENSORS_SUFFIX, NPZ_SUFFIX):
            candidate = base / (model_name + suffix)
            if candidate.is_file():
                return candidate
        raise WeightLoadError(
            f"No {model_name}{SAFETENSORS_SUFFIX} or {model_name}{NPZ_SUFFIX} "
            f"found in {base}"
        )
    raise WeightLoadError(f"Weight source {base} does not exist")


def _read_safetensors(path: Path) -> Dict[str, object]:
    from safetensors.numpy import load_file

    return dict(load_file(str(path)))


def _read_npz(path: Path) -> Dict[str, object]:
    with _np.load(path, allow_pickle=False) as archive:
        return {name: archive[name] for name in archive.files}


def load_weight_map(
    source: SourceLocator = None, model_name: str = DEFAULT_MODEL_NAME
) -> TensorStore:
    """Load the weight map for ``model_name`` from ``source``.

    Every acquisition failure surfaces as :class:`WeightLoadError` chained to
    the underlying exception.
    """

    path = resolve_weight_file(source, model_name)
    logger.debug("Reading weight map from %s", path)
    suffix = path.suffix.lower()
    try:
        if suffix == NPZ_SUFFIX:
            tensors = _read_npz(path)
        elif suffix == SAFETENSORS_SUFFIX:
            tensors = _read_safetensors(path)
        else:
            raise WeightLoadError(
                f"Unsupported weight file {path}; expected {SAFETENSORS_SUFFIX} or {NPZ_SUFFIX}"
            )
    except WeightLoadError:
        raise
    except (SafetensorError, OSError, ValueError, zipfile.BadZipFile) as exc:
        raise WeightLoadError(f"Unable to read weight map from {path}: {exc}") from exc

    logger.debug("Loaded %d tensors from %s", len(tensors), path)
    return MappingProxyType(tensors)


__all__ = [
    "DEFAULT_MODEL_DIR",
    "HUB_SCHEME",
    "MODEL_DIR_ENV",
    "WeightLoadError",
    "default_model_dir",
    "load_weight_map",
    "resolve_weight_file",
]
