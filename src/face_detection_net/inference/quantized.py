"""Entry points that load and bind the quantized face detector weights."""

from __future__ import annotations

import asyncio
import logging

from .common import DEFAULT_MODEL_NAME, TensorStore
from .extract import extract_params
from .params import NetParams
from .weight_map import SourceLocator, load_weight_map

logger = logging.getLogger(__name__)


def _bind_loaded(weight_map: TensorStore, source: SourceLocator) -> NetParams:
    params = extract_params(weight_map)
    logger.info(
        "Loaded %s parameters from %s (%d tensors in weight map)",
        DEFAULT_MODEL_NAME,
        source if source is not None else "default model directory",
        len(weight_map),
    )
    return params


def load_quantized_params(source: SourceLocator = None) -> NetParams:
    """Load the weight map from ``source`` and bind it to :class:`NetParams`.

    Acquisition failures raise
    :class:`~face_detection_net.inference.weight_map.WeightLoadError`; the first
    missing or mis-shaped tensor raises the corresponding
    :class:`~face_detection_net.inference.common.ParamValidationError`
    unchanged.
    """

    weight_map = load_weight_map(source, DEFAULT_MODEL_NAME)
    return _bind_loaded(weight_map, source)


async def load_quantized_params_async(source: SourceLocator = None) -> NetParams:
    """Asynchronous variant of :func:`load_quantized_params`.

    Only the weight map acquisition runs in a worker thread; binding happens on
    the calling task once the map is available.
    """

    weight_map = await asyncio.to_thread(load_weight_map, source, DEFAULT_MODEL_NAME)
    return _bind_loaded(weight_map, source)


__all__ = ["load_quantized_params", "load_quantized_params_async"]
