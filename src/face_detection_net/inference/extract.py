"""Bind a flat weight map to the typed face detector parameter tree.

Every tensor the network needs is described by a ``(field, key template,
rank)`` row in one of the schema tables below. :func:`_bind` resolves a table
against the weight map, validating each entry in row order, so the first
offending key is the one reported.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Mapping, Sequence, Tuple

import numpy as _np

from .common import TensorStore, validate_rank
from .params import (
    NUM_BOX_PREDICTORS,
    NUM_CONV_PAIRS,
    NUM_PREDICTION_CONVS,
    BoxPredictionParams,
    ConvLayerParams,
    ConvPairParams,
    DepthwiseConvParams,
    MobileNetV1Params,
    NetParams,
    OutputLayerParams,
    PointwiseConvParams,
    PredictionLayerParams,
)

logger = logging.getLogger(__name__)

BACKBONE_PREFIX = "MobilenetV1"
PREDICTION_PREFIX = "Prediction"

SchemaRow = Tuple[str, str, int]

POINTWISE_CONV_SCHEMA: Tuple[SchemaRow, ...] = (
    ("filters", "{prefix}/Conv2d_{idx}_pointwise/weights", 4),
    ("batch_norm_offset", "{prefix}/Conv2d_{idx}_pointwise/convolution_bn_offset", 1),
)

DEPTHWISE_CONV_SCHEMA: Tuple[SchemaRow, ...] = (
    ("filters", BACKBONE_PREFIX + "/Conv2d_{idx}_depthwise/depthwise_weights", 4),
    ("batch_norm_scale", BACKBONE_PREFIX + "/Conv2d_{idx}_depthwise/BatchNorm/gamma", 1),
    ("batch_norm_offset", BACKBONE_PREFIX + "/Conv2d_{idx}_depthwise/BatchNorm/beta", 1),
    ("batch_norm_mean", BACKBONE_PREFIX + "/Conv2d_{idx}_depthwise/BatchNorm/moving_mean", 1),
    (
        "batch_norm_variance",
        BACKBONE_PREFIX + "/Conv2d_{idx}_depthwise/BatchNorm/moving_variance",
        1,
    ),
)

BOX_ENCODING_PREDICTOR_SCHEMA: Tuple[SchemaRow, ...] = (
    ("filters", PREDICTION_PREFIX + "/BoxPredictor_{idx}/BoxEncodingPredictor/weights", 4),
    ("bias", PREDICTION_PREFIX + "/BoxPredictor_{idx}/BoxEncodingPredictor/biases", 1),
)

CLASS_PREDICTOR_SCHEMA: Tuple[SchemaRow, ...] = (
    ("filters", PREDICTION_PREFIX + "/BoxPredictor_{idx}/ClassPredictor/weights", 4),
    ("bias", PREDICTION_PREFIX + "/BoxPredictor_{idx}/ClassPredictor/biases", 1),
)

OUTPUT_LAYER_SCHEMA: Tuple[SchemaRow, ...] = (("extra_dim", "Output/extra_dim", 3),)


def _bind(
    weight_map: TensorStore, schema: Sequence[SchemaRow], **fmt: object
) -> Dict[str, Any]:
    bound: Dict[str, Any] = {}
    for field_name, template, rank in schema:
        key = template.format(**fmt)
        bound[field_name] = validate_rank(weight_map.get(key), rank, key)
    return bound


# ---------------------------------------------------------------------------
# Layer extractors


def extract_pointwise_conv_params(
    weight_map: TensorStore, prefix: str, idx: int
) -> PointwiseConvParams:
    return PointwiseConvParams(
        **_bind(weight_map, POINTWISE_CONV_SCHEMA, prefix=prefix, idx=idx)
    )


def extract_conv_pair_params(weight_map: TensorStore, idx: int) -> ConvPairParams:
    depthwise = DepthwiseConvParams(**_bind(weight_map, DEPTHWISE_CONV_SCHEMA, idx=idx))
    return ConvPairParams(
        depthwise_conv_params=depthwise,
        pointwise_conv_params=extract_pointwise_conv_params(
            weight_map, BACKBONE_PREFIX, idx
        ),
    )


def extract_mobilenetv1_params(weight_map: TensorStore) -> MobileNetV1Params:
    logger.debug("Binding %s backbone (%d conv pairs)", BACKBONE_PREFIX, NUM_CONV_PAIRS)
    return MobileNetV1Params(
        conv_0_params=extract_pointwise_conv_params(weight_map, BACKBONE_PREFIX, 0),
        conv_pair_params=tuple(
            extract_conv_pair_params(weight_map, idx)
            for idx in range(1, NUM_CONV_PAIRS + 1)
        ),
    )


def extract_box_predictor_params(
    weight_map: TensorStore, idx: int
) -> BoxPredictionParams:
    return BoxPredictionParams(
        box_encoding_predictor_params=ConvLayerParams(
            **_bind(weight_map, BOX_ENCODING_PREDICTOR_SCHEMA, idx=idx)
        ),
        class_predictor_params=ConvLayerParams(
            **_bind(weight_map, CLASS_PREDICTOR_SCHEMA, idx=idx)
        ),
    )


def extract_prediction_layer_params(weight_map: TensorStore) -> PredictionLayerParams:
    # Topology is fixed: predictors beyond NUM_BOX_PREDICTORS are never read.
    logger.debug(
        "Binding prediction layer (%d convs, %d box predictors)",
        NUM_PREDICTION_CONVS,
        NUM_BOX_PREDICTORS,
    )
    return PredictionLayerParams(
        conv_params=tuple(
            extract_pointwise_conv_params(weight_map, PREDICTION_PREFIX, idx)
            for idx in range(NUM_PREDICTION_CONVS)
        ),
        box_predictor_params=tuple(
            extract_box_predictor_params(weight_map, idx)
            for idx in range(NUM_BOX_PREDICTORS)
        ),
    )


def extract_output_layer_params(weight_map: TensorStore) -> OutputLayerParams:
    return OutputLayerParams(**_bind(weight_map, OUTPUT_LAYER_SCHEMA))


def extract_params(weight_map: TensorStore) -> NetParams:
    """Build the complete :class:`NetParams` tree from ``weight_map``.

    Raises the first :class:`~face_detection_net.inference.common.ParamValidationError`
    encountered; no partially bound tree is ever returned.
    """

    return NetParams(
        mobilenetv1_params=extract_mobilenetv1_params(weight_map),
        prediction_layer_params=extract_prediction_layer_params(weight_map),
        output_layer_params=extract_output_layer_params(weight_map),
    )


# ---------------------------------------------------------------------------
# Layout introspection

_Path = Tuple[object, ...]


def _schema_entries(
    schema: Sequence[SchemaRow], path: _Path, **fmt: object
) -> Iterator[Tuple[str, int, _Path]]:
    for field_name, template, rank in schema:
        yield template.format(**fmt), rank, path + (field_name,)


def _layout() -> Iterator[Tuple[str, int, _Path]]:
    """Yield ``(key, rank, attribute path)`` for every bound tensor.

    Entries appear in the order :func:`extract_params` validates them.
    """

    backbone: _Path = ("mobilenetv1_params",)
    yield from _schema_entries(
        POINTWISE_CONV_SCHEMA,
        backbone + ("conv_0_params",),
        prefix=BACKBONE_PREFIX,
        idx=0,
    )
    for position in range(NUM_CONV_PAIRS):
        idx = position + 1
        pair = backbone + ("conv_pair_params", position)
        yield from _schema_entries(
            DEPTHWISE_CONV_SCHEMA, pair + ("depthwise_conv_params",), idx=idx
        )
        yield from _schema_entries(
            POINTWISE_CONV_SCHEMA,
            pair + ("pointwise_conv_params",),
            prefix=BACKBONE_PREFIX,
            idx=idx,
        )

    prediction: _Path = ("prediction_layer_params",)
    for idx in range(NUM_PREDICTION_CONVS):
        yield from _schema_entries(
            POINTWISE_CONV_SCHEMA,
            prediction + ("conv_params", idx),
            prefix=PREDICTION_PREFIX,
            idx=idx,
        )
    for idx in range(NUM_BOX_PREDICTORS):
        head = prediction + ("box_predictor_params", idx)
        yield from _schema_entries(
            BOX_ENCODING_PREDICTOR_SCHEMA,
            head + ("box_encoding_predictor_params",),
            idx=idx,
        )
        yield from _schema_entries(
            CLASS_PREDICTOR_SCHEMA, head + ("class_predictor_params",), idx=idx
        )

    yield from _schema_entries(OUTPUT_LAYER_SCHEMA, ("output_layer_params",))


def _resolve(params: NetParams, path: _Path):
    node: object = params
    for step in path:
        node = node[step] if isinstance(step, int) else getattr(node, step)
    return node


def required_keys() -> List[str]:
    """Return every weight map key the network binds, in validation order."""

    return [key for key, _, _ in _layout()]


def expected_ranks() -> Dict[str, int]:
    return {key: rank for key, rank, _ in _layout()}


def unused_keys(weight_map: Mapping[str, object]) -> List[str]:
    """Return keys present in ``weight_map`` that no parameter slot reads."""

    required = set(required_keys())
    return sorted(key for key in weight_map if key not in required)


def iter_param_tensors(params: NetParams) -> Iterator[Tuple[str, Any]]:
    """Yield ``(weight map key, tensor)`` for every leaf of ``params``."""

    for key, _, path in _layout():
        yield key, _resolve(params, path)


def params_equal(left: NetParams, right: NetParams) -> bool:
    """Compare two parameter trees leaf by leaf."""

    for (key, a), (_, b) in zip(iter_param_tensors(left), iter_param_tensors(right)):
        if not _np.array_equal(_np.asarray(a), _np.asarray(b)):
            logger.debug("Parameter trees differ at %s", key)
            return False
    return True


__all__ = [
    "BACKBONE_PREFIX",
    "BOX_ENCODING_PREDICTOR_SCHEMA",
    "CLASS_PREDICTOR_SCHEMA",
    "DEPTHWISE_CONV_SCHEMA",
    "OUTPUT_LAYER_SCHEMA",
    "POINTWISE_CONV_SCHEMA",
    "PREDICTION_PREFIX",
    "expected_ranks",
    "extract_box_predictor_params",
    "extract_conv_pair_params",
    "extract_mobilenetv1_params",
    "extract_output_layer_params",
    "extract_params",
    "extract_pointwise_conv_params",
    "extract_prediction_layer_params",
    "iter_param_tensors",
    "params_equal",
    "required_keys",
    "unused_keys",
]
