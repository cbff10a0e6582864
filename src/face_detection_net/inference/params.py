"""Typed parameter containers for the MobileNetV1-SSD face detector."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple

NUM_CONV_PAIRS = 13
NUM_PREDICTION_CONVS = 8
NUM_BOX_PREDICTORS = 6

Tensor = Any


@dataclass(frozen=True)
class PointwiseConvParams:
    filters: Tensor
    batch_norm_offset: Tensor


@dataclass(frozen=True)
class DepthwiseConvParams:
    filters: Tensor
    batch_norm_scale: Tensor
    batch_norm_offset: Tensor
    batch_norm_mean: Tensor
    batch_norm_variance: Tensor


@dataclass(frozen=True)
class ConvPairParams:
    """One depthwise-separable block of the backbone."""

    depthwise_conv_params: DepthwiseConvParams
    pointwise_conv_params: PointwiseConvParams


@dataclass(frozen=True)
class MobileNetV1Params:
    """Backbone parameters.

    ``conv_pair_params[0]`` holds the pair stored under ``Conv2d_1``; the
    weight map numbers pairs from 1 because ``Conv2d_0`` is the initial
    pointwise convolution.
    """

    conv_0_params: PointwiseConvParams
    conv_pair_params: Tuple[ConvPairParams, ...]


@dataclass(frozen=True)
class ConvLayerParams:
    filters: Tensor
    bias: Tensor


@dataclass(frozen=True)
class BoxPredictionParams:
    box_encoding_predictor_params: ConvLayerParams
    class_predictor_params: ConvLayerParams


@dataclass(frozen=True)
class PredictionLayerParams:
    conv_params: Tuple[PointwiseConvParams, ...]
    box_predictor_params: Tuple[BoxPredictionParams, ...]


@dataclass(frozen=True)
class OutputLayerParams:
    extra_dim: Tensor


@dataclass(frozen=True)
class NetParams:
    """Root of the validated parameter tree."""

    mobilenetv1_params: MobileNetV1Params
    prediction_layer_params: PredictionLayerParams
    output_layer_params: OutputLayerParams


__all__ = [
    "BoxPredictionParams",
    "ConvLayerParams",
    "ConvPairParams",
    "DepthwiseConvParams",
    "MobileNetV1Params",
    "NUM_BOX_PREDICTORS",
    "NUM_CONV_PAIRS",
    "NUM_PREDICTION_CONVS",
    "NetParams",
    "OutputLayerParams",
    "PointwiseConvParams",
    "PredictionLayerParams",
]
