"""Weight binding for the MobileNetV1-SSD face detector."""

from .common import (
    DEFAULT_MODEL_NAME,
    MissingTensorError,
    ParamValidationError,
    ShapeMismatchError,
    is_tensor_1d,
    is_tensor_3d,
    is_tensor_4d,
    validate_rank,
)
from .extract import extract_params, iter_param_tensors, params_equal, required_keys, unused_keys
from .params import NetParams
from .quantized import load_quantized_params, load_quantized_params_async
from .weight_map import WeightLoadError, load_weight_map

__all__ = [
    "DEFAULT_MODEL_NAME",
    "MissingTensorError",
    "NetParams",
    "ParamValidationError",
    "ShapeMismatchError",
    "WeightLoadError",
    "extract_params",
    "is_tensor_1d",
    "is_tensor_3d",
    "is_tensor_4d",
    "iter_param_tensors",
    "load_quantized_params",
    "load_quantized_params_async",
    "load_weight_map",
    "params_equal",
    "required_keys",
    "unused_keys",
    "validate_rank",
]
