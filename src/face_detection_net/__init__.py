"""Parameter loading for the MobileNetV1-SSD face detection network."""

from .inference import (
    NetParams,
    load_quantized_params,
    load_quantized_params_async,
)

__all__ = ["NetParams", "load_quantized_params", "load_quantized_params_async"]
