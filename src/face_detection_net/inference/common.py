"""Shared tensor helpers used by the parameter binder and tooling."""

from __future__ import annotations

from typing import Mapping, Tuple

import numpy as _np

DEFAULT_MODEL_NAME = "face_detection_model"

TensorStore = Mapping[str, object]


class ParamValidationError(ValueError):
    """Raised when a weight map entry cannot be bound to its parameter slot."""

    def __init__(self, key: str, expected_rank: int, actual: str) -> None:
        self.key = key
        self.expected_rank = expected_rank
        self.actual = actual
        super().__init__(
            f"expected weight_map[{key}] to be a Tensor{expected_rank}D, "
            f"instead have {actual}"
        )


class MissingTensorError(ParamValidationError):
    """Raised when a required key is absent from the weight map."""

    def __init__(self, key: str, expected_rank: int) -> None:
        super().__init__(key, expected_rank, "absent")


class ShapeMismatchError(ParamValidationError):
    """Raised when a weight map entry has the wrong number of dimensions."""

    def __init__(
        self,
        key: str,
        expected_rank: int,
        actual: str,
        actual_rank: int | None = None,
    ) -> None:
        self.actual_rank = actual_rank
        super().__init__(key, expected_rank, actual)


def _infer_shape(values) -> Tuple[int, ...]:
    if isinstance(values, (int, float)):
        return ()
    if isinstance(values, (list, tuple)):
        if not values:
            return (0,)
        inner = _infer_shape(values[0])
        return (len(values),) + inner
    raise TypeError(f"Unsupported tensor type: {type(values)!r}")


def tensor_shape(tensor: object) -> Tuple[int, ...] | None:
    """Return the shape of ``tensor`` or ``None`` when it is not tensor-like."""

    if tensor is None:
        return None
    if isinstance(tensor, _np.ndarray):
        return tuple(int(dim) for dim in tensor.shape)
    shape = getattr(tensor, "shape", None)
    if shape is not None:
        try:
            return tuple(int(dim) for dim in shape)
        except (TypeError, ValueError):
            return None
    if isinstance(tensor, (list, tuple)):
        try:
            return _infer_shape(tensor)
        except TypeError:
            return None
    return None


def tensor_rank(tensor: object) -> int | None:
    shape = tensor_shape(tensor)
    if shape is None:
        return None
    return len(shape)


def is_tensor_1d(tensor: object) -> bool:
    return tensor_rank(tensor) == 1


def is_tensor_3d(tensor: object) -> bool:
    return tensor_rank(tensor) == 3


def is_tensor_4d(tensor: object) -> bool:
    return tensor_rank(tensor) == 4


def describe_tensor(tensor: object) -> str:
    """Describe ``tensor`` for error messages without dumping its contents."""

    if tensor is None:
        return "absent"
    shape = tensor_shape(tensor)
    if shape is None:
        return f"non-tensor value of type {type(tensor).__name__}"
    return f"rank {len(shape)} tensor with shape {shape}"


def validate_rank(tensor: object, expected_rank: int, key: str):
    """Return ``tensor`` unchanged when it has ``expected_rank`` dimensions.

    ``None`` marks a key that was not found in the weight map and raises
    :class:`MissingTensorError`; any other mismatch, including values that are
    not tensors at all, raises :class:`ShapeMismatchError`.
    """

    if tensor is None:
        raise MissingTensorError(key, expected_rank)
    rank = tensor_rank(tensor)
    if rank != expected_rank:
        raise ShapeMismatchError(key, expected_rank, describe_tensor(tensor), rank)
    return tensor


__all__ = [
    "DEFAULT_MODEL_NAME",
    "MissingTensorError",
    "ParamValidationError",
    "ShapeMismatchError",
    "TensorStore",
    "describe_tensor",
    "is_tensor_1d",
    "is_tensor_3d",
    "is_tensor_4d",
    "tensor_rank",
    "tensor_shape",
    "validate_rank",
]
