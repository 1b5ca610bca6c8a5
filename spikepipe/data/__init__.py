"""
Data sources feeding the train and test partitions.
"""

from .input import (
    to_sample_tensor,
    Input,
    TensorListInput,
    NumpyInput,
    DatasetInput,
)


__all__ = [
    "to_sample_tensor",
    "Input",
    "TensorListInput",
    "NumpyInput",
    "DatasetInput",
]
