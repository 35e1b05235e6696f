"""Layer-type catalog: the closed set of layer kinds a graph may declare."""

from enum import IntEnum
from typing import Dict, Optional, Type

import torch.nn as nn

from .errors import UnknownLayerTypeError


class LayerType(IntEnum):
    """Layer kinds. Values are the tags written to model files, never renumber."""
    SHARED = 0
    FULLC = 1
    SOFTMAX = 2
    RELU = 3
    SIGMOID = 4
    TANH = 5
    SOFTPLUS = 6
    FLATTEN = 7
    DROPOUT = 8
    CONV = 10
    MAX_POOLING = 11
    SUM_POOLING = 12
    AVG_POOLING = 13
    LRN = 15
    BIAS = 17
    CONCAT = 18
    XELU = 19
    BATCH_NORM = 20
    INSANITY = 21
    PRELU = 22

    @property
    def is_shared(self) -> bool:
        """Whether this layer reuses the parameters of a primary layer."""
        return self is LayerType.SHARED

    @property
    def name_str(self) -> str:
        """Canonical name used in declarations."""
        return self.name.lower()

    @property
    def module_class(self) -> Optional[Type[nn.Module]]:
        """The torch.nn class a layer instantiator builds for this kind, if any."""
        return _MODULE_CLASSES.get(self)


# Name lookup used by declarations; "share" is the historical spelling
LAYER_TYPE_NAMES: Dict[str, LayerType] = {t.name_str: t for t in LayerType}
LAYER_TYPE_NAMES["share"] = LayerType.SHARED

_MODULE_CLASSES: Dict[LayerType, Type[nn.Module]] = {
    LayerType.FULLC: nn.Linear,
    LayerType.SOFTMAX: nn.Softmax,
    LayerType.RELU: nn.ReLU,
    LayerType.SIGMOID: nn.Sigmoid,
    LayerType.TANH: nn.Tanh,
    LayerType.SOFTPLUS: nn.Softplus,
    LayerType.FLATTEN: nn.Flatten,
    LayerType.DROPOUT: nn.Dropout,
    LayerType.CONV: nn.Conv2d,
    LayerType.MAX_POOLING: nn.MaxPool2d,
    LayerType.SUM_POOLING: nn.LPPool2d,
    LayerType.AVG_POOLING: nn.AvgPool2d,
    LayerType.LRN: nn.LocalResponseNorm,
    LayerType.XELU: nn.LeakyReLU,
    LayerType.BATCH_NORM: nn.BatchNorm2d,
    LayerType.INSANITY: nn.RReLU,
    LayerType.PRELU: nn.PReLU,
}


def get_layer_type(name: str) -> LayerType:
    """
    Resolve a declaration type name to its layer kind.

    Args:
        name: Type name as written in a declaration, e.g. "fullc"

    Returns:
        The matching LayerType

    Raises:
        UnknownLayerTypeError: if the name is not in the catalog
    """
    try:
        return LAYER_TYPE_NAMES[name]
    except KeyError:
        raise UnknownLayerTypeError(name) from None


def layer_type_for_module(module: nn.Module) -> Optional[LayerType]:
    """Find the layer kind matching a torch module, or None if there is none."""
    for layer_type, cls in _MODULE_CLASSES.items():
        if type(module) is cls:
            return layer_type
    return None
