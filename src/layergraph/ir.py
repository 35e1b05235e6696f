"""Structural description of a layer graph."""

from dataclasses import dataclass
from typing import Sequence, Tuple

import torch

from .layers import LayerType

NodeIndex = int
Shape3 = Tuple[int, int, int]


@dataclass(frozen=True)
class LayerInfo:
    """
    One declared layer: its kind and the nodes it reads and writes.

    Declaration order is the layer's identity; two descriptors are equal when
    type, primary layer index and both node sequences match element-wise.
    """
    type: LayerType
    inputs: Tuple[NodeIndex, ...] = ()
    outputs: Tuple[NodeIndex, ...] = ()
    primary_layer_index: int = -1  # only meaningful for shared layers

    def __post_init__(self):
        object.__setattr__(self, "type", LayerType(self.type))
        object.__setattr__(self, "inputs", tuple(int(i) for i in self.inputs))
        object.__setattr__(self, "outputs", tuple(int(i) for i in self.outputs))

    @property
    def is_shared(self) -> bool:
        return self.type.is_shared


@dataclass
class NetParam:
    """Aggregate graph metadata, frozen once the graph is finalized."""
    num_nodes: int = 0
    num_layers: int = 0
    input_shape: Shape3 = (0, 0, 0)  # (channel, height, width), no batch dim
    finalized: bool = False

    @property
    def input_size(self) -> torch.Size:
        """Input shape as a torch.Size, for building input tensors downstream."""
        return torch.Size(self.input_shape)


def count_nodes(layers: Sequence[LayerInfo]) -> int:
    """Number of nodes referenced: one past the largest input or output index."""
    num_nodes = 0
    for info in layers:
        for index in info.inputs + info.outputs:
            num_nodes = max(index + 1, num_nodes)
    return num_nodes
