"""Capture a PyTorch model as a sequence of layer declarations."""

import warnings
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

import torch
import torch.fx as fx
import torch.nn as nn
import torch.nn.functional as F

from .layers import LayerType, layer_type_for_module

Declaration = Tuple[str, str]

# Functional calls that map onto a parameter-free layer kind
_FUNCTION_LAYER_TYPES = {
    torch.relu: LayerType.RELU,
    F.relu: LayerType.RELU,
    torch.sigmoid: LayerType.SIGMOID,
    torch.tanh: LayerType.TANH,
    F.softplus: LayerType.SOFTPLUS,
    F.softmax: LayerType.SOFTMAX,
    torch.flatten: LayerType.FLATTEN,
}


def _pair(value) -> int:
    # layer settings describe square kernels, strides and padding
    if isinstance(value, (tuple, list)):
        return int(value[0])
    return int(value)


class ModelCapturer:
    """Walks a PyTorch model and emits declarations for a NetConfig pass."""

    def __init__(self):
        self.declarations: List[Declaration] = []
        self.module_tags: Dict[str, str] = {}

    def _extract_settings(self, module: nn.Module) -> List[Declaration]:
        """Per-layer settings a layer instantiator needs to rebuild the module."""
        settings = []
        if isinstance(module, nn.Linear):
            settings.append(("nhidden", str(module.out_features)))
            if module.bias is None:
                settings.append(("no_bias", "1"))
        elif isinstance(module, nn.Conv2d):
            settings.extend([
                ("nchannel", str(module.out_channels)),
                ("kernel_size", str(_pair(module.kernel_size))),
                ("stride", str(_pair(module.stride))),
                ("pad", str(_pair(module.padding))),
                ("ngroup", str(module.groups)),
            ])
            if module.bias is None:
                settings.append(("no_bias", "1"))
        elif isinstance(module, (nn.MaxPool2d, nn.AvgPool2d, nn.LPPool2d)):
            settings.append(("kernel_size", str(_pair(module.kernel_size))))
            stride = module.stride if module.stride is not None else module.kernel_size
            settings.append(("stride", str(_pair(stride))))
        elif isinstance(module, nn.Dropout):
            settings.append(("threshold", str(module.p)))
        elif isinstance(module, nn.LocalResponseNorm):
            settings.extend([
                ("local_size", str(module.size)),
                ("alpha", str(module.alpha)),
                ("beta", str(module.beta)),
                ("knorm", str(module.k)),
            ])
        elif isinstance(module, nn.BatchNorm2d):
            settings.append(("eps", str(module.eps)))
        elif isinstance(module, nn.LeakyReLU):
            settings.append(("b", str(module.negative_slope)))
        return settings

    def _emit(self, layer_type: LayerType, tag: str = "",
              settings: Sequence[Declaration] = ()) -> None:
        value = layer_type.name_str if not tag else f"{layer_type.name_str}:{tag}"
        self.declarations.append(("layer[+1]", value))
        self.declarations.extend(settings)

    def _emit_module(self, target: str, module: nn.Module, reused: bool) -> None:
        if target in self.module_tags:
            self._emit(LayerType.SHARED, self.module_tags[target])
            return
        layer_type = layer_type_for_module(module)
        if layer_type is None:
            warnings.warn(f"Skipping {target} ({type(module).__name__}): no matching layer type")
            return
        tag = ""
        if reused:
            tag = target.replace(".", "_")
            self.module_tags[target] = tag
        self._emit(layer_type, tag, self._extract_settings(module))

    def capture_module(self, model: nn.Module,
                       input_shape: Optional[Tuple[int, int, int]] = None) -> List[Declaration]:
        """
        Capture a model's layers as declarations.

        Args:
            model: PyTorch model to capture
            input_shape: Optional (channel, height, width) to declare

        Returns:
            Ordered (key, value) declarations
        """
        if input_shape is not None:
            self.declarations.append(("input_shape", ",".join(str(int(d)) for d in input_shape)))
        self.declarations.append(("netconfig", "start"))

        try:
            traced = fx.symbolic_trace(model)
        except Exception as e:
            warnings.warn(f"FX tracing failed: {e}. Capturing leaf modules in registration order.")
            self._capture_leaves(model)
        else:
            self._capture_graph(traced)

        self.declarations.append(("netconfig", "end"))
        return self.declarations

    def _capture_graph(self, traced: fx.GraphModule) -> None:
        modules = dict(traced.named_modules())
        calls = Counter(node.target for node in traced.graph.nodes if node.op == "call_module")
        for node in traced.graph.nodes:
            if node.op == "call_module":
                self._emit_module(node.target, modules[node.target], calls[node.target] > 1)
            elif node.op == "call_function" and node.target in _FUNCTION_LAYER_TYPES:
                self._emit(_FUNCTION_LAYER_TYPES[node.target])
            elif node.op in ("call_function", "call_method"):
                warnings.warn(f"Skipping {node.op} {node.target}: no matching layer type")

    def _capture_leaves(self, model: nn.Module) -> None:
        for name, module in model.named_modules():
            if len(list(module.children())) == 0:
                self._emit_module(name, module, reused=False)


def capture(model: nn.Module,
            input_shape: Optional[Tuple[int, int, int]] = None) -> List[Declaration]:
    """
    Capture a PyTorch model as NetConfig declarations.

    Args:
        model: PyTorch model, typically an nn.Sequential of supported layers
        input_shape: Optional (channel, height, width) to declare

    Returns:
        Ordered (key, value) declarations accepted by NetConfig.configure
    """
    capturer = ModelCapturer()
    return capturer.capture_module(model, input_shape)
