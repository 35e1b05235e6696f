"""
Network configuration: builds a layer graph from (key, value) declarations,
re-validates later passes against it, and persists its structure.
"""

import os
import warnings
from dataclasses import dataclass, replace
from enum import Enum
from typing import BinaryIO, Dict, Iterable, List, Tuple, Union

from .codec import load_net, save_net
from .errors import SharedLayerSettingError, StructureMismatchError
from .ir import LayerInfo, NetParam, count_nodes
from .parser import is_layer_declaration, parse_input_shape, parse_layer

Setting = Tuple[str, str]
PathOrStream = Union[str, os.PathLike, BinaryIO]


class ScanMode(Enum):
    """Where the declaration scan currently is relative to the netconfig block."""
    OUTSIDE = 0
    BLOCK_STARTED = 1
    LAYER_SEEN = 2


@dataclass
class _ScanState:
    mode: ScanMode = ScanMode.OUTSIDE
    top_node: int = 0  # output node of the last declared layer
    layer_index: int = 0  # index the next declared layer will get


class NetConfig:
    """
    Records the structure of a neural net and the settings attached to it.

    The first call to ``configure`` grows the graph and finalizes it. Later
    calls, and calls after ``load``, only check their declarations against the
    existing graph and refresh the free-form settings.

    Structure (``param`` and ``layers``) is what ``save`` writes. The updater
    name, tag registry and settings are training-time state and never saved.
    """

    def __init__(self):
        self.param = NetParam()
        self.layers: List[LayerInfo] = []
        self.layer_name_map: Dict[str, int] = {}
        self.updater_type = "sgd"
        self.defcfg: List[Setting] = []
        self.layercfg: List[List[Setting]] = []

    @property
    def finalized(self) -> bool:
        return self.param.finalized

    def configure(self, cfg: Iterable[Setting]) -> None:
        """
        Run one configuration pass over ordered (key, value) declarations.

        Args:
            cfg: Declarations in order, e.g. [("layer[0->1]", "fullc"), ("nhidden", "10")]

        Raises:
            NetConfigError: if any declaration is rejected; the graph structure is left
                untouched and the settings are left empty
        """
        self.clear_config()
        finalized = self.param.finalized
        layers = list(self.layers)
        input_shape = self.param.input_shape
        updater_type = self.updater_type
        name_map: Dict[str, int] = {}
        defcfg: List[Setting] = []
        layercfg: List[List[Setting]] = [[] for _ in layers]
        state = _ScanState()

        for name, val in cfg:
            if name == "input_shape":
                if not finalized:
                    input_shape = parse_input_shape(val)
                else:
                    warnings.warn("input_shape is ignored once the network structure is fixed")
                continue
            if name == "updater":
                updater_type = val
                continue
            if name == "netconfig":
                if val == "start":
                    state.mode = ScanMode.BLOCK_STARTED
                elif val == "end":
                    state.mode = ScanMode.LAYER_SEEN
                else:
                    warnings.warn(f"netconfig expects start or end, got {val!r}")
                continue

            if is_layer_declaration(name):
                info = parse_layer(name, val, state.top_node, state.layer_index, name_map)
                if not finalized:
                    if len(layers) != state.layer_index:
                        raise RuntimeError("NetConfig inconsistent")
                    layers.append(info)
                    layercfg.append([])
                elif state.layer_index >= len(layers) or info != layers[state.layer_index]:
                    raise StructureMismatchError(
                        f"config setting does not match existing network structure "
                        f"at layer {state.layer_index} ({name} = {val})"
                    )
                if info.outputs:
                    state.top_node = info.outputs[0]
                state.layer_index += 1
                state.mode = ScanMode.LAYER_SEEN
                continue

            if state.mode is ScanMode.LAYER_SEEN and state.layer_index > 0:
                last = state.layer_index - 1
                if layers[last].is_shared:
                    raise SharedLayerSettingError(
                        f"please do not set parameters in shared layer, set them in primary layer "
                        f"(layer {last}, {name} = {val})"
                    )
                layercfg[last].append((name, val))
            else:
                defcfg.append((name, val))

        if finalized:
            param = self.param
        else:
            param = replace(
                self.param,
                num_nodes=count_nodes(layers),
                num_layers=len(layers),
                input_shape=input_shape,
                finalized=True,
            )

        self.param = param
        self.layers = layers
        self.layer_name_map = name_map
        self.updater_type = updater_type
        self.defcfg = defcfg
        self.layercfg = layercfg

    def layer_settings(self, index: int) -> List[Setting]:
        """Settings seen by one layer: global defaults first, then its own."""
        return list(self.defcfg) + list(self.layercfg[index])

    def clear_config(self) -> None:
        """Drop all free-form settings, keeping one empty list per layer."""
        self.defcfg = []
        self.layercfg = [[] for _ in self.layers]

    def save(self, fo: PathOrStream) -> None:
        """
        Save the network structure.

        Training configuration (updater, settings, tags) is not saved.

        Args:
            fo: Writable binary stream or a file path
        """
        if isinstance(fo, (str, os.PathLike)):
            with open(fo, "wb") as f:
                save_net(f, self.param, self.layers)
        else:
            save_net(fo, self.param, self.layers)

    def load(self, fi: PathOrStream) -> None:
        """
        Load a network structure saved by ``save``.

        The loaded graph carries no settings; run ``configure`` to supply them.

        Args:
            fi: Readable binary stream or a file path
        """
        if isinstance(fi, (str, os.PathLike)):
            with open(fi, "rb") as f:
                param, layers = load_net(f)
        else:
            param, layers = load_net(fi)
        self.param = param
        self.layers = layers
        self.layer_name_map = {}
        self.clear_config()

    @classmethod
    def from_file(cls, fi: PathOrStream) -> "NetConfig":
        """Create a configuration holding a saved network structure."""
        config = cls()
        config.load(fi)
        return config


def print_net(config: NetConfig) -> None:
    """Pretty print a network configuration for debugging."""
    print("=" * 60)
    print("Network Configuration")
    print("=" * 60)

    param = config.param
    print(f"\nNodes: {param.num_nodes}")
    print(f"Layers: {param.num_layers}")
    print(f"Input shape: {param.input_shape}")
    print(f"Finalized: {param.finalized}")
    print(f"Updater: {config.updater_type}")

    if config.defcfg:
        print(f"\nGlobal settings: {len(config.defcfg)}")
        for key, value in config.defcfg:
            print(f"  {key} = {value}")

    print(f"\nLayer list:")
    for index, info in enumerate(config.layers):
        line = f"  [{index}] {info.type.name_str}: {list(info.inputs)} -> {list(info.outputs)}"
        if info.is_shared:
            line += f" (shares layer {info.primary_layer_index})"
        print(line)
        if index < len(config.layercfg):
            for key, value in config.layercfg[index]:
                print(f"    {key} = {value}")

    print("=" * 60)
