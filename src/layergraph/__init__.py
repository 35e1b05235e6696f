"""
Layergraph - layer-graph configuration for neural networks.

Turns ordered key/value declarations into a validated graph of layers and
data nodes, re-validates later configuration passes against it, and saves
or loads the graph structure in a compact binary form.
"""

__version__ = "0.1.0"

from typing import Optional

# Core imports
from .ir import LayerInfo, NetParam, count_nodes
from .layers import LayerType, LAYER_TYPE_NAMES, get_layer_type, layer_type_for_module
from .netconfig import NetConfig, ScanMode, print_net
from .parser import (
    is_layer_declaration,
    parse_connection,
    parse_input_shape,
    parse_layer,
    parse_type_tag,
)

# Persistence
from .codec import FORMAT_VERSION, NET_PARAM_DTYPE, load_net, save_net

# Configuration sources
from .config_reader import iter_config, parse_config, read_config
from .capture import capture, ModelCapturer

from .errors import (
    NetConfigError,
    DeclarationError,
    UnknownLayerTypeError,
    LayerTagError,
    SharedLayerSettingError,
    StructureMismatchError,
    InvalidModelFileError,
    ConfigSyntaxError,
)


def configure(cfg, config: Optional[NetConfig] = None) -> NetConfig:
    """
    Run a configuration pass, creating a NetConfig if none is given.

    Args:
        cfg: Ordered (key, value) declarations, or configuration text
        config: Existing configuration to re-validate, if any

    Returns:
        The configured NetConfig
    """
    if isinstance(cfg, str):
        cfg = parse_config(cfg)
    if config is None:
        config = NetConfig()
    config.configure(cfg)
    return config


__all__ = [
    # Core functions
    'configure',
    'capture',
    'parse_config',
    'read_config',
    'iter_config',
    'save_net',
    'load_net',
    'print_net',
    'get_layer_type',
    'layer_type_for_module',
    'count_nodes',
    'is_layer_declaration',
    'parse_connection',
    'parse_input_shape',
    'parse_layer',
    'parse_type_tag',

    # Classes
    'NetConfig',
    'NetParam',
    'LayerInfo',
    'LayerType',
    'ScanMode',
    'ModelCapturer',

    # Errors
    'NetConfigError',
    'DeclarationError',
    'UnknownLayerTypeError',
    'LayerTagError',
    'SharedLayerSettingError',
    'StructureMismatchError',
    'InvalidModelFileError',
    'ConfigSyntaxError',

    # Constants
    'LAYER_TYPE_NAMES',
    'FORMAT_VERSION',
    'NET_PARAM_DTYPE',

    # Version
    '__version__',
]
