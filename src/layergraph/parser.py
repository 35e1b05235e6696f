"""Parsers for the textual micro-grammars of layer declarations."""

import re
from typing import Dict, Tuple

from .errors import DeclarationError, LayerTagError
from .ir import LayerInfo, Shape3
from .layers import get_layer_type

LAYER_PREFIX = "layer["

# Checked in this order: explicit "A->B" wins over relative "+B"
_EXPLICIT_RE = re.compile(r"^layer\[\s*(\d+)\s*->\s*(\d+)\s*\]$")
_RELATIVE_RE = re.compile(r"^layer\[\s*\+\s*(\d+)\s*\]$")
_VALUE_RE = re.compile(r"^([^:\s]+)(?::(\S+))?$")
_SHAPE_RE = re.compile(r"^(\d+),(\d+),(\d+)$")

# Widths of the fields these values are saved into; num_nodes = index + 1 is an i32 too
MAX_NODE_INDEX = 2 ** 31 - 2
MAX_SHAPE_DIM = 2 ** 32 - 1


def is_layer_declaration(name: str) -> bool:
    """Whether a configuration key declares a layer."""
    return name.startswith(LAYER_PREFIX)


def parse_connection(name: str, top_node: int) -> Tuple[int, int]:
    """
    Parse the node range of a declaration name.

    Args:
        name: Declaration key, "layer[A->B]" or "layer[+B]"
        top_node: Output node of the previous declaration, base of "+B"

    Returns:
        (input node, output node)
    """
    match = _EXPLICIT_RE.match(name)
    if match:
        node_in, node_out = int(match.group(1)), int(match.group(2))
    else:
        match = _RELATIVE_RE.match(name)
        if not match:
            raise DeclarationError(f"invalid layer format {name}")
        node_in, node_out = top_node, top_node + int(match.group(1))
    if max(node_in, node_out) > MAX_NODE_INDEX:
        raise DeclarationError(f"node index out of range in {name}, at most {MAX_NODE_INDEX}")
    return node_in, node_out


def parse_type_tag(value: str) -> Tuple[str, str]:
    """Split a declaration value "type" or "type:tag"; the tag may be empty."""
    match = _VALUE_RE.match(value.strip())
    if not match:
        raise DeclarationError(f"invalid layer value {value!r}, expected type or type:tag")
    return match.group(1), match.group(2) or ""


def parse_input_shape(value: str) -> Shape3:
    """Parse "c,h,w" into a (channel, height, width) tuple."""
    match = _SHAPE_RE.match(value.strip())
    if not match:
        raise DeclarationError(
            "input_shape must be three consecutive integers without space example: 1,1,200"
        )
    shape = tuple(int(g) for g in match.groups())
    if max(shape) > MAX_SHAPE_DIM:
        raise DeclarationError(f"input_shape dimension out of range in {value!r}, at most {MAX_SHAPE_DIM}")
    return shape


def parse_layer(name: str,
                value: str,
                top_node: int,
                layer_index: int,
                name_map: Dict[str, int]) -> LayerInfo:
    """
    Parse one layer declaration into a LayerInfo.

    Non-shared layers with a tag register it in ``name_map`` against
    ``layer_index``; shared layers look their tag up there to find the
    primary layer.

    Args:
        name: Declaration key, e.g. "layer[0->1]" or "layer[+1]"
        value: Declaration value, e.g. "fullc" or "fullc:fc1"
        top_node: Output node of the previous declaration
        layer_index: Index the declared layer will get
        name_map: Tag registry, updated in place

    Returns:
        The parsed layer descriptor
    """
    node_in, node_out = parse_connection(name, top_node)
    type_name, tag = parse_type_tag(value)
    layer_type = get_layer_type(type_name)

    primary_layer_index = -1
    if layer_type.is_shared:
        if not tag:
            raise LayerTagError("shared layer must specify tag of layer to share with")
        if tag not in name_map:
            raise LayerTagError(f"shared layer tag {tag} is not defined before")
        primary_layer_index = name_map[tag]
    elif tag:
        if tag in name_map:
            raise LayerTagError(f"layer tag {tag} is already defined")
        name_map[tag] = layer_index

    return LayerInfo(
        type=layer_type,
        inputs=(node_in,),
        outputs=(node_out,),
        primary_layer_index=primary_layer_index,
    )
