"""
Binary codec for the structural part of a layer graph.

Layout (little-endian):
    NetParam record, 152 bytes:
        num_nodes:i32  num_layers:i32  input_shape:u32[3]  finalized:i32
        reserved:i32[32]   (reserved[0] is the format version)
    then per layer, in declaration order:
        primary_layer_index:i32  type:i32
        inputs:  length:u64, i32 * length
        outputs: length:u64, i32 * length

Free-form settings, tags and the updater name are never written.
"""

import io
import sys
from typing import BinaryIO, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidModelFileError
from .ir import LayerInfo, NetParam
from .layers import LayerType

NUM_RESERVED = 32

# Version 0 files predate the version slot and carry all-zero padding.
# New fields take reserved slots 1, 2, ... in order; readers ignore the rest.
FORMAT_VERSION = 1

NET_PARAM_DTYPE = np.dtype([
    ("num_nodes", "<i4"),
    ("num_layers", "<i4"),
    ("input_shape", "<u4", (3,)),
    ("finalized", "<i4"),
    ("reserved", "<i4", (NUM_RESERVED,)),
])

_INT = np.dtype("<i4")
_LENGTH = np.dtype("<u8")

# Node sequences longer than this cannot be indexed in memory
MAX_SEQUENCE_LENGTH = sys.maxsize // _INT.itemsize


def _read_exact(fi: BinaryIO, nbytes: int) -> bytes:
    data = fi.read(nbytes)
    if data is None or len(data) != nbytes:
        raise InvalidModelFileError("NetConfig: invalid model file")
    return data


def _write_ints(fo: BinaryIO, values: Sequence[int]) -> None:
    fo.write(np.array([len(values)], dtype=_LENGTH).tobytes())
    fo.write(np.asarray(values, dtype=_INT).tobytes())


def _remaining(fi: BinaryIO) -> Optional[int]:
    """Bytes left in a seekable stream, or None when the stream cannot seek."""
    try:
        if not fi.seekable():
            return None
        pos = fi.tell()
        end = fi.seek(0, io.SEEK_END)
        fi.seek(pos)
    except (AttributeError, OSError):
        return None
    return end - pos


def _read_ints(fi: BinaryIO) -> Tuple[int, ...]:
    length = int(np.frombuffer(_read_exact(fi, _LENGTH.itemsize), dtype=_LENGTH)[0])
    nbytes = length * _INT.itemsize
    remaining = _remaining(fi)
    if length > MAX_SEQUENCE_LENGTH or (remaining is not None and nbytes > remaining):
        raise InvalidModelFileError("NetConfig: invalid model file, bad sequence length")
    data = _read_exact(fi, nbytes)
    return tuple(int(v) for v in np.frombuffer(data, dtype=_INT))


def _read_int(fi: BinaryIO) -> int:
    return int(np.frombuffer(_read_exact(fi, _INT.itemsize), dtype=_INT)[0])


def encode_param(param: NetParam) -> bytes:
    """Pack a NetParam into its fixed-size record."""
    record = np.zeros(1, dtype=NET_PARAM_DTYPE)
    record["num_nodes"] = param.num_nodes
    record["num_layers"] = param.num_layers
    record["input_shape"] = param.input_shape
    record["finalized"] = int(param.finalized)
    record["reserved"][0, 0] = FORMAT_VERSION
    return record.tobytes()


def decode_param(data: bytes) -> NetParam:
    """Unpack a fixed-size record into a NetParam."""
    record = np.frombuffer(data, dtype=NET_PARAM_DTYPE)[0]
    version = int(record["reserved"][0])
    if version < 0 or version > FORMAT_VERSION:
        raise InvalidModelFileError(
            f"NetConfig: unsupported model file version {version}, "
            f"this build reads up to {FORMAT_VERSION}"
        )
    num_layers = int(record["num_layers"])
    if num_layers < 0:
        raise InvalidModelFileError("NetConfig: invalid model file")
    return NetParam(
        num_nodes=int(record["num_nodes"]),
        num_layers=num_layers,
        input_shape=tuple(int(v) for v in record["input_shape"]),
        finalized=bool(record["finalized"]),
    )


def save_net(fo: BinaryIO, param: NetParam, layers: Sequence[LayerInfo]) -> None:
    """
    Write graph structure to a binary stream.

    Args:
        fo: Writable binary stream
        param: Network parameters
        layers: Layer descriptors, ``len(layers)`` must equal ``param.num_layers``
    """
    if param.num_layers != len(layers):
        raise RuntimeError("model inconsistent")
    fo.write(encode_param(param))
    for info in layers:
        fo.write(np.array([info.primary_layer_index, int(info.type)], dtype=_INT).tobytes())
        _write_ints(fo, info.inputs)
        _write_ints(fo, info.outputs)


def load_net(fi: BinaryIO) -> Tuple[NetParam, List[LayerInfo]]:
    """
    Read graph structure from a binary stream.

    Args:
        fi: Readable binary stream

    Returns:
        (network parameters, layer descriptors)

    Raises:
        InvalidModelFileError: if the stream ends early or is malformed
    """
    param = decode_param(_read_exact(fi, NET_PARAM_DTYPE.itemsize))
    layers = []
    for _ in range(param.num_layers):
        primary_layer_index = _read_int(fi)
        type_tag = _read_int(fi)
        try:
            layer_type = LayerType(type_tag)
        except ValueError:
            raise InvalidModelFileError(
                f"NetConfig: invalid model file, unknown layer type tag {type_tag}"
            ) from None
        inputs = _read_ints(fi)
        outputs = _read_ints(fi)
        layers.append(LayerInfo(
            type=layer_type,
            inputs=inputs,
            outputs=outputs,
            primary_layer_index=primary_layer_index,
        ))
    return param, layers
