import io

import numpy as np
import pytest

from layergraph import (
    FORMAT_VERSION,
    NET_PARAM_DTYPE,
    InvalidModelFileError,
    LayerInfo,
    LayerType,
    NetConfig,
    configure,
    load_net,
    save_net,
)

CONVNET = [
    ("input_shape", "3,32,32"),
    ("layer[0->1]", "conv:c1"),
    ("nchannel", "16"),
    ("layer[+1]", "relu"),
    ("layer[+1]", "max_pooling"),
    ("layer[+0]", "shared:c1"),
    ("layer[+1]", "flatten"),
    ("layer[+1]", "fullc"),
    ("nhidden", "10"),
]


def _saved(net):
    buf = io.BytesIO()
    net.save(buf)
    return buf.getvalue()


def test_param_record_is_fixed_size():
    assert NET_PARAM_DTYPE.itemsize == 152


def test_round_trip():
    net = configure(CONVNET)
    loaded = NetConfig()
    loaded.load(io.BytesIO(_saved(net)))

    assert loaded.param == net.param
    assert loaded.layers == net.layers
    assert loaded.layers[3].primary_layer_index == 0


def test_round_trip_through_file(tmp_path):
    net = configure(CONVNET)
    path = tmp_path / "net.bin"
    net.save(path)
    loaded = NetConfig.from_file(path)
    assert loaded.param == net.param
    assert loaded.layers == net.layers


def test_settings_are_not_saved():
    net = configure(CONVNET)
    loaded = NetConfig.from_file(io.BytesIO(_saved(net)))
    assert loaded.defcfg == []
    assert loaded.layercfg == [[] for _ in net.layers]
    assert loaded.layer_name_map == {}
    assert loaded.updater_type == "sgd"


def test_loaded_graph_accepts_revalidation_pass():
    net = configure(CONVNET)
    loaded = NetConfig.from_file(io.BytesIO(_saved(net)))
    loaded.configure(CONVNET)
    assert loaded.layers == net.layers
    assert loaded.layercfg[0] == [("nchannel", "16")]


def test_load_discards_previous_settings():
    net = configure(CONVNET)
    data = _saved(net)
    net.load(io.BytesIO(data))
    assert net.layercfg == [[] for _ in net.layers]


def test_layout():
    net = configure([("layer[0->1]", "fullc")])
    data = _saved(net)
    record = np.frombuffer(data[:152], dtype=NET_PARAM_DTYPE)[0]
    assert int(record["num_layers"]) == 1
    assert int(record["num_nodes"]) == 2
    assert int(record["reserved"][0]) == FORMAT_VERSION
    primary, type_tag = np.frombuffer(data[152:160], dtype="<i4")
    assert (primary, type_tag) == (-1, int(LayerType.FULLC))
    assert len(data) == 152 + 8 + 2 * (8 + 4)


def test_legacy_zero_padding_is_accepted():
    net = configure([("layer[0->1]", "fullc")])
    data = bytearray(_saved(net))
    data[24:28] = b"\x00\x00\x00\x00"  # reserved[0]
    loaded = NetConfig.from_file(io.BytesIO(bytes(data)))
    assert loaded.layers == net.layers


def test_newer_version_is_rejected():
    net = configure([("layer[0->1]", "fullc")])
    data = bytearray(_saved(net))
    data[24:28] = np.array([FORMAT_VERSION + 1], dtype="<i4").tobytes()
    with pytest.raises(InvalidModelFileError, match="version"):
        NetConfig.from_file(io.BytesIO(bytes(data)))


@pytest.mark.parametrize("cut", [0, 10, 152, 156, 163, 170])
def test_truncated_stream(cut):
    data = _saved(configure([("layer[0->1]", "fullc")]))
    net = NetConfig()
    with pytest.raises(InvalidModelFileError, match="invalid model file"):
        net.load(io.BytesIO(data[:cut]))
    assert net.layers == []


def test_unknown_type_tag():
    net = configure([("layer[0->1]", "fullc")])
    data = bytearray(_saved(net))
    data[156:160] = np.array([9], dtype="<i4").tobytes()
    with pytest.raises(InvalidModelFileError):
        NetConfig.from_file(io.BytesIO(bytes(data)))


def test_save_checks_layer_count():
    net = configure([("layer[0->1]", "fullc")])
    net.layers.append(LayerInfo(LayerType.RELU, (1,), (2,)))
    with pytest.raises(RuntimeError, match="model inconsistent"):
        net.save(io.BytesIO())


def test_module_level_functions():
    net = configure(CONVNET)
    buf = io.BytesIO()
    save_net(buf, net.param, net.layers)
    buf.seek(0)
    param, layers = load_net(buf)
    assert param == net.param
    assert layers == net.layers


@pytest.mark.parametrize("length", [2 ** 62, 2 ** 64 - 1, 1000])
def test_bad_sequence_length(tmp_path, length):
    data = bytearray(_saved(configure([("layer[0->1]", "fullc")])))
    data[160:168] = np.array([length], dtype="<u8").tobytes()
    path = tmp_path / "net.bin"
    path.write_bytes(bytes(data))
    with pytest.raises(InvalidModelFileError, match="invalid model file"):
        NetConfig.from_file(path)


def test_bad_sequence_length_unseekable_stream():
    class Unseekable(io.BytesIO):
        def seekable(self):
            return False

    data = bytearray(_saved(configure([("layer[0->1]", "fullc")])))
    data[160:168] = np.array([2 ** 64 - 1], dtype="<u8").tobytes()
    with pytest.raises(InvalidModelFileError):
        NetConfig.from_file(Unseekable(bytes(data)))


def test_largest_node_index_round_trips():
    net = configure([("layer[0->2147483646]", "fullc")])
    assert net.param.num_nodes == 2 ** 31 - 1
    loaded = NetConfig.from_file(io.BytesIO(_saved(net)))
    assert loaded.layers == net.layers
