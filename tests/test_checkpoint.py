"""Tests for saving and restoring parameters."""

import numpy as np

from lexinet.checkpoint import load_parameters, save_parameters


def test_save_and_load_restores_network(tmp_path, make_network):
    model = make_network(seed=12)
    path = str(tmp_path / "net.npz")
    save_parameters(path, model.export_parameters())

    params = load_parameters(path)
    assert [w.shape for w, _ in params] == [(4, 3), (3, 4), (2, 3)]
    assert [b.shape for _, b in params] == [(4, 1), (3, 1), (2, 1)]

    restored = make_network(seed=99)
    restored.import_parameters(params)
    x = [0.2, -0.5, 0.7]
    np.testing.assert_array_equal(restored.forward(x), model.forward(x))


def test_layer_order_kept_beyond_ten_layers(tmp_path, make_network):
    model = make_network(input_size=2, layer_sizes=[2] * 11 + [1])
    path = str(tmp_path / "deep.npz")
    save_parameters(path, model.export_parameters())

    for (w, b), (w2, b2) in zip(model.export_parameters(), load_parameters(path)):
        np.testing.assert_array_equal(w, w2)
        np.testing.assert_array_equal(b, b2)
