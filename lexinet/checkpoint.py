"""
checkpoint.py
-------------
Save and restore network parameters as a NumPy ``.npz`` archive.
Works on the [(weights, bias), ...] lists produced by
NeuralNetwork.export_parameters() and accepted by import_parameters().
"""

import numpy as np


def save_parameters(path, params):
    arrays = {}
    for i, (weights, bias) in enumerate(params):
        arrays[f"weights_{i}"] = np.asarray(weights)
        arrays[f"bias_{i}"] = np.asarray(bias)
    np.savez(path, **arrays)


def load_parameters(path):
    """Return [(weights, bias), ...] in layer order."""
    with np.load(path) as data:
        num_layers = sum(1 for key in data.files if key.startswith("weights_"))
        return [
            (data[f"weights_{i}"].copy(), data[f"bias_{i}"].copy())
            for i in range(num_layers)
        ]
