import numpy as np
import pytest

from lexinet.encoder import VectorEncoder
from lexinet.neural_network import NeuralNetwork


@pytest.fixture
def make_network():
    """Factory for small networks over numeric inputs."""

    def _make(input_size=3, layer_sizes=(4, 3, 2), seed=0, randomize=True):
        model = NeuralNetwork(VectorEncoder(input_size), list(layer_sizes), seed=seed)
        if randomize:
            model.randomize_all_parameters()
        return model

    return _make


@pytest.fixture
def regression_examples():
    """Twelve (input, target) pairs for a 3-input, 2-output network."""
    rng = np.random.RandomState(123)
    examples = []
    for _ in range(12):
        x = rng.uniform(-1, 1, size=3)
        target = np.array([[0.5 * x[0] - 0.2 * x[2]], [0.3 * x[1]]])
        examples.append((x, target))
    return examples

