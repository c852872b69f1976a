"""
layer.py
--------
Fully-connected layer with an arctangent activation.

A layer owns its weight matrix (neurons x inputs) and bias column, and caches
the pre-activation ("weighted input") and the activation ("output") of the
last forward pass so that backpropagation can read them afterwards.
All vectors are column vectors of shape (n, 1).
"""

import numpy as np

from .errors import InvalidConfigurationError, ShapeMismatchError

# Weights and biases are redrawn uniformly from [-RANDOM_RANGE, RANDOM_RANGE)
RANDOM_RANGE = 1.0


def activation(x):
    """atan(x) / (pi/2), element-wise. Bounded to (-1, 1)."""
    return np.arctan(x) / (np.pi / 2)


def activation_derivative(x):
    """
    Derivative of `activation`, evaluated at the pre-activation value.

    This is the exact derivative of atan(x) / (pi/2), so it carries the 2/pi
    factor. The plain atan derivative 1 / (1 + x^2) is larger by pi/2 and
    would not match a finite-difference gradient of the cost.
    """
    return (2.0 / np.pi) / (1.0 + np.square(x))


def _check_shape(name, array, expected):
    if array.shape != expected:
        raise ShapeMismatchError(
            f"{name} has shape {array.shape}, expected {expected}"
        )


class Layer:
    """A dense layer: output = activation(weights @ previous_output + bias)."""

    def __init__(self, neuron_count, input_count):
        """
        Parameters
        ----------
        neuron_count : int
            Number of output units.
        input_count : int
            Height of the vector fed into this layer (the previous layer's
            neuron count, or the encoder's output height).
        """
        if neuron_count < 1 or input_count < 1:
            raise InvalidConfigurationError(
                f"Layer needs at least one neuron and one input, got "
                f"neuron_count={neuron_count}, input_count={input_count}"
            )
        self.neuron_count = neuron_count
        self.input_count = input_count

        self.weights = np.ones((neuron_count, input_count))
        self.bias = np.zeros((neuron_count, 1))

        self.weighted_input = None
        self.output = None

    # ------------------------------------------------------------------
    # Forward pass
    # ------------------------------------------------------------------
    def compute_output(self, previous_output):
        """Replace the cached weighted input and output for a new input."""
        previous_output = np.asarray(previous_output, dtype=np.float64)
        _check_shape("Layer input", previous_output, (self.input_count, 1))

        z = self.weights @ previous_output + self.bias
        self.weighted_input = z
        self.output = activation(z)

    def get_output(self):
        return self.output

    def get_weighted_input(self):
        return self.weighted_input

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------
    def get_weights(self):
        return self.weights

    def get_bias(self):
        return self.bias

    def adjust_weights(self, delta):
        """Add `delta` (already signed and scaled) to the weights."""
        delta = np.asarray(delta, dtype=np.float64)
        _check_shape("Weight delta", delta, self.weights.shape)
        self.weights += delta

    def adjust_bias(self, delta):
        """Add `delta` (already signed and scaled) to the bias."""
        delta = np.asarray(delta, dtype=np.float64)
        _check_shape("Bias delta", delta, self.bias.shape)
        self.bias += delta

    def check_parameters(self, weights, bias):
        """Return float copies of (weights, bias), raising if either shape is wrong."""
        weights = np.array(weights, dtype=np.float64)
        bias = np.array(bias, dtype=np.float64)
        _check_shape("Weights", weights, self.weights.shape)
        _check_shape("Bias", bias, self.bias.shape)
        return weights, bias

    def set_parameters(self, weights, bias):
        weights, bias = self.check_parameters(weights, bias)
        self.weights = weights
        self.bias = bias

    def get_parameters(self):
        """Return copies of (weights, bias)."""
        return self.weights.copy(), self.bias.copy()

    def randomize_parameters(self, rng=None):
        """Redraw weights and bias uniformly from the symmetric random range."""
        rng = rng if rng is not None else np.random
        self.weights = rng.uniform(
            -RANDOM_RANGE, RANDOM_RANGE, size=self.weights.shape
        )
        self.bias = rng.uniform(
            -RANDOM_RANGE, RANDOM_RANGE, size=self.bias.shape
        )

    def copy(self):
        """Value copy of the parameters; forward caches start empty."""
        clone = Layer(self.neuron_count, self.input_count)
        clone.weights = self.weights.copy()
        clone.bias = self.bias.copy()
        return clone

    def __repr__(self):
        return f"Layer(neuron_count={self.neuron_count}, input_count={self.input_count})"
