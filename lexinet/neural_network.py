"""
neural_network.py
-----------------
Feed-forward network built from a stack of arctangent Layers on top of an
input encoder. Supports the forward pass, per-example backpropagation, and
gradient accumulation over a list of examples that can be run independently
by parallel workers on their own copy of the network.
"""

import copy
import os
# Limit BLAS threads in worker processes (multiprocessing spawns new interpreters)
os.environ.setdefault("OMP_NUM_THREADS", "1")
os.environ.setdefault("MKL_NUM_THREADS", "1")
os.environ.setdefault("OPENBLAS_NUM_THREADS", "1")
os.environ.setdefault("NUMEXPR_NUM_THREADS", "1")

import numpy as np

from .errors import InvalidConfigurationError, ShapeMismatchError
from .layer import Layer, activation_derivative

# hidden, hidden, output
DEFAULT_LAYER_SIZES = [32, 16, 4]


class NeuralNetwork:
    """An ordered stack of fully-connected layers fed by an encoder."""

    def __init__(self, encoder, layer_sizes=None, seed=None):
        """
        Parameters
        ----------
        encoder : object
            Input encoder exposing compute_output(raw) and get_output().
        layer_sizes : list[int]
            Neuron count of each layer from first to last, e.g. [32, 16, 4].
            The first layer's input width is the encoder's output height.
        seed : int or None
            Seed for randomize_all_parameters().
        """
        if layer_sizes is None:
            layer_sizes = DEFAULT_LAYER_SIZES
        layer_sizes = list(layer_sizes)
        if not layer_sizes:
            raise InvalidConfigurationError("A network needs at least one layer")

        self.encoder = encoder
        self.layer_sizes = layer_sizes
        self.num_layers = len(layer_sizes)
        self.input_size = encoder.get_output().shape[0]
        self.output_size = layer_sizes[-1]
        self.seed = seed
        self.rng = np.random.RandomState(seed)

        self.layers = []
        previous = self.input_size
        for neurons in layer_sizes:
            self.layers.append(Layer(neurons, previous))
            previous = neurons

    # ------------------------------------------------------------------
    # Parameter import / export
    # ------------------------------------------------------------------
    def randomize_all_parameters(self):
        for layer in self.layers:
            layer.randomize_parameters(self.rng)

    def export_parameters(self):
        """Return [(weights, bias), ...] from first to last layer (copies)."""
        return [layer.get_parameters() for layer in self.layers]

    def import_parameters(self, params):
        """Load [(weights, bias), ...] from first to last layer."""
        params = list(params)
        if len(params) != self.num_layers:
            raise InvalidConfigurationError(
                f"Expected parameters for {self.num_layers} layers, got {len(params)}"
            )
        # All shapes are checked before any layer is touched
        checked = [
            layer.check_parameters(weights, bias)
            for layer, (weights, bias) in zip(self.layers, params)
        ]
        for layer, (weights, bias) in zip(self.layers, checked):
            layer.weights = weights
            layer.bias = bias

    def copy(self):
        """
        Independent copy for a worker: parameters are copied by value and the
        encoder gets its own output buffer. Forward caches are not carried.
        """
        clone = NeuralNetwork.__new__(NeuralNetwork)
        clone.encoder = copy.deepcopy(self.encoder)
        clone.layer_sizes = list(self.layer_sizes)
        clone.num_layers = self.num_layers
        clone.input_size = self.input_size
        clone.output_size = self.output_size
        clone.seed = self.seed
        clone.rng = copy.deepcopy(self.rng)
        clone.layers = [layer.copy() for layer in self.layers]
        return clone

    # ------------------------------------------------------------------
    # Forward pass
    # ------------------------------------------------------------------
    def forward(self, raw_input):
        """
        Encode `raw_input` and push it through every layer.

        Returns
        -------
        output : np.ndarray, shape (output_size, 1)
            The last layer's activation. Every layer's cache is overwritten.
        """
        self.encoder.compute_output(raw_input)
        previous = self.encoder.get_output()
        for layer in self.layers:
            layer.compute_output(previous)
            previous = layer.get_output()
        return previous

    def layer_inputs(self):
        """Input that fed each layer on the last forward pass (encoder output first)."""
        return [self.encoder.get_output()] + [
            layer.get_output() for layer in self.layers[:-1]
        ]

    # ------------------------------------------------------------------
    # Backward pass - gradient computation
    # ------------------------------------------------------------------
    def zero_gradients(self):
        """Zero-initialized accumulators shaped like each layer's parameters."""
        weight_grads = [np.zeros_like(layer.weights) for layer in self.layers]
        bias_grads = [np.zeros_like(layer.bias) for layer in self.layers]
        return weight_grads, bias_grads

    def _check_target(self, target):
        target = np.asarray(target, dtype=np.float64)
        if target.shape != (self.output_size, 1):
            raise ShapeMismatchError(
                f"Target has shape {target.shape}, expected ({self.output_size}, 1)"
            )
        return target

    def backpropagate_one_example(self, raw_input, target):
        """
        Gradients of 0.5 * ||output - target||^2 for one example.

        Parameters
        ----------
        raw_input : object
            Anything the encoder accepts.
        target : np.ndarray, shape (output_size, 1)

        Returns
        -------
        weight_grads : list[np.ndarray]
        bias_grads : list[np.ndarray]
        cost : float
            Sum of squared errors for this example.
        """
        target = self._check_target(target)
        output = self.forward(raw_input)
        error = output - target
        cost = float(np.sum(error * error))

        inputs = self.layer_inputs()
        weight_grads = [None] * self.num_layers
        bias_grads = [None] * self.num_layers

        delta = error * activation_derivative(self.layers[-1].get_weighted_input())

        for i in range(self.num_layers - 1, -1, -1):
            weight_grads[i] = delta @ inputs[i].T
            bias_grads[i] = delta

            if i > 0:
                delta = self.layers[i].get_weights().T @ delta
                delta = delta * activation_derivative(self.layers[i - 1].get_weighted_input())

        return weight_grads, bias_grads, cost

    def compute_gradients(self, examples):
        """
        Sum gradients and cost over a list of (raw_input, target) examples.

        Returns
        -------
        weight_grads, bias_grads : list[np.ndarray]
            Per-layer sums (not averaged).
        total_cost : float
            Sum of squared errors over all examples.
        """
        weight_grads, bias_grads = self.zero_gradients()
        total_cost = 0.0

        for raw_input, target in examples:
            w_grads, b_grads, cost = self.backpropagate_one_example(raw_input, target)
            for i in range(self.num_layers):
                weight_grads[i] += w_grads[i]
                bias_grads[i] += b_grads[i]
            total_cost += cost

        return weight_grads, bias_grads, total_cost

    # ------------------------------------------------------------------
    # Parameter update
    # ------------------------------------------------------------------
    def apply_gradients(self, weight_grads, bias_grads, lr, batch_size):
        """Gradient-descent step with summed gradients over `batch_size` examples."""
        scale = -lr / batch_size
        for layer, w_grad, b_grad in zip(self.layers, weight_grads, bias_grads):
            layer.adjust_weights(scale * w_grad)
            layer.adjust_bias(scale * b_grad)

    # ------------------------------------------------------------------
    # Inference helpers
    # ------------------------------------------------------------------
    def predict(self, raw_input):
        """Return the index of the strongest output unit."""
        return int(np.argmax(self.forward(raw_input)))

    def accuracy(self, examples):
        """Fraction of examples whose strongest output matches the target's."""
        examples = list(examples)
        if not examples:
            return 0.0
        hits = sum(
            self.predict(raw_input) == int(np.argmax(target))
            for raw_input, target in examples
        )
        return hits / len(examples)

    def compute_cost(self, examples):
        """Mean squared error with the 1/2 factor, without touching parameters."""
        examples = list(examples)
        if not examples:
            raise InvalidConfigurationError("Cannot compute the cost of zero examples")
        total = 0.0
        for raw_input, target in examples:
            error = self.forward(raw_input) - self._check_target(target)
            total += float(np.sum(error * error))
        return total / (2 * len(examples))


# ======================================================================
# Standalone gradient function for multiprocessing workers
# ======================================================================
def compute_gradients_worker(args):
    """
    Standalone function that can be called by a worker process.

    Parameters
    ----------
    args : tuple
        (network, examples). The network arrives pickled, so the process
        already works on a private copy.

    Returns
    -------
    weight_grads, bias_grads : list[np.ndarray]
    cost : float
    n : int  (number of examples in the partition)
    """
    network, examples = args
    weight_grads, bias_grads, cost = network.compute_gradients(examples)
    return weight_grads, bias_grads, cost, len(examples)
