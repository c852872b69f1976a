"""
sequential_trainer.py
---------------------
Sequential mini-batch gradient descent trainer.
Serves as the **baseline** for comparing against the parallel implementation:
gradients are summed on the live network in the calling thread.
"""

import time
import numpy as np

from .errors import InvalidConfigurationError
from .neural_network import NeuralNetwork
from .parallel_trainer import record_epoch, validate_batch


class SequentialTrainer:
    """Train a NeuralNetwork using sequential mini-batch gradient descent."""

    def __init__(self, model: NeuralNetwork, lr=0.1):
        self.model = model
        self.lr = lr

    def train_one_batch(self, examples, learning_rate=None):
        """Same update as ParallelTrainer.train_one_batch with a single worker."""
        lr = self.lr if learning_rate is None else learning_rate
        examples = list(examples)
        validate_batch(examples, lr, 1)

        weight_grads, bias_grads, total_cost = self.model.compute_gradients(examples)
        self.model.apply_gradients(weight_grads, bias_grads, lr, len(examples))
        return total_cost / (2 * len(examples))

    def train(self, examples, epochs=10, batch_size=32, shuffle=True,
              test_examples=None, verbose=True):
        """
        Run sequential mini-batch training.

        Returns
        -------
        history : dict
            Keys: 'train_loss', 'test_loss', 'train_acc', 'test_acc',
                  'epoch_times', 'total_time'.
        """
        if batch_size < 1:
            raise InvalidConfigurationError(f"batch_size must be >= 1, got {batch_size}")
        examples = list(examples)
        history = {
            "train_loss": [],
            "test_loss": [],
            "train_acc": [],
            "test_acc": [],
            "epoch_times": [],
        }

        total_start = time.time()

        for epoch in range(1, epochs + 1):
            epoch_start = time.time()

            # Shuffle training data
            order = np.random.permutation(len(examples)) if shuffle else range(len(examples))
            shuffled = [examples[i] for i in order]

            epoch_loss = 0.0
            num_batches = 0

            for start in range(0, len(shuffled), batch_size):
                epoch_loss += self.train_one_batch(shuffled[start:start + batch_size])
                num_batches += 1

            record_epoch(
                self.model, history, "Sequential", epoch, epochs, epoch_start,
                epoch_loss, num_batches, examples, test_examples, verbose,
            )

        total_time = time.time() - total_start
        history["total_time"] = total_time

        if verbose:
            print(f"  [Sequential] Total training time: {total_time:.2f}s")

        return history
