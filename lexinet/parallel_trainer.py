"""
parallel_trainer.py
-------------------
Parallel mini-batch gradient descent with two strategies:

1. **Threading** (default) - a `concurrent.futures.ThreadPoolExecutor` is
   created for each batch and shut down before the batch returns (fork-join).
   Every worker thread runs on its own copy of the network, because a forward
   pass rewrites each layer's cached weighted input and output.
   NumPy releases the GIL during matrix operations.

2. **Multiprocessing** - a `multiprocessing.Pool` per batch.
   The network is pickled into each worker process, which gives the same
   isolation at a higher communication cost.

Data-parallel approach (both strategies):
  1. A batch is split into W contiguous partitions (W = min(workers, N)).
  2. Workers accumulate summed gradients and cost on their partition.
  3. Partial sums are reduced in worker order in the coordinating thread.
  4. The live network is updated once, after every worker has finished.
"""

import time
import numpy as np
import multiprocessing as mp
from concurrent.futures import ThreadPoolExecutor

from .errors import InvalidConfigurationError
from .neural_network import NeuralNetwork, compute_gradients_worker

STRATEGIES = ("threading", "multiprocessing")


# ======================================================================
# Thread worker (private network copy per thread)
# ======================================================================
def _thread_gradient_worker(model, examples):
    """
    Compute summed gradients inside a thread on a private copy of `model`.

    The live model is only read here (to copy it); it is not written until
    all threads have been joined.
    """
    local_model = model.copy()
    weight_grads, bias_grads, cost = local_model.compute_gradients(examples)
    return weight_grads, bias_grads, cost, len(examples)


# ======================================================================
# Gradient aggregation
# ======================================================================
def _aggregate_gradients(results, num_layers):
    """
    Sum partial gradients and costs returned by workers.

    Parameters
    ----------
    results : list of (weight_grads, bias_grads, cost, n_examples)
        In worker order; summing in this fixed order keeps the update
        deterministic.
    num_layers : int

    Returns
    -------
    weight_grads, bias_grads : list[np.ndarray]
    total_cost : float
    """
    agg_weight_grads = [None] * num_layers
    agg_bias_grads = [None] * num_layers
    total_cost = 0.0

    for weight_grads, bias_grads, cost, _ in results:
        total_cost += cost

        for i in range(num_layers):
            if agg_weight_grads[i] is None:
                agg_weight_grads[i] = weight_grads[i].copy()
                agg_bias_grads[i] = bias_grads[i].copy()
            else:
                agg_weight_grads[i] += weight_grads[i]
                agg_bias_grads[i] += bias_grads[i]

    return agg_weight_grads, agg_bias_grads, total_cost


# ======================================================================
# Partitioning helper
# ======================================================================
def partition_examples(examples, num_workers):
    """
    Split `examples` into `num_workers` contiguous partitions.

    Each partition gets len(examples) // num_workers examples and the first
    len(examples) % num_workers partitions get one more.
    """
    if num_workers < 1:
        raise InvalidConfigurationError(f"num_workers must be >= 1, got {num_workers}")
    n = len(examples)
    base, extra = divmod(n, num_workers)
    partitions = []
    start = 0
    for w in range(num_workers):
        end = start + base + (1 if w < extra else 0)
        partitions.append(examples[start:end])
        start = end
    return partitions


def validate_batch(examples, lr, max_workers):
    if len(examples) == 0:
        raise InvalidConfigurationError("A batch needs at least one example")
    if not lr > 0:
        raise InvalidConfigurationError(f"Learning rate must be positive, got {lr}")
    if max_workers < 1:
        raise InvalidConfigurationError(f"max_workers must be >= 1, got {max_workers}")


class ParallelTrainer:
    """Train a NeuralNetwork using parallel mini-batch gradient descent."""

    def __init__(self, model: NeuralNetwork, lr=0.1, num_workers=4,
                 strategy="threading"):
        """
        Parameters
        ----------
        strategy : str
            'threading'       - ThreadPoolExecutor per batch (default)
            'multiprocessing' - multiprocessing.Pool per batch
        """
        if strategy not in STRATEGIES:
            raise InvalidConfigurationError(f"Unknown strategy: {strategy}")
        self.model = model
        self.lr = lr
        self.num_workers = num_workers
        self.strategy = strategy

    # ------------------------------------------------------------------
    # One batch
    # ------------------------------------------------------------------
    def train_one_batch(self, examples, learning_rate=None, max_workers=None):
        """
        Compute gradients for `examples` in parallel and update the model.

        Parameters
        ----------
        examples : sequence of (raw_input, target)
        learning_rate : float, defaults to self.lr
        max_workers : int, defaults to self.num_workers

        Returns
        -------
        avg_cost : float
            Sum of squared errors / (2 * len(examples)), measured before
            the update.
        """
        avg_cost, _, _ = self._run_batch(examples, learning_rate, max_workers)
        return avg_cost

    def _run_batch(self, examples, learning_rate=None, max_workers=None):
        lr = self.lr if learning_rate is None else learning_rate
        max_workers = self.num_workers if max_workers is None else max_workers
        examples = list(examples)
        validate_batch(examples, lr, max_workers)

        n = len(examples)
        worker_count = min(max_workers, n)

        comm_start = time.time()
        partitions = partition_examples(examples, worker_count)
        comm_time_send = time.time() - comm_start

        compute_start = time.time()
        if self.strategy == "threading":
            results = self._compute_threaded(partitions, worker_count)
        else:
            results = self._compute_multiprocessing(partitions, worker_count)
        compute_time = time.time() - compute_start

        agg_start = time.time()
        weight_grads, bias_grads, total_cost = _aggregate_gradients(
            results, self.model.num_layers
        )
        # Update (all workers are done, safe to write)
        self.model.apply_gradients(weight_grads, bias_grads, lr, n)
        comm_time_agg = time.time() - agg_start

        return total_cost / (2 * n), compute_time, comm_time_send + comm_time_agg

    def _compute_threaded(self, partitions, worker_count):
        with ThreadPoolExecutor(max_workers=worker_count) as executor:
            futures = [
                executor.submit(_thread_gradient_worker, self.model, part)
                for part in partitions
            ]
            return [f.result() for f in futures]

    def _compute_multiprocessing(self, partitions, worker_count):
        worker_args = [(self.model, part) for part in partitions]
        with mp.Pool(processes=worker_count) as pool:
            return pool.map(compute_gradients_worker, worker_args)

    # ------------------------------------------------------------------
    # Training loop
    # ------------------------------------------------------------------
    def train(self, examples, epochs=10, batch_size=32, shuffle=True,
              test_examples=None, verbose=True):
        """
        Run mini-batch training over `examples` for `epochs` epochs.

        Returns
        -------
        history : dict
            Keys: 'train_loss', 'test_loss', 'train_acc', 'test_acc',
                  'epoch_times', 'compute_times', 'comm_times', 'total_time'.
        """
        if batch_size < 1:
            raise InvalidConfigurationError(f"batch_size must be >= 1, got {batch_size}")
        examples = list(examples)
        label = f"{self.strategy[:3].upper()} P={self.num_workers}"

        history = {
            "train_loss": [], "test_loss": [],
            "train_acc": [],  "test_acc": [],
            "epoch_times": [], "compute_times": [], "comm_times": [],
        }

        total_start = time.time()

        for epoch in range(1, epochs + 1):
            epoch_start = time.time()
            epoch_compute_time = 0.0
            epoch_comm_time = 0.0

            order = np.random.permutation(len(examples)) if shuffle else range(len(examples))
            shuffled = [examples[i] for i in order]

            epoch_loss = 0.0
            num_batches = 0

            for start in range(0, len(shuffled), batch_size):
                batch = shuffled[start:start + batch_size]
                batch_loss, compute_time, comm_time = self._run_batch(batch)

                epoch_loss += batch_loss
                num_batches += 1
                epoch_compute_time += compute_time
                epoch_comm_time += comm_time

            record_epoch(
                self.model, history, label, epoch, epochs, epoch_start,
                epoch_loss, num_batches, examples, test_examples, verbose,
                compute_time=epoch_compute_time, comm_time=epoch_comm_time,
            )

        total_time = time.time() - total_start
        history["total_time"] = total_time

        if verbose:
            print(f"  [{label}] Total training time: {total_time:.2f}s")

        return history


# ======================================================================
# Shared epoch bookkeeping
# ======================================================================
def record_epoch(model, history, label, epoch, epochs, epoch_start,
                 epoch_loss, num_batches, train_examples, test_examples,
                 verbose, compute_time=None, comm_time=None):
    epoch_time = time.time() - epoch_start

    avg_loss = epoch_loss / num_batches if num_batches else 0.0
    train_acc = model.accuracy(train_examples)
    if test_examples:
        test_acc = model.accuracy(test_examples)
        test_loss = model.compute_cost(test_examples)
    else:
        test_acc = test_loss = float("nan")

    history["train_loss"].append(avg_loss)
    history["test_loss"].append(test_loss)
    history["train_acc"].append(train_acc)
    history["test_acc"].append(test_acc)
    history["epoch_times"].append(epoch_time)
    if compute_time is not None:
        history["compute_times"].append(compute_time)
        history["comm_times"].append(comm_time)

    if verbose:
        line = (
            f"  [{label}] Epoch {epoch:3d}/{epochs} | "
            f"Loss: {avg_loss:.4f} | Train Acc: {train_acc:.4f} | "
            f"Test Acc: {test_acc:.4f} | Time: {epoch_time:.2f}s"
        )
        if compute_time is not None:
            line += f" (compute: {compute_time:.2f}s, comm: {comm_time:.3f}s)"
        print(line)
