"""Tests for the sequential baseline trainer."""

import numpy as np
import pytest

from lexinet.data_loader import load_synthetic
from lexinet.encoder import WordEncoder
from lexinet.errors import InvalidConfigurationError
from lexinet.neural_network import NeuralNetwork
from lexinet.sequential_trainer import SequentialTrainer


class TestSequentialTrainer:
    def test_train_one_batch_returns_half_mean_squared_error(self, make_network, regression_examples):
        model = make_network()
        _, _, total_cost = model.copy().compute_gradients(regression_examples)

        cost = SequentialTrainer(model, lr=0.1).train_one_batch(regression_examples)
        assert cost == pytest.approx(total_cost / (2 * len(regression_examples)))

    def test_invalid_batches_raise(self, make_network, regression_examples):
        trainer = SequentialTrainer(make_network())
        with pytest.raises(InvalidConfigurationError):
            trainer.train_one_batch([])
        with pytest.raises(InvalidConfigurationError):
            trainer.train_one_batch(regression_examples, learning_rate=0)

    def test_history_keys(self, make_network, regression_examples):
        history = SequentialTrainer(make_network(), lr=0.1).train(
            regression_examples, epochs=2, batch_size=4, verbose=False
        )
        assert len(history["train_loss"]) == 2
        assert len(history["epoch_times"]) == 2
        assert "compute_times" not in history
        assert history["total_time"] >= 0

    def test_learns_synthetic_words(self):
        np.random.seed(0)
        examples = load_synthetic(num_samples=120, num_classes=2, max_length=4, seed=0)
        model = NeuralNetwork(WordEncoder(max_length=4), [8, 2], seed=0)
        model.randomize_all_parameters()

        before = model.compute_cost(examples)
        SequentialTrainer(model, lr=0.5).train(examples, epochs=15, batch_size=20, verbose=False)
        assert model.compute_cost(examples) < before
