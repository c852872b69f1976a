"""Tests for batch partitioning and parallel gradient descent."""

import math

import numpy as np
import pytest

import lexinet.parallel_trainer as parallel_trainer
from lexinet.errors import InvalidConfigurationError, ShapeMismatchError
from lexinet.parallel_trainer import ParallelTrainer, partition_examples
from lexinet.sequential_trainer import SequentialTrainer


def assert_same_parameters(a, b):
    for (wa, ba), (wb, bb) in zip(a.export_parameters(), b.export_parameters()):
        np.testing.assert_array_equal(wa, wb)
        np.testing.assert_array_equal(ba, bb)


def assert_close_parameters(a, b):
    for (wa, ba), (wb, bb) in zip(a.export_parameters(), b.export_parameters()):
        np.testing.assert_allclose(wa, wb, rtol=1e-10, atol=1e-12)
        np.testing.assert_allclose(ba, bb, rtol=1e-10, atol=1e-12)


class TestPartitioning:
    def test_every_example_assigned_once(self):
        for n in range(1, 13):
            examples = list(range(n))
            for workers in range(1, n + 1):
                parts = partition_examples(examples, workers)
                assert len(parts) == workers
                assert [x for part in parts for x in part] == examples
                sizes = [len(part) for part in parts]
                assert max(sizes) - min(sizes) <= 1
                assert min(sizes) >= 1

    def test_extra_examples_go_to_first_workers(self):
        parts = partition_examples(list(range(10)), 4)
        assert parts == [[0, 1, 2], [3, 4, 5], [6, 7], [8, 9]]

    def test_zero_workers_raises(self):
        with pytest.raises(InvalidConfigurationError):
            partition_examples([1, 2, 3], 0)


class TestTrainOneBatch:
    def test_worker_count_capped_by_batch_size(self, make_network, regression_examples, monkeypatch):
        seen = []
        original = parallel_trainer.partition_examples

        def spy(examples, num_workers):
            seen.append(num_workers)
            return original(examples, num_workers)

        monkeypatch.setattr(parallel_trainer, "partition_examples", spy)
        trainer = ParallelTrainer(make_network(), lr=0.1, num_workers=8)
        trainer.train_one_batch(regression_examples[:3])
        trainer.train_one_batch(regression_examples, max_workers=5)
        assert seen == [3, 5]

    def test_returns_cost_before_update(self, make_network, regression_examples):
        model = make_network()
        expected = model.compute_cost(regression_examples)
        trainer = ParallelTrainer(model, lr=0.05, num_workers=3)

        cost = trainer.train_one_batch(regression_examples)
        assert cost == pytest.approx(expected)
        assert model.compute_cost(regression_examples) < expected

    def test_update_matches_averaged_gradient(self, make_network, regression_examples):
        model = make_network()
        reference = model.copy()
        weight_grads, bias_grads, _ = reference.compute_gradients(regression_examples)

        ParallelTrainer(model, num_workers=4).train_one_batch(
            regression_examples, learning_rate=0.3
        )

        n = len(regression_examples)
        for layer, ref_layer, w_grad, b_grad in zip(
            model.layers, reference.layers, weight_grads, bias_grads
        ):
            np.testing.assert_allclose(layer.weights, ref_layer.weights - 0.3 * w_grad / n, atol=1e-12)
            np.testing.assert_allclose(layer.bias, ref_layer.bias - 0.3 * b_grad / n, atol=1e-12)

    def test_deterministic(self, make_network, regression_examples):
        a, b = make_network(seed=21), make_network(seed=21)
        cost_a = ParallelTrainer(a, lr=0.2, num_workers=3).train_one_batch(regression_examples)
        cost_b = ParallelTrainer(b, lr=0.2, num_workers=3).train_one_batch(regression_examples)

        assert cost_a == cost_b
        assert_same_parameters(a, b)

    def test_single_worker_equals_sequential(self, make_network, regression_examples):
        a, b = make_network(seed=4), make_network(seed=4)
        cost_a = ParallelTrainer(a, lr=0.2, num_workers=1).train_one_batch(regression_examples)
        cost_b = SequentialTrainer(b, lr=0.2).train_one_batch(regression_examples)

        assert cost_a == cost_b
        assert_same_parameters(a, b)

    @pytest.mark.parametrize("workers", [2, 3, 5, 12])
    def test_matches_sequential_for_any_worker_count(self, make_network, regression_examples, workers):
        a, b = make_network(seed=8), make_network(seed=8)
        for _ in range(3):
            cost_a = ParallelTrainer(a, lr=0.2, num_workers=workers).train_one_batch(regression_examples)
            cost_b = SequentialTrainer(b, lr=0.2).train_one_batch(regression_examples)
            assert cost_a == pytest.approx(cost_b, rel=1e-12)
        assert_close_parameters(a, b)

    def test_cost_trends_down(self, make_network, regression_examples):
        model = make_network(seed=3)
        trainer = ParallelTrainer(model, lr=0.1, num_workers=4)
        costs = [trainer.train_one_batch(regression_examples) for _ in range(200)]

        assert np.mean(costs[-10:]) < np.mean(costs[:10])
        assert costs[-1] < costs[0]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"examples": []},
            {"learning_rate": 0.0},
            {"learning_rate": -0.1},
            {"max_workers": 0},
        ],
    )
    def test_invalid_configuration_leaves_model_untouched(self, make_network, regression_examples, kwargs):
        model = make_network()
        before = model.copy()
        call = {"examples": regression_examples}
        call.update(kwargs)

        with pytest.raises(InvalidConfigurationError):
            ParallelTrainer(model).train_one_batch(**call)
        assert_same_parameters(model, before)

    def test_bad_target_shape_propagates(self, make_network, regression_examples):
        model = make_network()
        before = model.copy()
        examples = list(regression_examples)
        examples[7] = (examples[7][0], np.zeros((3, 1)))

        with pytest.raises(ShapeMismatchError):
            ParallelTrainer(model, num_workers=4).train_one_batch(examples)
        assert_same_parameters(model, before)

    def test_unknown_strategy_raises(self, make_network):
        with pytest.raises(InvalidConfigurationError):
            ParallelTrainer(make_network(), strategy="gpu")

    def test_multiprocessing_matches_threading(self, make_network, regression_examples):
        a, b = make_network(seed=6), make_network(seed=6)
        cost_a = ParallelTrainer(a, lr=0.2, num_workers=2, strategy="threading").train_one_batch(
            regression_examples
        )
        cost_b = ParallelTrainer(b, lr=0.2, num_workers=2, strategy="multiprocessing").train_one_batch(
            regression_examples
        )
        assert cost_a == pytest.approx(cost_b)
        assert_close_parameters(a, b)


class TestTrainLoop:
    def test_history(self, make_network, regression_examples):
        trainer = ParallelTrainer(make_network(), lr=0.1, num_workers=2)
        history = trainer.train(regression_examples, epochs=3, batch_size=5, verbose=False)

        for key in ("train_loss", "train_acc", "test_acc", "test_loss",
                    "epoch_times", "compute_times", "comm_times"):
            assert len(history[key]) == 3
        assert history["total_time"] >= 0
        assert math.isnan(history["test_acc"][0])

    def test_history_with_test_set(self, make_network, regression_examples):
        trainer = ParallelTrainer(make_network(), lr=0.1, num_workers=2)
        history = trainer.train(
            regression_examples[:8], epochs=2, batch_size=4,
            test_examples=regression_examples[8:], verbose=False,
        )
        assert all(0.0 <= acc <= 1.0 for acc in history["test_acc"])
        assert all(loss > 0 for loss in history["test_loss"])

    def test_unshuffled_training_matches_sequential(self, make_network, regression_examples):
        a, b = make_network(seed=2), make_network(seed=2)
        par = ParallelTrainer(a, lr=0.1, num_workers=3).train(
            regression_examples, epochs=2, batch_size=6, shuffle=False, verbose=False
        )
        seq = SequentialTrainer(b, lr=0.1).train(
            regression_examples, epochs=2, batch_size=6, shuffle=False, verbose=False
        )
        np.testing.assert_allclose(par["train_loss"], seq["train_loss"], rtol=1e-12)
        assert_close_parameters(a, b)

    def test_verbose_prints_progress(self, make_network, regression_examples, capsys):
        trainer = ParallelTrainer(make_network(), lr=0.1, num_workers=2)
        trainer.train(regression_examples, epochs=1, batch_size=6)
        out = capsys.readouterr().out
        assert "THR P=2" in out
        assert "Epoch   1/1" in out

    def test_invalid_batch_size_raises(self, make_network, regression_examples):
        trainer = ParallelTrainer(make_network())
        with pytest.raises(InvalidConfigurationError):
            trainer.train(regression_examples, batch_size=0, verbose=False)
