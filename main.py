"""
main.py
-------
Experiment runner for the word network with parallel mini-batch training.

Trains a sequential baseline and one parallel run per worker count on the
same initial parameters, prints a comparison, and generates plots.

Usage:
    python main.py                                          # synthetic words, 10 epochs
    python main.py --epochs 3 --num_samples 500             # quick test
    python main.py --workers 2 4 8 --strategy threading     # threading strategy
    python main.py --workers 2 4 --strategy multiprocessing # multiprocessing strategy
    python main.py --dataset file --data-path words.tsv --save-params net.npz
"""

# !! IMPORTANT: Limit NumPy's internal BLAS threading so our explicit
# parallelism (threads / processes) controls core utilisation.
# These MUST be set BEFORE importing numpy.
import os
os.environ["OMP_NUM_THREADS"] = "1"
os.environ["MKL_NUM_THREADS"] = "1"
os.environ["OPENBLAS_NUM_THREADS"] = "1"
os.environ["NUMEXPR_NUM_THREADS"] = "1"

import argparse
import sys
import numpy as np

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from lexinet.checkpoint import load_parameters, save_parameters
from lexinet.data_loader import load_synthetic, load_word_file, train_test_split
from lexinet.encoder import WordEncoder
from lexinet.neural_network import NeuralNetwork
from lexinet.sequential_trainer import SequentialTrainer
from lexinet.parallel_trainer import ParallelTrainer
from lexinet.metrics import print_comparison_table, generate_report


def plot_results(seq_history, par_histories, save_dir="results"):
    """Generate and save comparison plots."""
    try:
        import matplotlib
        matplotlib.use("Agg")  # Non-interactive backend
        import matplotlib.pyplot as plt
    except ImportError:
        print("  [Warning] matplotlib not installed - skipping plots.")
        return

    os.makedirs(save_dir, exist_ok=True)
    epochs_range = range(1, len(seq_history["train_loss"]) + 1)
    worker_counts = sorted(par_histories.keys())

    def _line_plot(key, ylabel, title, filename):
        fig, ax = plt.subplots(figsize=(10, 6))
        ax.plot(epochs_range, seq_history[key], "k-o",
                label="Sequential", linewidth=2)
        for P in worker_counts:
            ax.plot(epochs_range, par_histories[P][key], "-s",
                    label=f"Parallel P={P}", linewidth=1.5)
        ax.set_xlabel("Epoch")
        ax.set_ylabel(ylabel)
        ax.set_title(title)
        ax.legend()
        ax.grid(True, alpha=0.3)
        fig.tight_layout()
        fig.savefig(os.path.join(save_dir, filename), dpi=150)
        plt.close(fig)
        print(f"  Saved: {save_dir}/{filename}")

    _line_plot("train_loss", "Average Cost",
               "Training Cost: Sequential vs Parallel", "training_cost.png")
    _line_plot("train_acc", "Train Accuracy",
               "Train Accuracy: Sequential vs Parallel", "train_accuracy.png")
    _line_plot("epoch_times", "Time per Epoch (s)",
               "Epoch Time: Sequential vs Parallel", "epoch_times.png")

    # ---- Speedup Bar Chart ----
    seq_total = seq_history["total_time"]
    speedups = [seq_total / par_histories[P]["total_time"] for P in worker_counts]

    fig, ax = plt.subplots(figsize=(8, 5))
    x_pos = range(len(worker_counts))
    bars = ax.bar(x_pos, speedups, color="steelblue", edgecolor="black")
    ax.plot(x_pos, worker_counts, "r--", marker="^", label="Ideal (linear)")
    ax.set_xticks(x_pos)
    ax.set_xticklabels([f"P={P}" for P in worker_counts])
    ax.set_ylabel("Speedup")
    ax.set_title("Speedup vs Number of Workers")
    ax.legend()
    ax.grid(True, alpha=0.3, axis="y")
    for bar, s in zip(bars, speedups):
        ax.text(bar.get_x() + bar.get_width() / 2, bar.get_height() + 0.05,
                f"{s:.2f}x", ha="center", va="bottom", fontweight="bold")
    fig.tight_layout()
    fig.savefig(os.path.join(save_dir, "speedup.png"), dpi=150)
    plt.close(fig)
    print(f"  Saved: {save_dir}/speedup.png")


def build_network(encoder, layer_sizes, seed, load_path=None):
    """Fresh network with random parameters, or parameters from a checkpoint."""
    model = NeuralNetwork(encoder, layer_sizes, seed=seed)
    if load_path:
        model.import_parameters(load_parameters(load_path))
    else:
        model.randomize_all_parameters()
    return model


def main():
    parser = argparse.ArgumentParser(
        description="Word network with parallel mini-batch training"
    )
    parser.add_argument(
        "--dataset", type=str, default="synthetic",
        choices=["synthetic", "file"],
        help="Dataset to use (default: synthetic)"
    )
    parser.add_argument(
        "--data-path", type=str, default=None,
        help="word<TAB>label file, required with --dataset file"
    )
    parser.add_argument(
        "--num_samples", type=int, default=2000,
        help="Number of synthetic words (default: 2000)"
    )
    parser.add_argument(
        "--classes", type=int, default=4,
        help="Number of synthetic classes (default: 4)"
    )
    parser.add_argument(
        "--max-length", type=int, default=8,
        help="Longest word the encoder accepts (default: 8)"
    )
    parser.add_argument(
        "--epochs", type=int, default=10,
        help="Number of training epochs (default: 10)"
    )
    parser.add_argument(
        "--batch_size", type=int, default=64,
        help="Mini-batch size (default: 64)"
    )
    parser.add_argument(
        "--lr", type=float, default=0.5,
        help="Learning rate (default: 0.5)"
    )
    parser.add_argument(
        "--workers", type=int, nargs="+", default=[2, 4],
        help="List of worker counts to test (default: 2 4)"
    )
    parser.add_argument(
        "--strategy", type=str, default="threading",
        choices=["threading", "multiprocessing"],
        help="Parallelism strategy (default: threading)"
    )
    parser.add_argument(
        "--hidden", type=int, nargs="+", default=[32, 16],
        help="Hidden layer sizes (default: 32 16)"
    )
    parser.add_argument(
        "--seed", type=int, default=42,
        help="Random seed (default: 42)"
    )
    parser.add_argument(
        "--load-params", type=str, default=None,
        help="Start from parameters saved with --save-params"
    )
    parser.add_argument(
        "--save-params", type=str, default=None,
        help="Save the last trained network's parameters to this .npz file"
    )
    args = parser.parse_args()

    np.random.seed(args.seed)

    # ---- Load Data ----
    print("\n" + "=" * 60)
    print("WORD NETWORK - PARALLEL MINI-BATCH TRAINING")
    print("=" * 60)

    if args.dataset == "file":
        if not args.data_path:
            parser.error("--data-path is required with --dataset file")
        examples = load_word_file(args.data_path)
    else:
        examples = load_synthetic(
            num_samples=args.num_samples, num_classes=args.classes,
            max_length=args.max_length, seed=args.seed,
        )
    train_examples, test_examples = train_test_split(examples, seed=args.seed)

    encoder = WordEncoder(max_length=args.max_length)
    num_classes = examples[0][1].shape[0]
    layer_sizes = args.hidden + [num_classes]

    input_size = encoder.get_output().shape[0]
    sizes = [input_size] + layer_sizes
    total_params = sum(
        sizes[i] * sizes[i + 1] + sizes[i + 1] for i in range(len(sizes) - 1)
    )
    print(f"\nModel architecture: {sizes}")
    print(f"Total parameters: {total_params:,}")
    print(f"Train: {len(train_examples)} | Test: {len(test_examples)}")
    print(f"Batch size: {args.batch_size} | LR: {args.lr} | Epochs: {args.epochs}")
    print(f"Workers to test: {args.workers} | Strategy: {args.strategy}")

    # ---- Sequential Training ----
    print("\n" + "-" * 60)
    print("SEQUENTIAL TRAINING (Baseline)")
    print("-" * 60)

    model_seq = build_network(encoder, layer_sizes, args.seed, args.load_params)
    trainer_seq = SequentialTrainer(model_seq, lr=args.lr)
    seq_history = trainer_seq.train(
        train_examples, epochs=args.epochs, batch_size=args.batch_size,
        test_examples=test_examples,
    )

    # ---- Parallel Training ----
    par_histories = {}
    model_par = None

    for P in args.workers:
        print(f"\n{'-' * 60}")
        print(f"PARALLEL TRAINING (P={P} workers, {args.strategy})")
        print("-" * 60)

        # Use the SAME initial parameters for a fair comparison
        model_par = build_network(encoder, layer_sizes, args.seed, args.load_params)
        trainer_par = ParallelTrainer(
            model_par, lr=args.lr, num_workers=P, strategy=args.strategy,
        )
        par_histories[P] = trainer_par.train(
            train_examples, epochs=args.epochs, batch_size=args.batch_size,
            test_examples=test_examples,
        )

    # ---- Results ----
    if par_histories:
        print_comparison_table(seq_history, par_histories)

    report = generate_report(seq_history, par_histories,
                             args.batch_size, args.epochs, sizes)
    os.makedirs("results", exist_ok=True)
    report_path = os.path.join("results", "experiment_report.txt")
    with open(report_path, "w") as f:
        f.write(report)
    print(f"\n  Report saved to: {report_path}")

    if args.save_params:
        final_model = model_par if model_par is not None else model_seq
        save_parameters(args.save_params, final_model.export_parameters())
        print(f"  Parameters saved to: {args.save_params}")

    # ---- Generate Plots ----
    if par_histories:
        print("\nGenerating plots...")
        plot_results(seq_history, par_histories)

    print("\nDone!")


if __name__ == "__main__":
    main()
