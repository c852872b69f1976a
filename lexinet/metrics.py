"""
metrics.py
----------
Run summaries for the sequential baseline and each parallel worker count.

Every trainer returns a history dict. `summarize_history` reduces one history
to the figures the table and the report print: wall time, speedup and
efficiency against the baseline, final cost and accuracy, how much the
training cost fell, and how much of each epoch went to partitioning,
reduction and the update.
"""

import numpy as np


def compute_speedup(seq_time, par_time):
    """Speedup = T_seq / T_par."""
    if par_time == 0:
        return float("inf")
    return seq_time / par_time


def compute_efficiency(speedup, num_workers):
    """Efficiency = Speedup / P."""
    return speedup / num_workers


def compute_comm_fraction(comm_times, epoch_times):
    """Fraction of each epoch spent partitioning, reducing and updating."""
    return [c / t if t > 0 else 0.0 for c, t in zip(comm_times, epoch_times)]


def summarize_history(history, seq_total=None, workers=None):
    """
    Reduce a training history to a flat dict of final figures.

    Parameters
    ----------
    history : dict
        As returned by SequentialTrainer.train or ParallelTrainer.train.
    seq_total : float or None
        Baseline wall time. Speedup and efficiency are 1.0 without it.
    workers : int or None
        Worker count used for efficiency; 1 when None.

    Returns
    -------
    summary : dict
        'total_time', 'speedup', 'efficiency', 'final_cost', 'test_cost',
        'train_acc', 'test_acc', 'cost_drop', 'avg_epoch', and for parallel
        runs 'avg_comm' and 'comm_pct' (None for the sequential baseline).
    """
    total = history["total_time"]
    workers = workers or 1
    speedup = 1.0 if seq_total is None else compute_speedup(seq_total, total)

    losses = history["train_loss"]
    first, last = losses[0], losses[-1]
    cost_drop = (first - last) / first if first > 0 else 0.0

    avg_epoch = float(np.mean(history["epoch_times"]))
    comm_times = history.get("comm_times")
    if comm_times:
        avg_comm = float(np.mean(comm_times))
        comm_pct = avg_comm / avg_epoch * 100 if avg_epoch > 0 else 0.0
    else:
        avg_comm = comm_pct = None

    return {
        "total_time": total,
        "speedup": speedup,
        "efficiency": compute_efficiency(speedup, workers),
        "final_cost": last,
        "test_cost": history["test_loss"][-1],
        "train_acc": history["train_acc"][-1],
        "test_acc": history["test_acc"][-1],
        "cost_drop": cost_drop,
        "avg_epoch": avg_epoch,
        "avg_comm": avg_comm,
        "comm_pct": comm_pct,
    }


def _summaries(seq_history, par_histories):
    """Yield (name, workers, summary), baseline first, then by worker count."""
    seq_total = seq_history["total_time"]
    yield "Sequential", 1, summarize_history(seq_history)
    for P in sorted(par_histories):
        yield (f"Parallel P={P}", P,
               summarize_history(par_histories[P], seq_total, P))


def print_comparison_table(seq_history, par_histories):
    """
    Print one row per run, then the communication share of parallel runs.

    Parameters
    ----------
    seq_history : dict
        History from the sequential trainer.
    par_histories : dict[int, dict]
        Map from num_workers to the parallel trainer's history.
    """
    rows = list(_summaries(seq_history, par_histories))

    print("\n" + "=" * 96)
    print("PERFORMANCE COMPARISON SUMMARY")
    print("=" * 96)
    print(
        f"{'Config':<20} {'Total Time (s)':>14} {'Speedup':>10} "
        f"{'Efficiency':>12} {'Train Acc':>10} {'Test Acc':>10} {'Avg Cost':>12}"
    )
    print("-" * 96)
    for name, _, s in rows:
        print(
            f"{name:<20} {s['total_time']:>14.2f} {s['speedup']:>10.2f} "
            f"{s['efficiency']:>12.2f} {s['train_acc']:>10.4f} "
            f"{s['test_acc']:>10.4f} {s['final_cost']:>12.6f}"
        )
    print("=" * 96)

    parallel = [(name, s) for name, _, s in rows if s["avg_comm"] is not None]
    if not parallel:
        return
    print("\nCOMMUNICATION OVERHEAD (average per epoch)")
    print("-" * 65)
    print(f"{'Config':<20} {'Avg Comm (s)':>14} {'Avg Epoch (s)':>14} {'% Overhead':>12}")
    print("-" * 65)
    for name, s in parallel:
        print(
            f"{name:<20} {s['avg_comm']:>14.4f} "
            f"{s['avg_epoch']:>14.2f} {s['comm_pct']:>11.1f}%"
        )
    print("-" * 65)


def generate_report(seq_history, par_histories, batch_size, epochs, layer_sizes=None):
    """
    Generate a text report summarizing the experiment.

    Returns
    -------
    report : str
    """
    lines = ["=" * 70, "EXPERIMENT REPORT",
             f"Batch Size: {batch_size} | Epochs: {epochs}"]
    if layer_sizes is not None:
        lines.append(f"Layers: {layer_sizes}")
    lines.append("=" * 70)

    for name, P, s in _summaries(seq_history, par_histories):
        if s["avg_comm"] is None:
            lines.append("\nSequential Training:")
        else:
            lines.append(f"\nParallel Training (P={P}):")
        lines.append(f"  Total Time      : {s['total_time']:.2f}s")
        if s["avg_comm"] is not None:
            lines.append(f"  Speedup         : {s['speedup']:.2f}x")
            lines.append(f"  Efficiency      : {s['efficiency']:.2f}")
        lines.append(f"  Final Avg Cost  : {s['final_cost']:.6f}")
        lines.append(f"  Cost Reduction  : {s['cost_drop'] * 100:.1f}%")
        lines.append(f"  Final Train Acc : {s['train_acc']:.4f}")
        if s["avg_comm"] is not None:
            lines.append(f"  Avg Comm Time   : {s['avg_comm']:.4f}s/epoch")

    lines.append("\n" + "=" * 70)
    return "\n".join(lines)
