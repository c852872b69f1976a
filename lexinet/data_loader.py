"""
data_loader.py
--------------
Load and prepare (word, target) training examples.
Supports a tab-separated word list on disk and a synthetic dataset for quick
testing. Targets are column vectors sized to the network's output layer.
"""

import string

import numpy as np

# Inside the (-1, 1) range of the arctangent activation
TARGET_LOW = -0.9
TARGET_HIGH = 0.9


def one_hot_targets(labels, num_classes, low=TARGET_LOW, high=TARGET_HIGH):
    """Convert integer labels to a list of (num_classes, 1) target columns."""
    targets = []
    for label in labels:
        label = int(label)
        if not 0 <= label < num_classes:
            raise ValueError(f"Label {label} is outside [0, {num_classes})")
        column = np.full((num_classes, 1), low)
        column[label, 0] = high
        targets.append(column)
    return targets


def load_word_file(path, num_classes=None):
    """
    Load a word list with one ``word<TAB>label`` pair per line.

    Blank lines and lines starting with '#' are ignored.

    Parameters
    ----------
    path : str
    num_classes : int or None
        Output size; inferred as max(label) + 1 when None.

    Returns
    -------
    examples : list of (word, target)
    """
    words, labels = [], []
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            parts = line.split("\t")
            if len(parts) != 2:
                raise ValueError(f"{path}:{line_no}: expected 'word<TAB>label', got {line!r}")
            word, label = parts[0].strip(), parts[1].strip()
            try:
                labels.append(int(label))
            except ValueError:
                raise ValueError(f"{path}:{line_no}: label {label!r} is not an integer") from None
            words.append(word)

    if num_classes is None:
        num_classes = max(labels) + 1 if labels else 1
    print(f"  Loaded {len(words)} words from {path} ({num_classes} classes)")
    return list(zip(words, one_hot_targets(labels, num_classes)))


def load_synthetic(num_samples=2000, num_classes=4, max_length=8, seed=42):
    """
    Generate random lower-case words whose class is set by their first letter.

    Returns
    -------
    examples : list of (word, target)
    """
    rng = np.random.RandomState(seed)
    letters = string.ascii_lowercase

    words, labels = [], []
    for _ in range(num_samples):
        length = rng.randint(1, max_length + 1)
        word = "".join(letters[i] for i in rng.randint(0, len(letters), size=length))
        words.append(word)
        labels.append(letters.index(word[0]) % num_classes)

    print(
        f"  Synthetic dataset - {num_samples} words, max length {max_length}, "
        f"Classes: {num_classes}"
    )
    return list(zip(words, one_hot_targets(labels, num_classes)))


def train_test_split(examples, test_size=0.15, seed=42):
    """Shuffle `examples` and split them into (train, test) lists."""
    examples = list(examples)
    rng = np.random.RandomState(seed)
    indices = rng.permutation(len(examples))
    shuffled = [examples[i] for i in indices]
    split = int(len(shuffled) * (1 - test_size))
    return shuffled[:split], shuffled[split:]
