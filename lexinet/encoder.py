"""
encoder.py
----------
Input encoders. An encoder turns a raw item into a fixed-height column vector.

Every encoder exposes:
  - compute_output(raw) : encode `raw` into the cached output buffer
  - get_output()        : the cached (height, 1) column

The buffer exists from construction so a network can size its first layer
before anything has been encoded.
"""

import string

import numpy as np

from .errors import EncodingError


class WordEncoder:
    """Positional one-hot encoding of a word over a fixed alphabet."""

    def __init__(self, max_length=12, alphabet=string.ascii_lowercase):
        """
        Parameters
        ----------
        max_length : int
            Longest word that can be encoded.
        alphabet : str
            Allowed symbols; a symbol's index is its position in this string.
        """
        if max_length < 1 or not alphabet:
            raise EncodingError("WordEncoder needs max_length >= 1 and a non-empty alphabet")
        self.max_length = max_length
        self.alphabet = alphabet
        self._index = {ch: i for i, ch in enumerate(alphabet)}
        self.output = np.zeros((max_length * len(alphabet), 1))

    def symbol_indices(self, word):
        """Map a word (str or sequence of symbol indices) to a list of indices."""
        if isinstance(word, str):
            try:
                indices = [self._index[ch] for ch in word.lower()]
            except KeyError as e:
                raise EncodingError(f"Symbol {e.args[0]!r} in {word!r} is not in the alphabet") from None
        else:
            indices = [int(i) for i in word]
            for i in indices:
                if not 0 <= i < len(self.alphabet):
                    raise EncodingError(f"Symbol index {i} is outside [0, {len(self.alphabet)})")

        if not indices:
            raise EncodingError("Cannot encode an empty word")
        if len(indices) > self.max_length:
            raise EncodingError(
                f"Word of length {len(indices)} exceeds max_length={self.max_length}"
            )
        return indices

    def compute_output(self, word):
        indices = self.symbol_indices(word)
        output = np.zeros_like(self.output)
        width = len(self.alphabet)
        for position, symbol in enumerate(indices):
            output[position * width + symbol, 0] = 1.0
        self.output = output

    def get_output(self):
        return self.output


class VectorEncoder:
    """Pass-through encoder for inputs that are already numeric."""

    def __init__(self, size):
        if size < 1:
            raise EncodingError(f"VectorEncoder size must be >= 1, got {size}")
        self.size = size
        self.output = np.zeros((size, 1))

    def compute_output(self, vector):
        arr = np.asarray(vector, dtype=np.float64)
        if arr.size != self.size or arr.ndim > 2 or (arr.ndim == 2 and arr.shape[1] != 1):
            raise EncodingError(
                f"Expected {self.size} values as a flat or column vector, got shape {arr.shape}"
            )
        self.output = arr.reshape(self.size, 1).copy()

    def get_output(self):
        return self.output
