"""
Turn a [1, N] probability tensor into a ranked label result.

The top-1 label is the first index holding the maximum probability. Top-K
alternatives are picked with a partition (selection) pass, then ordered by
descending probability with ties going to the lower class index.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import torch

from graphlabel.errors import InvalidProbabilityError, LabelCountMismatchError, ShapeError
from graphlabel.evaluation.tensors import Tensor


@dataclass(frozen=True)
class Alternative:
    label: str
    # numpy scalar of the tensor's dtype, kept unrounded
    probability: float


@dataclass(frozen=True)
class RankedResult:
    label: str
    alternatives: Optional[Tuple[Alternative, ...]] = None

    def to_dict(self):
        out = {'label': self.label}
        if self.alternatives is not None:
            out['alternatives'] = [{a.label: a.probability} for a in self.alternatives]
        return out


def _shape_of(tensor) -> Tuple[int, ...]:
    if isinstance(tensor, (Tensor, torch.Tensor)):
        return tuple(tensor.shape)
    return np.shape(tensor)


def _probability_row(tensor) -> np.ndarray:
    shape = _shape_of(tensor)
    if len(shape) != 2 or shape[0] != 1 or shape[1] == 0:
        raise ShapeError(shape)
    if isinstance(tensor, Tensor):
        arr = tensor.numpy()
    elif isinstance(tensor, torch.Tensor):
        arr = tensor.detach().cpu().numpy()
    else:
        arr = np.asarray(tensor)
    return arr[0]


def max_probability_index(probabilities: np.ndarray) -> int:
    # np.argmax returns the first occurrence of the maximum
    return int(np.argmax(probabilities))


def top_k_indices(probabilities: np.ndarray, k: int) -> List[int]:
    """Indices of the k largest probabilities, highest first, ties by ascending index."""
    n = len(probabilities)
    k = min(k, n)
    if k <= 0:
        return []
    kth = np.partition(probabilities, n - k)[n - k]
    above = np.flatnonzero(probabilities > kth)
    tied = np.flatnonzero(probabilities == kth)[:k - len(above)]
    selected = np.concatenate([above, tied])
    order = np.lexsort((selected, -probabilities[selected]))
    return [int(i) for i in selected[order]]


def rank(tensor, labels: Sequence[str], top_k: int = 0) -> RankedResult:
    """Rank the labels of a single-row probability tensor.

    Args:
        tensor: [1, N] Tensor handle, torch tensor or array-like
        labels: N labels, index = class id
        top_k: number of alternatives to include; <= 0 omits them

    Raises:
        ShapeError: tensor is not [1, N] or N is 0
        LabelCountMismatchError: len(labels) != N
        InvalidProbabilityError: a probability is NaN or infinite
    """
    probabilities = _probability_row(tensor)
    if len(labels) != len(probabilities):
        raise LabelCountMismatchError(len(probabilities), len(labels))
    non_finite = np.flatnonzero(~np.isfinite(probabilities))
    if len(non_finite):
        raise InvalidProbabilityError(non_finite)

    label = labels[max_probability_index(probabilities)]
    if top_k <= 0:
        return RankedResult(label=label)

    alternatives = tuple(
        Alternative(labels[i], probabilities[i]) for i in top_k_indices(probabilities, top_k))
    return RankedResult(label=label, alternatives=alternatives)


class LabelRanker:
    """Binds a shared, immutable label list and an alternatives length."""

    def __init__(self, labels: Sequence[str], top_k: int = -1):
        self.labels = tuple(labels)
        self.top_k = top_k

    def rank(self, tensor) -> RankedResult:
        return rank(tensor, self.labels, self.top_k)
