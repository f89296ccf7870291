"""
Call-scoped tensor handles.

A Tensor wraps a torch.Tensor that belongs to exactly one evaluation. Handles
are counted from creation until close() so callers (and tests) can check that
an evaluation released everything it allocated.
"""

import threading
from typing import Any, Optional, Tuple

import numpy as np
import torch

from graphlabel.errors import FeedError, UseAfterClose


_live_lock = threading.Lock()
_live_count = 0


def live_tensor_count() -> int:
    """Number of Tensor handles created and not yet closed in this process."""
    with _live_lock:
        return _live_count


def _acquire():
    global _live_count
    with _live_lock:
        _live_count += 1


def _release():
    global _live_count
    with _live_lock:
        _live_count -= 1


def _to_torch(value: Any, name: str) -> torch.Tensor:
    if isinstance(value, torch.Tensor):
        return value.detach().clone()
    if isinstance(value, (str, bytes)):
        raise FeedError(f"Unsupported feed value for '{name}': {type(value).__name__}")
    if isinstance(value, (np.ndarray, np.generic)):
        arr = np.asarray(value)
        if arr.dtype.kind not in 'biuf':
            raise FeedError(f"Unsupported feed value for '{name}': dtype {arr.dtype}")
        # copy so the evaluation never aliases the caller's buffer
        return torch.from_numpy(np.array(arr, copy=True))
    try:
        return torch.tensor(value)
    except (TypeError, ValueError, RuntimeError) as e:
        # ragged nesting, strings inside sequences, arbitrary objects
        raise FeedError(f"Cannot build a tensor for '{name}': {e}") from e


class Tensor:
    """A named numeric buffer that lives for one evaluation call."""

    def __init__(self, data: torch.Tensor, name: Optional[str] = None):
        self._data = data
        self.name = name
        self._closed = False
        _acquire()

    @classmethod
    def create(cls, value: Any, name: str) -> 'Tensor':
        """Materialize a feed tensor from a scalar, nested sequence, array or torch tensor."""
        return cls(_to_torch(value, name), name=name)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def data(self) -> torch.Tensor:
        if self._closed:
            raise UseAfterClose(f"Tensor '{self.name}' is closed")
        return self._data

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(self.data.shape)

    @property
    def ndim(self) -> int:
        return self.data.dim()

    @property
    def dtype(self):
        return self.data.dtype

    def numpy(self) -> np.ndarray:
        return self.data.cpu().numpy()

    def tolist(self):
        return self.data.tolist()

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._data = None
        _release()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self):
        if self._closed:
            return f"Tensor(name={self.name!r}, closed)"
        return f"Tensor(name={self.name!r}, shape={list(self._data.shape)}, dtype={self._data.dtype})"
