"""
Process-wide holder of the serialized computation graph.

The graph is a TorchScript archive. It is loaded once at startup, kept in eval
mode with gradients disabled, shared read-only by every evaluation and
released once at shutdown.
"""

import io
import logging
import threading
from typing import Tuple

import torch

from graphlabel.errors import GraphLoadError, ResourceError, UseAfterClose
from graphlabel.shared.resources import read_bytes


logger = logging.getLogger(__name__)


class GraphStore:
    def __init__(self, module: torch.jit.ScriptModule, source: str = '<bytes>'):
        self._module = module
        self.source = source
        self._close_lock = threading.Lock()
        self._closed = False
        self._input_names = tuple(
            arg.name for arg in module.forward.schema.arguments if arg.name != 'self')

    @classmethod
    def load(cls, data: bytes, source: str = '<bytes>') -> 'GraphStore':
        """Parse a TorchScript archive from raw bytes.

        Raises:
            GraphLoadError: if the bytes are empty, truncated, corrupt or not TorchScript
        """
        if not data:
            raise GraphLoadError(f"Graph source {source} is empty")
        logger.info("Loading graph model (%s) ...", source)
        try:
            module = torch.jit.load(io.BytesIO(data), map_location='cpu')
        except (RuntimeError, ValueError, EOFError, OSError) as e:
            raise GraphLoadError(f"Failed to parse graph from {source}: {e}") from e
        module.eval()
        for p in module.parameters():
            p.requires_grad_(False)
        try:
            store = cls(module, source=source)
        except AttributeError as e:
            raise GraphLoadError(f"Graph from {source} has no forward method") from e
        logger.info("Graph ready to serve (inputs: %s)", list(store.input_names))
        return store

    @classmethod
    def from_location(cls, location) -> 'GraphStore':
        try:
            data = read_bytes(location)
        except ResourceError as e:
            raise GraphLoadError(f"Graph source unreachable: {e}") from e
        return cls.load(data, source=str(location))

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def graph(self) -> torch.jit.ScriptModule:
        if self._closed:
            raise UseAfterClose(f"Graph {self.source} has been closed")
        return self._module

    @property
    def input_names(self) -> Tuple[str, ...]:
        return self._input_names

    def close(self):
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            self._module = None
        logger.info("Closed graph %s", self.source)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self):
        state = 'closed' if self._closed else 'open'
        return f"GraphStore(source={self.source!r}, inputs={list(self._input_names)}, {state})"
