"""
Single-input evaluation of the shared graph.

Each call opens its own ExecutionContext and its own feed tensors. Nothing is
pooled or reused across calls, and every feed tensor is closed before the call
returns or raises.
"""

import logging
from contextlib import ExitStack
from typing import Any, Mapping

import torch

from graphlabel.errors import FeedError, OutputIndexError, UnknownOutputError, UseAfterClose
from graphlabel.evaluation.graph_store import GraphStore
from graphlabel.evaluation.tensors import Tensor


logger = logging.getLogger(__name__)

# name under which a graph that returns a bare tensor or tuple exposes its result
DEFAULT_OUTPUT_NAME = 'output'


class ExecutionContext:
    """One evaluation's view of the graph. Not reusable, not shareable across threads."""

    def __init__(self, store: GraphStore):
        self._graph = store.graph
        self._grad_mode = None
        self._closed = False

    def __enter__(self):
        if self._closed:
            raise UseAfterClose("ExecutionContext cannot be reopened")
        self._grad_mode = torch.no_grad()
        self._grad_mode.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def run(self, feeds: Mapping[str, torch.Tensor]):
        if self._closed or self._grad_mode is None:
            raise UseAfterClose("ExecutionContext is not open")
        return self._graph(**feeds)

    def close(self):
        if self._closed:
            return
        self._closed = True
        if self._grad_mode is not None:
            self._grad_mode.__exit__(None, None, None)
        self._graph = None


def _fetch(result, output_name: str, output_index: int) -> torch.Tensor:
    outputs = result if isinstance(result, dict) else {DEFAULT_OUTPUT_NAME: result}
    if output_name not in outputs:
        raise UnknownOutputError(output_name, outputs.keys())
    fetched = outputs[output_name]
    if isinstance(fetched, torch.Tensor):
        fetched = [fetched]
    elif not isinstance(fetched, (list, tuple)):
        fetched = [torch.as_tensor(fetched)]
    if not 0 <= output_index < len(fetched):
        raise OutputIndexError(output_name, output_index, len(fetched))
    return torch.as_tensor(fetched[output_index])


class Evaluator:
    def __init__(self, store: GraphStore):
        self.store = store

    def evaluate(self, feeds: Mapping[str, Any], output_name: str = DEFAULT_OUTPUT_NAME,
                 output_index: int = 0) -> Tensor:
        """Run the graph once and return the selected output as a caller-owned Tensor.

        Args:
            feeds: input node name -> scalar, nested sequence, array or torch tensor
            output_name: output node to fetch
            output_index: element of the fetch result to return

        Raises:
            FeedError: a value cannot be materialized or names an input the graph lacks
            UnknownOutputError: the graph does not produce `output_name`
            OutputIndexError: `output_index` is outside the fetch result
            UseAfterClose: the graph store has been closed
        """
        input_names = self.store.input_names
        with ExecutionContext(self.store) as context:
            with ExitStack() as feed_scope:
                named = {}
                for name, value in feeds.items():
                    if name not in input_names:
                        raise FeedError(f"Graph has no input named '{name}' (inputs: {list(input_names)})")
                    tensor = feed_scope.enter_context(Tensor.create(value, name))
                    named[name] = tensor.data
                logger.debug("Evaluating %s with feeds %s", output_name, list(named))
                result = context.run(named)
                selected = _fetch(result, output_name, output_index)
                # copy so the output never aliases a feed buffer released above
                return Tensor(selected.detach().clone(), name=output_name)


def evaluate(store: GraphStore, feeds: Mapping[str, Any], output_name: str = DEFAULT_OUTPUT_NAME,
             output_index: int = 0) -> Tensor:
    return Evaluator(store).evaluate(feeds, output_name, output_index)
