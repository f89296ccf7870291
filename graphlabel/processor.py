"""
Inference processor: input conversion -> evaluation -> output conversion -> placement.

One InferenceProcessor is built at startup and shared by every worker thread.
The graph and label list are read-only; every call gets its own context dict,
execution context and tensors.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional

from graphlabel.classification.labels import load_labels
from graphlabel.converters import (
    InputConverter, MapInputConverter, OutputConverter, TensorOutputConverter,
    build_input_converter, build_output_converter,
)
from graphlabel.evaluation.evaluator import DEFAULT_OUTPUT_NAME, Evaluator
from graphlabel.evaluation.graph_store import GraphStore
from graphlabel.shared.config import ProcessorConfig


logger = logging.getLogger(__name__)

OUTPUT_HEADER = 'INFERENCE_OUTPUT'


@dataclass(frozen=True)
class Message:
    payload: Any
    headers: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'headers', MappingProxyType(dict(self.headers)))


class InferenceProcessor:
    def __init__(self, store: GraphStore, output_name: str = DEFAULT_OUTPUT_NAME, output_index: int = 0,
                 input_converter: Optional[InputConverter] = None,
                 output_converter: Optional[OutputConverter] = None,
                 save_output_in_header: bool = False):
        self.store = store
        self.evaluator = Evaluator(store)
        self.output_name = output_name
        self.output_index = output_index
        self.input_converter = input_converter or MapInputConverter()
        self.output_converter = output_converter or TensorOutputConverter()
        self.save_output_in_header = save_output_in_header

    @classmethod
    def from_config(cls, config: ProcessorConfig) -> 'InferenceProcessor':
        """Load the graph (and labels, when the output converter needs them) and wire the converters."""
        labels = load_labels(config.labels_location) if config.output_converter == 'labels' else None
        input_converter = build_input_converter(config)
        output_converter = build_output_converter(config, labels)
        store = GraphStore.from_location(config.model_location)
        return cls(
            store,
            output_name=config.output_name,
            output_index=config.output_index,
            input_converter=input_converter,
            output_converter=output_converter,
            save_output_in_header=config.save_output_in_header,
        )

    def process(self, message: Message) -> Message:
        context = {}
        feeds = self.input_converter.convert(message, context)
        with self.evaluator.evaluate(feeds, self.output_name, self.output_index) as output:
            result = self.output_converter.convert(output, context)

        if self.save_output_in_header:
            headers = dict(message.headers)
            headers.setdefault(OUTPUT_HEADER, result)
            return Message(message.payload, headers)
        return Message(result, message.headers)

    def _process_or_error(self, message: Message):
        try:
            return self.process(message)
        except Exception as e:
            logger.warning("Processing %s failed: %s: %s", dict(message.headers), type(e).__name__, e)
            return e

    def process_many(self, messages: Iterable[Message], workers: int = 1,
                     return_exceptions: bool = False) -> List[Any]:
        """Process messages on a thread pool; results keep input order.

        By default the first failure propagates. With return_exceptions=True every
        message is processed and a failed one yields its exception in place of a Message.
        """
        messages = list(messages)
        fn = self._process_or_error if return_exceptions else self.process
        if workers <= 1:
            return [fn(m) for m in messages]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(fn, messages))

    def close(self):
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
