"""
Input and output converters for the inference processor.

An input converter turns an inbound Message into a feed map
(input node name -> value). An output converter turns the evaluated output
Tensor into the object placed on the outbound message. The variant is chosen
once, from configuration, when the processor is built.
"""

import io
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Sequence

from PIL import Image
from torchvision import transforms

from graphlabel.classification.formatter import format_result
from graphlabel.classification.ranker import LabelRanker
from graphlabel.errors import ConversionError
from graphlabel.evaluation.tensors import Tensor


logger = logging.getLogger(__name__)

INPUT_HEADER = 'INFERENCE_INPUT'

IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)


class InputConverter:
    def convert(self, message, context: Dict[str, Any]) -> Mapping:
        raise NotImplementedError


class OutputConverter:
    def convert(self, tensor: Tensor, context: Dict[str, Any]) -> Any:
        raise NotImplementedError


class MapInputConverter(InputConverter):
    """Pass a ready-made feed map through.

    Looks at the INFERENCE_INPUT header first, then at the payload, which may be
    a mapping or a JSON object string.
    """

    def convert(self, message, context):
        if INPUT_HEADER in message.headers:
            feeds = message.headers[INPUT_HEADER]
            if isinstance(feeds, Mapping):
                return feeds
            raise ConversionError(f"{INPUT_HEADER} header must be a mapping, got {type(feeds).__name__}")
        payload = message.payload
        if isinstance(payload, Mapping):
            return payload
        if isinstance(payload, (str, bytes)):
            try:
                feeds = json.loads(payload)
            except ValueError as e:
                raise ConversionError(f"Payload is not a JSON feed map: {e}") from e
            if isinstance(feeds, dict):
                return feeds
        raise ConversionError(f"Unsupported input format: {type(payload).__name__}")


class ImageInputConverter(InputConverter):
    """Decode an image payload into a normalized [1, 3, H, W] float tensor feed."""

    def __init__(self, input_name='input', image_size=224, mean=IMAGENET_MEAN, std=IMAGENET_STD):
        self.input_name = input_name
        self.transform = transforms.Compose([
            transforms.Resize((image_size, image_size)),
            transforms.ToTensor(),
            transforms.Normalize(mean=list(mean), std=list(std))
        ])

    def _open(self, payload):
        if isinstance(payload, (bytes, bytearray)):
            return Image.open(io.BytesIO(payload))
        if isinstance(payload, (str, Path)):
            return Image.open(payload)
        raise ConversionError(f"Unsupported image payload: {type(payload).__name__}")

    def convert(self, message, context):
        try:
            with self._open(message.payload) as img:
                x = self.transform(img.convert('RGB')).unsqueeze(0)
        except OSError as e:
            logger.warning("Could not decode image payload: %s", e)
            raise ConversionError(f"Could not decode image payload: {e}") from e
        context['image_shape'] = tuple(x.shape)
        return {self.input_name: x}


class TensorOutputConverter(OutputConverter):
    """Describe the raw output tensor as plain Python data."""

    def convert(self, tensor, context):
        return {
            'name': tensor.name,
            'type': str(tensor.dtype).replace('torch.', ''),
            'shape': list(tensor.shape),
            'value': tensor.tolist(),
        }


class LabelOutputConverter(OutputConverter):
    """Rank the [1, N] probabilities against the label list and emit the JSON result."""

    def __init__(self, labels: Sequence[str], alternatives_length: int = -1):
        self.ranker = LabelRanker(labels, alternatives_length)

    def convert(self, tensor, context):
        return format_result(self.ranker.rank(tensor))


def build_input_converter(config) -> InputConverter:
    if config.input_converter == 'map':
        return MapInputConverter()
    if config.input_converter == 'image':
        return ImageInputConverter(input_name=config.input_name, image_size=config.image_size)
    raise ValueError(f"Unknown input converter: {config.input_converter}")


def build_output_converter(config, labels=None) -> OutputConverter:
    if config.output_converter == 'tensor':
        return TensorOutputConverter()
    if config.output_converter == 'labels':
        if labels is None:
            raise ValueError("The 'labels' output converter needs a label list")
        return LabelOutputConverter(labels, config.alternatives_length)
    raise ValueError(f"Unknown output converter: {config.output_converter}")
