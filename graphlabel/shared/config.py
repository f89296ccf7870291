"""
Processor settings.

Keys may be given flat (`output_name`), dotted from a nested YAML section
(`graph.output_name`) or in camelCase (`outputName`); all three map to the
same field.
"""

import re
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

from graphlabel.shared.config_manager import validate_config


INPUT_CONVERTERS = ['map', 'image']
OUTPUT_CONVERTERS = ['tensor', 'labels']

VALIDATION_RULES = {
    'output_index': {'min': 0},
    'image_size': {'min': 1},
    'workers': {'min': 1},
    'input_converter': {'choices': INPUT_CONVERTERS},
    'output_converter': {'choices': OUTPUT_CONVERTERS},
}

_CAMEL = re.compile(r'(?<=[a-z0-9])([A-Z])')


def normalize_key(key: str) -> str:
    key = key.rsplit('.', 1)[-1]
    return _CAMEL.sub(r'_\1', key).replace('-', '_').lower()


@dataclass
class ProcessorConfig:
    model_location: Optional[str] = None
    output_name: str = 'output'
    output_index: int = 0
    save_output_in_header: bool = False
    labels_location: Optional[str] = None
    # Number of top K alternatives to add to the result. Only used when > 0.
    alternatives_length: int = -1
    input_converter: str = 'map'
    output_converter: Optional[str] = None
    input_name: str = 'input'
    image_size: int = 224
    workers: int = 1

    def __post_init__(self):
        if self.output_converter is None:
            self.output_converter = 'labels' if self.labels_location else 'tensor'

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'ProcessorConfig':
        """Build and validate a config, ignoring unknown keys and None values."""
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in raw.items():
            name = normalize_key(key)
            if name in known and value is not None:
                values[name] = value
        config = cls(**values)
        config.validate()
        return config

    def validate(self):
        if not self.model_location:
            raise ValueError("model_location is required")
        validate_config(asdict(self), VALIDATION_RULES)
        if self.output_converter == 'labels' and not self.labels_location:
            raise ValueError("labels_location is required by the 'labels' output converter")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
