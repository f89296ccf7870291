import logging
from typing import Tuple

from graphlabel.errors import ResourceError
from graphlabel.shared.resources import read_text


logger = logging.getLogger(__name__)


def parse_labels(text: str) -> Tuple[str, ...]:
    """One label per line, line order = class index. A trailing newline adds no class."""
    lines = text.split('\n')
    if lines and lines[-1] == '':
        lines.pop()
    return tuple(line[:-1] if line.endswith('\r') else line for line in lines)


def load_labels(location) -> Tuple[str, ...]:
    labels = parse_labels(read_text(location, encoding='utf-8'))
    if not labels:
        raise ResourceError(f"Label list at {location} is empty")
    logger.info("Label vocabulary initialized: %d labels from %s", len(labels), location)
    return labels
