"""Serialize a RankedResult as a compact, key-sorted JSON object."""

import json

import numpy as np

from graphlabel.classification.ranker import RankedResult


def json_number(value):
    """Python number whose JSON text is the shortest form that round-trips `value`.

    float32 probabilities print as 0.98649305 rather than 0.9864930510520935.
    """
    if isinstance(value, np.floating):
        return float(np.format_float_positional(value, unique=True))
    if isinstance(value, np.integer):
        return int(value)
    return value


def format_result(result: RankedResult) -> str:
    data = result.to_dict()
    if 'alternatives' in data:
        data['alternatives'] = [{k: json_number(v) for k, v in alt.items()} for alt in data['alternatives']]
    return json.dumps(data, separators=(',', ':'), sort_keys=True, ensure_ascii=False, allow_nan=False)
