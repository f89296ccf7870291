"""
Shared fixtures: tiny TorchScript graphs serialized to bytes in-process.

Every graph here is pure (same feeds -> same output), which the idempotence and
concurrency tests rely on.
"""
import io
from typing import Dict, List

import pytest
import torch
import torch.nn as nn

from graphlabel.evaluation.graph_store import GraphStore


class SoftmaxGraph(nn.Module):
    """logits [1, N] -> {'output': softmax}"""

    def forward(self, x: torch.Tensor) -> Dict[str, torch.Tensor]:
        return {'output': torch.softmax(x, dim=1)}


class ScaleGraph(nn.Module):
    """Two named inputs, one output node producing two elements."""

    def forward(self, x: torch.Tensor, scale: torch.Tensor) -> Dict[str, List[torch.Tensor]]:
        return {'output': [x * scale, x + scale], 'sum': [x.sum().reshape(1, 1)]}


class IdentityGraph(nn.Module):
    """Bare tensor result, exposed as the default output name."""

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x


class FailingGraph(nn.Module):
    """Fails at execution time for inputs with a negative sum."""

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if bool(x.sum() < 0):
            raise RuntimeError("negative input")
        return x


class ImageGraph(nn.Module):
    """[1, 3, H, W] image -> [1, 3] softmax over per-channel means."""

    def forward(self, image: torch.Tensor) -> Dict[str, torch.Tensor]:
        return {'output': torch.softmax(image.mean(dim=[2, 3]), dim=1)}


class PickyImageGraph(nn.Module):
    """Like ImageGraph, but fails at execution time on mostly-blue images."""

    def forward(self, image: torch.Tensor) -> Dict[str, torch.Tensor]:
        means = image.mean(dim=[2, 3])
        if bool(means[0, 2] > means[0, 0]):
            raise RuntimeError("blue images are not supported")
        return {'output': torch.softmax(means, dim=1)}


def serialize(module: nn.Module) -> bytes:
    buf = io.BytesIO()
    torch.jit.save(torch.jit.script(module), buf)
    return buf.getvalue()


@pytest.fixture(scope="session")
def softmax_graph_bytes():
    return serialize(SoftmaxGraph())


@pytest.fixture(scope="session")
def scale_graph_bytes():
    return serialize(ScaleGraph())


@pytest.fixture(scope="session")
def image_graph_bytes():
    return serialize(ImageGraph())


@pytest.fixture(scope="session")
def picky_image_graph_bytes():
    return serialize(PickyImageGraph())


@pytest.fixture
def softmax_store(softmax_graph_bytes):
    store = GraphStore.load(softmax_graph_bytes, source='softmax')
    yield store
    store.close()


@pytest.fixture
def scale_store(scale_graph_bytes):
    store = GraphStore.load(scale_graph_bytes, source='scale')
    yield store
    store.close()


@pytest.fixture
def identity_store():
    store = GraphStore.load(serialize(IdentityGraph()), source='identity')
    yield store
    store.close()


@pytest.fixture
def failing_store():
    store = GraphStore.load(serialize(FailingGraph()), source='failing')
    yield store
    store.close()


@pytest.fixture
def panda_labels():
    return ["giant panda", "badger", "ice bear"]


@pytest.fixture
def panda_tensor():
    return torch.tensor([[0.98649305, 0.010562794, 0.001130851]], dtype=torch.float32)
