"""Tests for graphlabel/evaluation/graph_store.py"""
import pytest
import torch

from graphlabel.errors import GraphLoadError, UseAfterClose
from graphlabel.evaluation.graph_store import GraphStore
from graphlabel.evaluation.evaluator import evaluate


class TestGraphStoreLoad:

    def test_load_exposes_named_inputs(self, scale_graph_bytes):
        with GraphStore.load(scale_graph_bytes) as store:
            assert store.input_names == ('x', 'scale')

    def test_loaded_graph_is_in_eval_mode(self, softmax_store):
        assert softmax_store.graph.training is False

    def test_empty_bytes_raise_graph_load_error(self):
        with pytest.raises(GraphLoadError):
            GraphStore.load(b'')

    def test_garbage_bytes_raise_graph_load_error(self):
        with pytest.raises(GraphLoadError):
            GraphStore.load(b'definitely not a torchscript archive')

    def test_truncated_archive_raises_graph_load_error(self, softmax_graph_bytes):
        with pytest.raises(GraphLoadError):
            GraphStore.load(softmax_graph_bytes[:len(softmax_graph_bytes) // 2])

    def test_missing_location_raises_graph_load_error(self, tmp_path):
        with pytest.raises(GraphLoadError):
            GraphStore.from_location(tmp_path / 'missing.pt')

    def test_from_location_reads_file(self, tmp_path, softmax_graph_bytes):
        path = tmp_path / 'graph.pt'
        path.write_bytes(softmax_graph_bytes)

        with GraphStore.from_location(str(path)) as store:
            assert store.input_names == ('x',)
            assert store.source == str(path)


class TestGraphStoreClose:

    def test_graph_access_after_close_raises(self, softmax_graph_bytes):
        store = GraphStore.load(softmax_graph_bytes)
        store.close()

        assert store.closed
        with pytest.raises(UseAfterClose):
            store.graph

    def test_close_is_idempotent(self, softmax_graph_bytes):
        store = GraphStore.load(softmax_graph_bytes)
        store.close()
        store.close()

        assert store.closed

    def test_evaluate_after_close_raises(self, softmax_graph_bytes):
        store = GraphStore.load(softmax_graph_bytes)
        store.close()

        with pytest.raises(UseAfterClose):
            evaluate(store, {'x': torch.zeros(1, 3)}, 'output')


class TestInspectGraphTool:

    def test_describe_graph(self, tmp_path, scale_graph_bytes):
        from tools.inspect_graph import describe_graph

        path = tmp_path / 'scale.pt'
        path.write_bytes(scale_graph_bytes)

        info, code = describe_graph(str(path))

        assert info['inputs'] == ['x', 'scale']
        assert info['size_bytes'] == len(scale_graph_bytes)
        assert info['parameters'] == 0
        assert 'def forward' in code
