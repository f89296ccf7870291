"""Tests for the command line entry point in graphlabel/infer.py"""
import io
import json

import pytest
import yaml
from PIL import Image

from graphlabel.infer import collect_inputs, main


def write_png(path, color):
    buf = io.BytesIO()
    Image.new('RGB', (12, 12), color).save(buf, format='PNG')
    path.write_bytes(buf.getvalue())


@pytest.fixture
def workspace(tmp_path, image_graph_bytes):
    (tmp_path / 'graph.pt').write_bytes(image_graph_bytes)
    (tmp_path / 'labels.txt').write_text('red\ngreen\nblue\n', encoding='utf-8')
    images = tmp_path / 'images'
    images.mkdir()
    write_png(images / 'a_red.png', (255, 0, 0))
    write_png(images / 'b_blue.png', (0, 0, 255))
    (images / 'notes.txt').write_text('ignored')
    return tmp_path


def base_args(ws):
    return [
        '--model', str(ws / 'graph.pt'),
        '--labels', str(ws / 'labels.txt'),
        '--input-name', 'image',
        '--img-size', '8',
    ]


class TestCollectInputs:

    def test_folder_is_sorted_and_filtered(self, workspace):
        paths = collect_inputs(str(workspace / 'images'))

        assert [p.rsplit('/', 1)[-1] for p in paths] == ['a_red.png', 'b_blue.png']

    def test_single_file(self, workspace):
        assert collect_inputs(str(workspace / 'graph.pt')) == [str(workspace / 'graph.pt')]


class TestMain:

    def test_classifies_folder_and_writes_json_lines(self, workspace, capsys):
        out_path = workspace / 'results.jsonl'

        main(base_args(workspace) + ['--input', str(workspace / 'images'), '--topk', '2',
                                     '--workers', '2', '--output', str(out_path)])

        stdout = capsys.readouterr().out
        assert 'Processed 2 input(s), 0 failed' in stdout
        rows = [json.loads(line) for line in out_path.read_text(encoding='utf8').splitlines()]
        assert [r['result']['label'] for r in rows] == ['red', 'blue']
        assert len(rows[0]['result']['alternatives']) == 2

    def test_output_in_header_prints_same_result(self, workspace, capsys):
        main(base_args(workspace) + ['--input', str(workspace / 'images' / 'a_red.png'),
                                     '--save-output-in-header'])

        assert '{"label":"red"}' in capsys.readouterr().out

    def test_bad_image_sets_exit_code(self, workspace, capsys):
        (workspace / 'images' / 'c_broken.png').write_bytes(b'not a png')

        with pytest.raises(SystemExit) as exc_info:
            main(base_args(workspace) + ['--input', str(workspace / 'images')])

        assert exc_info.value.code == 1
        assert 'ConversionError' in capsys.readouterr().out

    def test_graph_failure_is_reported_per_input(self, workspace, picky_image_graph_bytes, capsys):
        """A graph that raises on one image fails that row only; the rest still get results."""
        (workspace / 'picky.pt').write_bytes(picky_image_graph_bytes)
        args = base_args(workspace)
        args[1] = str(workspace / 'picky.pt')

        with pytest.raises(SystemExit) as exc_info:
            main(args + ['--input', str(workspace / 'images'), '--workers', '2'])

        assert exc_info.value.code == 1
        stdout = capsys.readouterr().out
        assert '{"label":"red"}' in stdout
        assert '✗ ' + str(workspace / 'images' / 'b_blue.png') in stdout
        assert 'blue images are not supported' in stdout
        assert 'Processed 2 input(s), 1 failed' in stdout

    def test_missing_input_file_is_reported(self, workspace, capsys):
        missing = workspace / 'images' / 'missing.png'

        with pytest.raises(SystemExit) as exc_info:
            main(base_args(workspace) + ['--input', str(missing)])

        assert exc_info.value.code == 1
        stdout = capsys.readouterr().out
        assert f'✗ {missing}\tFileNotFoundError' in stdout

    def test_missing_model_exits_early(self, workspace, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(['--model', str(workspace / 'nope.pt'), '--input', str(workspace / 'images')])

        assert exc_info.value.code == 2

    def test_generates_yaml_template_and_uses_it(self, workspace, capsys):
        cfg = workspace / 'processor.yaml'

        main(['--args-input', str(cfg), '--no-wait', '--input', str(workspace / 'images')]
             + base_args(workspace))

        written = yaml.safe_load(cfg.read_text(encoding='utf8'))
        assert written['model_location'] == str(workspace / 'graph.pt')
        assert written['input_converter'] == 'image'

        capsys.readouterr()

        # second run reads everything from the YAML file
        main(['--args-input', str(cfg), '--input', str(workspace / 'images' / 'b_blue.png')])

        assert '{"label":"blue"}' in capsys.readouterr().out
