import os
import sys
import json
import argparse
import logging

from graphlabel.errors import InferenceError
from graphlabel.processor import OUTPUT_HEADER, InferenceProcessor, Message
from graphlabel.shared.config import INPUT_CONVERTERS, OUTPUT_CONVERTERS, ProcessorConfig
from graphlabel.shared.config_manager import (
    generate_yaml_template, load_yaml_config, merge_configs, print_config_summary, wait_for_user_edit,
)


IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.bmp')


def collect_inputs(path):
    if os.path.isdir(path):
        return [os.path.join(path, fname) for fname in sorted(os.listdir(path))
                if fname.lower().endswith(IMAGE_EXTENSIONS)]
    return [path]


def render_output(processor, out):
    result = out.headers[OUTPUT_HEADER] if processor.save_output_in_header else out.payload
    if not isinstance(result, str):
        result = json.dumps(result, separators=(',', ':'))
    return result


def classify_files(processor, paths, workers=1):
    """Run every file through the processor. Returns [(path, output, error message)] in input order."""
    rows = [None] * len(paths)
    readable, messages = [], []
    for i, path in enumerate(paths):
        try:
            with open(path, 'rb') as f:
                messages.append(Message(f.read(), {'source': path}))
            readable.append(i)
        except OSError as e:
            rows[i] = (path, None, f'{type(e).__name__}: {e}')

    outputs = processor.process_many(messages, workers=workers, return_exceptions=True)
    for i, out in zip(readable, outputs):
        if isinstance(out, Exception):
            rows[i] = (paths[i], None, f'{type(out).__name__}: {out}')
        else:
            rows[i] = (paths[i], render_output(processor, out), None)
    return rows


def build_parser():
    parser = argparse.ArgumentParser(description='Classify inputs with a serialized graph and a label list')

    # === YAML CONFIG OPTIONS ===
    parser.add_argument('--args-input', default=None, help='Path to YAML config file. If not exists, will generate template and pause for user to edit')
    parser.add_argument('--no-wait', action='store_true', help='Do not pause for user to edit generated YAML template (use defaults)')
    parser.add_argument('--regen-args', action='store_true', help='Force regeneration of YAML template even if file exists')

    parser.add_argument('--input', required=True, help='Image file or folder of images')
    parser.add_argument('--output', default=None, help='Optional JSON lines file collecting every result')

    # processor settings; None means "take it from YAML or the default"
    parser.add_argument('--model', dest='model_location', default=None, help='Graph location: path, file://, http(s):// or package://')
    parser.add_argument('--labels', dest='labels_location', default=None, help='Label list location, one label per line')
    parser.add_argument('--output-name', default=None, help='Graph output node to fetch')
    parser.add_argument('--output-index', type=int, default=None, help='Element of the fetch result to use')
    parser.add_argument('--topk', dest='alternatives_length', type=int, default=None, help='Number of alternatives to include (<= 0 disables)')
    parser.add_argument('--input-converter', choices=INPUT_CONVERTERS, default=None)
    parser.add_argument('--output-converter', choices=OUTPUT_CONVERTERS, default=None)
    parser.add_argument('--input-name', default=None, help='Graph input fed by the image converter')
    parser.add_argument('--img-size', dest='image_size', type=int, default=None)
    parser.add_argument('--save-output-in-header', action='store_true', default=None, help='Attach the result as a header instead of replacing the payload')
    parser.add_argument('--workers', type=int, default=None, help='Number of concurrent evaluation threads')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    return parser


def resolve_config(args):
    cli = {k: v for k, v in vars(args).items()
           if k not in ('args_input', 'no_wait', 'regen_args', 'input', 'output', 'verbose')}

    yaml_config = {}
    if args.args_input is not None:
        yaml_path = args.args_input

        if args.regen_args and os.path.exists(yaml_path):
            print(f'Regenerating YAML template at {yaml_path} due to --regen-args flag')
            os.remove(yaml_path)

        if not os.path.exists(yaml_path):
            print(f'YAML config file not found at {yaml_path}')
            print('Generating template with current defaults...')
            defaults = ProcessorConfig(input_converter='image').to_dict()
            # derived from labels_location when left unset
            defaults.pop('output_converter')
            generate_yaml_template(yaml_path, merge_configs(defaults, cli), header_comment='Inference Processor Configuration')
            if not args.no_wait:
                wait_for_user_edit(yaml_path)

        yaml_config = load_yaml_config(yaml_path)

    merged = merge_configs(yaml_config, cli)
    # files on disk are images unless told otherwise
    if merged.get('input_converter') is None:
        merged['input_converter'] = 'image'
    return ProcessorConfig.from_dict(merged)


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    try:
        config = resolve_config(args)
        print_config_summary(config.to_dict(), title='Inference Configuration')
        processor = InferenceProcessor.from_config(config)
    except (InferenceError, ValueError, FileNotFoundError) as e:
        print(f'✗ {e}')
        sys.exit(2)

    paths = collect_inputs(args.input)
    failures = 0
    with processor:
        rows = classify_files(processor, paths, workers=config.workers)

    out_f = open(args.output, 'w', encoding='utf8') if args.output else None
    try:
        for path, result, error in rows:
            if error is not None:
                failures += 1
                print(f'✗ {path}\t{error}')
                continue
            print(f'{path}\t{result}')
            if out_f is not None:
                out_f.write(json.dumps({'input': path, 'result': json.loads(result)}, ensure_ascii=False) + '\n')
    finally:
        if out_f is not None:
            out_f.close()

    print(f'Processed {len(rows)} input(s), {failures} failed')
    if args.output:
        print(f'Wrote results to {args.output}')
    if failures:
        sys.exit(1)


if __name__ == '__main__':
    main()
