"""
YAML Configuration Manager for the inference processor

Provides utilities for:
- Generating a YAML config template with defaults grouped by concern
- Loading and validating YAML configs
- Merging YAML configs with CLI arguments (CLI takes priority)
- Interactive user editing workflow
"""

import sys
import yaml
from pathlib import Path
from typing import Any, Dict, Optional


# Section layout for the generated template. Keys missing from the config are skipped.
TEMPLATE_GROUPS = [
    ('MODEL GRAPH', ['model_location', 'output_name', 'output_index']),
    ('LABELS', ['labels_location', 'alternatives_length']),
    ('CONVERTERS', ['input_converter', 'output_converter', 'input_name', 'image_size']),
    ('OUTPUT PLACEMENT', ['save_output_in_header']),
    ('EXECUTION', ['workers']),
]


def _format_yaml_value(key: str, value: Any) -> str:
    if isinstance(value, str):
        # Quote strings that contain characters YAML would misread
        if ',' in value or ':' in value or value == '':
            return f'{key}: "{value}"\n'
        return f'{key}: {value}\n'
    if value is None:
        return f'{key}: null\n'
    if isinstance(value, bool):
        return f'{key}: {str(value).lower()}\n'
    return f'{key}: {value}\n'


def generate_yaml_template(output_path: str, config_dict: Dict[str, Any], header_comment: str = "Configuration File"):
    """Generate a YAML config file with section headers and current values.

    Args:
        output_path: Path to write YAML file
        config_dict: Flat dictionary of config parameters
        header_comment: Header comment for the YAML file
    """
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf8') as f:
        f.write(f"# {header_comment}\n")
        f.write("# Generated automatically - edit as needed\n")
        f.write("# \n")
        f.write("# CLI arguments override values in this file\n")
        f.write("# Use --no-wait to skip confirmation prompt\n")
        f.write("# Use --regen-args to regenerate this file from CLI args\n\n")

        written_keys = set()
        for section_name, keys in TEMPLATE_GROUPS:
            section_keys = [k for k in keys if k in config_dict]
            if not section_keys:
                continue
            f.write(f"# === {section_name} ===\n")
            for key in section_keys:
                f.write(_format_yaml_value(key, config_dict[key]))
                written_keys.add(key)
            f.write('\n')

        remaining_keys = [k for k in config_dict.keys() if k not in written_keys]
        if remaining_keys:
            f.write("# === OTHER SETTINGS ===\n")
            for key in remaining_keys:
                f.write(_format_yaml_value(key, config_dict[key]))

    print(f"✓ Generated config template: {output_path}")


def load_yaml_config(yaml_path: str) -> Dict[str, Any]:
    """Load YAML config file and return as dictionary.

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        yaml.YAMLError: If YAML is malformed
        ValueError: If the top level is not a mapping
    """
    path = Path(yaml_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")

    with open(path, 'r', encoding='utf8') as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ValueError(f"Config file {yaml_path} must contain a mapping, got {type(config).__name__}")

    print(f"✓ Loaded config from: {yaml_path}")
    return config


def flatten_dict(d: Dict[str, Any], parent_key: str = '', sep: str = '.') -> Dict[str, Any]:
    """Flatten nested dictionary into dot-notation keys.

    Example:
        {'tensorflow': {'output_name': 'output'}} -> {'tensorflow.output_name': 'output'}
    """
    items = []
    for k, v in d.items():
        new_key = f"{parent_key}{sep}{k}" if parent_key else k
        if isinstance(v, dict):
            items.extend(flatten_dict(v, new_key, sep=sep).items())
        else:
            items.append((new_key, v))
    return dict(items)


def merge_configs(yaml_config: Dict[str, Any], cli_args: Dict[str, Any]) -> Dict[str, Any]:
    """Merge YAML config with CLI arguments. CLI arguments take priority.

    CLI values of None mean "not given on the command line" and never override YAML.

    Example:
        >>> merge_configs({'output_name': 'softmax', 'workers': 2}, {'workers': 4, 'output_name': None})
        {'output_name': 'softmax', 'workers': 4}
    """
    flat_yaml = flatten_dict(yaml_config) if any(isinstance(v, dict) for v in yaml_config.values()) else yaml_config

    merged = dict(flat_yaml)
    for key, cli_value in cli_args.items():
        if cli_value is None:
            merged.setdefault(key, None)
        else:
            merged[key] = cli_value
    return merged


def wait_for_user_edit(config_path: str):
    """Wait for user to edit config file and confirm."""
    print(f"\n{'='*70}")
    print(f"Config file generated: {config_path}")
    print(f"{'='*70}")
    print("\nPlease review and edit the configuration file if needed.")
    print("Press Enter to continue with the current config, or Ctrl+C to cancel...")
    print(f"{'='*70}\n")

    try:
        input()
        print("✓ Continuing with configuration...\n")
    except KeyboardInterrupt:
        print("\n\n✗ Cancelled by user.")
        sys.exit(0)


def validate_param_range(value: Any, param_name: str, min_val: Optional[float] = None,
                         max_val: Optional[float] = None, choices: Optional[list] = None) -> bool:
    """Validate parameter is within acceptable range or choices.

    Raises:
        ValueError: If validation fails
    """
    if value is None:
        return True

    if choices is not None and value not in choices:
        raise ValueError(f"{param_name} must be one of {choices}, got: {value}")

    if min_val is not None and isinstance(value, (int, float)) and value < min_val:
        raise ValueError(f"{param_name} must be >= {min_val}, got: {value}")

    if max_val is not None and isinstance(value, (int, float)) and value > max_val:
        raise ValueError(f"{param_name} must be <= {max_val}, got: {value}")

    return True


def validate_config(config: Dict[str, Any], validation_rules: Dict[str, Dict[str, Any]]) -> bool:
    """Validate entire config against rules.

    Args:
        config: Flat config dictionary
        validation_rules: Dict mapping param names to validation rules
            Example: {'output_index': {'min': 0},
                     'input_converter': {'choices': ['map', 'image']}}
    """
    for param, rules in validation_rules.items():
        if param in config:
            validate_param_range(
                config[param],
                param,
                min_val=rules.get('min'),
                max_val=rules.get('max'),
                choices=rules.get('choices')
            )
    return True


def print_config_summary(config: Dict[str, Any], title: str = "Configuration Summary"):
    """Print formatted summary of configuration."""
    print(f"\n{'='*70}")
    print(f"{title}")
    print(f"{'='*70}")
    flat = flatten_dict(config) if any(isinstance(v, dict) for v in config.values()) else config
    for key, value in flat.items():
        print(f"  {key}: {value}")
    print(f"{'='*70}\n")
