"""`restbase config` subcommands: validate, show and init."""

import argparse
import json
from pathlib import Path

import yaml

from restbase.config import Config, ConfigError, load_config, validate_config

OUTPUT_FORMATS = ("yaml", "json")


def _shorten_key(config_dict: dict) -> dict:
    backend = dict(config_dict.get("backend", {}))
    if backend.get("anon_key"):
        backend["anon_key"] = backend["anon_key"][:6] + "..."
    return {**config_dict, "backend": backend}


def _render(config_dict: dict, output_format: str) -> str:
    if output_format == "json":
        return json.dumps(config_dict, indent=2, default=str)
    return yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=True)


def create_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="restbase config", description="Configuration management"
    )
    commands = parser.add_subparsers(dest="command")

    validate = commands.add_parser(
        "validate", help="Validate configuration (file and environment)"
    )
    validate.add_argument("file", nargs="?", help="YAML configuration file")

    show = commands.add_parser("show", help="Show the effective configuration")
    show.add_argument("file", nargs="?", help="YAML configuration file")
    show.add_argument(
        "--format", "-f", default="yaml", help="Output format: yaml or json"
    )

    init = commands.add_parser("init", help="Write a configuration template")
    init.add_argument(
        "--output", "-o", default="restbase.yaml", help="Destination file"
    )
    init.add_argument(
        "--force", action="store_true", help="Overwrite an existing file"
    )
    return parser


def config_validate_command(file: str | None) -> int:
    """Validate a configuration file merged with environment variables.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    config_path = Path(file) if file else None
    if config_path is not None and not config_path.exists():
        print(f"Error: Configuration file not found: {config_path}")
        return 1

    source = config_path or "environment variables"
    try:
        validate_config(load_config(config_path))
    except ConfigError as e:
        print(f"✗ Configuration from {source} failed validation: {e}")
        return 1

    print(f"✓ Configuration from {source} is valid")
    return 0


def config_show_command(file: str | None, output_format: str) -> int:
    """Print the effective configuration with the API key shortened.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if output_format not in OUTPUT_FORMATS:
        print(f"Error: Invalid format '{output_format}'. Use 'yaml' or 'json'")
        return 1

    try:
        config = load_config(Path(file) if file else None)
    except ConfigError as e:
        print(f"Error loading configuration: {e}")
        return 1

    print(_render(_shorten_key(config.model_dump()), output_format))
    return 0


def config_init_command(output: str, force: bool) -> int:
    """Write the default configuration to ``output``.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    output_path = Path(output)
    if output_path.exists() and not force:
        print(f"Error: {output_path} already exists (use --force to overwrite)")
        return 1

    output_path.write_text(_render(Config().model_dump(), "yaml"))
    print(f"✓ Configuration template written to {output_path}")
    return 0


def run_config_command(args: list[str]) -> int:
    """Dispatch a `restbase config` subcommand.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = create_config_parser()
    parsed = parser.parse_args(args)

    if parsed.command == "validate":
        return config_validate_command(parsed.file)
    if parsed.command == "show":
        return config_show_command(parsed.file, parsed.format)
    if parsed.command == "init":
        return config_init_command(parsed.output, parsed.force)

    parser.print_help()
    return 0
