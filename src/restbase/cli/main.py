"""Entry point for the `restbase` command and `python -m restbase`."""

import sys


def main(args: list[str] | None = None) -> int:
    """Main entry point for the restbase CLI."""
    if args is None:
        args = sys.argv[1:]

    if not args or args[0] in ["-h", "--help", "help"]:
        print_help()
        return 0

    command = args[0]

    if command == "version":
        print_version()
        return 0
    elif command == "config":
        return run_config(args[1:])
    elif command == "rankings":
        return run_rankings(args[1:])
    elif command == "watch":
        return run_watch(args[1:])
    else:
        print(f"Unknown command: {command}")
        print_help()
        return 1


def print_help() -> None:
    """Print CLI help message."""
    print(
        """restbase - client for PostgREST-style backends

Usage:
    restbase <command> [options]

Commands:
    version     Show version information
    config      Configuration management (validate, show, init)
    rankings    Print the top rankings
    watch       Print row changes of a table until interrupted
    help        Show this help message

Options:
    -h, --help  Show help message

Connection settings come from RESTBASE_URL and RESTBASE_ANON_KEY or a
YAML file passed with --config.
"""
    )


def print_version() -> None:
    """Print version information."""
    from restbase import __version__

    print(f"restbase {__version__}")


def run_config(args: list[str]) -> int:
    """Run the config command."""
    from restbase.cli.config import run_config_command

    return run_config_command(args)


def run_rankings(args: list[str]) -> int:
    """Run the rankings command."""
    import asyncio

    from restbase.cli.commands import run_rankings_command

    return asyncio.run(run_rankings_command(args))


def run_watch(args: list[str]) -> int:
    """Run the watch command."""
    import asyncio

    from restbase.cli.commands import run_watch_command

    try:
        return asyncio.run(run_watch_command(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
