"""
strand CLI.

Usage:
    strand                             # Reinstall every plugin in config.yaml
    strand sync                        # Same as above
    strand install PLUGIN [PLUGIN...]  # Install plugins without touching the rest
    strand list                        # Show configured plugins and their URLs
    strand config show                 # Show current config
    strand config set KEY VALUE        # Set a config value
    strand config get KEY              # Get a config value
    strand --config-location           # Print the config file path

Exit status: 0 if every plugin installed, 1 if any plugin failed, 2 if the
config is unusable or the plugin directory could not be prepared.
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from strand import __version__
from strand.config import (
    CONFIG_KEYS,
    Settings,
    _load_yaml_config,
    get_config_path,
    reload_settings,
    save_yaml_config,
)
from strand.core.installer import InstallCoordinator
from strand.core.resolver import resolve
from strand.lib.errors import DirectorySetupFailed, PluginParseError
from strand.lib.logger import setup_logging
from strand.models.plugin import InstallOutcome, parse_plugin

EXIT_OK = 0
EXIT_PLUGIN_FAILED = 1
EXIT_SETUP_FAILED = 2


# --- Helpers ---


def _load_settings() -> Settings:
    """Load settings or exit with a readable error."""
    config_file = get_config_path()
    try:
        return reload_settings()
    except ValidationError as e:
        if not config_file.exists():
            print(f"Error: no config file at {config_file}")
            print("Create one with at least 'plugin_dir' and 'plugins'.")
        else:
            print(f"Error: invalid config in {config_file}:")
            for err in e.errors():
                location = ".".join(str(part) for part in err["loc"]) or "config"
                print(f"  {location}: {err['msg']}")
        sys.exit(EXIT_SETUP_FAILED)


def _plugin_arg(text: str):
    """argparse type for plugin specs."""
    try:
        return parse_plugin(text)
    except (PluginParseError, ValidationError) as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _print_outcome(outcome: InstallOutcome) -> None:
    if outcome.ok:
        print(f"  ✓ Installed {outcome.dest_name}")
    else:
        print(f"  ✗ Failed {outcome.dest_name}: {outcome.reason}")


def _print_summary(outcomes: list[InstallOutcome]) -> int:
    """Print the report summary and return the exit status."""
    failed = [o for o in outcomes if not o.ok]
    installed = len(outcomes) - len(failed)

    print(f"\nInstalled {installed} of {len(outcomes)} plugins", end="")
    print(f" ({len(failed)} failed)" if failed else "")

    if failed:
        print("Run strand again to retry the failed plugins.")
        return EXIT_PLUGIN_FAILED
    return EXIT_OK


def _run_install(settings: Settings, specs: Sequence, clean: bool) -> int:
    coordinator = InstallCoordinator(
        concurrency=settings.concurrency,
        timeout=settings.timeout,
    )
    print(f"Installing {len(specs)} plugins into {settings.plugin_dir}")
    try:
        outcomes = asyncio.run(
            coordinator.install_all(
                specs,
                settings.plugin_dir,
                clean=clean,
                on_outcome=_print_outcome,
            )
        )
    except DirectorySetupFailed as e:
        print(f"Error: {e}")
        return EXIT_SETUP_FAILED
    return _print_summary(outcomes)


# --- Commands ---


def cmd_sync(args: argparse.Namespace) -> None:
    """Wipe the plugin directory and reinstall every configured plugin."""
    settings = _load_settings()
    _apply_log_settings(args, settings)

    if not settings.plugins:
        print(f"No plugins configured in {get_config_path()}")
    sys.exit(_run_install(settings, settings.plugins, clean=True))


def cmd_install(args: argparse.Namespace) -> None:
    """Install the given plugins into the plugin directory, keeping the rest."""
    settings = _load_settings()
    _apply_log_settings(args, settings)
    sys.exit(_run_install(settings, args.plugins, clean=False))


def cmd_list(args: argparse.Namespace) -> None:
    """List configured plugins with their destination and archive URL."""
    settings = _load_settings()

    if not settings.plugins:
        print(f"No plugins configured in {get_config_path()}")
        return

    print(f"Plugins ({len(settings.plugins)}) -> {settings.plugin_dir}")
    for spec in settings.plugins:
        resolved = resolve(spec)
        print(f"  {resolved.dest_name:<30} {spec}")
        print(f"    {resolved.archive_url}")


def cmd_config(args: argparse.Namespace) -> None:
    """Configuration management."""
    action = getattr(args, "action", None)
    if action is None or action == "show":
        _config_show()
    elif action == "set":
        _config_set(args.key, args.value)
    elif action == "get":
        _config_get(args.key)
    else:
        print("Usage: strand config {show|set|get}")


def _config_show() -> None:
    """Show config.yaml values, noting env overrides."""
    config = _load_yaml_config()

    print(f"\nConfig: {get_config_path()}")
    print("-" * 40)

    if not config:
        print("  (empty or missing)")
        return

    for key, value in config.items():
        if key == "plugins" and isinstance(value, list):
            print(f"  plugins: {len(value)} configured")
            continue
        env_key = f"STRAND_{key.upper()}"
        override = f" (overridden by env: {env_key})" if os.environ.get(env_key) else ""
        print(f"  {key}: {value}{override}")


def _config_set(key: str, value: str) -> None:
    """Set a scalar config value."""
    if key == "plugins":
        print("Error: edit the plugins list in the config file directly.")
        sys.exit(1)

    if key not in CONFIG_KEYS:
        print(f"Unknown key: {key}")
        print(f"Valid keys: {', '.join(sorted(CONFIG_KEYS - {'plugins'}))}")
        sys.exit(1)

    # Type conversion
    if key == "concurrency":
        try:
            value = int(value)
        except ValueError:
            print(f"Error: concurrency must be an integer, got '{value}'")
            sys.exit(1)
        if value < 1:
            print("Error: concurrency must be at least 1")
            sys.exit(1)
    elif key == "timeout":
        try:
            value = float(value)
        except ValueError:
            print(f"Error: timeout must be a number, got '{value}'")
            sys.exit(1)

    config = _load_yaml_config()
    config[key] = value
    config_file = save_yaml_config(config)
    print(f"Set {key} = {value} in {config_file}")


def _config_get(key: str) -> None:
    """Get a single config value."""
    env_val = os.environ.get(f"STRAND_{key.upper()}")
    if env_val:
        print(env_val)
        return

    config = _load_yaml_config()
    if key in config:
        print(config[key])
    else:
        print(f"Key '{key}' not set in config.yaml")
        sys.exit(1)


def _apply_log_settings(args: argparse.Namespace, settings: Settings) -> None:
    """Switch to the configured log level unless -v was given."""
    if not args.verbose:
        setup_logging(settings.log_level, settings.log_format)


# --- CLI entry point ---


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="strand",
        description="strand: declarative Vim/Neovim plugin installer",
    )
    parser.add_argument("--version", action="version", version=f"strand {__version__}")
    parser.add_argument(
        "--config", type=Path, metavar="PATH",
        help="Use this config file instead of the default location",
    )
    parser.add_argument(
        "--config-location", action="store_true",
        help="Print the config file location and exit",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Log progress of every plugin",
    )
    subparsers = parser.add_subparsers(dest="command")

    # sync
    subparsers.add_parser("sync", help="Reinstall every configured plugin (default)")

    # install
    install_parser = subparsers.add_parser(
        "install", help="Install plugins without clearing the plugin directory",
    )
    install_parser.add_argument(
        "plugins", nargs="+", type=_plugin_arg, metavar="PLUGIN",
        help="[provider@]owner/repo[:ref] or an archive URL",
    )

    # list
    subparsers.add_parser("list", help="List configured plugins")

    # config subcommand
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_sub = config_parser.add_subparsers(dest="action")
    config_sub.add_parser("show", help="Show current config")
    config_set_parser = config_sub.add_parser("set", help="Set a config value")
    config_set_parser.add_argument("key", help="Config key")
    config_set_parser.add_argument("value", help="Config value")
    config_get_parser = config_sub.add_parser("get", help="Get a config value")
    config_get_parser.add_argument("key", help="Config key")

    args = parser.parse_args(argv)

    if args.config is not None:
        os.environ["STRAND_CONFIG"] = str(args.config.expanduser())

    # Reading the config is not needed to show where it lives
    if args.config_location:
        print(get_config_path())
        return

    setup_logging("INFO" if args.verbose else "WARNING")

    if args.command in (None, "sync"):
        cmd_sync(args)
    elif args.command == "install":
        cmd_install(args)
    elif args.command == "list":
        cmd_list(args)
    elif args.command == "config":
        cmd_config(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
