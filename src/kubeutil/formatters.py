"""CLI output formatting helpers."""

import click

from .config import CONFIG_KEYS, KubeutilConfig


def print_config_sources(config: KubeutilConfig) -> None:
    """Print each config value with where it came from.

    Args:
        config: Loaded configuration
    """
    click.echo("kubeutil Configuration\n")
    width = max(len(key) for key in CONFIG_KEYS)
    for key in CONFIG_KEYS:
        value = getattr(config, key)
        shown = "-" if value is None else value
        click.echo(f"  {key:<{width}}  {shown}  ({config.get_source(key)})")
