"""ScamGuard operator CLI."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import click
import yaml

from src.abuse_control.identity import hash_identity
from src.abuse_control.policies import load_policies
from src.agents.extraction import DataPointExtractor
from src.agents.llm_client import LLMClient
from src.common.config import get_settings


@click.group()
def cli() -> None:
    """ScamGuard operator CLI."""


@cli.command()
@click.option("--config", type=click.Path(exists=True), default=None, help="YAML policy overrides.")
def policies(config: Optional[str]) -> None:
    """Print the effective abuse-control policy table."""
    path = config or get_settings().abuse_policy_file
    table = load_policies(path)
    click.echo(f"{'action':<16}{'limit':>7}{'window_s':>10}{'ban_after':>11}{'cooldown_s':>12}")
    for action, policy in table.items():
        cooldown = policy.cooldown_seconds if policy.cooldown_seconds is not None else "-"
        click.echo(
            f"{action.value:<16}{policy.limit:>7}{policy.window_seconds:>10}"
            f"{policy.ban_after:>11}{cooldown!s:>12}"
        )


@cli.command("validate-policies")
@click.option("--config", type=click.Path(exists=True), required=True)
def validate_policies(config: str) -> None:
    """Check a policy file; exits non-zero on the first problem."""
    try:
        load_policies(config)
    except (ValueError, TypeError, yaml.YAMLError) as exc:
        click.echo(f"[FAIL] {exc}", err=True)
        raise SystemExit(1) from exc
    click.echo(f"[OK] {config} is valid")


@cli.command()
@click.argument("address")
def identity(address: str) -> None:
    """Print the client identity token for ADDRESS."""
    click.echo(hash_identity(address))


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def extract(file: str) -> None:
    """Extract data points from a text FILE (AI when configured, regex otherwise)."""
    text = Path(file).read_text()
    result = asyncio.run(DataPointExtractor(LLMClient(get_settings())).extract(text))
    payload = result.model_dump(by_alias=True)
    payload["source"] = result.source
    click.echo(json.dumps(payload, indent=2))


if __name__ == "__main__":
    cli()
