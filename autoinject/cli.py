#!/usr/bin/env python3
"""
Command-Line Interface for the auto-instrumentation injector.

This module exposes the injection engine for manifests on disk: it mutates
Pod and workload manifests the way the admission webhook would, lists the
known runtime profiles, and computes scrape target identities.

Usage:
    # Instrument the first container of every pod template in a manifest
    python3 -m autoinject inject deploy.yaml -i instrumentation.yaml

    # Instrument named containers, with extra runtime profiles
    python3 -m autoinject --runtimes-file runtimes.yaml inject deploy.yaml \\
        -i instrumentation.yaml -r java -c app -c worker -o out.yaml

    # Show runtime profiles
    python3 -m autoinject runtimes

    # Compute a target hash
    python3 -m autoinject target-hash --job node --url 10.0.0.1:9100 --label env=prod
"""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .allocator.target import new_item
from .instrumentation.config import ConfigValidationError, load_runtime_profiles
from .instrumentation.guard import InjectionError
from .instrumentation.models import InstrumentationDescriptor, Pod
from .instrumentation.mutator import inject_containers

# Status output goes to stderr, stdout is reserved for manifests
console = Console(stderr=True)

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    handlers=[RichHandler(console=console, rich_tracebacks=True, show_time=False)],
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"

WORKLOAD_KINDS = ["Deployment", "StatefulSet", "DaemonSet", "ReplicaSet", "Job"]


class CLIContext:
    """Context object for CLI commands."""

    def __init__(self):
        self.verbose = False
        self.runtimes_file: Optional[Path] = None


pass_context = click.make_pass_decorator(CLIContext, ensure=True)


def validate_labels(ctx, param, value):
    """Parse repeated key=value label options."""
    labels = {}
    for item in value or ():
        key, sep, val = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Invalid label '{item}'. Expected key=value")
        labels[key] = val
    return labels


def _pod_template(doc: dict[str, Any]) -> Optional[dict[str, Any]]:
    """Return the pod template carried by a workload manifest, if any."""
    kind = doc.get("kind")
    spec = doc.get("spec") or {}
    if kind in WORKLOAD_KINDS:
        return spec.get("template")
    if kind == "CronJob":
        return ((spec.get("jobTemplate") or {}).get("spec") or {}).get("template")
    return None


def _load_descriptor(path: Path, runtime: str) -> InstrumentationDescriptor:
    """Read an Instrumentation resource, or a bare {image, env} descriptor."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise click.BadParameter(
            f"Expected a mapping in {path}, got {type(data).__name__}",
            param_hint="--instrumentation",
        )
    if data.get("kind") == "Instrumentation" or "spec" in data:
        return InstrumentationDescriptor.from_instrumentation(data, runtime)
    return InstrumentationDescriptor.from_dict(data)


def process_documents(documents, descriptor, profile, names=None):
    """
    Instrument every Pod and pod template in ``documents``.

    Returns:
        Tuple of (documents, number of mutated containers)
    """
    out = []
    count = 0
    for doc in documents:
        if not isinstance(doc, dict):
            out.append(doc)
            continue

        if doc.get("kind") == "Pod":
            pod = Pod.from_dict(doc)
            count += len(inject_containers(descriptor, pod, names, profile))
            out.append(pod.to_dict())
            continue

        template = _pod_template(doc)
        if template is not None:
            pod = Pod.from_dict(template)
            count += len(inject_containers(descriptor, pod, names, profile))
            template.clear()
            template.update(pod.to_dict())
        out.append(doc)
    return out, count


@click.group()
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable verbose output"
)
@click.option(
    "--runtimes-file",
    type=click.Path(exists=True, path_type=Path),
    help="YAML file declaring additional runtime profiles"
)
@click.version_option(version=VERSION, prog_name="autoinject")
@pass_context
def cli(ctx: CLIContext, verbose: bool, runtimes_file: Optional[Path]):
    """
    Auto-instrumentation injector CLI.

    Inject instrumentation agents into pod manifests and inspect runtime profiles.
    """
    ctx.verbose = verbose
    ctx.runtimes_file = runtimes_file

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Verbose mode enabled")


@cli.command()
@click.argument("manifest", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--instrumentation", "-i",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Instrumentation resource or {image, env} descriptor"
)
@click.option(
    "--runtime", "-r",
    default="dotnet",
    help="Runtime profile to inject"
)
@click.option(
    "--container", "-c", "containers",
    multiple=True,
    help="Container to instrument (can be specified multiple times)"
)
@click.option(
    "--output", "-o",
    type=click.Path(path_type=Path),
    help="Output YAML file. Writes to stdout if not specified."
)
@pass_context
def inject(
    ctx: CLIContext,
    manifest: Path,
    instrumentation: Path,
    runtime: str,
    containers: tuple,
    output: Optional[Path],
):
    """
    Inject auto-instrumentation into Pod and workload manifests.

    Without --container, the container-names annotation of each pod is used,
    falling back to the first container.
    """
    try:
        profiles = load_runtime_profiles(ctx.runtimes_file)
        if runtime not in profiles:
            raise click.BadParameter(
                f"Unknown runtime '{runtime}'. Must be one of: {', '.join(sorted(profiles))}",
                param_hint="--runtime",
            )

        descriptor = _load_descriptor(instrumentation, runtime)
        with open(manifest, "r", encoding="utf-8") as f:
            documents = list(yaml.safe_load_all(f))

        modified, count = process_documents(
            documents, descriptor, profiles[runtime], list(containers) or None
        )

        if output:
            with open(output, "w", encoding="utf-8") as out:
                yaml.dump_all(modified, out, sort_keys=False)
            console.print(f"Wrote [cyan]{output}[/cyan]")
        else:
            click.echo(yaml.dump_all(modified, sort_keys=False), nl=False)
        console.print(f"[bold green]Instrumented {count} container(s)[/bold green]")

    except click.BadParameter:
        raise
    except ConfigValidationError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}", style="red")
        for err in e.errors:
            console.print(f"  • {err}")
        sys.exit(1)
    except yaml.YAMLError as e:
        console.print(f"[bold red]YAML Error:[/bold red] {e}", style="red")
        sys.exit(1)
    except (InjectionError, KeyError, ValueError) as e:
        console.print(f"[bold red]Injection Error:[/bold red] {e}", style="red")
        if ctx.verbose:
            console.print_exception()
        sys.exit(1)


@cli.command()
@pass_context
def runtimes(ctx: CLIContext):
    """
    Display the registered runtime profiles and their rules.
    """
    try:
        profiles = load_runtime_profiles(ctx.runtimes_file)
    except ConfigValidationError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}", style="red")
        for err in e.errors:
            console.print(f"  • {err}")
        sys.exit(1)

    for profile in profiles.values():
        table = Table(
            title=f"{profile.name}: {profile.description or profile.home_marker}",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Variable", style="cyan")
        table.add_column("Value")
        table.add_column("Policy")

        for rule in profile.rules:
            marker = " [yellow](marker)[/yellow]" if rule.name == profile.home_marker else ""
            table.add_row(f"{rule.name}{marker}", rule.value, rule.policy.value)

        console.print(table)
        console.print(f"  Mount: [cyan]{profile.volume_name}[/cyan] at {profile.mount_path}")
        console.print(f"  Init container: [cyan]{profile.init_container_name}[/cyan] "
                      f"({' '.join(profile.init_command)})")


@cli.command("target-hash")
@click.option("--job", "job_name", required=True, help="Scrape job name")
@click.option("--url", "target_url", required=True, help="Target URL")
@click.option(
    "--label", "-l", "labels",
    multiple=True,
    callback=validate_labels,
    help="Target label as key=value (can be specified multiple times)"
)
@click.option("--collector", default="", help="Collector the target is assigned to")
def target_hash(job_name: str, target_url: str, labels: dict, collector: str):
    """
    Print the identity hash and link of a scrape target.
    """
    item = new_item(job_name, target_url, labels, collector)
    click.echo(item.hash())
    console.print(f"Link: [cyan]{item.link['_link']}[/cyan]")


def main():
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
