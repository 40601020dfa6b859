"""
CLI for Banana Studio.
"""

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from banana_studio import __version__
from banana_studio.config import BACKENDS, Config, GLOBAL_CONFIG_FILE
from banana_studio.errors import GenerationError
from banana_studio.generators.adapter import GenerationAdapter
from banana_studio.models import BinaryImage, FitAnalysis, GenerationResult

console = Console()

backend_option = click.option(
    "--backend",
    type=click.Choice(list(BACKENDS)),
    default=None,
    help="Generation backend (default: from config)",
)
deadline_option = click.option(
    "--deadline",
    type=float,
    default=None,
    help="Give up after this many seconds, retries included",
)
out_option = click.option(
    "--out",
    "-o",
    type=click.Path(dir_okay=False),
    default=None,
    help="Output image path (default: <output_dir>/<operation>-<timestamp>)",
)
image_argument = click.Path(exists=True, dir_okay=False)


def build_adapter(config: Config, backend: Optional[str]) -> GenerationAdapter:
    return GenerationAdapter.from_config(config, backend=backend)


async def _with_deadline(call: Awaitable[GenerationResult], deadline: Optional[float]) -> GenerationResult:
    if deadline is None:
        return await call
    return await asyncio.wait_for(call, timeout=deadline)


def _run_operation(
    backend: Optional[str],
    deadline: Optional[float],
    description: str,
    call: Callable[[GenerationAdapter], Awaitable[GenerationResult]],
) -> tuple[Config, GenerationResult]:
    """Validate config, run one adapter call and exit(1) on failure."""
    config = Config.load()
    backend = backend or config.defaults.backend

    issues = config.validate(backend)
    if issues:
        console.print("[red]Configuration issues:[/red]")
        for issue in issues:
            console.print(f"  - {issue}")
        sys.exit(1)

    try:
        adapter = build_adapter(config, backend)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"{description} with {backend}...", total=None)
            result = asyncio.run(_with_deadline(call(adapter), deadline))
    except asyncio.TimeoutError:
        console.print(f"[red]Generation timed out after {deadline:g}s[/red]")
        sys.exit(1)
    except GenerationError as e:
        console.print(f"[red]Generation failed:[/red] {e}")
        sys.exit(1)

    return config, result


def _output_path(config: Config, out: Optional[str], operation: str, image: BinaryImage) -> Path:
    if out:
        return Path(out)
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    return Path(config.defaults.output_dir) / f"{operation}-{stamp}{image.extension}"


def _save_image(config: Config, result: GenerationResult, out: Optional[str], operation: str) -> Optional[Path]:
    if result.image is None:
        console.print("[yellow]The model returned no image.[/yellow]")
        return None
    path = result.image.save(_output_path(config, out, operation, result.image))
    console.print(f"[green]Image saved:[/green] {path}")
    if result.source_url:
        console.print(f"[dim]Source: {result.source_url}[/dim]")
    return path


def _analysis_table(analysis: FitAnalysis) -> Table:
    table = Table(title="Fit Check", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Score", f"{analysis.score:g}/10")
    table.add_row("Color", analysis.color_feedback)
    table.add_row("Size", analysis.size_feedback)
    table.add_row("Occasion", analysis.occasion)
    table.add_row("Suggestions", analysis.suggestions)
    return table


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging (requests, retries)")
def main(verbose: bool):
    """Banana Studio - generate, restyle, fuse and fit-check images."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@main.command("setup-keys")
@click.option("--google", "google_key", help="Google / Gemini API key")
@click.option("--pollinations", "pollinations_key", help="Pollinations API key")
@backend_option
def setup_keys(google_key: str, pollinations_key: str, backend: str):
    """Configure API keys and the default backend."""
    # Environment overrides are not written back to the file
    cfg = Config.load(merge_env=False)

    if google_key:
        cfg.api_keys.google = google_key
    if pollinations_key:
        cfg.api_keys.pollinations = pollinations_key
    if backend:
        cfg.defaults.backend = backend

    cfg.save()

    console.print(f"[green]Configuration saved to {GLOBAL_CONFIG_FILE}[/green]")
    _print_key_status(cfg)


@main.command("check-keys")
@backend_option
def check_keys(backend: str):
    """Check API key configuration status."""
    cfg = Config.load()
    issues = cfg.validate(backend)

    _print_key_status(cfg)

    if issues:
        console.print("\n[red]Missing required keys:[/red]")
        for issue in issues:
            console.print(f"  - {issue}")
        sys.exit(1)
    else:
        console.print(f"\n[green]Ready to generate with {backend or cfg.defaults.backend}![/green]")


def _print_key_status(cfg: Config) -> None:
    console.print("\n[bold]API Key Status:[/bold]")
    console.print(f"  Google/Gemini: {'[green]configured[/green]' if cfg.api_keys.google else '[red]missing[/red]'}")
    console.print(f"  Pollinations: {'[green]configured[/green]' if cfg.api_keys.pollinations else '[red]missing[/red]'}")
    console.print(f"  Default backend: [cyan]{cfg.defaults.backend}[/cyan]")


@main.command()
@click.argument("prompt", nargs=-1, required=True)
@click.option("--style", default="photorealistic", show_default=True, help="Visual style")
@click.option("--aspect", default="1:1", show_default=True, help="Aspect ratio, e.g. 16:9")
@out_option
@backend_option
@deadline_option
def generate(prompt: tuple, style: str, aspect: str, out: str, backend: str, deadline: float):
    """Generate an image from a text prompt."""
    prompt_text = " ".join(prompt)
    console.print(f"[bold]Generating:[/bold] {prompt_text}")

    config, result = _run_operation(
        backend, deadline, "Generating image",
        lambda adapter: adapter.generate_from_text(prompt_text, style, aspect),
    )
    _save_image(config, result, out, "generate")


@main.command()
@click.argument("image", type=image_argument)
@click.option("--style", required=True, help="Target style, e.g. 'oil painting'")
@click.option("--refine", "refine_prompt", default=None, help="Extra instructions for the transformation")
@out_option
@backend_option
@deadline_option
def transform(image: str, style: str, refine_prompt: str, out: str, backend: str, deadline: float):
    """Restyle an existing image."""
    source = BinaryImage.from_file(image)

    config, result = _run_operation(
        backend, deadline, "Transforming image",
        lambda adapter: adapter.transform_style(source, style, refine_prompt),
    )
    _save_image(config, result, out, "transform")


@main.command()
@click.argument("image_a", type=image_argument)
@click.argument("image_b", type=image_argument)
@out_option
@backend_option
@deadline_option
def fuse(image_a: str, image_b: str, out: str, backend: str, deadline: float):
    """Fuse the subject of IMAGE_A with the background of IMAGE_B."""
    first = BinaryImage.from_file(image_a)
    second = BinaryImage.from_file(image_b)

    config, result = _run_operation(
        backend, deadline, "Fusing images",
        lambda adapter: adapter.fuse_images(first, second),
    )
    _save_image(config, result, out, "fuse")


@main.command("fit-check")
@click.argument("person", type=image_argument)
@click.argument("outfit", type=image_argument)
@out_option
@click.option("--json", "json_output", is_flag=True, help="Output analysis as JSON")
@backend_option
@deadline_option
def fit_check(person: str, outfit: str, out: str, json_output: bool, backend: str, deadline: float):
    """Visualize OUTFIT on PERSON and rate the fit."""
    person_image = BinaryImage.from_file(person)
    outfit_image = BinaryImage.from_file(outfit)

    config, result = _run_operation(
        backend, deadline, "Running fit check",
        lambda adapter: adapter.run_fit_check(person_image, outfit_image),
    )

    if json_output:
        path = None
        if result.image is not None:
            path = result.image.save(_output_path(config, out, "fit-check", result.image))
        click.echo(json.dumps({
            "image_path": str(path) if path else None,
            "source_url": result.source_url,
            "analysis": result.analysis.to_dict() if result.analysis else None,
        }, indent=2))
        return

    _save_image(config, result, out, "fit-check")
    if result.analysis:
        console.print(_analysis_table(result.analysis))


if __name__ == "__main__":
    main()
