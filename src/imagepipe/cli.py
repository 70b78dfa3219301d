import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from typing_extensions import Annotated

from imagepipe import __version__
from imagepipe.config import get_settings
from imagepipe.core import ImagePipeline, log_generation
from imagepipe.errors import ImagePipeError
from imagepipe.models import (
    EditRequest,
    GenerationRequest,
    GenerationResult,
    VariationRequest,
)
from imagepipe.pricing import cost
from imagepipe.providers.openai_sdk_provider import OpenAISDKProvider
from imagepipe.utils import (
    generate_filename,
    get_image_extension,
    load_png_bytes,
    numbered_path,
    save_generated_image,
)
from imagepipe.validation import capabilities

app = typer.Typer(
    name="imagepipe",
    help="🎨 Generate, edit and vary images with DALL-E, with cost estimates.",
    add_completion=False,
)
console = Console()


def build_pipeline() -> ImagePipeline:
    config = get_settings()
    return ImagePipeline(OpenAISDKProvider(config), config)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def version_callback(value: bool):
    if value:
        console.print(f"imagepipe Version: [bold green]{__version__}[/bold green]")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
):
    pass


def _run(operation) -> GenerationResult:
    try:
        with console.status("[spinner]Processing...", spinner="dots"):
            result = asyncio.run(operation)
    except ImagePipeError as e:
        console.print(f"[bold red]Error ({e.kind}):[/bold red] {e.message}")
        if e.estimated_cost is not None:
            console.print(f"Estimated cost (not charged on failure): ${e.estimated_cost}")
        raise typer.Exit(code=1)
    log_generation(result)
    return result


def _report(result: GenerationResult, output: Optional[str], save: bool) -> None:
    output_dir = Path(get_settings().output_dir)
    total = len(result.images)
    for i, image in enumerate(result.images, start=1):
        lines = []
        if image.url:
            lines.append(f"URL: [blue]{image.url}[/blue]")
        elif image.b64_json:
            lines.append("Received base64 image data.")
        if image.revised_prompt:
            lines.append(f"Revised prompt: {image.revised_prompt}")

        if output or save:
            if output:
                target = numbered_path(Path(output), i, total)
            else:
                target = output_dir / generate_filename(
                    result.original_prompt or None,
                    index=i if total > 1 else None,
                )
            saved = asyncio.run(save_generated_image(image, target))
            if saved:
                lines.append(f"Saved to: [green]{saved}[/green]")
            else:
                lines.append(f"[red]Failed to save image to {target}[/red]")

        console.print(
            Panel(
                "\n".join(lines) or "No image data returned.",
                title=f"[bold green]Image {i} ✨[/bold green]",
                expand=False,
            )
        )
    if result.effective_prompt and result.effective_prompt != result.original_prompt:
        console.print(f'📜 Effective prompt: "{result.effective_prompt}"')
    console.print(f"💰 Estimated cost: [bold yellow]${result.estimated_cost}[/bold yellow]")


OutputOption = Annotated[
    Optional[str],
    typer.Option(
        "--output",
        "-o",
        help="Output filename (e.g., my_image.png). Numbered when several images are returned.",
    ),
]
SaveOption = Annotated[
    bool,
    typer.Option("--save", help="Save images to the configured output directory."),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", help="Log the request body sent to the API."),
]


@app.command()
def generate(
    prompt: Annotated[
        Optional[str],
        typer.Option(
            "--prompt",
            "-p",
            help="The text prompt for image generation. If not provided, you will be asked to enter it.",
            show_default=False,
        ),
    ] = None,
    model: Annotated[
        Optional[str], typer.Option(help="Model to use ('dall-e-3' or 'dall-e-2').")
    ] = None,
    size: Annotated[
        Optional[str],
        typer.Option(help="Image size (e.g., '1024x1024', '1792x1024'). Model-dependent."),
    ] = None,
    quality: Annotated[
        Optional[str], typer.Option(help="Image quality ('standard' or 'hd'). For DALL-E 3.")
    ] = None,
    style: Annotated[
        Optional[str], typer.Option(help="Image style ('vivid' or 'natural'). For DALL-E 3.")
    ] = None,
    n: Annotated[
        Optional[int],
        typer.Option("--num-images", "-n", min=1, help="Number of images (DALL-E 2 only)."),
    ] = None,
    response_format: Annotated[
        Optional[str], typer.Option(help="Response format ('url' or 'b64_json').")
    ] = None,
    enhance: Annotated[
        bool,
        typer.Option("--enhance/--no-enhance", help="Add quality qualifiers to the prompt."),
    ] = True,
    output: OutputOption = None,
    save: SaveOption = False,
    verbose: VerboseOption = False,
):
    configure_logging(verbose)
    if prompt is None:
        prompt = typer.prompt("Please enter the prompt for image generation")
    if output:
        output = str(Path(output).with_suffix(f".{get_image_extension(output)}"))

    request = GenerationRequest(
        prompt=prompt,
        model=model,
        size=size,
        quality=quality,
        style=style,
        n=n,
        enhance=enhance,
        response_format=response_format,
    )
    pipeline = build_pipeline()
    console.print(f"🖼️ Generating image with model: [bold cyan]{model or 'dall-e-3'}[/bold cyan]")
    console.print(f'📜 Prompt: "{prompt}"')
    result = _run(pipeline.generate(request, pipeline.config.credential))
    _report(result, output, save)


@app.command()
def edit(
    image: Annotated[Path, typer.Option("--image", "-i", exists=True, dir_okay=False, help="Image to edit.")],
    prompt: Annotated[str, typer.Option("--prompt", "-p", help="Description of the edited image.")],
    mask: Annotated[
        Optional[Path],
        typer.Option("--mask", exists=True, dir_okay=False, help="PNG mask; transparent areas are edited."),
    ] = None,
    size: Annotated[Optional[str], typer.Option(help="Output size (DALL-E 2 sizes).")] = None,
    n: Annotated[Optional[int], typer.Option("--num-images", "-n", min=1)] = None,
    model: Annotated[Optional[str], typer.Option(help="Model (only 'dall-e-2' supports edits).")] = None,
    output: OutputOption = None,
    save: SaveOption = False,
    verbose: VerboseOption = False,
):
    configure_logging(verbose)
    request = EditRequest(
        image=load_png_bytes(image),
        mask=load_png_bytes(mask) if mask else None,
        prompt=prompt,
        model=model,
        size=size,
        n=n,
    )
    pipeline = build_pipeline()
    result = _run(pipeline.edit(request, pipeline.config.credential))
    _report(result, output, save)


@app.command()
def variation(
    image: Annotated[Path, typer.Option("--image", "-i", exists=True, dir_okay=False, help="Source image.")],
    size: Annotated[Optional[str], typer.Option(help="Output size (DALL-E 2 sizes).")] = None,
    n: Annotated[Optional[int], typer.Option("--num-images", "-n", min=1)] = None,
    model: Annotated[Optional[str], typer.Option(help="Model (only 'dall-e-2' supports variations).")] = None,
    output: OutputOption = None,
    save: SaveOption = False,
    verbose: VerboseOption = False,
):
    configure_logging(verbose)
    request = VariationRequest(image=load_png_bytes(image), model=model, size=size, n=n)
    pipeline = build_pipeline()
    result = _run(pipeline.create_variation(request, pipeline.config.credential))
    _report(result, output, save)


@app.command(name="models")
def models_command():
    table = Table(title="⚙️ Supported Models")
    table.add_column("Model", style="cyan", no_wrap=True)
    table.add_column("Size", style="green")
    table.add_column("Quality", style="magenta")
    table.add_column("Price / image", style="yellow", justify="right")
    table.add_column("Max prompt", justify="right")
    table.add_column("Max images", justify="right")
    for capability in capabilities():
        for quality in capability.qualities:
            for size in capability.sizes:
                table.add_row(
                    capability.id,
                    size,
                    quality,
                    f"${cost(capability.id, quality, size)}",
                    str(capability.max_prompt_length),
                    str(capability.max_images),
                )
    console.print(table)


@app.command(name="config")
def config_command():
    config = get_settings()
    table = Table(title="⚙️ imagepipe Configuration")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="yellow")
    table.add_row("API Key Set", "✅ Set" if config.configured else "⚠️ Not Set")
    table.add_row(
        "Base URL", str(config.base_url) if config.base_url else "N/A (Official OpenAI)"
    )
    table.add_row("Request timeout", f"{config.request_timeout:g}s")
    table.add_row("Response format", config.default_response_format)
    table.add_row("Output directory", config.output_dir)
    console.print(table)


if __name__ == "__main__":
    app()
