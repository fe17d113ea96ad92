"""CLI commands for the image resizer."""

import asyncio
import logging
import sys
from pathlib import Path

import click

from ngx_resizer.config import get_settings, registry_from_settings, set_config_path
from ngx_resizer.lib import observability
from ngx_resizer.lib.exceptions import ResizerError
from ngx_resizer.lib.fetcher import DimensionFetcher, url_extension
from ngx_resizer.lib.imaging import require_image_dimensions
from ngx_resizer.resizer import ImageResizer


@click.group()
@click.version_option(package_name="ngx-image-resizer")
@click.option(
    "-f",
    "--config-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file to use instead of app.yaml",
)
@click.option(
    "--log-level",
    default="warning",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Logging level",
)
def cli(config_file, log_level):
    """Resize images on the fly through an nginx image_filter proxy."""
    if config_file is not None:
        set_config_path(config_file)
    settings = get_settings()

    level = "DEBUG" if settings.debug else log_level.upper()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    observability.configure(settings)
    observability.instrument_httpx()


@cli.command()
@click.argument("source")
def dimensions(source):
    """Print the pixel dimensions of an image URL or local file."""
    path = Path(source)
    if path.is_file():
        try:
            width, height = require_image_dimensions(path.read_bytes(), url_extension(source))
        except ResizerError as exc:
            raise click.ClickException(str(exc))
    else:
        settings = get_settings()
        fetcher = DimensionFetcher(
            user_agent=settings.http.user_agent,
            max_range=settings.http.max_range,
            timeout=settings.http.timeout,
        )
        try:
            width, height = asyncio.run(fetcher.require(source))
        except ResizerError as exc:
            raise click.ClickException(str(exc))

    click.echo(f"{width}x{height}")


@cli.command()
@click.argument("image_url")
@click.option("--size", "size_name", default=None, help="Registered size name")
@click.option("--width", type=int, default=0, help="Target width in pixels")
@click.option("--height", type=int, default=0, help="Target height in pixels")
@click.option("--crop", is_flag=True, help="Crop to the exact box")
@click.option(
    "--original",
    default=None,
    metavar="WxH",
    help="Original dimensions, e.g. 1600x1200",
)
def url(image_url, size_name, width, height, crop, original):
    """Print the resizing proxy URL for an image."""
    resizer = ImageResizer.from_settings(get_settings())

    orig_size = None
    if original:
        try:
            orig_w, orig_h = (int(part) for part in original.lower().split("x", 1))
        except ValueError:
            raise click.BadParameter("expected WIDTHxHEIGHT", param_hint="--original")
        orig_size = (orig_w, orig_h)

    if size_name:
        resolved = resizer.get_resized_image_src(image_url, size_name, orig_size)
        if resolved is None:
            raise click.ClickException(f"Unknown image size '{size_name}'")
        click.echo(resolved.url)
        click.echo(f"{resolved.width or 0}x{resolved.height or 0}", err=True)
        return

    click.echo(resizer.builder.build(image_url, width, height, crop))


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
@click.option("--content-width", type=int, default=None, help="Theme content width")
def rewrite(source, content_width):
    """Rewrite the images in an HTML file (or stdin) to proxy URLs."""
    resizer = ImageResizer.from_settings(get_settings())
    sys.stdout.write(resizer.rewrite_content(source.read(), content_width))


@cli.command()
def sizes():
    """List the registered image sizes."""
    for name, definition in registry_from_settings(get_settings()).items():
        crop = "-"
        if definition.crop is not None:
            crop = f"{definition.crop.x},{definition.crop.y}"
        click.echo(
            f"{name:<16} {definition.width or 0:>5} x {definition.height or 0:<5} crop={crop}"
        )


if __name__ == "__main__":
    cli()
