"""Click CLI commands for citymesh."""

import logging
import pathlib

import click
from tqdm import tqdm

from . import config as cfg_mod
from .builder import ModelGenerator
from .export import MeshExporter
from .models import BoundingBox, GenerationError
from .osm import load_overpass

logger = logging.getLogger(__name__)


def _bbox_options(func):
    for name in ('west', 'east', 'south', 'north'):
        func = click.option(f'--{name}', type=float, required=True,
                            help=f'{name.capitalize()} bound in degrees')(func)
    return func


def _generate(input_path, north, south, east, west, config_path, seed=None):
    config = cfg_mod.load_config(config_path)
    if seed is not None:
        config = config.model_copy(update={
            'global_': config.global_.model_copy(update={'seed': seed})})
    bbox = BoundingBox(north=north, south=south, east=east, west=west)
    elements = load_overpass(input_path)
    generator = ModelGenerator(config)
    result = generator.generate(tqdm(elements, desc='Generating', unit='el'), bbox)
    return result


def _run_export(events, desc):
    data = None
    with tqdm(desc=desc, unit='obj') as bar:
        for event in events:
            if event.stage == 'prepare':
                bar.total = event.total
                bar.update(1)
            if event.result is not None:
                data = event.result
    return data


@click.group()
@click.option('--log-level', default=None, help='Override CITYMESH_LOG_LEVEL')
def cli(log_level):
    """citymesh CLI for turning map elements into printable 3D models."""
    cfg_mod.configure_logging(log_level.upper() if log_level else None)


@cli.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@_bbox_options
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False),
              default=None, help='JSON model configuration')
@click.option('--format', 'fmt', type=click.Choice(['3mf', 'stl', 'both']),
              default='3mf', help='Output format')
@click.option('--output', '-o', default=None,
              help='Output path without extension (default: CITYMESH_OUTPUT_DIR/model)')
@click.option('--seed', type=int, default=None, help='Seed for trees and ripples')
@click.option('--binary-stl', is_flag=True, help='Write binary instead of ASCII STL')
@click.option('--no-weld', is_flag=True, help='Skip vertex welding')
def build(input_path, north, south, east, west, config_path, fmt, output, seed,
          binary_stl, no_weld):
    """Generate a model from an Overpass JSON file and export it."""
    try:
        result = _generate(input_path, north, south, east, west, config_path, seed)
        out = pathlib.Path(output) if output else cfg_mod.OUTPUT_DIR / 'model'
        out.parent.mkdir(parents=True, exist_ok=True)
        exporter = MeshExporter(weld=not no_weld)

        written = []
        if fmt in ('3mf', 'both'):
            path = out.with_suffix('.3mf')
            path.write_bytes(_run_export(exporter.iter_3mf(result.snapshot, name=out.stem),
                                         '3MF'))
            written.append(path)
        if fmt in ('stl', 'both'):
            path = out.with_suffix('.stl')
            path.write_bytes(_run_export(exporter.iter_stl(result.snapshot, name=out.stem,
                                                           binary=binary_stl), 'STL'))
            written.append(path)
    except (GenerationError, OSError, ValueError) as e:
        logger.error(f"Error building model: {e}")
        raise click.ClickException(str(e))

    snap = result.snapshot
    click.echo(f"\n{'=' * 50}")
    click.echo(f"{len(snap.records)} meshes, {snap.total_vertices:,} vertices, "
               f"{snap.total_triangles:,} triangles")
    for category, n in snap.counts.items():
        if n:
            click.echo(f"  {category.value:<12} {n}")
    if result.warning_count:
        click.echo(f"Warnings: {result.warning_count} (see log)")
    for path in written:
        click.echo(f"Wrote {path}")
    click.echo(f"{'=' * 50}")


@cli.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@_bbox_options
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False),
              default=None, help='JSON model configuration')
def stats(input_path, north, south, east, west, config_path):
    """Print per-category mesh counts without exporting."""
    try:
        result = _generate(input_path, north, south, east, west, config_path)
    except (GenerationError, OSError, ValueError) as e:
        logger.error(f"Error generating model: {e}")
        raise click.ClickException(str(e))
    for category, n in result.snapshot.counts.items():
        click.echo(f"{category.value}: {n}")
    click.echo(f"warnings: {result.warning_count}")


if __name__ == '__main__':
    cli()
