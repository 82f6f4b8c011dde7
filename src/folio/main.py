# folio/main.py
import asyncio
import locale
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from . import config, database
from .config import RESOURCE_CLASSES
from .errors import FolioError


def setup_logging(log_file: str):
    """Sets up logging to a file for warnings and errors."""
    # Only messages of level WARNING and above will be logged.
    logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(levelname)s - %(message)s', filename=log_file, filemode='a')


def fail(message: str):
    """Reports a fatal error to the user and the log, then exits."""
    logging.error(message)
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


@click.group()
def cli():
    """Compile multimedia trees into containers and browse them."""
    setup_logging(config.load_config().log_file)
    try:
        # Name collation follows the user's LC_COLLATE
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logging.warning(f"Could not apply the user's collation locale, falling back to the C locale: {e}")


@cli.command(name="new")
@click.argument('db_path', type=click.Path(path_type=Path))
def new(db_path: Path):
    """Creates an empty tree store at DB_PATH."""
    if db_path.exists():
        fail(f"Database path '{db_path}' already exists")
    database.init_db(db_path, force_recreate=True)
    database.close_db()
    click.echo(f"Created tree store '{db_path}'.")


@cli.command(name="compile")
@click.argument('output_path', type=click.Path(path_type=Path))
@click.option('--db', 'db_path', type=click.Path(exists=True, dir_okay=False, path_type=Path), help='Tree store to compile. Defaults to database_path from folio.toml.')
@click.option('--max-depth', type=click.IntRange(min=1), help='Maximum trail depth before a cycle is assumed.')
def compile_container(output_path: Path, db_path: Optional[Path], max_depth: Optional[int]):
    """Compiles the tree store into the container OUTPUT_PATH."""
    from .compiler import Compiler

    if output_path.exists():
        fail(f"File '{output_path}' already exists")

    database.init_db(db_path, force_recreate=True)
    compiler = Compiler(output_path, max_depth=max_depth)
    try:
        stats = compiler.run()
    except FolioError as e:
        fail(f"Compilation failed, no container written: {e}")
    finally:
        database.close_db()
    click.echo(
        f"Compilation complete: {stats.nodes} nodes, {stats.files} file entries and "
        f"{stats.binaries} binaries written to '{output_path}'."
    )


async def show_directory(container_path: Path, index: int, sort_id: str, limit: int, classes: Tuple[str, ...], handle_dir: Optional[str]):
    from .container import ContainerReader
    from .handles import TempFileHandles
    from .view import DirectoryView

    reader = ContainerReader(container_path)
    await reader.init()
    handles = TempFileHandles(handle_dir)
    try:
        async with DirectoryView(reader, handles, classes) as view:
            await view.load(index)
            await view.load_files(sort_id, limit)

            trail = " / ".join(view.trail_item(i).name for i in range(view.trail_length()))
            click.echo(click.style(trail, bold=True))

            if view.folder_count() == 0:
                click.echo("No subfolders")
            for i in range(view.folder_count()):
                folder = view.folder_item(i)
                click.echo(f"  [{folder.index:>6}] {folder.name}/")

            for i in range(view.file_count()):
                entry = view.file_item(i)
                thumb = view.handle_for(entry.tbin)
                click.echo(f"  {entry.rtime}  {entry.rname}  ({entry.rmime}, object {entry.rbin})")
                if entry.desc:
                    click.echo(f"      {entry.desc}")
                if thumb is not None:
                    click.echo(f"      thumbnail: {thumb.path}")
            if not view.has_all_files():
                click.echo(click.style(f"Showing the first {view.file_count()} files; raise --limit to see more.", fg="yellow"))
    finally:
        handles.shutdown()


@cli.command(name="show")
@click.argument('container_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--dir', 'index', default=0, type=click.IntRange(min=0), help='Object index of the directory to show. The root is 0.')
@click.option('--sort', 'sort_id', default='name_asc', type=click.Choice(['name_asc', 'name_desc', 'date_asc', 'date_desc']), help='File order.')
@click.option('--limit', type=click.IntRange(min=1), help='Maximum number of files to fetch. Defaults to page_size from folio.toml.')
@click.option('--classes', multiple=True, type=click.Choice(RESOURCE_CLASSES), help='Resource class to show. Can be used multiple times.')
def show(container_path: Path, index: int, sort_id: str, limit: Optional[int], classes: Tuple[str, ...]):
    """Shows one directory of the container CONTAINER_PATH."""
    app_config = config.load_config()
    try:
        asyncio.run(show_directory(
            container_path,
            index,
            sort_id,
            limit or app_config.page_size,
            classes or tuple(app_config.supported_classes),
            app_config.handle_dir,
        ))
    except (FolioError, ValueError) as e:
        fail(str(e))


@cli.command(name="summary")
@click.option('--db', 'db_path', type=click.Path(exists=True, dir_okay=False, path_type=Path), help='Tree store to summarize. Defaults to database_path from folio.toml.')
def summary(db_path: Optional[Path]):
    """Shows a summary of the tree store contents."""
    from .reporter import Reporter
    database.init_db(db_path, force_recreate=True)
    try:
        Reporter().summary()
    finally:
        database.close_db()


if __name__ == "__main__":
    cli()
