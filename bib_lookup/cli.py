import click
import logging
import sys
from pathlib import Path

from .config import load_settings
from .database import BibDatabase, DatabaseLoadError
from .file_lookup import DatabaseFileLookup
from .unlinked import find_unlinked_files, move_files

# ANSI escape codes for colors
RESET = "\033[0m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
CYAN = "\033[96m"

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def _configure_logging(level_name, verbose):
    if verbose:
        level = logging.DEBUG
    else:
        level = logging.getLevelName(str(level_name).upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT, force=True)


def lookup_options(func):
    """Options shared by every command that builds a DatabaseFileLookup."""
    func = click.option('--verbose', '-v', is_flag=True, help='Enable debug logging.')(func)
    func = click.option('--no-bib-location', is_flag=True,
                        help="Don't resolve relative links against the .bib file's directory.")(func)
    func = click.option('--file-dir', 'file_dirs', multiple=True,
                        type=click.Path(file_okay=False),
                        help='Extra base directory for relative file links. Can be repeated.')(func)
    return func


def _build_lookup(bib_file, file_dirs, no_bib_location, verbose):
    """Loads settings and the database, then returns (database, lookup). Exits on load errors."""
    settings = load_settings()
    _configure_logging(settings.log_level, verbose)
    try:
        database = BibDatabase.from_file(bib_file)
    except DatabaseLoadError as e:
        click.echo(f"{RED}Error: {e}{RESET}", err=True)
        sys.exit(2)

    directories = database.file_directories(
        extra_dirs=[*settings.file_dirs, *(Path(d) for d in file_dirs)],
        use_bib_location=settings.use_bib_location and not no_bib_location,
    )
    lookup = DatabaseFileLookup(database, file_directories=directories, file_field=settings.file_field)
    return database, lookup


@click.group()
def cli():
    """Check which files on disk are attached to entries of a BibTeX database."""
    pass


@cli.command("check")
@click.argument('bib_file', type=click.Path(exists=True, dir_okay=False, readable=True))
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--show-entries', is_flag=True, help='Also print the keys of the entries each file is attached to.')
@lookup_options
def check_command(bib_file, files, show_entries, file_dirs, no_bib_location, verbose):
    """Reports whether each FILE is attached to an entry in BIB_FILE."""
    database, lookup = _build_lookup(bib_file, file_dirs, no_bib_location, verbose)

    all_linked = True
    for file_name in files:
        if show_entries:
            matches = lookup.find_entries(file_name)
            linked = bool(matches)
        else:
            matches = []
            linked = lookup.lookup_database(file_name)

        if linked:
            line = f"{GREEN}linked{RESET}      {file_name}"
            if matches:
                line += f" ({', '.join(entry.key for entry in matches)})"
            click.echo(line)
        else:
            all_linked = False
            click.echo(f"{YELLOW}not linked{RESET}  {file_name}")

    sys.exit(0 if all_linked else 1)


@cli.command("unlinked")
@click.argument('bib_file', type=click.Path(exists=True, dir_okay=False, readable=True))
@click.argument('directory', type=click.Path(exists=True, file_okay=False, readable=True))
@click.option('--ext', 'extensions', multiple=True, help='Only consider files with this extension (e.g. pdf). Can be repeated.')
@click.option('--no-recursive', is_flag=True, help='Do not descend into subdirectories.')
@click.option('--move-to', type=click.Path(file_okay=False, writable=True),
              help='Move the unlinked files into this directory.')
@lookup_options
def unlinked_command(bib_file, directory, extensions, no_recursive, move_to, file_dirs, no_bib_location, verbose):
    """Lists files in DIRECTORY that no entry in BIB_FILE has attached."""
    database, lookup = _build_lookup(bib_file, file_dirs, no_bib_location, verbose)
    click.echo(f"{CYAN}Loaded {len(database)} entries from {bib_file}.{RESET}")

    unlinked = find_unlinked_files(
        lookup,
        directory,
        extensions=extensions or None,
        recursive=not no_recursive,
        show_progress=sys.stderr.isatty(),
    )
    for file_path in unlinked:
        click.echo(str(file_path))
    click.echo(f"Found {len(unlinked)} unlinked file(s) in {directory}.")

    if move_to and unlinked:
        moved, failed = move_files(unlinked, move_to)
        click.echo(f"{GREEN}Moved {len(moved)} file(s) to {move_to}.{RESET}")
        for source, error in failed:
            click.echo(f"{RED}Error moving {source.name}: {error}{RESET}", err=True)


@cli.command("dirs")
@click.argument('bib_file', type=click.Path(exists=True, dir_okay=False, readable=True))
@lookup_options
def dirs_command(bib_file, file_dirs, no_bib_location, verbose):
    """Prints the directories relative links in BIB_FILE are resolved against."""
    _, lookup = _build_lookup(bib_file, file_dirs, no_bib_location, verbose)
    if not lookup.file_directories:
        click.echo(f"{YELLOW}No file directories configured.{RESET}")
        return
    for directory in lookup.file_directories:
        marker = "" if directory.is_dir() else f" {YELLOW}(missing){RESET}"
        click.echo(f"{directory}{marker}")


if __name__ == '__main__':
    cli()
