"""CLI module for inspecting profiles, tables, and resolved relations.

Usage:
    db-cascade profiles
    DB_CASCADE_PROFILE=local db-cascade inspect posts
    db-cascade inspect post_tags --profile local
    db-cascade relations myapp.models:Post --profile local

Commands:
    profiles   - List available profiles
    inspect    - Show columns, primary key, and foreign keys of a table
    relations  - Show how every relation of a record type resolves
"""

import argparse
import importlib
import sys

from rich.console import Console
from rich.table import Table

from db_cascade.config.loader import load_db_config
from db_cascade.exceptions import CascadeError
from db_cascade.factory import (
    ProfileNotFoundError,
    get_active_profile_name,
    get_database,
)
from db_cascade.records import Record
from db_cascade.relations.descriptors import RelationKind

console = Console()


def _load_record_type(target: str) -> type[Record]:
    """Import ``module:Class`` and check it is a ``Record`` subclass.

    Raises:
        ValueError: If the target is malformed or not a record type.
        ImportError: If the module cannot be imported.
    """
    module_name, _, class_name = target.partition(":")
    if not module_name or not class_name:
        raise ValueError(f"Expected 'module:Class', got '{target}'")

    module = importlib.import_module(module_name)
    record_type = getattr(module, class_name, None)
    if not isinstance(record_type, type) or not issubclass(record_type, Record):
        raise ValueError(f"'{target}' is not a Record subclass")
    return record_type


# ============================================================================
# Command implementations
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if db.toml is missing or invalid.
    """
    try:
        config = load_db_config()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        current = get_active_profile_name(config)
    except ProfileNotFoundError:
        current = None

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = active profile")

    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Show one table as the relation resolver sees it.

    Returns:
        0 on success, 1 if the profile or table cannot be found.
    """
    try:
        db = get_database(args.profile)
    except (FileNotFoundError, ValueError, ProfileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        schema = db.schema.get_table(args.table)
    except CascadeError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    finally:
        db.close()

    if schema is None:
        console.print(f"[red]Error: table '{args.table}' not found[/red]")
        return 1

    foreign_keys = schema.foreign_keys
    primary_key = set(schema.primary_key)

    table = Table(title=f"Table {schema.name}", show_header=True, header_style="bold")
    table.add_column("Column")
    table.add_column("Type")
    table.add_column("Nullable")
    table.add_column("Key")

    for column in schema.columns.values():
        key = ""
        if column.name in primary_key:
            key = "[bold]PK[/bold]"
        if column.name in foreign_keys:
            ref_table, ref_column = foreign_keys[column.name]
            key = f"{key} FK -> {ref_table}.{ref_column}".strip()
        table.add_row(
            column.name,
            column.data_type,
            "yes" if column.is_nullable else "no",
            key,
        )

    console.print(table)
    return 0


def cmd_relations(args: argparse.Namespace) -> int:
    """Resolve every relation of a record type against a live schema.

    Returns:
        0 if every relation resolves, 1 otherwise.
    """
    try:
        record_type = _load_record_type(args.record)
    except (ImportError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        db = get_database(args.profile)
    except (FileNotFoundError, ValueError, ProfileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    # Related types resolve through the base binding
    Record.bind(db)

    table = Table(
        title=f"Relations of {record_type.__name__} ({record_type.table_name})",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Relation")
    table.add_column("Kind")
    table.add_column("Target")
    table.add_column("Columns")

    failures = 0
    try:
        for name, relation in record_type.relations.items():
            target = relation.target if isinstance(relation.target, str) else relation.target.__name__
            try:
                if relation.kind is RelationKind.MANY_MANY:
                    junction = record_type.junction_map(name)
                    owner = ", ".join(f"{c} -> {pk}" for pk, c in junction.owner_map.items())
                    related = ", ".join(f"{c} -> {pk}" for pk, c in junction.related_map.items())
                    columns = f"{junction.table}: {owner} | {related}"
                else:
                    key_map = record_type.key_map(name)
                    columns = ", ".join(f"{fk} -> {pk}" for fk, pk in key_map.items())
            except CascadeError as e:
                failures += 1
                columns = f"[red]{e}[/red]"
            table.add_row(name, relation.kind.value, target, columns)
    finally:
        db.close()

    console.print(table)

    if failures:
        console.print(f"\n[bold red]x[/bold red] {failures} relation(s) failed to resolve")
        return 1
    console.print("\n[bold green]v[/bold green] All relations resolve")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-cascade",
        description="Inspect database profiles, tables, and record relations",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    # inspect command
    p_inspect = subparsers.add_parser(
        "inspect",
        help="Show columns, primary key, and foreign keys of a table",
    )
    p_inspect.add_argument("table", help="Table name")
    p_inspect.add_argument(
        "--profile",
        "-p",
        default=None,
        help="Profile to connect with (defaults to the active profile)",
    )
    p_inspect.set_defaults(func=cmd_inspect)

    # relations command
    p_relations = subparsers.add_parser(
        "relations",
        help="Show how every relation of a record type resolves",
    )
    p_relations.add_argument(
        "record",
        help="Record type as module:Class (e.g., myapp.models:Post)",
    )
    p_relations.add_argument(
        "--profile",
        "-p",
        default=None,
        help="Profile to connect with (defaults to the active profile)",
    )
    p_relations.set_defaults(func=cmd_relations)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
