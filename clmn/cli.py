#!/usr/bin/env python3

import argparse
import csv
import os
import sys
import time
from typing import List, Optional

from . import __version__
from .compression import DEFAULT_CHUNK_SIZE, DEFAULT_LEVEL
from .errors import ClmnError, ColumnNotFound
from .reader import clmn_to_csv, read_clmn_file, read_clmn_header
from .schema import VERSION
from .writer import csv_to_clmn


PREVIEW_ROWS = 10


# ------------ Utility functions ------------

def clear_screen():
    # Simple clear for Windows / Unix
    os.system("cls" if os.name == "nt" else "clear")


def pause():
    input("\nPress Enter to continue...")


def print_banner():
    print("=" * 40)
    print("   CLMN Columnar File Format CLI")
    print("=" * 40)


def parse_column_list(raw: str) -> List[str]:
    return [c.strip() for c in raw.split(",") if c.strip()]


def print_preview(col_names, data, row_count, limit=PREVIEW_ROWS):
    shown = min(limit, row_count)
    print(f"\nFirst {shown} rows:")
    print(" | ".join(col_names))
    print("-" * 50)
    for i in range(shown):
        print(" | ".join(data[name][i] for name in col_names))
    if row_count > shown:
        print(f"... ({row_count - shown} more rows)")


def format_error(e: Exception) -> str:
    """One-line description of a failure, with whatever context the error carries."""
    if isinstance(e, ColumnNotFound):
        return (f"no column named {e.requested!r}; "
                f"this file has: {', '.join(e.available)}")
    if isinstance(e, ClmnError):
        where = []
        if e.column is not None:
            where.append(f"in column {e.column!r}")
        if e.row is not None:
            where.append(f"at row {e.row}")
        if e.offset is not None:
            where.append(f"(block at byte {e.offset})")
        kind = type(e).__name__
        return f"{kind}: {e.message}" + (" " + " ".join(where) if where else "")
    return str(e)


def first_difference(path1, path2) -> Optional[int]:
    """Index of the first CSV record that differs between two files, or None."""
    with open(path1, newline="", encoding="utf-8") as f1, \
            open(path2, newline="", encoding="utf-8") as f2:
        records1, records2 = csv.reader(f1), csv.reader(f2)
        index = 0
        while True:
            a, b = next(records1, None), next(records2, None)
            if a is None and b is None:
                return None
            if a != b:
                return index
            index += 1


def ask_existing_path(prompt: str) -> Optional[str]:
    path = input(prompt).strip()
    if not os.path.exists(path):
        print(f"❌ File not found: {path}")
        return None
    return path


# ------------ Menu actions ------------
# Each action returns normally; failures are reported, never raised to the menu.

MENU_ERRORS = (ClmnError, ValueError, OSError)


def action_csv_to_clmn():
    print("\n[CSV -> CLMN]")
    input_csv = ask_existing_path("Input CSV path: ")
    if input_csv is None:
        return
    output_clmn = input("Output .clmn path: ").strip()
    try:
        csv_to_clmn(input_csv, output_clmn)
    except MENU_ERRORS as e:
        print(f"❌ {format_error(e)}")
        return
    print("✅ Conversion completed.")


def action_clmn_to_csv():
    print("\n[CLMN -> CSV]")
    input_clmn = ask_existing_path("Input .clmn path: ")
    if input_clmn is None:
        return
    output_csv = input("Output CSV path: ").strip()
    columns = parse_column_list(input("Columns (comma-separated, blank for all): "))
    try:
        clmn_to_csv(input_clmn, output_csv, columns=columns or None)
    except MENU_ERRORS as e:
        print(f"❌ {format_error(e)}")
        return
    print("✅ Conversion completed.")


def action_show_schema():
    print("\n[Schema]")
    path = ask_existing_path(".clmn path: ")
    if path is None:
        return
    try:
        header = read_clmn_header(path)
    except MENU_ERRORS as e:
        print(f"❌ {format_error(e)}")
        return
    print(f"\nFile: {path}")
    print(header.describe())


def action_read_columns():
    print("\n[Selective read]")
    path = ask_existing_path(".clmn path: ")
    if path is None:
        return
    columns = parse_column_list(input("Columns (comma-separated): "))
    if not columns:
        print("❌ No columns given.")
        return
    try:
        col_names, data, row_count = read_clmn_file(path, columns=columns)
    except MENU_ERRORS as e:
        print(f"❌ {format_error(e)}")
        return
    print_preview(col_names, data, row_count, limit=5)


def action_roundtrip_test():
    print("\n[Round trip: CSV -> CLMN -> CSV]")
    input_csv = ask_existing_path("Input CSV path: ")
    if input_csv is None:
        return
    output_clmn = input("Intermediate .clmn path: ").strip()
    roundtrip_csv = input("Round-trip CSV path: ").strip()
    try:
        csv_to_clmn(input_csv, output_clmn)
        clmn_to_csv(output_clmn, roundtrip_csv)
        index = first_difference(input_csv, roundtrip_csv)
    except MENU_ERRORS as e:
        print(f"❌ {format_error(e)}")
        return
    if index is None:
        print("✅ Files match record for record.")
    else:
        # record 0 is the header; FLOAT64 values come back in shortest repr form
        print(f"❌ First difference at CSV record {index}.")


# ------------ Main loop ------------

def main_menu():
    actions = {
        "1": action_csv_to_clmn,
        "2": action_clmn_to_csv,
        "3": action_show_schema,
        "4": action_read_columns,
        "5": action_roundtrip_test,
    }
    while True:
        clear_screen()
        print_banner()
        print("1) CSV -> CLMN (.clmn)")
        print("2) CLMN (.clmn) -> CSV")
        print("3) Show file schema")
        print("4) Read specific columns")
        print("5) Round-trip test (CSV -> CLMN -> CSV)")
        print("0) Exit")
        choice = input("\nEnter your choice: ").strip()

        if choice == "0":
            print("\nGoodbye! 👋")
            break
        action = actions.get(choice)
        clear_screen()
        if action is None:
            print("\n❌ Invalid choice. Please try again.")
        else:
            action()
        pause()


# ------------ Subcommands ------------

def cmd_csv_to_custom(args) -> None:
    start = time.perf_counter()
    csv_to_clmn(args.input, args.output, level=args.level, workers=args.workers)
    print(f"\nConversion completed in {time.perf_counter() - start:.2f} seconds")


def cmd_custom_to_csv(args) -> None:
    start = time.perf_counter()
    columns = parse_column_list(args.columns) if args.columns else None
    clmn_to_csv(args.input, args.output, columns=columns,
                chunk_size=args.chunk_size, workers=args.workers)
    print(f"\nConversion completed in {time.perf_counter() - start:.2f} seconds")


def cmd_read(args) -> None:
    columns = parse_column_list(args.columns)
    if not columns:
        raise ValueError("--columns needs at least one column name")
    start = time.perf_counter()
    col_names, data, row_count = read_clmn_file(args.input, columns=columns,
                                                chunk_size=args.chunk_size,
                                                workers=args.workers)
    elapsed = time.perf_counter() - start
    print_preview(col_names, data, row_count, limit=args.limit)
    print(f"\nRead completed in {elapsed:.2f} seconds")


def cmd_schema(args) -> None:
    header = read_clmn_header(args.input)
    print(f"File: {args.input}")
    print(header.describe())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="clmn", description="CLMN columnar file format tools")
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {__version__} (format version {VERSION})")
    sub = parser.add_subparsers(dest="cmd")

    def add_read_options(p):
        p.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE,
                       help="decompression chunk size in bytes")
        p.add_argument("--workers", type=int, default=1, help="columns decoded in parallel")

    c1 = sub.add_parser("csv_to_custom", help="Convert CSV to CLMN format")
    c1.add_argument("input", help="Input CSV file")
    c1.add_argument("output", help="Output CLMN file")
    c1.add_argument("--level", type=int, default=DEFAULT_LEVEL, help="zlib compression level")
    c1.add_argument("--workers", type=int, default=1, help="columns encoded in parallel")
    c1.set_defaults(func=cmd_csv_to_custom)

    c2 = sub.add_parser("custom_to_csv", help="Convert CLMN to CSV")
    c2.add_argument("input", help="Input CLMN file")
    c2.add_argument("output", help="Output CSV file")
    c2.add_argument("--columns", help="Optional comma-separated subset of columns")
    add_read_options(c2)
    c2.set_defaults(func=cmd_custom_to_csv)

    c3 = sub.add_parser("read", help="Read specific columns from a CLMN file")
    c3.add_argument("input", help="Input CLMN file")
    c3.add_argument("--columns", required=True, help="Comma-separated column names")
    c3.add_argument("--limit", type=int, default=PREVIEW_ROWS, help="rows to preview")
    add_read_options(c3)
    c3.set_defaults(func=cmd_read)

    c4 = sub.add_parser("schema", help="Show the header of a CLMN file")
    c4.add_argument("input", help="Input CLMN file")
    c4.set_defaults(func=cmd_schema)

    c5 = sub.add_parser("menu", help="Interactive menu")
    c5.set_defaults(func=lambda args: main_menu())
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 0
    try:
        args.func(args)
    except (ClmnError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
