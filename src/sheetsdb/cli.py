"""Command line interface to inspect xlsx workbooks as sheetsdb tables."""

import argparse
import json
import logging
import sys
from pathlib import Path

from sheetsdb import __version__, config, setup_logging
from sheetsdb.errors import SheetsDBError
from sheetsdb.row import Row
from sheetsdb.schema import build_row_type
from sheetsdb.session import Session
from sheetsdb.spreadsheet import Spreadsheet
from sheetsdb.worksheet import Worksheet

logger = logging.getLogger(__name__)


def process_common_options(args, raw_args):
    # set up logging
    loglevel = logging.INFO + (args.quieter - args.verboser) * 10
    logfile = args.logfile
    if logfile is None:
        setup_logging(loglevel)
    else:
        logfile.parents[0].mkdir(exist_ok=True, parents=True)
        setup_logging(loglevel, logfile)

    logger.info("Executing cmd: sheetsdb %s", " ".join(raw_args))
    logger.debug("Processing common options.")

    # load config
    if args.config is not None:
        if args.config.exists():
            config.load_config(config_file=Path(args.config))
        else:
            msg = "Config file not found at: %s"
            logger.error(msg, args.config)
            raise SheetsDBError(msg % args.config)

    if not args.WORKBOOK.is_file():
        msg = "File not found: %s"
        logger.error(msg, args.WORKBOOK)
        raise SheetsDBError(msg % args.WORKBOOK)


def open_spreadsheet(path: Path) -> Spreadsheet:
    session = Session.from_directory(path.parent)
    return Spreadsheet.find_by_id(path.name, session)


# === sub-commands ===


def columns_cmd(args):
    spreadsheet = open_spreadsheet(args.WORKBOOK)
    if args.sheet is None:
        raw_worksheets = spreadsheet.raw_resource.worksheets()
    else:
        raw_worksheets = [
            spreadsheet.find_child_raw_resource_by("worksheet", args.sheet)
        ]
    for raw_worksheet in raw_worksheets:
        table = Worksheet(spreadsheet, raw_worksheet, Row)
        print(f"{raw_worksheet.title} ({len(table)} rows)")
        for column in table.columns.values():
            print(f"  {column.column_position:>3}: {column.name}")


def dump_cmd(args):
    spreadsheet = open_spreadsheet(args.WORKBOOK)
    raw_worksheet = spreadsheet.find_child_raw_resource_by("worksheet", args.sheet)
    headers = Worksheet(spreadsheet, raw_worksheet, Row).column_names
    unknown = sorted(set(args.multiple) - set(headers))
    if unknown:
        msg = f'Unknown column(s) for --multiple: {", ".join(unknown)}'
        raise SheetsDBError(msg)
    row_type = build_row_type("DumpRow", headers, multiple=args.multiple)
    # only the columns of this sheet, not the inherited id
    names = [
        name
        for name, definition in row_type.schema.attributes.items()
        if definition.column_name in headers
    ]
    table = Worksheet(spreadsheet, raw_worksheet, row_type)
    count = 0
    for row in table:
        record = {name: getattr(row, name) for name in names}
        print(json.dumps(record, default=str, ensure_ascii=False))
        count += 1
    logger.debug('Dumped %i row(s) of "%s".', count, args.sheet)


# === parsers ===


def root_cmd(args):
    if args.version:  # pragma: no cover
        print(f"sheetsdb {__version__}")


def create_root_parser():
    parser = argparse.ArgumentParser(
        prog="sheetsdb",
        description="Inspect xlsx workbooks the way sheetsdb maps them to records.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-V",
        "--version",
        help="The version of sheetsdb.",
        action="store_true",
    )
    parser.set_defaults(func=root_cmd)
    return parser


def create_common_options_parser():
    parser = argparse.ArgumentParser(
        prog="sheetsdb",
        allow_abbrev=False,
        add_help=False,
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "-v",
        "--verbose",
        action="count",
        dest="verboser",
        default=0,
        help="More verbose output. Repeat to increase verbosity (-vv or -vvv).",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        dest="quieter",
        help="Less verbose output. Repeat to reduce verbosity (-qq or -qqq).",
    )
    parser.add_argument(
        "--config",
        help='Path to config file (typically "sheetsdb.toml").',
        type=Path,
        required=False,
    )
    parser.add_argument(
        "-l",
        "--logfile",
        help=(
            "Activate logging to a file at given path. "
            "The path will be created if it is not existing."
        ),
        type=Path,
    )
    return parser


def add_columns_subparser(subparsers, options):
    parser = subparsers.add_parser(
        "columns",
        description="List the header columns of each worksheet with their position.",
        help="List the columns of the worksheets.",
        **options,
    )
    parser.add_argument(
        "--sheet",
        help="Only list the columns of this worksheet.",
        metavar="NAME",
    )
    parser.add_argument("WORKBOOK", type=Path, help="The xlsx file to inspect.")
    parser.set_defaults(func=columns_cmd)


def add_dump_subparser(subparsers, options):
    parser = subparsers.add_parser(
        "dump",
        description=(
            "Print every data row of a worksheet as one JSON object per line. "
            "All columns are read as text."
        ),
        help="Print the rows of a worksheet as JSON lines.",
        **options,
    )
    parser.add_argument(
        "--sheet",
        help="The worksheet to dump.",
        metavar="NAME",
        required=True,
    )
    parser.add_argument(
        "--multiple",
        help="Header of a column holding comma-separated lists. Can be repeated.",
        metavar="HEADER",
        action="append",
        default=[],
    )
    parser.add_argument("WORKBOOK", type=Path, help="The xlsx file to read.")
    parser.set_defaults(func=dump_cmd)


def main_cli(raw_args=None):
    """Setup CLI app and run commands based on args."""
    parser = create_root_parser()

    subparsers = parser.add_subparsers(
        title="Subcommands",
        dest="subcommand",
        description="Get help for commands with sheetsdb COMMAND --help",
    )
    common_options_parser = create_common_options_parser()
    common_options = {"parents": [common_options_parser]}
    add_columns_subparser(subparsers, common_options)
    add_dump_subparser(subparsers, common_options)

    if not raw_args:
        parser.print_help()
        return

    # parse_args will call sys.exit(2) if invalid commands are given.
    args = parser.parse_args(raw_args)
    if hasattr(args, "config"):
        process_common_options(args, raw_args)
    args.func(args)


def run_cli_app(raw_args=None):
    """Entry point for running the cli app."""
    if raw_args is None:
        raw_args = sys.argv[1:]
    try:
        main_cli(raw_args)
    except SheetsDBError as e:
        logger.error("Terminating with error: %s", e)  # noqa: TRY400
        sys.exit(1)
    except Exception:  # pragma: no cover
        logger.exception("Unexpected error.")
        sys.exit(3)  # value 2 is used by argparse for invalid args.


if __name__ == "__main__":
    run_cli_app(sys.argv[1:])
