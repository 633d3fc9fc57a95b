#!/usr/bin/env python3
"""
Parse class diagram files and print their AST.

Usage:
    python cdl_dump.py <file.cdl> [file2.cdl ...]
    python cdl_dump.py --format json FILE   # JSON instead of YAML
    python cdl_dump.py --parser peg FILE    # Use the Lark grammar parser
"""

import argparse
import sys
from pathlib import Path

# Add scripts directory to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from lark.exceptions import UnexpectedInput

from cdl_lexer import LexerError
from cdl_parser import ParseError, parse as rd_parse
from cdl_peg_parser import parse as peg_parse
from cdl_converter import load_diagram_ast, diagram_to_yaml, diagram_to_json

PARSERS = {
    'rd': rd_parse,
    'peg': peg_parse,
}

FORMATTERS = {
    'yaml': diagram_to_yaml,
    'json': diagram_to_json,
}

DEFAULT_FORMAT = 'yaml'
DEFAULT_PARSER = 'rd'


def error_location(error: Exception) -> str:
    """Get ':line:col' for an error, or '' when it carries no position."""
    if isinstance(error, ParseError):
        return f":{error.token.line}:{error.token.column}"
    if isinstance(error, LexerError):
        return f":{error.line}:{error.column}"
    if isinstance(error, UnexpectedInput):
        return f":{error.line}:{error.column}"
    return ""


def dump_file(path: Path, output_format: str = DEFAULT_FORMAT,
              parser_name: str = DEFAULT_PARSER) -> bool:
    """Print the AST of a single file. Returns False if it failed to parse."""
    try:
        diagram = load_diagram_ast(path, PARSERS[parser_name])
    except FileNotFoundError:
        print(f"{path}: file not found")
        return False
    except (OSError, UnicodeDecodeError) as e:
        print(f"{path}: error: {e}")
        return False
    except (LexerError, ParseError, UnexpectedInput) as e:
        print(f"{path}{error_location(e)}: error: {e}")
        return False

    print(FORMATTERS[output_format](diagram), end='')
    return True


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Parse class diagram files and print their AST."
    )
    parser.add_argument(
        "files",
        nargs="*",
        help="Files to parse"
    )
    parser.add_argument(
        "--format",
        choices=sorted(FORMATTERS),
        default=DEFAULT_FORMAT,
        help="Output format (default: %(default)s)"
    )
    parser.add_argument(
        "--parser",
        choices=sorted(PARSERS),
        default=DEFAULT_PARSER,
        help="rd = hand-written parser, peg = Lark grammar (default: %(default)s)"
    )

    args = parser.parse_args(argv)

    if not args.files:
        parser.print_help()
        sys.exit(1)

    failed = 0
    for name in args.files:
        if not dump_file(Path(name), args.format, args.parser):
            failed += 1

    if failed:
        print(f"\n{failed} file(s) failed to parse")

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
