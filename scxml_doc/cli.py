#!/usr/bin/env python3
"""
scxml-doc command line

    scxml-doc format FILE [-o OUT] [--indent N | --compact] [--newline lf|crlf]
    scxml-doc check FILE [FILE ...]
    scxml-doc validate FILE --schema XSD
    scxml-doc outline FILE [-o OUT]

Every command returns exit status 0 on success and 1 on failure.
"""

import argparse
import logging
import sys
from pathlib import Path

from .config import SERIALIZER_DEFAULTS
from .errors import SCXMLError
from .outline import render_outline
from .references import find_reference_issues
from .scxml_parser import parse_file
from .scxml_writer import SerializerOptions, serialize
from .validator import validate_markup

NEWLINES = {'lf': '\n', 'crlf': '\r\n'}


def _serializer_options(args) -> SerializerOptions:
    indent = SERIALIZER_DEFAULTS['indent'] if args.indent is None else ' ' * args.indent
    return SerializerOptions(
        indent=indent,
        newline=NEWLINES[args.newline],
        pretty=not args.compact,
    )


def _write_output(text: str, output):
    if output is None:
        sys.stdout.write(text + '\n')
        return
    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8', newline='') as f:
        f.write(text + '\n')
    logging.info(f"Wrote {output_path}")


def cmd_format(args) -> int:
    """Parse and re-serialize a document in canonical form"""
    document = parse_file(args.scxml_file)
    _write_output(serialize(document, _serializer_options(args)), args.output)
    return 0


def cmd_check(args) -> int:
    """Parse documents and report unresolved references"""
    failed = 0
    for scxml_file in args.scxml_files:
        issues = find_reference_issues(parse_file(scxml_file))
        if issues:
            failed += 1
            print(f"{scxml_file}: {len(issues)} issue(s)")
            for issue in issues:
                print(f"  {issue}")
        else:
            print(f"{scxml_file}: OK")
    return 1 if failed else 0


def cmd_validate(args) -> int:
    """Validate a document against an XSD"""
    valid, diagnostics = validate_markup(Path(args.scxml_file).read_bytes(), args.schema)
    for diagnostic in diagnostics:
        print(f"{args.scxml_file}: {diagnostic}")
    print(f"{args.scxml_file}: {'valid' if valid else 'invalid'}")
    return 0 if valid else 1


def cmd_outline(args) -> int:
    """Render the HTML outline of a document"""
    document = parse_file(args.scxml_file)
    title = args.title or document.name or Path(args.scxml_file).stem
    _write_output(render_outline(document, title=title), args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='scxml-doc',
        description='Read, format, check and outline W3C SCXML documents'
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    fmt = subparsers.add_parser('format', help='Rewrite a document in canonical form')
    fmt.add_argument('scxml_file', help='Input SCXML file')
    fmt.add_argument('-o', '--output', default=None,
                     help='Output file (default: stdout)')
    layout = fmt.add_mutually_exclusive_group()
    layout.add_argument('--indent', type=int, default=None,
                        help='Spaces per nesting level (default: 2)')
    layout.add_argument('--compact', action='store_true',
                        help='No indentation or line breaks')
    fmt.add_argument('--newline', choices=sorted(NEWLINES), default='lf',
                     help='Line terminator (default: lf)')
    fmt.set_defaults(func=cmd_format)

    check = subparsers.add_parser('check', help='Report unresolved initial/target references')
    check.add_argument('scxml_files', nargs='+', help='Input SCXML files')
    check.set_defaults(func=cmd_check)

    validate = subparsers.add_parser('validate', help='Validate against an XML Schema')
    validate.add_argument('scxml_file', help='Input SCXML file')
    validate.add_argument('-s', '--schema', required=True, help='XSD file')
    validate.set_defaults(func=cmd_validate)

    outline = subparsers.add_parser('outline', help='Render an HTML outline')
    outline.add_argument('scxml_file', help='Input SCXML file')
    outline.add_argument('-o', '--output', default=None,
                         help='Output HTML file (default: stdout)')
    outline.add_argument('--title', default=None, help='Report title')
    outline.set_defaults(func=cmd_outline)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s: %(message)s',
    )

    for name in ('scxml_file', 'scxml_files'):
        paths = getattr(args, name, None)
        for path in ([paths] if isinstance(paths, str) else paths or []):
            if not Path(path).exists():
                print(f"Error: SCXML file not found: {path}", file=sys.stderr)
                return 1

    try:
        return args.func(args)
    except SCXMLError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
