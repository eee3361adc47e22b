#!/usr/bin/env python3
"""
Name: nl
Description: line numbering filter
Author: jul, kaldor@cpan.org (Original Perl Author)
License: artistic2
"""

import sys
import os
import argparse
import re
from enum import Enum

__version__ = "1.2"

# Constants
EX_SUCCESS = 0
EX_FAILURE = 1
DEFAULT_DELIMITER = '\\:'
ENCODING = 'utf-8'

# printf-style templates for each -n format, taking (width, value)
NUMBER_FORMATS = {
    'ln': '%-*d',   # left-justified
    'rn': '%*d',    # right-justified
    'rz': '%0*d',   # right-justified, zero-padded
}

class Section(Enum):
    HEADER = 0
    BODY = 1
    FOOTER = 2

class NumberingStyle:
    """A class to parse and hold numbering style options like 't' or 'pa-z'."""
    ALL = 'a'
    NON_EMPTY = 't'
    NONE = 'n'
    PATTERN = 'p'

    def __init__(self, style_str):
        if not style_str:
            raise argparse.ArgumentTypeError("invalid numbering style: ''")
        self.style = style_str[0]
        self.pattern = None

        if self.style == self.PATTERN:
            try:
                self.pattern = re.compile(style_str[1:])
            except re.error as e:
                raise argparse.ArgumentTypeError(
                    f"invalid regular expression '{style_str[1:]}': {e}")
        elif self.style not in (self.ALL, self.NON_EMPTY, self.NONE) or len(style_str) > 1:
            raise argparse.ArgumentTypeError(f"invalid numbering style: '{style_str}'")

def section_delimiters(pair: str) -> tuple:
    """
    Builds the (header, body, footer) delimiter lines from a delimiter pair.
    A single character C stands for the pair 'C:'.
    """
    if len(pair) == 1:
        pair += ':'
    return pair * 3, pair * 2, pair

def delimiter_pair(value: str) -> str:
    """argparse type for -d: accepts one or two characters."""
    if not 1 <= len(value) <= 2:
        raise argparse.ArgumentTypeError(f"invalid section delimiter: '{value}'")
    return value

def positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: '{value}'")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"invalid number: '{value}' (must be positive)")
    return number

def format_number(value: int, width: int, kind: str = 'rn') -> str:
    """
    Renders a line number into a field of `width` characters.
    Numbers wider than the field are printed in full, never truncated.
    """
    return NUMBER_FORMATS[kind] % (width, value)

class NumberingConfig:
    """The resolved options for one numbering pass."""
    def __init__(self, header_style='n', body_style='t', footer_style='n',
                 delimiters=None, number_format='rn', width=6, separator='\t',
                 start_num=1, increment=1, join_blank=1, no_renumber=False):
        self.styles = {
            Section.HEADER: self._style(header_style),
            Section.BODY: self._style(body_style),
            Section.FOOTER: self._style(footer_style),
        }
        self.delimiters = tuple(delimiters) if delimiters else section_delimiters(DEFAULT_DELIMITER)
        if number_format not in NUMBER_FORMATS:
            raise ValueError(f"invalid line number format: '{number_format}'")
        self.number_format = number_format
        self.width = width
        self.separator = separator
        self.start_num = start_num
        self.increment = increment
        self.join_blank = join_blank
        self.no_renumber = no_renumber

    @staticmethod
    def _style(style):
        return style if isinstance(style, NumberingStyle) else NumberingStyle(style)

    @classmethod
    def from_args(cls, args):
        """Builds a configuration from the namespace produced by the option parser."""
        return cls(
            header_style=args.header_style,
            body_style=args.body_style,
            footer_style=args.footer_style,
            delimiters=section_delimiters(args.delimiter),
            number_format=args.format,
            width=args.width,
            separator=args.separator,
            start_num=args.start_num,
            increment=args.increment,
            join_blank=args.join_blank,
            no_renumber=args.no_renumber,
        )

class SectionTracker:
    """Recognizes delimiter lines and remembers which section we are in."""
    def __init__(self, delimiters):
        header, body, footer = delimiters
        # Header first when custom delimiters collide.
        self.delimiters = ((header, Section.HEADER), (body, Section.BODY), (footer, Section.FOOTER))
        self.section = Section.BODY

    def classify(self, line):
        """
        Returns the section a delimiter line switches to, or None when the
        line is ordinary content. Only an exact match counts.
        """
        for delimiter, section in self.delimiters:
            if line == delimiter:
                self.section = section
                return section
        return None

class NumberingEngine:
    """Decides which content lines get a number and formats every line."""
    def __init__(self, config):
        self.config = config
        # Keyed by section, or by None when -p shares one counter.
        self.counters = {}
        self.blank_run = 0

    def _counter_key(self, section):
        return None if self.config.no_renumber else section

    def _next_number(self, section):
        key = self._counter_key(section)
        number = self.counters.get(key, self.config.start_num)
        self.counters[key] = number + self.config.increment
        return number

    def _count_blank(self):
        """Adds an empty line to the current run; True on every Nth one."""
        self.blank_run += 1
        if self.blank_run >= self.config.join_blank:
            self.blank_run = 0
            return True
        return False

    def should_number(self, line, style):
        if line:
            self.blank_run = 0

        if style.style == NumberingStyle.ALL:
            return bool(line) or self._count_blank()
        elif style.style == NumberingStyle.NON_EMPTY:
            if line:
                return True
            # -l only makes empty lines count here when it groups them
            return self.config.join_blank > 1 and self._count_blank()
        elif style.style == NumberingStyle.PATTERN:
            return style.pattern.search(line) is not None
        return False

    def process(self, line, section, boundary_crossed=False):
        """Returns `line` with its number field and separator in front."""
        config = self.config
        if boundary_crossed:
            self.blank_run = 0
            if not config.no_renumber:
                self.counters[section] = config.start_num

        if self.should_number(line, config.styles[section]):
            number_str = format_number(self._next_number(section), config.width, config.number_format)
        else:
            number_str = ' ' * config.width

        return f"{number_str}{config.separator}{line}"

class NLProcessor:
    """Runs one numbering pass over a sequence of lines."""
    def __init__(self, config=None):
        self.config = config or NumberingConfig()
        self.tracker = SectionTracker(self.config.delimiters)
        self.engine = NumberingEngine(self.config)
        self.boundary_crossed = False

    def process_line(self, line):
        """Processes a single line given without its line terminator."""
        if self.tracker.classify(line) is not None:
            # Delimiter lines pass through untouched.
            self.boundary_crossed = True
            return line

        output = self.engine.process(line, self.tracker.section, self.boundary_crossed)
        self.boundary_crossed = False
        return output

    def process_stream(self, stream):
        """Yields the numbered form of every line in `stream`."""
        for line in stream:
            yield self.process_line(line)

def number_lines(lines, config=None):
    """Numbers a list of lines in a fresh pass and returns the result."""
    return list(NLProcessor(config).process_stream(lines))

def decode_line(raw: bytes) -> str:
    """
    Strips the line terminator (LF or CRLF) and decodes the rest. Bytes that
    are not valid UTF-8 are kept as surrogates so they can be written back.
    """
    if raw.endswith(b'\n'):
        raw = raw[:-1]
        if raw.endswith(b'\r'):
            raw = raw[:-1]
    return raw.decode(ENCODING, errors='surrogateescape')

def number_stream(processor, stream, out):
    """Numbers every line of a binary input stream onto a binary output stream."""
    for raw in stream:
        output = processor.process_line(decode_line(raw))
        out.write(output.encode(ENCODING, errors='surrogateescape') + b'\n')

def build_parser():
    parser = argparse.ArgumentParser(
        description="Write each FILE to standard output, with line numbers added.",
        usage="%(prog)s [-p] [-b type] [-d delim] [-f type] [-h type] [-i incr] [-l num]\n"
              "          [-n format] [-s sep] [-v startnum] [-w width] [file ...]",
        epilog="STYLE is one of: a (all lines), t (non-empty lines), n (no lines), "
               "pREGEX (lines matching REGEX). Sections are delimited by lines holding "
               "only the delimiter pair repeated 3 (header), 2 (body) or 1 (footer) times.",
        add_help=False,
    )
    # -h selects the header style, so help is only available as --help.
    parser.add_argument('--help', action='help', help='Show this help message and exit.')
    parser.add_argument('-V', '--version', action='version', version=f'%(prog)s {__version__}')

    parser.add_argument('-b', '--body-numbering', dest='body_style', type=NumberingStyle,
                        default=NumberingStyle('t'), metavar='STYLE',
                        help="Numbering style for body sections (default: 't').")
    parser.add_argument('-d', '--section-delimiter', dest='delimiter', type=delimiter_pair,
                        default=DEFAULT_DELIMITER, metavar='CC',
                        help="Section delimiter characters (default: '\\:').")
    parser.add_argument('-f', '--footer-numbering', dest='footer_style', type=NumberingStyle,
                        default=NumberingStyle('n'), metavar='STYLE',
                        help="Numbering style for footer sections (default: 'n').")
    parser.add_argument('-h', '--header-numbering', dest='header_style', type=NumberingStyle,
                        default=NumberingStyle('n'), metavar='STYLE',
                        help="Numbering style for header sections (default: 'n').")
    parser.add_argument('-i', '--line-increment', dest='increment', type=positive_int, default=1,
                        metavar='NUMBER', help="Line number increment (default: 1).")
    parser.add_argument('-l', '--join-blank-lines', dest='join_blank', type=positive_int, default=1,
                        metavar='NUMBER', help="Count a group of NUMBER empty lines as one (default: 1).")
    parser.add_argument('-n', '--number-format', dest='format', choices=list(NUMBER_FORMATS), default='rn',
                        help="Number format: ln (left), rn (right), rz (right, zeros) (default: 'rn').")
    parser.add_argument('-p', '--no-renumber', dest='no_renumber', action='store_true',
                        help="Do not reset line numbers at section boundaries.")
    parser.add_argument('-s', '--number-separator', dest='separator', default='\t', metavar='STRING',
                        help="Separator between number and text (default: TAB).")
    parser.add_argument('-v', '--starting-line-number', dest='start_num', type=int, default=1,
                        metavar='NUMBER', help="First line number of each section (default: 1).")
    parser.add_argument('-w', '--number-width', dest='width', type=positive_int, default=6,
                        metavar='NUMBER', help="Width of the number field (default: 6).")

    parser.add_argument('files', nargs='*', help="Files to process. Reads from stdin if none are given.")
    return parser

def main():
    """Parses arguments and orchestrates the line numbering process."""
    program_name = os.path.basename(sys.argv[0])
    args = build_parser().parse_args()
    processor = NLProcessor(NumberingConfig.from_args(args))

    exit_status = EX_SUCCESS
    out = sys.stdout.buffer
    try:
        # All operands form one stream, so sections and counters carry over.
        for name in args.files or ['-']:
            try:
                if name == '-':
                    number_stream(processor, sys.stdin.buffer, out)
                else:
                    with open(name, 'rb') as f:
                        number_stream(processor, f, out)
            except (FileNotFoundError, IsADirectoryError, PermissionError) as e:
                # Report the bad operand and go on with the rest.
                print(f"{program_name}: '{e.filename}': {e.strerror}", file=sys.stderr)
                exit_status = EX_FAILURE
        out.flush()
    except BrokenPipeError:
        # The reader went away; keep the interpreter's final flush quiet.
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        exit_status = EX_FAILURE

    sys.exit(exit_status)

if __name__ == "__main__":
    main()
