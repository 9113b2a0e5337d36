import argparse
import logging
import sys

from core.engine import create_engine
from core.errors import ConfigError
from core.models import FileOutcome, RunConfig, RunEvent, RunMode, StatsSnapshot
from core.stats import format_stats, should_show_outcome

DEFAULT_EXECUTABLE = "fnr"

# Newlines and quotes are masked on the command line as \n and \"
def encode_text(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\n", "\\n").replace('"', '\\"')

def decode_text(text: str) -> str:
    return text.replace("\\n", "\n").replace('\\"', '"')

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=DEFAULT_EXECUTABLE,
        description="Find And Replace",
        epilog='Mask new line and quote characters using \\n and \\".')

    parser.add_argument("--cl", action="store_true", help="Required to run on command line.")
    parser.add_argument("--find", required=True, help="Text to find.")
    parser.add_argument("--replace", default=None, help="Replacement text.")
    parser.add_argument("--caseSensitive", dest="case_sensitive", action="store_true",
                        help="Case Sensitive.")
    parser.add_argument("--dir", required=True, help="Directory path.")
    parser.add_argument("--fileMask", dest="file_mask", required=True, help="File mask.")
    parser.add_argument("--includeSubDirectories", dest="include_subdirectories",
                        action="store_true", help="Include files in SubDirectories.")
    parser.add_argument("--useRegEx", dest="use_regex", action="store_true",
                        help="Treat find text as a regular expression.")
    parser.add_argument("--verbose", action="store_true", help="Log progress to stderr.")

    return parser

def config_from_args(args: argparse.Namespace) -> tuple[RunConfig, RunMode]:
    mode = RunMode.REPLACE if args.replace is not None else RunMode.FIND
    config = RunConfig(root_dir=args.dir,
                       file_mask=args.file_mask,
                       find_text=decode_text(args.find),
                       include_subdirectories=args.include_subdirectories,
                       replace_text=decode_text(args.replace) if args.replace is not None else None,
                       is_case_sensitive=args.case_sensitive,
                       find_text_is_regex=args.use_regex)

    return config, mode

# Equivalent console invocation for the given options.
def build_command_line(config: RunConfig, executable: str = DEFAULT_EXECUTABLE) -> str:
    parts = [executable, "--cl",
             f'--dir "{config.root_dir}"',
             f'--fileMask "{config.file_mask}"']

    if config.include_subdirectories:
        parts.append("--includeSubDirectories")

    parts.append(f'--find "{encode_text(config.find_text)}"')

    if config.replace_text is not None:
        parts.append(f'--replace "{encode_text(config.replace_text)}"')
    if config.is_case_sensitive:
        parts.append("--caseSensitive")
    if config.find_text_is_regex:
        parts.append("--useRegEx")

    return " ".join(parts)

def format_row(outcome: FileOutcome, mode: RunMode) -> str:
    columns = [outcome.relative_path, str(outcome.num_matches)]

    if mode is RunMode.REPLACE:
        columns.append("Yes" if outcome.wrote_successfully else "No")
    if outcome.error_message:
        columns.append(outcome.error_message)

    return "\t".join(columns)

def run_console(argv: list[str]) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    config, mode = config_from_args(args)

    try:
        engine = create_engine(config, mode)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    last_stats = StatsSnapshot()

    def on_event(event: RunEvent) -> None:
        nonlocal last_stats
        last_stats = event.stats

        if should_show_outcome(event.outcome):
            print(format_row(event.outcome, mode))

    engine.run(on_event)

    if last_stats.total_files == 0:
        print("No files found.")

    print()
    print(format_stats(last_stats, show_replace_stats=mode is RunMode.REPLACE))

    return 0
