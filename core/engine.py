import logging
import os
import re
import threading
from typing import Callable

from core import matcher, scanner, textio
from core.errors import ConfigError, FileReadError, FileWriteError, InvalidRootError
from core.models import FileOutcome, MatchSpan, RunConfig, RunEvent, RunMode, RunState
from core.stats import Stats, new_stats

logger = logging.getLogger(__name__)

EventCallback = Callable[[RunEvent], None]

def validate_config(config: RunConfig, mode: RunMode) -> re.Pattern:
    """
    Check a RunConfig before any file is touched and compile its pattern.

    Raises:
        ConfigError (or its InvalidRootError / PatternError subclasses).
    """
    if not config.find_text:
        raise ConfigError("Find text must not be empty")

    if not scanner.split_masks(config.file_mask or ""):
        raise ConfigError("File mask must not be empty")

    if not config.root_dir or not os.path.isdir(config.root_dir):
        raise InvalidRootError(f"Not a directory: {config.root_dir}")

    if mode is RunMode.REPLACE and config.replace_text is None:
        raise ConfigError("Replace text is required in replace mode")

    compiled_re = matcher.compile_pattern(config.find_text,
                                          case_sensitive=config.is_case_sensitive,
                                          is_regex=config.find_text_is_regex)

    if mode is RunMode.REPLACE and config.find_text_is_regex:
        matcher.validate_replacement(compiled_re, config.replace_text)

    return compiled_re


class Finder:
    """
    Scan engine: enumerates the candidate files and matches each one, read-only.

    run() reports one RunEvent per processed file, in enumeration order, each
    carrying a stats snapshot that already counts that file. An empty file set
    still produces a single event (outcome None) so consumers can tell
    "no files found" from "still running".
    """
    mode = RunMode.FIND

    def __init__(self, config: RunConfig) -> None:
        self.config = config
        self.state = RunState.IDLE
        self._compiled_re = validate_config(config, self.mode)

    def run(self, on_event: EventCallback,
            cancel_token: threading.Event | None = None) -> RunState:
        if self.state is RunState.RUNNING:
            raise RuntimeError(f"{type(self).__name__} is already running")

        self.state = RunState.RUNNING
        logger.info("%s run started in %s (mask %r)", self.mode.name.lower(),
                    self.config.root_dir, self.config.file_mask)

        # Any exception leaves the engine IDLE so it can run again
        try:
            self.state = self._run(on_event, cancel_token)
        except BaseException:
            self.state = RunState.IDLE
            raise

        return self.state

    def _run(self, on_event: EventCallback, cancel_token: threading.Event | None) -> RunState:
        # totalFiles must be known before the first progress report
        paths = list(scanner.enumerate_files(self.config.root_dir, self.config.file_mask,
                                             recursive=self.config.include_subdirectories))
        stats = new_stats(len(paths))

        if self._is_cancelled(cancel_token):
            return self._cancel(stats)

        if not paths:
            on_event(RunEvent(outcome=None, stats=stats.snapshot()))

        for path in paths:
            if self._is_cancelled(cancel_token):
                return self._cancel(stats)

            outcome = self._process_file(path, stats)
            on_event(RunEvent(outcome=outcome, stats=stats.snapshot()))

        logger.info("%s run completed: %s", self.mode.name.lower(), stats.snapshot())
        return RunState.COMPLETED

    @staticmethod
    def _is_cancelled(cancel_token: threading.Event | None) -> bool:
        return cancel_token is not None and cancel_token.is_set()

    def _cancel(self, stats: Stats) -> RunState:
        logger.info("%s run cancelled after %d of %d files", self.mode.name.lower(),
                    stats.processed_files, stats.total_files)

        return RunState.CANCELLED

    def _outcome(self, path: str, **fields) -> FileOutcome:
        return FileOutcome(file_name=os.path.basename(path),
                           relative_path=os.path.relpath(path, self.config.root_dir),
                           absolute_path=os.path.abspath(path),
                           **fields)

    def _read(self, path: str, stats: Stats) -> textio.TextFile | FileOutcome:
        try:
            return textio.read_text_file(path)
        except FileReadError as e:
            logger.warning("Failed to open %s: %s", path, e)
            stats.record_open_failure()

            return self._outcome(path, is_success=False, error_message=str(e))

    def _match(self, content: str) -> tuple[MatchSpan, ...]:
        return tuple(matcher.find_spans(content, self._compiled_re))

    def _process_file(self, path: str, stats: Stats) -> FileOutcome:
        text_file = self._read(path, stats)
        if isinstance(text_file, FileOutcome):
            return text_file

        matches = self._match(text_file.content)
        stats.record_success(had_matches=bool(matches), num_matches=len(matches))

        return self._outcome(path, matches=matches, encoding=text_file.encoding)


class Replacer(Finder):
    """
    Mutate engine: the Finder's scan plus an in-place rewrite of every file
    that matched. Files without matches are never opened for writing, and a
    failed rewrite only affects that file's outcome.
    """
    mode = RunMode.REPLACE

    def _process_file(self, path: str, stats: Stats) -> FileOutcome:
        text_file = self._read(path, stats)
        if isinstance(text_file, FileOutcome):
            return text_file

        matches = self._match(text_file.content)
        if not matches:
            stats.record_success(had_matches=False, num_matches=0)
            return self._outcome(path, wrote_successfully=False, encoding=text_file.encoding)

        new_content, _ = matcher.replace_all(text_file.content, self._compiled_re,
                                             self.config.replace_text,
                                             is_regex=self.config.find_text_is_regex)

        try:
            textio.write_text_file(path, new_content, text_file.encoding)
        except FileWriteError as e:
            logger.warning("Failed to write %s: %s", path, e)
            stats.record_write_failure(num_matches=len(matches))

            return self._outcome(path, matches=matches, wrote_successfully=False,
                                 error_message=str(e), encoding=text_file.encoding)

        stats.record_success(had_matches=True, num_matches=len(matches))
        stats.record_replaces(len(matches))

        return self._outcome(path, matches=matches, wrote_successfully=True,
                             encoding=text_file.encoding)


def create_engine(config: RunConfig, mode: RunMode) -> Finder:
    if mode is RunMode.REPLACE:
        return Replacer(config)

    return Finder(config)
