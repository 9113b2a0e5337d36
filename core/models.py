from enum import Enum
from typing import NamedTuple
from dataclasses import dataclass

class RunMode(Enum):
    # Find only reads files, Replace rewrites the ones that matched
    FIND = 1
    REPLACE = 2

class RunState(Enum):
    IDLE = 1
    RUNNING = 2
    COMPLETED = 3
    CANCELLED = 4

class MatchSpan(NamedTuple):
    # A single match inside a file's decoded text
    offset: int  # Start index of the match in the content
    length: int  # Number of characters matched (may be 0 for empty regex matches)

    @property
    def end(self) -> int:
        return self.offset + self.length

@dataclass(frozen=True)
class RunConfig:
    # Everything one run needs; validated by engine.validate_config before any file is touched
    root_dir: str
    file_mask: str
    find_text: str
    include_subdirectories: bool = False
    replace_text: str | None = None  # Required (may be "") in replace mode
    is_case_sensitive: bool = False
    find_text_is_regex: bool = False

@dataclass(frozen=True)
class FileOutcome:
    # Result for one processed file, handed to the event consumer as-is
    file_name: str
    relative_path: str
    absolute_path: str
    matches: tuple[MatchSpan, ...] = ()
    is_success: bool = True
    error_message: str = ""
    wrote_successfully: bool | None = None  # None in find mode
    encoding: str | None = None

    @property
    def num_matches(self) -> int:
        return len(self.matches)

class StatsSnapshot(NamedTuple):
    # Read-only copy of the run counters taken when an event is emitted
    total_files: int = 0
    processed_files: int = 0
    files_with_matches: int = 0
    files_without_matches: int = 0
    failed_to_open: int = 0
    failed_to_write: int = 0
    total_matches: int = 0
    total_replaces: int = 0

    @property
    def is_complete(self) -> bool:
        return self.processed_files == self.total_files

class RunEvent(NamedTuple):
    # One per processed file; outcome is None only for the single event of an empty run
    outcome: FileOutcome | None
    stats: StatsSnapshot

    @property
    def is_last(self) -> bool:
        return self.stats.is_complete
