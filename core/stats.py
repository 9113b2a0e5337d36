from dataclasses import dataclass, astuple

from core.models import FileOutcome, StatsSnapshot

@dataclass
class Stats:
    # Live counters of one run. Mutated only by the engine's worker;
    # consumers only ever see snapshot() copies.
    total_files: int = 0
    processed_files: int = 0
    files_with_matches: int = 0
    files_without_matches: int = 0
    failed_to_open: int = 0
    failed_to_write: int = 0
    total_matches: int = 0
    total_replaces: int = 0

    def _advance(self) -> None:
        if self.processed_files >= self.total_files:
            raise ValueError(f"All {self.total_files} files have already been counted")

        self.processed_files += 1

    # The three record_* outcomes below each count exactly one processed file.
    def record_success(self, *, had_matches: bool, num_matches: int) -> None:
        self._advance()

        if had_matches:
            self.files_with_matches += 1
        else:
            self.files_without_matches += 1

        self.total_matches += num_matches

    def record_open_failure(self) -> None:
        self._advance()
        self.failed_to_open += 1

    # The file was read and matched, only the rewrite failed:
    # its matches still count, its replaces do not.
    def record_write_failure(self, *, num_matches: int) -> None:
        self._advance()
        self.files_with_matches += 1
        self.failed_to_write += 1
        self.total_matches += num_matches

    # Called by the Replacer after record_success when the rewrite went through.
    def record_replaces(self, num_replaces: int) -> None:
        self.total_replaces += num_replaces

    def snapshot(self) -> StatsSnapshot:
        return StatsSnapshot(*astuple(self))

def new_stats(total_files: int) -> Stats:
    return Stats(total_files=total_files)

# Multi-line summary shown next to the results.
def format_stats(stats: StatsSnapshot, *, show_replace_stats: bool = False) -> str:
    lines = [
        "Files:",
        f"- Total: {stats.total_files}",
        f"- Processed: {stats.processed_files}",
        f"- With Matches: {stats.files_with_matches}",
        f"- Without Matches: {stats.files_without_matches}",
        f"- Failed to Open: {stats.failed_to_open}",
    ]

    if show_replace_stats:
        lines.append(f"- Failed to Write: {stats.failed_to_write}")

    lines += ["", "Matches:", f"- Found: {stats.total_matches}"]

    if show_replace_stats:
        lines.append(f"- Replaced: {stats.total_replaces}")

    return "\n".join(lines)

def format_progress(stats: StatsSnapshot, outcome: FileOutcome | None) -> str:
    if outcome is None:
        return "No files found."

    return f"Processing {stats.processed_files} of {stats.total_files} files.  " \
           f"Last file: {outcome.relative_path}"

# Row policy for result views: files that matched, and files that failed.
def should_show_outcome(outcome: FileOutcome | None) -> bool:
    if outcome is None:
        return False

    return outcome.num_matches > 0 or not outcome.is_success
