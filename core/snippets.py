import os

from core.models import MatchSpan

# Lines of context shown above and below each match
PREVIEW_CONTEXT_LINES = 2

def detect_line_separator(content: str) -> str:
    """
    Pick the separator used to split a file's content into lines.

    Match offsets are computed on the untranslated text, so line detection
    must split on the separator the file actually uses. A file mixing CRLF
    and LF is split on CRLF only; its lone LFs stay inside lines, which keeps
    offsets and line boundaries consistent.
    """
    if "\r\n" in content:
        return "\r\n"
    if "\n" in content:
        return "\n"
    if "\r" in content:
        return "\r"

    return os.linesep

# Zero-based index of the line holding the given character offset.
def detect_match_line(lines: list[str], position: int, separator_length: int) -> int:
    line_index = 0
    chars_count = len(lines[0]) + separator_length

    while chars_count <= position and line_index < len(lines) - 1:
        line_index += 1
        chars_count += len(lines[line_index]) + separator_length

    return line_index

def line_numbers_for_match(lines: list[str], match: MatchSpan, *, separator_length: int,
                           context: int = PREVIEW_CONTEXT_LINES) -> range:
    start_line = detect_match_line(lines, match.offset, separator_length)
    end_line = detect_match_line(lines, match.end, separator_length)

    first = max(0, start_line - context)
    last = min(len(lines) - 1, end_line + context)

    return range(first, last + 1)

def _render_lines(lines: list[str], line_numbers: list[int]) -> str:
    rendered: list[str] = []
    previous: int | None = None

    for line_number in line_numbers:
        # Blank line between windows that do not touch
        if previous is not None and line_number - previous > 1:
            rendered.append("")

        rendered.append(lines[line_number])
        previous = line_number

    return os.linesep.join(rendered)

def build_preview(content: str, matches: list[MatchSpan] | tuple[MatchSpan, ...], *,
                  separator: str | None = None,
                  context: int = PREVIEW_CONTEXT_LINES) -> str:
    if not matches:
        return ""

    separator = separator or detect_line_separator(content)
    lines = content.split(separator)

    line_numbers: set[int] = set()
    for match in matches:
        line_numbers.update(line_numbers_for_match(lines, match,
                                                   separator_length=len(separator),
                                                   context=context))

    return _render_lines(lines, sorted(line_numbers))
