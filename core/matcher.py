import re

from core.errors import PatternError
from core.models import MatchSpan

# Compile the user's find text once per run.
# Literal text is escaped so special characters are not interpreted.
def compile_pattern(pattern: str, *, case_sensitive: bool, is_regex: bool) -> re.Pattern:
    flags = 0 if case_sensitive else re.IGNORECASE
    source = pattern if is_regex else re.escape(pattern)

    try:
        return re.compile(source, flags)
    except re.error as e:
        raise PatternError(f"Invalid regular expression '{pattern}': {e}") from e

# Left-to-right, non-overlapping matches as (offset, length) spans.
def find_spans(content: str, compiled_re: re.Pattern) -> list[MatchSpan]:
    return [MatchSpan(offset=match.start(), length=match.end() - match.start())
            for match in compiled_re.finditer(content)]

def find_all(content: str, pattern: str, *, case_sensitive: bool, is_regex: bool) -> list[MatchSpan]:
    compiled_re = compile_pattern(pattern, case_sensitive=case_sensitive, is_regex=is_regex)
    return find_spans(content, compiled_re)

def validate_replacement(compiled_re: re.Pattern, replace_text: str) -> None:
    """
    Reject a regex replacement template before the run starts.

    re parses the template before it scans the string, so substituting into
    an empty string is enough to surface bad group references.
    """
    try:
        compiled_re.sub(replace_text, "")
    except (re.error, IndexError) as e:
        raise PatternError(f"Invalid replacement text '{replace_text}': {e}") from e

def replace_all(content: str, compiled_re: re.Pattern, replace_text: str, *,
                is_regex: bool) -> tuple[str, int]:
    if is_regex:
        # \1, \g<name> etc. are expanded by re
        return compiled_re.subn(replace_text, content)

    # Literal mode: the replacement is inserted verbatim, backslashes included
    return compiled_re.subn(lambda _match: replace_text, content)
