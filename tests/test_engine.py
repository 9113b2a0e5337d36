import os
import threading

import pytest

from core import engine, textio
from core.engine import Finder, Replacer, create_engine, validate_config
from core.errors import ConfigError, FileWriteError, InvalidRootError, PatternError
from core.models import MatchSpan, RunConfig, RunMode, RunState


def run_collect(run_engine, cancel_token=None):
    events = []
    state = run_engine.run(events.append, cancel_token)
    return events, state


def assert_invariants(events):
    previous = None
    for event in events:
        stats = event.stats
        assert stats.processed_files <= stats.total_files
        assert stats.files_with_matches + stats.files_without_matches + stats.failed_to_open \
            == stats.processed_files
        assert stats.total_replaces <= stats.total_matches

        if previous is not None:
            assert all(now >= before for now, before in zip(stats, previous))
            assert stats.processed_files == previous.processed_files + 1
        previous = stats


@pytest.fixture
def scenario_root(make_tree, monkeypatch):
    root = make_tree({"a.txt": "foo bar foo", "b.txt": "secret", "c.txt": "nothing here"})
    real_read_bytes = textio._read_bytes

    def read_bytes(path):
        if os.path.basename(path) == "b.txt":
            raise PermissionError(13, "Permission denied", path)
        return real_read_bytes(path)

    monkeypatch.setattr(textio, "_read_bytes", read_bytes)
    return root


class TestValidateConfig:
    def test_valid(self, tmp_path):
        config = RunConfig(root_dir=str(tmp_path), file_mask="*.txt", find_text="x")
        assert validate_config(config, RunMode.FIND).pattern == "x"

    @pytest.mark.parametrize("changes, error", [
        ({"find_text": ""}, ConfigError),
        ({"file_mask": ""}, ConfigError),
        ({"file_mask": " ; "}, ConfigError),
        ({"root_dir": "/definitely/not/here"}, InvalidRootError),
        ({"find_text": "(", "find_text_is_regex": True}, PatternError),
    ])
    def test_invalid(self, tmp_path, changes, error):
        fields = {"root_dir": str(tmp_path), "file_mask": "*.txt", "find_text": "x", **changes}

        with pytest.raises(error):
            validate_config(RunConfig(**fields), RunMode.FIND)

    def test_replace_mode_needs_replace_text(self, tmp_path):
        config = RunConfig(root_dir=str(tmp_path), file_mask="*", find_text="x")

        with pytest.raises(ConfigError):
            Replacer(config)

        # an empty replacement is allowed, it deletes the matches
        Replacer(RunConfig(root_dir=str(tmp_path), file_mask="*", find_text="x", replace_text=""))

    def test_bad_replacement_template(self, tmp_path):
        config = RunConfig(root_dir=str(tmp_path), file_mask="*", find_text="(a)",
                           find_text_is_regex=True, replace_text=r"\3")

        with pytest.raises(PatternError):
            Replacer(config)

    def test_create_engine(self, tmp_path):
        config = RunConfig(root_dir=str(tmp_path), file_mask="*", find_text="x", replace_text="y")

        assert type(create_engine(config, RunMode.FIND)) is Finder
        assert type(create_engine(config, RunMode.REPLACE)) is Replacer


class TestFinder:
    """Read-only scan."""

    def test_three_file_scenario(self, scenario_root):
        config = RunConfig(root_dir=str(scenario_root), file_mask="*.txt", find_text="foo",
                           is_case_sensitive=True)
        finder = Finder(config)

        events, state = run_collect(finder)

        assert state is RunState.COMPLETED
        assert finder.state is RunState.COMPLETED
        assert [event.outcome.file_name for event in events] == ["a.txt", "b.txt", "c.txt"]

        a, b, c = [event.outcome for event in events]
        assert (a.num_matches, a.is_success) == (2, True)
        assert a.matches == (MatchSpan(0, 3), MatchSpan(8, 3))
        assert a.wrote_successfully is None
        assert (b.is_success, b.num_matches) == (False, 0)
        assert b.error_message
        assert (c.num_matches, c.is_success) == (0, True)

        final = events[-1].stats
        assert final.total_files == 3
        assert final.processed_files == 3
        assert final.files_with_matches == 1
        assert final.files_without_matches == 1
        assert final.failed_to_open == 1
        assert final.total_matches == 2
        assert events[-1].is_last
        assert not any(event.is_last for event in events[:-1])
        assert_invariants(events)

    def test_snapshot_counts_the_file_it_is_sent_with(self, scenario_root):
        config = RunConfig(root_dir=str(scenario_root), file_mask="*.txt", find_text="foo")
        events, _ = run_collect(Finder(config))

        assert [event.stats.processed_files for event in events] == [1, 2, 3]
        assert events[1].stats.failed_to_open == 1
        assert events[0].stats.failed_to_open == 0

    def test_empty_run_still_reports_once(self, tmp_path):
        config = RunConfig(root_dir=str(tmp_path), file_mask="*.txt", find_text="foo")
        events, state = run_collect(Finder(config))

        assert state is RunState.COMPLETED
        assert len(events) == 1
        assert events[0].outcome is None
        assert events[0].stats.total_files == 0
        assert events[0].is_last

    def test_scan_is_read_only_and_repeatable(self, make_tree):
        root = make_tree({"a.txt": "x y x", "sub/b.txt": "yyy", "sub/c.md": "x"})
        config = RunConfig(root_dir=str(root), file_mask="*.txt", find_text="x",
                           include_subdirectories=True)
        before = {name: (root / name).read_bytes() for name in ["a.txt", "sub/b.txt"]}

        first, _ = run_collect(Finder(config))
        second, _ = run_collect(Finder(config))

        assert [event.outcome for event in first] == [event.outcome for event in second]
        assert {name: (root / name).read_bytes() for name in before} == before

    def test_outcome_paths(self, make_tree):
        root = make_tree({"sub/deep/a.txt": "x"})
        config = RunConfig(root_dir=str(root), file_mask="*.txt", find_text="x",
                           include_subdirectories=True)

        events, _ = run_collect(Finder(config))
        outcome = events[0].outcome

        assert outcome.file_name == "a.txt"
        assert outcome.relative_path == os.path.join("sub", "deep", "a.txt")
        assert outcome.absolute_path == os.path.abspath(root / "sub" / "deep" / "a.txt")
        assert outcome.encoding == "utf-8"

    def test_binary_file_is_a_failed_open(self, make_tree):
        root = make_tree({"a.bin": b"x\x00\x01", "b.txt": "x"})
        config = RunConfig(root_dir=str(root), file_mask="*", find_text="x")

        events, _ = run_collect(Finder(config))

        assert not events[0].outcome.is_success
        assert events[-1].stats.failed_to_open == 1
        assert events[-1].stats.files_with_matches == 1

    def test_engine_can_run_again(self, make_tree):
        root = make_tree({"a.txt": "x"})
        finder = Finder(RunConfig(root_dir=str(root), file_mask="*", find_text="x"))

        first, _ = run_collect(finder)
        second, _ = run_collect(finder)
        assert first == second

    def test_failing_callback_leaves_engine_idle(self, make_tree):
        root = make_tree({"a.txt": "x", "b.txt": "x"})
        finder = Finder(RunConfig(root_dir=str(root), file_mask="*", find_text="x"))

        def on_event(event):
            raise ValueError("consumer failed")

        with pytest.raises(ValueError, match="consumer failed"):
            finder.run(on_event)

        assert finder.state is RunState.IDLE
        events, state = run_collect(finder)
        assert state is RunState.COMPLETED
        assert len(events) == 2


class TestCancellation:
    @pytest.fixture
    def config(self, make_tree):
        root = make_tree({f"{i}.txt": "x" for i in range(5)})
        return RunConfig(root_dir=str(root), file_mask="*.txt", find_text="x")

    def test_cancel_between_files(self, config):
        cancel_token = threading.Event()
        events = []

        def on_event(event):
            events.append(event)
            if len(events) == 2:
                cancel_token.set()

        finder = Finder(config)
        state = finder.run(on_event, cancel_token)

        assert state is RunState.CANCELLED
        assert len(events) == 2
        assert events[-1].stats.processed_files == 2
        assert not events[-1].is_last

    def test_cancel_before_start(self, config):
        cancel_token = threading.Event()
        cancel_token.set()

        events, state = run_collect(Finder(config), cancel_token)

        assert state is RunState.CANCELLED
        assert events == []


class TestReplacer:
    """Scan plus in-place rewrite."""

    def test_case_insensitive_literal_replace(self, make_tree):
        root = make_tree({"a.txt": "Foo FOO foo"})
        config = RunConfig(root_dir=str(root), file_mask="*.txt", find_text="foo", replace_text="baz")

        events, state = run_collect(Replacer(config))

        assert state is RunState.COMPLETED
        assert (root / "a.txt").read_text() == "baz baz baz"
        outcome = events[0].outcome
        assert outcome.num_matches == 3
        assert outcome.wrote_successfully is True
        assert events[-1].stats.total_matches == 3
        assert events[-1].stats.total_replaces == 3

    def test_regex_replace_with_groups(self, make_tree):
        root = make_tree({"a.txt": "v1 and v22\n"})
        config = RunConfig(root_dir=str(root), file_mask="*.txt", find_text=r"v(\d+)",
                           replace_text=r"version \1", find_text_is_regex=True, is_case_sensitive=True)

        run_collect(Replacer(config))

        assert (root / "a.txt").read_bytes() == b"version 1 and version 22\n"

    def test_files_without_matches_are_not_written(self, make_tree, monkeypatch):
        root = make_tree({"a.txt": "foo", "b.txt": "bar"})
        written = []
        real_write = textio.write_text_file

        def recording_write(path, content, encoding):
            written.append(os.path.basename(path))
            real_write(path, content, encoding)

        monkeypatch.setattr(textio, "write_text_file", recording_write)
        config = RunConfig(root_dir=str(root), file_mask="*.txt", find_text="foo", replace_text="x")

        events, _ = run_collect(Replacer(config))

        assert written == ["a.txt"]
        assert events[1].outcome.wrote_successfully is False
        assert events[1].outcome.error_message == ""
        assert events[-1].stats.files_without_matches == 1

    def test_write_failure_keeps_matches(self, make_tree, monkeypatch):
        root = make_tree({"a.txt": "foo foo", "b.txt": "foo", "c.txt": "none"})
        real_write = textio.write_text_file

        def failing_write(path, content, encoding):
            if os.path.basename(path) == "a.txt":
                raise FileWriteError("File is locked")
            real_write(path, content, encoding)

        monkeypatch.setattr(textio, "write_text_file", failing_write)
        config = RunConfig(root_dir=str(root), file_mask="*.txt", find_text="foo", replace_text="bar")

        events, state = run_collect(Replacer(config))

        assert state is RunState.COMPLETED
        a, b, c = [event.outcome for event in events]
        assert (a.is_success, a.wrote_successfully, a.num_matches) == (True, False, 2)
        assert a.error_message == "File is locked"
        assert b.wrote_successfully is True

        final = events[-1].stats
        assert final.failed_to_write == 1
        assert final.total_matches == 3
        assert final.total_replaces == 1
        assert final.files_with_matches == 2
        assert final.files_without_matches == 1
        assert (root / "a.txt").read_text() == "foo foo"
        assert (root / "b.txt").read_text() == "bar"
        assert_invariants(events)

    def test_no_write_failures_means_all_matches_replaced(self, make_tree):
        root = make_tree({"a.txt": "x\nx\n", "sub/b.txt": "xx", "c.txt": "y"})
        config = RunConfig(root_dir=str(root), file_mask="*.txt", find_text="x", replace_text="z",
                           include_subdirectories=True)

        events, _ = run_collect(Replacer(config))

        final = events[-1].stats
        assert final.total_replaces == final.total_matches == 4
        assert_invariants(events)

    def test_unencodable_replacement_is_a_write_failure(self, make_tree, monkeypatch):
        root = make_tree({"a.txt": b"prix: 5 EUR, caf\xe9"})
        monkeypatch.setattr(textio, "detect_encoding", lambda raw: "latin-1")
        config = RunConfig(root_dir=str(root), file_mask="*.txt", find_text="EUR",
                           replace_text="\u20ac", is_case_sensitive=True)

        events, _ = run_collect(Replacer(config))

        outcome = events[0].outcome
        assert outcome.wrote_successfully is False
        assert "latin-1" in outcome.error_message
        assert events[-1].stats.failed_to_write == 1
        assert (root / "a.txt").read_bytes() == b"prix: 5 EUR, caf\xe9"

    def test_module_logger_reports_failures(self, scenario_root, caplog):
        config = RunConfig(root_dir=str(scenario_root), file_mask="*.txt", find_text="foo",
                           replace_text="x")

        with caplog.at_level("WARNING", logger=engine.__name__):
            run_collect(Replacer(config))

        assert any("b.txt" in record.getMessage() for record in caplog.records)

    @pytest.mark.skipif(os.name == "nt", reason="POSIX symlinks")
    def test_symlinked_file_rewrites_its_target(self, make_tree):
        root = make_tree({"real/t.txt": "foo"})
        link = root / "link.txt"
        os.symlink(root / "real" / "t.txt", link)
        config = RunConfig(root_dir=str(root), file_mask="*.txt", find_text="foo", replace_text="bar")

        events, _ = run_collect(Replacer(config))

        assert [event.outcome.file_name for event in events] == ["link.txt"]
        assert events[0].outcome.wrote_successfully is True
        assert link.is_symlink()
        assert (root / "real" / "t.txt").read_text() == "bar"
        assert events[-1].stats.total_replaces == 1
