import os

from PyQt6.QtCore import Qt, QUrl
from PyQt6.QtWidgets import QMainWindow, QLabel, QLineEdit, QPushButton, QProgressBar, QPlainTextEdit, \
    QVBoxLayout, QHBoxLayout, QWidget, QSplitter, QFileDialog, QTextEdit, QTableWidget, QTableWidgetItem, \
    QAbstractItemView, QSizePolicy, QCheckBox, QMenu, QGridLayout
from PyQt6.QtGui import QColor, QTextCursor, QTextCharFormat, QFont, QDesktopServices

from core import matcher, snippets, textio
from core.errors import FindReplaceError
from core.models import FileOutcome, RunConfig, RunEvent, RunMode, RunState
from core.stats import format_progress, format_stats, should_show_outcome
from ui import cli
from ui.controller import RunController

FIND_COLUMNS = ["Filename", "Path", "Matches", "Error"]
REPLACE_COLUMNS = ["Filename", "Path", "Matches", "Replaced", "Error"]
COLUMN_WIDTHS = {"Filename": 220, "Path": 380, "Matches": 70, "Replaced": 70, "Error": 160}


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()

        self.setWindowTitle("Find And Replace")
        self.resize(1000, 700)

        # Owns the background thread; only one run at a time.
        self.controller = RunController(self)

        # Config and mode of the run whose results are displayed.
        self.last_config: RunConfig | None = None
        self.last_mode: RunMode = RunMode.FIND

        # Outcomes behind the visible table rows (row index -> outcome).
        self.row_outcomes: list[FileOutcome] = []

        self._build_ui()
        self._apply_style()
        self._connect_signals()

    # Create widgets and layouts.
    def _build_ui(self) -> None:
        # --- Widget Initialization ---
        self.status_label = QLabel("Ready")
        self.status_label.setObjectName("statusLabel")
        self.status_label.setSizePolicy(QSizePolicy.Policy.Preferred, QSizePolicy.Policy.Fixed)

        self.dir_edit = QLineEdit()
        self.mask_edit = QLineEdit("*.*")
        self.find_edit = QLineEdit()
        self.find_edit.setPlaceholderText("Text to find...")
        self.replace_edit = QLineEdit()
        self.replace_edit.setPlaceholderText("Replacement text...")

        self.subdirs_checkbox = QCheckBox("Include sub-directories")
        self.case_sensitive_checkbox = QCheckBox("Case Sensitive")
        self.regex_checkbox = QCheckBox("Regex")

        self.browse_btn = QPushButton("Browse...")
        self.find_btn = QPushButton("Find Only")
        self.find_btn.setObjectName("findButton")
        self.replace_btn = QPushButton("Replace")
        self.command_line_btn = QPushButton("Gen Command Line")
        self.cancel_btn = QPushButton("Cancel")
        self.cancel_btn.setEnabled(False)

        self.progress = QProgressBar()
        self.progress.setRange(0, 100)
        self.progress.hide()

        self.results_table = QTableWidget()
        self.results_table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self.results_table.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.results_table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.results_table.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)

        self.preview_box = QPlainTextEdit()
        self.preview_box.setReadOnly(True)

        self.stats_label = QLabel("")
        self.stats_label.setAlignment(Qt.AlignmentFlag.AlignTop)
        self.stats_label.setMinimumWidth(180)

        self.command_line_box = QPlainTextEdit()
        self.command_line_box.setReadOnly(True)
        self.command_line_box.setMaximumHeight(60)
        self.command_line_box.hide()

        # --- Layout Construction ---
        main_layout = QVBoxLayout()
        main_widget = QWidget()

        # 1. Options grid
        options_layout = QGridLayout()
        options_layout.addWidget(QLabel("Dir:"), 0, 0)
        options_layout.addWidget(self.dir_edit, 0, 1)
        options_layout.addWidget(self.browse_btn, 0, 2)
        options_layout.addWidget(QLabel("File Mask:"), 1, 0)
        options_layout.addWidget(self.mask_edit, 1, 1)
        options_layout.addWidget(self.subdirs_checkbox, 1, 2)
        options_layout.addWidget(QLabel("Find:"), 2, 0)
        options_layout.addWidget(self.find_edit, 2, 1)
        options_layout.addWidget(QLabel("Replace:"), 3, 0)
        options_layout.addWidget(self.replace_edit, 3, 1)

        flags_layout = QHBoxLayout()
        flags_layout.addWidget(self.case_sensitive_checkbox)
        flags_layout.addWidget(self.regex_checkbox)
        flags_layout.addStretch(1)

        # 2. Actions & Status Row
        actions_layout = QHBoxLayout()
        actions_layout.addWidget(self.find_btn)
        actions_layout.addWidget(self.replace_btn)
        actions_layout.addWidget(self.command_line_btn)
        actions_layout.addWidget(self.cancel_btn)
        actions_layout.addWidget(self.progress)
        actions_layout.addStretch(1)

        # 3. Results (top) vs Preview (bottom), stats on the right
        results_preview_splitter = QSplitter(Qt.Orientation.Vertical)
        results_preview_splitter.addWidget(self.results_table)
        results_preview_splitter.addWidget(self.preview_box)
        results_preview_splitter.setStretchFactor(0, 3)
        results_preview_splitter.setStretchFactor(1, 2)

        self.main_splitter = QSplitter(Qt.Orientation.Horizontal)
        self.main_splitter.addWidget(results_preview_splitter)
        self.main_splitter.addWidget(self.stats_label)
        self.main_splitter.setSizes([780, 200])

        main_layout.addLayout(options_layout)
        main_layout.addLayout(flags_layout)
        main_layout.addLayout(actions_layout)
        main_layout.addWidget(self.command_line_box)
        main_layout.addWidget(self.status_label)
        main_layout.addWidget(self.main_splitter)

        main_widget.setLayout(main_layout)
        self.setCentralWidget(main_widget)

    def _apply_style(self) -> None:
        self.setStyleSheet("""
            /* Base Theme - Slate 900 */
            QWidget {
                background: #0f172a;
                color: #f8fafc;
                font-family: 'Segoe UI', 'Inter', system-ui, sans-serif;
                font-size: 13px;
            }

            QLabel#statusLabel {
                background: #1e293b;
                border: 1px solid #334155;
                border-radius: 12px;
                padding: 4px 14px;
                color: #38bdf8;
                font-weight: 600;
                font-size: 11px;
            }

            QLineEdit, QTableWidget, QPlainTextEdit {
                background: #020617;
                border: 1px solid #1e293b;
                border-radius: 6px;
                padding: 6px;
                selection-background-color: #2563eb;
            }
            QLineEdit:focus {
                border: 1px solid #3b82f6;
                background: #0f172a;
            }

            QHeaderView::section {
                background: #1e293b;
                border: none;
                padding: 4px;
            }

            QPushButton {
                background: #1e293b;
                border: 1px solid #334155;
                border-radius: 6px;
                padding: 6px 16px;
                font-weight: 500;
                min-height: 24px;
            }
            QPushButton:hover {
                background: #334155;
                border-color: #475569;
            }
            QPushButton:disabled {
                color: #475569;
            }

            QPushButton#findButton {
                background: #2563eb;
                font-weight: bold;
            }
            QPushButton#findButton:hover {
                background: #3b82f6;
            }

            QProgressBar {
                border: 1px solid #1e293b;
                border-radius: 4px;
                text-align: center;
                background: #020617;
                height: 12px;
            }
            QProgressBar::chunk {
                background: #3b82f6;
                border-radius: 3px;
            }

            QSplitter::handle {
                background: #1e293b;
            }
        """)

    # Connect buttons and controller signals
    def _connect_signals(self) -> None:
        self.browse_btn.clicked.connect(self.on_browse_clicked)
        self.find_btn.clicked.connect(self.on_find_clicked)
        self.replace_btn.clicked.connect(self.on_replace_clicked)
        self.command_line_btn.clicked.connect(self.on_command_line_clicked)
        self.cancel_btn.clicked.connect(self.controller.cancel)
        self.find_edit.returnPressed.connect(self.find_btn.click)

        self.results_table.itemSelectionChanged.connect(self.on_result_selected)
        self.results_table.cellDoubleClicked.connect(self.on_result_double_clicked)
        self.results_table.customContextMenuRequested.connect(self.on_results_context_menu)

        self.controller.run_finished.connect(self.on_run_finished)
        self.controller.run_failed.connect(self.on_run_failed)

    def on_browse_clicked(self) -> None:
        directory = QFileDialog.getExistingDirectory(self, "Select directory", self.dir_edit.text())
        if directory:
            self.dir_edit.setText(directory)

    def _current_config(self, mode: RunMode) -> RunConfig:
        return RunConfig(root_dir=self.dir_edit.text(),
                         file_mask=self.mask_edit.text(),
                         find_text=self.find_edit.text(),
                         include_subdirectories=self.subdirs_checkbox.isChecked(),
                         replace_text=self.replace_edit.text() if mode is RunMode.REPLACE else None,
                         is_case_sensitive=self.case_sensitive_checkbox.isChecked(),
                         find_text_is_regex=self.regex_checkbox.isChecked())

    def on_find_clicked(self) -> None:
        self._start_run(RunMode.FIND)

    def on_replace_clicked(self) -> None:
        self._start_run(RunMode.REPLACE)

    def _start_run(self, mode: RunMode) -> None:
        config = self._current_config(mode)

        try:
            self.controller.start(config, mode, self.on_run_event)
        except FindReplaceError as e:
            # ConfigError or AlreadyRunningError: nothing was started
            self.status_label.setText(str(e))
            return

        self.last_config = config
        self.last_mode = mode
        self._prepare_results_table(mode)

        self.command_line_box.hide()
        self.stats_label.setText("")
        self.status_label.setText("Scanning...")
        self.progress.setRange(0, 0)
        self.progress.show()
        self._update_buttons()

    def _prepare_results_table(self, mode: RunMode) -> None:
        columns = REPLACE_COLUMNS if mode is RunMode.REPLACE else FIND_COLUMNS

        self.row_outcomes = []
        self.preview_box.clear()
        self.results_table.clearContents()
        self.results_table.setRowCount(0)
        self.results_table.setColumnCount(len(columns))
        self.results_table.setHorizontalHeaderLabels(columns)

        for column, name in enumerate(columns):
            self.results_table.setColumnWidth(column, COLUMN_WIDTHS[name])

    def _update_buttons(self) -> None:
        running = self.controller.is_running()

        self.find_btn.setEnabled(not running)
        self.replace_btn.setEnabled(not running)
        self.command_line_btn.setEnabled(not running)
        self.cancel_btn.setEnabled(running)

    # Called in the UI thread once per processed file.
    def on_run_event(self, event: RunEvent) -> None:
        stats = event.stats
        show_replace_stats = self.last_mode is RunMode.REPLACE

        if stats.total_files == 0:
            self.status_label.setText("No files found.")
        else:
            self.progress.setRange(0, stats.total_files)
            self.progress.setValue(stats.processed_files)
            self.status_label.setText(format_progress(stats, event.outcome))

        if should_show_outcome(event.outcome):
            self._add_result_row(event.outcome)

        self.stats_label.setText(format_stats(stats, show_replace_stats=show_replace_stats))

    def _add_result_row(self, outcome: FileOutcome) -> None:
        values = [outcome.file_name, outcome.relative_path, str(outcome.num_matches)]

        if self.last_mode is RunMode.REPLACE:
            values.append("Yes" if outcome.wrote_successfully else "No")
        values.append(outcome.error_message)

        row = self.results_table.rowCount()
        self.results_table.insertRow(row)

        for column, value in enumerate(values):
            item = QTableWidgetItem(value)
            if not outcome.is_success or (outcome.wrote_successfully is False and outcome.num_matches):
                item.setForeground(QColor("#f87171"))
            self.results_table.setItem(row, column, item)

        self.row_outcomes.append(outcome)

    def on_run_finished(self, state: RunState) -> None:
        self.progress.hide()
        self._update_buttons()

        if state is RunState.CANCELLED:
            self.status_label.setText("Cancelled")

        self.results_table.clearSelection()

    def on_run_failed(self, message: str) -> None:
        self.status_label.setText(message)

    def on_command_line_clicked(self) -> None:
        mode = RunMode.REPLACE if self.replace_edit.text() else RunMode.FIND
        config = self._current_config(mode)

        if not config.find_text or not config.file_mask or not os.path.isdir(config.root_dir):
            self.status_label.setText("Fill in Dir, File Mask and Find first")
            return

        self.command_line_box.setPlainText(cli.build_command_line(config))
        self.command_line_box.show()

    def _selected_outcome(self) -> FileOutcome | None:
        row = self.results_table.currentRow()

        if len(self.row_outcomes) > row >= 0:
            return self.row_outcomes[row]

        return None

    def _preview_pattern(self, outcome: FileOutcome):
        config = self.last_config

        # After a successful rewrite the file holds the replacement text, not the find text
        if self.last_mode is RunMode.REPLACE and outcome.wrote_successfully:
            if not config.replace_text or config.find_text_is_regex:
                return None
            return matcher.compile_pattern(config.replace_text,
                                           case_sensitive=config.is_case_sensitive,
                                           is_regex=False)

        return matcher.compile_pattern(config.find_text,
                                       case_sensitive=config.is_case_sensitive,
                                       is_regex=config.find_text_is_regex)

    # Build the preview on demand from the file's current content.
    def on_result_selected(self) -> None:
        self.preview_box.clear()
        self.preview_box.setExtraSelections([])

        outcome = self._selected_outcome()
        if outcome is None or not outcome.is_success or self.last_config is None:
            return

        try:
            text_file = textio.read_text_file(outcome.absolute_path)
            compiled_re = self._preview_pattern(outcome)
        except FindReplaceError as e:
            self.status_label.setText(str(e))
            return

        if compiled_re is None:
            self.preview_box.setPlainText("(no preview for rewritten file)")
            return

        spans = matcher.find_spans(text_file.content, compiled_re)
        preview = snippets.build_preview(text_file.content, spans)
        self.preview_box.setPlainText(preview)
        self._highlight_preview(compiled_re)

    def _highlight_preview(self, compiled_re) -> None:
        fmt = QTextCharFormat()
        fmt.setForeground(QColor("#5f9ea0"))
        fmt.setFontWeight(QFont.Weight.Bold)

        selections: list[QTextEdit.ExtraSelection] = []
        doc = self.preview_box.document()

        for span in matcher.find_spans(self.preview_box.toPlainText(), compiled_re):
            cursor = QTextCursor(doc)
            cursor.setPosition(span.offset)
            cursor.setPosition(span.end, QTextCursor.MoveMode.KeepAnchor)

            sel = QTextEdit.ExtraSelection()
            sel.cursor = cursor
            sel.format = fmt
            selections.append(sel)

        self.preview_box.setExtraSelections(selections)

    def on_result_double_clicked(self, row: int, _column: int) -> None:
        if len(self.row_outcomes) > row >= 0:
            self._open_path(self.row_outcomes[row].absolute_path)

    def on_results_context_menu(self, position) -> None:
        outcome = self._selected_outcome()
        if outcome is None:
            return

        menu = QMenu(self)
        open_action = menu.addAction("Open")
        open_folder_action = menu.addAction("Open Containing Folder")

        chosen = menu.exec(self.results_table.viewport().mapToGlobal(position))
        if chosen == open_action:
            self._open_path(outcome.absolute_path)
        elif chosen == open_folder_action:
            self._open_path(os.path.dirname(outcome.absolute_path))

    def _open_path(self, path: str) -> None:
        if not os.path.exists(path):
            self.status_label.setText("File not exists")
            return

        QDesktopServices.openUrl(QUrl.fromLocalFile(path))

    def closeEvent(self, event) -> None:
        # Let the file in flight finish so it is never left half-written
        self.controller.cancel()
        self.controller.wait()
        super().closeEvent(event)
