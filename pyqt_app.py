from __future__ import annotations

import logging
import math
import pathlib
import sys
from typing import List, Optional

import numpy as np
import pandas as pd
import psutil
import pyqtgraph as pg
from PyQt6 import QtCore, QtGui, QtWidgets

from crypto_usage.aggregation import TreeRow, build_tree
from crypto_usage.audit_loader import AuditEvent, AuditFormatError, load_events_from_path
from crypto_usage.sunburst_layout import PaintInstruction
from crypto_usage.sunburst_state import NavigationChange, SunburstController
from crypto_usage.usage_stats import NOT_LOADED_PERIOD, stats_frame

DEFAULT_AUDIT_PATH = pathlib.Path("audit.json")
LOG_NAME = "crypto_usage_app"
LOG_FILE_PATH = pathlib.Path.cwd() / "crypto_usage_app.log"
WINDOW_SIZE = (1100, 800)
CHART_SIZE = 700


def configure_logging() -> logging.Logger:
    logger = logging.getLogger(LOG_NAME)
    if not logger.handlers:
        logger.setLevel(logging.INFO)
        file_handler = logging.FileHandler(LOG_FILE_PATH, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.propagate = False
        # Library modules log under the package name; route them to the same file.
        package_logger = logging.getLogger("crypto_usage")
        package_logger.setLevel(logging.INFO)
        package_logger.addHandler(file_handler)
        package_logger.propagate = False
        logger.info("Logging initialised. Writing to %s", LOG_FILE_PATH)
    return logger


BASE_LOGGER = configure_logging()


class PandasTableModel(QtCore.QAbstractTableModel):
    def __init__(self, dataframe: Optional[pd.DataFrame] = None):
        super().__init__()
        self._dataframe = dataframe if dataframe is not None else pd.DataFrame()

    def set_dataframe(self, dataframe: pd.DataFrame):
        self.beginResetModel()
        self._dataframe = dataframe.copy()
        self.endResetModel()

    def rowCount(self, parent: QtCore.QModelIndex = QtCore.QModelIndex()) -> int:  # type: ignore[override]
        if parent.isValid():
            return 0
        return len(self._dataframe.index)

    def columnCount(self, parent: QtCore.QModelIndex = QtCore.QModelIndex()) -> int:  # type: ignore[override]
        if parent.isValid():
            return 0
        return len(self._dataframe.columns)

    def data(self, index: QtCore.QModelIndex, role: int = QtCore.Qt.ItemDataRole.DisplayRole):  # type: ignore[override]
        if not index.isValid():
            return None
        if role == QtCore.Qt.ItemDataRole.TextAlignmentRole and index.column() > 0:
            return QtCore.Qt.AlignmentFlag.AlignRight | QtCore.Qt.AlignmentFlag.AlignVCenter
        if role not in (QtCore.Qt.ItemDataRole.DisplayRole, QtCore.Qt.ItemDataRole.ToolTipRole):
            return None
        value = self._dataframe.iat[index.row(), index.column()]
        if pd.isna(value):
            return ""
        return str(value)

    def headerData(  # type: ignore[override]
        self, section: int, orientation: QtCore.Qt.Orientation, role: int = QtCore.Qt.ItemDataRole.DisplayRole
    ):
        if role != QtCore.Qt.ItemDataRole.DisplayRole:
            return None
        if orientation == QtCore.Qt.Orientation.Horizontal:
            try:
                return str(self._dataframe.columns[section])
            except IndexError:
                return None
        return str(section + 1)


def _qcolour(colour) -> QtGui.QColor:
    r, g, b = colour
    return QtGui.QColor.fromRgbF(float(r), float(g), float(b))


def _wedge_path(instruction: PaintInstruction) -> QtGui.QPainterPath:
    # Qt measures arcs in degrees, counter-clockwise on screen; layout angles run clockwise.
    cx, cy = instruction.center
    outer = instruction.outer_radius
    inner = instruction.inner_radius
    start = -math.degrees(instruction.start_angle)
    sweep = -math.degrees(instruction.end_angle - instruction.start_angle)

    path = QtGui.QPainterPath()
    if inner <= 0.0 and abs(sweep) >= 359.999:
        path.addEllipse(QtCore.QPointF(cx, cy), outer, outer)
        return path

    outer_rect = QtCore.QRectF(cx - outer, cy - outer, 2 * outer, 2 * outer)
    inner_rect = QtCore.QRectF(cx - inner, cy - inner, 2 * inner, 2 * inner)
    path.arcMoveTo(outer_rect, start)
    path.arcTo(outer_rect, start, sweep)
    path.arcTo(inner_rect, start + sweep, -sweep)
    path.closeSubpath()
    return path


class SunburstWidget(QtWidgets.QWidget):
    zoomChanged = QtCore.pyqtSignal(bool)
    viewChanged = QtCore.pyqtSignal()

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self.logger = BASE_LOGGER.getChild("chart")
        self.controller = SunburstController(CHART_SIZE, CHART_SIZE)
        self.setMinimumSize(320, 320)
        self.setMouseTracking(True)
        self.setSizePolicy(QtWidgets.QSizePolicy.Policy.Expanding, QtWidgets.QSizePolicy.Policy.Expanding)

    def sizeHint(self) -> QtCore.QSize:  # type: ignore[override]
        return QtCore.QSize(CHART_SIZE, CHART_SIZE)

    def set_events(self, events: List[AuditEvent]) -> None:
        self.controller.on_data_loaded(build_tree(events), events)
        self.zoomChanged.emit(False)
        self.viewChanged.emit()
        self.update()

    def set_selected_path(self, path: List[str]) -> None:
        if self.controller.on_external_selection(path):
            self.update()

    def reset_zoom(self) -> None:
        if self.controller.reset_zoom() is NavigationChange.ZOOM_OUT:
            self._after_navigation(False)

    def _after_navigation(self, zoomed: bool) -> None:
        self.zoomChanged.emit(zoomed)
        self.viewChanged.emit()
        self.update()

    # Qt events -----------------------------------------------------------
    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:  # type: ignore[override]
        self.controller.on_resize(event.size().width(), event.size().height())
        super().resizeEvent(event)

    def paintEvent(self, event: QtGui.QPaintEvent) -> None:  # type: ignore[override]
        painter = QtGui.QPainter(self)
        painter.setRenderHint(QtGui.QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), QtGui.QColor("#0f111a"))
        for instruction in self.controller.frame():
            path = _wedge_path(instruction)
            painter.fillPath(path, QtGui.QBrush(_qcolour(instruction.fill)))
            pen = QtGui.QPen(_qcolour(instruction.border.colour))
            pen.setWidthF(instruction.border.width)
            painter.strokePath(path, pen)
        painter.end()

    def mouseMoveEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        position = event.position()
        if self.controller.on_pointer_move(position.x(), position.y()):
            self.update()
        tooltip = self.controller.tooltip_at(position.x(), position.y())
        if tooltip:
            QtWidgets.QToolTip.showText(event.globalPosition().toPoint(), tooltip, self)
        else:
            QtWidgets.QToolTip.hideText()
        super().mouseMoveEvent(event)

    def leaveEvent(self, event: QtCore.QEvent) -> None:  # type: ignore[override]
        if self.controller.clear_hover():
            self.update()
        super().leaveEvent(event)

    def mouseReleaseEvent(self, event: QtGui.QMouseEvent) -> None:  # type: ignore[override]
        if event.button() == QtCore.Qt.MouseButton.LeftButton:
            position = event.position()
            change = self.controller.on_click(position.x(), position.y())
            if change is not NavigationChange.NONE:
                self.logger.info("Navigation: %s", change.value)
                self._after_navigation(change is NavigationChange.ZOOM_IN)
        super().mouseReleaseEvent(event)


class CryptoUsageApp(QtWidgets.QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Crypto Usage Analyzer")
        self.resize(*WINDOW_SIZE)

        self.logger = BASE_LOGGER.getChild("ui")
        self.logger.info("CryptoUsageApp initialising.")

        self._color_palette = ["#6C83FF", "#7F5AF0", "#2CB1BC", "#F25F5C", "#FFAD17", "#60D394", "#4D96FF"]
        self._boot_time = psutil.boot_time()

        self._setup_palette()
        self._apply_theme()

        pg.setConfigOption("background", "transparent")
        pg.setConfigOption("foreground", "#E7EBFF")
        pg.setConfigOption("antialias", True)

        self._build_ui()
        self._build_menu()
        self.logger.info("User interface initialised. Awaiting audit file.")

    # UI construction -----------------------------------------------------
    def _setup_palette(self) -> None:
        palette = QtGui.QPalette()
        base = QtGui.QColor("#0f111a")
        text = QtGui.QColor("#f4f6ff")
        palette.setColor(QtGui.QPalette.ColorRole.Window, base)
        palette.setColor(QtGui.QPalette.ColorRole.Base, base)
        palette.setColor(QtGui.QPalette.ColorRole.AlternateBase, QtGui.QColor("#161a28"))
        palette.setColor(QtGui.QPalette.ColorRole.Button, QtGui.QColor("#1c2032"))
        palette.setColor(QtGui.QPalette.ColorRole.WindowText, text)
        palette.setColor(QtGui.QPalette.ColorRole.ButtonText, text)
        palette.setColor(QtGui.QPalette.ColorRole.Text, text)
        palette.setColor(QtGui.QPalette.ColorRole.ToolTipBase, QtGui.QColor("#1a1e2f"))
        palette.setColor(QtGui.QPalette.ColorRole.ToolTipText, text)
        palette.setColor(QtGui.QPalette.ColorRole.Highlight, QtGui.QColor("#6C83FF"))
        palette.setColor(QtGui.QPalette.ColorRole.HighlightedText, QtGui.QColor("#ffffff"))
        self.setPalette(palette)

    def _apply_theme(self) -> None:
        self.setStyleSheet(
            """
            QWidget {
                background-color: #0f111a;
                color: #f4f6ff;
                font-family: "Cantarell", "Segoe UI", "Helvetica Neue", Arial;
                font-size: 12px;
            }
            QPushButton {
                background: qlineargradient(x1:0, y1:0, x2:1, y2:1,
                                            stop:0 #5a6ef5, stop:1 #7f5af0);
                border: none;
                border-radius: 8px;
                padding: 8px 14px;
                color: #ffffff;
                font-weight: 600;
            }
            QPushButton:hover {
                background: qlineargradient(x1:0, y1:0, x2:1, y2:1,
                                            stop:0 #6d7cff, stop:1 #956bff);
            }
            QTreeWidget, QTableView {
                background-color: rgba(18, 21, 32, 0.85);
                border: 1px solid rgba(108, 131, 255, 0.2);
                border-radius: 8px;
                selection-background-color: rgba(108, 131, 255, 0.32);
                selection-color: #ffffff;
            }
            QHeaderView::section {
                background-color: rgba(24, 27, 40, 0.9);
                color: #9aa5d9;
                border: none;
                padding: 6px;
            }
            QTabBar::tab {
                background-color: rgba(26, 30, 45, 0.65);
                color: #9aa5d9;
                padding: 10px 20px;
                border-top-left-radius: 10px;
                border-top-right-radius: 10px;
                margin-right: 4px;
                font-weight: 600;
            }
            QTabBar::tab:selected {
                background-color: rgba(40, 45, 70, 0.95);
                color: #f4f6ff;
            }
            QFrame#ZoomBanner {
                background-color: rgba(108, 131, 255, 0.22);
                border-radius: 8px;
            }
            QLabel#SectionTitle {
                font-size: 15px;
                font-weight: 600;
                color: #f3f5ff;
            }
            QLabel#PeriodLabel {
                color: #9aa5d9;
            }
            QSplitter::handle {
                background-color: rgba(108, 131, 255, 0.25);
                width: 4px;
            }
            """
        )

    def _build_ui(self) -> None:
        self.stack = QtWidgets.QStackedWidget()
        self.setCentralWidget(self.stack)

        self.stack.addWidget(self._build_empty_page())

        splitter = QtWidgets.QSplitter(QtCore.Qt.Orientation.Horizontal)
        splitter.setChildrenCollapsible(False)
        splitter.addWidget(self._build_stats_panel())
        splitter.addWidget(self._build_main_content())
        splitter.setStretchFactor(0, 0)
        splitter.setStretchFactor(1, 1)
        self.stack.addWidget(splitter)
        self.stack.setCurrentIndex(0)

        self.statusBar().showMessage(f"Open an audit file to begin. Logging to {LOG_FILE_PATH.name}.")

    def _build_menu(self) -> None:
        file_menu = self.menuBar().addMenu("&File")
        open_action = QtGui.QAction("Open File…", self)
        open_action.setShortcut(QtGui.QKeySequence.StandardKey.Open)
        open_action.triggered.connect(self.open_audit_file)
        file_menu.addAction(open_action)

        help_menu = self.menuBar().addMenu("&Help")
        about_action = QtGui.QAction("About Crypto Usage Analyzer", self)
        about_action.triggered.connect(self.show_about)
        help_menu.addAction(about_action)

    def _build_empty_page(self) -> QtWidgets.QWidget:
        page = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(page)
        layout.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)

        title = QtWidgets.QLabel("No Data Loaded")
        title.setObjectName("SectionTitle")
        title.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        description = QtWidgets.QLabel("Open an audit.json file to visualize crypto usage")
        description.setObjectName("PeriodLabel")
        description.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        open_button = QtWidgets.QPushButton("Open File")
        open_button.clicked.connect(self.open_audit_file)

        layout.addWidget(title)
        layout.addWidget(description)
        layout.addWidget(open_button, alignment=QtCore.Qt.AlignmentFlag.AlignCenter)
        return page

    def _build_stats_panel(self) -> QtWidgets.QWidget:
        container = QtWidgets.QWidget()
        container.setMinimumWidth(250)
        container.setMaximumWidth(500)
        layout = QtWidgets.QVBoxLayout(container)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(6)

        period_title = QtWidgets.QLabel("Sampling Period")
        period_title.setObjectName("SectionTitle")
        layout.addWidget(period_title)

        self.period_start_label = QtWidgets.QLabel(NOT_LOADED_PERIOD.start)
        self.period_end_label = QtWidgets.QLabel(NOT_LOADED_PERIOD.end)
        self.period_duration_label = QtWidgets.QLabel(NOT_LOADED_PERIOD.duration)
        for label in (self.period_start_label, self.period_end_label, self.period_duration_label):
            label.setObjectName("PeriodLabel")
            layout.addWidget(label)

        separator = QtWidgets.QFrame()
        separator.setFrameShape(QtWidgets.QFrame.Shape.HLine)
        layout.addWidget(separator)

        algorithms_title = QtWidgets.QLabel("Most Used Algorithms")
        algorithms_title.setObjectName("SectionTitle")
        layout.addWidget(algorithms_title)

        self.stats_model = PandasTableModel(stats_frame([]))
        self.stats_view = QtWidgets.QTableView()
        self.stats_view.setModel(self.stats_model)
        self.stats_view.verticalHeader().setVisible(False)
        self.stats_view.horizontalHeader().setSectionResizeMode(0, QtWidgets.QHeaderView.ResizeMode.Stretch)
        self.stats_view.setMinimumHeight(200)
        layout.addWidget(self.stats_view)

        self.stats_plot = pg.PlotWidget()
        self._configure_plot_widget(self.stats_plot)
        self.stats_plot.setMinimumHeight(180)
        layout.addWidget(self.stats_plot)
        layout.addStretch(1)
        return container

    def _build_main_content(self) -> QtWidgets.QWidget:
        self.tabs = QtWidgets.QTabWidget()
        self.tabs.setDocumentMode(True)

        sunburst_page = QtWidgets.QWidget()
        sunburst_layout = QtWidgets.QVBoxLayout(sunburst_page)
        sunburst_layout.setContentsMargins(0, 0, 0, 0)

        self.zoom_banner = QtWidgets.QFrame()
        self.zoom_banner.setObjectName("ZoomBanner")
        banner_layout = QtWidgets.QHBoxLayout(self.zoom_banner)
        banner_layout.addWidget(QtWidgets.QLabel("Click to reset the zoom"))
        banner_layout.addStretch(1)
        reset_button = QtWidgets.QPushButton("Reset")
        banner_layout.addWidget(reset_button)
        self.zoom_banner.setVisible(False)
        sunburst_layout.addWidget(self.zoom_banner)

        self.chart = SunburstWidget()
        reset_button.clicked.connect(self.chart.reset_zoom)
        self.chart.zoomChanged.connect(self.zoom_banner.setVisible)
        self.chart.viewChanged.connect(self.refresh_views)
        sunburst_layout.addWidget(self.chart, stretch=1)
        self.tabs.addTab(sunburst_page, "Sunburst")

        self.tree_widget = QtWidgets.QTreeWidget()
        self.tree_widget.setColumnCount(2)
        self.tree_widget.setHeaderLabels(["Operation", "Count"])
        self.tree_widget.header().setSectionResizeMode(0, QtWidgets.QHeaderView.ResizeMode.Stretch)
        self.tree_widget.itemSelectionChanged.connect(self._on_tree_selection_changed)
        self.tabs.addTab(self.tree_widget, "Event Tree")
        return self.tabs

    def _configure_plot_widget(self, plot: pg.PlotWidget) -> None:
        plot.setBackground("transparent")
        plot.setMenuEnabled(False)
        plot.setMouseEnabled(x=False, y=False)
        item = plot.getPlotItem()
        item.showGrid(x=False, y=True, alpha=0.12)
        for axis_name in ("left", "bottom"):
            axis = item.getAxis(axis_name)
            axis.setPen(pg.mkPen(color="#282c40"))
            axis.setTextPen(pg.mkPen("#d1d7ff"))

    def _color_for_index(self, index: int) -> str:
        return self._color_palette[index % len(self._color_palette)]

    # Data loading ----------------------------------------------------------
    def open_audit_file(self) -> None:
        file_path, _ = QtWidgets.QFileDialog.getOpenFileName(
            self, "Open Audit File", "", "JSON files (*.json);;All files (*)"
        )
        if not file_path:
            return
        self.logger.info("Selected audit file: %s", file_path)
        self.load_audit_file(pathlib.Path(file_path))

    def load_audit_file(self, path: pathlib.Path) -> bool:
        try:
            events = load_events_from_path(path)
        except AuditFormatError as exc:
            self.logger.warning("Audit file %s has an unexpected shape: %s", path, exc)
            self._show_error(str(exc))
            return False
        except Exception as exc:  # pylint: disable=broad-except
            self.logger.exception("Failed to load audit file %s", path)
            self._show_error(f"Failed to load audit file: {exc}")
            return False

        self.chart.set_events(events)
        self.stack.setCurrentIndex(1)
        if events:
            self.statusBar().showMessage(f"Loaded audit file: {path}", 5000)
        else:
            self.statusBar().showMessage(f"Audit file {path} contains no events.", 5000)
        self.logger.info("Audit file loaded from %s (%d top-level events).", path, len(events))
        return True

    # Views -------------------------------------------------------------------
    def refresh_views(self) -> None:
        self.update_tree_view()
        self.update_stats_view()
        self.update_period_labels()

    def update_tree_view(self) -> None:
        self.tree_widget.blockSignals(True)
        self.tree_widget.clear()
        for row in self.chart.controller.tree_rows():
            self.tree_widget.addTopLevelItem(self._tree_item(row))
        self.tree_widget.expandAll()
        self.tree_widget.blockSignals(False)

    def _tree_item(self, row: TreeRow) -> QtWidgets.QTreeWidgetItem:
        item = QtWidgets.QTreeWidgetItem([row.name, row.count])
        item.setTextAlignment(1, QtCore.Qt.AlignmentFlag.AlignRight | QtCore.Qt.AlignmentFlag.AlignVCenter)
        item.setData(0, QtCore.Qt.ItemDataRole.UserRole, list(row.path))
        for child in row.children:
            item.addChild(self._tree_item(child))
        return item

    def _on_tree_selection_changed(self) -> None:
        selected = self.tree_widget.selectedItems()
        if not selected:
            self.chart.set_selected_path([])
            return
        path = selected[0].data(0, QtCore.Qt.ItemDataRole.UserRole) or []
        self.chart.set_selected_path(list(path))

        controller = self.chart.controller
        node = controller.selected_node()
        if node is None:
            self.logger.warning("Selected path %s is not in the tree.", " / ".join(path))
            return
        message = f"Selected {node.name} (count {node.value})"
        if controller.selected_segment() is None:
            # Deeper than the last ring of the current view.
            message += ", not drawn at this zoom level"
        self.statusBar().showMessage(message, 5000)
        self.logger.info(message)

    def update_stats_view(self) -> None:
        df = stats_frame(self.chart.controller.stats_rows())
        self.stats_model.set_dataframe(df)
        self._plot_algorithms(df)

    def _plot_algorithms(self, df: pd.DataFrame) -> None:
        self.stats_plot.clear()
        item = self.stats_plot.getPlotItem()
        if df.empty:
            item.setTitle("<span style='color:#8a93c9;font-size:10pt;'>No public-key operations recorded.</span>")
            return
        item.setTitle("")
        x = np.arange(len(df))
        counts = df["Count"].astype(float).values
        brushes = [pg.mkBrush(self._color_for_index(idx)) for idx in range(len(df))]
        bars = pg.BarGraphItem(x=x, height=counts, width=0.6, brushes=brushes, pen=pg.mkPen("#1a1f33", width=1))
        self.stats_plot.addItem(bars)
        axis = item.getAxis("bottom")
        axis.setTicks([[(idx, df.iloc[idx]["Algorithm"]) for idx in range(len(df))]])
        self.stats_plot.setYRange(0, max(counts) * 1.2 if len(counts) else 1)
        self.stats_plot.getViewBox().setLimits(xMin=-1, xMax=len(df))

    def update_period_labels(self) -> None:
        labels = self.chart.controller.period_display(self._boot_time)
        self.period_start_label.setText(labels.start)
        self.period_end_label.setText(labels.end)
        self.period_duration_label.setText(labels.duration)

    def show_about(self) -> None:
        QtWidgets.QMessageBox.about(
            self,
            "About Crypto Usage Analyzer",
            "<b>Crypto Usage Analyzer</b><br>"
            "Visualize cryptographic operations with interactive sunburst charts.",
        )

    def _show_error(self, message: str) -> None:
        self.logger.error(message)
        QtWidgets.QMessageBox.critical(self, "Error", message)


def main() -> None:
    logger = BASE_LOGGER.getChild("runtime")
    logger.info("Starting QApplication event loop.")
    app = QtWidgets.QApplication(sys.argv)
    window = CryptoUsageApp()

    requested = pathlib.Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_AUDIT_PATH
    if requested.exists():
        window.load_audit_file(requested)
    elif len(sys.argv) > 1:
        logger.warning("Audit file %s does not exist.", requested)

    window.show()
    exit_code = app.exec()
    logger.info("Application closed with exit code %s", exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
