from __future__ import annotations

from pathlib import Path

from PIL.ImageQt import ImageQt
from PyQt6 import QtCore, QtGui, QtWidgets

from . import __version__
from .config import AppConfig
from .loader import ImageDecodeError, LoadTracker, load_image
from .logger import setup_logging
from .paths import DOWNLOAD_FILENAME
from .renderer import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    RenderContext,
    RenderParams,
    default_background,
)
from .share import SharePayload, ShareError, export_png, share_image


class WorkerDecodeImage(QtCore.QObject):
    finished = QtCore.pyqtSignal(object, int)  # (PIL image, token)
    error = QtCore.pyqtSignal(str, int)

    def __init__(self, path: str, token: int):
        super().__init__()
        self.path = path
        self.token = token

    @QtCore.pyqtSlot()
    def run(self):
        try:
            img = load_image(self.path)
        except ImageDecodeError as e:
            self.error.emit(str(e), self.token)
            return
        except Exception:
            # anything else must still end the thread and reach the UI
            import traceback
            self.error.emit(traceback.format_exc(), self.token)
            return
        self.finished.emit(img, self.token)


def clipboard_share(payload: SharePayload) -> None:
    """Desktop stand-in for a share sheet: put the PNG on the clipboard."""
    clip = QtWidgets.QApplication.clipboard()
    if clip is None:
        raise ShareError("No system clipboard available")
    qimg = QtGui.QImage.fromData(payload.data, "PNG")
    if qimg.isNull():
        raise ShareError(f"Could not prepare {payload.filename} for the clipboard")
    clip.setImage(qimg)


class TemplateWindow(QtWidgets.QMainWindow):
    def __init__(self, cfg: AppConfig):
        super().__init__()
        self.cfg = cfg
        self.log = setup_logging(cfg.log_level, cfg.log_file)
        self.context = RenderContext(background=default_background(cfg.background_seed))
        self.tracker = LoadTracker()
        # Keep strong refs until finished to avoid QThread destroyed warning
        self._jobs: list[tuple[QtCore.QThread, WorkerDecodeImage]] = []
        self.setWindowTitle(f"Rate Template v{__version__}")
        self.resize(1000, 760)
        self._build()
        self._apply_style()
        self._render()

    def _build(self):
        central = QtWidgets.QWidget()
        self.setCentralWidget(central)
        layout = QtWidgets.QHBoxLayout(central)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(12)

        form_group = QtWidgets.QGroupBox("Template")
        form_group.setObjectName("design_group")
        fl = QtWidgets.QFormLayout(form_group)

        # background image row
        self.ed_bg_img = QtWidgets.QLineEdit()
        self.ed_bg_img.setReadOnly(True)
        self.ed_bg_img.setPlaceholderText("Default gradient")
        btn_img = QtWidgets.QPushButton("Choose image")
        btn_img.clicked.connect(self._choose_bg_image)
        himg = QtWidgets.QHBoxLayout(); himg.setContentsMargins(0, 0, 0, 0)
        himg.addWidget(self.ed_bg_img, 1); himg.addWidget(btn_img)
        fl.addRow("Background", self._wrap(himg))

        # opacity slider 0..100 shown as 0.0..1.0
        self.sl_opacity = QtWidgets.QSlider(QtCore.Qt.Orientation.Horizontal)
        self.sl_opacity.setRange(0, 100)
        self.sl_opacity.setValue(int(round(self.cfg.default_opacity * 100)))
        self.lb_opacity = QtWidgets.QLabel()
        self.sl_opacity.valueChanged.connect(self._on_opacity_changed)
        hop = QtWidgets.QHBoxLayout(); hop.setContentsMargins(0, 0, 0, 0)
        hop.addWidget(self.sl_opacity, 1); hop.addWidget(self.lb_opacity)
        fl.addRow("Opacity", self._wrap(hop))
        self._update_opacity_label()

        self.date_edit = QtWidgets.QDateEdit(QtCore.QDate.currentDate())
        self.date_edit.setCalendarPopup(True)
        self.date_edit.setDisplayFormat("yyyy-MM-dd")
        self.date_edit.dateChanged.connect(lambda *_: self._render())
        fl.addRow("Date", self.date_edit)

        self.ed_text_color = QtWidgets.QLineEdit(self.cfg.default_text_color)
        self.ed_text_color.textChanged.connect(lambda *_: self._render())
        fl.addRow("Text color", self._attach_color_button(self.ed_text_color))

        self.table_edit = QtWidgets.QPlainTextEdit(self.cfg.default_table_text)
        self.table_edit.setPlaceholderText("One entry per line, e.g.\n$10 Basic\n$20 Standard")
        self.table_edit.textChanged.connect(self._render)
        fl.addRow("Table rows", self.table_edit)

        self.btn_download = QtWidgets.QPushButton("Download")
        self.btn_download.setEnabled(False)
        self.btn_download.clicked.connect(self._download)
        self.btn_share = QtWidgets.QPushButton("Share")
        self.btn_share.setEnabled(False)
        self.btn_share.clicked.connect(self._share)
        hbtn = QtWidgets.QHBoxLayout(); hbtn.setContentsMargins(0, 0, 0, 0)
        hbtn.addWidget(self.btn_download); hbtn.addWidget(self.btn_share)
        fl.addRow(self._wrap(hbtn))

        self.status = QtWidgets.QLabel("")
        self.status.setWordWrap(True)
        fl.addRow(self.status)

        layout.addWidget(form_group, 1)

        self.preview_label = QtWidgets.QLabel()
        self.preview_label.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        self.preview_label.setFixedSize(CANVAS_WIDTH, CANVAS_HEIGHT)
        sa = QtWidgets.QScrollArea()
        sa.setFrameShape(QtWidgets.QFrame.Shape.NoFrame)
        sa.setWidget(self.preview_label)
        layout.addWidget(sa, 1)

    def _wrap(self, layout: QtWidgets.QLayout) -> QtWidgets.QWidget:
        w = QtWidgets.QWidget()
        w.setLayout(layout)
        return w

    def _attach_color_button(self, edit: QtWidgets.QLineEdit) -> QtWidgets.QWidget:
        btn = QtWidgets.QPushButton("…")
        btn.setFixedWidth(28)
        btn.clicked.connect(lambda: self._pick_color_into(edit))
        edit.textChanged.connect(lambda *_: self._apply_color_swatch(edit))
        lay = QtWidgets.QHBoxLayout(); lay.setContentsMargins(0, 0, 0, 0)
        lay.addWidget(edit); lay.addWidget(btn)
        self._apply_color_swatch(edit)
        return self._wrap(lay)

    def _apply_color_swatch(self, edit: QtWidgets.QLineEdit) -> None:
        txt = (edit.text() or "").strip()
        c = QtGui.QColor(txt if txt else "#000000")
        if not c.isValid():
            edit.setStyleSheet("")
            return
        # pick a readable foreground for the swatch
        luminance = (0.299 * c.red() + 0.587 * c.green() + 0.114 * c.blue())
        fg = "#000000" if luminance > 186 else "#FFFFFF"
        edit.setStyleSheet(f"QLineEdit {{ background: {c.name()}; color: {fg}; border: 1px solid #333; border-radius: 6px; padding: 4px 6px; }}")

    def _pick_color_into(self, edit: QtWidgets.QLineEdit):
        c = QtWidgets.QColorDialog.getColor(QtGui.QColor(edit.text().strip() or "#000000"), self, "Choose color")
        if c.isValid():
            edit.setText(c.name())

    def _on_opacity_changed(self, *_):
        self._update_opacity_label()
        self._render()

    def _update_opacity_label(self):
        self.lb_opacity.setText(f"{self._opacity():.2f}")

    def _opacity(self) -> float:
        return self.sl_opacity.value() / 100.0

    def _params(self) -> RenderParams:
        return RenderParams.from_inputs(
            opacity=self._opacity(),
            table_text=self.table_edit.toPlainText(),
            text_color=self.ed_text_color.text().strip(),
            date_text=self.date_edit.date().toString("yyyy-MM-dd"),
            font_family=self.cfg.font_family,
            font_path=self.cfg.font_path,
        )

    def _render(self):
        img = self.context.render(self._params())
        if img is None:
            return
        qimg = ImageQt(img).copy()
        self.preview_label.setPixmap(QtGui.QPixmap.fromImage(qimg))
        self.btn_download.setEnabled(True)
        self.btn_share.setEnabled(True)

    # ----- background loading -----
    def _choose_bg_image(self):
        fn, _ = QtWidgets.QFileDialog.getOpenFileName(
            self, "Choose background", str(Path.cwd()), "Image Files (*.png *.jpg *.jpeg *.webp *.bmp *.gif)"
        )
        if fn:
            self.ed_bg_img.setText(fn)
            self._start_decode(fn)

    def _start_decode(self, path: str):
        token = self.tracker.begin()
        thread = QtCore.QThread()
        worker = WorkerDecodeImage(path, token)
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(self._on_decoded)
        worker.error.connect(self._on_decode_error)
        worker.finished.connect(thread.quit)
        worker.error.connect(thread.quit)
        thread.finished.connect(worker.deleteLater)
        self._jobs.append((thread, worker))
        thread.finished.connect(lambda: self._jobs.remove((thread, worker)) if (thread, worker) in self._jobs else None)
        self.status.setText(f"Loading {Path(path).name} ...")
        thread.start()

    def _on_decoded(self, img, token: int):
        if not self.tracker.is_current(token):
            self.log.debug("Discarding stale background load #%s", token)
            return
        self.context.set_background(img)
        self.status.setText("")
        self._render()

    def _on_decode_error(self, msg: str, token: int):
        if not self.tracker.is_current(token):
            return
        self.log.error("Background load failed: %s", msg)
        self.context.set_background(None)
        self.btn_download.setEnabled(False)
        self.btn_share.setEnabled(False)
        self.status.setText("Could not load the selected image.")
        QtWidgets.QMessageBox.warning(self, "Background", msg)

    # ----- output -----
    def _download(self):
        img = self.context.last_image
        if img is None:
            return
        start = str(self.cfg.output_folder / DOWNLOAD_FILENAME)
        fn, _ = QtWidgets.QFileDialog.getSaveFileName(self, "Save image", start, "PNG (*.png)")
        if not fn:
            return
        try:
            out = export_png(img, fn)
        except OSError as e:
            self.log.error("Export failed: %s", e)
            QtWidgets.QMessageBox.critical(self, "Save failed", str(e))
            return
        self.cfg.output_folder = out.parent
        self.cfg.save()
        self.status.setText(f"Saved → {out}")

    def _share(self):
        img = self.context.last_image
        if img is None:
            return
        try:
            outcome = share_image(img, clipboard_share, self.cfg.output_folder)
        except OSError as e:
            self.log.error("Share fallback failed: %s", e)
            QtWidgets.QMessageBox.critical(self, "Share failed", str(e))
            return
        if outcome.shared:
            self.status.setText("Image copied to the clipboard.")
        else:
            self.status.setText(f"Saved → {outcome.path}")
            QtWidgets.QMessageBox.information(self, "Share", outcome.message)

    def _apply_style(self):
        css = """
        QMainWindow { background: #f3f3f3; }
        QWidget { color: #111; font-size: 14px; }

        QLineEdit, QDateEdit {
            min-height: 32px; background: #ffffff; color: #111; border: 1px solid #c9c9c9; border-radius: 6px; padding: 4px 6px;
        }
        QPlainTextEdit { background: #ffffff; color: #111; border: 1px solid #c9c9c9; border-radius: 6px; padding: 6px; }
        QLineEdit:focus, QDateEdit:focus, QPlainTextEdit:focus { border-color: #0e639c; }

        QPushButton { background: #0e639c; color: #ffffff; border: none; padding: 8px 14px; border-radius: 8px; min-height: 36px; }
        QPushButton:hover { background: #1177bb; }
        QPushButton:pressed { background: #0b4f7a; padding-top: 9px; padding-bottom: 7px; }
        QPushButton:disabled { background: #bdbdbd; color: #777; }

        QSlider::groove:horizontal { height: 6px; background: #cfcfcf; border-radius: 3px; }
        QSlider::handle:horizontal { background: #0e639c; width: 16px; margin: -6px 0; border-radius: 8px; }

        QGroupBox { border: 1px solid #c9c9c9; border-radius: 6px; margin-top: 12px; }
        QGroupBox::title { subcontrol-origin: margin; left: 8px; padding: 0 4px; }
        """
        self.setStyleSheet(css)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:
        # Invalidate pending decodes and wait for their threads
        self.tracker.cancel()
        try:
            for thread, _worker in list(self._jobs):
                thread.quit()
                thread.wait(2000)
        finally:
            super().closeEvent(event)
