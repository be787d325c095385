"""
main.py

Mapdraw - navigable image maps with drawable hotspots.

A map is an image with rectangular hotspots.  A hotspot either opens another
map (drilling down into a detail view) or an external URL.  In edit mode new
hotspots are drawn directly on the image, and each map hotspot creates the
map it links to.

Features:
- Open and export map documents (JSON keyed by map id)
- Click-through navigation with a back history
- Edit mode: add, edit and delete hotspots, change the root image
- Wheel zoom about the cursor; each map remembers its zoom and pan
"""

from __future__ import annotations

import base64
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import unquote_to_bytes

from PyQt6.QtCore import QUrl
from PyQt6.QtGui import QAction, QDesktopServices, QKeySequence, QPixmap
from PyQt6.QtNetwork import QNetworkAccessManager, QNetworkReply, QNetworkRequest
from PyQt6.QtWidgets import (
    QApplication,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QFormLayout,
    QInputDialog,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from canvas import MapScene, MapView
from debug_trace import close_log, configure_logging, trace, trace_call, trace_exception
from edit_actions import EditAction, EditState
from errors import OpResult
from geometry import ScreenRect, ViewTransform
from models import DisplayData, Hotspot, LinkType, UrlTarget
from session import ImageLoadToken, MapdrawSession, OpenUrl, PendingHotspot
from settings import SettingsManager, get_settings
from utils import image_size, resolve_image_path

log = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# Hotspot form
# -------------------------------------------------------------------------

class HotspotDialog(QDialog):
    """
    Form for a new or edited hotspot.

    Args:
        parent: Owner window.
        suggested_map_id: Prefilled id for a map link (new hotspots only).
        hotspot: Existing hotspot when editing; None when creating.
    """

    def __init__(self, parent: QWidget, suggested_map_id: str = "", hotspot: Optional[Hotspot] = None):
        super().__init__(parent)
        self._editing = hotspot is not None
        self.setWindowTitle("Edit Hotspot" if self._editing else "Create New Hotspot")

        self.link_type = QComboBox()
        self.link_type.addItem("Link to map", LinkType.MAP)
        self.link_type.addItem("Link to URL", LinkType.URL)
        self.title_edit = QLineEdit()
        self.title_edit.setPlaceholderText("Optional label shown as tooltip")
        self.map_id_edit = QLineEdit(suggested_map_id)
        self.map_id_edit.setPlaceholderText("Enter a unique ID (e.g., detail_view_1)")
        self.image_url_edit = QLineEdit()
        self.image_url_edit.setPlaceholderText("Enter image URL (http://... or /images/...)")
        self.linked_url_edit = QLineEdit()
        self.linked_url_edit.setPlaceholderText("https://...")
        self.url_target = QComboBox()
        self.url_target.addItem("New window", UrlTarget.BLANK)
        self.url_target.addItem("Same window", UrlTarget.SELF)

        form = QFormLayout()
        form.addRow("Link type:", self.link_type)
        form.addRow("Title:", self.title_edit)
        form.addRow("Map ID:", self.map_id_edit)
        form.addRow("New map image URL:", self.image_url_edit)
        form.addRow("URL:", self.linked_url_edit)
        form.addRow("Open in:", self.url_target)
        self._form = form

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Save | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)

        layout = QVBoxLayout(self)
        layout.addLayout(form)
        layout.addWidget(buttons)

        if hotspot is not None:
            self.title_edit.setText(hotspot.title or "")
            self.link_type.setCurrentIndex(0 if hotspot.is_map_link else 1)
            self.map_id_edit.setText(hotspot.link_to_map_id or "")
            self.linked_url_edit.setText(hotspot.linked_url or "")
            self.url_target.setCurrentIndex(0 if hotspot.url_target != UrlTarget.SELF else 1)
            self.image_url_edit.setPlaceholderText("Only needed when linking to a new map ID")

        self.link_type.currentIndexChanged.connect(self._update_visibility)
        self._update_visibility()

    def _update_visibility(self):
        is_map = self.link_type.currentData() == LinkType.MAP
        for widget, visible in (
            (self.map_id_edit, is_map),
            (self.image_url_edit, is_map),
            (self.linked_url_edit, not is_map),
            (self.url_target, not is_map),
        ):
            self._form.setRowVisible(widget, visible)

    def fields(self) -> Dict[str, Any]:
        """Form content as camelCase fields for the session."""
        link_type = self.link_type.currentData()
        out: Dict[str, Any] = {"linkType": link_type, "title": self.title_edit.text()}
        if link_type == LinkType.MAP:
            out["linkToMapId"] = self.map_id_edit.text().strip()
            if self.image_url_edit.text().strip():
                out["newMapImageUrl"] = self.image_url_edit.text().strip()
        else:
            out["linkedUrl"] = self.linked_url_edit.text().strip()
            out["urlTarget"] = self.url_target.currentData()
        return out


# -------------------------------------------------------------------------
# Main window
# -------------------------------------------------------------------------

class MainWindow(QMainWindow):
    """Main application window for Mapdraw.

    Args:
        settings_manager: The SettingsManager instance for application settings.
    """

    def __init__(self, settings_manager: SettingsManager):
        super().__init__()
        self.settings_manager = settings_manager
        self.setWindowTitle("Mapdraw")

        self.session = MapdrawSession(settings_manager.settings)
        self._shown_map_id: Optional[str] = None
        self._shown_image_url: Optional[str] = None
        self._pending_image: Optional[ImageLoadToken] = None

        # Scene and view
        self.scene = MapScene(self.session.canvas)
        self.scene.configure_linkage(self._on_hotspot_clicked)
        self.view = MapView(
            self.scene, self._on_rect_drawn, self._on_view_transform_changed,
            settings=self.session.settings,
        )
        self.setCentralWidget(self.view)

        self._network = QNetworkAccessManager(self)

        self._build_menus()
        self._build_toolbar()

        # Listeners
        self.session.navigation.add_listener(self._on_display_changed)
        self.session.edit.add_listener(self._on_edit_state_changed)

        self._update_actions()
        self.statusBar().showMessage("Open a map document or start drawing on the default map.")

    # ---- UI construction ----

    def _build_menus(self):
        """Build the application menu bar."""
        file_menu = self.menuBar().addMenu("&File")

        self.open_act = QAction("&Open Map Document...", self)
        self.open_act.setShortcut(QKeySequence.StandardKey.Open)
        self.open_act.triggered.connect(self.open_document_dialog)
        file_menu.addAction(self.open_act)

        self.export_act = QAction("&Export JSON...", self)
        self.export_act.setShortcut(QKeySequence.StandardKey.Save)
        self.export_act.triggered.connect(self.export_document_dialog)
        file_menu.addAction(self.export_act)

        self.new_act = QAction("&New (Default Map)", self)
        self.new_act.setShortcut(QKeySequence.StandardKey.New)
        self.new_act.triggered.connect(self.load_default_document)
        file_menu.addAction(self.new_act)

        file_menu.addSeparator()
        quit_act = QAction("&Quit", self)
        quit_act.setShortcut(QKeySequence.StandardKey.Quit)
        quit_act.triggered.connect(self.close)
        file_menu.addAction(quit_act)

        view_menu = self.menuBar().addMenu("&View")
        self.zoom_in_act = QAction("Zoom &In", self)
        self.zoom_in_act.setShortcut(QKeySequence.StandardKey.ZoomIn)
        self.zoom_in_act.triggered.connect(self._zoom_in)
        view_menu.addAction(self.zoom_in_act)
        self.zoom_out_act = QAction("Zoom &Out", self)
        self.zoom_out_act.setShortcut(QKeySequence.StandardKey.ZoomOut)
        self.zoom_out_act.triggered.connect(self._zoom_out)
        view_menu.addAction(self.zoom_out_act)
        self.zoom_fit_act = QAction("&Fit", self)
        self.zoom_fit_act.setShortcut("Ctrl+0")
        self.zoom_fit_act.triggered.connect(self._zoom_fit)
        view_menu.addAction(self.zoom_fit_act)

    def _build_toolbar(self):
        tb = QToolBar("Map")
        tb.setMovable(False)
        self.addToolBar(tb)

        self.back_act = QAction("Back", self)
        self.back_act.setShortcut(QKeySequence.StandardKey.Back)
        self.back_act.triggered.connect(self.navigate_back)
        tb.addAction(self.back_act)
        tb.addSeparator()

        self.edit_mode_act = QAction("Enter Edit Mode", self)
        self.edit_mode_act.setCheckable(True)
        self.edit_mode_act.setShortcut("Ctrl+E")
        self.edit_mode_act.triggered.connect(self._toggle_edit_mode)
        tb.addAction(self.edit_mode_act)

        self.action_acts: Dict[str, QAction] = {}
        for action in (EditAction.DRAWING, EditAction.SELECTING_FOR_DELETE,
                       EditAction.SELECTING_FOR_EDIT, EditAction.CHANGING_ROOT_IMAGE):
            act = QAction(EditAction.LABELS[action], self)
            act.setCheckable(True)
            act.triggered.connect(lambda checked, a=action: self._on_action_button(a, checked))
            tb.addAction(act)
            self.action_acts[action] = act

        tb.addSeparator()
        tb.addAction(self.export_act)

    # ---- result reporting ----

    def _report(self, result: OpResult, success_msg: str = "") -> bool:
        """Show errors and warnings of ``result`` in the status bar."""
        if not result.ok:
            self.statusBar().showMessage(f"Error: {result.error}", 8000)
            return False
        if result.warnings:
            self.statusBar().showMessage(
                "; ".join(result.warnings[:3]) + (" ..." if len(result.warnings) > 3 else ""), 8000
            )
        elif success_msg:
            self.statusBar().showMessage(success_msg, 4000)
        return True

    def _update_actions(self):
        session = self.session
        edit_on = session.edit.is_edit_mode
        self.back_act.setEnabled(session.can_go_back and not edit_on)
        self.edit_mode_act.setEnabled(session.admin_enabled)
        self.edit_mode_act.setChecked(edit_on)
        self.edit_mode_act.setText("Exit Edit Mode" if edit_on else "Enter Edit Mode")
        for action, act in self.action_acts.items():
            act.setVisible(edit_on)
            act.setChecked(session.edit.action == action
                           or (action == EditAction.SELECTING_FOR_EDIT and session.edit.action == EditAction.EDITING))
        self.action_acts[EditAction.CHANGING_ROOT_IMAGE].setEnabled(session.navigation.is_on_root)

    # ---- documents ----

    def load_default_document(self):
        self._shown_map_id = None
        self._report(self.session.load_default_document(), "Loaded default map")

    def open_document_dialog(self):
        """Open a map document from the workspace directory."""
        workspace = str(self.settings_manager.get_workspace_dir())
        token = self.session.begin_document_load()
        path, _ = QFileDialog.getOpenFileName(self, "Open Map Document", workspace, "JSON (*.json)")
        if not path:
            return
        self.open_document(path, token)

    @trace_call("DOC")
    def open_document(self, path: str, token: Optional[int] = None):
        self._shown_map_id = None
        result = self.session.open_document(path, token)
        if not result.ok:
            QMessageBox.critical(self, "Open failed", result.error)
            return
        if result.value is not None:
            self.settings_manager.settings.general.last_document = str(path)
        self._report(result, f"Opened map document: {path}")

    def export_document_dialog(self):
        """Export the current document as pretty-printed JSON."""
        export = self.settings_manager.settings.export
        if self.session.document_path is not None:
            initial = str(self.session.document_path.parent / export.filename)
        else:
            initial = str(self.settings_manager.get_workspace_dir() / export.filename)
        path, _ = QFileDialog.getSaveFileName(self, "Export JSON", initial, "JSON (*.json)")
        if not path:
            return
        result = self.session.save_document(path)
        if not result.ok:
            QMessageBox.critical(self, "Export failed", result.error)
            return
        self._report(result, f"Exported map data: {path}")

    # ---- navigation ----

    def navigate_back(self):
        self._report(self.session.navigate_back())

    def _on_display_changed(self, display: Optional[DisplayData], can_go_back: bool):
        if display is None:
            self._shown_map_id = None
            self._shown_image_url = None
            self._pending_image = None
            self.scene.show_map(None)
            if self.session.navigation.error:
                self.statusBar().showMessage(f"Error: {self.session.navigation.error}", 8000)
        elif display.map_id != self._shown_map_id:
            self._shown_map_id = display.map_id
            self._shown_image_url = display.image_url
            self.scene.show_map(display)
            self._load_image(display)
        else:
            self.scene.update_hotspots(display)
            if display.image_url != self._shown_image_url:
                self._shown_image_url = display.image_url
                self._load_image(display)
        self._update_actions()

    # ---- image loading ----

    def _load_image(self, display: DisplayData):
        """Load the map image; remote images arrive asynchronously."""
        token = self.session.begin_image_load(display.map_id)
        self._pending_image = token
        url = display.image_url

        if url.startswith("http://") or url.startswith("https://"):
            reply = self._network.get(QNetworkRequest(QUrl(url)))
            reply.finished.connect(lambda r=reply, t=token: self._on_image_reply(r, t))
            self.statusBar().showMessage(f"Loading {url} ...")
            return

        pixmap = QPixmap()
        if url.startswith("data:"):
            pixmap.loadFromData(_decode_data_uri(url))
        else:
            base_dir = self.session.document_path.parent if self.session.document_path else None
            path = resolve_image_path(url, base_dir)
            if path is not None:
                try:
                    natural = image_size(path)
                except OSError as e:
                    log.warning("Cannot read image %s: %s", path, e)
                else:
                    pixmap.load(str(path))
                    self._finish_image(token, pixmap, natural)
                    return
        self._finish_image(token, pixmap, (pixmap.width(), pixmap.height()))

    def _on_image_reply(self, reply: QNetworkReply, token: ImageLoadToken):
        pixmap = QPixmap()
        if reply.error() == QNetworkReply.NetworkError.NoError:
            pixmap.loadFromData(reply.readAll())
        else:
            log.warning("Image download failed: %s", reply.errorString())
        reply.deleteLater()
        self._finish_image(token, pixmap, (pixmap.width(), pixmap.height()))

    def _finish_image(self, token: ImageLoadToken, pixmap: QPixmap, natural):
        if self.session.image_load_is_stale(token):
            return
        vp = self.view.viewport().rect()
        result = self.session.finish_image_load(token, natural, (vp.width(), vp.height()))
        if not result.ok:
            self.scene.show_message(f"Could not load image for '{token.map_id}'")
            self._report(result)
            return
        if not pixmap.isNull():
            self.scene.set_background(pixmap)
        transform = result.value or self.session.current_transform()
        self._pending_image = None
        self.view.apply_view_transform(transform)
        self.statusBar().clearMessage()

    def _on_view_transform_changed(self, transform: ViewTransform):
        # Until the image is fitted the view still shows the previous map's zoom
        if self._pending_image is None:
            self.session.set_view_transform(transform)

    # ---- canvas events ----

    def _on_hotspot_clicked(self, hotspot_id: str):
        action = self.session.edit.action
        result = self.session.click_hotspot(hotspot_id)
        if not self._report(result):
            return
        value = result.value
        if isinstance(value, OpenUrl):
            QDesktopServices.openUrl(QUrl(value.url))
        elif action == EditAction.SELECTING_FOR_DELETE and value is not None:
            self._confirm_deletion(value)
        elif action == EditAction.SELECTING_FOR_EDIT and isinstance(value, Hotspot):
            self._edit_hotspot(value)

    def _on_rect_drawn(self, rect: ScreenRect, transform: ViewTransform):
        result = self.session.draw_rect(rect, transform)
        if not self._report(result) or result.value is None:
            return
        pending: PendingHotspot = result.value
        dialog = HotspotDialog(self, suggested_map_id=pending.suggested_map_id)
        while dialog.exec() == QDialog.DialogCode.Accepted:
            submitted = self.session.submit_new_hotspot(dialog.fields())
            if submitted.ok:
                self._report(submitted, f"Added hotspot '{pending.hotspot_id}'")
                return
            QMessageBox.warning(self, "Cannot save hotspot", submitted.error)
        self.session.cancel_new_hotspot()

    def _confirm_deletion(self, hotspot_id: str):
        answer = QMessageBox.question(
            self, "Delete hotspot",
            f"Delete hotspot '{hotspot_id}'?\n"
            "A map it links to is removed too when nothing else links to it.",
        )
        if answer == QMessageBox.StandardButton.Yes:
            self._report(self.session.confirm_deletion(hotspot_id), f"Deleted hotspot '{hotspot_id}'")
        else:
            self.session.clear_deletion_selection()

    def _edit_hotspot(self, hotspot: Hotspot):
        dialog = HotspotDialog(self, hotspot=hotspot)
        while dialog.exec() == QDialog.DialogCode.Accepted:
            result = self.session.submit_edit(dialog.fields())
            if result.ok:
                self._report(result, f"Updated hotspot '{hotspot.id}'")
                return
            QMessageBox.warning(self, "Cannot update hotspot", result.error)
        self.session.cancel_edit()

    # ---- edit mode ----

    def _toggle_edit_mode(self):
        self._report(self.session.toggle_edit_mode())
        self._update_actions()

    def _on_action_button(self, action: str, checked: bool):
        target = action if checked else EditAction.IDLE
        if not self._report(self.session.set_edit_action(target)):
            self._update_actions()
            return
        if action == EditAction.CHANGING_ROOT_IMAGE and checked:
            self._change_root_image()

    def _change_root_image(self):
        root_id = self.session.store.root_id
        node = self.session.store.get(root_id) if root_id else None
        url, ok = QInputDialog.getText(
            self, "Change Root Image", "New image URL:", text=node.image_url if node else ""
        )
        if ok:
            self._report(self.session.change_map_image(root_id, url), "Root image changed")
        if self.session.edit.action == EditAction.CHANGING_ROOT_IMAGE:
            self.session.set_edit_action(EditAction.IDLE)

    def _on_edit_state_changed(self, state: EditState):
        self.scene.apply_edit_state(state)
        self.view.set_drawing_enabled(self.session.edit.accepts_drawing)
        self._update_actions()

    # ---- zoom ----

    def _zoom_in(self):
        vp = self.view.viewport().rect()
        t = self.session.zoom_in((vp.width() / 2, vp.height() / 2))
        if t is not None:
            self.view.apply_view_transform(t)

    def _zoom_out(self):
        vp = self.view.viewport().rect()
        t = self.session.zoom_out((vp.width() / 2, vp.height() / 2))
        if t is not None:
            self.view.apply_view_transform(t)

    def _zoom_fit(self):
        vp = self.view.viewport().rect()
        t = self.session.reset_view((max(1, vp.width()), max(1, vp.height())))
        if t is not None:
            self.view.apply_view_transform(t)


def _decode_data_uri(uri: str) -> bytes:
    header, _, payload = uri.partition(",")
    if header.endswith(";base64"):
        return base64.b64decode(payload)
    return unquote_to_bytes(payload)


def main():
    """Application entry point."""
    configure_logging()
    trace("Application starting", "MAIN")
    app = QApplication(sys.argv)

    # Load settings (use singleton to ensure single instance)
    trace("Loading settings", "MAIN")
    settings_manager = get_settings()

    # Ensure settings file has all sections
    settings_manager.ensure_file_complete()

    # Save settings on application quit
    def save_on_quit():
        trace("Saving settings on quit", "MAIN")
        settings_manager.save()
        close_log()

    app.aboutToQuit.connect(save_on_quit)

    trace("Creating MainWindow", "MAIN")
    w = MainWindow(settings_manager)
    w.resize(1400, 900)
    trace("Showing MainWindow", "MAIN")
    w.show()

    last = settings_manager.settings.general.last_document
    if len(sys.argv) > 1:
        w.open_document(sys.argv[1])
    elif last and Path(last).is_file():
        w.open_document(last)
    if w.session.current_map_id is None:
        w.load_default_document()

    trace("Entering event loop", "MAIN")
    sys.exit(app.exec())


if __name__ == "__main__":
    # Set up global exception handler to catch crashes
    def excepthook(exc_type, exc_value, exc_tb):
        import traceback
        trace("UNCAUGHT EXCEPTION:", "CRASH")
        trace("".join(traceback.format_exception(exc_type, exc_value, exc_tb)), "CRASH")
        close_log()
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = excepthook

    try:
        main()
    except Exception as e:
        trace(f"FATAL: {type(e).__name__}: {e}", "CRASH")
        trace_exception("Fatal exception")
        close_log()
        raise
