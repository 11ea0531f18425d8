import sys
import cv2
from PySide6.QtWidgets import (QApplication, QMainWindow, QWidget, QVBoxLayout,
                               QHBoxLayout, QPushButton, QLabel, QProgressBar, QTextEdit,
                               QMessageBox, QCheckBox, QComboBox, QFileDialog)
from PySide6.QtCore import Qt, QTimer, Slot
from PySide6.QtGui import QImage, QPixmap
from PIL import Image

from code_stream.core.assembler import StreamAssembler
from code_stream.core.checksum import verify_crc32
from code_stream.core.errors import ErrorKind, StreamError
from code_stream.core.session import ScanSession

MAX_MISSING_SHOWN = 20


class ReceiverApp(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Optical Code Stream - Receiver")
        self.resize(900, 700)

        self.central_widget = QWidget()
        self.setCentralWidget(self.central_widget)
        self.layout = QVBoxLayout(self.central_widget)

        # Video feed
        self.lbl_video = QLabel()
        self.lbl_video.setAlignment(Qt.AlignCenter)
        self.lbl_video.setMinimumSize(640, 480)
        self.lbl_video.setStyleSheet("background-color: #000;")
        self.layout.addWidget(self.lbl_video)

        # Controls
        self.controls_layout = QHBoxLayout()
        self.btn_camera = QPushButton("Start Camera")
        self.btn_camera.clicked.connect(self.toggle_camera)
        self.controls_layout.addWidget(self.btn_camera)

        self.chk_checksum = QCheckBox("Verify Checksums")
        self.chk_checksum.toggled.connect(self.toggle_checksum)
        self.controls_layout.addWidget(self.chk_checksum)

        self.btn_load = QPushButton("Load File")
        self.btn_load.clicked.connect(self.load_file_frame)
        self.controls_layout.addWidget(self.btn_load)

        self.btn_clear_stream = QPushButton("Clear Stream")
        self.btn_clear_stream.clicked.connect(self.clear_current_stream)
        self.controls_layout.addWidget(self.btn_clear_stream)

        self.btn_reset = QPushButton("Reset")
        self.btn_reset.clicked.connect(self.reset_streams)
        self.controls_layout.addWidget(self.btn_reset)

        self.cmb_stream = QComboBox()
        self.cmb_stream.currentTextChanged.connect(lambda _: self.update_progress())
        self.controls_layout.addWidget(self.cmb_stream)

        self.btn_save = QPushButton("Save File")
        self.btn_save.clicked.connect(self.save_file)
        self.btn_save.setEnabled(False)
        self.controls_layout.addWidget(self.btn_save)
        self.layout.addLayout(self.controls_layout)

        # Status
        self.status_layout = QHBoxLayout()
        self.lbl_status = QLabel("Status: Idle")
        self.lbl_fps = QLabel("0.0 FPS")
        self.status_layout.addWidget(self.lbl_status)
        self.status_layout.addStretch()
        self.status_layout.addWidget(self.lbl_fps)
        self.layout.addLayout(self.status_layout)
        self.lbl_missing = QLabel("Missing: -")
        self.lbl_missing.setWordWrap(True)
        self.layout.addWidget(self.lbl_missing)

        # Progress & Log
        self.progress = QProgressBar()
        self.progress.setRange(0, 100)
        self.layout.addWidget(self.progress)
        self.log_view = QTextEdit()
        self.log_view.setReadOnly(True)
        self.log_view.setMaximumHeight(150)
        self.layout.addWidget(self.log_view)

        # State
        self.cap = None
        self.timer = QTimer()
        self.timer.timeout.connect(self.update_frame)
        self.session = ScanSession(StreamAssembler())
        self.is_camera_active = False

    @Slot(bool)
    def toggle_checksum(self, checked):
        self.session.assembler.checksum_verifier = verify_crc32 if checked else None

    @Slot()
    def load_file_frame(self):
        path, _ = QFileDialog.getOpenFileName(self, "Select Frame Image", "", "Images (*.png *.jpg)")
        if path:
            qimg = QImage(path)
            self.lbl_video.setPixmap(QPixmap.fromImage(qimg).scaled(self.lbl_video.size(), Qt.KeepAspectRatio))
            with Image.open(path) as img:
                outcomes = self.session.process_frame(img.convert('RGB'))
            if not outcomes:
                self.log(f"No symbol decoded in {path}")
            self.handle_outcomes(outcomes)

    @Slot()
    def toggle_camera(self):
        if self.is_camera_active:
            self.timer.stop()
            if self.cap:
                self.cap.release()
            self.btn_camera.setText("Start Camera")
            self.is_camera_active = False
            self.lbl_status.setText("Status: Stopped")
        else:
            self.cap = cv2.VideoCapture(0)
            if not self.cap.isOpened():
                self.log("Failed to open camera")
                return
            self.timer.start(33)  # ~30 FPS
            self.btn_camera.setText("Stop Camera")
            self.is_camera_active = True
            self.lbl_status.setText("Status: Scanning")

    def update_frame(self):
        ret, frame = self.cap.read()
        if not ret:
            return

        rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        h, w, ch = rgb_frame.shape
        bytes_per_line = ch * w
        qimg = QImage(rgb_frame.data, w, h, bytes_per_line, QImage.Format_RGB888)
        self.lbl_video.setPixmap(QPixmap.fromImage(qimg).scaled(self.lbl_video.size(), Qt.KeepAspectRatio))

        error_before = self.session.last_error
        outcomes = self.session.process_frame(frame)
        if self.session.last_error is not None and self.session.last_error is not error_before:
            self.log(f"Decoder error: {self.session.last_error}")
        self.lbl_fps.setText(f"{self.session.fps:.1f} FPS")
        self.handle_outcomes(outcomes)

    def handle_outcomes(self, outcomes):
        for outcome in outcomes:
            if isinstance(outcome, StreamError):
                self.log(outcome.message)
                if outcome.kind == ErrorKind.MISMATCH:
                    if self.cmb_stream.findText(outcome.stream_id) < 0:
                        self.cmb_stream.addItem(outcome.stream_id)
                    self.cmb_stream.setCurrentText(outcome.stream_id)
                    self.log(f"Stream id {outcome.stream_id} collides; press Clear Stream to recover")
                continue
            if outcome.is_duplicate:
                continue
            if self.cmb_stream.findText(outcome.stream_id) < 0:
                self.cmb_stream.addItem(outcome.stream_id)
                self.cmb_stream.setCurrentText(outcome.stream_id)
            p = outcome.progress
            self.log(f"Received chunk {outcome.sequence + 1}/{p.total} of {outcome.stream_id}")
            if outcome.is_complete:
                self.log(f"Stream {outcome.stream_id} complete")
        self.update_progress()

    def current_stream(self):
        return self.cmb_stream.currentText() or None

    def update_progress(self):
        stream_id = self.current_stream()
        p = self.session.assembler.progress(stream_id) if stream_id else None
        if p is None:
            self.progress.setValue(0)
            self.lbl_missing.setText("Missing: -")
            self.btn_save.setEnabled(False)
            return
        self.lbl_status.setText(f"Received: {p.received} / {p.total}")
        self.progress.setValue(p.percentage)
        shown = ', '.join(str(i + 1) for i in p.missing[:MAX_MISSING_SHOWN])
        if len(p.missing) > MAX_MISSING_SHOWN:
            shown += f" ... (+{len(p.missing) - MAX_MISSING_SHOWN})"
        self.lbl_missing.setText(f"Missing: {shown or 'none'}")
        self.btn_save.setEnabled(p.is_complete)

    @Slot()
    def save_file(self):
        stream_id = self.current_stream()
        if not stream_id:
            return
        result = self.session.assembler.reconstruct(stream_id)
        if isinstance(result, StreamError):
            self.log(result.message)
            QMessageBox.warning(self, "Reconstruction failed", result.message)
            return

        path, _ = QFileDialog.getSaveFileName(self, "Save Reconstructed File", f"{stream_id}.bin")
        if path:
            with open(path, 'wb') as f:
                f.write(result.data)
            self.log(f"Saved {result.size} bytes from {result.chunks} chunks in {result.duration:.1f}s to {path}")
            QMessageBox.information(self, "Success", f"File saved to {path}")

    @Slot()
    def clear_current_stream(self):
        stream_id = self.current_stream()
        if not stream_id:
            return
        self.session.clear_stream(stream_id)
        self.cmb_stream.removeItem(self.cmb_stream.findText(stream_id))
        self.update_progress()
        self.log(f"Stream {stream_id} cleared")

    @Slot()
    def reset_streams(self):
        self.session.reset()
        self.cmb_stream.clear()
        self.update_progress()
        self.log("All streams cleared")

    def closeEvent(self, event):
        self.timer.stop()
        if self.cap:
            self.cap.release()
        self.session.assembler.clear_all()
        super().closeEvent(event)

    def log(self, msg):
        self.log_view.append(msg)

if __name__ == "__main__":
    app = QApplication(sys.argv)
    window = ReceiverApp()
    window.show()
    sys.exit(app.exec())
