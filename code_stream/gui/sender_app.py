import sys
import os
from PySide6.QtWidgets import (QApplication, QMainWindow, QWidget, QVBoxLayout,
                               QHBoxLayout, QPushButton, QLabel, QFileDialog,
                               QSlider, QProgressBar, QSizePolicy, QSpinBox)
from PySide6.QtCore import Qt, QTimer, Slot
from PySide6.QtGui import QImage, QPixmap, QKeyEvent

from code_stream.core.chunk_parser import parse_chunk
from code_stream.core.chunking import split_payload, read_payload, DEFAULT_CHUNK_SIZE
from code_stream.core.encoding_qr import chunks_to_qr_frames, qr_to_image


class SenderApp(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Optical Code Stream - Sender")
        self.setFixedSize(800, 600)

        self.central_widget = QWidget()
        self.setCentralWidget(self.central_widget)
        self.layout = QVBoxLayout(self.central_widget)

        # Top controls
        self.top_layout = QHBoxLayout()
        self.btn_select = QPushButton("Select File")
        self.btn_select.clicked.connect(self.select_file)
        self.lbl_file = QLabel("No file selected")

        self.spin_chunk = QSpinBox()
        self.spin_chunk.setRange(100, 2900)
        self.spin_chunk.setSingleStep(100)
        self.spin_chunk.setValue(DEFAULT_CHUNK_SIZE)
        self.spin_chunk.setSuffix(" chars")
        self.spin_chunk.valueChanged.connect(self.on_chunk_size_changed)

        self.btn_start = QPushButton("Start Transfer")
        self.btn_start.clicked.connect(self.start_transfer)
        self.btn_start.setEnabled(False)

        self.top_layout.addWidget(self.btn_select)
        self.top_layout.addWidget(QLabel("Chunk:"))
        self.top_layout.addWidget(self.spin_chunk)
        self.top_layout.addWidget(self.btn_start)
        self.top_layout.addWidget(self.lbl_file)
        self.layout.addLayout(self.top_layout)

        # Metadata display
        self.meta_layout = QHBoxLayout()
        self.lbl_stream = QLabel("Stream: -")
        self.lbl_size = QLabel("Size: -")
        self.lbl_total_frames = QLabel("Total Frames: -")
        self.meta_layout.addWidget(self.lbl_stream)
        self.meta_layout.addWidget(self.lbl_size)
        self.meta_layout.addWidget(self.lbl_total_frames)
        self.layout.addLayout(self.meta_layout)

        # Image display
        self.lbl_display = QLabel()
        self.lbl_display.setAlignment(Qt.AlignCenter)
        self.lbl_display.setStyleSheet("background-color: #fff; border: 2px solid #444;")
        self.lbl_display.setSizePolicy(QSizePolicy.Expanding, QSizePolicy.Expanding)
        self.layout.addWidget(self.lbl_display)

        # Playback controls
        self.controls_layout = QHBoxLayout()

        self.btn_prev = QPushButton("<")
        self.btn_prev.setFixedWidth(40)
        self.btn_prev.clicked.connect(self.prev_frame)

        self.btn_next = QPushButton(">")
        self.btn_next.setFixedWidth(40)
        self.btn_next.clicked.connect(self.manual_next_frame)

        self.slider_fps = QSlider(Qt.Horizontal)
        self.slider_fps.setRange(1, 30)
        self.slider_fps.setValue(5)
        self.lbl_fps = QLabel("5 FPS")
        self.slider_fps.valueChanged.connect(lambda v: self.lbl_fps.setText(f"{v} FPS"))

        self.controls_layout.addWidget(self.btn_prev)
        self.controls_layout.addWidget(self.btn_next)
        self.controls_layout.addWidget(QLabel("Speed:"))
        self.controls_layout.addWidget(self.slider_fps)
        self.controls_layout.addWidget(self.lbl_fps)
        self.layout.addLayout(self.controls_layout)

        # Progress
        self.progress_layout = QHBoxLayout()
        self.lbl_counter = QLabel("Frame: 0/0")
        self.progress = QProgressBar()
        self.progress_layout.addWidget(self.lbl_counter)
        self.progress_layout.addWidget(self.progress)
        self.layout.addLayout(self.progress_layout)

        # State
        self.file_path = None
        self.frames = []  # PIL images, one QR per chunk
        self.timer = QTimer()
        self.timer.timeout.connect(self.next_frame)
        self.current_frame_idx = 0
        self.is_running = False

    @Slot()
    def select_file(self):
        path, _ = QFileDialog.getOpenFileName(self, "Select File to Send")
        if path:
            self.file_path = path
            self.lbl_file.setText(os.path.basename(path))
            self.prepare_frames()
            self.btn_start.setEnabled(bool(self.frames))

    @Slot(int)
    def on_chunk_size_changed(self, _value):
        if not self.file_path:
            return
        self.pause()
        self.prepare_frames()
        self.btn_start.setText("Start Transfer")
        self.btn_start.setEnabled(bool(self.frames))

    def prepare_frames(self):
        self.frames = []
        self.lbl_display.setText("Generating frames...")
        QApplication.processEvents()

        payload = read_payload(self.file_path)
        self.lbl_size.setText(f"Size: {len(payload)} bytes")
        chunks = split_payload(payload, self.spin_chunk.value())
        if not chunks:
            self.lbl_display.setText("File is empty")
            return

        self.lbl_stream.setText(f"Stream: {parse_chunk(chunks[0]).stream_id}")
        for _idx, qr in chunks_to_qr_frames(chunks):
            self.frames.append(qr_to_image(qr, scale=10))

        self.lbl_total_frames.setText(f"Total Frames: {len(self.frames)}")
        self.progress.setMaximum(len(self.frames))
        self.current_frame_idx = 0
        self.display_current_frame()

    @Slot()
    def start_transfer(self):
        if not self.frames:
            return

        if self.is_running:
            self.timer.stop()
            self.btn_start.setText("Resume Transfer")
            self.is_running = False
        else:
            fps = self.slider_fps.value()
            self.timer.start(1000 // fps)
            self.btn_start.setText("Pause Transfer")
            self.is_running = True

    def pause(self):
        if self.is_running:
            self.start_transfer()  # Toggles to pause

    @Slot()
    def prev_frame(self):
        if not self.frames: return
        self.pause()
        self.current_frame_idx = (self.current_frame_idx - 1) % len(self.frames)
        self.display_current_frame()

    @Slot()
    def manual_next_frame(self):
        if not self.frames: return
        self.pause()
        self.current_frame_idx = (self.current_frame_idx + 1) % len(self.frames)
        self.display_current_frame()

    def go_to_frame(self, idx):
        if not self.frames: return
        self.pause()
        self.current_frame_idx = idx % len(self.frames)
        self.display_current_frame()

    def display_current_frame(self):
        pil_img = self.frames[self.current_frame_idx]

        data = pil_img.convert("RGBA").tobytes("raw", "RGBA")
        qimg = QImage(data, pil_img.width, pil_img.height, QImage.Format_RGBA8888)
        pixmap = QPixmap.fromImage(qimg)

        # Nearest-neighbour keeps QR modules sharp
        scaled_pixmap = pixmap.scaled(self.lbl_display.size(), Qt.KeepAspectRatio, Qt.FastTransformation)
        self.lbl_display.setPixmap(scaled_pixmap)
        self.progress.setValue(self.current_frame_idx + 1)
        self.lbl_counter.setText(f"Frame: {self.current_frame_idx + 1}/{len(self.frames)}")

    def keyPressEvent(self, event: QKeyEvent):
        if event.key() == Qt.Key_Left:
            self.prev_frame()
        elif event.key() == Qt.Key_Right:
            self.manual_next_frame()
        elif event.key() == Qt.Key_Up:
            self.go_to_frame(0)
        elif event.key() == Qt.Key_Down:
            self.go_to_frame(-1)
        else:
            super().keyPressEvent(event)

    def next_frame(self):
        # Loops until paused; the receiver skips duplicates
        self.current_frame_idx = (self.current_frame_idx + 1) % len(self.frames)
        self.display_current_frame()

        fps = self.slider_fps.value()
        self.timer.setInterval(1000 // fps)

if __name__ == "__main__":
    app = QApplication(sys.argv)
    window = SenderApp()
    window.show()
    sys.exit(app.exec())
