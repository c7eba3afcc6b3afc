# ClearPath/services/vision/camera_pipeline.py
import threading, queue

import cv2
from loguru import logger

from core.errors import VisionFailure


class CameraPipeline:
    """OpenCV capture on a background thread.
       Keeps only the most recent BGR frame so readers never see stale video."""
    def __init__(self, cam_index: int, cap_width: int, cap_height: int):
        self.cam_index = cam_index
        self.cap_width = cap_width
        self.cap_height = cap_height
        self.cap = None
        self.frame_queue: "queue.Queue" = queue.Queue(maxsize=1)
        self.stop_event = threading.Event()
        self.thread = None

    def start(self):
        self.cap = cv2.VideoCapture(self.cam_index)
        if not self.cap.isOpened():
            self.cap.release()
            self.cap = None
            raise VisionFailure(f"camera {self.cam_index} could not be opened")
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.cap_width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.cap_height)

        self.stop_event.clear()
        self.thread = threading.Thread(target=self._worker, daemon=True, name="capture-worker")
        self.thread.start()

    def _worker(self):
        logger.info("[VISION] Capture worker started.")
        while not self.stop_event.is_set():
            ok, frame = self.cap.read()
            if not ok:
                self.stop_event.wait(0.05)
                continue
            # replace whatever is waiting with the newest frame
            try:
                self.frame_queue.get_nowait()
            except queue.Empty:
                pass
            try:
                self.frame_queue.put_nowait(frame)
            except queue.Full:
                continue
        logger.info("[VISION] Capture worker stopped.")

    def get(self, timeout=1):
        return self.frame_queue.get(timeout=timeout)

    def stop(self):
        self.stop_event.set()
        if self.thread:
            self.thread.join(timeout=1)
            self.thread = None
        if self.cap:
            self.cap.release()
            self.cap = None
