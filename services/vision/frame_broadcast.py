import threading

import cv2

import config


class FrameBroadcast:
    """Latest camera frame as JPEG, shared with the video feed endpoint."""

    def __init__(self, quality: int = config.CAM_JPEG_QUALITY):
        self.quality = quality
        self._latest_jpeg = None
        self._lock = threading.Lock()

    def publish_frame(self, frame_bgr):
        ok, jpg = cv2.imencode(".jpg", frame_bgr, [int(cv2.IMWRITE_JPEG_QUALITY), self.quality])
        if not ok:
            return None
        data = jpg.tobytes()
        with self._lock:
            self._latest_jpeg = data
        return data

    def get_jpeg_frame(self):
        with self._lock:
            return self._latest_jpeg

    def clear(self):
        with self._lock:
            self._latest_jpeg = None
