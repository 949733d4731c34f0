"""Raster signature pad mirroring the browser canvas used by the signing forms.

Strokes are painted onto a Pillow RGBA buffer as they arrive. Serialization to
a PNG data URL is debounced after each completed stroke. A resize re-samples
the last serialized bitmap into the new buffer instead of replaying strokes.
"""
import logging
import threading

from django.conf import settings
from PIL import Image, ImageDraw

from .pdf_utils import data_url_to_image, image_to_data_url

logger = logging.getLogger(__name__)

INPUT_POINTER = "pointer"
INPUT_TOUCH = "touch"
INPUT_MOUSE = "mouse"

DEFAULT_WIDTH = 600
MAX_WIDTH = 600
ASPECT_RATIO = 600 / 200
STROKE_WIDTH = 2
INK = (17, 17, 17, 255)


def select_input_mode(supports_pointer, supports_touch):
    if supports_pointer:
        return INPUT_POINTER
    if supports_touch:
        return INPUT_TOUCH
    return INPUT_MOUSE


def _debounce_seconds():
    return getattr(settings, "LISTO_SIGNATURE_DEBOUNCE_SECONDS", 0.1)


class SignaturePad:
    def __init__(self, width=DEFAULT_WIDTH, *, input_mode=INPUT_POINTER, debounce=None):
        self.input_mode = input_mode
        self.debounce = _debounce_seconds() if debounce is None else debounce
        self.strokes = []
        self.current_stroke = None
        self.is_drawing = False
        self.is_resizing = False
        self.data_url = ""
        self._lock = threading.RLock()
        self._timer = None
        self.image = self._blank(self._size_for(width))

    @staticmethod
    def _size_for(width):
        width = max(1, min(int(width), MAX_WIDTH))
        return width, max(1, round(width / ASPECT_RATIO))

    @staticmethod
    def _blank(size):
        return Image.new("RGBA", size, (255, 255, 255, 0))

    @property
    def size(self):
        return self.image.size

    @property
    def is_empty(self):
        return not self.strokes

    def _accepts(self, source):
        return source == self.input_mode

    def pointer_start(self, x, y, source=INPUT_POINTER):
        if not self._accepts(source):
            return False
        with self._lock:
            self.is_drawing = True
            self.current_stroke = [(x, y)]
        return True

    def pointer_move(self, x, y, source=INPUT_POINTER):
        if not self._accepts(source) or not self.is_drawing:
            return False
        with self._lock:
            last = self.current_stroke[-1]
            self.current_stroke.append((x, y))
            ImageDraw.Draw(self.image).line([last, (x, y)], fill=INK, width=STROKE_WIDTH)
        return True

    def pointer_end(self, source=INPUT_POINTER):
        if not self._accepts(source) or not self.is_drawing:
            return False
        with self._lock:
            if self.current_stroke:
                self.strokes.append(self.current_stroke)
            self.current_stroke = None
            self.is_drawing = False
            self._schedule_serialize()
        return True

    def _schedule_serialize(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            if self.debounce <= 0:
                self._timer = None
                self._serialize()
                return
            self._timer = threading.Timer(self.debounce, self._serialize)
            self._timer.daemon = True
            self._timer.start()

    def _serialize(self):
        with self._lock:
            self._timer = None
            try:
                self.data_url = image_to_data_url(self.image) if self.strokes else ""
            except (OSError, ValueError):
                logger.exception("Signature serialization failed")

    def flush(self):
        """Cancel any pending debounce and serialize now."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._serialize()
            return self.data_url

    def resize(self, container_width):
        """Fit the buffer to ``container_width``.

        Returns False when the resize was skipped: a stroke is in progress or
        another resize is already running.
        """
        with self._lock:
            if self.is_drawing or self.is_resizing:
                return False
            self.is_resizing = True
            try:
                new_size = self._size_for(container_width)
                if new_size == self.image.size:
                    return True
                if self._timer is not None:
                    self.flush()
                old_w, old_h = self.image.size
                previous = None
                if self.data_url:
                    try:
                        previous = data_url_to_image(self.data_url)
                    except ValueError:
                        logger.warning("Discarding unreadable signature bitmap on resize")
                if previous is not None:
                    self.image = previous.convert("RGBA").resize(new_size, Image.LANCZOS)
                else:
                    self.image = self._blank(new_size)
                sx, sy = new_size[0] / old_w, new_size[1] / old_h
                self.strokes = [[(x * sx, y * sy) for x, y in stroke] for stroke in self.strokes]
                if self.strokes:
                    self._serialize()
                return True
            finally:
                self.is_resizing = False

    def clear(self):
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self.image = self._blank(self.image.size)
            self.strokes = []
            self.current_stroke = None
            self.is_drawing = False
            self.data_url = ""


def render_strokes(strokes, width=DEFAULT_WIDTH):
    """Replay posted stroke JSON (lists of ``[x, y]`` pairs) into a PNG data URL.

    Returns an empty string when there is nothing to draw.
    """
    pad = SignaturePad(width, debounce=0)
    if not isinstance(strokes, (list, tuple)):
        strokes = []
    for stroke in strokes:
        if not isinstance(stroke, (list, tuple)):
            continue
        points = []
        for point in stroke:
            try:
                points.append((float(point[0]), float(point[1])))
            except (TypeError, ValueError, IndexError):
                continue
        if not points:
            continue
        pad.pointer_start(*points[0])
        for x, y in points[1:]:
            pad.pointer_move(x, y)
        pad.pointer_end()
    return pad.flush()
