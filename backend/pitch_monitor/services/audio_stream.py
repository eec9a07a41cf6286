import logging
import threading
from typing import Callable, Optional

import numpy as np
import sounddevice as sd

from ..config import MonitorConfig
from .sources import CaptureError

logger = logging.getLogger(__name__)


class SoundDeviceCapture:
    """
    Wejście z mikrofonu przez sounddevice.
    Po każdym bloku (block_size) oddaje callback(ramka) z ostatnimi frame_size próbkami.
    """

    def __init__(self, config: Optional[MonitorConfig] = None):
        cfg = config or MonitorConfig()
        self.device = cfg.device
        self.samplerate = cfg.samplerate
        self.blocksize = cfg.block_size
        self.frame_size = cfg.frame_size
        self._ring = np.zeros(self.frame_size, dtype=np.float32)
        self._stream: Optional[sd.InputStream] = None
        self._stop = threading.Event()
        self._callback: Optional[Callable[[np.ndarray], object]] = None

    def start(self, callback: Callable[[np.ndarray], object]):
        self._callback = callback
        self._stop.clear()
        self._ring[:] = 0.0
        try:
            self._stream = sd.InputStream(
                device=self.device,
                channels=1,
                samplerate=self.samplerate,
                blocksize=self.blocksize,
                dtype="float32",
                callback=self._audio_callback,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._stream = None
            raise CaptureError(f"Cannot open input device {self.device!r}: {e}") from e

    def _push(self, block: np.ndarray) -> np.ndarray:
        n = block.size
        if n >= self.frame_size:
            self._ring[:] = block[-self.frame_size:]
        else:
            self._ring[:-n] = self._ring[n:]
            self._ring[-n:] = block
        return self._ring.copy()

    def _audio_callback(self, indata, frames, time_info, status):
        if self._stop.is_set():
            return
        if status:
            logger.debug("input status: %s", status)
        # mono: bierz kanał 0
        mono = indata[:, 0] if indata.ndim > 1 else indata
        frame = self._push(mono)
        if self._callback:
            self._callback(frame)

    def stop(self):
        self._stop.set()
        try:
            if self._stream:
                self._stream.stop()
                self._stream.close()
        finally:
            self._stream = None


def list_input_devices():
    devices = []
    for idx, dev in enumerate(sd.query_devices()):
        if dev.get("max_input_channels", 0) > 0:
            devices.append({
                "id": idx,
                "name": dev["name"],
                "default_samplerate": dev.get("default_samplerate"),
                "max_input_channels": dev.get("max_input_channels"),
            })
    return devices


def resolve_default_samplerate(device_id: Optional[int]) -> int:
    try:
        info = sd.query_devices(device_id) if device_id is not None else sd.query_devices(kind="input")
        return int(info.get("default_samplerate", 48000))
    except (sd.PortAudioError, ValueError):
        return 48000


def device_name(device_id: Optional[int]) -> Optional[str]:
    if device_id is None:
        return None
    try:
        return sd.query_devices(device_id)["name"]
    except (sd.PortAudioError, ValueError):
        return None
