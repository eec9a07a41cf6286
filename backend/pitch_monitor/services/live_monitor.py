import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol

import numpy as np

from ..config import MonitorConfig
from .pitch import NOTE_NAMES, detect_pitch, frequency_to_note, rms_volume
from .sources import CaptureError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detection:
    frequency: float
    note_index: int
    octave: int
    cents: int

    @property
    def note(self) -> str:
        return NOTE_NAMES[self.note_index]

    @property
    def name(self) -> str:
        return f"{self.note}{self.octave}"


class MonitorSink(Protocol):
    def on_detection(self, detection: Detection) -> None: ...

    def on_waveform(self, frame: np.ndarray) -> None: ...

    def on_error(self, message: str) -> None: ...


class CaptureSource(Protocol):
    samplerate: int

    def start(self, callback) -> None: ...

    def stop(self) -> None: ...


@dataclass
class MonitorState:
    running: bool = False


class LiveMonitor:
    """
    Analiza na żywo: jedno wywołanie tick() na każdą ramkę ze źródła.
    Nie trzyma historii między ramkami – wygładzanie robi konsument (TunerFeedback).
    """

    def __init__(self, sink: MonitorSink, config: Optional[MonitorConfig] = None):
        self.sink = sink
        self.cfg = config or MonitorConfig()
        self.state = MonitorState()
        self.samplerate = self.cfg.samplerate
        self._source: Optional[CaptureSource] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self.state.running

    def tick(self, frame: np.ndarray) -> Optional[Detection]:
        if not self.state.running:
            return None

        samples = np.asarray(frame, dtype=np.float32)
        volume = rms_volume(samples)
        self.sink.on_waveform(samples)

        if volume < self.cfg.volume_threshold:
            return None

        freq = detect_pitch(samples, self.samplerate, self.cfg.max_frequency)
        if freq is None:
            return None

        label = frequency_to_note(freq, self.cfg.a4)
        detection = Detection(
            frequency=freq,
            note_index=label.note_index,
            octave=label.octave,
            cents=label.cents,
        )
        self.sink.on_detection(detection)
        return detection

    def start(self, source: CaptureSource):
        with self._lock:
            if self.state.running:
                return
            self.samplerate = source.samplerate
            self.state.running = True
            try:
                source.start(self.tick)
            except Exception as e:
                self.state.running = False
                logger.error("capture start failed: %s", e)
                self.sink.on_error(str(e))
                if isinstance(e, CaptureError):
                    raise
                raise CaptureError(f"Cannot start capture: {e}") from e
            self._source = source
        logger.info("live monitor started @ %s Hz", self.samplerate)

    def stop(self):
        with self._lock:
            was_running = self.state.running
            self.state.running = False
            source, self._source = self._source, None
        if source is not None:
            source.stop()
        if was_running:
            logger.info("live monitor stopped")
