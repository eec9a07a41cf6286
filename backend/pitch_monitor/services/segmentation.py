import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ..config import SegmentationConfig
from .pitch import NOTE_NAMES, NoteLabel, detect_pitch, frequency_to_note, rms_volume

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoteEvent:
    frequency: float
    note_index: int
    octave: int
    cents: int
    start_time: float
    duration: float

    @property
    def note(self) -> str:
        return NOTE_NAMES[self.note_index]

    @property
    def name(self) -> str:
        return f"{self.note}{self.octave}"

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration


@dataclass
class _ActiveNote:
    frequency: float
    label: NoteLabel
    start_time: float


class SegmentationAnalyzer:
    """
    Dzieli całe nagranie na segmenty o stałej długości i składa z nich
    chronologiczną listę nut. Jeden obiekt = jedno przejście, bez stanu
    współdzielonego z monitorem na żywo.
    """

    def __init__(self, samplerate: float, config: Optional[SegmentationConfig] = None):
        self.samplerate = samplerate
        self.cfg = config or SegmentationConfig()
        self.events: List[NoteEvent] = []
        self._active: Optional[_ActiveNote] = None
        self._silent_run = 0

    def _close(self, end_time: float):
        note = self._active
        self._active = None
        if note is None:
            return
        duration = end_time - note.start_time
        # tolerancja na błąd zmiennoprzecinkowy przy i * segment_duration
        if duration + 1e-9 < self.cfg.min_note_duration:
            logger.debug("drop %s at %.3fs (%.3fs too short)", note.label.name, note.start_time, duration)
            return
        self.events.append(NoteEvent(
            frequency=note.frequency,
            note_index=note.label.note_index,
            octave=note.label.octave,
            cents=note.label.cents,
            start_time=note.start_time,
            duration=duration,
        ))

    def _silence_start(self, index: int) -> float:
        return (index - self._silent_run + 1) * self.cfg.segment_duration

    def feed(self, index: int, segment: np.ndarray):
        cfg = self.cfg
        t = index * cfg.segment_duration

        if rms_volume(segment) < cfg.volume_threshold:
            self._silent_run += 1
            if self._silent_run >= cfg.silence_segments and self._active is not None:
                # nuta kończy się tam, gdzie zaczęła się cisza
                self._close(self._silence_start(index))
            return

        self._silent_run = 0
        freq = detect_pitch(segment, self.samplerate, cfg.max_frequency)
        if freq is None:
            return

        active = self._active
        if active is None or abs(active.frequency - freq) > cfg.pitch_tolerance_hz:
            self._close(t)
            self._active = _ActiveNote(frequency=freq, label=frequency_to_note(freq, cfg.a4), start_time=t)
        # w granicach tolerancji nuta trwa dalej, częstotliwość i etykieta zostają z początku

    def finish(self, total_segments: int) -> List[NoteEvent]:
        if self._active is not None:
            if self._silent_run > 0:
                end = self._silence_start(total_segments - 1)
            else:
                end = total_segments * self.cfg.segment_duration
            self._close(end)
        return self.events


def analyze_recording(samples: np.ndarray, samplerate: float,
                      config: Optional[SegmentationConfig] = None) -> List[NoteEvent]:
    """
    Zwraca nuty (>= min_note_duration) w kolejności czasowej, bez nakładania.
    Niepełny ostatni segment jest pomijany.
    """
    cfg = config or SegmentationConfig()
    data = np.asarray(samples, dtype=np.float32)
    if data.ndim > 1:
        # mono: bierz kanał 0
        data = data[:, 0]

    per_segment = int(cfg.segment_duration * samplerate)
    if per_segment <= 0:
        raise ValueError(f"segment of {cfg.segment_duration}s is empty at {samplerate} Hz")
    total = data.size // per_segment

    analyzer = SegmentationAnalyzer(samplerate, cfg)
    for i in range(total):
        start = i * per_segment
        analyzer.feed(i, data[start:start + per_segment])
    events = analyzer.finish(total)

    logger.info("analyzed %d segments (%.2fs @ %s Hz): %d notes",
                total, data.size / samplerate, samplerate, len(events))
    return events
