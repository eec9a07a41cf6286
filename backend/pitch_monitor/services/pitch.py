import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..config import A4_FREQUENCY, MAX_DETECTABLE_FREQUENCY

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
A4_MIDI = 69


class InvalidFrequencyError(ValueError):
    """Częstotliwość <= 0 (albo nie-skończona) podana do mapowania na nutę."""


@dataclass(frozen=True)
class NoteLabel:
    note_index: int
    octave: int
    cents: int

    @property
    def note(self) -> str:
        return NOTE_NAMES[self.note_index]

    @property
    def name(self) -> str:
        return f"{self.note}{self.octave}"


def rms_volume(samples: np.ndarray) -> float:
    if samples.size == 0:
        return 0.0
    x = samples.astype(np.float64)
    return float(np.sqrt(np.mean(x * x)))


def _hann(n: int) -> np.ndarray:
    # okno "periodic": 0.5 * (1 - cos(2*pi*i/N)), nie np.hanning (ten dzieli przez N-1)
    return 0.5 * (1.0 - np.cos(2.0 * np.pi * np.arange(n) / n))


def autocorrelation(samples: np.ndarray) -> np.ndarray:
    """
    corr[lag] = sum(s[i] * s[i + lag]) dla lag = 0..N-1, liczone przez FFT
    (Wiener-Chinczyn) z dopełnieniem zerami do >= 2N-1, więc bez zawijania.
    """
    n = samples.size
    if n == 0:
        return np.zeros(0)
    size = 1
    while size < 2 * n - 1:
        size <<= 1
    spec = np.fft.rfft(samples, n=size)
    return np.fft.irfft(np.abs(spec) ** 2, n=size)[:n]


def refine_lag(corr: np.ndarray, lag: int, lo: int, hi: int) -> float:
    """Interpolacja paraboliczna wokół piku; na brzegach zakresu [lo, hi) bez zmian."""
    if lag <= lo or lag >= hi - 1:
        return float(lag)
    y1, y2, y3 = corr[lag - 1], corr[lag], corr[lag + 1]
    a = (y1 + y3 - 2.0 * y2) / 2.0
    b = (y3 - y1) / 2.0
    if a == 0:
        return float(lag)
    return lag - b / (2.0 * a)


def detect_pitch(samples: np.ndarray, samplerate: float,
                 max_frequency: float = MAX_DETECTABLE_FREQUENCY) -> Optional[float]:
    """
    Estymacja częstotliwości podstawowej metodą autokorelacji z oknem Hanna.
    Zwraca Hz albo None, gdy nie da się wskazać sensownego piku.
    Nie bada głośności – bramkowanie RMS robi wywołujący.
    """
    frame = np.asarray(samples, dtype=np.float64)
    n = frame.size
    if n < 3 or samplerate <= 0:
        return None

    # kopia – nie ruszamy danych wywołującego
    windowed = frame * _hann(n)
    corr = autocorrelation(windowed)

    lo = int(math.floor(samplerate / max_frequency))
    hi = (n + 1) // 2  # lag < N/2
    if lo >= hi:
        return None

    max_lag = lo + int(np.argmax(corr[lo:hi]))
    if max_lag <= 0 or not corr[max_lag] > 0:
        return None

    lag = refine_lag(corr, max_lag, lo, hi)
    if lag <= 0:
        return None
    return float(samplerate / lag)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def frequency_to_note(freq: float, a4: float = A4_FREQUENCY) -> NoteLabel:
    if not (freq > 0) or math.isinf(freq):
        raise InvalidFrequencyError(f"frequency must be positive and finite, got {freq!r}")
    exact = A4_MIDI + 12.0 * math.log2(freq / a4)
    midi = _round_half_up(exact)
    cents = _round_half_up((exact - midi) * 100.0)
    # (exact - midi) leży w [-0.5, 0.5), ale zaokrąglenie może dać 50
    cents = max(-50, min(49, cents))
    return NoteLabel(note_index=midi % 12, octave=midi // 12 - 1, cents=cents)


def reference_frequency(note_index: int, octave: int = 4, a4: float = A4_FREQUENCY) -> float:
    if not 0 <= note_index < 12:
        raise ValueError(f"note_index must be in [0, 12), got {note_index}")
    midi = (octave + 1) * 12 + note_index
    return a4 * 2.0 ** ((midi - A4_MIDI) / 12.0)

