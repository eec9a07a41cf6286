from dataclasses import dataclass

import numpy as np


class AudioSourceError(RuntimeError):
    """Błąd źródła audio – kończy żądaną operację, bez ponawiania."""


class CaptureError(AudioSourceError):
    """Nie udało się uruchomić przechwytywania (brak urządzenia, brak uprawnień)."""


class DecodeError(AudioSourceError):
    """Nieobsługiwany albo uszkodzony plik audio."""


@dataclass(frozen=True)
class DecodedAudio:
    samples: np.ndarray  # mono float32
    samplerate: int

    @property
    def duration(self) -> float:
        return self.samples.size / self.samplerate if self.samplerate else 0.0
