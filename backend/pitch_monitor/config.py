from typing import Optional

from pydantic import BaseModel, Field

# Wartości domyślne zgodne z aplikacją przeglądarkową
MAX_DETECTABLE_FREQUENCY = 1500.0  # Hz
VOLUME_THRESHOLD = 0.01            # RMS w skali [-1, 1]
A4_FREQUENCY = 440.0
FRAME_SIZE = 4096


class PitchConfig(BaseModel):
    max_frequency: float = Field(MAX_DETECTABLE_FREQUENCY, gt=0)
    volume_threshold: float = Field(VOLUME_THRESHOLD, ge=0)
    a4: float = Field(A4_FREQUENCY, gt=0)


class MonitorConfig(PitchConfig):
    device: Optional[int] = None
    samplerate: int = Field(44100, gt=0)
    frame_size: int = Field(FRAME_SIZE, gt=1)
    block_size: int = Field(1024, gt=0)


class SegmentationConfig(PitchConfig):
    segment_duration: float = Field(0.05, gt=0)    # s
    min_note_duration: float = Field(0.1, gt=0)    # krótsze nuty są odrzucane
    silence_segments: int = Field(3, ge=1)         # tyle cichych segmentów zamyka nutę
    pitch_tolerance_hz: float = Field(5.0, ge=0)
