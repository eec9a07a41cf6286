from pydantic import BaseModel, Field
from typing import List, Optional


class AudioDevice(BaseModel):
    id: int
    name: str
    default_samplerate: float | None = None
    max_input_channels: int | None = None


class AudioStatus(BaseModel):
    running: bool
    device_id: Optional[int] = None
    device_name: Optional[str] = None
    samplerate: Optional[int] = None
    frame_size: Optional[int] = None
    reference: int = -1


class ReferenceRequest(BaseModel):
    note_index: int = Field(-1, ge=-1, lt=12)  # -1 = auto


class DetectionOut(BaseModel):
    frequency: float
    note: str
    note_index: int
    octave: int
    cents: int


class TunerOut(BaseModel):
    target_index: int
    deviation: float
    needle: float
    accuracy: float
    average_accuracy: float
    feedback: str


class NoteEventOut(BaseModel):
    frequency: float
    note: str
    name: str
    note_index: int
    octave: int
    cents: int
    start_time: float
    duration: float


class AnalysisResponse(BaseModel):
    filename: str
    samplerate: int
    duration: float
    notes: List[NoteEventOut]


class ReferenceFrequency(BaseModel):
    note_index: int
    octave: int
    name: str
    frequency: float
