import logging
import os
import tempfile

from fastapi import APIRouter, File, HTTPException, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from ..config import SegmentationConfig
from ..models.schemas import AnalysisResponse, NoteEventOut, ReferenceFrequency
from ..services.decode import decode_file
from ..services.pitch import NOTE_NAMES, reference_frequency
from ..services.segmentation import NoteEvent, analyze_recording
from ..services.sources import DecodeError

logger = logging.getLogger(__name__)

router = APIRouter()

_segmentation_cfg = SegmentationConfig()


def note_event_out(ev: NoteEvent) -> NoteEventOut:
    return NoteEventOut(
        frequency=ev.frequency,
        note=ev.note,
        name=ev.name,
        note_index=ev.note_index,
        octave=ev.octave,
        cents=ev.cents,
        start_time=ev.start_time,
        duration=ev.duration,
    )


def _decode_and_analyze(path: str):
    audio = decode_file(path)
    events = analyze_recording(audio.samples, audio.samplerate, _segmentation_cfg)
    return audio, events


@router.post("/upload", response_model=AnalysisResponse)
async def analyze_upload(file: UploadFile = File(...)):
    """
    Odbiera nagranie, dekoduje je do mono i zwraca listę nut.
    Plik trafia tylko do katalogu tymczasowego – nic nie jest zapisywane na stałe.
    """
    filename = file.filename or "recording"
    _, ext = os.path.splitext(filename)
    content = await file.read()
    fd, tmp_path = tempfile.mkstemp(suffix=ext or ".wav")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        # analiza jest synchroniczna i może trwać – poza pętlą zdarzeń
        audio, events = await run_in_threadpool(_decode_and_analyze, tmp_path)
    except DecodeError as e:
        logger.warning("decode failed for %s: %s", filename, e)
        raise HTTPException(status_code=422, detail=str(e))
    finally:
        os.unlink(tmp_path)

    return AnalysisResponse(
        filename=filename,
        samplerate=audio.samplerate,
        duration=audio.duration,
        notes=[note_event_out(ev) for ev in events],
    )


@router.get("/reference", response_model=ReferenceFrequency)
def get_reference_frequency(note_index: int = Query(..., ge=0, lt=12), octave: int = 4):
    return ReferenceFrequency(
        note_index=note_index,
        octave=octave,
        name=f"{NOTE_NAMES[note_index]}{octave}",
        frequency=reference_frequency(note_index, octave, _segmentation_cfg.a4),
    )
