import io
import wave

import numpy as np
import pytest

pytest.importorskip("aubio")

from fastapi import FastAPI
from fastapi.testclient import TestClient

from pitch_monitor.routers import analysis
from pitch_monitor.services.decode import decode_file
from pitch_monitor.services.sources import DecodeError

from conftest import SR, silence, tone


def wav_bytes(samples, sr=SR):
    pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)  # 16-bit
        wf.setframerate(sr)
        wf.writeframes(pcm.tobytes())
    return buf.getvalue()


@pytest.fixture
def client():
    app = FastAPI()
    app.include_router(analysis.router, prefix="/api/analysis")
    return TestClient(app)


def test_decode_file(tmp_path):
    path = tmp_path / "a4.wav"
    path.write_bytes(wav_bytes(tone(440.0, 0.5)))
    audio = decode_file(str(path))
    assert audio.samplerate == SR
    assert audio.samples.size == pytest.approx(SR * 0.5, abs=1)
    assert audio.duration == pytest.approx(0.5, abs=1e-3)


def test_decode_garbage(tmp_path):
    path = tmp_path / "broken.wav"
    path.write_bytes(b"definitely not audio")
    with pytest.raises(DecodeError):
        decode_file(str(path))


def test_upload_returns_note_sequence(client):
    audio = np.concatenate([tone(440.0, 0.3), silence(0.2), tone(880.0, 0.3)])
    resp = client.post(
        "/api/analysis/upload",
        files={"file": ("take.wav", wav_bytes(audio), "audio/wav")},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["filename"] == "take.wav"
    assert body["samplerate"] == SR
    assert [n["name"] for n in body["notes"]] == ["A4", "A5"]
    assert body["notes"][0]["start_time"] == pytest.approx(0.0)
    assert body["notes"][1]["start_time"] == pytest.approx(0.5)


def test_upload_corrupt_file(client):
    resp = client.post(
        "/api/analysis/upload",
        files={"file": ("broken.wav", b"nope", "audio/wav")},
    )
    assert resp.status_code == 422
    assert resp.json()["detail"]


def test_reference_frequency_endpoint(client):
    resp = client.get("/api/analysis/reference", params={"note_index": 9, "octave": 4})
    assert resp.status_code == 200
    body = resp.json()
    assert body["name"] == "A4"
    assert body["frequency"] == pytest.approx(440.0)


def test_reference_frequency_rejects_bad_index(client):
    resp = client.get("/api/analysis/reference", params={"note_index": 12})
    assert resp.status_code == 422
