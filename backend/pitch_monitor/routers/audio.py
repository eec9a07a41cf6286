import asyncio
import functools
import logging
import threading
from dataclasses import asdict
from typing import List, Optional

import numpy as np
from fastapi import APIRouter, Body, HTTPException, WebSocket, WebSocketDisconnect

from ..config import MonitorConfig
from ..models.schemas import AudioDevice, AudioStatus, DetectionOut, ReferenceRequest, TunerOut
from ..services.audio_stream import SoundDeviceCapture, device_name, list_input_devices, resolve_default_samplerate
from ..services.live_monitor import Detection, LiveMonitor
from ..services.sources import CaptureError
from ..services.tuner import TunerFeedback

logger = logging.getLogger(__name__)

router = APIRouter()

PREVIEW_EVERY = 4  # co która ramka wysyła podgląd przebiegu


def preview_wave(samples: np.ndarray, points: int = 128) -> List[float]:
    if samples.size == 0:
        return []
    step = max(1, samples.size // points)
    return samples[::step][:points].astype(float).tolist()


class WebSocketSink:
    """
    Ujście monitora: detekcje (+ odczyt stroika), podgląd przebiegu i błędy
    rozsyłane do wszystkich podłączonych websocketów.
    """

    def __init__(self):
        self.tuner = TunerFeedback()
        self._connections: List[WebSocket] = []
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._preview_tick = 0

    def attach(self, ws: WebSocket, loop: asyncio.AbstractEventLoop):
        with self._lock:
            self._loop = loop
            self._connections.append(ws)

    def detach(self, ws: WebSocket):
        with self._lock:
            if ws in self._connections:
                self._connections.remove(ws)

    def broadcast(self, payload: dict):
        with self._lock:
            conns = list(self._connections)
            loop = self._loop
        if not conns or loop is None:
            return
        for ws in conns:
            try:
                fut = asyncio.run_coroutine_threadsafe(ws.send_json(payload), loop)
            except RuntimeError as e:
                # pętla zamknięta
                logger.warning("dropping websocket: %s", e)
                self.detach(ws)
                continue
            fut.add_done_callback(functools.partial(self._on_sent, ws))

    def _on_sent(self, ws: WebSocket, fut):
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.warning("websocket send failed, dropping: %s", exc)
            self.detach(ws)

    def on_detection(self, detection: Detection) -> None:
        reading = self.tuner.update(detection)
        self.broadcast({
            "type": "detection",
            "detection": DetectionOut(
                frequency=detection.frequency,
                note=detection.note,
                note_index=detection.note_index,
                octave=detection.octave,
                cents=detection.cents,
            ).model_dump(),
            "tuner": TunerOut(**asdict(reading)).model_dump(),
        })

    def on_waveform(self, frame: np.ndarray) -> None:
        self._preview_tick = (self._preview_tick + 1) % PREVIEW_EVERY
        if self._preview_tick == 0:
            self.broadcast({"type": "wave", "wave": preview_wave(frame, 128)})

    def on_error(self, message: str) -> None:
        self.broadcast({"type": "error", "message": message})


class LiveSession:
    """Stan jednej sesji na żywo: ujście, monitor i aktualna konfiguracja urządzenia."""

    def __init__(self):
        self.sink = WebSocketSink()
        self.monitor: Optional[LiveMonitor] = None
        self.config: Optional[MonitorConfig] = None

    @property
    def running(self) -> bool:
        return self.monitor is not None and self.monitor.running

    def start(self, cfg: MonitorConfig):
        if self.running and self.config == cfg:
            return
        self.stop()
        monitor = LiveMonitor(self.sink, cfg)
        monitor.start(SoundDeviceCapture(cfg))
        self.monitor, self.config = monitor, cfg

    def stop(self):
        if self.monitor is not None:
            self.monitor.stop()
        self.monitor = None
        self.config = None
        self.sink.tuner.reset()

    def status(self) -> AudioStatus:
        cfg = self.config if self.running else None
        return AudioStatus(
            running=self.running,
            device_id=cfg.device if cfg else None,
            device_name=device_name(cfg.device) if cfg else None,
            samplerate=cfg.samplerate if cfg else None,
            frame_size=cfg.frame_size if cfg else None,
            reference=self.sink.tuner.reference,
        )


_session = LiveSession()


@router.get("/devices", response_model=list[AudioDevice])
def list_audio_devices():
    return [AudioDevice(**d) for d in list_input_devices()]


@router.get("/status", response_model=AudioStatus)
def audio_status():
    return _session.status()


@router.post("/start", response_model=AudioStatus)
def start_audio(device_id: int | None = None, samplerate: int | None = None, frame_size: int | None = None):
    """Startuje lub PRZEŁĄCZA aktywne urządzenie, jeśli już działa."""
    cfg = MonitorConfig(
        device=device_id,
        samplerate=samplerate or resolve_default_samplerate(device_id),
        frame_size=frame_size or MonitorConfig().frame_size,
    )
    try:
        _session.start(cfg)
    except CaptureError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return _session.status()


@router.post("/stop", response_model=AudioStatus)
def stop_audio():
    _session.stop()
    return _session.status()


@router.post("/reference", response_model=AudioStatus)
def set_reference(req: ReferenceRequest = Body(...)):
    _session.sink.tuner.set_reference(req.note_index)
    _session.sink.tuner.reset()
    return _session.status()


@router.websocket("/ws/monitor")
async def monitor_ws(websocket: WebSocket):
    await websocket.accept()
    _session.sink.attach(websocket, asyncio.get_running_loop())

    # autostart na domyślnym urządzeniu; /start może je potem przełączyć
    if not _session.running:
        try:
            start_audio(None, None, None)
        except HTTPException as e:
            # błąd poszedł już do klientów przez sink.on_error
            logger.warning("autostart failed: %s", e.detail)

    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        _session.sink.detach(websocket)
