import numpy as np
import pytest

from pitch_monitor.config import MonitorConfig
from pitch_monitor.services.live_monitor import LiveMonitor
from pitch_monitor.services.sources import CaptureError

from conftest import tone


class RecordingSink:
    def __init__(self):
        self.detections = []
        self.frames = []
        self.errors = []

    def on_detection(self, detection):
        self.detections.append(detection)

    def on_waveform(self, frame):
        self.frames.append(frame)

    def on_error(self, message):
        self.errors.append(message)


class FakeSource:
    def __init__(self, samplerate=44100, fail=False):
        self.samplerate = samplerate
        self.fail = fail
        self.callback = None
        self.stopped = False

    def start(self, callback):
        if self.fail:
            raise CaptureError("Permission denied")
        self.callback = callback

    def stop(self):
        self.stopped = True


def frame_of(freq, amp=0.5, n=4096, sr=44100):
    return tone(freq, n / sr, sr=sr, amp=amp)[:n]


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def monitor(sink):
    m = LiveMonitor(sink, MonitorConfig())
    m.start(FakeSource())
    return m


def test_voiced_tick_emits_detection(monitor, sink):
    detection = monitor.tick(frame_of(440.0))
    assert detection is not None
    assert detection.name == "A4"
    assert abs(detection.frequency - 440.0) < 4.4
    assert sink.detections == [detection]
    assert len(sink.frames) == 1


def test_quiet_tick_emits_nothing_but_forwards_waveform(monitor, sink):
    assert monitor.tick(frame_of(440.0, amp=0.005)) is None
    assert sink.detections == []
    assert len(sink.frames) == 1


def test_silent_tick(monitor, sink):
    assert monitor.tick(np.zeros(4096, dtype=np.float32)) is None
    assert sink.detections == []


def test_ticks_are_independent(monitor, sink):
    monitor.tick(frame_of(440.0))
    monitor.tick(np.zeros(4096, dtype=np.float32))
    monitor.tick(frame_of(329.63))
    assert [d.name for d in sink.detections] == ["A4", "E4"]


def test_source_drives_ticks(sink):
    source = FakeSource()
    monitor = LiveMonitor(sink)
    monitor.start(source)
    source.callback(frame_of(261.63))
    assert [d.name for d in sink.detections] == ["C4"]


def test_stopped_monitor_ignores_ticks(sink):
    source = FakeSource()
    monitor = LiveMonitor(sink)
    monitor.start(source)
    monitor.stop()
    assert source.stopped
    assert not monitor.running
    assert monitor.tick(frame_of(440.0)) is None
    assert sink.frames == [] and sink.detections == []


def test_uses_source_samplerate(sink):
    monitor = LiveMonitor(sink)
    monitor.start(FakeSource(samplerate=48000))
    detection = monitor.tick(frame_of(440.0, sr=48000))
    assert detection.name == "A4"


def test_start_failure_is_reported_once(sink):
    monitor = LiveMonitor(sink)
    with pytest.raises(CaptureError):
        monitor.start(FakeSource(fail=True))
    assert sink.errors == ["Permission denied"]
    assert not monitor.running


def test_start_twice_is_noop(sink):
    first, second = FakeSource(), FakeSource()
    monitor = LiveMonitor(sink)
    monitor.start(first)
    monitor.start(second)
    assert first.callback is not None
    assert second.callback is None


class VanishingSource(FakeSource):
    def start(self, callback):
        raise OSError("device vanished")


def test_unexpected_start_error_leaves_monitor_stopped(sink):
    monitor = LiveMonitor(sink)
    with pytest.raises(CaptureError) as excinfo:
        monitor.start(VanishingSource())
    assert isinstance(excinfo.value.__cause__, OSError)
    assert not monitor.running
    assert sink.errors == ["device vanished"]
    assert monitor.tick(frame_of(440.0)) is None
