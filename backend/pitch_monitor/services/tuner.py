import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional

from .live_monitor import Detection

AUTO = -1
HISTORY_LENGTH = 10  # ostatnie detekcje brane do średniej dokładności


@dataclass(frozen=True)
class TunerReading:
    target_index: int
    deviation: float      # centy względem nuty docelowej
    needle: float         # 0..100, 50 = czysto
    accuracy: float       # bieżąca ramka, 0..100
    average_accuracy: float
    feedback: str


def feedback_level(deviation: float, accuracy: float) -> str:
    if accuracy >= 90:
        return "excellent"
    if accuracy >= 70:
        return "good"
    direction = "sharp" if deviation > 0 else "flat"
    if accuracy >= 50:
        return f"slightly_{direction}"
    return direction


class TunerFeedback:
    """
    Porównuje detekcje z nutą referencyjną i liczy kroczącą dokładność.
    reference = AUTO: celem staje się pierwsza wykryta nuta (albo nowa, gdy |cents| > 50).
    """

    def __init__(self, reference: int = AUTO, history: int = HISTORY_LENGTH):
        self.reference = AUTO
        self._last_index: Optional[int] = None
        self._history: Deque[float] = deque(maxlen=history)
        # update() leci z wątku audio, set_reference/reset z wątku HTTP
        self._lock = threading.Lock()
        self.set_reference(reference)

    def set_reference(self, note_index: int):
        if note_index != AUTO and not 0 <= note_index < 12:
            raise ValueError(f"reference must be -1 (auto) or in [0, 12), got {note_index}")
        with self._lock:
            self.reference = note_index

    def reset(self):
        with self._lock:
            self._last_index = None
            self._history.clear()

    def _target(self, detection: Detection) -> int:
        if self.reference != AUTO:
            return self.reference
        if self._last_index is None or abs(detection.cents) > 50:
            self._last_index = detection.note_index
        return self._last_index

    def update(self, detection: Detection) -> TunerReading:
        with self._lock:
            target = self._target(detection)
            deviation = float(detection.cents)
            if target != detection.note_index:
                semitones = (detection.note_index - target + 12) % 12
                deviation = semitones * 100 + detection.cents
                # ponad pół oktawy w górę traktujemy jako odchylenie w dół
                if deviation > 600:
                    deviation -= 1200

            needle = max(0.0, min(100.0, deviation + 50.0))
            accuracy = max(0.0, 100.0 - abs(deviation) * 2)
            self._history.append(accuracy)
            average = sum(self._history) / len(self._history)

        return TunerReading(
            target_index=target,
            deviation=deviation,
            needle=needle,
            accuracy=accuracy,
            average_accuracy=average,
            feedback=feedback_level(deviation, average),
        )
