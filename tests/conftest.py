import numpy as np
import pytest

SR = 44100


def tone(freq, seconds, sr=SR, amp=0.5):
    n = int(round(seconds * sr))
    t = np.arange(n) / sr
    return (amp * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def silence(seconds, sr=SR):
    return np.zeros(int(round(seconds * sr)), dtype=np.float32)


@pytest.fixture
def sr():
    return SR
