import logging

import aubio
import numpy as np

from .sources import DecodedAudio, DecodeError

logger = logging.getLogger(__name__)

HOP_SIZE = 4096


def decode_file(path: str, samplerate: int = 0) -> DecodedAudio:
    """
    Wczytuje cały plik do jednego bufora mono (aubio miksuje kanały).
    samplerate=0 zostawia oryginalną częstotliwość próbkowania pliku.
    """
    try:
        src = aubio.source(path, samplerate, HOP_SIZE)
    except (RuntimeError, ValueError, OSError) as e:
        logger.error("cannot open %s: %s", path, e)
        raise DecodeError(f"Unsupported or corrupt audio file: {e}") from e

    chunks = []
    try:
        while True:
            samples, read = src()
            chunks.append(np.array(samples[:read], dtype=np.float32))
            if read < HOP_SIZE:
                break
        sr = int(src.samplerate)
    except (RuntimeError, ValueError) as e:
        raise DecodeError(f"Failed to decode audio: {e}") from e
    finally:
        src.close()

    data = np.concatenate(chunks) if chunks else np.zeros(0, dtype=np.float32)
    if data.size == 0:
        raise DecodeError("Audio file contains no samples")
    logger.info("decoded %s: %d samples @ %d Hz", path, data.size, sr)
    return DecodedAudio(samples=data, samplerate=sr)
