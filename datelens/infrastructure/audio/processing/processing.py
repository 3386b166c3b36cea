"""
Basic audio processing functions including format conversions.
"""
import wave
from typing import Tuple

import numpy as np


def stereo_to_mono(x: np.ndarray) -> np.ndarray:
    """Convert stereo audio to mono by averaging channels."""
    if x.ndim == 1:
        return x
    return np.mean(x, axis=1)


def remove_dc(x: np.ndarray) -> np.ndarray:
    """Remove DC offset from audio signal."""
    return x - np.mean(x)


def pcm16_to_float(pcm16: np.ndarray) -> np.ndarray:
    """Scale int16 samples to float32 in [-1, 1)."""
    return (pcm16.astype(np.float32) / 32768.0).astype(np.float32)


def read_wav(path: str) -> Tuple[np.ndarray, int]:
    """
    Read a 16-bit PCM WAV file.

    Returns:
        (mono float32 samples in [-1, 1), sample rate)

    Raises:
        ValueError: If the file is not 16-bit PCM
    """
    with wave.open(path, "rb") as wf:
        channels = wf.getnchannels()
        sample_width = wf.getsampwidth()
        sr = wf.getframerate()
        frames = wf.readframes(wf.getnframes())

    if sample_width != 2:
        raise ValueError(f"Only 16-bit PCM WAV is supported (got {sample_width * 8}-bit)")

    pcm = np.frombuffer(frames, dtype=np.int16)
    if channels > 1:
        pcm = pcm.reshape(-1, channels)
    audio = pcm16_to_float(stereo_to_mono(pcm) if channels > 1 else pcm)
    return audio.astype(np.float32), sr


def write_wav(path: str, pcm16: np.ndarray, sr: int, channels: int = 1) -> None:
    """Write PCM16 audio data to WAV file."""
    with wave.open(path, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sr)
        wf.writeframes(pcm16.astype(np.int16).tobytes())
