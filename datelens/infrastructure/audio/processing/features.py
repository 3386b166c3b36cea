"""
Prosody feature extraction: frame energy, pitch, and session summaries.
"""
import logging
from typing import List, Optional, Sequence

import numpy as np
from scipy.signal import correlate

from .processing import remove_dc
from ....analysis.models import ProsodySample, ProsodySummary
from ....config import (
    PROSODY_FRAME_MS, PITCH_MIN_HZ, PITCH_MAX_HZ,
    PITCH_VOICING_THRESHOLD, VAD_SILENCE_THRESHOLD,
)

logger = logging.getLogger("prosody")


def frame_rms(frame: np.ndarray) -> float:
    """Root-mean-square energy of one frame."""
    if frame.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(frame, dtype=np.float64))))


def estimate_pitch(frame: np.ndarray,
                   sample_rate: int,
                   fmin: float = PITCH_MIN_HZ,
                   fmax: float = PITCH_MAX_HZ,
                   voicing_threshold: float = PITCH_VOICING_THRESHOLD) -> Optional[float]:
    """
    Estimate the fundamental frequency of a frame by autocorrelation.

    Returns:
        Pitch in Hz, or None for silent/unvoiced frames
    """
    x = remove_dc(frame.astype(np.float64))
    if frame_rms(x) < VAD_SILENCE_THRESHOLD:
        return None

    corr = correlate(x, x, mode="full", method="fft")[len(x) - 1:]
    energy = corr[0]
    if energy <= 0:
        return None

    lag_min = max(1, int(sample_rate / fmax))
    lag_max = min(int(sample_rate / fmin), len(corr) - 1)
    if lag_max <= lag_min:
        return None

    window = corr[lag_min:lag_max + 1]
    lag = lag_min + int(np.argmax(window))
    if corr[lag] / energy < voicing_threshold:
        return None
    return float(sample_rate) / lag


def extract_prosody_samples(audio: np.ndarray,
                            sample_rate: int,
                            frame_ms: int = PROSODY_FRAME_MS,
                            with_pitch: bool = True) -> List[ProsodySample]:
    """Split mono audio into fixed frames and measure energy (and pitch) for each."""
    frame_len = int(sample_rate * frame_ms / 1000)
    if frame_len <= 0:
        raise ValueError("frame_ms too small for sample rate")

    samples: List[ProsodySample] = []
    for start in range(0, len(audio) - frame_len + 1, frame_len):
        frame = audio[start:start + frame_len]
        pitch = estimate_pitch(frame, sample_rate) if with_pitch else None
        samples.append(ProsodySample(t=start / sample_rate, rms=frame_rms(frame), pitch=pitch))

    logger.info("Extracted %d prosody samples (%d ms frames)", len(samples), frame_ms)
    return samples


def summarize_prosody(samples: Sequence[ProsodySample]) -> ProsodySummary:
    """Collapse per-frame samples into a session-level summary."""
    if not samples:
        return ProsodySummary(avg_rms=0.0, rms_variance=0.0)

    rms = np.array([s.rms for s in samples], dtype=np.float64)
    pitches = np.array([s.pitch for s in samples if s.pitch is not None], dtype=np.float64)

    avg_pitch = float(np.mean(pitches)) if pitches.size else None
    pitch_range = float(np.max(pitches) - np.min(pitches)) if pitches.size else None

    return ProsodySummary(
        avg_rms=float(np.mean(rms)),
        rms_variance=float(np.var(rms)),
        avg_pitch=avg_pitch,
        pitch_range=pitch_range,
    )
