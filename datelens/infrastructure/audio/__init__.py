"""Audio infrastructure: WAV input and prosody extraction."""

from .processing import (
    read_wav, write_wav, stereo_to_mono, remove_dc,
    frame_rms, estimate_pitch, extract_prosody_samples, summarize_prosody
)

__all__ = [
    "read_wav", "write_wav", "stereo_to_mono", "remove_dc",
    "frame_rms", "estimate_pitch", "extract_prosody_samples", "summarize_prosody"
]
