"""Audio processing and prosody modules."""

from .processing import (
    stereo_to_mono,
    remove_dc,
    pcm16_to_float,
    read_wav,
    write_wav
)

from .features import (
    frame_rms,
    estimate_pitch,
    extract_prosody_samples,
    summarize_prosody
)

__all__ = [
    "stereo_to_mono",
    "remove_dc",
    "pcm16_to_float",
    "read_wav",
    "write_wav",
    "frame_rms",
    "estimate_pitch",
    "extract_prosody_samples",
    "summarize_prosody"
]
