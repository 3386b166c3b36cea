import numpy as np
import pytest

from datelens.analysis.models import ProsodySample
from datelens.infrastructure.audio import (
    estimate_pitch,
    extract_prosody_samples,
    frame_rms,
    read_wav,
    stereo_to_mono,
    summarize_prosody,
    write_wav,
)

SR = 16000


def _sine(freq: float, seconds: float = 0.1, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(int(SR * seconds)) / SR
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def test_frame_rms_of_sine() -> None:
    assert frame_rms(_sine(200.0, amplitude=0.5)) == pytest.approx(0.5 / np.sqrt(2), rel=1e-3)
    assert frame_rms(np.zeros(0)) == 0.0


def test_pitch_of_sine() -> None:
    assert estimate_pitch(_sine(200.0), SR) == pytest.approx(200.0, rel=0.02)


def test_pitch_none_for_silence() -> None:
    assert estimate_pitch(np.zeros(1600, dtype=np.float32), SR) is None


def test_pitch_none_for_noise() -> None:
    rng = np.random.default_rng(0)
    noise = rng.normal(0, 0.3, 1600).astype(np.float32)
    assert estimate_pitch(noise, SR) is None


def test_extract_prosody_samples() -> None:
    audio = np.concatenate([_sine(150.0, 0.3), np.zeros(int(SR * 0.2), dtype=np.float32)])
    samples = extract_prosody_samples(audio, SR, frame_ms=100)

    assert len(samples) == 5
    assert [s.t for s in samples] == pytest.approx([0.0, 0.1, 0.2, 0.3, 0.4])
    assert all(s.pitch == pytest.approx(150.0, rel=0.02) for s in samples[:3])
    assert samples[3].pitch is None
    assert samples[4].rms == 0.0


def test_summarize_prosody() -> None:
    summary = summarize_prosody([
        ProsodySample(0.0, 0.2, 180.0),
        ProsodySample(0.1, 0.4, 220.0),
        ProsodySample(0.2, 0.3, None),
    ])
    assert summary.avg_rms == pytest.approx(0.3)
    assert summary.rms_variance == pytest.approx(0.02 / 3)
    assert summary.avg_pitch == pytest.approx(200.0)
    assert summary.pitch_range == pytest.approx(40.0)


def test_summarize_without_pitch_or_samples() -> None:
    summary = summarize_prosody([ProsodySample(0.0, 0.2), ProsodySample(0.1, 0.4)])
    assert summary.avg_pitch is None
    assert summary.pitch_range is None

    empty = summarize_prosody([])
    assert empty.avg_rms == 0.0
    assert empty.rms_variance == 0.0


def test_wav_round_trip_stereo(tmp_path) -> None:
    mono = (_sine(200.0, 0.2) * 32767).astype(np.int16)
    stereo = np.stack([mono, mono], axis=1)
    path = str(tmp_path / "date.wav")
    write_wav(path, stereo.reshape(-1), SR, channels=2)

    audio, sr = read_wav(path)
    assert sr == SR
    assert audio.dtype == np.float32
    assert audio.shape == (len(mono),)
    assert estimate_pitch(audio[:1600], sr) == pytest.approx(200.0, rel=0.02)


def test_stereo_to_mono_passes_mono_through() -> None:
    x = np.ones(10)
    assert stereo_to_mono(x) is x
