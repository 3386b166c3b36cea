#!/usr/bin/env python3
"""
Main entry point for the datelens analysis system.
Allows running the package with: python -m datelens SESSION.json
"""
import json
import sys
import wave

from .config import get_config
from .analysis.models import AnalysisOutcome
from .analysis.orchestrator import AnalysisOrchestrator
from .analysis.schemas import SessionState
from .infrastructure.audio import read_wav, extract_prosody_samples
from .infrastructure.llm import AnalysisCancelledError
from .utils import setup_logging

USAGE = "Usage: python -m datelens SESSION.json [--wav=PATH] [--demo] [--llm-score] [--json]"


def _fail(message: str) -> None:
    print(f"❌ {message}")
    sys.exit(1)


def _load_session(path: str) -> SessionState:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        _fail(f"Cannot read session file: {e}")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        _fail(f"Session file is not valid JSON/UTF-8: {e}")

    if not isinstance(data, dict):
        _fail("Session file must contain a JSON object")
    try:
        return SessionState.from_dict(data)
    except ValueError as e:
        _fail(str(e))


def _load_wav_prosody(path: str) -> list:
    try:
        audio, sample_rate = read_wav(path)
    except (OSError, ValueError, wave.Error) as e:
        _fail(f"Cannot read WAV file: {e}")
    return extract_prosody_samples(audio, sample_rate)


def _print_outcome(outcome: AnalysisOutcome, samples: list) -> None:
    if outcome.is_fallback:
        print(f"⚠️  Demo results (fallback): {outcome.reason}")
    else:
        print("✅ Live analysis")

    match = outcome.match
    print(f"\n💘 Match score: {match.score}/100")
    print(f"   text {match.breakdown.text} | voice {match.breakdown.voice} | balance {match.breakdown.balance}")

    if outcome.prosody is not None:
        pitch = f", avg pitch {outcome.prosody.avg_pitch:.0f} Hz" if outcome.prosody.avg_pitch else ""
        print(f"🎚️  Voice: avg RMS {outcome.prosody.avg_rms:.3f} over {len(samples)} samples{pitch}")

    emotion = outcome.emotion
    print(f"🙂 Valence {emotion.valence:+.2f}, arousal {emotion.arousal:.2f}, "
          f"dominant emotion {emotion.dominant_emotion or 'unknown'}")
    if outcome.conversation.red_flags:
        print(f"🚩 Red flags: {', '.join(outcome.conversation.red_flags)}")

    print(f"\n📝 {outcome.feedback.summary}")
    for i, tip in enumerate(outcome.feedback.tips, 1):
        print(f"   {i}. {tip}")


def main():
    """Command-line interface for the analysis orchestrator."""
    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    if len(args) != 1 or "--help" in sys.argv or "-h" in args:
        print(USAGE)
        sys.exit(0 if "--help" in sys.argv else 1)

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        _fail(f"Configuration Error: {e}")

    wav_path = None
    for arg in sys.argv[1:]:
        if arg.startswith("--wav="):
            wav_path = arg.split("=", 1)[1]
        elif arg == "--demo":
            config.api_key = ""
        elif arg == "--llm-score":
            config.use_llm_match_score = True
        elif arg.startswith("--") and arg != "--json":
            _fail(f"Unknown option {arg}\n{USAGE}")

    try:
        setup_logging(config.log_file, config.log_level)
    except (OSError, ValueError) as e:
        _fail(f"Cannot set up logging: {e}")

    session = _load_session(args[0])
    samples: list = list(session.prosody)
    if wav_path:
        samples = _load_wav_prosody(wav_path)
        session.prosody = list(samples)

    orchestrator = AnalysisOrchestrator(config=config)
    try:
        outcome = orchestrator.run(session)
    except (AnalysisCancelledError, KeyboardInterrupt):
        orchestrator.cancel()
        _fail("Analysis cancelled")
    except Exception as e:
        _fail(f"Analysis failed: {e} (details in {config.log_file})")

    if "--json" in sys.argv:
        print(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_outcome(outcome, samples)
        print(f"\n📁 Detailed logs: {config.log_file}")


if __name__ == "__main__":
    main()
