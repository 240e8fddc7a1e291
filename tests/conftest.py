"""Pytest fixtures for voicefactor tests."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import numpy as np
import pytest
from sqlalchemy import Engine
from sqlmodel import create_engine
from sqlmodel.pool import StaticPool

from voicefactor.audio.sample import AudioSample
from voicefactor.database.locks import KeyedLock
from voicefactor.database.session import init_db
from voicefactor.database.stores import (
    SqlAttemptLog,
    SqlRateLimiter,
    SqlTemplateStore,
)
from voicefactor.domain.identity import AuthenticatedIdentity
from voicefactor.engine.voiceprint import SpectralVoiceprint

SAMPLE_RATE = 16000

# Two synthetic "speakers" with clearly different spectral envelopes
VOICE_A = ((150.0, 0.3), (300.0, 0.2), (450.0, 0.1))
VOICE_B = ((2000.0, 0.35), (3500.0, 0.25))


def harmonic_wave(
    partials: tuple[tuple[float, float], ...],
    duration: float = 3.0,
    gain: float = 1.0,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    """Sum of sinusoids, scaled by ``gain``."""
    t = np.arange(int(duration * sample_rate)) / sample_rate
    wave = sum(amp * np.sin(2 * np.pi * freq * t) for freq, amp in partials)
    return (gain * wave).astype(np.float32)


def make_sample(
    partials: tuple[tuple[float, float], ...] = VOICE_A,
    duration: float = 3.0,
    gain: float = 1.0,
    sample_rate: int = SAMPLE_RATE,
) -> AudioSample:
    """Mono AudioSample of a harmonic wave."""
    return AudioSample(
        waveform=harmonic_wave(partials, duration, gain, sample_rate),
        sample_rate=sample_rate,
    )


class FakeClock:
    """Manually advanced clock for time-dependent stores."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def sample_rate() -> int:
    """Standard sample rate."""
    return SAMPLE_RATE


@pytest.fixture
def voice_a_captures() -> list[AudioSample]:
    """Three enrollment captures of voice A at different loudness."""
    return [make_sample(VOICE_A, gain=g) for g in (0.8, 1.0, 1.2)]


@pytest.fixture
def voice_a_probe() -> AudioSample:
    """Verification capture of voice A, louder than any enrollment capture."""
    return make_sample(VOICE_A, gain=1.1)


@pytest.fixture
def voice_b_probe() -> AudioSample:
    """Verification capture of a different voice."""
    return make_sample(VOICE_B)


@pytest.fixture
def silence_sample() -> AudioSample:
    """Three seconds of silence."""
    return AudioSample(
        waveform=np.zeros(3 * SAMPLE_RATE, dtype=np.float32),
        sample_rate=SAMPLE_RATE,
    )


@pytest.fixture
def identity() -> AuthenticatedIdentity:
    """Identity of an authenticated user."""
    return AuthenticatedIdentity(user_id="user-001", session_id="session-abc")


@pytest.fixture
def extractor() -> SpectralVoiceprint:
    """Default spectral extractor."""
    return SpectralVoiceprint()


@pytest.fixture
def engine() -> Engine:
    """Create an in-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path: Path) -> Engine:
    """File-backed SQLite engine for tests with real concurrent connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'voicefactor.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    init_db(engine)
    return engine


@pytest.fixture
def clock() -> FakeClock:
    """Manually advanced clock."""
    return FakeClock()


@pytest.fixture
def locks() -> KeyedLock:
    """Per-user locks shared by the stores of one test."""
    return KeyedLock()


@pytest.fixture
def template_store(engine: Engine, locks: KeyedLock) -> SqlTemplateStore:
    """Template store on the in-memory database."""
    return SqlTemplateStore(engine, min_quality=0.5, locks=locks)


@pytest.fixture
def attempt_log(engine: Engine) -> SqlAttemptLog:
    """Attempt log on the in-memory database."""
    return SqlAttemptLog(engine)


@pytest.fixture
def rate_limiter(engine: Engine, clock: FakeClock, locks: KeyedLock) -> SqlRateLimiter:
    """Rate limiter allowing three failures per 15 minutes."""
    return SqlRateLimiter(
        engine,
        max_failed_attempts=3,
        window=timedelta(minutes=15),
        clock=clock,
        locks=locks,
    )
