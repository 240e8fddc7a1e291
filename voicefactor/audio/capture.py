"""Capture session state machine.

Models the "record for a fixed window, then stop" capture as explicit states:

    IDLE -> RECORDING -> CAPTURED -> DISCARDED | SUBMITTED

The end of the recording window is a scheduled transition that can be
cancelled. Capture knows nothing about extraction or matching; a captured
sample is handed to whatever handler ``submit`` receives.
"""

import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import Protocol, TypeVar

import numpy as np

from voicefactor.audio.sample import AudioSample
from voicefactor.audio.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CaptureState(Enum):
    """States of a capture session."""

    IDLE = "idle"
    RECORDING = "recording"
    CAPTURED = "captured"
    DISCARDED = "discarded"
    SUBMITTED = "submitted"


class CaptureStateError(RuntimeError):
    """Operation not allowed in the current capture state."""

    pass


class ScheduledCall(Protocol):
    """Handle of a scheduled transition."""

    def cancel(self) -> None:
        """Cancel the call if it has not fired yet."""
        ...


Scheduler = Callable[[float, Callable[[], None]], ScheduledCall]


def timer_scheduler(delay: float, callback: Callable[[], None]) -> ScheduledCall:
    """Schedule ``callback`` on a daemon ``threading.Timer``."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class CaptureSession:
    """One recording attempt, from start to submission or discard."""

    def __init__(
        self,
        sample_rate: int | None = None,
        window: float | None = None,
        scheduler: Scheduler = timer_scheduler,
    ) -> None:
        self.sample_rate = sample_rate or settings.target_sample_rate
        self.window = window if window is not None else settings.capture_window
        self._scheduler = scheduler
        self._state = CaptureState.IDLE
        self._chunks: list[np.ndarray] = []
        self._sample: AudioSample | None = None
        self._scheduled: ScheduledCall | None = None
        self._lock = threading.RLock()

    @property
    def state(self) -> CaptureState:
        """Current state."""
        return self._state

    @property
    def sample(self) -> AudioSample | None:
        """Captured sample, available in the CAPTURED state."""
        return self._sample

    def _require(self, *allowed: CaptureState) -> None:
        if self._state not in allowed:
            names = ", ".join(s.value for s in allowed)
            raise CaptureStateError(
                f"Capture is {self._state.value}, expected one of: {names}"
            )

    def start(self) -> None:
        """Begin recording and schedule the automatic stop."""
        with self._lock:
            self._require(CaptureState.IDLE)
            self._state = CaptureState.RECORDING
            self._scheduled = self._scheduler(self.window, self._on_window_elapsed)

    def feed(self, chunk: np.ndarray) -> None:
        """Append a chunk of mono PCM while recording."""
        with self._lock:
            self._require(CaptureState.RECORDING)
            self._chunks.append(np.asarray(chunk, dtype=np.float32).ravel())

    def _on_window_elapsed(self) -> None:
        with self._lock:
            # The session may have been stopped or cancelled in the meantime
            if self._state is CaptureState.RECORDING:
                self._finish()

    def stop(self) -> AudioSample:
        """Stop recording early and materialize the sample."""
        with self._lock:
            self._require(CaptureState.RECORDING)
            return self._finish()

    def _finish(self) -> AudioSample:
        if self._scheduled is not None:
            self._scheduled.cancel()
            self._scheduled = None
        waveform = (
            np.concatenate(self._chunks)
            if self._chunks
            else np.zeros(0, dtype=np.float32)
        )
        self._chunks = []
        self._sample = AudioSample(waveform=waveform, sample_rate=self.sample_rate)
        self._state = CaptureState.CAPTURED
        logger.debug(f"Capture finished: {self._sample.duration:.2f}s")
        return self._sample

    def cancel(self) -> None:
        """Abort an in-progress recording; buffered audio is dropped."""
        with self._lock:
            self._require(CaptureState.IDLE, CaptureState.RECORDING)
            if self._scheduled is not None:
                self._scheduled.cancel()
                self._scheduled = None
            self._chunks = []
            self._state = CaptureState.DISCARDED

    def discard(self) -> None:
        """Drop a captured sample without submitting it."""
        with self._lock:
            self._require(CaptureState.CAPTURED)
            self._sample = None
            self._state = CaptureState.DISCARDED

    def submit(self, handler: Callable[[AudioSample], T]) -> T:
        """Hand the captured sample to ``handler`` exactly once."""
        with self._lock:
            self._require(CaptureState.CAPTURED)
            sample = self._sample
            if sample is None:
                raise CaptureStateError("Captured sample was already handed over")
            self._sample = None
            self._state = CaptureState.SUBMITTED
        return handler(sample)
