"""Tests for EnrollmentOrchestrator."""

from unittest.mock import MagicMock

import numpy as np
import pytest

from voicefactor.audio.sample import AudioSample
from voicefactor.database.stores import SqlTemplateStore
from voicefactor.domain.exceptions import InputError, MissingIdentityError
from voicefactor.domain.models import ReasonCode
from voicefactor.domain_service import EnrollmentOrchestrator, EnrollmentStatus

from .conftest import VOICE_A, VOICE_B, make_sample


@pytest.fixture
def orchestrator(extractor, template_store) -> EnrollmentOrchestrator:
    return EnrollmentOrchestrator(extractor, template_store)


class TestEnroll:
    """Tests for the enrollment flow."""

    def test_successful_enrollment(
        self, orchestrator, identity, voice_a_captures, template_store
    ):
        """Three consistent captures produce active version 1."""
        result = orchestrator.enroll(identity, voice_a_captures)

        assert result.status is EnrollmentStatus.ENROLLED
        assert result.enrolled
        assert result.reason is ReasonCode.ENROLLED
        assert result.version == 1
        assert 0.5 < result.quality <= 1.0
        assert [c.accepted for c in result.captures] == [True, True, True]

        template = template_store.get_active(identity.user_id)
        assert template is not None
        assert len(template.sample_embeddings) == 3

    def test_reenrollment_supersedes(
        self, orchestrator, identity, voice_a_captures, template_store
    ):
        orchestrator.enroll(identity, voice_a_captures)
        result = orchestrator.enroll(identity, voice_a_captures)

        assert result.version == 2
        assert template_store.get_active(identity.user_id).version == 2

    def test_incomplete_enrollment(
        self, orchestrator, identity, voice_a_captures, silence_sample, template_store
    ):
        """Two usable captures out of five is not enough."""
        captures = voice_a_captures[:2] + [silence_sample] * 3
        result = orchestrator.enroll(identity, captures)

        assert result.status is EnrollmentStatus.FAILED
        assert result.reason is ReasonCode.ENROLLMENT_INCOMPLETE
        assert len(result.captures) == 5
        discarded = [c for c in result.captures if not c.accepted]
        assert len(discarded) == 3
        assert all(c.reason is ReasonCode.INSUFFICIENT_SIGNAL for c in discarded)
        assert template_store.get_active(identity.user_id) is None

    def test_discarded_captures_do_not_block(
        self, orchestrator, identity, voice_a_captures, silence_sample
    ):
        """A silent capture is skipped when enough others succeed."""
        result = orchestrator.enroll(identity, [silence_sample] + voice_a_captures)

        assert result.enrolled
        assert result.captures[0].accepted is False
        assert result.captures[0].reason is ReasonCode.INSUFFICIENT_SIGNAL

    def test_short_capture_discarded(self, orchestrator, identity, voice_a_captures):
        """Captures outside the duration bounds are discarded as invalid."""
        short = make_sample(VOICE_A, duration=1.0)
        result = orchestrator.enroll(identity, voice_a_captures + [short])

        assert result.enrolled
        assert result.captures[3].reason is ReasonCode.INVALID_AUDIO

    def test_inconsistent_samples(self, orchestrator, identity, template_store):
        """Captures of different voices are refused."""
        captures = [make_sample(VOICE_A), make_sample(VOICE_A, gain=0.9), make_sample(VOICE_B)]
        result = orchestrator.enroll(identity, captures)

        assert result.status is EnrollmentStatus.FAILED
        assert result.reason is ReasonCode.INCONSISTENT_SAMPLES
        assert template_store.get_active(identity.user_id) is None

    def test_quality_below_threshold(self, extractor, engine, identity, voice_a_captures):
        """A store with a higher quality bar refuses the template."""
        store = SqlTemplateStore(engine, min_quality=0.999)
        orchestrator = EnrollmentOrchestrator(extractor, store)
        result = orchestrator.enroll(identity, voice_a_captures)

        assert result.status is EnrollmentStatus.FAILED
        assert result.reason is ReasonCode.QUALITY_BELOW_THRESHOLD

    def test_unsupported_format(self, orchestrator, identity, voice_a_captures):
        """An unsupported sample rate fails the whole enrollment."""
        bad = make_sample(VOICE_A, sample_rate=4000)
        result = orchestrator.enroll(identity, voice_a_captures + [bad])

        assert result.status is EnrollmentStatus.FAILED
        assert result.reason is ReasonCode.UNSUPPORTED_FORMAT

    def test_too_many_captures(self, orchestrator, identity, voice_a_captures):
        """More captures than the attempt limit is an input error."""
        with pytest.raises(InputError):
            orchestrator.enroll(identity, voice_a_captures * 2)

    def test_missing_identity(self, orchestrator, voice_a_captures):
        """Enrollment without an authenticated identity is refused."""
        with pytest.raises(MissingIdentityError):
            orchestrator.enroll(None, voice_a_captures)

    def test_snr_reported(self, orchestrator, identity, voice_a_captures):
        """Accepted captures report their SNR."""
        result = orchestrator.enroll(identity, voice_a_captures)
        assert all(c.snr_db is not None and c.snr_db > 20 for c in result.captures)

    def test_store_receives_all_embeddings(self, extractor, identity, voice_a_captures):
        """The store gets the per-sample embeddings in capture order."""
        store = MagicMock()
        store.put.return_value = MagicMock(version=1, extractor_version=extractor.version)
        orchestrator = EnrollmentOrchestrator(extractor, store)

        orchestrator.enroll(identity, voice_a_captures)

        user_id, embeddings, quality = store.put.call_args.args
        assert user_id == identity.user_id
        assert len(embeddings) == 3
        assert 0.0 <= quality <= 1.0

    def test_min_successful_samples_validation(self, extractor, template_store):
        """At least two samples are needed for a consistency check."""
        with pytest.raises(ValueError):
            EnrollmentOrchestrator(extractor, template_store, min_successful_samples=1)


class TestRevoke:
    """Tests for EnrollmentOrchestrator.revoke."""

    def test_revoke(self, orchestrator, identity, voice_a_captures, template_store):
        orchestrator.enroll(identity, voice_a_captures)
        orchestrator.revoke(identity)
        assert template_store.get_active(identity.user_id) is None

    def test_revoke_twice(self, orchestrator, identity, voice_a_captures):
        """Revoking twice is a no-op."""
        orchestrator.enroll(identity, voice_a_captures)
        orchestrator.revoke(identity)
        orchestrator.revoke(identity)

    def test_revoke_requires_identity(self, orchestrator):
        with pytest.raises(MissingIdentityError):
            orchestrator.revoke(None)


def test_stereo_capture_enrolls(orchestrator, identity, voice_a_captures):
    """Stereo captures are mixed down before extraction."""
    mono = voice_a_captures[0].waveform
    stereo = AudioSample(np.stack([mono, mono]), 16000, channels=2)
    result = orchestrator.enroll(identity, voice_a_captures[1:] + [stereo])
    assert result.enrolled
