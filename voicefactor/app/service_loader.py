"""Service loader with singleton management."""

import logging
import threading
from datetime import timedelta

from voicefactor.database.locks import KeyedLock
from voicefactor.database.session import engine
from voicefactor.database.stores import (
    SqlAttemptLog,
    SqlRateLimiter,
    SqlTemplateStore,
)
from voicefactor.domain.protocols import FeatureExtractorProtocol
from voicefactor.domain_service import (
    EnrollmentOrchestrator,
    MatchingEngine,
    VerificationOrchestrator,
)
from voicefactor.domain_service.settings import settings as service_settings
from voicefactor.engine.settings import settings as engine_settings
from voicefactor.engine.voiceprint import SpectralVoiceprint

logger = logging.getLogger(__name__)

_Services = tuple[EnrollmentOrchestrator, VerificationOrchestrator]


def build_extractor(name: str | None = None) -> FeatureExtractorProtocol:
    """Create the configured feature extractor.

    Args:
        name: "spectral" or "campp". Defaults to settings.extractor.

    Raises:
        ValueError: If the name is unknown.
    """
    name = name or engine_settings.extractor
    if name == "spectral":
        return SpectralVoiceprint()
    if name == "campp":
        # sherpa-onnx is only imported when the CAM++ extractor is selected
        from voicefactor.engine.voiceprint.campp import CAMPPVoiceprint

        extractor = CAMPPVoiceprint()
        extractor.load()
        return extractor
    raise ValueError(f"Unknown extractor: {name}")


class ServiceLoader:
    """Singleton manager for the engine services.

    The extractor, stores and orchestrators are created once and shared by
    all requests. Extractors are stateless after loading and the stores open
    a session per call, so sharing them across threads is safe.
    """

    _instance: "ServiceLoader | None" = None
    _lock = threading.Lock()

    def __new__(cls) -> "ServiceLoader":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return

        self._extractor: FeatureExtractorProtocol | None = None
        self._services: _Services | None = None
        self._extractor_lock = threading.Lock()
        self._services_lock = threading.Lock()
        self._initialized = True

    @property
    def extractor(self) -> FeatureExtractorProtocol:
        """Get feature extractor instance (lazy loaded)."""
        if self._extractor is None:
            with self._extractor_lock:
                if self._extractor is None:
                    self._extractor = build_extractor()
                    logger.info(f"Loaded feature extractor {self._extractor.version}")
        return self._extractor

    def _build_services(self) -> _Services:
        locks = KeyedLock()
        template_store = SqlTemplateStore(engine, locks=locks)
        matching_engine = MatchingEngine()
        enrollment = EnrollmentOrchestrator(
            self.extractor, template_store, matching_engine
        )
        verification = VerificationOrchestrator(
            self.extractor,
            template_store,
            SqlRateLimiter(
                engine,
                max_failed_attempts=service_settings.max_failed_attempts,
                window=timedelta(seconds=service_settings.lockout_window_seconds),
                locks=locks,
            ),
            SqlAttemptLog(engine),
            matching_engine,
        )
        return enrollment, verification

    def _get_services(self) -> _Services:
        services = self._services
        if services is None:
            with self._services_lock:
                services = self._services
                if services is None:
                    services = self._build_services()
                    self._services = services
        return services

    @property
    def enrollment(self) -> EnrollmentOrchestrator:
        """Get enrollment orchestrator (lazy built)."""
        return self._get_services()[0]

    @property
    def verification(self) -> VerificationOrchestrator:
        """Get verification orchestrator (lazy built)."""
        return self._get_services()[1]

    def preload_all(self) -> None:
        """Load the extractor and build services at application startup."""
        self._get_services()

    def unload_all(self) -> None:
        """Drop all instances; they are rebuilt on next access."""
        with self._extractor_lock:
            self._extractor = None
        with self._services_lock:
            self._services = None

    @property
    def loaded(self) -> bool:
        """Whether the services have been built."""
        return self._services is not None


# Global service loader instance
_loader: ServiceLoader | None = None
_loader_lock = threading.Lock()


def get_service_loader() -> ServiceLoader:
    """Get the global service loader instance."""
    global _loader
    if _loader is None:
        with _loader_lock:
            if _loader is None:
                _loader = ServiceLoader()
    return _loader


def get_enrollment() -> EnrollmentOrchestrator:
    """Get the shared enrollment orchestrator."""
    return get_service_loader().enrollment


def get_verification() -> VerificationOrchestrator:
    """Get the shared verification orchestrator."""
    return get_service_loader().verification
