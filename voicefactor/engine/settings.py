"""Engine settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Signal analysis and feature extraction settings."""

    model_config = SettingsConfigDict(
        env_prefix="VOICEFACTOR_ENGINE_",
        env_file=".env",
        extra="ignore",
    )

    # Model paths (relative to project root)
    models_dir: Path = Path("models")

    # Format normalization
    target_sample_rate: int = 16000
    min_sample_rate: int = 8000
    max_sample_rate: int = 48000
    max_channels: int = 2

    # Framing
    frame_length: float = 0.025  # seconds
    frame_hop: float = 0.010  # seconds
    fft_size: int = 512

    # Speech presence
    silence_threshold_db: float = -40.0  # dBFS, frame RMS
    min_speech_duration: float = 1.0  # seconds of continuous speech

    # Spectral voiceprint
    num_mel_bands: int = 40
    mel_low_freq: float = 60.0
    mel_high_freq: float = 7600.0
    pooling_gate_db: float = 30.0  # frames within this range of the loudest are pooled

    # CAM++ Speaker Embedding settings
    extractor: str = "spectral"  # "spectral" or "campp"
    speaker_model_file: str = "3dspeaker_speech_campplus_sv_en_voxceleb_16k.onnx"
    speaker_num_threads: int = 1

    @property
    def speaker_model_path(self) -> Path:
        """Full path to CAM++ speaker model file."""
        return self.models_dir / self.speaker_model_file


settings = EngineSettings()
