"""voicefactor - voice-biometric second factor for credential logins."""

__version__ = "0.1.0"
