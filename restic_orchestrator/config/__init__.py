"""
Configuration loading.
"""

from .loader import BackupSource, ConfigLoader, Settings, SmtpSettings

__all__ = ["BackupSource", "ConfigLoader", "Settings", "SmtpSettings"]
