"""Global (not per-user) preference slots and their value enums."""

from enum import Enum


class Preference(str, Enum):
    """Names of the scalar preference slots in the Local Store."""
    MONTHLY_LIMIT = "monthlyLimit"
    DEFAULT_CURRENCY = "defaultCurrency"
    SECURITY_TYPE = "securityType"
    SECURITY_PASSWORD_HASH = "securityPasswordHash"
    RECOMMENDATIONS_ENABLED = "recommendationsEnabled"
    APP_THEME = "appTheme"
    AUTH_TOKEN = "authToken"
    LAST_CLOUD_BACKUP_AT = "lastCloudBackupAt"


class SecurityMode(str, Enum):
    """App lock configuration."""
    NONE = "none"
    PASSWORD = "password"
    BIOMETRIC = "biometric"
    BOTH = "both"

    @property
    def description(self) -> str:
        return {
            SecurityMode.NONE: "No app protection",
            SecurityMode.PASSWORD: "Protected with password only",
            SecurityMode.BIOMETRIC: "Protected with Face ID / Touch ID only",
            SecurityMode.BOTH: "Protected with password and Face ID / Touch ID",
        }[self]

    @property
    def accepts_password(self) -> bool:
        return self in (SecurityMode.PASSWORD, SecurityMode.BOTH)

    @property
    def accepts_biometric(self) -> bool:
        return self in (SecurityMode.BIOMETRIC, SecurityMode.BOTH)


class AppTheme(str, Enum):
    """Colour scheme preference."""
    SYSTEM = "system"
    LIGHT = "light"
    DARK = "dark"
