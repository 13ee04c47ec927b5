"""
Error types and message utilities for providing actionable guidance to users.

Every error raised by the migration carries a category, a list of suggested
fixes and a ``fatal`` flag. Fatal errors abort the whole run; the others are
isolated to a single chart and counted by the migrator.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Categories of errors for better error handling"""
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"
    COMPATIBILITY = "compatibility"
    TOOL = "tool"
    TRANSFER = "transfer"
    UNKNOWN = "unknown"


class ActionableError(Exception):
    """Exception with actionable guidance for users"""

    fatal = True
    default_category = ErrorCategory.UNKNOWN

    def __init__(self, message: str, category: Optional[ErrorCategory] = None,
                 suggestions: Optional[List[str]] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize actionable error

        Args:
            message: Primary error message
            category: Error category for classification (defaults to the class category)
            suggestions: List of suggested fixes
            details: Additional context information
        """
        self.message = message
        self.category = category or self.default_category
        self.suggestions = suggestions or []
        self.details = details or {}
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message with suggestions"""
        lines = [f"❌ {self.message}"]

        if self.suggestions:
            lines.append("\n💡 Suggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        if self.details:
            lines.append("\n📋 Additional details:")
            for key, value in self.details.items():
                lines.append(f"   {key}: {value}")

        return "\n".join(lines)


class ConfigError(ActionableError):
    """Missing or invalid run configuration"""
    default_category = ErrorCategory.CONFIGURATION


class VersionError(ActionableError):
    """The helm binary does not report a usable version"""
    default_category = ErrorCategory.COMPATIBILITY


class VersionParseError(VersionError):
    """Version output does not hold a MAJOR.MINOR.PATCH triple"""


class VersionFormatError(VersionError):
    """Version triple is not a valid semantic version"""


class VersionTooOldError(VersionError):
    """Version is below the required minimum"""


class ToolError(ActionableError):
    """The helm binary could not be executed"""
    default_category = ErrorCategory.TOOL


class AuthError(ActionableError):
    """Credentials were rejected by Harbor or by helm registry login"""
    default_category = ErrorCategory.AUTHENTICATION


class ListError(ActionableError):
    """Listing projects, charts or chart versions failed"""
    default_category = ErrorCategory.CONNECTION


class TransferError(ActionableError):
    """Migrating a single chart failed; the run carries on with the next one"""

    fatal = False
    default_category = ErrorCategory.TRANSFER
    step = "transfer"

    def __init__(self, chart, message: str, suggestions: Optional[List[str]] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.chart = chart
        merged = {"chart": str(chart), "step": self.step}
        merged.update(details or {})
        super().__init__(message, suggestions=suggestions, details=merged)


class FetchError(TransferError):
    step = "fetch"


class PushError(TransferError):
    step = "push"

    def __init__(self, chart, message: str, stderr: str = "", **kwargs):
        self.stderr = stderr
        super().__init__(chart, message, **kwargs)


class CleanupError(TransferError):
    step = "cleanup"


def create_harbor_connection_error(harbor_url: str, operation: str, error: Exception) -> ListError:
    """Create actionable error for Harbor API failures"""
    error_str = str(error).lower()

    suggestions = [
        f"Verify the Harbor URL is correct: {harbor_url}",
        "Check network connectivity to Harbor",
        "Verify the ChartMuseum component is still enabled on this Harbor instance",
    ]

    if "timeout" in error_str or "timed out" in error_str:
        suggestions.insert(1, "Check if Harbor is experiencing high load")

    if "name resolution" in error_str or "dns" in error_str:
        suggestions.insert(1, "Verify DNS resolution for the Harbor hostname")

    return ListError(
        message=f"Harbor request failed: {operation}",
        suggestions=suggestions,
        details={
            "harbor_url": harbor_url,
            "error_type": type(error).__name__,
            "error_message": str(error)
        }
    )


def create_harbor_auth_error(harbor_url: str, error: Exception) -> AuthError:
    """Create actionable error for Harbor authentication failures"""
    return AuthError(
        message=f"fail to contact Harbor registry at {harbor_url}, check your credentials",
        suggestions=[
            "Verify --username/--password (or HARBOR_USERNAME/HARBOR_PASSWORD) are correct",
            "Check the account has not been disabled or its password rotated",
            "Robot accounts need project read access to list charts",
        ],
        details={
            "harbor_url": harbor_url,
            "error_type": type(error).__name__,
            "error_message": str(error)
        }
    )


def create_helm_login_error(harbor_url: str, stderr: str) -> AuthError:
    """Create actionable error for a failed helm registry login"""
    suggestions = [
        "Verify the credentials can log in to the Harbor web UI",
        "Use --insecure for registries with self-signed certificates",
        "Use --plain-http for registries served over plain HTTP",
    ]
    if "x509" in stderr or "certificate" in stderr:
        suggestions.insert(0, "The registry certificate is not trusted; retry with --insecure")

    return AuthError(
        message="fail to login to Helm",
        suggestions=suggestions,
        details={"harbor_url": harbor_url, "stderr": stderr.strip()}
    )


def create_helm_not_found_error(binary: str, error: Exception) -> ToolError:
    """Create actionable error when the helm binary cannot be run"""
    return ToolError(
        message=f"Unable to execute helm binary '{binary}'",
        suggestions=[
            "Install helm >= 3.19.0 and make sure it is on PATH",
            "Or point HELM_BINARY (helm.binary in config.yaml) at the helm executable",
        ],
        details={"binary": binary, "error_type": type(error).__name__, "error_message": str(error)}
    )


def create_config_error(field: str, value: Any, reason: str) -> ConfigError:
    """Create actionable error for configuration validation failures"""
    suggestions = [
        f"Check the '{field}' value in config.yaml or on the command line",
        "Check the config-example.yaml for correct format",
    ]

    if "url" in field.lower():
        suggestions.insert(1, "URL should be in format: https://harbor.example.com")
    elif "timeout" in field.lower() or "page_size" in field.lower():
        suggestions.insert(1, "Value must be a positive number")
    elif field.startswith("helm."):
        suggestions.insert(1, "Value must be true or false")

    return ConfigError(
        message=f"Configuration error: Invalid value for '{field}'",
        suggestions=suggestions,
        details={
            "field": field,
            "value": value,
            "reason": reason
        }
    )
