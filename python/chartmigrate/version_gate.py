"""
Helm version gate.

``helm push`` to an OCI registry with the flags this tool relies on needs a
recent helm. The gate parses the output of ``helm version --short`` and
refuses to start the migration when the binary is too old.

Handled output formats:
- "v3.19.0+gce43812" (with git commit)
- "v3.19.0" (without git commit)
- "3.19.0" (without 'v' prefix)
"""

import re
from typing import Optional, Tuple

from packaging.version import InvalidVersion, Version

from chartmigrate.error_utils import VersionFormatError, VersionParseError, VersionTooOldError
from chartmigrate.logging_utils import get_logger

logger = get_logger(__name__)

MIN_HELM_VERSION = "3.19.0"

_IDENTIFIER = r"(?:0|[1-9]\d*|\d*[A-Za-z-][0-9A-Za-z-]*)"
_SEMVER_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    rf"(?:-({_IDENTIFIER}(?:\.{_IDENTIFIER})*))?$",
    re.ASCII,
)


def extract_version(output: str) -> str:
    """Strip the optional 'v' prefix and '+build' suffix from helm's version output.

    Raises:
        VersionParseError: If the remainder is not three dot-separated parts
    """
    version = output.strip()
    if version.startswith("v"):
        version = version[1:]

    # Build metadata ends the version
    version = version.split("+", 1)[0]

    if len(version.split(".")) != 3:
        raise VersionParseError(
            f"unable to extract version from Helm output: {output.strip()}",
            details={"output": output.strip()},
        )
    return version


def _parse(version_str: str) -> Tuple[Version, Tuple[str, ...]]:
    """Validate a semantic version and split it into its numeric core and pre-release identifiers"""
    match = _SEMVER_RE.match(version_str)
    if not match:
        raise VersionFormatError(f"invalid Helm version format: {version_str}")
    try:
        core = Version(".".join(match.group(1, 2, 3)))
    except InvalidVersion:
        raise VersionFormatError(f"invalid Helm version format: {version_str}")
    prerelease = tuple(match.group(4).split(".")) if match.group(4) else ()
    return core, prerelease


def _identifier_key(identifier: str) -> Tuple[int, int, str]:
    # Numeric identifiers compare numerically and rank below alphanumeric ones
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier)


def _prerelease_older(current: Tuple[str, ...], required: Tuple[str, ...]) -> bool:
    if not current or not required:
        # A release ranks above any of its pre-releases
        return bool(current) and not required
    for left, right in zip(current, required):
        if left != right:
            return _identifier_key(left) < _identifier_key(right)
    return len(current) < len(required)


def is_older(version_str: str, minimum: str) -> bool:
    """Semantic-version ordering: True if version_str sorts strictly below minimum.

    A pre-release ("3.19.0-rc1") sorts below its release ("3.19.0"), and
    pre-release identifiers compare one by one ("3.19.0-9" < "3.19.0-10").
    """
    current, current_pre = _parse(version_str)
    required, required_pre = _parse(minimum)
    if current != required:
        return current < required
    return _prerelease_older(current_pre, required_pre)


def check_minimum_version(raw_output: str, minimum: str = MIN_HELM_VERSION) -> str:
    """Check a helm version string against the minimum requirement.

    Args:
        raw_output: Output of ``helm version --short``
        minimum: Lowest accepted version, with or without the 'v' prefix

    Returns:
        The accepted version, e.g. "3.19.0"

    Raises:
        VersionParseError: Output does not contain MAJOR.MINOR.PATCH
        VersionFormatError: The triple is not a valid semantic version
        VersionTooOldError: The version is below ``minimum``
    """
    version_str = extract_version(raw_output)
    minimum = minimum[1:] if minimum.startswith("v") else minimum

    if is_older(version_str, minimum):
        raise VersionTooOldError(
            f"Helm version {version_str} is too old, requires version >= {minimum}",
            suggestions=[f"Upgrade helm to {minimum} or later (https://helm.sh/docs/intro/install/)"],
            details={"found": version_str, "required": minimum},
        )
    return version_str


def check_helm_version(helm_client, minimum: Optional[str] = None) -> str:
    """Run ``helm version`` through the client and gate on the result"""
    version = check_minimum_version(helm_client.version(), minimum or MIN_HELM_VERSION)
    logger.info(f"Helm version check passed: {version}")
    return version
