"""
Helm client for OCI registry operations.

This module wraps the three helm invocations the migration needs (version,
registry login and push) behind the ``ChartTool`` interface, so the gate,
the transfer and the migrator can be exercised without a helm binary.
"""

import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional

from chartmigrate.error_utils import ToolError, create_helm_login_error, create_helm_not_found_error
from chartmigrate.logging_utils import get_logger


class HelmCommandError(Exception):
    """Raised when helm exits with a non-zero status"""

    def __init__(self, command: List[str], returncode: int, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        super().__init__(f"'{' '.join(command)}' exited with status {returncode}: {self.stderr}")


class ChartTool(ABC):
    """Operations the migration needs from an OCI-capable chart tool"""

    @abstractmethod
    def version(self) -> str:
        """Return the raw self-reported version string"""

    @abstractmethod
    def login(self) -> None:
        """Log in to the destination registry, raising AuthError on rejection"""

    @abstractmethod
    def push(self, chart_file: str, coordinate: str) -> None:
        """Push a chart archive to an oci:// coordinate, raising HelmCommandError on failure"""


class HelmClient(ChartTool):
    """ChartTool that shells out to the helm binary"""

    def __init__(
        self,
        registry_url: str,
        username: str,
        password: str,
        binary: str = "helm",
        insecure: bool = False,
        plain_http: bool = False,
    ):
        """Initialize HelmClient.

        Args:
            registry_url: Harbor URL used for ``helm registry login``
            username: Registry username
            password: Registry password, sent to helm over stdin
            binary: Path or name of the helm executable
            insecure: Skip TLS verification for login and push
            plain_http: Use plain HTTP for login and push
        """
        self.registry_url = registry_url
        self.username = username
        self.password = password
        self.binary = binary
        self.insecure = insecure
        self.plain_http = plain_http
        self.logger = get_logger(self.__class__.__name__)

    @staticmethod
    def _redact_command_for_logging(cmd: List[str]) -> List[str]:
        """Return a copy of the command with any credentials redacted."""
        redacted = list(cmd)
        for i, token in enumerate(redacted):
            if token == "--password" and i + 1 < len(redacted):
                redacted[i + 1] = "****"
            elif token.startswith("--password="):
                redacted[i] = "--password=****"
        return redacted

    def _run(self, args: List[str], stdin: Optional[str] = None) -> subprocess.CompletedProcess:
        """Run helm and return the completed process.

        Raises:
            ToolError: The binary could not be started
            HelmCommandError: helm exited with a non-zero status
        """
        cmd = [self.binary] + args
        log_cmd = " ".join(self._redact_command_for_logging(cmd))
        self.logger.debug(f"Running: {log_cmd}")

        try:
            result = subprocess.run(cmd, input=stdin, capture_output=True, text=True)
        except OSError as e:
            raise create_helm_not_found_error(self.binary, e) from e

        if result.returncode != 0:
            self.logger.debug(f"helm failed ({result.returncode}): {log_cmd}")
            raise HelmCommandError(self._redact_command_for_logging(cmd), result.returncode, result.stderr)
        return result

    def version(self) -> str:
        try:
            result = self._run(["version", "--short"])
        except HelmCommandError as e:
            raise ToolError(
                f"fail to execute helm version command: {e.stderr}",
                details={"binary": self.binary, "returncode": e.returncode},
            ) from e
        return result.stdout.strip()

    def _transport_flags(self, insecure_flag: str) -> List[str]:
        flags = []
        if self.insecure:
            flags.append(insecure_flag)
        if self.plain_http:
            flags.append("--plain-http")
        return flags

    def login(self) -> None:
        args = ["registry", "login", "--username", self.username, "--password-stdin", self.registry_url]
        args += self._transport_flags("--insecure")

        self.logger.info(f"Logging in to registry: {self.registry_url}")
        try:
            self._run(args, stdin=self.password)
        except HelmCommandError as e:
            raise create_helm_login_error(self.registry_url, e.stderr) from e
        self.logger.info("Helm registry login succeeded")

    def push(self, chart_file: str, coordinate: str) -> None:
        args = ["push", chart_file, coordinate] + self._transport_flags("--insecure-skip-tls-verify")
        self._run(args)
