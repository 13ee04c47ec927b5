"""
Move one chart from ChartMuseum to the OCI registry.

A transfer is fetch -> push -> cleanup. The chart archive is written to the
working directory under its own file name, pushed with helm, then removed.
The ChartMuseum copy is never modified.
"""

import os
from pathlib import Path
from typing import Optional

from chartmigrate.config_manager import RunConfig
from chartmigrate.error_utils import CleanupError, FetchError, PushError, ToolError
from chartmigrate.harbor_client import ChartSource
from chartmigrate.helm_client import ChartTool, HelmCommandError
from chartmigrate.logging_utils import get_logger
from chartmigrate.models import HelmChart

FILE_MODE = 0o600


class ChartTransfer:
    """Fetches, pushes and cleans up a single chart"""

    def __init__(self, source: ChartSource, tool: ChartTool, config: RunConfig, work_dir: Optional[str] = None):
        self.source = source
        self.tool = tool
        self.config = config
        self.work_dir = Path(work_dir) if work_dir else Path(".")
        self.logger = get_logger(self.__class__.__name__)

    def chart_path(self, chart: HelmChart) -> Path:
        return self.work_dir / chart.chart_file_name

    def fetch(self, chart: HelmChart) -> Path:
        """Download the chart archive and write it to the working directory"""
        content = self.source.download_chart(chart, timeout=self.config.fetch_timeout)
        path = self.chart_path(chart)
        created = False
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
            created = True
            with os.fdopen(fd, "wb") as f:
                f.write(content)
        except OSError as e:
            if created:
                self._remove_partial(path)
            raise FetchError(
                chart,
                f"fail to write chart file to disk: {path}",
                details={"error_message": str(e)},
            ) from e
        self.logger.debug(f"Fetched {chart} ({len(content)} bytes) to {path}")
        return path

    def _remove_partial(self, path: Path) -> None:
        try:
            os.remove(path)
        except OSError as e:
            self.logger.warning(f"Could not remove partially written {path}: {e}")

    def push(self, chart: HelmChart, path: Path) -> None:
        """Push the local archive to the chart's OCI coordinate"""
        coordinate = self.config.oci_coordinate(chart)
        try:
            self.tool.push(str(path), coordinate)
        except HelmCommandError as e:
            raise PushError(
                chart,
                f"fail to execute helm push command: {e.stderr} for url: {coordinate} and file: {path.name}",
                stderr=e.stderr,
                details={"coordinate": coordinate},
            ) from e
        except ToolError as e:
            raise PushError(chart, f"fail to push chart to OCI: {e.message}", details={"coordinate": coordinate}) from e
        self.logger.debug(f"Pushed {chart} to {coordinate}")

    def cleanup(self, chart: HelmChart, path: Path) -> None:
        try:
            os.remove(path)
        except OSError as e:
            raise CleanupError(chart, f"fail to delete file {path}", details={"error_message": str(e)}) from e

    def transfer(self, chart: HelmChart) -> None:
        """Migrate one chart.

        Cleanup always follows a push attempt. When both fail, the push
        error is raised and the cleanup error is only logged.

        Raises:
            FetchError: Download or local write failed; nothing else is attempted
            PushError: helm push failed
            CleanupError: The pushed archive could not be removed
        """
        path = self.fetch(chart)

        push_error = None
        try:
            self.push(chart, path)
        except PushError as e:
            push_error = e

        try:
            self.cleanup(chart, path)
        except CleanupError as e:
            if push_error is None:
                raise
            self.logger.warning(f"Could not remove {path} after failed push: {e.details.get('error_message')}")

        if push_error is not None:
            raise push_error
