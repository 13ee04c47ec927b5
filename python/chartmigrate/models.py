"""Data classes shared by the lister, the transfer and the migrator."""

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class HelmChart:
    """One version of one chart in one Harbor project"""

    name: str
    project: str
    version: str

    @property
    def chart_file_name(self) -> str:
        return f"{self.name}-{self.version}.tgz"

    def __str__(self) -> str:
        return f"{self.project}/{self.name}:{self.version}"


@dataclass
class ChartFailure:
    """A chart that could not be migrated and the step that failed"""

    chart: HelmChart
    step: str
    error: str

    def to_dict(self) -> dict:
        return {
            "project": self.chart.project,
            "name": self.chart.name,
            "version": self.chart.version,
            "step": self.step,
            "error": self.error,
        }


@dataclass
class RunReport:
    """Outcome of a migration run"""

    attempted: int = 0
    failed: int = 0
    failures: List[ChartFailure] = field(default_factory=list)
    dry_run: bool = False

    @property
    def succeeded(self) -> int:
        return self.attempted - self.failed

    def record_failure(self, chart: HelmChart, step: str, error: str) -> None:
        self.failed += 1
        self.failures.append(ChartFailure(chart=chart, step=step, error=error))
