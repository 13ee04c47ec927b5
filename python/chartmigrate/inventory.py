"""
Discover the charts stored in ChartMuseum.

Listing is all-or-nothing: the first failure while paging projects, listing
a project's charts or listing a chart's versions aborts the whole listing
with a ListError.
"""

from typing import Any, Dict, Iterable, Iterator, List

from chartmigrate.error_utils import ListError
from chartmigrate.harbor_client import ChartSource
from chartmigrate.logging_utils import get_logger
from chartmigrate.models import HelmChart

logger = get_logger(__name__)


def iter_projects(source: ChartSource, page_size: int = 10) -> Iterator[Dict[str, Any]]:
    """Yield every project, page by page, until the server's total count is reached.

    Each call starts again from page 1.
    """
    seen = 0
    page = 1
    while True:
        projects, total = source.list_projects_page(page, page_size)
        seen += len(projects)
        logger.debug(f"Project page {page}: {len(projects)} projects ({seen}/{total})")

        yield from projects

        if seen >= total:
            return
        if not projects:
            raise ListError(
                f"fail to list harbor projects of page {page}: empty page before reaching the reported total",
                details={"page": page, "seen": seen, "total": total},
            )
        page += 1


def list_project_charts(source: ChartSource, project: str) -> List[HelmChart]:
    """Return every version of every chart of one project, in server order"""
    charts = []
    for name in source.list_chart_names(project):
        for version in source.list_chart_versions(project, name):
            charts.append(HelmChart(name=name, project=project, version=version))
    return charts


class ChartLister:
    """Builds the flat list of charts to migrate"""

    def __init__(self, source: ChartSource, page_size: int = 10):
        self.source = source
        self.page_size = page_size
        self.logger = get_logger(self.__class__.__name__)

    def list_charts(self, projects: Iterable[str] = ()) -> List[HelmChart]:
        """List charts of every project, or only of ``projects`` when it is not empty.

        Raises:
            ListError: Any request failed; no partial result is returned
        """
        selected = set(projects)
        charts: List[HelmChart] = []
        seen = set()

        for project in iter_projects(self.source, self.page_size):
            name = project.get("name") if isinstance(project, dict) else None
            if not name:
                raise ListError("fail to list harbor projects: project without a name", details={"project": project})
            if selected and name not in selected:
                continue

            try:
                project_charts = list_project_charts(self.source, name)
            except ListError as e:
                raise ListError(
                    f"fail to migrate charts from project {name}",
                    suggestions=e.suggestions,
                    details=dict(e.details, project=name, cause=e.message),
                ) from e

            self.logger.info(f"Project {name}: {len(project_charts)} chart versions")
            for chart in project_charts:
                if chart in seen:
                    self.logger.debug(f"Skipping duplicate listing of {chart}")
                    continue
                seen.add(chart)
                charts.append(chart)

        missing = selected - {chart.project for chart in charts}
        if missing:
            self.logger.info(f"No charts found for selected projects: {', '.join(sorted(missing))}")

        return charts
