"""
Migrate every Helm chart of Harbor's ChartMuseum to Harbor's OCI registry.

Workflow:
1. Check the helm binary is recent enough
2. Verify the Harbor credentials and log helm in to the registry
3. List every chart version of every (selected) project
4. Fetch, push and clean up each chart, one at a time
5. Report how many charts were migrated

Steps 1-3 are fatal on failure and raise to the caller. A failure in step 4
only affects that chart: it is logged, counted and the run moves on.
"""

from typing import List, Optional

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from chartmigrate.config_manager import RunConfig
from chartmigrate.error_utils import TransferError
from chartmigrate.harbor_client import ChartSource, HarborClient
from chartmigrate.helm_client import ChartTool, HelmClient
from chartmigrate.inventory import ChartLister
from chartmigrate.logging_utils import get_logger, log_exception
from chartmigrate.models import HelmChart, RunReport
from chartmigrate.transfer import ChartTransfer
from chartmigrate.version_gate import check_helm_version


class ChartMigrator:
    """Runs one ChartMuseum to OCI migration"""

    def __init__(
        self,
        config: RunConfig,
        source: Optional[ChartSource] = None,
        tool: Optional[ChartTool] = None,
        work_dir: Optional[str] = None,
        show_progress: bool = True,
    ):
        self.config = config
        self.source = source or HarborClient(config.harbor_url, config.username, config.password)
        self.tool = tool or HelmClient(
            registry_url=config.harbor_host,
            username=config.username,
            password=config.password,
            binary=config.helm_binary,
            insecure=config.insecure,
            plain_http=config.plain_http,
        )
        self.transfer = ChartTransfer(self.source, self.tool, config, work_dir=work_dir)
        self.show_progress = show_progress
        self.logger = get_logger(self.__class__.__name__)

    def prepare(self) -> str:
        """Version gate, credential check and helm login. Returns the accepted helm version."""
        version = check_helm_version(self.tool, self.config.min_helm_version)
        self.source.check_credentials()
        self.tool.login()
        return version

    def discover(self) -> List[HelmChart]:
        lister = ChartLister(self.source, page_size=self.config.page_size)
        if self.config.projects:
            self.logger.info(f"Restricting migration to projects: {', '.join(self.config.projects)}")
        return lister.list_charts(self.config.projects)

    def migrate(self, charts: List[HelmChart]) -> RunReport:
        """Transfer each chart in order, isolating failures"""
        report = RunReport(dry_run=self.config.dry_run)

        with logging_redirect_tqdm():
            for chart in tqdm(charts, desc="Migrating charts", unit="chart", disable=not self.show_progress):
                report.attempted += 1

                if self.config.dry_run:
                    self.logger.info(f"Would migrate {chart} to {self.config.oci_coordinate(chart)}")
                    continue

                try:
                    self.transfer.transfer(chart)
                except TransferError as e:
                    report.record_failure(chart, e.step, e.message)
                    log_exception(self.logger, f"fail to migrate helm chart {chart} ({e.step} step)", exc_info=e)
                    continue

                self.logger.debug(f"Migrated {chart}")

        return report

    def run(self) -> RunReport:
        """Run the whole migration.

        Raises:
            VersionError, ToolError, AuthError, ListError: fatal, nothing was migrated
        """
        self.prepare()

        charts = self.discover()
        # Summary lines go out at WARNING so no accepted --log-level hides them
        self.logger.warning(f"{len(charts)} Helm charts to migrate from Chartmuseum to OCI")

        report = self.migrate(charts)

        action = "would be migrated" if self.config.dry_run else "successfully migrated"
        self.logger.warning(f"{report.succeeded} Helm charts {action} from Chartmuseum to OCI")
        if report.failed:
            self.logger.warning(f"{report.failed} Helm charts failed to migrate")
        return report
