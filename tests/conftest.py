"""
Pytest configuration file.

Sets up the Python path so test files can import from the python/ directory,
and provides in-memory stand-ins for Harbor and helm.
"""
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add python directory to path for all tests
_python_dir = Path(__file__).parent.parent / 'python'
_python_dir_abs = str(_python_dir.absolute())
if _python_dir_abs not in sys.path:
    sys.path.insert(0, _python_dir_abs)

from chartmigrate.config_manager import RunConfig  # noqa: E402
from chartmigrate.error_utils import FetchError, ListError  # noqa: E402
from chartmigrate.harbor_client import ChartSource  # noqa: E402
from chartmigrate.helm_client import ChartTool, HelmCommandError  # noqa: E402


class FakeChartSource(ChartSource):
    """Harbor inventory held in memory: {project: {chart: [versions]}}"""

    def __init__(self, inventory: Dict[str, Dict[str, List[str]]], page_size_override: Optional[int] = None):
        self.inventory = inventory
        self.page_size_override = page_size_override
        self.failing_pages = set()
        self.failing_projects = set()
        self.failing_downloads = set()
        self.page_calls: List[int] = []
        self.downloads: List[str] = []

    def list_projects_page(self, page, page_size):
        self.page_calls.append(page)
        if page in self.failing_pages:
            raise ListError(f"fail to list harbor projects of page {page}")
        names = list(self.inventory)
        start = (page - 1) * page_size
        return [{"name": n} for n in names[start:start + page_size]], len(names)

    def list_chart_names(self, project):
        if project in self.failing_projects:
            raise ListError(f"fail to list charts of project {project}")
        return list(self.inventory[project])

    def list_chart_versions(self, project, name):
        return list(self.inventory[project][name])

    def download_chart(self, chart, timeout):
        self.downloads.append(chart.chart_file_name)
        if chart.chart_file_name in self.failing_downloads:
            raise FetchError(chart, f"fail to retrieve chart from chartmuseum: received status 404")
        return f"archive of {chart.chart_file_name}".encode()


class FakeChartTool(ChartTool):
    """Records helm invocations instead of running them"""

    def __init__(self, version_output: str = "v3.19.0+gce43812"):
        self.version_output = version_output
        self.logged_in = False
        self.login_error: Optional[Exception] = None
        self.failing_pushes = set()
        self.pushes: List[tuple] = []
        self.files_seen_at_push: List[bool] = []

    def version(self):
        return self.version_output

    def login(self):
        if self.login_error is not None:
            raise self.login_error
        self.logged_in = True

    def push(self, chart_file, coordinate):
        self.pushes.append((chart_file, coordinate))
        self.files_seen_at_push.append(Path(chart_file).exists())
        if Path(chart_file).name in self.failing_pushes:
            raise HelmCommandError(["helm", "push", chart_file, coordinate], 1, "Error: unexpected status 500")


@pytest.fixture
def run_config():
    return RunConfig(
        harbor_url="https://harbor.example.com",
        username="admin",
        password="secret",
    )


@pytest.fixture
def fake_tool():
    return FakeChartTool()


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run the test from an empty working directory"""
    monkeypatch.chdir(tmp_path)
    return tmp_path
