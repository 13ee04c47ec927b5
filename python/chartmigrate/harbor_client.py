"""
Harbor client for the project listing and the legacy ChartMuseum API.

The lister and the transfer only depend on the ``ChartSource`` interface so
tests can substitute an in-memory inventory.
"""

import concurrent.futures
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Tuple
from urllib.parse import quote

import requests

from chartmigrate.error_utils import (
    FetchError,
    ListError,
    create_harbor_auth_error,
    create_harbor_connection_error,
)
from chartmigrate.logging_utils import get_logger
from chartmigrate.models import HelmChart

TOTAL_COUNT_HEADER = "X-Total-Count"
DOWNLOAD_CHUNK_SIZE = 64 * 1024


class ChartSource(ABC):
    """Read-only view of the projects and charts stored in ChartMuseum"""

    def check_credentials(self) -> None:
        """Fail early when the source rejects the configured credentials"""

    @abstractmethod
    def list_projects_page(self, page: int, page_size: int) -> Tuple[List[Dict[str, Any]], int]:
        """Return one page of projects and the total number of projects"""

    @abstractmethod
    def list_chart_names(self, project: str) -> List[str]:
        """Return the names of the charts stored for a project"""

    @abstractmethod
    def list_chart_versions(self, project: str, name: str) -> List[str]:
        """Return every version of one chart"""

    @abstractmethod
    def download_chart(self, chart: HelmChart, timeout: float) -> bytes:
        """Return the chart archive, raising FetchError on any failure"""


class HarborClient(ChartSource):
    """ChartSource backed by the Harbor v2.0 and chartrepo HTTP APIs"""

    def __init__(self, harbor_url: str, username: str, password: str, session: requests.Session = None):
        self.harbor_url = harbor_url.rstrip("/")
        self.username = username
        self.session = session or requests.Session()
        self.session.auth = (username, password)
        self.session.headers.update({"Accept": "application/json"})
        self.logger = get_logger(self.__class__.__name__)

    def _get_json(self, path: str, operation: str, params: Dict[str, Any] = None) -> Tuple[Any, requests.Response]:
        url = f"{self.harbor_url}{path}"
        try:
            response = self.session.get(url, params=params)
            response.raise_for_status()
            return response.json(), response
        except (requests.RequestException, ValueError) as e:
            raise create_harbor_connection_error(self.harbor_url, operation, e) from e

    def check_credentials(self) -> None:
        """List one project to make sure Harbor is reachable and accepts the credentials.

        Raises:
            AuthError: Harbor rejected the credentials
            ListError: Harbor could not be contacted
        """
        try:
            response = self.session.get(f"{self.harbor_url}/api/v2.0/projects", params={"page": 1, "page_size": 1})
        except requests.RequestException as e:
            raise create_harbor_connection_error(self.harbor_url, "fail to contact Harbor registry", e) from e

        if response.status_code in (401, 403):
            error = requests.HTTPError(f"received status {response.status_code}")
            raise create_harbor_auth_error(self.harbor_url, error)
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise create_harbor_connection_error(self.harbor_url, "fail to contact Harbor registry", e) from e
        self.logger.info(f"Connected to Harbor at {self.harbor_url} as {self.username}")

    def list_projects_page(self, page: int, page_size: int) -> Tuple[List[Dict[str, Any]], int]:
        operation = f"fail to list harbor projects of page {page}"
        projects, response = self._get_json(
            "/api/v2.0/projects", operation, params={"page": page, "page_size": page_size}
        )
        try:
            total = int(response.headers[TOTAL_COUNT_HEADER])
        except (KeyError, TypeError, ValueError) as e:
            raise ListError(
                f"{operation}: missing or invalid {TOTAL_COUNT_HEADER} header",
                details={"harbor_url": self.harbor_url, "error_message": str(e)},
            ) from e
        return projects or [], total

    def list_chart_names(self, project: str) -> List[str]:
        charts, _ = self._get_json(
            f"/api/chartrepo/{quote(project, safe='')}/charts", f"fail to list charts of project {project}"
        )
        return self._pluck(charts, "name", f"fail to list charts of project {project}")

    def list_chart_versions(self, project: str, name: str) -> List[str]:
        versions, _ = self._get_json(
            f"/api/chartrepo/{quote(project, safe='')}/charts/{quote(name, safe='')}",
            f"fail to get chart {name} in project {project}",
        )
        return self._pluck(versions, "version", f"fail to get chart {name} in project {project}")

    def _pluck(self, items: Any, key: str, operation: str) -> List[str]:
        try:
            return [item[key] for item in items or []]
        except (KeyError, TypeError) as e:
            raise ListError(
                f"{operation}: unexpected response payload",
                details={"harbor_url": self.harbor_url, "missing_field": key, "error_message": str(e)},
            ) from e

    def chart_download_url(self, chart: HelmChart) -> str:
        return f"{self.harbor_url}/chartrepo/{quote(chart.project, safe='')}/charts/{quote(chart.chart_file_name)}"

    def _read_archive(self, chart: HelmChart, url: str, timeout: float, deadline: float) -> bytes:
        response = self.session.get(url, timeout=timeout, stream=True, headers={"Accept": "application/octet-stream"})
        try:
            if response.status_code != 200:
                raise FetchError(
                    chart,
                    f"fail to retrieve chart from chartmuseum: {url}: received status {response.status_code}",
                    details={"status": response.status_code},
                )

            chunks = []
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                if time.monotonic() > deadline:
                    raise self._timeout_error(chart, url, timeout)
                chunks.append(chunk)
            return b"".join(chunks)
        finally:
            response.close()

    @staticmethod
    def _timeout_error(chart: HelmChart, url: str, timeout: float) -> FetchError:
        return FetchError(
            chart,
            f"fail to retrieve chart from chartmuseum: {url}: timed out after {timeout}s",
            suggestions=["Raise harbor.fetch_timeout for large charts or slow links"],
            details={"timeout": timeout},
        )

    def download_chart(self, chart: HelmChart, timeout: float) -> bytes:
        """Download a chart archive.

        ``timeout`` bounds the whole request, headers and body included. A
        server that keeps trickling bytes is abandoned once it is exceeded.
        """
        url = self.chart_download_url(chart)
        deadline = time.monotonic() + timeout
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._read_archive, chart, url, timeout, deadline)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError as e:
            raise self._timeout_error(chart, url, timeout) from e
        except requests.RequestException as e:
            raise FetchError(
                chart,
                f"fail to retrieve chart from chartmuseum: {url}",
                details={"error_type": type(e).__name__, "error_message": str(e)},
            ) from e
        finally:
            # The worker stops on its own at the next chunk past the deadline
            executor.shutdown(wait=False)
