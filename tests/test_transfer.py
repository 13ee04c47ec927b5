"""Unit tests for chartmigrate/transfer.py"""

import errno
import os
import stat
from dataclasses import replace
from unittest.mock import patch

import pytest

from chartmigrate.error_utils import CleanupError, FetchError, PushError, ToolError
from chartmigrate.models import HelmChart
from chartmigrate.transfer import ChartTransfer
from conftest import FakeChartSource, FakeChartTool

CHART = HelmChart(name="demo", project="team-a", version="1.0.0")


class DiskFullFile:
    """Writes a few bytes to the real file, then fails like a full disk"""

    def __init__(self, fd, mode):
        self.f = open(fd, mode)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.f.close()

    def write(self, data):
        self.f.write(data[:4])
        self.f.flush()
        raise OSError(errno.ENOSPC, "No space left on device")


@pytest.fixture
def source():
    return FakeChartSource({"team-a": {"demo": ["1.0.0"]}})


@pytest.fixture
def transfer(source, fake_tool, run_config, workdir):
    return ChartTransfer(source, fake_tool, run_config)


class TestTransferSuccess:
    """Tests for a chart that migrates cleanly"""

    def test_fetch_push_cleanup(self, transfer, source, fake_tool, workdir):
        """Test the archive is downloaded, pushed from disk, then removed"""
        transfer.transfer(CHART)

        assert source.downloads == ["demo-1.0.0.tgz"]
        assert fake_tool.pushes == [("demo-1.0.0.tgz", "oci://harbor.example.com/team-a")]
        assert fake_tool.files_seen_at_push == [True]
        assert not (workdir / "demo-1.0.0.tgz").exists()

    def test_file_written_owner_only(self, transfer, workdir):
        """Test the fetched archive is created with mode 0600"""
        path = transfer.fetch(CHART)
        assert path.read_bytes() == b"archive of demo-1.0.0.tgz"
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_destination_uses_dest_path_and_project_override(self, source, fake_tool, run_config, workdir):
        """Test the OCI coordinate honours dest_path and dest_project"""
        config = replace(run_config, dest_path="/charts", dest_project="shared")
        ChartTransfer(source, fake_tool, config).transfer(CHART)
        assert fake_tool.pushes[0][1] == "oci://harbor.example.com/shared/charts"

    def test_work_dir(self, source, fake_tool, run_config, tmp_path):
        """Test an explicit working directory is used for the archive"""
        target = tmp_path / "scratch"
        target.mkdir()
        ChartTransfer(source, fake_tool, run_config, work_dir=str(target)).transfer(CHART)
        assert fake_tool.pushes[0][0] == str(target / "demo-1.0.0.tgz")
        assert list(target.iterdir()) == []


class TestTransferFailures:
    """Tests for failure handling in each step"""

    def test_fetch_failure_skips_push(self, transfer, source, fake_tool, workdir):
        """Test a failed download raises FetchError and nothing is pushed"""
        source.failing_downloads.add("demo-1.0.0.tgz")
        with pytest.raises(FetchError) as exc_info:
            transfer.transfer(CHART)
        assert exc_info.value.step == "fetch"
        assert exc_info.value.chart == CHART
        assert fake_tool.pushes == []
        assert list(workdir.iterdir()) == []

    def test_write_failure_is_fetch_error(self, transfer):
        """Test a local write error is reported as a fetch failure"""
        with patch("chartmigrate.transfer.os.open", side_effect=PermissionError("read-only")):
            with pytest.raises(FetchError, match="fail to write chart file"):
                transfer.transfer(CHART)

    def test_partial_write_is_removed(self, transfer, workdir):
        """Test a write that fails part-way leaves no archive behind"""
        with patch("chartmigrate.transfer.os.fdopen", DiskFullFile):
            with pytest.raises(FetchError, match="fail to write chart file"):
                transfer.fetch(CHART)
        assert not (workdir / "demo-1.0.0.tgz").exists()

    def test_push_failure_still_cleans_up(self, transfer, fake_tool, workdir):
        """Test a failed push reports PushError and the archive is removed anyway"""
        fake_tool.failing_pushes.add("demo-1.0.0.tgz")
        with pytest.raises(PushError) as exc_info:
            transfer.transfer(CHART)
        assert exc_info.value.step == "push"
        assert "unexpected status 500" in exc_info.value.stderr
        assert fake_tool.files_seen_at_push == [True]
        assert not (workdir / "demo-1.0.0.tgz").exists()

    def test_push_failure_wins_over_cleanup_failure(self, transfer, fake_tool):
        """Test the first failure is returned when cleanup also fails"""
        fake_tool.failing_pushes.add("demo-1.0.0.tgz")
        with patch("chartmigrate.transfer.os.remove", side_effect=OSError("busy")) as mock_remove:
            with pytest.raises(PushError):
                transfer.transfer(CHART)
        mock_remove.assert_called_once()

    def test_cleanup_failure_after_push(self, transfer, fake_tool):
        """Test a cleanup failure after a successful push is a CleanupError"""
        with patch("chartmigrate.transfer.os.remove", side_effect=OSError("busy")):
            with pytest.raises(CleanupError) as exc_info:
                transfer.transfer(CHART)
        assert exc_info.value.step == "cleanup"
        assert len(fake_tool.pushes) == 1

    def test_missing_helm_during_push_is_recoverable(self, source, run_config, workdir):
        """Test a ToolError from push is turned into a PushError"""
        tool = FakeChartTool()
        with patch.object(tool, "push", side_effect=ToolError("Unable to execute helm binary 'helm'")):
            with pytest.raises(PushError) as exc_info:
                ChartTransfer(source, tool, run_config).transfer(CHART)
        assert exc_info.value.fatal is False
        assert not (workdir / "demo-1.0.0.tgz").exists()
