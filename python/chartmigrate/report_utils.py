"""
Utility functions for writing the migration report.

This module provides functions to:
- Build the JSON summary of a run
- Save reports as indented JSON
"""
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

from chartmigrate import __version__
from chartmigrate.config_manager import RunConfig
from chartmigrate.logging_utils import get_logger
from chartmigrate.models import RunReport

logger = get_logger(__name__)


# ============================================================================
# Report Saving Functions
# ============================================================================

def _to_jsonable(data: Any) -> Any:
    """Recursively convert datetimes, sets and tuples into JSON types"""
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    elif isinstance(data, (set, frozenset)):
        return sorted(_to_jsonable(item) for item in data)
    elif isinstance(data, dict):
        return {k: _to_jsonable(v) for k, v in data.items()}
    elif isinstance(data, (list, tuple)):
        return [_to_jsonable(item) for item in data]
    return data


def save_json(path: str, data: Any) -> str:
    """
    Write JSON data to a file with indentation.

    Args:
        path: Path to save the JSON file
        data: Data to save

    Returns:
        Path to the saved file
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    with open(p, 'w') as f:
        json.dump(_to_jsonable(data), f, indent=2)
    logger.info(f"Saved JSON to {p}")
    return str(p)


def build_migration_report(report: RunReport, config: RunConfig, started_at: datetime,
                           finished_at: Optional[datetime] = None) -> Dict[str, Any]:
    """Summarise a run for the JSON report. Credentials are never included."""
    finished_at = finished_at or datetime.now()
    return {
        "summary": {
            "charts_to_migrate": report.attempted,
            "charts_migrated": report.succeeded,
            "charts_failed": report.failed,
            "dry_run": report.dry_run,
        },
        "failures": [failure.to_dict() for failure in report.failures],
        "metadata": {
            "tool_version": __version__,
            "started_at": started_at,
            "finished_at": finished_at,
            "duration_seconds": round((finished_at - started_at).total_seconds(), 3),
            "config": config.redacted(),
        },
    }
