from __future__ import annotations

from datetime import datetime, timezone
import html
from pathlib import Path
import shlex
import shutil
import subprocess
import time
from typing import Any, Iterable

from src.core.errors import PersistenceFailureError, ToolUnavailableError
from src.core.file_manager import ensure_dirs, list_subdirectories, reset_directory, write_text_file
from src.core.logger import get_logger
from src.core.result_store import ResultStore
from src.core.security import ensure_within_root, is_safe_identifier, validate_identifier
from src.state.report_state import RawResult

logger = get_logger(__name__)

ENTRY_FILE = "index.html"
_SECONDS_PER_DAY = 24 * 60 * 60

_FALLBACK_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Test Report - {run_id}</title>
  <style>
    body {{ font-family: Arial, sans-serif; padding: 20px; background: #f5f5f5; }}
    .container {{ max-width: 800px; margin: 0 auto; background: white; padding: 30px; border-radius: 8px; }}
    .header {{ background: #667eea; color: white; padding: 20px; border-radius: 5px; }}
    .info p {{ margin: 10px 0; padding: 10px; background: #f9f9f9; border-left: 4px solid #667eea; }}
    .error {{ color: #ef4444; padding: 10px; background: #fee2e2; border-radius: 5px; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="header">
      <h1>Test Execution Report</h1>
    </div>
    <div class="info">
      <p><strong>Test Run ID:</strong> {run_id}</p>
      <p><strong>Result:</strong> {status}</p>
      <p><strong>Report Type:</strong> Basic HTML Report</p>
    </div>
{error_block}  </div>
</body>
</html>
"""

_ERROR_BLOCK = """    <div class="error">
      <p><strong>Error:</strong> {message}</p>
    </div>
"""


def render_fallback_report(run_id: str, error: str | None = None, result: RawResult | None = None) -> str:
    """Self-contained page used when the report tool produced nothing usable."""
    status = str((result or {}).get("status") or "unknown")
    messages = [m for m in (error, _result_error(result)) if m]
    error_block = "".join(_ERROR_BLOCK.format(message=html.escape(m)) for m in messages)
    return _FALLBACK_TEMPLATE.format(
        run_id=html.escape(run_id),
        status=html.escape(status),
        error_block=error_block,
    )


def _result_error(result: RawResult | None) -> str | None:
    details = (result or {}).get("statusDetails") or {}
    message = details.get("message") if isinstance(details, dict) else None
    return str(message) if message else None


class ReportGenerator:
    """Builds the static report artifact of one run.

    The external tool is invoked once per call against the whole result pool.
    Any tool failure degrades to a fallback page; only failing to write the
    artifact directory itself is raised.
    """

    def __init__(
        self,
        results: ResultStore,
        reports_root: Path,
        url_prefix: str = "/execution-reports",
        tool_command: str = "allure",
        tool_timeout_sec: int = 300,
        reserved_names: Iterable[str] = (),
        stderr_cap_chars: int = 2000,
    ):
        self.results = results
        self.reports_root = Path(reports_root)
        self.url_prefix = "/" + str(url_prefix).strip("/")
        self.tool_command = tool_command
        self.tool_timeout_sec = tool_timeout_sec
        self.reserved_names = frozenset(reserved_names)
        self.stderr_cap_chars = stderr_cap_chars
        ensure_dirs(self.reports_root)

    def artifact_dir(self, run_id: str) -> Path:
        validate_identifier(run_id, "run id")
        if run_id in self.reserved_names:
            raise ValueError(f"Run id collides with a reserved directory: {run_id}")
        return ensure_within_root(self.reports_root / run_id, self.reports_root)

    def generate(self, run_id: str) -> Path:
        logger.info("report.generate.start", run_id=run_id)
        start = time.time()
        result = self._ensure_result(run_id)
        artifact = self._prepare_artifact_dir(run_id)

        error: str | None = None
        try:
            self._run_tool(artifact)
        except ToolUnavailableError as exc:
            error = str(exc)
            logger.warning("report.tool.unavailable", run_id=run_id, error=error)

        entry = artifact / ENTRY_FILE
        if error is None and not entry.exists():
            error = f"Report tool finished without writing {ENTRY_FILE}"
            logger.warning("report.tool.no_entry", run_id=run_id)
        if error is not None:
            self._write_fallback(run_id, artifact, error, result)

        logger.info(
            "report.generate.end",
            run_id=run_id,
            report_path=str(artifact),
            fallback=error is not None,
            duration_sec=round(time.time() - start, 3),
        )
        return artifact

    def get_report_url(self, run_id: str) -> str:
        if not is_safe_identifier(run_id) or run_id in self.reserved_names:
            return ""
        if (self.reports_root / run_id).is_dir():
            return f"{self.url_prefix}/{run_id}/{ENTRY_FILE}"
        return ""

    def list_artifacts(self) -> list[dict[str, Any]]:
        reports: list[dict[str, Any]] = []
        try:
            for path in list_subdirectories(self.reports_root):
                if path.name in self.reserved_names:
                    continue
                stat = path.stat()
                reports.append(
                    {
                        "id": path.name,
                        "path": f"{self.url_prefix}/{path.name}/{ENTRY_FILE}",
                        "created_at": datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc).isoformat(),
                    }
                )
        except OSError as exc:
            logger.error("report.list.error", error=str(exc))
            return []
        return reports

    def cleanup(self, days_to_keep: int = 7) -> list[str]:
        now = time.time()
        max_age = float(days_to_keep) * _SECONDS_PER_DAY
        removed: list[str] = []
        for path in list_subdirectories(self.reports_root):
            if path.name in self.reserved_names:
                continue
            try:
                if now - path.stat().st_mtime > max_age:
                    shutil.rmtree(path)
                    removed.append(path.name)
                    logger.info("report.cleanup.removed", run_id=path.name)
            except OSError as exc:
                logger.error("report.cleanup.error", run_id=path.name, error=str(exc))
        logger.info("report.cleanup.done", days_to_keep=days_to_keep, removed=len(removed))
        return removed

    def tool_args(self, artifact: Path) -> list[str]:
        return [
            *shlex.split(self.tool_command),
            "generate",
            str(self.results.results_dir),
            "-o",
            str(artifact),
            "--clean",
        ]

    def _ensure_result(self, run_id: str) -> RawResult | None:
        try:
            return self.results.ensure_result(run_id)
        except OSError as exc:
            # A missing result never blocks generation.
            logger.warning("report.result.unavailable", run_id=run_id, error=str(exc))
            return None

    def _prepare_artifact_dir(self, run_id: str) -> Path:
        artifact = self.artifact_dir(run_id)
        try:
            reset_directory(artifact)
        except OSError as exc:
            logger.error("report.artifact.unwritable", run_id=run_id, error=str(exc))
            raise PersistenceFailureError(f"Cannot prepare report directory for run {run_id}: {exc}") from exc
        return artifact

    def _run_tool(self, artifact: Path) -> None:
        if not shlex.split(self.tool_command or ""):
            raise ToolUnavailableError("Report tool command is not configured")
        command = self.tool_args(artifact)
        logger.info("report.tool.start", command=command)
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.tool_timeout_sec,
                cwd=str(self.reports_root),
            )
        except FileNotFoundError as exc:
            raise ToolUnavailableError(f"Report tool not found: {command[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise ToolUnavailableError(f"Report tool timed out after {self.tool_timeout_sec}s") from exc
        except OSError as exc:
            raise ToolUnavailableError(f"Report tool could not start: {exc}") from exc
        if completed.returncode != 0:
            stderr_tail = (completed.stderr or "")[-self.stderr_cap_chars :].strip()
            raise ToolUnavailableError(f"Report tool exited with code {completed.returncode}: {stderr_tail}")
        logger.info("report.tool.end", returncode=completed.returncode)

    def _write_fallback(self, run_id: str, artifact: Path, error: str, result: RawResult | None) -> None:
        try:
            write_text_file(artifact / ENTRY_FILE, render_fallback_report(run_id, error, result))
        except OSError as exc:
            logger.error("report.fallback.unwritable", run_id=run_id, error=str(exc))
            raise PersistenceFailureError(f"Cannot write fallback report for run {run_id}: {exc}") from exc
        logger.info("report.fallback.written", run_id=run_id)
