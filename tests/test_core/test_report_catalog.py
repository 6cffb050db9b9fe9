from __future__ import annotations

import pytest

from src.core.project_index import ProjectIndex
from src.core.report_catalog import ReportCatalog
from src.core.report_generator import ReportGenerator


@pytest.mark.asyncio
async def test_index_fast_path_skips_run_storage(fake_runs, generator: ReportGenerator, project_index: ProjectIndex):
    project_index.append(
        "p1",
        {
            "id": "r1",
            "projectId": "p1",
            "scriptId": "s1",
            "scriptName": "login",
            "status": "passed",
            "startedAt": "2024-01-01T00:00:00+00:00",
            "completedAt": "2024-01-01T00:01:00+00:00",
            "reportUrl": "/execution-reports/r1/index.html",
            "createdAt": "2024-01-01T00:02:00+00:00",
        },
    )
    catalog = ReportCatalog(project_index, fake_runs, generator.get_report_url, fake_runs)

    reports = await catalog.list("p1")

    assert reports == [
        {
            "id": "r1",
            "scriptName": "login",
            "status": "passed",
            "startedAt": "2024-01-01T00:00:00+00:00",
            "completedAt": "2024-01-01T00:01:00+00:00",
            "reportUrl": "/execution-reports/r1/index.html",
        }
    ]


@pytest.mark.asyncio
async def test_fallback_lists_only_runs_with_artifacts(fake_runs, generator: ReportGenerator, project_index: ProjectIndex):
    fake_runs.add_script("s1", "login", "p1")
    fake_runs.add_run("r_done_early", "s1", "2024-01-01T00:00:00+00:00", completed_at="2024-01-01T00:05:00+00:00")
    fake_runs.add_run("r_done_late", "s1", "2024-01-02T00:00:00+00:00", completed_at="2024-01-03T00:00:00+00:00")
    fake_runs.add_run("r_unfinished", "s1", "2024-01-04T00:00:00+00:00", status="running")
    fake_runs.add_run("r_no_report", "s1", "2024-01-05T00:00:00+00:00")
    for run_id in ["r_done_early", "r_done_late", "r_unfinished"]:
        generator.generate(run_id)
    catalog = ReportCatalog(project_index, fake_runs, generator.get_report_url, fake_runs)

    reports = await catalog.list("p1")

    assert [r["id"] for r in reports] == ["r_done_late", "r_done_early", "r_unfinished"]
    assert all(r["scriptName"] == "login" for r in reports)
    assert reports[0]["reportUrl"] == "/execution-reports/r_done_late/index.html"


@pytest.mark.asyncio
async def test_fallback_filters_by_user(fake_runs, generator: ReportGenerator, project_index: ProjectIndex):
    fake_runs.add_script("s1", "login", "p1")
    fake_runs.add_run("mine", "s1", "2024-01-01T00:00:00+00:00", user_id="u1")
    fake_runs.add_run("theirs", "s1", "2024-01-02T00:00:00+00:00", user_id="u2")
    generator.generate("mine")
    generator.generate("theirs")
    catalog = ReportCatalog(project_index, fake_runs, generator.get_report_url, fake_runs)

    assert [r["id"] for r in await catalog.list("p1", user_id="u1")] == ["mine"]


@pytest.mark.asyncio
async def test_all_projects_merged_newest_first(fake_runs, generator: ReportGenerator, project_index: ProjectIndex):
    def _entry(run_id: str, project_id: str, created_at: str) -> dict:
        return {
            "id": run_id,
            "projectId": project_id,
            "scriptId": None,
            "scriptName": None,
            "status": "passed",
            "startedAt": None,
            "completedAt": None,
            "reportUrl": f"/execution-reports/{run_id}/index.html",
            "createdAt": created_at,
        }

    project_index.append("p1", _entry("a", "p1", "2024-01-01T00:00:00+00:00"))
    project_index.append("p2", _entry("b", "p2", "2024-01-02T00:00:00+00:00"))
    project_index.append("p1", _entry("c", "p1", "2024-01-03T00:00:00+00:00"))
    catalog = ReportCatalog(project_index, fake_runs, generator.get_report_url)

    assert [r["id"] for r in await catalog.list()] == ["c", "b", "a"]
