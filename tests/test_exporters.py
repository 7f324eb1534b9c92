"""Tests for timetable exporters."""

import json

import pandas as pd
import pytest
from openpyxl import load_workbook

from schedulo.exporters import CSVExporter, ExcelExporter, JSONExporter, get_exporter
from schedulo.scheduler import SchedulerConfig, generate_schedule
from schedulo.scheduler.constants import DAILY_PERIODS
from schedulo.scheduler.utils import build_time_grid


@pytest.fixture
def result(sample_repository):
    return generate_schedule(1, 2024, "Export", SchedulerConfig(), sample_repository)


@pytest.fixture
def partial_result(monday_only_repository):
    return generate_schedule(1, 2024, "Export", SchedulerConfig(), monday_only_repository)


class TestJSONExporter:
    """Tests for JSONExporter."""

    def test_export(self, result, tmp_path):
        path = tmp_path / "out" / "timetable.json"
        JSONExporter().export(result, path)
        body = json.loads(path.read_text(encoding="utf-8"))
        assert body["status"] == "scheduled"
        assert len(body["assignments"]) == 11
        assert body["stats"]["stop_reason"] == "completed"


class TestCSVExporter:
    """Tests for CSVExporter."""

    def test_export_files(self, partial_result, tmp_path):
        CSVExporter().export(partial_result, tmp_path / "csv")
        assignments = pd.read_csv(tmp_path / "csv" / "assignments.csv")
        unplaced = pd.read_csv(tmp_path / "csv" / "unplaced.csv")
        summary = pd.read_csv(tmp_path / "csv" / "summary.csv")

        assert len(assignments) == 2
        assert set(assignments["day_name"]) == {"monday"}
        assert list(unplaced["reason"]) == ["no_faculty_availability"]
        status = summary.loc[summary["metric"] == "status", "value"].item()
        assert status == "unsatisfiable"

    def test_no_unplaced(self, result, tmp_path):
        CSVExporter().export(result, tmp_path)
        unplaced = pd.read_csv(tmp_path / "unplaced.csv")
        assert unplaced.empty
        assert "last_failure_reason" in unplaced.columns


class TestExcelExporter:
    """Tests for ExcelExporter."""

    def test_sheets(self, result, sample_rooms, tmp_path):
        path = tmp_path / "timetable.xlsx"
        ExcelExporter(rooms=sample_rooms).export(result, path)
        wb = load_workbook(path)
        used_rooms = {r.room_number for r in sample_rooms if r.id in {a.room_id for a in result.assignments}}
        assert wb.sheetnames[:3] == ["Summary", "Assignments", "Unplaced"]
        assert set(wb.sheetnames[3:]) == {f"Room {number}" for number in used_rooms}

    def test_room_grid_cells(self, result, sample_rooms, sample_courses, sample_faculty, tmp_path):
        path = tmp_path / "timetable.xlsx"
        ExcelExporter(sample_rooms, sample_courses, sample_faculty).export(result, path)
        ws = load_workbook(path)["Room L1"]

        assert ws.cell(row=1, column=2).value == "Monday"
        lab = next(a for a in result.assignments if a.room_id == 3)
        cell = ws.cell(row=lab.slot + 1, column=lab.day + 1)
        assert cell.value.splitlines() == ["CS102L", f"Section {lab.section_id}", "Grace Hopper"]
        # Two-period lab spans two merged rows
        merged = [str(r) for r in ws.merged_cells.ranges]
        assert len(merged) == 1

    def test_grid_without_lookups(self, result, tmp_path):
        path = tmp_path / "timetable.xlsx"
        ExcelExporter().export(result, path)
        wb = load_workbook(path)
        assert "Room 1" in wb.sheetnames

    def test_period_labels_follow_grid(self, result, sample_rooms, tmp_path):
        path = tmp_path / "timetable.xlsx"
        periods = [
            {"index": i, "start": f"{7 + i:02d}:00", "end": f"{7 + i:02d}:50"} for i in range(1, 8)
        ]
        ExcelExporter(rooms=sample_rooms, grid=build_time_grid(periods=periods)).export(result, path)
        ws = load_workbook(path)["Room L1"]
        assert ws.cell(row=2, column=1).value == "1\n08:00-08:50"
        assert ws.cell(row=8, column=1).value == "7\n14:00-14:50"

    def test_default_period_labels(self, result, tmp_path):
        path = tmp_path / "timetable.xlsx"
        ExcelExporter().export(result, path)
        first = DAILY_PERIODS[0]
        ws = load_workbook(path)["Room 1"]
        assert ws.cell(row=2, column=1).value == f"1\n{first['start']}-{first['end']}"

    def test_unplaced_sheet(self, partial_result, tmp_path):
        path = tmp_path / "timetable.xlsx"
        ExcelExporter().export(partial_result, path)
        unplaced = pd.read_excel(path, sheet_name="Unplaced", engine="openpyxl")
        assert list(unplaced["Section"]) == [3]


class TestGetExporter:
    """Tests for get_exporter function."""

    @pytest.mark.parametrize(
        "name, cls", [("json", JSONExporter), ("csv", CSVExporter), ("excel", ExcelExporter)]
    )
    def test_known_formats(self, name, cls):
        assert isinstance(get_exporter(name), cls)

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unsupported format"):
            get_exporter("pdf")
