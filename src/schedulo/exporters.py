"""Export functionality for generated timetables."""

import json
from abc import ABC, abstractmethod
from pathlib import Path

import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .scheduler.constants import get_day_name
from .scheduler.models import Course, Faculty, Room, ScheduleResult, TimeSlot
from .scheduler.utils import build_time_grid

FONT_HEADER = Font(name="Calibri", size=11, bold=True)
FONT_CELL = Font(name="Calibri", size=10)
ALIGN_CENTER = Alignment(horizontal="center", vertical="center", wrap_text=True)
FILL_BUSY = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


class BaseExporter(ABC):
    """Base class for exporters."""

    @abstractmethod
    def export(self, result: ScheduleResult, output_path: str | Path) -> None:
        """Export a schedule result to file.

        Args:
            result: ScheduleResult to export
            output_path: Path to output file or directory
        """
        pass


class JSONExporter(BaseExporter):
    """Export to JSON format."""

    def __init__(self, indent: int = 2, ensure_ascii: bool = False):
        self.indent = indent
        self.ensure_ascii = ensure_ascii

    def export(self, result: ScheduleResult, output_path: str | Path) -> None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(
                result.to_dict(),
                f,
                indent=self.indent,
                ensure_ascii=self.ensure_ascii,
            )


class CSVExporter(BaseExporter):
    """Export to CSV format (multiple files)."""

    def export(self, result: ScheduleResult, output_path: str | Path) -> None:
        """Export a schedule result to CSV files.

        Creates three files:
        - assignments.csv: One row per placed session
        - unplaced.csv: Sections that could not be placed
        - summary.csv: Run statistics
        """
        output_dir = Path(output_path)
        output_dir.mkdir(parents=True, exist_ok=True)

        assignments = pd.DataFrame(
            [a.to_dict() for a in result.assignments],
            columns=list(_ASSIGNMENT_COLUMNS),
        )
        assignments.to_csv(output_dir / "assignments.csv", index=False)

        unplaced = pd.DataFrame(
            [u.to_dict() for u in result.unplaced],
            columns=["section_id", "reason", "last_failure_reason", "missing_sessions"],
        )
        unplaced.to_csv(output_dir / "unplaced.csv", index=False)

        _summary_frame(result).to_csv(output_dir / "summary.csv", index=False)


class ExcelExporter(BaseExporter):
    """Export to Excel format.

    Creates a workbook with sheets:
    - Summary: Status and run statistics
    - Assignments: One row per placed session
    - Unplaced: Sections that could not be placed
    - one week grid per room (periods x days)

    Rooms, courses and faculty are optional; without them the grids show ids.
    The grid labels the period rows and defaults to the standard week.
    """

    def __init__(
        self,
        rooms: list[Room] | None = None,
        courses: list[Course] | None = None,
        faculty: list[Faculty] | None = None,
        grid: list[TimeSlot] | None = None,
    ):
        self.rooms = {r.id: r for r in rooms or []}
        self.courses = {c.id: c for c in courses or []}
        self.faculty = {f.id: f for f in faculty or []}
        self.grid = build_time_grid() if grid is None else grid

    def export(self, result: ScheduleResult, output_path: str | Path) -> None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
            _summary_frame(result).to_excel(writer, sheet_name="Summary", index=False)
            pd.DataFrame(
                [a.to_dict() for a in result.assignments],
                columns=list(_ASSIGNMENT_COLUMNS),
            ).to_excel(writer, sheet_name="Assignments", index=False)

            rows = [
                {
                    "Section": u.section_id,
                    "Reason": u.reason.value,
                    "Details": u.last_failure_reason,
                    "Missing Sessions": u.missing_sessions,
                }
                for u in result.unplaced
            ]
            df = (
                pd.DataFrame(rows)
                if rows
                else pd.DataFrame(columns=["Section", "Reason", "Details", "Missing Sessions"])
            )
            df.to_excel(writer, sheet_name="Unplaced", index=False)

            self._write_room_grids(result, writer.book)

    def _room_label(self, room_id: int) -> str:
        room = self.rooms.get(room_id)
        return room.room_number if room else str(room_id)

    def _cell_text(self, assignment) -> str:
        course = self.courses.get(assignment.course_id)
        member = self.faculty.get(assignment.faculty_id)
        return "\n".join([
            course.code if course else f"Course {assignment.course_id}",
            f"Section {assignment.section_id}",
            member.name if member else f"Faculty {assignment.faculty_id}",
        ])

    def _write_room_grids(self, result: ScheduleResult, workbook) -> None:
        """One sheet per room: rows are periods, columns are days."""
        by_room: dict[int, list] = {}
        for assignment in result.assignments:
            by_room.setdefault(assignment.room_id, []).append(assignment)

        days = sorted({t.day for t in self.grid} | {a.day for a in result.assignments})
        periods: dict[int, str] = {}
        for period in sorted(self.grid, key=lambda t: t.key):
            periods.setdefault(period.index, f"{period.start}-{period.end}")
        for assignment in result.assignments:
            for slot in assignment.slots:
                periods.setdefault(slot, "")

        for room_id in sorted(by_room):
            title = f"Room {self._room_label(room_id)}"[:31]
            ws = workbook.create_sheet(title=title)

            ws.cell(row=1, column=1, value="Period").font = FONT_HEADER
            for col, day in enumerate(days, start=2):
                cell = ws.cell(row=1, column=col, value=get_day_name(day).capitalize())
                cell.font = FONT_HEADER
                cell.alignment = ALIGN_CENTER
                cell.border = THIN_BORDER
                ws.column_dimensions[get_column_letter(col)].width = 22

            rows = {}
            for row, index in enumerate(sorted(periods), start=2):
                rows[index] = row
                label = f"{index}\n{periods[index]}".strip()
                cell = ws.cell(row=row, column=1, value=label)
                cell.font = FONT_HEADER
                cell.alignment = ALIGN_CENTER
                cell.border = THIN_BORDER
                for col in range(2, len(days) + 2):
                    ws.cell(row=row, column=col).border = THIN_BORDER
                ws.row_dimensions[row].height = 45
            ws.column_dimensions["A"].width = 14

            for assignment in by_room[room_id]:
                col = days.index(assignment.day) + 2
                first = rows[assignment.slot]
                last = rows[assignment.slot + assignment.length - 1]
                cell = ws.cell(row=first, column=col, value=self._cell_text(assignment))
                cell.font = FONT_CELL
                cell.alignment = ALIGN_CENTER
                cell.fill = FILL_BUSY
                if last > first:
                    ws.merge_cells(
                        start_row=first, start_column=col, end_row=last, end_column=col
                    )


_ASSIGNMENT_COLUMNS = (
    "section_id",
    "course_id",
    "room_id",
    "faculty_id",
    "cohort",
    "day",
    "day_name",
    "slot",
    "length",
    "session_index",
    "start_time",
    "end_time",
)


def _summary_frame(result: ScheduleResult) -> pd.DataFrame:
    stats = result.statistics.to_dict()
    rows = [
        {"metric": "name", "value": result.schedule.name},
        {"metric": "semester", "value": result.schedule.semester},
        {"metric": "year", "value": result.schedule.year},
        {"metric": "status", "value": result.status.value},
        {"metric": "strategy", "value": result.strategy},
        {"metric": "generation_date", "value": result.generation_date},
    ]
    rows.extend(
        {"metric": key, "value": value}
        for key, value in stats.items()
        if not isinstance(value, dict)
    )
    return pd.DataFrame(rows)


def get_exporter(format_type: str) -> BaseExporter:
    """Get appropriate exporter for format type.

    Args:
        format_type: Export format ('json', 'csv', 'excel')

    Returns:
        Exporter instance

    Raises:
        ValueError: If format type is not supported
    """
    exporters = {
        "json": JSONExporter,
        "csv": CSVExporter,
        "excel": ExcelExporter,
    }

    if format_type not in exporters:
        raise ValueError(
            f"Unsupported format: {format_type}. Supported: {', '.join(exporters.keys())}"
        )

    return exporters[format_type]()
