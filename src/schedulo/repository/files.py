"""CSV / Excel backed repository."""

import json
import logging
import os
import re
import tempfile
import threading
from collections import defaultdict
from pathlib import Path
from typing import Any

import pandas as pd

from ..exceptions import RepositoryError
from ..scheduler.models import (
    Course,
    Faculty,
    Room,
    RoomType,
    ScheduleResult,
    Section,
    TimeSlot,
)
from ..scheduler.utils import build_time_grid
from .base import PersistResult, ScheduleRepository

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("courses", "sections", "rooms", "faculty")
OPTIONAL_TABLES = ("faculty_unavailability", "time_slots")

_TIMETABLE_FILE = re.compile(r"^timetable_(\d+)\.json$")

_ROW_COLUMNS = [
    "timetable_id",
    "section_id",
    "course_id",
    "faculty_id",
    "room_id",
    "day_of_week",
    "start_time",
    "end_time",
]


def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """DataFrame rows as dicts, with blank cells left out."""
    df = df.rename(columns=lambda c: str(c).strip().lower())
    records = []
    for row in df.astype(object).where(df.notna(), None).to_dict("records"):
        records.append({
            k: (v.strip() if isinstance(v, str) else v)
            for k, v in row.items()
            if v is not None and not (isinstance(v, str) and not v.strip())
        })
    return records


class FileRepository(ScheduleRepository):
    """Reads entities from a directory of CSV files or one Excel workbook.

    Expected tables (file name or sheet name):
    - courses: id, code, name, credits, department, sessions_per_week,
      session_slots, required_room_type
    - sections: id, course_id, faculty_id, cohort_size, cohort,
      department, semester, year
    - rooms: id, room_number, capacity, room_type, building
    - faculty: id, name, max_weekly_load
    - faculty_unavailability (optional): faculty_id, day, slot
    - time_slots (optional): day, index, start, end

    Timetables are written to output_dir as timetable_<id>.json and
    timetable_<id>_slots.csv.
    """

    def __init__(self, source: Path | str, output_dir: Path | str | None = None):
        self.source = Path(source)
        if output_dir is not None:
            self.output_dir = Path(output_dir)
        elif self.source.is_dir():
            self.output_dir = self.source / "timetables"
        else:
            self.output_dir = self.source.parent / "timetables"
        self._tables: dict[str, list[dict[str, Any]]] | None = None
        # Serialises id allocation and renames between concurrent runs
        self._persist_lock = threading.Lock()

    def _load_tables(self) -> dict[str, list[dict[str, Any]]]:
        if self._tables is not None:
            return self._tables

        if not self.source.exists():
            raise RepositoryError(f"{self.source} does not exist", source=str(self.source))

        try:
            if self.source.is_dir():
                frames = self._read_csv_dir(self.source)
            else:
                frames = pd.read_excel(self.source, sheet_name=None, engine="openpyxl")
                frames = {str(name).strip().lower(): df for name, df in frames.items()}
        except (OSError, ValueError) as e:
            raise RepositoryError(str(e), source=str(self.source)) from e

        missing = [t for t in REQUIRED_TABLES if t not in frames]
        if missing:
            raise RepositoryError(
                f"missing tables: {', '.join(missing)}", source=str(self.source)
            )

        self._tables = {
            name: _records(df)
            for name, df in frames.items()
            if name in REQUIRED_TABLES + OPTIONAL_TABLES
        }
        logger.debug(
            "Loaded "
            + ", ".join(f"{len(rows)} {name}" for name, rows in self._tables.items())
            + f" from {self.source}"
        )
        return self._tables

    def _read_csv_dir(self, directory: Path) -> dict[str, pd.DataFrame]:
        frames = {}
        for name in REQUIRED_TABLES + OPTIONAL_TABLES:
            path = directory / f"{name}.csv"
            if path.exists():
                frames[name] = pd.read_csv(path, encoding="utf-8", skipinitialspace=True)
        return frames

    def _rows(self, table: str) -> list[dict[str, Any]]:
        return self._load_tables().get(table, [])

    def _parse(self, table: str, parse):
        result = []
        for number, row in enumerate(self._rows(table), start=2):
            try:
                result.append(parse(row))
            except (KeyError, ValueError, TypeError) as e:
                raise RepositoryError(
                    f"bad row {number} in {table}: {e!r}", source=str(self.source)
                ) from e
        return result

    def load_sections(self, semester: int, year: int) -> list[Section]:
        sections = self._parse("sections", Section.from_dict)
        return [s for s in sections if s.semester == semester and s.year == year]

    def load_courses(self) -> list[Course]:
        return self._parse("courses", Course.from_dict)

    def load_rooms(self) -> list[Room]:
        def parse(row: dict[str, Any]) -> Room:
            return Room(
                id=int(row["id"]),
                room_number=str(row.get("room_number", row["id"])),
                capacity=int(row["capacity"]),
                room_type=RoomType.parse(row.get("room_type")) or RoomType.LECTURE,
                building=str(row.get("building", "")),
            )

        return self._parse("rooms", parse)

    def load_faculty(self) -> list[Faculty]:
        blackouts: dict[int, set[tuple[int, int]]] = defaultdict(set)
        for row in self._parse(
            "faculty_unavailability",
            lambda r: (int(r["faculty_id"]), int(r["day"]), int(r["slot"])),
        ):
            faculty_id, day, slot = row
            blackouts[faculty_id].add((day, slot))

        def parse(row: dict[str, Any]) -> Faculty:
            faculty_id = int(row["id"])
            load = row.get("max_weekly_load")
            return Faculty(
                id=faculty_id,
                name=str(row.get("name", "")),
                unavailable=frozenset(blackouts.get(faculty_id, ())),
                max_weekly_load=int(load) if load is not None else None,
            )

        return self._parse("faculty", parse)

    def load_time_slot_grid(self) -> list[TimeSlot]:
        rows = self._rows("time_slots")
        if not rows:
            return build_time_grid()
        grid = self._parse(
            "time_slots",
            lambda r: TimeSlot(
                day=int(r["day"]),
                index=int(r["index"]),
                start=str(r["start"]),
                end=str(r["end"]),
            ),
        )
        return sorted(grid, key=lambda t: (t.day, t.index))

    def _next_timetable_id(self) -> int:
        ids = [
            int(m.group(1))
            for p in self.output_dir.glob("timetable_*.json")
            if (m := _TIMETABLE_FILE.match(p.name))
        ]
        return max(ids, default=0) + 1

    def persist(self, result: ScheduleResult) -> PersistResult:
        """Write the JSON result and the slot rows, renaming both only once written."""
        try:
            with self._persist_lock:
                timetable_id = self._write_timetable(result)
        except OSError as e:
            raise RepositoryError(str(e), source=str(self.output_dir)) from e

        json_path = self.output_dir / f"timetable_{timetable_id}.json"
        result.timetable_id = timetable_id
        logger.info(
            f"Saved timetable {timetable_id} ({len(result.assignments)} slots) to {json_path}"
        )
        return PersistResult(timetable_id, len(result.assignments), str(json_path))

    def _write_timetable(self, result: ScheduleResult) -> int:
        """Allocate the next id and write its files; callers hold the persist lock."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        timetable_id = self._next_timetable_id()
        json_path = self.output_dir / f"timetable_{timetable_id}.json"
        csv_path = self.output_dir / f"timetable_{timetable_id}_slots.csv"

        rows = [a.to_row(timetable_id) for a in result.assignments]
        body = result.to_dict()
        body["timetable_id"] = timetable_id

        tmp_json = self._write_temp(
            lambda f: json.dump(body, f, ensure_ascii=False, indent=2)
        )
        try:
            tmp_csv = self._write_temp(
                lambda f: pd.DataFrame(rows, columns=_ROW_COLUMNS).to_csv(f, index=False)
            )
        except Exception:
            os.unlink(tmp_json)
            raise

        os.replace(tmp_csv, csv_path)
        os.replace(tmp_json, json_path)
        return timetable_id

    def _write_temp(self, write) -> str:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self.output_dir,
            suffix=".tmp",
            delete=False,
            newline="",
        ) as f:
            write(f)
        return f.name
