"""
Primavera P6 import adapters.

XER format:
- Tab-delimited text; ERMHDR header followed by %T (table), %F (fields),
  %R (rows) and %E (end) records
- PROJECT, PROJWBS, TASK, TASKRSRC and TASKPRED tables are read

XML format (simple export):
- <project> with name/start_date/end_date/budget, <tasks><task> and
  <relations><relation> children

Both are turned into outline-ordered row dicts plus explicit ``ImportLink``s
and handed to the schedule import pipeline, which validates each row and
skips the ones that fail.
"""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

import pandas as pd
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import UnsupportedImportFile
from app.models.project import Project
from app.services.schedule_import import parse_budget, parse_date, run_import
from prereq_shared.schemas.common import ZERO, DependencyType
from prereq_shared.schemas.imports import ImportLink, ImportOptions, ImportResult

log = structlog.get_logger()

MILESTONE_TYPES = {"TT_Mile", "TT_FinMile"}

REQUIRED_XER_FIELDS = {
    "PROJWBS": {"wbs_id", "parent_wbs_id"},
    "TASK": {"task_id", "task_code", "wbs_id"},
    "TASKPRED": {"task_id", "pred_task_id"},
}


@dataclass
class P6Schedule:
    """A P6 file reduced to what the import pipeline consumes."""
    name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Decimal = ZERO
    # Raw row dicts; the import pipeline validates and skips bad ones.
    rows: List[dict] = field(default_factory=list)
    links: List[ImportLink] = field(default_factory=list)


def _dependency_type(value: Optional[str]) -> DependencyType:
    """'PR_FS' / 'FS' -> DependencyType; unknown values fall back to FS."""
    code = (value or "").strip().upper()
    if code.startswith("PR_"):
        code = code[3:]
    try:
        return DependencyType(code)
    except ValueError:
        return DependencyType.FS


def _lag_days(lag_hours, hours_per_day: int) -> int:
    try:
        hours = float(lag_hours or 0)
    except (TypeError, ValueError):
        return 0
    if math.isnan(hours):
        return 0
    return int(round(hours / hours_per_day))


def _iso(value) -> Optional[str]:
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None


# ---------------------------------------------------------------------------
# XER
# ---------------------------------------------------------------------------


class XERParser:
    """Parse Primavera P6 XER content into pandas DataFrames."""

    def __init__(self, content: str):
        self.content = content
        self.tables: Dict[str, pd.DataFrame] = {}
        self.header: Dict[str, object] = {}

    def parse(self) -> Dict[str, pd.DataFrame]:
        lines = self.content.splitlines()
        if lines and lines[0].startswith("ERMHDR"):
            parts = lines[0].strip().split("\t")
            self.header["raw"] = lines[0].strip()
            self.header["data"] = parts[1:]
            lines = lines[1:]
        self._parse_tables(lines)
        return self.tables

    def _parse_tables(self, lines: List[str]) -> None:
        current_table = None
        current_fields: List[str] = []
        current_rows: List[List[str]] = []

        for line in lines:
            # Trailing empty fields are significant; only strip the newline.
            line = line.rstrip("\r\n")
            if not line.strip():
                continue

            if line.startswith("%T"):
                if current_table and current_fields:
                    self._save_table(current_table, current_fields, current_rows)
                parts = line.split("\t")
                current_table = parts[1].strip() if len(parts) > 1 else None
                current_fields = []
                current_rows = []

            elif line.startswith("%F"):
                current_fields = [f.strip() for f in line.split("\t")[1:]]

            elif line.startswith("%R"):
                current_rows.append(line.split("\t")[1:])

            elif line.startswith("%E"):
                if current_table and current_fields:
                    self._save_table(current_table, current_fields, current_rows)
                current_table = None
                current_fields = []
                current_rows = []

        if current_table and current_fields:
            self._save_table(current_table, current_fields, current_rows)

    def _save_table(self, table_name: str, fields: List[str], rows: List[List[str]]) -> None:
        normalized_rows = []
        for row in rows:
            # Pad short rows, truncate long rows
            if len(row) < len(fields):
                row = row + [""] * (len(fields) - len(row))
            elif len(row) > len(fields):
                row = row[: len(fields)]
            normalized_rows.append(row)
        self.tables[table_name] = pd.DataFrame(normalized_rows, columns=fields)

    def get_table(self, table_name: str) -> Optional[pd.DataFrame]:
        return self.tables.get(table_name)


def _records(table: Optional[pd.DataFrame]) -> List[dict]:
    if table is None or table.empty:
        return []
    return table.fillna("").to_dict(orient="records")


def schedule_from_xer(content: str, hours_per_day: int) -> P6Schedule:
    parser = XERParser(content)
    tables = parser.parse()
    if "TASK" not in tables and "PROJWBS" not in tables:
        raise UnsupportedImportFile("XER file contains no PROJWBS or TASK table")
    for table_name, required in REQUIRED_XER_FIELDS.items():
        table = tables.get(table_name)
        missing = sorted(required - set(table.columns)) if table is not None else []
        if missing:
            raise UnsupportedImportFile(
                f"XER table {table_name} is missing fields: {', '.join(missing)}"
            )

    schedule = P6Schedule()
    projects = _records(parser.get_table("PROJECT"))
    proj_id = None
    if projects:
        first = projects[0]
        proj_id = first.get("proj_id") or None
        schedule.name = first.get("proj_short_name") or None
        schedule.start_date = parse_date(first.get("plan_start_date"))
        schedule.end_date = parse_date(first.get("plan_end_date") or first.get("scd_end_date"))

    def in_project(record: dict) -> bool:
        return proj_id is None or not record.get("proj_id") or record["proj_id"] == proj_id

    wbs_nodes = [r for r in _records(parser.get_table("PROJWBS")) if in_project(r)]
    activities = [r for r in _records(parser.get_table("TASK")) if in_project(r)]

    costs: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for assignment in _records(parser.get_table("TASKRSRC")):
        costs[assignment.get("task_id", "")] += parse_budget(assignment.get("target_cost"))

    wbs_ids = {n["wbs_id"] for n in wbs_nodes}
    # The project node (or any node whose parent is outside the file)
    # stands for the project root.
    root_ids = {
        n["wbs_id"]
        for n in wbs_nodes
        if n.get("proj_node_flag") == "Y" or n.get("parent_wbs_id") not in wbs_ids
    }
    wbs_children: Dict[str, List[dict]] = defaultdict(list)
    for node in wbs_nodes:
        if node["wbs_id"] not in root_ids:
            wbs_children[node.get("parent_wbs_id", "")].append(node)

    activities_by_wbs: Dict[str, List[dict]] = defaultdict(list)
    for activity in activities:
        wbs_id = activity.get("wbs_id", "")
        if wbs_id in root_ids or wbs_id not in wbs_ids:
            wbs_id = ""
        activities_by_wbs[wbs_id].append(activity)

    def seq(node: dict):
        try:
            return (0, int(node.get("seq_num") or 0), node.get("wbs_short_name", ""))
        except ValueError:
            return (1, 0, node.get("wbs_short_name", ""))

    def emit_activities(wbs_id: str, level: int) -> None:
        for activity in sorted(activities_by_wbs.get(wbs_id, []), key=lambda a: a.get("task_code", "")):
            schedule.rows.append(
                dict(
                    level=level,
                    activity_id=activity.get("task_code") or None,
                    description=activity.get("task_name") or None,
                    type="Milestone" if activity.get("task_type") in MILESTONE_TYPES else "Task",
                    start_date=_iso(activity.get("target_start_date")),
                    finish_date=_iso(activity.get("target_end_date")),
                    budget=costs.get(activity.get("task_id", ""), ZERO),
                )
            )

    def emit_wbs(node: dict, level: int) -> None:
        schedule.rows.append(
            dict(
                level=level,
                description=node.get("wbs_name") or node.get("wbs_short_name") or None,
                type="WBS",
            )
        )
        emit_activities(node["wbs_id"], level + 1)
        for child in sorted(wbs_children.get(node["wbs_id"], []), key=seq):
            emit_wbs(child, level + 1)

    emit_activities("", 1)
    top_level = [n for root_id in root_ids for n in wbs_children.get(root_id, [])]
    for node in sorted(top_level, key=seq):
        emit_wbs(node, 1)

    codes = {a["task_id"]: a.get("task_code") for a in activities if a.get("task_id")}
    for pred in _records(parser.get_table("TASKPRED")):
        predecessor = codes.get(pred.get("pred_task_id", ""))
        successor = codes.get(pred.get("task_id", ""))
        if not predecessor or not successor:
            continue
        schedule.links.append(
            ImportLink(
                predecessor=predecessor,
                successor=successor,
                type=_dependency_type(pred.get("pred_type")),
                lag=_lag_days(pred.get("lag_hr_cnt"), hours_per_day),
            )
        )
    return schedule


# ---------------------------------------------------------------------------
# XML
# ---------------------------------------------------------------------------


def _text(element: Optional[ET.Element], tag: str) -> Optional[str]:
    if element is None:
        return None
    child = element.find(tag)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def schedule_from_xml(content: str, hours_per_day: int) -> P6Schedule:
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise UnsupportedImportFile(f"Invalid P6 XML: {exc}")
    if root.tag != "project":
        raise UnsupportedImportFile("P6 XML must have a <project> root element")

    schedule = P6Schedule(
        name=_text(root, "name"),
        start_date=parse_date(_text(root, "start_date")),
        end_date=parse_date(_text(root, "end_date")),
        budget=parse_budget(_text(root, "budget")),
    )

    tasks = [t for t in root.findall("./tasks/task") if _text(t, "id")]
    ids = {_text(t, "id") for t in tasks}
    children: Dict[Optional[str], List[ET.Element]] = defaultdict(list)
    for task in tasks:
        parent_id = _text(task, "parent_id")
        children[parent_id if parent_id in ids else None].append(task)

    def emit(task: ET.Element, level: int) -> None:
        milestone = (_text(task, "is_milestone") or "").lower() == "true"
        schedule.rows.append(
            dict(
                level=level,
                activity_id=_text(task, "id"),
                description=_text(task, "name"),
                type="Milestone" if milestone else "Task",
                start_date=_iso(_text(task, "start_date")),
                finish_date=_iso(_text(task, "end_date")),
            )
        )
        for child in children.get(_text(task, "id"), []):
            emit(child, level + 1)

    for task in children.get(None, []):
        emit(task, 1)

    for relation in root.findall("./relations/relation"):
        predecessor = _text(relation, "pred_task_id")
        successor = _text(relation, "succ_task_id")
        if not predecessor or not successor:
            continue
        schedule.links.append(
            ImportLink(
                predecessor=predecessor,
                successor=successor,
                type=_dependency_type(_text(relation, "relation_type")),
                lag=_lag_days(_text(relation, "lag_hr_cnt"), hours_per_day),
            )
        )
    return schedule


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def parse_p6_file(content: bytes, filename: str) -> P6Schedule:
    hours_per_day = get_settings().xer_hours_per_day
    text = content.decode("utf-8", errors="ignore")
    suffix = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if suffix == "xer":
        return schedule_from_xer(text, hours_per_day)
    if suffix == "xml":
        return schedule_from_xml(text, hours_per_day)
    raise UnsupportedImportFile(f"Unsupported P6 file '{filename}'; expected .xer or .xml")


async def import_p6(
    session: AsyncSession,
    project: Project,
    content: bytes,
    filename: str,
    replace_existing: bool = False,
) -> ImportResult:
    schedule = parse_p6_file(content, filename)

    # Fill in project fields the user has not set.
    if project.start_date is None and schedule.start_date is not None:
        project.start_date = schedule.start_date
    if project.end_date is None and schedule.end_date is not None:
        project.end_date = schedule.end_date
    if not project.budget and schedule.budget > ZERO:
        project.budget = schedule.budget
    session.add(project)

    log.info(
        "import.p6_parsed",
        project_id=str(project.id),
        filename=filename,
        p6_project=schedule.name,
        rows=len(schedule.rows),
        links=len(schedule.links),
    )
    options = ImportOptions(
        replace_existing=replace_existing,
        generate_wbs_codes=True,
        import_dependencies=True,
    )
    return await run_import(session, project, schedule.rows, options, links=schedule.links)
