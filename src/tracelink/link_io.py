"""Bulk import and export of trace links.

Imports go through the same validated creation path as interactive link
creation, row by row: a bad row is recorded in :class:`ImportStats` and the
batch carries on. Exports write the summary RTM (CSV/JSON), the dependency
graph (Graphviz DOT) or the raw link list (YAML).
"""

import csv
import io
import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from tracelink.audit import emit
from tracelink.core.models import ImportStats, Link, LinkType
from tracelink.errors import IoError, ParseError, TraceError, ValidationError
from tracelink.matrix.generator import write_output
from tracelink.storage.yaml_utils import dump_yaml

if TYPE_CHECKING:
    from tracelink.manager import TraceabilityManager

logger = logging.getLogger("tracelink")

CSV_IMPORT_HEADER = ["SourceType", "SourceID", "TargetType", "TargetID", "LinkType", "CreatedBy"]
IMPORT_USER = "import"

# Supported link exchange extensions
LINK_EXTENSION_TO_FORMAT = {
    ".csv": "csv",
    ".json": "json",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".dot": "dot",
    ".gv": "dot",
}


def infer_link_format(path: str) -> str:
    """Infer the link exchange format from a file extension.

    Raises:
        ValidationError: If the extension is not recognized.
    """
    ext = Path(path).suffix.lower()
    if ext not in LINK_EXTENSION_TO_FORMAT:
        supported = ", ".join(sorted(LINK_EXTENSION_TO_FORMAT))
        raise ValidationError(f"Unrecognized file extension '{ext}' for '{path}'. Supported extensions: {supported}")
    return LINK_EXTENSION_TO_FORMAT[ext]


def _read_text(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8-sig")
    except OSError as e:
        raise IoError(f"Cannot read {path}: {e}") from e


def _dot_id(text: str) -> str:
    """Quote *text* as a DOT identifier."""
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def render_dot(links: list[Link]) -> str:
    """Render links as a Graphviz digraph.

    One node statement per distinct endpoint (in order of first
    appearance) and one edge statement per link, labelled with its type.
    """
    lines = ["digraph TraceabilityGraph {", "    rankdir=TB;", "    node [shape=box];", ""]
    seen: dict[str, None] = {}
    for link in links:
        seen.setdefault(link.source_id)
        seen.setdefault(link.target_id)
    lines.extend(f"    {_dot_id(entity_id)};" for entity_id in seen)
    lines.append("")
    lines.extend(
        f"    {_dot_id(link.source_id)} -> {_dot_id(link.target_id)} [label={_dot_id(str(link.link_type))}];"
        for link in links
    )
    lines.append("}")
    return "\n".join(lines) + "\n"


class ImportExportBridge:
    """Bulk link exchange bound to a :class:`TraceabilityManager`."""

    def __init__(self, manager: "TraceabilityManager") -> None:
        self.manager = manager

    def _import_one(
        self,
        stats: ImportStats,
        label: str,
        source_id: str,
        target_id: str,
        link_type: LinkType,
        created_by: str,
    ) -> None:
        if self.manager.link_exists(source_id, target_id, link_type):
            stats.duplicates_found += 1
            return
        try:
            self.manager.create_trace_link(source_id, target_id, link_type, created_by=created_by, audit=False)
        except TraceError as e:
            stats.record_error(f"{label}: Failed to create link: {e}")
        else:
            stats.successful_imports += 1

    def _finish(self, stats: ImportStats, fmt: str, path: Path) -> ImportStats:
        logger.info(
            "%s import from %s: %d successful, %d failed, %d duplicates",
            fmt.upper(),
            path,
            stats.successful_imports,
            stats.failed_imports,
            stats.duplicates_found,
        )
        emit(
            self.manager.audit,
            "import",
            fmt,
            path=str(path),
            successful=stats.successful_imports,
            failed=stats.failed_imports,
            duplicates=stats.duplicates_found,
        )
        return stats

    def import_from_csv(self, path: Path) -> ImportStats:
        """Import links from a CSV file.

        The first row must be exactly
        ``SourceType,SourceID,TargetType,TargetID,LinkType,CreatedBy``.
        Blank lines are ignored.

        Args:
            path: CSV file to read.

        Returns:
            Aggregate import statistics.

        Raises:
            ValidationError: If the file is empty or the header is wrong.
            IoError: If the file cannot be read.
        """
        content = _read_text(path)
        rows = list(csv.reader(io.StringIO(content)))
        if not rows:
            raise ValidationError(f"CSV file is empty: {path}")
        header = [cell.strip() for cell in rows[0]]
        if header != CSV_IMPORT_HEADER:
            raise ValidationError(
                f"Invalid CSV header in {path}: expected {','.join(CSV_IMPORT_HEADER)}, got {','.join(header)}"
            )

        stats = ImportStats()
        for line_number, row in enumerate(rows[1:], start=2):
            if not any(cell.strip() for cell in row):
                continue
            stats.total_processed += 1
            label = f"Line {line_number}"

            if len(row) < len(CSV_IMPORT_HEADER):
                stats.record_error(f"{label}: Invalid CSV format, expected {len(CSV_IMPORT_HEADER)} fields")
                continue

            source_type, source_id, target_type, target_id, link_type_text, created_by = (
                cell.strip() for cell in row[:6]
            )
            if not (source_type and source_id and target_type and target_id and link_type_text):
                stats.record_error(f"{label}: Empty required fields")
                continue
            try:
                link_type = LinkType.parse(link_type_text)
            except ValidationError:
                stats.record_error(f"{label}: Unknown link type '{link_type_text}'")
                continue

            self._import_one(stats, label, source_id, target_id, link_type, created_by or IMPORT_USER)

        return self._finish(stats, "csv", path)

    def _import_records(self, records: Iterable[Any], stats: ImportStats) -> None:
        for position, record in enumerate(records, start=1):
            stats.total_processed += 1
            label = f"Record {position}"
            if not isinstance(record, dict):
                stats.record_error(f"{label}: Incomplete link data")
                continue
            source_id = str(record.get("source_id") or "").strip()
            target_id = str(record.get("target_id") or "").strip()
            if not source_id or not target_id:
                stats.record_error(f"{label}: Incomplete link data")
                continue
            link_type_text = str(record.get("link_type") or LinkType.RELATED.value)
            try:
                link_type = LinkType.parse(link_type_text)
            except ValidationError:
                stats.record_error(f"{label}: Unknown link type '{link_type_text}'")
                continue
            created_by = str(record.get("created_by") or IMPORT_USER)
            self._import_one(stats, label, source_id, target_id, link_type, created_by)

    @staticmethod
    def _records_from(data: Any, path: Path) -> list[Any]:
        if isinstance(data, dict):
            data = data.get("links")
        if not isinstance(data, list):
            raise ParseError(f"{path}: expected a 'links' array")
        return data

    def import_from_json(self, path: Path) -> ImportStats:
        """Import links from a JSON document.

        Accepts the link store layout (``{"links": [...]}``) or a bare
        array. Each record needs ``source_id`` and ``target_id``;
        ``link_type`` defaults to ``Related``.

        Raises:
            ParseError: If the file is not valid JSON or has no link array.
        """
        try:
            data = json.loads(_read_text(path))
        except json.JSONDecodeError as e:
            raise ParseError(f"{path} is not valid JSON: {e}") from e

        stats = ImportStats()
        self._import_records(self._records_from(data, path), stats)
        return self._finish(stats, "json", path)

    def import_from_yaml(self, path: Path) -> ImportStats:
        """Import links from a YAML document with the same shape as JSON."""
        try:
            data = yaml.safe_load(_read_text(path))
        except yaml.YAMLError as e:
            raise ParseError(f"{path} is not valid YAML: {e}") from e

        stats = ImportStats()
        self._import_records(self._records_from(data, path), stats)
        return self._finish(stats, "yaml", path)

    def import_file(self, path: Path) -> ImportStats:
        """Import links, choosing the parser from the file extension."""
        fmt = infer_link_format(str(path))
        if fmt == "csv":
            return self.import_from_csv(path)
        if fmt == "json":
            return self.import_from_json(path)
        if fmt == "yaml":
            return self.import_from_yaml(path)
        raise ValidationError(f"Cannot import links from {fmt} files")

    def export_rtm_csv(self, path: Path) -> int:
        """Write the summary RTM as CSV and return the number of entity rows."""
        from tracelink.matrix.formats.csv import render_summary_csv

        matrix = self.manager.generate_rtm()
        write_output(render_summary_csv(matrix), Path(path))
        emit(self.manager.audit, "export", "rtm", path=str(path), format="csv", entities=len(matrix.entities))
        return len(matrix.entities)

    def export_rtm_json(self, path: Path) -> int:
        """Write the summary RTM as JSON and return the number of entity rows."""
        from tracelink.matrix.formats.json import render_summary_json

        matrix = self.manager.generate_rtm()
        write_output(render_summary_json(matrix), Path(path))
        emit(self.manager.audit, "export", "rtm", path=str(path), format="json", entities=len(matrix.entities))
        return len(matrix.entities)

    def export_dependency_graph(self, path: Path) -> int:
        """Write all links as a DOT digraph and return the number of edges."""
        links = self.manager.get_trace_links()
        write_output(render_dot(links), Path(path))
        emit(self.manager.audit, "export", "graph", path=str(path), format="dot", links=len(links))
        return len(links)

    def export_links_yaml(self, path: Path) -> int:
        """Write the raw link list as YAML and return the number of links."""
        links = self.manager.get_trace_links()
        buffer = io.StringIO()
        dump_yaml({"version": "1.0", "links": [link.to_dict() for link in links]}, buffer)
        write_output(buffer.getvalue(), Path(path))
        emit(self.manager.audit, "export", "links", path=str(path), format="yaml", links=len(links))
        return len(links)

    def export_file(self, path: Path, fmt: str | None = None) -> int:
        """Export by format name (csv, json, dot, yaml) or file extension."""
        fmt = fmt or infer_link_format(str(path))
        if fmt == "csv":
            return self.export_rtm_csv(path)
        if fmt == "json":
            return self.export_rtm_json(path)
        if fmt == "dot":
            return self.export_dependency_graph(path)
        if fmt == "yaml":
            return self.export_links_yaml(path)
        raise ValidationError(f"Unsupported export format: {fmt}")
