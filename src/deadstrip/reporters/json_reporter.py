from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from deadstrip import __version__
from deadstrip.batch import BatchSummary
from deadstrip.engine.selector import EditPlan
from deadstrip.engine.types import DeletionStats, RemovalResult
from deadstrip.utils import safe_relpath

REPORT_SCHEMA_VERSION = 1


def render_plan_json(plan: EditPlan, *, project_root: Path) -> str:
    files = []
    for fp in plan.file_plans:
        files.append(
            {
                "path": safe_relpath(fp.path, project_root),
                "edits": [
                    {
                        "warning_id": e.warning_id,
                        "annotation": e.annotation,
                        "kind": e.declaration.kind,
                        "name": e.declaration.name,
                        "line": e.location.line,
                        "column": e.location.column,
                        "end_line": e.location.end_line,
                    }
                    for e in fp.edits
                ],
                "covered": dict(fp.covered),
                "non_removable": [
                    {
                        "annotation": w.annotation,
                        "kind": w.declaration.kind,
                        "name": w.declaration.name,
                        "usr": w.declaration.primary_usr,
                    }
                    for w in fp.non_removable
                ],
            }
        )
    payload = {
        "schema_version": REPORT_SCHEMA_VERSION,
        "tool": {"name": "deadstrip", "version": __version__},
        "scope": safe_relpath(plan.scope.path, project_root),
        "files": files,
    }
    return json.dumps(payload, indent=2, sort_keys=False)


def render_summary_json(summary: BatchSummary, *, project_root: Path) -> str:
    payload = {
        "schema_version": REPORT_SCHEMA_VERSION,
        "tool": {"name": "deadstrip", "version": __version__},
        "scope": safe_relpath(summary.scope.path, project_root),
        "dry_run": summary.dry_run,
        "cancelled": summary.cancelled,
        "file_count": summary.file_count,
        "total_files": summary.total_files,
        "stats": _stats_to_dict(summary.stats),
        "files": [_result_to_dict(r, project_root=project_root) for r in summary.results],
        "failures": [
            {"path": safe_relpath(f.path, project_root), "error": f.error} for f in summary.failures
        ],
    }
    return json.dumps(payload, indent=2, sort_keys=False)


def _stats_to_dict(stats: DeletionStats) -> dict[str, int]:
    return {
        "deleted": stats.deleted_count,
        "non_deletable": stats.non_deletable_count,
        "failed_ignore_comments": stats.failed_ignore_comment_count,
    }


def _result_to_dict(r: RemovalResult, *, project_root: Path) -> dict[str, Any]:
    return {
        "path": safe_relpath(r.path, project_root),
        "removed_warning_ids": list(r.removed_warning_ids),
        "deleted_file": r.should_delete_file,
        "stripped_imports": r.should_strip_imports,
        "stats": _stats_to_dict(r.stats),
    }
