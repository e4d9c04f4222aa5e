"""Schema export planner.

Scripts the five object categories to one file each, in dependency-safe
order, and records that order in ``schema-files.txt``:

    tables -> constraints -> procedures -> functions -> views

Foreign keys, checks and triggers live in ``constraints.sql`` so they are
applied only after every table exists.  The tables file is wrapped with
existence guards (see ``sqlpack.schema.guard``).

Usage:
    planner = SchemaExportPlanner(scripter, supervisor)
    result = planner.plan(Path("./db-export"))
    result.units   # [SchemaUnit('tables.sql'), SchemaUnit('constraints.sql'), ...]
"""

import shutil
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from sqlpack.clients.base import (
    CATEGORY_OPTIONS,
    ObjectScripter,
    ScriptedObject,
    ScriptingOptions,
)
from sqlpack.errors import GuardTransformError
from sqlpack.manifest.io import SCHEMA_DIR, SCHEMA_MANIFEST, write_schema_manifest
from sqlpack.manifest.models import ObjectCategory, SchemaUnit, quote_name
from sqlpack.schema.guard import guard_table_file
from sqlpack.supervisor import Supervisor

_HEADER_TYPES = {
    "TABLE": "Table",
    "INDEX": "Index",
    "V": "View",
    "P": "StoredProcedure",
    "FN": "UserDefinedFunction",
    "IF": "UserDefinedFunction",
    "TF": "UserDefinedFunction",
    "TR": "Trigger",
}


@dataclass
class SchemaExportResult:
    """What the planner produced.

    Attributes:
        units: Files written, in application order (also the manifest).
        object_counts: Objects scripted per category.
        failed_categories: Categories whose scripting raised.
        guarded: False when the guard transform failed and the unguarded
            tables script was used instead.
        manifest_path: Location of ``schema-files.txt``.
    """

    units: list[SchemaUnit] = field(default_factory=list)
    object_counts: dict[ObjectCategory, int] = field(default_factory=dict)
    failed_categories: list[ObjectCategory] = field(default_factory=list)
    guarded: bool = True
    manifest_path: Path | None = None


def render_script(objects: list[ScriptedObject], options: ScriptingOptions) -> str:
    """Render objects as ``GO``-separated batches, with optional headers."""
    parts: list[str] = []
    for obj in objects:
        if options.include_headers:
            kind = _HEADER_TYPES.get(obj.object_type, obj.object_type or "Object")
            target = f"{quote_name(obj.schema)}.{quote_name(obj.name)}"
            parts.append(f"/****** Object:  {kind} {target} ******/")
        parts.append(obj.definition)
        parts.append("GO")
    return "\n".join(parts) + "\n"


class SchemaExportPlanner:
    """Writes one script per object category plus the ordered manifest."""

    def __init__(self, scripter: ObjectScripter, supervisor: Supervisor):
        self.scripter = scripter
        self.supervisor = supervisor

    def plan(self, output_dir: Path) -> SchemaExportResult:
        log = self.supervisor
        schema_dir = output_dir / SCHEMA_DIR
        schema_dir.mkdir(parents=True, exist_ok=True)
        result = SchemaExportResult()

        log.section("EXPORTING SCHEMA")

        for category in ObjectCategory:
            options = CATEGORY_OPTIONS[category]
            log.debug(f"Scripting {category.value}")
            try:
                objects = self.scripter.script(category, options)
            except SQLAlchemyError as e:
                log.warn(f"Failed to script {category.value}: {e}")
                result.failed_categories.append(category)
                continue

            result.object_counts[category] = len(objects)
            if not objects:
                log.debug(f"No {category.value} to script")
                continue

            script = render_script(objects, options)
            target = schema_dir / category.file_name
            if category is ObjectCategory.TABLES:
                result.guarded = self._write_guarded(script, target)
            else:
                target.write_text(script, encoding="utf-8")

            result.units.append(SchemaUnit.for_category(category))
            log.success(f"Scripted {len(objects)} {category.value} -> {category.file_name}")

        result.manifest_path = output_dir / SCHEMA_MANIFEST
        write_schema_manifest(result.manifest_path, result.units)
        log.debug(
            "Schema manifest: " + ", ".join(u.file_name for u in result.units)
        )
        return result

    def _write_guarded(self, script: str, target: Path) -> bool:
        """Write the tables script with guards; fall back to unguarded.

        Returns:
            True if guards were applied.
        """
        unguarded = target.with_name(f"{target.stem}.unguarded.sql")
        unguarded.write_text(script, encoding="utf-8")
        try:
            guard_table_file(unguarded, target)
            return True
        except (GuardTransformError, OSError) as e:
            self.supervisor.warn(
                f"Could not add existence guards to {target.name}, "
                f"using unguarded script: {e}"
            )
            shutil.copyfile(unguarded, target)
            return False
        finally:
            unguarded.unlink(missing_ok=True)
