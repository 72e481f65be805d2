"""CLI flag reconciliation engine.

Determines, for every flag a program declares, whether it is implemented,
documented and free of contradictions between code, help text, user docs and
planning docs. The pipeline is strictly ordered and every phase mutates the
same list of ``FlagStatus`` records:

1. catalog_flags           declarations found in the configuration package
2. classify_implementation field references in config and main entry source
3. cross_reference         user docs, planning docs, ghost flags
4. detect_conflicts        orphaned / description / planning conflicts
5. validate_functionality  presence in the rendered help text
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Callable
from pathlib import Path

from selfcheck.config import FlagSystemConfig
from selfcheck.core.engine import AnalysisContext
from selfcheck.core.errors import FlagPhaseError, SelfcheckError
from selfcheck.core.models import (
    ConflictSeverity,
    ConflictType,
    Effort,
    FlagConflict,
    FlagStatus,
    ImplementationStatus,
    Issue,
    IssueCategory,
    Priority,
    Severity,
)
from selfcheck.core.workspace import Workspace
from selfcheck.flags.discovery import discover_module, discover_package_files
from selfcheck.flags.field_names import FieldNameMapper
from selfcheck.flags.source_model import CallShape, PythonSourceModel, SourceModelProvider

logger = logging.getLogger(__name__)

HelpTextProvider = Callable[[], str]

FLAG_MARKER = "--"
GHOST_FLAG_RE = re.compile(r"--([a-z][a-z0-9-]+)")

PRESENT_IN_HELP = "Present in help text"
NOT_FOUND_IN_HELP = "Not found in help text"

PHASE_CATALOG = "cataloging flags"
PHASE_CLASSIFY = "classifying flags"
PHASE_CROSS_REFERENCE = "cross-referencing flags"
PHASE_CONFLICTS = "detecting flag conflicts"
PHASE_VALIDATE = "validating flag functionality"


def extract_potential_flags(content: str) -> list[str]:
    """Flag-shaped tokens in order of first appearance, without the marker."""
    seen: dict[str, None] = {}
    for match in GHOST_FLAG_RE.finditer(content):
        seen.setdefault(match.group(1), None)
    return list(seen)


def read_files_combined(paths: list[Path], phase: str) -> str:
    """Concatenate the files that exist, one newline after each.

    Missing files are skipped; any other read failure aborts the phase.
    """
    parts: list[str] = []
    for path in paths:
        try:
            parts.append(path.read_text(encoding="utf-8", errors="replace") + "\n")
        except FileNotFoundError:
            continue
        except OSError as e:
            raise FlagPhaseError(phase, e) from e
    return "".join(parts)


class FlagSystem:
    """Flag reconciliation engine; also schedulable as an analysis engine."""

    def __init__(
        self,
        config: FlagSystemConfig | None = None,
        help_text: HelpTextProvider | None = None,
        source_model: SourceModelProvider = PythonSourceModel.from_path,
        field_mapper: FieldNameMapper | None = None,
    ) -> None:
        self.config = config or FlagSystemConfig()
        self.help_text = help_text
        self.source_model = source_model
        self.field_mapper = field_mapper or FieldNameMapper(self.config.field_overrides)

    @property
    def name(self) -> str:
        return "FlagSystem"

    # =========================================================================
    # Engine contract
    # =========================================================================

    async def analyze(
        self, ctx: AnalysisContext, root_path: Path, workspace: Workspace
    ) -> list[Issue]:
        flags = await asyncio.to_thread(self.reconcile, ctx, root_path, workspace)
        return self.report_flag_issues(root_path, flags)

    def reconcile(
        self, ctx: AnalysisContext, root_path: Path, workspace: Workspace
    ) -> list[FlagStatus]:
        """Run all five phases.

        Cataloging failures are raised; later phases are advisory, so their
        failures are logged and the pipeline continues with what it has.
        """
        flags = self.catalog_flags(ctx, root_path, workspace)

        later_phases: list[Callable[[list[FlagStatus]], list[FlagStatus]]] = [
            lambda fs: self.classify_implementation(ctx, root_path, workspace, fs),
            lambda fs: self.cross_reference(ctx, root_path, workspace, fs),
            lambda fs: self.detect_conflicts(ctx, workspace, fs),
            lambda fs: self.validate_functionality(ctx, root_path, workspace, fs),
        ]
        for phase in later_phases:
            ctx.check()
            try:
                flags = phase(flags)
            except FlagPhaseError as e:
                logger.warning(f"Flag reconciliation continuing after error: {e}")

        self._checkpoint(workspace, "reconciled", flags)
        return flags

    # =========================================================================
    # Phase 1: catalog
    # =========================================================================

    def catalog_flags(
        self, ctx: AnalysisContext, root_path: Path, workspace: Workspace
    ) -> list[FlagStatus]:
        """Find every flag registration call in the configuration package."""
        try:
            files = discover_package_files(root_path, self.config.config_package)
        except SelfcheckError as e:
            raise FlagPhaseError(PHASE_CATALOG, e) from e

        statuses: list[FlagStatus] = []
        for path in files:
            ctx.check()
            try:
                model = self.source_model(path)
            except OSError as e:
                raise FlagPhaseError(PHASE_CATALOG, e) from e
            for call in model.calls:
                status = self.parse_flag_call(call)
                if status is not None:
                    status.defined_in_code = True
                    status.location = f"{path}:{call.lineno}"
                    statuses.append(status)

        logger.debug(f"Cataloged {len(statuses)} flags from {len(files)} files")
        self._checkpoint(workspace, "catalog", statuses)
        return statuses

    def parse_flag_call(self, call: CallShape) -> FlagStatus | None:
        """Turn a registration call into a FlagStatus, or None if it is not one.

        Registrations look like ``flags.bool_var(target, "long", default, "usage")``
        or, with a short form, ``flags.bool_var_p(target, "long", "s", default, "usage")``.
        """
        if not any(call.member.endswith(s) for s in self.config.registration_suffixes):
            return None
        if len(call.args) < 3:
            return None

        long_form = call.args[1]
        if not long_form:
            return None

        status = FlagStatus(name=long_form, long_form=long_form)
        if call.member.endswith(self.config.short_marker) and len(call.args) >= 4:
            status.short_form = call.args[2] or ""
            if len(call.args) >= 5:
                status.description = call.args[4] or ""
        elif len(call.args) >= 4:
            status.description = call.args[3] or ""
        return status

    # =========================================================================
    # Phase 2: classify
    # =========================================================================

    def classify_implementation(
        self,
        ctx: AnalysisContext,
        root_path: Path,
        workspace: Workspace,
        flags: list[FlagStatus],
    ) -> list[FlagStatus]:
        """Grade each flag by where its backing field is referenced."""
        config_code, config_refs, main_refs = self._load_codebases(root_path)
        for flag in flags:
            ctx.check()
            self._update_implementation_status(flag, config_code, config_refs, main_refs)
        self._checkpoint(workspace, "classified", flags)
        return flags

    def _load_codebases(self, root_path: Path) -> tuple[str, set[str], set[str]]:
        try:
            files = discover_package_files(root_path, self.config.config_package)
        except SelfcheckError as e:
            raise FlagPhaseError(PHASE_CLASSIFY, e) from e

        receivers = self.config.receivers
        config_parts: list[str] = []
        config_refs: set[str] = set()
        try:
            for path in files:
                config_parts.append(path.read_text(encoding="utf-8"))
                config_refs |= self.source_model(path).field_references(receivers)
        except OSError as e:
            raise FlagPhaseError(PHASE_CLASSIFY, e) from e

        main_refs: set[str] = set()
        main_path = discover_module(root_path, self.config.main_module)
        if main_path is not None:
            try:
                main_refs = self.source_model(main_path).field_references(receivers)
            except OSError as e:
                logger.debug(f"Main entry {main_path} unreadable: {e}")

        return "".join(config_parts), config_refs, main_refs

    def _update_implementation_status(
        self,
        flag: FlagStatus,
        config_code: str,
        config_refs: set[str],
        main_refs: set[str],
    ) -> None:
        field_name = self.field_mapper(flag.long_form)
        used_in_config = field_name in config_refs
        used_in_main = field_name in main_refs

        if used_in_config and used_in_main:
            flag.status = ImplementationStatus.FULLY_IMPLEMENTED
        elif used_in_config or used_in_main:
            flag.status = ImplementationStatus.PARTIALLY_IMPLEMENTED
        else:
            flag.status = ImplementationStatus.PLANNED_NOT_IMPLEMENTED

        # The configuration's own help text lives in the config source.
        if FLAG_MARKER + flag.long_form in config_code:
            flag.defined_in_help = True

    # =========================================================================
    # Phase 3: cross-reference
    # =========================================================================

    def cross_reference(
        self,
        ctx: AnalysisContext,
        root_path: Path,
        workspace: Workspace,
        flags: list[FlagStatus],
    ) -> list[FlagStatus]:
        """Check user docs and planning docs, then add ghost flags."""
        doc_content = read_files_combined(
            [root_path / p for p in self.config.user_docs], PHASE_CROSS_REFERENCE
        )
        plan_content = read_files_combined(
            [root_path / p for p in self.config.planning_docs], PHASE_CROSS_REFERENCE
        )

        for flag in flags:
            ctx.check()
            marked = FLAG_MARKER + flag.long_form
            if marked in doc_content:
                flag.defined_in_docs = True
            if marked in plan_content:
                flag.defined_in_planning = True

        flags = self.identify_ghost_flags(flags, plan_content)
        self._checkpoint(workspace, "cross_referenced", flags)
        return flags

    def identify_ghost_flags(self, flags: list[FlagStatus], plan_content: str) -> list[FlagStatus]:
        """Append a record for each planned flag that was never declared."""
        known = {flag.long_form for flag in flags}
        for ghost in extract_potential_flags(plan_content):
            if ghost in known:
                continue
            known.add(ghost)
            flags.append(
                FlagStatus(
                    name=ghost,
                    long_form=ghost,
                    defined_in_planning=True,
                    status=ImplementationStatus.PLANNED_NOT_IMPLEMENTED,
                )
            )
        return flags

    # =========================================================================
    # Phase 4: conflicts
    # =========================================================================

    def detect_conflicts(
        self, ctx: AnalysisContext, workspace: Workspace, flags: list[FlagStatus]
    ) -> list[FlagStatus]:
        """Append conflicts to each flag.

        Conflicts accumulate: running this twice over the same list records
        them twice.
        """
        for flag in flags:
            ctx.check()

            if flag.defined_in_code and not flag.defined_in_help and not flag.defined_in_docs:
                flag.conflicts.append(
                    FlagConflict(
                        type=ConflictType.ORPHANED_FLAG,
                        source1="code",
                        source2="documentation",
                        description=(
                            "Flag is implemented in code but missing from help text "
                            "and user documentation."
                        ),
                        severity=ConflictSeverity.HIGH,
                    )
                )

            if (
                flag.defined_in_code
                and not flag.defined_in_docs
                and not flag.has_conflict(ConflictType.ORPHANED_FLAG)
            ):
                flag.conflicts.append(
                    FlagConflict(
                        type=ConflictType.DESCRIPTION_CONFLICT,
                        source1="code",
                        source2="user_docs",
                        description=(
                            "Flag is implemented but missing from user-facing markdown documentation."
                        ),
                        severity=ConflictSeverity.MEDIUM,
                    )
                )

            if flag.defined_in_planning and not flag.defined_in_code:
                flag.conflicts.append(
                    FlagConflict(
                        type=ConflictType.PLANNING_MISMATCH,
                        source1="planning",
                        source2="code",
                        description="Flag mentioned in planning documents but not implemented in code.",
                        severity=ConflictSeverity.HIGH,
                    )
                )

        self._checkpoint(workspace, "conflicts", flags)
        return flags

    # =========================================================================
    # Phase 5: validate
    # =========================================================================

    def validate_functionality(
        self,
        ctx: AnalysisContext,
        root_path: Path,
        workspace: Workspace,
        flags: list[FlagStatus],
    ) -> list[FlagStatus]:
        """Check each implemented flag against the rendered help text."""
        help_output = self._render_help(root_path)

        for flag in flags:
            ctx.check()
            if flag.status == ImplementationStatus.PLANNED_NOT_IMPLEMENTED:
                continue
            if FLAG_MARKER + flag.long_form in help_output:
                flag.actual_behavior = PRESENT_IN_HELP
                flag.test_coverage = True
            else:
                flag.actual_behavior = NOT_FOUND_IN_HELP
                flag.test_coverage = False

        self._checkpoint(workspace, "validated", flags)
        return flags

    def _render_help(self, root_path: Path) -> str:
        if self.help_text is not None:
            try:
                return self.help_text()
            except Exception as e:
                raise FlagPhaseError(PHASE_VALIDATE, e) from e

        # Without a renderer, the help text is whatever string literals the
        # configuration package carries.
        try:
            files = discover_package_files(root_path, self.config.config_package)
            return "\n".join(
                literal for path in files for literal in self.source_model(path).string_literals
            )
        except (SelfcheckError, OSError) as e:
            raise FlagPhaseError(PHASE_VALIDATE, e) from e

    # =========================================================================
    # Reporting
    # =========================================================================

    def report_flag_issues(self, root_path: Path, flags: list[FlagStatus]) -> list[Issue]:
        issues: list[Issue] = []
        for flag in flags:
            issues.extend(self._implementation_issues(root_path, flag))
            issues.extend(self._conflict_issues(root_path, flag))
        return issues

    def _implementation_issues(self, root_path: Path, flag: FlagStatus) -> list[Issue]:
        issues: list[Issue] = []
        location = flag.location or str(root_path)
        long_flag = FLAG_MARKER + flag.long_form

        if flag.status == ImplementationStatus.PARTIALLY_IMPLEMENTED:
            issues.append(
                Issue(
                    id="FLAG-PARTIAL-IMPLEMENTATION",
                    category=IssueCategory.USABILITY,
                    severity=Severity.MEDIUM,
                    priority=Priority.P2,
                    title=f"Flag '{long_flag}' is partially implemented",
                    description=(
                        f"The flag '{long_flag}' is defined but not fully integrated "
                        "into the configuration system."
                    ),
                    location=location,
                    suggestion=(
                        f"Reference the '{self.field_mapper(flag.long_form)}' field from both "
                        f"the '{self.config.config_package}' package and the main entry."
                    ),
                    effort=Effort.MEDIUM,
                )
            )

        if flag.actual_behavior == NOT_FOUND_IN_HELP:
            issues.append(
                Issue(
                    id="FLAG-MISSING-FROM-HELP-OUTPUT",
                    category=IssueCategory.USABILITY,
                    severity=Severity.HIGH,
                    priority=Priority.P1,
                    title=f"Flag '{long_flag}' missing from CLI help output",
                    description=(
                        f"The flag '{long_flag}' is defined in code but does not appear "
                        "in the rendered help text."
                    ),
                    location=location,
                    suggestion="Ensure the flag is correctly added to the flag set used by the CLI.",
                    effort=Effort.SMALL,
                )
            )

        return issues

    def _conflict_issues(self, root_path: Path, flag: FlagStatus) -> list[Issue]:
        location = flag.location or str(root_path)
        issues: list[Issue] = []
        for conflict in flag.conflicts:
            severity = (
                Severity.HIGH
                if conflict.severity in (ConflictSeverity.CRITICAL, ConflictSeverity.HIGH)
                else Severity.MEDIUM
            )
            issues.append(
                Issue(
                    id=f"FLAG-CONFLICT-{conflict.type.value.upper()}",
                    category=IssueCategory.USABILITY,
                    severity=severity,
                    priority=Priority.P1,
                    title=f"Conflict detected for flag '{FLAG_MARKER}{flag.long_form}'",
                    description=conflict.description,
                    location=location,
                    suggestion="Resolve the discrepancy between the flag sources.",
                    effort=Effort.SMALL,
                )
            )
        return issues

    def generate_status_report(self, flags: list[FlagStatus]) -> str:
        """Markdown table of every flag's status and conflicts."""

        def mark(value: bool) -> str:
            return "✅" if value else "❌"

        lines = [
            "# CLI Flag Status and Conflict Report",
            "",
            "| Flag | Status | Help | Docs | Plan | Conflicts |",
            "|------|--------|------|------|------|-----------|",
        ]
        for flag in flags:
            conflicts = ", ".join(c.type.value for c in flag.conflicts) or "None"
            lines.append(
                f"| {FLAG_MARKER}{flag.long_form} | {flag.status.value} | "
                f"{mark(flag.defined_in_help)} | {mark(flag.defined_in_docs)} | "
                f"{mark(flag.defined_in_planning)} | {conflicts} |"
            )
        return "\n".join(lines) + "\n"

    def _checkpoint(self, workspace: Workspace, phase: str, flags: list[FlagStatus]) -> None:
        """Persist the phase output to the workspace scratch area."""
        payload = json.dumps([f.model_dump(mode="json") for f in flags], indent=2)
        try:
            workspace.write_file(f"flag-system/{phase}.json", payload.encode("utf-8"))
        except (OSError, SelfcheckError) as e:
            logger.debug(f"Could not write flag checkpoint {phase}: {e}")
