"""Build errors and structured reporting for site builds."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

REPORT_FILENAME = ".staticpress-last-build.json"


class SiteError(Exception):
    """Base class for every error raised by a site build."""


class ConfigurationError(SiteError):
    """Site-wide misconfiguration. Always aborts the build before output."""


class ContentError(SiteError):
    """A single document could not be read or rendered."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        self.message = message
        super().__init__(f"{source}: {message}")


class OutputCollisionError(SiteError):
    """Two pages resolved to the same output path."""

    def __init__(self, output_path: str, first_source: str, second_source: str) -> None:
        self.output_path = output_path
        self.first_source = first_source
        self.second_source = second_source
        super().__init__(
            f"{first_source} and {second_source} both resolve to {output_path}"
        )


class BuildIssue(BaseModel):
    """Something that went wrong in one build stage, tied to a source if known."""

    stage: str
    source: str = ""
    kind: str = "unknown"
    message: str = ""


class BuildReport(BaseModel):
    """What a site build read, rendered and wrote, and what it had to leave out.

    ``documents`` counts documents read per collection (drafts separately),
    ``pages`` counts rendered pages per kind. Documents dropped under
    ``skip_invalid`` land in ``skipped``; recoverable oddities such as an
    unknown diagram type land in ``warnings``. A build that raised has its
    error in ``fatal``.
    """

    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None
    environment: str = ""
    stages_completed: list[str] = Field(default_factory=list)
    documents: dict[str, int] = Field(default_factory=dict)
    assets: int = 0
    pages: dict[str, int] = Field(default_factory=dict)
    outputs_written: list[str] = Field(default_factory=list)
    skipped: list[BuildIssue] = Field(default_factory=list)
    warnings: list[BuildIssue] = Field(default_factory=list)
    fatal: BuildIssue | None = None

    def skip(self, stage: str, exc: ContentError) -> None:
        """Record a document excluded from the output."""
        self.skipped.append(
            BuildIssue(stage=stage, source=exc.source, kind="content_error", message=exc.message)
        )

    def warn(self, stage: str, message: str, *, source: str = "", kind: str = "warning") -> None:
        self.warnings.append(BuildIssue(stage=stage, source=source, kind=kind, message=message))

    def fail(self, stage: str, exc: SiteError) -> None:
        """Record the error that aborted the build."""
        if isinstance(exc, ContentError):
            source = exc.source
        elif isinstance(exc, OutputCollisionError):
            source = f"{exc.first_source}, {exc.second_source}"
        else:
            source = ""
        self.fatal = BuildIssue(
            stage=stage, source=source, kind=type(exc).__name__, message=str(exc)
        )

    def mark_stage_complete(self, stage: str) -> None:
        if stage not in self.stages_completed:
            self.stages_completed.append(stage)

    def finish(self) -> None:
        self.finished_at = datetime.now()

    @property
    def success(self) -> bool:
        return self.fatal is None

    @property
    def skipped_sources(self) -> list[str]:
        """Source paths excluded from the output because of content errors."""
        return [issue.source for issue in self.skipped]

    def summary_text(self) -> str:
        """Human-readable summary of the build."""
        duration = ""
        if self.finished_at and self.started_at:
            secs = (self.finished_at - self.started_at).total_seconds()
            duration = f" in {secs:.1f}s" if secs < 60 else f" in {secs / 60:.1f}m"

        status = "completed" if self.success else "failed"
        env = f" ({self.environment})" if self.environment else ""
        lines = [f"Build {status}{env}{duration}"]

        if self.stages_completed:
            lines.append(f"Stages: {', '.join(self.stages_completed)}")
        if self.documents:
            parts = [f"{name}: {count}" for name, count in self.documents.items()]
            lines.append(f"Documents: {', '.join(parts)}; assets: {self.assets}")
        if self.pages:
            parts = [f"{kind}: {count}" for kind, count in self.pages.items()]
            lines.append(f"Pages: {', '.join(parts)}")
        if self.outputs_written:
            lines.append(f"Outputs: {len(self.outputs_written)} files")
        if self.skipped:
            lines.append(f"Skipped: {len(self.skipped)} document(s)")
        if self.warnings:
            lines.append(f"Warnings: {len(self.warnings)}")
            for issue in self.warnings[:5]:
                where = f" ({issue.source})" if issue.source else ""
                lines.append(f"  {issue.stage}{where}: {issue.message}")
            if len(self.warnings) > 5:
                lines.append(f"  ... and {len(self.warnings) - 5} more")
        if self.fatal:
            where = f" ({self.fatal.source})" if self.fatal.source else ""
            fatal = self.fatal
            lines.append(f"[FATAL] {fatal.kind} in {fatal.stage}{where}: {fatal.message}")

        return "\n".join(lines)


def save_report(report: BuildReport, source_dir: Path) -> Path:
    """Write the report into the source directory, outside the generated tree."""
    report_path = source_dir / REPORT_FILENAME
    report_path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    return report_path


def load_report(source_dir: Path) -> BuildReport | None:
    """The last saved report, or None if there is none or it cannot be read."""
    report_path = source_dir / REPORT_FILENAME
    if not report_path.is_file():
        return None
    try:
        return BuildReport.model_validate_json(report_path.read_text(encoding="utf-8"))
    except ValidationError:
        logger.warning("Ignoring unreadable build report at %s", report_path)
        return None
