"""Environment checks for pdfmassage.

Verifies, before any document is processed, that the external tools can be
found and the scratch directory can hold temporary files.
"""

import os
import shutil
from dataclasses import dataclass, field, fields

from pdfmassage.config import MassageConfig


@dataclass
class ValidationIssue:
    """A single problem found while checking the environment."""

    level: str  # "error" or "warning"
    field: str
    message: str
    suggestion: str | None = None

    def __str__(self) -> str:
        text = f"[{self.level.upper()}] {self.field}: {self.message}"
        if self.suggestion:
            text += f"\n  Suggestion: {self.suggestion}"
        return text


@dataclass
class ValidationResult:
    """Result of environment validation."""

    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(i.level == "error" for i in self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.level == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.level == "warning"]

    def add_error(self, field: str, message: str, suggestion: str | None = None) -> None:
        self.issues.append(ValidationIssue("error", field, message, suggestion))

    def add_warning(self, field: str, message: str, suggestion: str | None = None) -> None:
        self.issues.append(ValidationIssue("warning", field, message, suggestion))


TOOL_PACKAGES = {
    "identify": "ImageMagick",
    "convert": "ImageMagick",
    "pdftk": "pdftk (or pdftk-java)",
}


def check_tools(config: MassageConfig) -> ValidationResult:
    """Check every configured tool resolves to an executable."""
    result = ValidationResult()
    for f in fields(config.tools):
        command = getattr(config.tools, f.name)
        if shutil.which(command) is None:
            result.add_error(
                f"tools.{f.name}",
                f"'{command}' not found",
                suggestion=f"Install {TOOL_PACKAGES.get(f.name, f.name)} or set tools.{f.name} in the config",
            )
    return result


def check_scratch_dir(config: MassageConfig) -> ValidationResult:
    """Check the scratch directory exists and is writable."""
    result = ValidationResult()
    scratch = config.scratch_dir
    if not scratch.exists():
        result.add_error("scratch_dir", f"Directory does not exist: {scratch}", suggestion="Create it first")
    elif not scratch.is_dir():
        result.add_error("scratch_dir", f"Not a directory: {scratch}")
    elif not os.access(scratch, os.W_OK | os.X_OK):
        result.add_error("scratch_dir", f"Directory is not writable: {scratch}")
    return result


def check_environment(config: MassageConfig) -> ValidationResult:
    """Run all environment checks.

    Args:
        config: Configuration to check

    Returns:
        ValidationResult with errors (operations will fail) and warnings
    """
    result = ValidationResult()
    result.issues.extend(check_tools(config).issues)
    result.issues.extend(check_scratch_dir(config).issues)

    if config.process_timeout is None:
        result.add_warning(
            "process_timeout",
            "No process timeout set; a hung tool blocks its operation forever",
        )
    if not config.temp_prefix:
        result.add_warning(
            "temp_prefix",
            "Empty temp_prefix makes leftover workspaces hard to tell apart",
        )
    return result
