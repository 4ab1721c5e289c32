"""Validation of legacy records before they are submitted to the service.

Each check yields a `ValidationIssue`. Errors block create/update requests; warnings are shown
to the editor but do not prevent submission.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Literal
from urllib.parse import urlparse

from loguru import logger
from pydantic import ValidationError

from horde_model_reference_console.model_reference_records import (
    LegacyConfig,
    LegacyConfigDownload,
    LegacyConfigFile,
    LegacyRecordUnion,
    LegacyStableDiffusionRecord,
    LegacyTextGenerationRecord,
    parse_legacy_record,
)

Severity = Literal["error", "warning"]

ALLOWED_CONFIG_FILENAMES = {"v2-inference-v.yaml", "v1-inference.yaml"}
MODEL_FILE_SUFFIXES = (".ckpt", ".safetensors", ".pt")
NEW_MODEL_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
SHA256_LENGTH = 64


@dataclass(frozen=True)
class ValidationIssue:
    """A single problem found in a record."""

    message: str
    severity: Severity
    field: str | None = None

    def __str__(self) -> str:
        location = f"{self.field}: " if self.field else ""
        return f"[{self.severity}] {location}{self.message}"


def is_valid_url(url: str) -> bool:
    """Return True if `url` is an absolute URL with a scheme and a host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def validate_config_file(file: LegacyConfigFile) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    if not file.path:
        issues.append(ValidationIssue("Config file has no path", "error", "config.files[].path"))
        return issues

    if ".yaml" in file.path or ".json" in file.path:
        if ".yaml" in file.path and PurePosixPath(file.path).name not in ALLOWED_CONFIG_FILENAMES:
            issues.append(ValidationIssue("Non-standard config file", "warning", "config.files[].path"))
        return issues

    if not file.path.endswith(MODEL_FILE_SUFFIXES):
        issues.append(ValidationIssue("Config file might have an invalid path", "warning", "config.files[].path"))

    if not file.sha256sum:
        issues.append(ValidationIssue("Config file missing sha256sum", "error", "config.files[].sha256sum"))
    elif len(file.sha256sum) != SHA256_LENGTH:
        issues.append(
            ValidationIssue("Invalid sha256sum (must be 64 characters)", "error", "config.files[].sha256sum"),
        )

    return issues


def validate_config_download(download: LegacyConfigDownload) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    if not download.file_name:
        issues.append(ValidationIssue("Download has no file_name", "error", "config.download[].file_name"))

    if not download.file_url:
        issues.append(ValidationIssue("Download has no file_url", "warning", "config.download[].file_url"))
    elif not is_valid_url(download.file_url):
        issues.append(ValidationIssue("Invalid file_url", "error", "config.download[].file_url"))

    if download.file_path:
        issues.append(ValidationIssue("file_path should be empty", "warning", "config.download[].file_path"))

    return issues


def validate_config(config: LegacyConfig) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    for file in config.files:
        issues.extend(validate_config_file(file))

    for download in config.download:
        issues.extend(validate_config_download(download))

    if not config.files and not config.download:
        issues.append(ValidationIssue("Config has no files or downloads", "warning", "config"))

    return issues


def _validate_stable_diffusion_record(record: LegacyStableDiffusionRecord) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []

    if record.type != "ckpt":
        issues.append(ValidationIssue('Type should be "ckpt"', "warning", "type"))

    if not record.baseline:
        issues.append(ValidationIssue("Baseline is required", "error", "baseline"))

    if record.showcases and any("huggingface" in showcase for showcase in record.showcases):
        issues.append(ValidationIssue("Should not include huggingface showcases", "warning", "showcases"))

    return issues


def _validate_text_generation_record(record: LegacyTextGenerationRecord) -> list[ValidationIssue]:
    if record.parameters is None:
        return [ValidationIssue("Parameters count is required", "error", "parameters")]
    return []


def validate_legacy_record(record: LegacyRecordUnion) -> list[ValidationIssue]:
    """Return every issue found in `record`, in field order.

    Args:
        record: The record to check.

    Returns:
        list[ValidationIssue]: The issues found. An empty list means the record is clean.
    """
    issues: list[ValidationIssue] = []

    if not record.name:
        issues.append(ValidationIssue("Name is required", "error", "name"))

    if not record.description:
        issues.append(ValidationIssue("Description is missing", "warning", "description"))

    if record.style == "":
        issues.append(ValidationIssue("Style is empty", "warning", "style"))

    if record.available:
        issues.append(ValidationIssue("Should not be flagged 'available'", "warning", "available"))

    if record.config is not None:
        issues.extend(validate_config(record.config))

    if isinstance(record, LegacyStableDiffusionRecord):
        issues.extend(_validate_stable_diffusion_record(record))
    elif isinstance(record, LegacyTextGenerationRecord):
        issues.extend(_validate_text_generation_record(record))

    return issues


def validate_new_model_name(name: str) -> list[ValidationIssue]:
    """Check the name given to a model being created."""
    if not name:
        return [ValidationIssue("Name is required", "error", "name")]
    if not NEW_MODEL_NAME_PATTERN.match(name):
        return [
            ValidationIssue(
                "Name may only contain letters, digits, underscores and hyphens",
                "error",
                "name",
            ),
        ]
    return []


def parse_record_json(
    text: str,
    name: str,
    *,
    category: str | None = None,
) -> tuple[LegacyRecordUnion | None, list[ValidationIssue]]:
    """Parse an edited record body and validate it.

    The body is the record without its name, as shown in an editor; `name` is merged back in.
    With a `category` the record is parsed as that category's record type.

    Returns:
        tuple: The parsed record (None if it could not be parsed) and the issues found. Unparseable
            JSON produces a single "Invalid JSON format" error.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.debug(f"Record body for {name} is not valid JSON: {e}")
        return None, [ValidationIssue("Invalid JSON format", "error")]

    if not isinstance(data, dict):
        return None, [ValidationIssue("Record must be a JSON object", "error")]

    data["name"] = name or data.get("name") or "new-model"

    try:
        record = parse_legacy_record(data, category=category)
    except ValidationError as e:
        issues = [
            ValidationIssue(error["msg"], "error", ".".join(str(part) for part in error["loc"]) or None)
            for error in e.errors()
        ]
        return None, issues

    return record, validate_legacy_record(record)


def has_error_issues(issues: list[ValidationIssue]) -> bool:
    """Return True if any issue is an error."""
    return any(issue.severity == "error" for issue in issues)


def group_issues_by_severity(issues: list[ValidationIssue]) -> dict[Severity, list[ValidationIssue]]:
    """Split issues into `{"error": [...], "warning": [...]}`."""
    return {
        "error": [issue for issue in issues if issue.severity == "error"],
        "warning": [issue for issue in issues if issue.severity == "warning"],
    }
