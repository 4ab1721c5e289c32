"""Create, update and delete reference records, validating them before anything is sent."""

from __future__ import annotations

from loguru import logger

from horde_model_reference_console.api_client import ModelReferenceAPIClient
from horde_model_reference_console.exceptions import ModelReferenceAPIError, RecordValidationError
from horde_model_reference_console.meta_consts import BACKEND_REPLICATE_MODE
from horde_model_reference_console.model_reference_records import (
    LegacyRecordUnion,
    create_default_record_for_category,
)
from horde_model_reference_console.notifications import NotificationService
from horde_model_reference_console.validation import (
    ValidationIssue,
    has_error_issues,
    parse_record_json,
    validate_legacy_record,
    validate_new_model_name,
)


class RecordEditor:
    """Submits record edits for one category.

    Validation errors block submission. Every failure is reported as an error notification and
    the operation returns None (or False); warnings are reported but do not block.

    The service's replicate mode is detected on the first write if the client has not detected it yet.
    Writes are refused without a request when the service is not in PRIMARY mode.
    """

    def __init__(
        self,
        client: ModelReferenceAPIClient,
        category: str,
        *,
        notifications: NotificationService | None = None,
    ) -> None:
        self.client = client
        self.category = category
        self.notifications = notifications or NotificationService()

    def new_record(self, name: str) -> LegacyRecordUnion:
        return create_default_record_for_category(self.category, name)

    def check(self, record: LegacyRecordUnion, *, is_new: bool) -> list[ValidationIssue]:
        """Return every issue of `record`, including its name when it is new.

        Raises:
            RecordValidationError: If any issue is an error.
        """
        issues = validate_new_model_name(record.name) if is_new else []
        issues.extend(validate_legacy_record(record))
        if has_error_issues(issues):
            raise RecordValidationError(issues)
        return issues

    def ensure_writable(self) -> bool:
        """Detect the replicate mode if needed; report an error and return False if writes are refused."""
        capabilities = self.client.capabilities
        if capabilities.mode == BACKEND_REPLICATE_MODE.UNKNOWN:
            capabilities = self.client.detect_backend_capabilities()
        if not capabilities.writable:
            self.notifications.error(
                f"The service is in {capabilities.mode} mode and does not accept create, update or delete requests.",
            )
            return False
        return True

    def _report(self, issues: list[ValidationIssue]) -> None:
        for issue in issues:
            if issue.severity == "error":
                self.notifications.error(str(issue))
            else:
                self.notifications.warning(str(issue))

    def _submit(self, record: LegacyRecordUnion, *, is_new: bool) -> LegacyRecordUnion | None:
        try:
            self._report(self.check(record, is_new=is_new))
        except RecordValidationError as e:
            self._report(e.issues)
            return None

        if not self.ensure_writable():
            return None

        try:
            if is_new:
                saved = self.client.create_legacy_model(self.category, record.name, record)
            else:
                saved = self.client.update_legacy_model(self.category, record.name, record)
        except ModelReferenceAPIError as e:
            self.notifications.error(e.message)
            return None

        verb = "created" if is_new else "updated"
        self.notifications.success(f"Model '{saved.name}' {verb} successfully")
        return saved

    def create(self, record: LegacyRecordUnion) -> LegacyRecordUnion | None:
        return self._submit(record, is_new=True)

    def update(self, record: LegacyRecordUnion) -> LegacyRecordUnion | None:
        return self._submit(record, is_new=False)

    def submit_json(self, name: str, text: str, *, is_new: bool) -> LegacyRecordUnion | None:
        """Parse an edited JSON body for the record `name` and submit it."""
        record, issues = parse_record_json(text, name, category=self.category)
        if record is None:
            self._report(issues)
            logger.debug(f"Not submitting '{name}': the record body could not be parsed")
            return None
        return self._submit(record, is_new=is_new)

    def delete(self, name: str) -> bool:
        if not self.ensure_writable():
            return False

        try:
            self.client.delete_model(self.category, name)
        except ModelReferenceAPIError as e:
            self.notifications.error(e.message)
            return False

        self.notifications.success(f"Model '{name}' deleted successfully")
        return True
