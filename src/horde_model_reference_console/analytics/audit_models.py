"""Wire types of `GET /model_references/statistics/{category}/audit`."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class UsageTrend(BaseModel):
    """Usage trend ratios comparing time periods."""

    model_config = ConfigDict(use_attribute_docstrings=True)

    day_to_month_ratio: float | None = None
    """Ratio of day usage to month usage (day/month). None if month usage is zero."""
    month_to_total_ratio: float | None = None
    """Ratio of month usage to total usage (month/total). None if total usage is zero."""


class DeletionRiskFlags(BaseModel):
    """Flags indicating potential reasons for deleting a model."""

    model_config = ConfigDict(use_attribute_docstrings=True)

    zero_usage_day: bool = False
    """Model has no usage in the past day."""
    zero_usage_month: bool = False
    """Model has no usage in the past month."""
    zero_usage_total: bool = False
    """Model has no usage in total (all time)."""
    no_active_workers: bool = False
    """Model has zero active workers."""
    has_multiple_hosts: bool = False
    """Model downloads are distributed across multiple file hosts."""
    has_non_preferred_host: bool = False
    """Model is hosted on non-preferred file hosts."""
    has_unknown_host: bool = False
    """Model has download URLs with unknown or unparseable hosts."""
    no_download_urls: bool = False
    """Model has no download URLs, an empty download list, or invalid URLs."""
    missing_description: bool = False
    """Model lacks a description."""
    missing_baseline: bool = False
    """Model lacks baseline information."""
    low_usage: bool = False
    """Model has very low usage relative to its category."""

    def set_flags(self) -> list[str]:
        """Return the names of the flags that are set, in declaration order."""
        return [name for name in type(self).model_fields if getattr(self, name)]

    def any_flags(self) -> bool:
        return bool(self.set_flags())

    def flag_count(self) -> int:
        return len(self.set_flags())


class ModelAuditInfo(BaseModel):
    """Audit information the service computed for one model (or one service-side group)."""

    model_config = ConfigDict(use_attribute_docstrings=True)

    name: str
    """The model name."""
    category: str
    """The category this model belongs to."""

    deletion_risk_flags: DeletionRiskFlags = Field(default_factory=DeletionRiskFlags)
    """Flags indicating potential deletion risks."""
    at_risk: bool = False
    """True if the model has any deletion risk flags."""
    risk_score: int = Field(ge=0, default=0)
    """Total number of deletion risk flags."""

    worker_count: int = Field(ge=0, default=0)
    usage_hour: int | None = None
    usage_day: int = Field(ge=0, default=0)
    usage_month: int = Field(ge=0, default=0)
    usage_total: int = Field(ge=0, default=0)
    usage_percentage_of_category: float = Field(ge=0.0, default=0.0)
    """Percentage of the category's total monthly usage."""
    usage_trend: UsageTrend = Field(default_factory=UsageTrend)

    cost_benefit_score: float | None = None
    """Monthly usage per GB of model size. Only set for models with size info."""
    size_gb: float | None = None
    baseline: str | None = None
    nsfw: bool | None = None
    has_description: bool = False
    download_count: int = Field(ge=0, default=0)
    download_hosts: list[str] = Field(default_factory=list)

    is_critical: bool | None = None
    """Supplied by the service. Derived from the flags when absent."""
    has_warning: bool | None = None
    """Supplied by the service. Derived from the flags when absent."""

    @model_validator(mode="after")
    def derive_status_when_missing(self) -> ModelAuditInfo:
        """Fill `is_critical`/`has_warning` from the flags if the service did not send them."""
        flags = self.deletion_risk_flags
        if self.is_critical is None:
            self.is_critical = flags.zero_usage_month and flags.no_active_workers
        if self.has_warning is None:
            self.has_warning = (
                flags.has_multiple_hosts
                or flags.has_non_preferred_host
                or flags.has_unknown_host
                or flags.no_download_urls
            )
        return self

    @property
    def flag_count(self) -> int:
        return self.deletion_risk_flags.flag_count()


class CategoryAuditSummary(BaseModel):
    """Aggregate audit figures of a category."""

    model_config = ConfigDict(use_attribute_docstrings=True)

    total_models: int = Field(ge=0, default=0)
    models_at_risk: int = Field(ge=0, default=0)
    models_critical: int = Field(ge=0, default=0)
    models_with_warnings: int = Field(ge=0, default=0)
    models_with_zero_day_usage: int = Field(ge=0, default=0)
    models_with_zero_month_usage: int = Field(ge=0, default=0)
    models_with_zero_total_usage: int = Field(ge=0, default=0)
    models_with_no_active_workers: int = Field(ge=0, default=0)
    models_with_no_downloads: int = Field(ge=0, default=0)
    models_with_non_preferred_hosts: int = Field(ge=0, default=0)
    models_with_multiple_hosts: int = Field(ge=0, default=0)
    models_with_low_usage: int = Field(ge=0, default=0)
    average_risk_score: float = Field(ge=0.0, default=0.0)
    category_total_month_usage: int = Field(ge=0, default=0)


class CategoryAuditResponse(BaseModel):
    """Complete audit response for a category."""

    model_config = ConfigDict(use_attribute_docstrings=True)

    category: str
    category_total_month_usage: int = Field(ge=0, default=0)
    """Total monthly usage of the whole category, used as the denominator of usage percentages."""
    total_count: int = Field(ge=0, default=0)
    returned_count: int = Field(ge=0, default=0)
    offset: int = Field(ge=0, default=0)
    limit: int | None = None
    models: list[ModelAuditInfo] = Field(default_factory=list)
    summary: CategoryAuditSummary = Field(default_factory=CategoryAuditSummary)

    def index_by_name(self) -> dict[str, ModelAuditInfo]:
        """Return the audit entries keyed by model name."""
        return {model.name: model for model in self.models}
