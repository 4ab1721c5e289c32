"""Wire types of the service's statistics endpoints.

`GET /model_references/statistics/{category}` returns `CategoryStatistics` and
`GET /model_references/statistics/{category}/with-stats` returns a mapping of model name to
`BackendCombinedModelStatistics`.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ModelUsageStats(BaseModel):
    """Usage counts of a model."""

    day: int = Field(default=0, description="Usage count for the past day")
    month: int = Field(default=0, description="Usage count for the past month")
    total: int = Field(default=0, description="All-time usage count")


class WorkerSummary(BaseModel):
    """Summary of a worker serving a model."""

    id: str = Field(description="Worker ID (UUID)")
    name: str = Field(description="Worker name")
    performance: str = Field(default="", description="Performance metric as a string")
    online: bool = Field(default=False, description="Whether worker is currently online")
    trusted: bool = Field(default=False, description="Whether worker is trusted")
    uptime: int = Field(default=0, description="Total uptime in seconds")


class BackendVariation(BaseModel):
    """Statistics of one backend (e.g. aphrodite, koboldcpp) serving a text model."""

    backend: str = Field(description="Backend name, or 'canonical' for names without a backend prefix")
    variant_name: str = Field(description="Model name as reported by the Horde")
    worker_count: int | None = None
    performance: float | None = None
    queued: int | None = None
    queued_jobs: int | None = None
    eta: int | None = None
    usage_day: int | None = None
    usage_month: int | None = None
    usage_total: int | None = None


class BackendCombinedModelStatistics(BaseModel):
    """Runtime statistics of a model as pre-aggregated by the service."""

    worker_count: int | None = None
    queued_jobs: int | None = None
    performance: float | None = None
    eta: int | None = None
    queued: int | None = None
    usage_stats: ModelUsageStats | None = None
    worker_summaries: dict[str, WorkerSummary] | None = None
    backend_variations: dict[str, BackendVariation] | None = None


class BaselineStats(BaseModel):
    """Count of models sharing a baseline."""

    baseline: str
    count: int = Field(ge=0)
    percentage: float = Field(ge=0.0, le=100.0)


class TagStats(BaseModel):
    """Count of models sharing a tag or style."""

    tag: str
    count: int = Field(ge=0)
    percentage: float = Field(ge=0.0, le=100.0)


class DownloadStats(BaseModel):
    """Download and disk size figures of a category."""

    total_models_with_downloads: int = Field(ge=0, default=0)
    total_download_entries: int = Field(ge=0, default=0)
    total_size_bytes: int = Field(ge=0, default=0)
    models_with_size_info: int = Field(ge=0, default=0)
    average_size_bytes: float = Field(ge=0.0, default=0.0)
    hosts: dict[str, int] = Field(default_factory=dict)


class ParameterBucketStats(BaseModel):
    """Count of text models within a parameter count range."""

    bucket_label: str
    min_params: int | None = None
    max_params: int | None = None
    count: int = Field(ge=0)
    percentage: float = Field(ge=0.0, le=100.0)


class CategoryStatistics(BaseModel):
    """Aggregate statistics of a category."""

    model_config = ConfigDict(use_attribute_docstrings=True)

    category: str
    total_models: int = Field(ge=0)
    returned_models: int = Field(ge=0, default=0)
    offset: int = Field(ge=0, default=0)
    limit: int | None = None
    nsfw_count: int = Field(ge=0, default=0)
    baseline_distribution: dict[str, BaselineStats] = Field(default_factory=dict)
    download_stats: DownloadStats | None = None
    top_tags: list[TagStats] = Field(default_factory=list)
    top_styles: list[TagStats] = Field(default_factory=list)
    parameter_buckets: list[ParameterBucketStats] = Field(default_factory=list)
    models_without_param_info: int = Field(ge=0, default=0)
    models_with_trigger_words: int = Field(ge=0, default=0)
    models_with_inpainting: int = Field(ge=0, default=0)
    models_with_requirements: int = Field(ge=0, default=0)
    models_with_showcases: int = Field(ge=0, default=0)
    computed_at: int | None = None
    """Unix timestamp of when the service computed the statistics."""
