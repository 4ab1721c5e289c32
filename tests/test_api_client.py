"""Tests for the REST client, served by pytest-httpx."""

from __future__ import annotations

import json

import httpx
import pytest
from pytest_httpx import HTTPXMock

from horde_model_reference_console.analytics.filter_presets import AuditFilterPreset
from horde_model_reference_console.api_client import ModelReferenceAPIClient, describe_error
from horde_model_reference_console.exceptions import BackendNotWritableError, ModelReferenceAPIError
from horde_model_reference_console.meta_consts import BACKEND_REPLICATE_MODE
from horde_model_reference_console.model_reference_records import (
    LegacyStableDiffusionRecord,
    LegacyTextGenerationRecord,
)
from tests.helpers import (
    STATISTICS_URL,
    TEST_API_URL,
    V1_URL,
    audit_payload,
    image_record_data,
    make_audit_info,
    make_audit_response,
    text_record_data,
)


class TestDescribeError:
    """Tests for mapping failed responses to messages."""

    @pytest.mark.parametrize(
        ("status_code", "expected"),
        [
            (400, "Bad Request: Invalid request format"),
            (404, "Not Found: Resource not found"),
            (409, "Conflict: Resource already exists"),
            (422, "Validation Error: Invalid data"),
            (503, "Service Unavailable: Backend does not support this operation"),
            (500, "Error 500: Internal Server Error"),
        ],
    )
    def test_fallback_messages(self, status_code: int, expected: str) -> None:
        assert describe_error(status_code, None, "Internal Server Error") == expected

    def test_detail_wins(self) -> None:
        assert describe_error(409, "Model 'x' already exists", "Conflict") == "Conflict: Model 'x' already exists"


class TestCapabilities:
    """Tests for replicate mode detection."""

    def test_primary_is_writable(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{TEST_API_URL}/replicate_mode", json="PRIMARY")

        capabilities = api_client.detect_backend_capabilities()

        assert capabilities.writable
        assert capabilities.mode == BACKEND_REPLICATE_MODE.PRIMARY
        assert capabilities.canonical_format == "legacy"

    def test_replica_is_read_only(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{TEST_API_URL}/replicate_mode", json="REPLICA")

        capabilities = api_client.detect_backend_capabilities()

        assert not capabilities.writable
        assert capabilities.mode == BACKEND_REPLICATE_MODE.REPLICA

    def test_failure_is_unknown(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"), url=f"{TEST_API_URL}/replicate_mode")

        capabilities = api_client.detect_backend_capabilities()

        assert not capabilities.writable
        assert capabilities.mode == BACKEND_REPLICATE_MODE.UNKNOWN
        assert capabilities.canonical_format == "UNKNOWN"


class TestListing:
    """Tests for category and record listing."""

    def test_categories(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{V1_URL}/model_categories", json=["image_generation", "text_generation"])

        assert api_client.get_categories() == ["image_generation", "text_generation"]

    def test_text_listing_requests_groups(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{V1_URL}/text_generation?include_group=true",
            json={"Llama-3-8B": text_record_data("Llama-3-8B", text_model_group="Llama-3")},
        )

        records = api_client.get_legacy_models_as_list("text_generation")

        assert len(records) == 1
        assert isinstance(records[0], LegacyTextGenerationRecord)
        assert records[0].text_model_group == "Llama-3"

    def test_names_come_from_keys(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        data = image_record_data("ignored")
        del data["name"]
        httpx_mock.add_response(url=f"{V1_URL}/image_generation", json={"Deliberate": data})

        records = api_client.get_legacy_models_as_list("image_generation")

        assert isinstance(records[0], LegacyStableDiffusionRecord)
        assert records[0].name == "Deliberate"

    def test_unparseable_records_are_skipped(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{V1_URL}/image_generation",
            json={"broken": {"inpainting": False, "baseline": None}, "Deliberate": image_record_data("Deliberate")},
        )

        records = api_client.get_legacy_models_as_list("image_generation")

        assert [record.name for record in records] == ["Deliberate"]

    def test_v2_listing_fills_names(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{TEST_API_URL}/model_references/v2/clip",
            json={"ViT-L-14": {"pretrained_name": "openai"}},
        )

        assert api_client.get_models_in_category("clip") == {
            "ViT-L-14": {"pretrained_name": "openai", "name": "ViT-L-14"},
        }

    def test_error_detail_is_reported(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{V1_URL}/image_generation",
            status_code=404,
            json={"detail": "Category image_generation not found"},
        )

        with pytest.raises(ModelReferenceAPIError) as excinfo:
            api_client.get_legacy_models_in_category("image_generation")

        assert excinfo.value.message == "Not Found: Category image_generation not found"
        assert excinfo.value.status_code == 404

    def test_validation_error_list_is_joined(
        self,
        api_client: ModelReferenceAPIClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        httpx_mock.add_response(
            url=f"{V1_URL}/image_generation",
            status_code=422,
            json={"detail": [{"msg": "field required"}, {"msg": "value is not a valid integer"}]},
        )

        with pytest.raises(ModelReferenceAPIError, match="Validation Error: field required; value is not"):
            api_client.get_legacy_models_in_category("image_generation")

    def test_transport_error(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

        with pytest.raises(ModelReferenceAPIError, match="^Error: Connection refused$"):
            api_client.get_categories()


class TestWrites:
    """Tests for create, update and delete."""

    def test_writes_require_detection(self, api_client: ModelReferenceAPIClient) -> None:
        with pytest.raises(BackendNotWritableError, match="REPLICA mode or wrong format"):
            api_client.create_legacy_model("image_generation", "Deliberate", image_record_data("Deliberate"))

        with pytest.raises(BackendNotWritableError):
            api_client.delete_model("image_generation", "Deliberate")

    def test_unsupported_category(self, writable_api_client: ModelReferenceAPIClient) -> None:
        with pytest.raises(ModelReferenceAPIError, match="Unsupported category: video_generation"):
            writable_api_client.update_legacy_model("video_generation", "model", {"name": "model"})

    def test_create_sends_api_key(self, writable_api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        record = LegacyStableDiffusionRecord.model_validate(image_record_data("Deliberate"))
        httpx_mock.add_response(
            method="POST",
            url=f"{V1_URL}/image_generation",
            match_headers={"apikey": "test-api-key"},
            match_json=record.to_payload(),
            status_code=201,
            json=image_record_data("Deliberate"),
        )

        created = writable_api_client.create_legacy_model("image_generation", "Deliberate", record)

        assert isinstance(created, LegacyStableDiffusionRecord)
        assert created.name == "Deliberate"

    def test_update_keeps_the_name(self, writable_api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            method="PUT",
            url=f"{V1_URL}/text_generation",
            json=text_record_data("Llama-3-8B"),
        )

        writable_api_client.update_legacy_model(
            "text_generation",
            "Llama-3-8B",
            text_record_data("Renamed"),
        )

        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["apikey"] == "test-api-key"
        assert json.loads(request.content)["name"] == "Llama-3-8B"

    def test_conflict(self, writable_api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(method="POST", url=f"{V1_URL}/image_generation", status_code=409)

        with pytest.raises(ModelReferenceAPIError, match="^Conflict: Resource already exists$"):
            writable_api_client.create_legacy_model("image_generation", "Deliberate", image_record_data("Deliberate"))

    def test_delete(self, writable_api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            method="DELETE",
            url=f"{V1_URL}/image_generation/Deliberate",
            match_headers={"apikey": "test-api-key"},
            status_code=204,
        )

        writable_api_client.delete_model("image_generation", "Deliberate")

        assert len(httpx_mock.get_requests()) == 1

    def test_delete_encodes_slashed_names(
        self,
        writable_api_client: ModelReferenceAPIClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        httpx_mock.add_response(method="DELETE", status_code=204)

        writable_api_client.delete_model("text_generation", "koboldcpp/Foo")

        request = httpx_mock.get_request(method="DELETE")
        assert request is not None
        assert request.url.raw_path == b"/api/model_references/v1/text_generation/koboldcpp%2FFoo"


class TestStatistics:
    """Tests for the statistics and audit endpoints."""

    def test_audit_with_preset(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        response = make_audit_response([make_audit_info("Deliberate")])
        httpx_mock.add_response(
            url=f"{STATISTICS_URL}/image_generation/audit?group_text_models=false&offset=0&preset=zero_usage",
            json=audit_payload(response),
        )

        audit = api_client.get_category_audit("image_generation", preset=AuditFilterPreset.ZERO_USAGE)

        assert audit is not None
        assert [model.name for model in audit.models] == ["Deliberate"]

    def test_grouped_text_audit(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        response = make_audit_response([], category="text_generation")
        httpx_mock.add_response(
            url=f"{STATISTICS_URL}/text_generation/audit?group_text_models=true&offset=0",
            json=audit_payload(response),
        )

        assert api_client.get_category_audit("text_generation", group_text_models=True) is not None

    def test_audit_failure_returns_none(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{STATISTICS_URL}/image_generation/audit?group_text_models=false&offset=0",
            status_code=500,
        )

        assert api_client.get_category_audit("image_generation") is None

    def test_malformed_audit_returns_none(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{STATISTICS_URL}/image_generation/audit?group_text_models=false&offset=0",
            json={"models": "not a list"},
        )

        assert api_client.get_category_audit("image_generation") is None

    def test_category_statistics(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=f"{STATISTICS_URL}/image_generation?group_text_models=false&offset=0",
            json={"category": "image_generation", "total_models": 12, "nsfw_count": 3},
        )

        statistics = api_client.get_category_statistics("image_generation")

        assert statistics is not None
        assert statistics.total_models == 12
        assert statistics.nsfw_count == 3

    def test_text_statistics_include_variations(
        self,
        api_client: ModelReferenceAPIClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        httpx_mock.add_response(
            url=f"{STATISTICS_URL}/text_generation/with-stats?include_backend_variations=true",
            json={
                "Llama-3-8B": {
                    "worker_count": 2,
                    "backend_variations": {
                        "koboldcpp": {"backend": "koboldcpp", "variant_name": "Llama-3-8B", "worker_count": 2},
                    },
                },
            },
        )

        stats = api_client.get_models_with_stats("text_generation")

        assert stats is not None
        assert stats["Llama-3-8B"].backend_variations is not None
        assert stats["Llama-3-8B"].backend_variations["koboldcpp"].worker_count == 2

    def test_image_statistics_with_min_workers(
        self,
        api_client: ModelReferenceAPIClient,
        httpx_mock: HTTPXMock,
    ) -> None:
        httpx_mock.add_response(url=f"{STATISTICS_URL}/image_generation/with-stats?min_worker_count=1", json={})

        assert api_client.get_models_with_stats("image_generation", min_worker_count=1) == {}

    def test_statistics_failure_returns_none(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("timed out"))

        assert api_client.get_models_with_stats("image_generation") is None

    def test_openapi_schema(self, api_client: ModelReferenceAPIClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{TEST_API_URL}/openapi.json", json={"openapi": "3.1.0"})

        assert api_client.get_openapi_schema() == {"openapi": "3.1.0"}
