"""
Integration tests for the FastAPI application.

Tests cover:
- Health endpoints
- Species parameter listing
- Parcel biomass analysis and export rows
- Credential, validation, rate limit and unexpected errors
- OpenAPI documentation
"""
import datetime as dt

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from forest_biomass.api.dependencies import get_acquisition_config, get_biomass_service
from forest_biomass.infrastructure.sentinel_hub_client import get_api_client
from forest_biomass.middleware.error_handler import ErrorHandlerMiddleware
from forest_biomass.services.application.acquisition import MissingGeometryError
from forest_biomass.services.domain.export import export_headers


AUTH_HEADERS = {"Authorization": "Bearer token-123"}


@pytest.fixture
def parcel_payload(square_coordinates):
    return {
        "coordinates": [list(c) for c in square_coordinates],
        "species": "pine",
        "base_age": 20,
    }


@pytest.fixture
def observed_year() -> int:
    """A year always inside the acquisition window."""
    return dt.date.today().year - 1


@pytest.fixture
def api_with_mock(test_client, mock_api_client, fast_config):
    """Test client whose Sentinel Hub client and pacing are overridden."""
    test_client.app.dependency_overrides[get_api_client] = lambda: mock_api_client
    test_client.app.dependency_overrides[get_acquisition_config] = lambda: fast_config
    return test_client


@pytest.fixture
def two_acquisitions(mock_api_client, uniform_tiff, observed_year):
    """Two acquisition dates in one year, each with a forested raster."""
    days = [dt.date(observed_year, 6, 20), dt.date(observed_year, 8, 5)]

    async def search(bbox, date_from, date_to, access_token, **kwargs):
        return days if date_from.year == observed_year else []

    mock_api_client.search_acquisition_dates.side_effect = search
    mock_api_client.fetch_index_raster.side_effect = [uniform_tiff(0.8), uniform_tiff(0.6)]
    return days


# ============================================================
# Health Check Tests
# ============================================================

class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# ============================================================
# Species Endpoint Tests
# ============================================================

class TestSpeciesEndpoint:
    """Tests for GET /api/v1/species."""

    def test_lists_species_table(self, test_client):
        response = test_client.get("/api/v1/species")

        assert response.status_code == 200
        entries = {e["species"]: e for e in response.json()["species"]}
        assert set(entries) == {"pine", "fir", "birch", "aspen"}
        assert entries["pine"]["max_biomass"] == 450
        assert entries["aspen"]["young_biomass"] == 12


# ============================================================
# Biomass Endpoint Tests
# ============================================================

class TestBiomassEndpoint:
    """Tests for POST /api/v1/parcels/biomass."""

    def test_successful_analysis(self, api_with_mock, parcel_payload, two_acquisitions):
        """A parcel with acquisitions yields a sorted, smoothed series."""
        response = api_with_mock.post(
            "/api/v1/parcels/biomass", json=parcel_payload, headers=AUTH_HEADERS
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "complete"
        assert data["species"] == "pine"
        assert 55 < data["parcel_area_hectares"] < 65
        assert [s["date"] for s in data["samples"]] == [d.isoformat() for d in two_acquisitions]
        assert all(s["biomass_rolling_avg"] is not None for s in data["samples"])
        assert data["skipped"] == []
        assert data["summary"]["observation_count"] == 2
        assert data["summary"]["average_coverage_percent"] == pytest.approx(100.0)

    def test_token_forwarded_upstream(self, api_with_mock, mock_api_client, parcel_payload):
        api_with_mock.post("/api/v1/parcels/biomass", json=parcel_payload, headers=AUTH_HEADERS)

        call = mock_api_client.search_acquisition_dates.await_args
        assert call.args[3] == "token-123"

    def test_no_acquisitions_is_no_data(self, api_with_mock, parcel_payload):
        """No data is a normal response, not an error."""
        response = api_with_mock.post(
            "/api/v1/parcels/biomass", json=parcel_payload, headers=AUTH_HEADERS
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "no_data"
        assert data["samples"] == []
        assert data["message"]

    def test_missing_credential(self, api_with_mock, mock_api_client, parcel_payload):
        response = api_with_mock.post("/api/v1/parcels/biomass", json=parcel_payload)

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"
        mock_api_client.search_acquisition_dates.assert_not_awaited()

    def test_unknown_species(self, api_with_mock, parcel_payload):
        parcel_payload["species"] = "oak"

        response = api_with_mock.post(
            "/api/v1/parcels/biomass", json=parcel_payload, headers=AUTH_HEADERS
        )

        assert response.status_code == 400
        assert "oak" in response.json()["detail"]

    def test_too_few_vertices(self, api_with_mock, parcel_payload):
        parcel_payload["coordinates"] = parcel_payload["coordinates"][:2]

        response = api_with_mock.post(
            "/api/v1/parcels/biomass", json=parcel_payload, headers=AUTH_HEADERS
        )

        assert response.status_code == 422

    def test_negative_base_age(self, api_with_mock, parcel_payload):
        parcel_payload["base_age"] = -1

        response = api_with_mock.post(
            "/api/v1/parcels/biomass", json=parcel_payload, headers=AUTH_HEADERS
        )

        assert response.status_code == 422

    def test_rate_limit(self, api_with_mock, parcel_payload):
        """Requests beyond the per-minute limit are rejected."""
        from forest_biomass.config import settings

        statuses = [
            api_with_mock.post(
                "/api/v1/parcels/biomass", json=parcel_payload, headers=AUTH_HEADERS
            ).status_code
            for _ in range(settings.rate_limit_requests + 1)
        ]

        assert statuses[:-1] == [200] * settings.rate_limit_requests
        assert statuses[-1] == 429


# ============================================================
# Export Rows Endpoint Tests
# ============================================================

class TestExportRowsEndpoint:
    """Tests for POST /api/v1/parcels/biomass/rows."""

    def test_rows(self, api_with_mock, parcel_payload, two_acquisitions):
        response = api_with_mock.post(
            "/api/v1/parcels/biomass/rows", json=parcel_payload, headers=AUTH_HEADERS
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "complete"
        assert data["columns"] == export_headers()
        assert len(data["rows"]) == 2
        assert data["rows"][0]["Date"] == two_acquisitions[0].isoformat()
        assert data["rows"][0]["Is Forested"] == "Yes"
        assert data["rows"][0]["Species"] == "pine"

    def test_no_data_has_empty_rows(self, api_with_mock, parcel_payload):
        response = api_with_mock.post(
            "/api/v1/parcels/biomass/rows", json=parcel_payload, headers=AUTH_HEADERS
        )

        assert response.status_code == 200
        assert response.json() == {
            "status": "no_data",
            "columns": export_headers(),
            "rows": [],
        }


# ============================================================
# Error Handling Tests
# ============================================================

class FailingBiomassService:
    """Service stand-in whose analysis raises the given exception."""

    def __init__(self, error: Exception):
        self.error = error

    async def analyze_parcel(self, **kwargs):
        raise self.error


def raising_app(error: Exception, debug: bool) -> TestClient:
    """Minimal app with the error middleware and a route that raises."""
    app = FastAPI()
    app.add_middleware(ErrorHandlerMiddleware, debug=debug)

    @app.get("/boom")
    async def boom():
        raise error

    return TestClient(app)


class TestErrorHandling:
    """Tests for ErrorHandlerMiddleware mappings."""

    def test_missing_geometry_is_400(self, test_client, parcel_payload):
        test_client.app.dependency_overrides[get_biomass_service] = (
            lambda: FailingBiomassService(MissingGeometryError("Draw at least one parcel polygon"))
        )

        response = test_client.post(
            "/api/v1/parcels/biomass", json=parcel_payload, headers=AUTH_HEADERS
        )

        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid analysis request",
            "detail": "Draw at least one parcel polygon",
        }

    def test_unexpected_error_is_500(self, test_client, parcel_payload):
        """Unhandled failures return a generic body without internals."""
        test_client.app.dependency_overrides[get_biomass_service] = (
            lambda: FailingBiomassService(RuntimeError("state corrupted"))
        )

        response = test_client.post(
            "/api/v1/parcels/biomass/rows", json=parcel_payload, headers=AUTH_HEADERS
        )

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Internal server error"
        assert "state corrupted" not in body["detail"]

    def test_value_error_is_400(self):
        response = raising_app(ValueError("bad window"), debug=False).get("/boom")

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request", "detail": "bad window"}

    def test_debug_mode_includes_exception(self):
        response = raising_app(RuntimeError("state corrupted"), debug=True).get("/boom")

        assert response.status_code == 500
        assert response.json()["detail"] == "RuntimeError: state corrupted"

    def test_app_uses_configured_debug(self, test_client):
        from forest_biomass.config import settings

        assert test_client.app.debug == settings.debug


# ============================================================
# OpenAPI Documentation Tests
# ============================================================

class TestOpenAPIDocumentation:
    """Tests for OpenAPI schema and documentation."""

    def test_openapi_schema_available(self, test_client):
        response = test_client.get("/openapi.json")

        assert response.status_code == 200
        schema = response.json()
        assert "/api/v1/parcels/biomass" in schema["paths"]
        assert "/api/v1/parcels/biomass/rows" in schema["paths"]
        assert "/api/v1/species" in schema["paths"]

    def test_analysis_error_responses_documented(self, test_client):
        schema = test_client.get("/openapi.json").json()

        responses = schema["paths"]["/api/v1/parcels/biomass"]["post"]["responses"]
        for code in ("200", "400", "401", "422", "429"):
            assert code in responses

    def test_docs_endpoints(self, test_client):
        assert test_client.get("/docs").status_code == 200
        assert test_client.get("/redoc").status_code == 200


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
