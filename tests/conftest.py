"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Raw farm records in each stored shape
- Current-shape sample farms
- Fresh in-memory repositories
- FastAPI test client
"""
import pytest
from fastapi.testclient import TestClient

from citrus_farms.config import Settings
from citrus_farms.domain.models import (
    AnnualData,
    ConsultationLog,
    CorporateFarmDetails,
    Farm,
    Plot,
    ServiceInfo,
    SupportProgram,
)
from citrus_farms.infrastructure.memory_store import FarmStore, InMemoryFarmRepository
from citrus_farms.main import create_app
from citrus_farms.services.application.farm_service import FarmService


# ============================================================
# Raw Record Fixtures
# ============================================================

@pytest.fixture
def legacy_record() -> dict:
    """Oldest shape: basicInfo wrapper, no plots."""
    return {
        "id": "farm-legacy",
        "basicInfo": {
            "name": "A",
            "contact": "010-1111-2222",
            "address": "addr",
            "areaPyeong": 10,
            "cultivar": "Setoka",
            "treeCount": 120,
        },
        "facilityInfo": {"slope": "gentle", "hasPower": True, "coveringType": "TYVEK"},
        "serviceInfo": {"jacheongbiId": "farmer-a", "useSugarService": True, "sugarMeterInfo": "meter-1"},
        "supportPrograms": [
            {"id": "sp-a1", "year": 2020, "projectName": "품종갱신", "localGovtFund": 1000, "selfFund": 500},
        ],
        "annualData": [
            {"id": "ad-a1", "year": 2023, "avgBrix": 12.5, "hasAlternateBearing": True, "estimatedYield": 300},
        ],
    }


@pytest.fixture
def legacy_corporate_record() -> dict:
    """basicInfo shape with a corporate flag and nested consultation logs."""
    return {
        "id": "farm-legacy-corp",
        "basicInfo": {
            "name": "B",
            "contact": "010-3333-4444",
            "address": "b-addr",
            "areaPyeong": "2,500",
            "isCorporate": True,
        },
        "isCorporate": True,
        "corporateFarmDetails": {
            "year": 2024,
            "estimatedQuantity": 800,
            "isContracted": True,
            "contractDate": "2024-03-01",
            "downPayment": 100000,
            "consultationLogs": [
                {"id": "log-b1", "date": "2024-02-01", "category": "PRUNING", "content": "winter pruning"},
            ],
        },
    }


@pytest.fixture
def farm_level_record() -> dict:
    """Plot-era farm still carrying farm-level fields."""
    return {
        "id": "farm-partial",
        "name": "C",
        "contact": "064-555-6666",
        "plots": [
            {
                "id": "plot-c1",
                "address": "c-addr",
                "supportPrograms": [{"id": "sp-c1", "year": 2019, "projectName": "성목이식"}],
            },
        ],
        "isCorporate": True,
        "supportPrograms": [{"id": "sp-farm", "year": 2021, "projectName": "마을공동사업"}],
        "serviceInfo": {"useSensorService": True, "sensorInfo": "soil sensor"},
    }


# ============================================================
# Sample Farm Fixtures
# ============================================================

@pytest.fixture
def sun_farm() -> Farm:
    """Non-corporate farm without support programs."""
    return Farm(
        id="farm-sun",
        name="Sun Farm",
        contact="010-1234-5678",
        plots=[
            Plot(
                id="plot-sun-1",
                address="Seogwipo 1",
                area_pyeong=1200,
                cultivar="Hallabong",
                tree_count=300,
                annual_data=[
                    AnnualData(id="ad-sun-2023", year=2023, avg_brix=13.1, has_alternate_bearing=False),
                ],
            ),
        ],
    )


@pytest.fixture
def moon_farm() -> Farm:
    """Corporate farm with a support program and alternate bearing in 2023."""
    return Farm(
        id="farm-moon",
        name="Moon Farm",
        contact="064-987-6543",
        plots=[
            Plot(
                id="plot-moon-1",
                address="Jeju 2",
                area_pyeong=800,
                cultivar="Cheonhyehyang",
                tree_count=200,
                is_corporate=True,
                service_info=ServiceInfo(use_sensor_service=True, sensor_info="sensor-7"),
                corporate_farm_details=CorporateFarmDetails(year=2023, estimated_quantity=500),
                support_programs=[
                    SupportProgram(id="sp-moon-1", year=2020, project_name="품종갱신", local_govt_fund=3000),
                ],
                annual_data=[
                    AnnualData(id="ad-moon-2023", year=2023, avg_brix=11.8, has_alternate_bearing=True),
                ],
                consultation_logs=[
                    ConsultationLog(id="log-moon-1", date="2023-05-01", category="전정", content="pruning"),
                ],
            ),
            Plot(id="plot-moon-2", address="Jeju 3", area_pyeong=200),
        ],
    )


@pytest.fixture
def sample_farms(sun_farm, moon_farm) -> list[Farm]:
    return [sun_farm, moon_farm]


# ============================================================
# Repository and Service Fixtures
# ============================================================

@pytest.fixture
def test_settings() -> Settings:
    """Settings for an isolated in-memory app without rate limiting."""
    return Settings(
        storage_backend="memory",
        rate_limit_enabled=False,
        default_page_size=10,
        max_page_size=50,
    )


@pytest.fixture
def repository() -> InMemoryFarmRepository:
    """Fresh in-memory repository per test."""
    return InMemoryFarmRepository(FarmStore())


@pytest.fixture
def farm_service(repository, test_settings) -> FarmService:
    return FarmService(repository=repository, config=test_settings)


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client(test_settings, repository) -> TestClient:
    """Create a synchronous test client for an app with a fresh repository."""
    app = create_app(test_settings, repository=repository)
    return TestClient(app)
