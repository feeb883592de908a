"""
Domain models for citrus farm records.

These models represent the current (plot-based) shape of a farm record and
should be independent of any infrastructure concerns (databases, HTTP
clients, spreadsheets). They serialize to the camelCase JSON used by backups
and the HTTP API.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CoveringType(str, Enum):
    """Soil covering materials."""
    HYBRIX = "하이브릭스"
    DOLCOM_BRIX = "돌콤브릭스"
    TRUSS = "트러스"
    TYVEK = "타이벡"


class ConsultationCategory(str, Enum):
    """Kinds of consultation log entries."""
    CONSULTATION = "상담"
    PRUNING = "전정"
    PESTICIDE_FERTILIZER = "농약/비료"
    IRRIGATION = "관수"
    MULCHING = "멀칭"
    HARVEST = "수확"
    ETC = "기타"


class PredefinedProjectName(str, Enum):
    """Support program names offered for selection. ETC stands for "other"."""
    VARIETY_RENEWAL = "품종갱신"
    TREE_TRANSPLANT = "성목이식"
    SOIL_COVERING = "토양피목"
    PROVINCIAL_DATA = "도청데이터사업"
    MAFRA_DATA = "농림부데이터확산사업"
    UNIVERSITY_LINK = "대학연계사업"
    ETC = "기타"


class RecordModel(BaseModel):
    """Base for record models: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FacilityInfo(RecordModel):
    """Orchard facilities of a plot."""
    slope: str = ""
    planting_distance: str = ""
    has_covering: bool = False
    covering_type: Union[CoveringType, Literal[""]] = ""
    has_power: bool = False
    has_internet: bool = False
    has_umbrella_system: bool = False
    has_drip_hose: bool = False
    has_sprinkler: bool = False
    has_windbreak: bool = False
    has_opener: bool = False


class ServiceInfo(RecordModel):
    """External service credentials and subscriptions."""
    jacheongbi_id: str = ""
    jacheongbi_pw: str = ""
    use_sugar_service: bool = False
    sugar_meter_info: Optional[str] = None
    use_sensor_service: bool = False
    sensor_info: Optional[str] = None

    @model_validator(mode="after")
    def _drop_unused_details(self) -> "ServiceInfo":
        # Detail strings only exist for services in use
        if not self.use_sugar_service:
            self.sugar_meter_info = None
        if not self.use_sensor_service:
            self.sensor_info = None
        return self


class SupportProgram(RecordModel):
    """Participation in a subsidy or support project."""
    id: str
    year: int = 0
    project_name: str = ""
    project_description: str = ""
    local_govt_fund: int = Field(default=0, ge=0)
    self_fund: int = Field(default=0, ge=0)
    is_selected: bool = False

    @property
    def is_predefined(self) -> bool:
        return self.project_name in PREDEFINED_PROJECT_NAMES


class AnnualData(RecordModel):
    """One year of quality and yield figures."""
    id: str
    year: int = 0
    avg_brix: float = 0.0
    has_alternate_bearing: bool = False
    estimated_yield: int = 0
    price_per_gwan: int = 0
    shipping_season: str = ""
    notes: str = ""


class ConsultationLog(RecordModel):
    """A dated entry in a plot's consultation history."""
    id: str
    date: str = ""
    category: Union[ConsultationCategory, Literal[""]] = ""
    content: str = ""
    notes: str = ""


@dataclass(frozen=True)
class ContractTerms:
    """Contract fields that only exist once a corporate deal is signed."""
    contract_date: Optional[str]
    down_payment: int
    balance_due_date: Optional[str]
    balance_payment: int
    mulching_work_date: Optional[str]


@dataclass(frozen=True)
class Uncontracted:
    pass


@dataclass(frozen=True)
class Contracted:
    terms: ContractTerms


ContractStatus = Union[Uncontracted, Contracted]


class CorporateFarmDetails(RecordModel):
    """Commercial contract details of a corporate plot."""
    year: int = 0
    consultation_date: str = ""
    estimated_quantity: int = 0
    contracted_quantity: int = 0
    is_contracted: bool = False
    special_notes: str = ""
    contract_date: Optional[str] = None
    down_payment: Optional[int] = None
    balance_due_date: Optional[str] = None
    balance_payment: Optional[int] = None
    mulching_work_date: Optional[str] = None

    @model_validator(mode="after")
    def _drop_contract_fields(self) -> "CorporateFarmDetails":
        if not self.is_contracted:
            self.contract_date = None
            self.down_payment = None
            self.balance_due_date = None
            self.balance_payment = None
            self.mulching_work_date = None
        return self

    @property
    def contract_status(self) -> ContractStatus:
        if not self.is_contracted:
            return Uncontracted()
        return Contracted(ContractTerms(
            contract_date=self.contract_date,
            down_payment=self.down_payment or 0,
            balance_due_date=self.balance_due_date,
            balance_payment=self.balance_payment or 0,
            mulching_work_date=self.mulching_work_date,
        ))


@dataclass(frozen=True)
class NotCorporate:
    pass


@dataclass(frozen=True)
class Corporate:
    details: CorporateFarmDetails


CorporateStatus = Union[NotCorporate, Corporate]


class Plot(RecordModel):
    """A parcel of land owned by exactly one farm."""
    id: str
    address: str = ""
    area_pyeong: float = Field(default=0, ge=0, description="Area in pyeong")
    cultivar: str = ""
    tree_count: int = Field(default=0, ge=0)
    is_corporate: bool = False
    facility_info: FacilityInfo = Field(default_factory=FacilityInfo)
    service_info: ServiceInfo = Field(default_factory=ServiceInfo)
    annual_data: List[AnnualData] = Field(default_factory=list)
    consultation_logs: List[ConsultationLog] = Field(default_factory=list)
    support_programs: List[SupportProgram] = Field(default_factory=list)
    corporate_farm_details: Optional[CorporateFarmDetails] = None

    @model_validator(mode="after")
    def _align_corporate_details(self) -> "Plot":
        # Details exist if and only if the plot is corporate
        if not self.is_corporate:
            self.corporate_farm_details = None
        elif self.corporate_farm_details is None:
            self.corporate_farm_details = CorporateFarmDetails()
        return self

    @property
    def corporate_status(self) -> CorporateStatus:
        if self.is_corporate and self.corporate_farm_details is not None:
            return Corporate(self.corporate_farm_details)
        return NotCorporate()


class Farm(RecordModel):
    """Top-level grower account owning one or more plots."""
    id: str
    name: str = ""
    contact: str = ""
    plots: List[Plot] = Field(default_factory=list)

    @property
    def total_area(self) -> float:
        return sum(plot.area_pyeong for plot in self.plots)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape."""
        return self.model_dump(mode="json", by_alias=True)


PREDEFINED_PROJECT_NAMES = frozenset(name.value for name in PredefinedProjectName)


def dump_farms(farms: List[Farm]) -> list[dict[str, Any]]:
    """Serialize farms to a JSON-ready list."""
    return [farm.to_record() for farm in farms]
