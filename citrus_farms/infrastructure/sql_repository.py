"""
Infrastructure layer: Relational farm repository using SQLAlchemy.

One session per gateway call. Writes run in a single transaction: a farm and
its whole child set are replaced together, and a failed write rolls back
completely.
"""
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from citrus_farms.domain.errors import (
    DuplicateFarmError,
    FarmNotFoundError,
    FarmRecordsError,
    StorageError,
)
from citrus_farms.domain.models import (
    AnnualData,
    ConsultationLog,
    CorporateFarmDetails,
    FacilityInfo,
    Farm,
    Plot,
    ServiceInfo,
    SupportProgram,
)
from citrus_farms.infrastructure.database import (
    CHILD_TABLES,
    AnnualDataRow,
    ConsultationLogRow,
    FarmRow,
    PlotRow,
    SupportProgramRow,
    create_db_engine,
    create_session_factory,
    init_db,
)
from citrus_farms.infrastructure.repository import (
    FarmPage,
    FarmRepository,
    validate_page_size,
    count_pages,
)

logger = logging.getLogger(__name__)

_FARM_LOAD_OPTIONS = (
    selectinload(FarmRow.plots).selectinload(PlotRow.support_programs),
    selectinload(FarmRow.plots).selectinload(PlotRow.annual_data),
    selectinload(FarmRow.plots).selectinload(PlotRow.consultation_logs),
)


class SqlFarmRepository(FarmRepository):
    """Farm repository backed by a relational database."""

    def __init__(self, engine: Engine):
        """
        Initialize the repository.

        Args:
            engine: Engine whose schema has been created with init_db
        """
        self.engine = engine
        self.session_factory = create_session_factory(engine)

    @classmethod
    def from_url(cls, database_url: str) -> "SqlFarmRepository":
        """Create the engine, ensure tables exist, and wrap it."""
        engine = create_db_engine(database_url)
        init_db(engine)
        logger.info(f"Connected to database backend ({engine.dialect.name})")
        return cls(engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Yield a session, committing on success and rolling back on any error."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except FarmRecordsError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error, transaction rolled back: {e}")
            raise StorageError(f"Database operation failed: {e.__class__.__name__}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def load_all(
        self,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> FarmPage:
        with self._session() as session:
            stmt = select(FarmRow).options(*_FARM_LOAD_OPTIONS).order_by(FarmRow.name, FarmRow.id)
            if page is None:
                rows = session.scalars(stmt).all()
                return FarmPage(
                    farms=[row_to_farm(row) for row in rows],
                    total_pages=1 if rows else 0,
                )

            size = validate_page_size(page_size)
            total = session.scalar(select(func.count()).select_from(FarmRow))
            if not total:
                return FarmPage(farms=[], total_pages=0)
            offset = (max(page, 1) - 1) * size
            rows = session.scalars(stmt.limit(size).offset(offset)).all()
            return FarmPage(
                farms=[row_to_farm(row) for row in rows],
                total_pages=count_pages(total, size),
            )

    def get(self, farm_id: str) -> Farm:
        with self._session() as session:
            row = session.get(FarmRow, farm_id, options=_FARM_LOAD_OPTIONS)
            if row is None:
                raise FarmNotFoundError(farm_id)
            return row_to_farm(row)

    def save(self, farm: Farm) -> Farm:
        with self._session() as session:
            # Whole child set is replaced; no diffing against stored rows
            _delete_farm_rows(session, farm.id)
            session.add(farm_to_row(farm))
        logger.debug(f"Saved farm {farm.id} with {len(farm.plots)} plots")
        return farm

    def insert(self, farm: Farm) -> Farm:
        with self._session() as session:
            if session.get(FarmRow, farm.id) is not None:
                raise DuplicateFarmError(farm.id)
            session.add(farm_to_row(farm))
        return farm

    def delete(self, farm_id: str) -> None:
        with self._session() as session:
            _delete_farm_rows(session, farm_id)
        logger.debug(f"Deleted farm {farm_id}")

    def replace_all(self, farms: list[Farm]) -> None:
        with self._session() as session:
            for model in CHILD_TABLES + (PlotRow, FarmRow):
                session.execute(delete(model).execution_options(synchronize_session=False))
            session.add_all([farm_to_row(farm) for farm in farms])
            session.flush()
        logger.info(f"Replaced all farms with {len(farms)} records")

    def close(self) -> None:
        self.engine.dispose()


def _delete_farm_rows(session: Session, farm_id: str) -> None:
    """Delete a farm child-first, so it works with or without FK cascades."""
    plot_pks = select(PlotRow.pk).where(PlotRow.farm_id == farm_id)
    for model in CHILD_TABLES:
        session.execute(
            delete(model)
            .where(model.plot_pk.in_(plot_pks))
            .execution_options(synchronize_session=False)
        )
    session.execute(
        delete(PlotRow).where(PlotRow.farm_id == farm_id).execution_options(synchronize_session=False)
    )
    session.execute(
        delete(FarmRow).where(FarmRow.id == farm_id).execution_options(synchronize_session=False)
    )


# ============================================================
# Row <-> domain conversion
# ============================================================

def _stored(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def farm_to_row(farm: Farm) -> FarmRow:
    return FarmRow(
        id=farm.id,
        name=farm.name,
        contact=farm.contact,
        plots=[_plot_to_row(plot, position) for position, plot in enumerate(farm.plots)],
    )


def _plot_to_row(plot: Plot, position: int) -> PlotRow:
    facility = plot.facility_info
    service = plot.service_info
    row = PlotRow(
        id=plot.id,
        position=position,
        address=plot.address,
        area_pyeong=plot.area_pyeong,
        cultivar=plot.cultivar,
        tree_count=plot.tree_count,
        is_corporate=plot.is_corporate,
        slope=facility.slope,
        planting_distance=facility.planting_distance,
        has_covering=facility.has_covering,
        covering_type=_stored(facility.covering_type),
        has_power=facility.has_power,
        has_internet=facility.has_internet,
        has_umbrella_system=facility.has_umbrella_system,
        has_drip_hose=facility.has_drip_hose,
        has_sprinkler=facility.has_sprinkler,
        has_windbreak=facility.has_windbreak,
        has_opener=facility.has_opener,
        jacheongbi_id=service.jacheongbi_id,
        jacheongbi_pw=service.jacheongbi_pw,
        use_sugar_service=service.use_sugar_service,
        sugar_meter_info=service.sugar_meter_info,
        use_sensor_service=service.use_sensor_service,
        sensor_info=service.sensor_info,
        support_programs=[
            SupportProgramRow(
                id=program.id,
                position=index,
                year=program.year,
                project_name=program.project_name,
                project_description=program.project_description,
                local_govt_fund=program.local_govt_fund,
                self_fund=program.self_fund,
                is_selected=program.is_selected,
            )
            for index, program in enumerate(plot.support_programs)
        ],
        annual_data=[
            AnnualDataRow(
                id=data.id,
                position=index,
                year=data.year,
                avg_brix=data.avg_brix,
                has_alternate_bearing=data.has_alternate_bearing,
                estimated_yield=data.estimated_yield,
                price_per_gwan=data.price_per_gwan,
                shipping_season=data.shipping_season,
                notes=data.notes,
            )
            for index, data in enumerate(plot.annual_data)
        ],
        consultation_logs=[
            ConsultationLogRow(
                id=log.id,
                position=index,
                date=log.date,
                category=_stored(log.category),
                content=log.content,
                notes=log.notes,
            )
            for index, log in enumerate(plot.consultation_logs)
        ],
    )

    details = plot.corporate_farm_details
    if plot.is_corporate and details is not None:
        row.corporate_year = details.year
        row.consultation_date = details.consultation_date
        row.estimated_quantity = details.estimated_quantity
        row.contracted_quantity = details.contracted_quantity
        row.is_contracted = details.is_contracted
        row.special_notes = details.special_notes
        row.contract_date = details.contract_date
        row.down_payment = details.down_payment
        row.balance_due_date = details.balance_due_date
        row.balance_payment = details.balance_payment
        row.mulching_work_date = details.mulching_work_date
    return row


def row_to_farm(row: FarmRow) -> Farm:
    return Farm(
        id=row.id,
        name=row.name,
        contact=row.contact,
        plots=[_row_to_plot(plot_row) for plot_row in row.plots],
    )


def _row_to_plot(row: PlotRow) -> Plot:
    details = None
    if row.is_corporate:
        details = CorporateFarmDetails(
            year=row.corporate_year or 0,
            consultation_date=row.consultation_date or "",
            estimated_quantity=row.estimated_quantity or 0,
            contracted_quantity=row.contracted_quantity or 0,
            is_contracted=bool(row.is_contracted),
            special_notes=row.special_notes or "",
            contract_date=row.contract_date,
            down_payment=row.down_payment,
            balance_due_date=row.balance_due_date,
            balance_payment=row.balance_payment,
            mulching_work_date=row.mulching_work_date,
        )

    return Plot(
        id=row.id,
        address=row.address,
        area_pyeong=row.area_pyeong,
        cultivar=row.cultivar,
        tree_count=row.tree_count,
        is_corporate=row.is_corporate,
        facility_info=FacilityInfo(
            slope=row.slope,
            planting_distance=row.planting_distance,
            has_covering=row.has_covering,
            covering_type=row.covering_type or "",
            has_power=row.has_power,
            has_internet=row.has_internet,
            has_umbrella_system=row.has_umbrella_system,
            has_drip_hose=row.has_drip_hose,
            has_sprinkler=row.has_sprinkler,
            has_windbreak=row.has_windbreak,
            has_opener=row.has_opener,
        ),
        service_info=ServiceInfo(
            jacheongbi_id=row.jacheongbi_id,
            jacheongbi_pw=row.jacheongbi_pw,
            use_sugar_service=row.use_sugar_service,
            sugar_meter_info=row.sugar_meter_info,
            use_sensor_service=row.use_sensor_service,
            sensor_info=row.sensor_info,
        ),
        annual_data=[
            AnnualData(
                id=data.id,
                year=data.year,
                avg_brix=data.avg_brix,
                has_alternate_bearing=data.has_alternate_bearing,
                estimated_yield=data.estimated_yield,
                price_per_gwan=data.price_per_gwan,
                shipping_season=data.shipping_season,
                notes=data.notes,
            )
            for data in row.annual_data
        ],
        consultation_logs=[
            ConsultationLog(
                id=log.id,
                date=log.date,
                category=log.category or "",
                content=log.content,
                notes=log.notes,
            )
            for log in row.consultation_logs
        ],
        support_programs=[
            SupportProgram(
                id=program.id,
                year=program.year,
                project_name=program.project_name,
                project_description=program.project_description,
                local_govt_fund=program.local_govt_fund,
                self_fund=program.self_fund,
                is_selected=program.is_selected,
            )
            for program in row.support_programs
        ],
        corporate_farm_details=details,
    )
