"""
Infrastructure layer: Relational schema and engine setup.

Farms own plots; plots own support programs, annual data and consultation
logs. Every foreign key cascades on delete so removing a farm leaves no
orphaned rows. Plot and child rows use surrogate keys; record ids are
stored as plain columns and are not required to be unique.
"""
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

Base = declarative_base()


class FarmRow(Base):
    __tablename__ = "farms"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False, index=True)
    contact = Column(String(100), nullable=False, default="")

    plots = relationship(
        "PlotRow",
        back_populates="farm",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PlotRow.position",
    )


class PlotRow(Base):
    __tablename__ = "plots"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), nullable=False, index=True)
    farm_id = Column(String(64), ForeignKey("farms.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    address = Column(String(300), nullable=False, default="")
    area_pyeong = Column(Float, nullable=False, default=0)
    cultivar = Column(String(100), nullable=False, default="")
    tree_count = Column(Integer, nullable=False, default=0)
    is_corporate = Column(Boolean, nullable=False, default=False)

    # Facility
    slope = Column(String(100), nullable=False, default="")
    planting_distance = Column(String(100), nullable=False, default="")
    has_covering = Column(Boolean, nullable=False, default=False)
    covering_type = Column(String(20), nullable=False, default="")
    has_power = Column(Boolean, nullable=False, default=False)
    has_internet = Column(Boolean, nullable=False, default=False)
    has_umbrella_system = Column(Boolean, nullable=False, default=False)
    has_drip_hose = Column(Boolean, nullable=False, default=False)
    has_sprinkler = Column(Boolean, nullable=False, default=False)
    has_windbreak = Column(Boolean, nullable=False, default=False)
    has_opener = Column(Boolean, nullable=False, default=False)

    # Services
    jacheongbi_id = Column(String(100), nullable=False, default="")
    jacheongbi_pw = Column(String(100), nullable=False, default="")
    use_sugar_service = Column(Boolean, nullable=False, default=False)
    sugar_meter_info = Column(String(200), nullable=True)
    use_sensor_service = Column(Boolean, nullable=False, default=False)
    sensor_info = Column(String(200), nullable=True)

    # Corporate contract (only populated for corporate plots)
    corporate_year = Column(Integer, nullable=True)
    consultation_date = Column(String(10), nullable=True)
    estimated_quantity = Column(Integer, nullable=True)
    contracted_quantity = Column(Integer, nullable=True)
    is_contracted = Column(Boolean, nullable=True)
    special_notes = Column(Text, nullable=True)
    contract_date = Column(String(10), nullable=True)
    down_payment = Column(BigInteger, nullable=True)
    balance_due_date = Column(String(10), nullable=True)
    balance_payment = Column(BigInteger, nullable=True)
    mulching_work_date = Column(String(10), nullable=True)

    farm = relationship("FarmRow", back_populates="plots")
    support_programs = relationship(
        "SupportProgramRow",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SupportProgramRow.position",
    )
    annual_data = relationship(
        "AnnualDataRow",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AnnualDataRow.position",
    )
    consultation_logs = relationship(
        "ConsultationLogRow",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ConsultationLogRow.position",
    )


class SupportProgramRow(Base):
    __tablename__ = "support_programs"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    plot_pk = Column(Integer, ForeignKey("plots.pk", ondelete="CASCADE"), nullable=False, index=True)
    id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    year = Column(Integer, nullable=False, default=0)
    project_name = Column(String(200), nullable=False, default="")
    project_description = Column(Text, nullable=False, default="")
    local_govt_fund = Column(BigInteger, nullable=False, default=0)
    self_fund = Column(BigInteger, nullable=False, default=0)
    is_selected = Column(Boolean, nullable=False, default=False)


class AnnualDataRow(Base):
    __tablename__ = "annual_data"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    plot_pk = Column(Integer, ForeignKey("plots.pk", ondelete="CASCADE"), nullable=False, index=True)
    id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    year = Column(Integer, nullable=False, default=0, index=True)
    avg_brix = Column(Float, nullable=False, default=0)
    has_alternate_bearing = Column(Boolean, nullable=False, default=False)
    estimated_yield = Column(Integer, nullable=False, default=0)
    price_per_gwan = Column(BigInteger, nullable=False, default=0)
    shipping_season = Column(String(100), nullable=False, default="")
    notes = Column(Text, nullable=False, default="")


class ConsultationLogRow(Base):
    __tablename__ = "consultation_logs"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    plot_pk = Column(Integer, ForeignKey("plots.pk", ondelete="CASCADE"), nullable=False, index=True)
    id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    date = Column(String(10), nullable=False, default="")
    category = Column(String(20), nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=False, default="")


CHILD_TABLES = (SupportProgramRow, AnnualDataRow, ConsultationLogRow)


def _normalize_database_url(url: str) -> str:
    # Hosted Postgres providers still hand out the deprecated scheme
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str) -> Engine:
    """
    Create an engine for the given connection string.

    Args:
        database_url: SQLAlchemy URL (SQLite and PostgreSQL are used in practice)

    Returns:
        Engine with a connection pool
    """
    url = _normalize_database_url(database_url)
    kwargs = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        # Sessions are used from FastAPI's worker threads
        kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create any missing tables."""
    Base.metadata.create_all(engine)

