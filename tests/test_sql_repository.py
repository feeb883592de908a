"""
Tests for the relational farm repository against SQLite files.
"""
import pytest
from sqlalchemy import func, select

from citrus_farms.domain.errors import DuplicateFarmError, FarmNotFoundError, StorageError
from citrus_farms.domain.models import AnnualData, Farm, Plot, SupportProgram
from citrus_farms.infrastructure.database import (
    AnnualDataRow,
    ConsultationLogRow,
    FarmRow,
    PlotRow,
    SupportProgramRow,
)
from citrus_farms.infrastructure.sql_repository import SqlFarmRepository


@pytest.fixture
def sql_repository(tmp_path):
    repository = SqlFarmRepository.from_url(f"sqlite:///{tmp_path / 'farms.db'}")
    yield repository
    repository.close()


def _count(repository: SqlFarmRepository, model) -> int:
    with repository.session_factory() as session:
        return session.scalar(select(func.count()).select_from(model))


def _two_plot_farm(farm_id: str = "farm-two") -> Farm:
    return Farm(
        id=farm_id,
        name="Two Plots",
        plots=[
            Plot(
                id=f"{farm_id}-plot-{n}",
                support_programs=[SupportProgram(id=f"sp-{n}", year=2020 + n)],
                annual_data=[AnnualData(id=f"ad-{n}", year=2022, has_alternate_bearing=n == 1)],
            )
            for n in (1, 2)
        ],
    )


class TestRoundTrip:
    def test_save_and_get(self, sql_repository, moon_farm):
        sql_repository.save(moon_farm)

        assert sql_repository.get("farm-moon") == moon_farm

    def test_child_order_preserved(self, sql_repository):
        farm = Farm(id="farm-order", name="Order", plots=[
            Plot(id="p-b", address="second"),
            Plot(id="p-a", address="first", annual_data=[
                AnnualData(id="z", year=2024),
                AnnualData(id="a", year=2023),
            ]),
        ])
        sql_repository.save(farm)
        loaded = sql_repository.get("farm-order")

        assert [plot.id for plot in loaded.plots] == ["p-b", "p-a"]
        assert [data.id for data in loaded.plots[1].annual_data] == ["z", "a"]

    def test_get_missing_raises(self, sql_repository):
        with pytest.raises(FarmNotFoundError):
            sql_repository.get("nope")

    def test_repeated_child_ids_within_plot(self, sql_repository):
        farm = Farm(id="farm-dup", name="Dup", plots=[Plot(id="p", annual_data=[
            AnnualData(id="a", year=2022),
            AnnualData(id="a", year=2023),
        ])])
        sql_repository.save(farm)

        assert sql_repository.get("farm-dup") == farm

    def test_repeated_plot_ids_within_farm(self, sql_repository):
        farm = Farm(id="farm-dup", name="Dup", plots=[
            Plot(id="p", address="first", support_programs=[SupportProgram(id="sp", year=2020)]),
            Plot(id="p", address="second", support_programs=[SupportProgram(id="sp", year=2021)]),
        ])
        sql_repository.save(farm)

        assert sql_repository.get("farm-dup") == farm

    def test_plot_ids_shared_across_farms(self, sql_repository):
        first = _two_plot_farm("farm-two")
        second = _two_plot_farm("farm-two").model_copy(update={"id": "farm-copy", "name": "Copy"})
        sql_repository.save(first)
        sql_repository.save(second)

        assert sql_repository.get("farm-two") == first
        assert sql_repository.get("farm-copy") == second

        sql_repository.delete("farm-two")

        assert sql_repository.get("farm-copy") == second
        assert _count(sql_repository, PlotRow) == 2
        assert _count(sql_repository, SupportProgramRow) == 2


class TestSave:
    def test_update_replaces_child_set(self, sql_repository):
        farm = _two_plot_farm()
        sql_repository.save(farm)
        farm.plots = farm.plots[:1]
        farm.plots[0].support_programs = []
        sql_repository.save(farm)

        loaded = sql_repository.get(farm.id)
        assert len(loaded.plots) == 1
        assert loaded.plots[0].support_programs == []
        assert _count(sql_repository, PlotRow) == 1
        assert _count(sql_repository, SupportProgramRow) == 0
        assert _count(sql_repository, AnnualDataRow) == 1

    def test_strict_insert_rejects_existing(self, sql_repository, sun_farm):
        sql_repository.insert(sun_farm)

        with pytest.raises(DuplicateFarmError):
            sql_repository.insert(sun_farm)
        assert _count(sql_repository, FarmRow) == 1


class TestDelete:
    def test_cascade_leaves_no_orphans(self, sql_repository, sun_farm):
        sql_repository.save(_two_plot_farm())
        sql_repository.save(sun_farm)

        sql_repository.delete("farm-two")

        assert [farm.id for farm in sql_repository.load_all().farms] == ["farm-sun"]
        assert _count(sql_repository, PlotRow) == 1
        assert _count(sql_repository, SupportProgramRow) == 0
        assert _count(sql_repository, AnnualDataRow) == 1
        assert _count(sql_repository, ConsultationLogRow) == 0

    def test_delete_absent_is_noop(self, sql_repository):
        sql_repository.delete("nope")


class TestLoadAll:
    def test_paginated_by_name(self, sql_repository):
        for name in ["Cedar", "Aspen", "Birch"]:
            sql_repository.save(Farm(id=f"farm-{name}", name=name))

        page = sql_repository.load_all(page=2, page_size=2)

        assert [farm.name for farm in page.farms] == ["Cedar"]
        assert page.total_pages == 2

    def test_empty_store(self, sql_repository):
        assert sql_repository.load_all(page=1, page_size=10).total_pages == 0


class TestReplaceAll:
    def test_installs_new_set(self, sql_repository, sun_farm, moon_farm):
        sql_repository.save(_two_plot_farm())
        sql_repository.replace_all([sun_farm, moon_farm])

        assert sorted(farm.id for farm in sql_repository.load_all().farms) == ["farm-moon", "farm-sun"]
        assert _count(sql_repository, SupportProgramRow) == 1

    def test_failure_rolls_back(self, sql_repository, sun_farm, moon_farm):
        """A constraint failure part-way leaves the previous contents intact."""
        sql_repository.save(_two_plot_farm())
        clash = Farm(id=sun_farm.id, name="Clash", plots=[Plot(id="plot-clash")])

        with pytest.raises(StorageError):
            sql_repository.replace_all([sun_farm, moon_farm, clash])

        assert [farm.id for farm in sql_repository.load_all().farms] == ["farm-two"]
        assert _count(sql_repository, PlotRow) == 2
        assert _count(sql_repository, SupportProgramRow) == 2
