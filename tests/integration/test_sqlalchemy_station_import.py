from __future__ import annotations

from operator import attrgetter
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select

from chaintx.adapters.sqlalchemy import SqlAlchemyBatchRepository
from chaintx.domain.workflow import ExecutionFailedError, WorkflowContext, WorkflowEngine
from tests.helpers.stations import (
    Country,
    Mountpoint,
    Receiver,
    StationRecord,
    build_mountpoint,
    failing_saver,
    sample_records,
    set_country_id,
    set_receiver_id,
    station_engine,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from chaintx.adapters.sqlalchemy import SqlAlchemyUnitOfWork

type UnitOfWorkFactory = Callable[[], SqlAlchemyUnitOfWork]


def _rows[TEntity](factory: UnitOfWorkFactory, entity_cls: type[TEntity]) -> list[TEntity]:
    with factory() as uow:
        return list(uow.session.execute(select(entity_cls)).scalars())


def test_station_import_in_one_transaction(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    with sqlite_unit_of_work() as uow:
        engine = station_engine(
            sample_records(),
            countries=SqlAlchemyBatchRepository(uow.session, Country, "name").save_many,
            receivers=SqlAlchemyBatchRepository(uow.session, Receiver, "code").save_many,
            mountpoints=SqlAlchemyBatchRepository(uow.session, Mountpoint, "code").save_many,
        )
        result = engine.execute(uow.run)

    assert result.persist_order == (Country, Receiver, Mountpoint)

    countries = {country.name: country.id for country in _rows(sqlite_unit_of_work, Country)}
    receivers = {receiver.code: receiver for receiver in _rows(sqlite_unit_of_work, Receiver)}
    mountpoints = {mp.code: mp.receiver_id for mp in _rows(sqlite_unit_of_work, Mountpoint)}

    assert set(countries) == {"China", "USA"}
    assert receivers["R001"].country_id == countries["China"]
    assert receivers["R002"].country_id == countries["USA"]
    assert mountpoints == {
        "MP001": receivers["R001"].id,
        "MP002": receivers["R002"].id,
        "MP003": receivers["R001"].id,
    }


def test_transactional_failure_leaves_nothing_committed(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    with sqlite_unit_of_work() as uow:
        engine = station_engine(
            sample_records(),
            countries=SqlAlchemyBatchRepository(uow.session, Country, "name").save_many,
            receivers=failing_saver("constraint violated"),
            mountpoints=SqlAlchemyBatchRepository(uow.session, Mountpoint, "code").save_many,
        )
        with pytest.raises(ExecutionFailedError):
            engine.execute(uow.run)

    assert _rows(sqlite_unit_of_work, Country) == []


def test_non_transactional_failure_keeps_committed_parents(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    with sqlite_unit_of_work() as uow:
        countries = SqlAlchemyBatchRepository(uow.session, Country, "name")

        def save_and_commit(entities: list[Country]) -> None:
            countries.save_many(entities)
            uow.commit()

        engine = station_engine(
            sample_records(),
            countries=save_and_commit,
            receivers=failing_saver("constraint violated"),
            mountpoints=SqlAlchemyBatchRepository(uow.session, Mountpoint, "code").save_many,
        )
        with pytest.raises(ExecutionFailedError):
            engine.execute_without_transaction()

    assert sorted(country.name for country in _rows(sqlite_unit_of_work, Country)) == [
        "China",
        "USA",
    ]
    assert _rows(sqlite_unit_of_work, Receiver) == []


def test_lookup_reuses_existing_parents(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    with sqlite_unit_of_work() as uow:
        SqlAlchemyBatchRepository(uow.session, Receiver, "code").save_many([Receiver(code="R001")])
        uow.commit()

    with sqlite_unit_of_work() as uow:
        receivers = SqlAlchemyBatchRepository(uow.session, Receiver, "code")
        mountpoints = SqlAlchemyBatchRepository(uow.session, Mountpoint, "code")

        def build_receiver_unless_known(
            record: StationRecord, context: WorkflowContext[StationRecord]
        ) -> Receiver | None:
            if record.receiver in context.get_lookup("receivers"):
                return None
            return Receiver(code=record.receiver or "")

        def build_linked_mountpoint(
            record: StationRecord, context: WorkflowContext[StationRecord]
        ) -> Mountpoint:
            mountpoint = build_mountpoint(record, context)
            known = context.get_lookup("receivers").get(record.receiver)
            if known is not None:
                mountpoint.receiver_id = known.id
            return mountpoint

        fetched_keys: list[set[str]] = []

        def fetch_receivers(keys: set[str]) -> list[Receiver]:
            fetched_keys.append(keys)
            return receivers.get_many(keys)

        engine = (
            WorkflowEngine(sample_records())
            .lookup(
                "receivers",
                lambda records: {record.receiver for record in records if record.receiver},
                fetch_receivers,
                attrgetter("code"),
            )
            .build(Receiver, attrgetter("receiver"), build_receiver_unless_known)
            .build(Mountpoint, attrgetter("mountpoint"), build_linked_mountpoint)
            .relate(Mountpoint, set_receiver_id, Receiver, attrgetter("receiver"))
            .relate(Receiver, set_country_id, Country, attrgetter("country"))
            .persist(Receiver, receivers.save_many, attrgetter("id"))
            .persist(Mountpoint, mountpoints.save_many, attrgetter("id"))
        )
        result = engine.execute(uow.run)

    assert fetched_keys == [{"R001", "R002"}]
    assert result.persisted == {Receiver: 1, Mountpoint: 3}

    receiver_ids = {r.code: r.id for r in _rows(sqlite_unit_of_work, Receiver)}
    assert {mp.code: mp.receiver_id for mp in _rows(sqlite_unit_of_work, Mountpoint)} == {
        "MP001": receiver_ids["R001"],
        "MP002": receiver_ids["R002"],
        "MP003": receiver_ids["R001"],
    }
