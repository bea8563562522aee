from datetime import date, datetime, timezone

import pytest

from participation_dashboard.schema import CHECKIN_ACTIVATION, CHECKIN_USER, Entity, LinkSpec
from participation_dashboard.snapshot import Snapshot, coerce_id, parse_date, parse_timestamp
from participation_dashboard.snapshot import coerce_timezone


def test_missing_tables_load_as_empty():
    snapshot = Snapshot.from_document({"tables": {"up_users": {"data": [{"id": 1}]}}})

    assert snapshot.count(Entity.USERS) == 1
    assert snapshot.records(Entity.CHECKINS) == ()
    assert list(snapshot.link_pairs(CHECKIN_USER)) == []


def test_document_without_tables_is_empty():
    snapshot = Snapshot.from_document({})

    assert all(size == 0 for size in snapshot.table_sizes().values())


def test_records_do_not_alias_the_document(document):
    snapshot = Snapshot.from_document(document)
    document["tables"]["up_users"]["data"][0]["username"] = "changed"

    assert snapshot.get(Entity.USERS, 1).get("username") == "ana"
    with pytest.raises(TypeError):
        snapshot.get(Entity.USERS, 1).attributes["username"] = "changed"


def test_get_uses_id_index(snapshot):
    assert snapshot.get(Entity.CHECKINS, 103).get("created_at") == "2025-06-02T23:00:00.000Z"
    assert snapshot.get(Entity.CHECKINS, 999) is None
    assert snapshot.get(Entity.CHECKINS, None) is None


def test_follow_returns_distinct_ids_in_link_order(snapshot):
    assert snapshot.follow(CHECKIN_ACTIVATION, Entity.ACTIVATIONS, 5) == (100, 102, 103)
    assert snapshot.follow(CHECKIN_USER, Entity.USERS, 1) == (100, 101)
    assert snapshot.follow(CHECKIN_USER, Entity.CHECKINS, 100) == (1,)
    assert snapshot.follow(CHECKIN_USER, Entity.USERS, 999) == ()


def test_malformed_link_rows_are_ignored():
    snapshot = Snapshot.from_document(
        {
            "tables": {
                "checkins_users_permissions_user_lnk": {
                    "data": [
                        {"checkin_id": "10", "user_id": 1},
                        {"checkin_id": None, "user_id": 2},
                        {"checkin_id": "abc", "user_id": 3},
                    ]
                }
            }
        }
    )

    assert list(snapshot.link_pairs(CHECKIN_USER)) == [(10, 1)]
    assert snapshot.count(CHECKIN_USER) == 3


def test_published_flag():
    snapshot = Snapshot.from_document(
        {
            "tables": {
                "ativacoes": {
                    "data": [
                        {"id": 1, "published_at": "2025-01-01"},
                        {"id": 2, "published_at": None},
                        {"id": 3},
                        {"id": 4, "published_at": ""},
                    ]
                }
            }
        }
    )

    assert [record.is_published for record in snapshot.records(Entity.ACTIVATIONS)] == [True, False, False, False]


def test_parse_timestamp_handles_zulu_and_naive_values():
    utc = coerce_timezone("UTC")

    assert parse_timestamp("2025-01-01T23:00:00Z", utc) == datetime(2025, 1, 1, 23, tzinfo=timezone.utc)
    assert parse_timestamp("2025-01-01T23:00:00", utc).hour == 23
    assert parse_timestamp("not a date", utc) is None
    assert parse_timestamp(None, utc) is None


def test_local_day_follows_snapshot_timezone():
    document = {"tables": {"checkins": {"data": [{"id": 1, "created_at": "2025-01-02T01:30:00Z"}]}}}
    snapshot = Snapshot.from_document(document, timezone="America/Sao_Paulo")
    checkin = snapshot.get(Entity.CHECKINS, 1)

    assert snapshot.local_day(checkin) == date(2025, 1, 1)
    assert snapshot.local_time(checkin).hour == 22


def test_unknown_timezone_falls_back_to_utc():
    assert str(coerce_timezone("Mars/Olympus")) == "UTC"


@pytest.mark.parametrize(
    "value, expected",
    [(1, 1), ("42", 42), (3.0, 3), (3.5, None), (True, None), (None, None), ("x", None)],
)
def test_coerce_id(value, expected):
    assert coerce_id(value) == expected


def test_parse_date():
    assert parse_date("2000-01-31T00:00:00.000Z") == date(2000, 1, 31)
    assert parse_date("2000-02-30") is None
    assert parse_date("") is None


def test_link_rejects_entity_tables():
    snapshot = Snapshot.from_document({})
    entity_as_link = LinkSpec("checkins", Entity.CHECKINS, "id", Entity.USERS, "user_id")

    assert snapshot.link(CHECKIN_USER).spec is CHECKIN_USER
    with pytest.raises(KeyError):
        snapshot.link(entity_as_link)
