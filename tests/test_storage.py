from datetime import UTC, datetime

import pytest
from helpers import remote

from replica_app.core.config import ServerSettings
from replica_app.core.models import AttachmentModel, CommentModel, Tier
from replica_app.core.replica import Replica
from replica_app.core.storage import ServerRegistry, load_replica, replica_to_dict, save_replica


def _sample_replica():
    replica = Replica()
    replica.merge([remote(1, "Critical"), remote(2, "Minor"), remote(3, "Major")])
    comment = CommentModel(
        author="alice",
        created=datetime(2024, 9, 1, tzinfo=UTC),
        body="patch attached",
        attachment=AttachmentModel(file_name="fix.patch", is_patch=True, created=datetime(2024, 9, 1, tzinfo=UTC)),
    )
    replica.merge([remote(2, "Minor")], comments={2: [comment]})
    replica.set_tier(Tier.HIGH, True, [2])
    replica.add_tag(2, "OnHold")
    replica.define_tag("Regression", (200, 10, 10))
    replica.last_update = datetime(2024, 9, 2, 8, 0, tzinfo=UTC)
    return replica


def test_replica_round_trip(tmp_path):
    replica = _sample_replica()
    path = tmp_path / "1.json"
    save_replica(replica, path)
    assert not (tmp_path / "1.json.tmp").exists()
    loaded = load_replica(path)
    assert loaded.ids() == replica.ids()
    assert loaded.levels.as_tuple() == replica.levels.as_tuple()
    assert [r.local_priority for r in loaded.snapshot()] == list(range(3))
    rec = loaded.get(2)
    assert rec.tags == ["OnHold"]
    assert rec.comments[0].attachment.file_name == "fix.patch"
    assert rec.comments[0].created == datetime(2024, 9, 1, tzinfo=UTC)
    assert not rec.is_new
    assert loaded.get(1).is_new
    assert loaded.tag_color("Regression") == (200, 10, 10)
    assert loaded.last_update == datetime(2024, 9, 2, 8, 0, tzinfo=UTC)


def test_load_missing_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_replica(tmp_path / "missing.json")


def test_registry_assigns_ids_and_persists(tmp_path):
    registry = ServerRegistry(tmp_path)
    first = registry.add_server(ServerSettings(name="Main", host="example.atlassian.net"))
    second = registry.add_server(ServerSettings(name="Other", host="other.net", product="DM"))
    assert (first, second) == (1, 2)
    registry.remove_server(first)
    third = registry.add_server(ServerSettings(name="Third", host="third.net"))
    assert third == 3

    reopened = ServerRegistry(tmp_path)
    assert sorted(reopened.servers) == [2, 3]
    assert reopened.servers[2].product == "DM"
    assert reopened.load(2).is_initial
    assert not reopened.replica_path(1).exists()


def test_registry_save_and_load_replica(tmp_path):
    registry = ServerRegistry(tmp_path)
    sid = registry.add_server(ServerSettings(name="Main", host="example.atlassian.net", use_ssl=False))
    registry.save(sid, _sample_replica())
    assert registry.load(sid).ids() == _sample_replica().ids()
    assert registry.servers[sid].base_url == "http://example.atlassian.net"
    with pytest.raises(KeyError):
        registry.save(99, Replica())


def test_replica_to_dict_reads_one_consistent_state(monkeypatch):
    replica = _sample_replica()
    expected_ids = replica.ids()
    expected_levels = list(replica.levels.as_tuple())
    original_export = replica.export_state

    def export_then_merge():
        state = original_export()
        # A merge landing after the read must not leak into the saved payload.
        replica.merge([remote(9, "Critical")])
        return state

    monkeypatch.setattr(replica, "export_state", export_then_merge)
    payload = replica_to_dict(replica)
    assert [r["id"] for r in payload["records"]] == expected_ids
    assert payload["levels"] == expected_levels
    assert payload["last_update"] == "2024-09-02T08:00:00+00:00"
    assert 9 in replica.ids()
    assert list(replica.levels.as_tuple()) != expected_levels


def test_export_state_matches_replica():
    replica = _sample_replica()
    state = replica.export_state()
    assert [r.id for r in state.records] == replica.ids()
    assert state.levels.as_tuple() == replica.levels.as_tuple()
    assert state.last_update == replica.last_update
    assert [t.name for t in state.tags] == [t.name for t in replica.tags]
    state.records[0].tags.append("Scratch")
    state.tags[0].color = (0, 0, 0)
    assert "Scratch" not in replica.get(state.records[0].id).tags
    assert replica.tags[0].color != (0, 0, 0)
