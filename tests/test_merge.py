import pytest
from helpers import assert_reindexed, ids, record, remote

from replica_app.core.errors import MergeAborted
from replica_app.core.merge import apply_history, merge_batch
from replica_app.core.models import ChangeHistoryModel, CommentModel, HistoryChangeModel
from replica_app.core.sequence import OrderedStore
from replica_app.core.tiers import TierLevels


def _settled_store():
    return OrderedStore([record(1), record(2), record(3)])


def test_new_records_sorted_by_severity_on_initial_sync():
    batch = [remote(10, "Critical"), remote(11, "Minor"), remote(12, "Major")]
    staged = merge_batch(OrderedStore(), TierLevels(1, 2, 3), batch)
    assert ids(staged.store) == [10, 12, 11]
    assert [r.local_priority for r in staged.store] == [0, 1, 2]
    assert (staged.result.new_count, staged.result.modified_count) == (3, 0)
    assert staged.levels.as_tuple() == (20, 40, 60)
    assert all(r.is_new for r in staged.store)


def test_merge_same_batch_twice_is_idempotent():
    batch = [remote(10, "Critical"), remote(11, "Minor"), remote(12, "Major")]
    first = merge_batch(OrderedStore(), TierLevels.defaults(), batch)
    second = merge_batch(first.store, first.levels, batch)
    assert (second.result.new_count, second.result.modified_count) == (0, 3)
    assert ids(second.store) == ids(first.store)
    assert second.levels.as_tuple() == first.levels.as_tuple()


def test_new_records_cluster_after_existing_new_prefix():
    store = OrderedStore([record(1, "Minor", is_new=True), record(2), record(3)])
    levels = TierLevels(0, 1, 2)
    staged = merge_batch(store, levels, [remote(20, "Enhancement"), remote(21, "Critical")])
    assert ids(staged.store) == [1, 21, 20, 2, 3]
    assert staged.levels.as_tuple() == (2, 3, 4)
    assert_reindexed(staged.store)


def test_modified_record_keeps_position_and_is_flagged_new():
    store = _settled_store()
    staged = merge_batch(store, TierLevels(0, 1, 2), [remote(2, "Critical", summary="Changed")])
    assert ids(staged.store) == [1, 2, 3]
    changed = staged.store.get(2)
    assert changed.summary == "Changed"
    assert changed.severity == "Critical"
    assert changed.is_new
    assert staged.levels.as_tuple() == (0, 1, 2)


def test_merge_does_not_touch_live_store():
    store = _settled_store()
    merge_batch(store, TierLevels(0, 1, 2), [remote(2, summary="Changed"), remote(9)])
    assert ids(store) == [1, 2, 3]
    assert store.get(2).summary == "Record 2"
    assert not store.get(2).is_new


def test_comments_replaced_when_supplied():
    store = _settled_store()
    store.get(1).comments = [CommentModel(author="old", created=None, body="stale")]
    fresh = [CommentModel(author="alice", created=None, body="hello")]
    staged = merge_batch(store, TierLevels(), [remote(1)], comments={1: fresh})
    merged = staged.store.get(1)
    assert [c.body for c in merged.comments] == ["hello"]
    assert not merged.requires_refresh


def test_missing_comments_flag_refresh_and_keep_old():
    store = _settled_store()
    store.get(1).comments = [CommentModel(author="old", created=None, body="kept")]
    staged = merge_batch(store, TierLevels(), [remote(1)], comments=None)
    merged = staged.store.get(1)
    assert merged.requires_refresh
    assert [c.body for c in merged.comments] == ["kept"]


def test_tags_survive_merge():
    store = _settled_store()
    store.get(3).add_tag("OnHold")
    staged = merge_batch(store, TierLevels(), [remote(3)])
    assert staged.store.get(3).tags == ["OnHold"]


def test_history_corrects_target_milestone():
    store = _settled_store()
    history = [
        ChangeHistoryModel(
            record_id=2,
            changes=[HistoryChangeModel(field="target_milestone", removed="1.0", added="2.0")],
        )
    ]
    staged = merge_batch(store, TierLevels(), [remote(2, target_milestone="1.0")], history=history)
    assert staged.store.get(2).target_milestone == "2.0"


def test_history_ignored_on_initial_sync():
    history = [ChangeHistoryModel(record_id=2, changes=[HistoryChangeModel("Fix Version", None, "9")])]
    staged = merge_batch(OrderedStore(), TierLevels(), [remote(2, target_milestone="1.0")], history=history)
    assert staged.store.get(2).target_milestone == "1.0"


def test_apply_history_leaves_input_untouched():
    batch = [remote(5, target_milestone="a")]
    history = [ChangeHistoryModel(record_id=5, changes=[HistoryChangeModel("Fix Version", "a", "b")])]
    out = apply_history(batch, history)
    assert out[0].target_milestone == "b"
    assert batch[0].target_milestone == "a"


def test_malformed_entry_aborts_whole_batch():
    store = _settled_store()
    batch = [remote(7), remote(None)]
    with pytest.raises(MergeAborted) as info:
        merge_batch(store, TierLevels(), batch)
    assert info.value.processed == 0
    assert ids(store) == [1, 2, 3]
    assert 7 not in store
