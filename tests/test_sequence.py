import pytest
from helpers import assert_reindexed, ids, record

from replica_app.core.errors import InvalidPositionError, NotFoundError
from replica_app.core.sequence import OrderedStore


def _sample_store():
    return OrderedStore([record(1), record(2), record(3)])


def test_initial_order_and_reindex():
    store = _sample_store()
    assert ids(store) == [1, 2, 3]
    assert_reindexed(store)
    assert store.get(2).local_priority == 1
    assert store.get(99) is None


def test_insert_bounds():
    store = _sample_store()
    store.insert(3, record(4))
    store.insert(0, record(5))
    store.reindex()
    assert ids(store) == [5, 1, 2, 3, 4]
    assert_reindexed(store)
    with pytest.raises(InvalidPositionError):
        store.insert(7, record(6))
    with pytest.raises(IndexError):
        store.insert(-1, record(6))


def test_remove_by_id():
    store = _sample_store()
    removed = store.remove(2)
    assert removed.id == 2
    assert ids(store) == [1, 3]
    assert 2 not in store
    with pytest.raises(NotFoundError):
        store.remove(2)


def test_require_missing_raises_keyerror():
    store = _sample_store()
    with pytest.raises(KeyError):
        store.require(42)


def test_new_prefix_length():
    store = OrderedStore([record(1, is_new=True), record(2, is_new=True), record(3), record(4, is_new=True)])
    assert store.new_prefix_length() == 2
    assert OrderedStore().new_prefix_length() == 0


def test_copy_is_independent_container():
    store = _sample_store()
    clone = store.copy()
    clone.remove(1)
    assert ids(store) == [1, 2, 3]
    assert ids(clone) == [2, 3]
