import pytest

from subwatch.models.subscription import Subscription
from subwatch.services.subscription_store import SubscriptionStore

from conftest import GB, quota


def make_store(count: int, page_size: int = 6) -> SubscriptionStore:
    store = SubscriptionStore(page_size)
    store.replace_all([Subscription(id=f"s{i}", url=f"https://x/{i}") for i in range(count)])
    return store


@pytest.mark.parametrize("count,pages", [(0, 0), (1, 1), (6, 1), (7, 2), (13, 3)])
def test_total_pages_is_ceiling(count, pages):
    assert make_store(count).total_pages == pages


def test_paginated_slice_past_last_page_is_empty():
    store = make_store(7)
    assert [s.id for s in store.paginated_slice(2)] == ["s6"]
    assert store.paginated_slice(3) == []
    assert store.paginated_slice(0) == []


def test_change_page_ignores_out_of_range():
    store = make_store(7)
    assert store.change_page(2)
    assert store.current_page == 2
    assert not store.change_page(3)
    assert not store.change_page(0)
    assert store.current_page == 2


def test_prepend_keeps_block_order():
    store = make_store(1)
    store.prepend([Subscription(id="a"), Subscription(id="b")])
    assert [s.id for s in store] == ["a", "b", "s0"]


def test_removing_only_record_on_last_page_steps_back():
    store = make_store(7)
    store.change_page(2)
    store.remove("s6")
    assert store.current_page == 1
    assert store.total_pages == 1


def test_remove_never_goes_below_page_one():
    store = make_store(1)
    store.remove("s0")
    assert store.current_page == 1
    assert len(store) == 0


def test_remove_unknown_id_returns_none():
    store = make_store(2)
    assert store.remove("nope") is None
    assert len(store) == 2


def test_replace_all_clamps_current_page():
    store = make_store(13)
    store.change_page(3)
    store.replace_all([Subscription(id="only")])
    assert store.current_page == 1


def test_replace_swaps_record_in_place():
    store = make_store(3)
    previous = store.replace(Subscription(id="s1", name="renamed"))
    assert previous.name is None
    assert [s.id for s in store] == ["s0", "s1", "s2"]
    assert store.get("s1").name == "renamed"


def test_aggregate_quota_counts_enabled_records_with_a_total():
    store = SubscriptionStore()
    store.replace_all([
        Subscription(id="a", user_info=quota(10, 4)),
        Subscription(id="b", user_info=quota(100, 1), enabled=False),
        Subscription(id="c", user_info=quota(0)),
        Subscription(id="d", user_info=quota(5, 9)),
        Subscription(id="e"),
    ])
    assert store.aggregate_remaining_quota == 6 * GB
    assert store.enabled_count == 4


def test_snapshot_is_not_live():
    store = make_store(2)
    snapshot = store.subscriptions
    store.clear()
    assert len(snapshot) == 2
    assert store.current_page == 1


def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        SubscriptionStore(0)
