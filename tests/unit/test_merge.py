from __future__ import annotations

import itertools
import uuid
from datetime import timedelta, timezone

from market_chat.client.merge import date_label, group_by_date, merge, merge_many
from tests.conftest import T0, make_message

CID = uuid.uuid4()


def _msg(minutes: float, **kwargs):
    return make_message(conversation_id=CID, created_at=T0 + timedelta(minutes=minutes), **kwargs)


def test_merge_into_empty():
    m = _msg(0)
    assert merge([], m) == [m]


def test_merge_keeps_time_order():
    a, b, c = _msg(1), _msg(2), _msg(3)
    assert merge([a, c], b) == [a, b, c]
    assert merge([b, c], a) == [a, b, c]
    assert merge([a, b], c) == [a, b, c]


def test_merge_duplicate_returns_same_list():
    a, b = _msg(1), _msg(2)
    current = [a, b]
    assert merge(current, a) is current


def test_merge_does_not_mutate_input():
    a, b = _msg(1), _msg(2)
    current = [a]
    merged = merge(current, b)
    assert current == [a]
    assert merged == [a, b]


def test_merge_duplicate_with_different_read_flag_is_ignored():
    a = _msg(1)
    read_copy = make_message(
        conversation_id=CID, created_at=a.created_at, message_id=a.id, is_read=True,
    )
    assert merge([a], read_copy) == [a]


def test_equal_timestamps_tie_break_on_id():
    ids = sorted(uuid.uuid4() for _ in range(3))
    msgs = [_msg(0, message_id=i) for i in ids]
    assert merge_many([], reversed(msgs)) == msgs


def test_any_interleaving_with_repeats_gives_one_copy_in_order():
    a, b, c = _msg(1), _msg(1), _msg(5)
    expected = merge_many([], [a, b, c])
    for order in itertools.permutations([a, b, c, a, c]):
        result = merge_many([], order)
        assert result == expected
        assert len({m.id for m in result}) == len(result) == 3
        assert all(x.created_at <= y.created_at for x, y in zip(result, result[1:]))


def test_feed_before_confirmation_keeps_single_copy():
    history = [_msg(0), _msg(1)]
    sent = _msg(2, sender_id="buyer-1", content="Is this still available?")

    from_feed = merge(history, sent)
    from_confirmation = merge(from_feed, sent)

    assert from_confirmation == [*history, sent]


def test_date_label():
    assert date_label(T0) == "Monday, Mar 4"


def test_group_by_date_splits_on_calendar_day():
    late = _msg(11 * 60 + 30)         # 23:30 UTC
    next_day = _msg(12 * 60 + 30)     # 00:30 UTC next day
    groups = group_by_date([_msg(0), late, next_day], timezone.utc)

    assert [g.label for g in groups] == ["Monday, Mar 4", "Tuesday, Mar 5"]
    assert [len(g.messages) for g in groups] == [2, 1]


def test_group_by_date_uses_viewer_zone():
    late = _msg(11 * 60 + 30)
    next_day = _msg(12 * 60 + 30)
    tokyo = timezone(timedelta(hours=9))

    groups = group_by_date([late, next_day], tokyo)

    assert len(groups) == 1
    assert groups[0].label == "Tuesday, Mar 5"


def test_group_by_date_empty():
    assert group_by_date([]) == []
