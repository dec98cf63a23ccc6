"""Tests for the command driver."""

import pytest

import string_queue
from allocator import BlockAllocator
from models import ListNode
from queue_harness import QueueHarness


def test_new_insert_remove_round(harness):
    assert harness.new()[0]
    assert harness.insert_tail("dolphin")[0]
    ok, msg = harness.remove_head("dolphin")
    assert ok, msg
    assert harness.size(0)[0]


def test_operations_without_queue_fail(harness):
    ok, msg = harness.insert_head("a")
    assert not ok
    assert "absent" in msg
    assert not harness.remove_head()[0]
    assert not harness.reverse()[0]
    assert harness.size(0)[0]
    assert harness.show() == (True, "q = NULL")


def test_remove_head_reports_mismatch(harness):
    harness.new()
    harness.insert_tail("a")
    ok, msg = harness.remove_head("b")
    assert not ok
    assert "expected 'b'" in msg


def test_remove_head_on_empty(harness):
    harness.new()
    ok, msg = harness.remove_head()
    assert not ok
    assert "empty" in msg


def test_remove_head_quiet(harness):
    harness.new()
    harness.insert_tail("a", count=2)
    assert harness.remove_head_quiet()[0]
    assert harness.size(1)[0]
    harness.remove_head_quiet()
    assert not harness.remove_head_quiet()[0]


def test_remove_head_truncates_to_string_length(harness):
    harness.set_string_length(4)
    harness.new()
    harness.insert_tail("abcdefgh")
    ok, msg = harness.remove_head("abc")
    assert ok, msg


def test_random_inserts_then_sort(harness):
    harness.new()
    assert harness.insert_head("RAND", count=300)[0]
    assert harness.size(300)[0]
    ok, msg = harness.sort()
    assert ok, msg
    values = harness.contents()
    assert values == sorted(values)


def test_reverse_checks_order(harness):
    harness.new()
    harness.insert_tail("a")
    harness.insert_tail("b")
    harness.insert_tail("c")
    assert harness.reverse()[0]
    assert harness.contents() == ["c", "b", "a"]


def test_free_detects_no_leak(harness, allocator):
    harness.new()
    harness.insert_tail("x", count=10)
    ok, msg = harness.free()
    assert ok, msg
    assert allocator.live() == 0
    assert harness.queue is None


def test_new_replaces_existing_queue(harness, allocator):
    harness.new()
    harness.insert_tail("x", count=3)
    harness.new()
    assert harness.size(0)[0]
    assert allocator.live() == 1  # just the handle


def test_allocation_failures_are_reported():
    harness = QueueHarness(allocator=BlockAllocator(seed=3))
    harness.new()
    harness.set_fail_probability(1.0)
    ok, msg = harness.insert_tail("x")
    assert not ok
    assert "allocation failed" in msg
    assert harness.check()[0]
    harness.set_fail_probability(0.0)
    assert harness.free()[0]


def test_partial_failures_keep_queue_consistent():
    harness = QueueHarness(allocator=BlockAllocator(seed=8))
    harness.new()
    harness.set_fail_probability(0.3)
    for _ in range(50):
        harness.insert_head("RAND")
        harness.insert_tail("RAND")
        harness.remove_head()
        assert harness.check()[0]
    harness.set_fail_probability(0.0)
    assert harness.free()[0]


def test_check_detects_broken_tail(harness):
    harness.new()
    harness.insert_tail("a", count=3)
    harness.queue.tail.next = ListNode("stray")
    ok, msg = harness.check()
    assert not ok


def test_check_detects_cycle(harness):
    harness.new()
    harness.insert_tail("a", count=3)
    harness.queue.tail.next = harness.queue.head
    ok, msg = harness.check()
    assert not ok
    assert "cycle" in msg
    harness.queue.tail.next = None


@pytest.mark.parametrize(
    "line,ok",
    [
        ("", True),
        ("# comment", True),
        ("bogus", False),
        ("ih", False),
        ("size nope", False),
        ("option fail 2", False),
        ("option colour 1", False),
    ],
)
def test_execute_edge_cases(harness, line, ok):
    assert harness.execute(line)[0] is ok


def test_run_script():
    script = """
    # build and check
    new
    it b
    it a1
    it a2
    sort
    rh a1
    rh a2
    size 1
    ih "two words" 2
    reverse
    rh b
    rhq
    rhq
    size 0
    free
    """
    harness = QueueHarness(seed=1)
    ok, msg = harness.run_script(script)
    assert ok, msg


def test_run_script_stops_at_failure(harness):
    ok, msg = harness.run_script("new\nrh\nit a\n")
    assert not ok
    assert msg.startswith("line 2:")
    assert harness.size(0)[0]


def test_log_is_most_recent_first(harness):
    harness.new()
    harness.insert_tail("a")
    assert harness.log[0].startswith("OK it")
    assert harness.log[1].startswith("OK new")


def test_sort_with_duplicate_keys(harness):
    harness.new()
    for v in ["b", "a", "b", "a", "c", "a"]:
        harness.insert_tail(v)
    ok, msg = harness.sort()
    assert ok, msg
    assert harness.contents() == ["a", "a", "a", "b", "b", "c"]


def test_sort_detects_reordered_equal_values(harness, monkeypatch):
    def unstable_sort(q):
        nodes = []
        node = q.head
        while node is not None:
            nodes.append(node)
            node = node.next
        nodes = sorted(reversed(nodes), key=lambda n: n.value)
        for a, b in zip(nodes, nodes[1:]):
            a.next = b
        nodes[-1].next = None
        q._head, q._tail = nodes[0], nodes[-1]

    monkeypatch.setattr(string_queue, "sort", unstable_sort)
    harness.new()
    for v in ["b", "a", "b", "a"]:
        harness.insert_tail(v)
    ok, msg = harness.sort()
    assert not ok
    assert "equal values reordered" in msg
    # values alone are still ascending
    assert harness.contents() == ["a", "a", "b", "b"]


def test_sort_detects_dropped_node(harness, monkeypatch):
    def lossy_sort(q):
        q.head.next = q.head.next.next

    monkeypatch.setattr(string_queue, "sort", lossy_sort)
    harness.new()
    for v in ["a", "b", "c"]:
        harness.insert_tail(v)
    ok, msg = harness.sort()
    assert not ok
    assert "2 nodes after sort" in msg


def test_insert_non_str_is_reported(harness):
    harness.new()
    ok, msg = harness.insert_tail(b"raw")
    assert not ok
    assert "not a string" in msg
