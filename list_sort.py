"""
Hybrid merge sort over singly linked node chains.

Chains longer than the threshold are split and merged recursively, shorter
ones go through insertion sort. Every step relinks existing nodes; nothing is
allocated or copied. Both the merge and the insertion sort keep equal values
in input order, so the sort is stable.

Recursion depth is at most ceil(log2(n / threshold)).
"""
from __future__ import annotations

from typing import Optional, Tuple

from models import ListNode

# chains of at most this many nodes are insertion sorted
INSERTION_SORT_THRESHOLD = 128


def chain_length(head: Optional[ListNode]) -> int:
    n = 0
    node = head
    while node is not None:
        n += 1
        node = node.next
    return n


def chain_tail(head: Optional[ListNode]) -> Optional[ListNode]:
    if head is None:
        return None
    node = head
    while node.next is not None:
        node = node.next
    return node


def split_chain(head: ListNode) -> Tuple[ListNode, Optional[ListNode]]:
    """
    Cut the chain in two with a slow/fast cursor pair.
    The first half keeps ceil(n/2) nodes.
    """
    slow = head
    fast = head.next
    while fast is not None and fast.next is not None:
        slow = slow.next
        fast = fast.next.next
    second = slow.next
    slow.next = None
    return head, second


def merge_chains(left: Optional[ListNode], right: Optional[ListNode]) -> Optional[ListNode]:
    """Merge two sorted chains; on ties the left node goes first."""
    if left is None:
        return right
    if right is None:
        return left

    if left.value <= right.value:
        head, left = left, left.next
    else:
        head, right = right, right.next
    tail = head

    while left is not None and right is not None:
        if left.value <= right.value:
            tail.next = left
            tail, left = left, left.next
        else:
            tail.next = right
            tail, right = right, right.next

    # splice whatever is left in one step
    tail.next = left if left is not None else right
    return head


def insertion_sort_chain(head: Optional[ListNode]) -> Optional[ListNode]:
    if head is None:
        return None

    sorted_tail = head
    while sorted_tail.next is not None:
        node = sorted_tail.next
        if node.value >= sorted_tail.value:
            sorted_tail = node
            continue

        sorted_tail.next = node.next
        if node.value < head.value:
            node.next = head
            head = node
            continue

        # stops before sorted_tail at the latest, since node < sorted_tail
        prev = head
        while prev.next.value <= node.value:
            prev = prev.next
        node.next = prev.next
        prev.next = node

    return head


def merge_sort_chain(
    head: Optional[ListNode],
    length: Optional[int] = None,
    threshold: int = INSERTION_SORT_THRESHOLD,
) -> Optional[ListNode]:
    if threshold < 1:
        raise ValueError("threshold must be >= 1")
    if head is None or head.next is None:
        return head
    if length is None:
        length = chain_length(head)

    left, right = split_chain(head)
    left_len = (length + 1) // 2
    right_len = length - left_len

    if left_len > threshold:
        left = merge_sort_chain(left, left_len, threshold)
    else:
        left = insertion_sort_chain(left)

    if right_len > threshold:
        right = merge_sort_chain(right, right_len, threshold)
    else:
        right = insertion_sort_chain(right)

    return merge_chains(left, right)


def sort_chain(
    head: Optional[ListNode],
    length: Optional[int] = None,
    threshold: int = INSERTION_SORT_THRESHOLD,
) -> Tuple[Optional[ListNode], Optional[ListNode]]:
    """Sort a chain and return its new (head, tail)."""
    head = merge_sort_chain(head, length, threshold)
    return head, chain_tail(head)
