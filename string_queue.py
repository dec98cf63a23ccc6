from __future__ import annotations

import logging
from typing import List, Optional

from allocator import BlockAllocator, default_allocator
from list_sort import INSERTION_SORT_THRESHOLD, sort_chain
from models import BlockKind, ListNode, QueueStatus

logger = logging.getLogger(__name__)


class StringQueue:
    """
    単方向リンクで実装した文字列 Queue
    insert_head / insert_tail / remove_head / size: O(1)
    reverse: O(n), sort: O(n log n)（どちらも既存ノードの付け替えのみ）

    ※ ノードと文字列はすべて allocator に計上する。
      確保に失敗した場合は Queue を変更せずに False を返す。
      空の Queue や確保失敗で例外は投げない（結果は戻り値と last_status）。
    """

    def __init__(self, allocator: Optional[BlockAllocator] = None, owns_handle: bool = False) -> None:
        self._allocator: BlockAllocator = allocator or default_allocator
        # new_queue で QUEUE ブロックを確保した場合のみ True
        self._owns_handle: bool = owns_handle
        self._head: Optional[ListNode] = None
        self._tail: Optional[ListNode] = None
        self._size: int = 0
        self._freed: bool = False
        self.last_status: QueueStatus = QueueStatus.OK

    @property
    def allocator(self) -> BlockAllocator:
        return self._allocator

    @property
    def head(self) -> Optional[ListNode]:
        return self._head

    @property
    def tail(self) -> Optional[ListNode]:
        return self._tail

    @property
    def freed(self) -> bool:
        return self._freed

    # -------------------------
    # 追加
    # -------------------------
    def insert_head(self, text: str) -> bool:
        node = self._new_node(text)
        if node is None:
            return False
        node.next = self._head
        self._head = node
        if self._tail is None:
            self._tail = node
        self._size += 1
        self.last_status = QueueStatus.OK
        return True

    def insert_tail(self, text: str) -> bool:
        node = self._new_node(text)
        if node is None:
            return False
        if self._tail is None:
            self._head = node
        else:
            self._tail.next = node
        self._tail = node
        self._size += 1
        self.last_status = QueueStatus.OK
        return True

    # -------------------------
    # 取り出し
    # -------------------------
    def remove_head(self, out: Optional[bytearray] = None, capacity: int = 0) -> bool:
        """
        先頭ノードを外して解放する
        out があれば capacity-1 バイトまで + NUL をコピーする（min(capacity, len(out)) を超えて書かない）

        ※ 値を渡せた場合のみ True。out なしでもノードは削除されるが False を返す。
        """
        if self._freed:
            self.last_status = QueueStatus.ABSENT_QUEUE
            return False
        if self._head is None:
            self.last_status = QueueStatus.EMPTY_QUEUE
            return False

        node = self._head
        self._head = node.next
        if self._head is None:
            self._tail = None
        self._size -= 1

        self.last_status = QueueStatus.OK
        try:
            if out is not None and _copy_out(node.value, out, capacity):
                self.last_status = QueueStatus.OUTPUT_TRUNCATED
        finally:
            # 既にリストから外れているので、例外が出ても必ず解放する
            self._release_node(node)
        return out is not None

    # -------------------------
    # 参照
    # -------------------------
    def size(self) -> int:
        return self._size

    def is_empty(self) -> bool:
        return self._size == 0

    def peek(self) -> Optional[str]:
        return None if self._head is None else self._head.value

    def to_list(self) -> List[str]:
        out: List[str] = []
        node = self._head
        while node is not None:
            out.append(node.value)
            node = node.next
        return out

    # -------------------------
    # 並べ替え
    # -------------------------
    def reverse(self) -> None:
        if self._size < 2:
            return

        if self._size == 2:
            first, second = self._head, self._tail
            second.next = first
            first.next = None
            self._head, self._tail = second, first
            return

        prev: Optional[ListNode] = None
        node = self._head
        while node is not None:
            nxt = node.next
            node.next = prev
            prev = node
            node = nxt
        self._head, self._tail = self._tail, self._head

    def sort(self, threshold: int = INSERTION_SORT_THRESHOLD) -> None:
        """文字列比較による安定な昇順ソート"""
        if self._size < 2:
            return
        self._head, self._tail = sort_chain(self._head, self._size, threshold)

    # -------------------------
    # 解放
    # -------------------------
    def free(self) -> None:
        """全ノードと文字列を解放し、最後にハンドルを解放する"""
        if self._freed:
            return
        released = 0
        while self._head is not None:
            node = self._head
            self._head = node.next
            self._release_node(node)
            released += 1
        self._tail = None
        self._size = 0
        if self._owns_handle:
            self._allocator.release(BlockKind.QUEUE)
        self._freed = True
        logger.debug("Freed queue with %d nodes", released)

    # -------------------------
    # 内部
    # -------------------------
    def _new_node(self, text: str) -> Optional[ListNode]:
        if self._freed:
            self.last_status = QueueStatus.ABSENT_QUEUE
            return None
        if not isinstance(text, str):
            self.last_status = QueueStatus.INVALID_VALUE
            return None
        if not self._allocator.allocate(BlockKind.NODE):
            self.last_status = QueueStatus.ALLOCATION_FAILURE
            return None
        if not self._allocator.allocate(BlockKind.STRING):
            self._allocator.release(BlockKind.NODE)
            self.last_status = QueueStatus.ALLOCATION_FAILURE
            return None
        return ListNode(value=_own_copy(text))

    def _release_node(self, node: ListNode) -> None:
        node.next = None
        self._allocator.release(BlockKind.STRING)
        self._allocator.release(BlockKind.NODE)


def _own_copy(text: str) -> str:
    # C 文字列と同じく最初の NUL で終わる
    return text.split("\0", 1)[0]


def _copy_out(value: str, out: bytearray, capacity: int) -> bool:
    """value を NUL 終端でコピーする。切り詰めた場合は True"""
    limit = min(capacity, len(out))
    data = value.encode("utf-8", errors="surrogatepass")
    if limit <= 0:
        return len(data) > 0
    out[:limit] = bytes(limit)
    chunk = data[: limit - 1]
    out[: len(chunk)] = chunk
    return len(data) > len(chunk)


def buffer_text(out: bytearray) -> str:
    """remove_head が書いた NUL 終端バッファの文字列"""
    end = out.find(0)
    raw = bytes(out if end < 0 else out[:end])
    try:
        return raw.decode("utf-8", errors="surrogatepass")
    except UnicodeDecodeError:
        # マルチバイト文字の途中で切れている場合
        return raw.decode("utf-8", errors="ignore")


# -------------------------
# ハンドル形式の API（Queue が None でも呼べる）
# -------------------------
def new_queue(allocator: Optional[BlockAllocator] = None) -> Optional[StringQueue]:
    """空の Queue。ハンドルを確保できなければ None"""
    allocator = allocator or default_allocator
    if not allocator.allocate(BlockKind.QUEUE):
        return None
    return StringQueue(allocator, owns_handle=True)


def free_queue(q: Optional[StringQueue]) -> None:
    if q is not None:
        q.free()


def insert_head(q: Optional[StringQueue], text: str) -> bool:
    if q is None:
        return False
    return q.insert_head(text)


def insert_tail(q: Optional[StringQueue], text: str) -> bool:
    if q is None:
        return False
    return q.insert_tail(text)


def remove_head(q: Optional[StringQueue], out: Optional[bytearray] = None, capacity: int = 0) -> bool:
    if q is None:
        return False
    return q.remove_head(out, capacity)


def queue_size(q: Optional[StringQueue]) -> int:
    if q is None:
        return 0
    return q.size()


def reverse(q: Optional[StringQueue]) -> None:
    if q is not None:
        q.reverse()


def sort(q: Optional[StringQueue]) -> None:
    if q is not None:
        q.sort()
