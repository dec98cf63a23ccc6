from __future__ import annotations

import logging
import random
import shlex
import string
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

import string_queue as sq
from allocator import BlockAllocator
from models import BlockKind, ListNode, QueueStatus
from string_queue import StringQueue

logger = logging.getLogger(__name__)

Result = Tuple[bool, str]

RAND_TOKEN = "RAND"
RAND_MIN_LENGTH = 5
RAND_MAX_LENGTH = 10

_STATUS_TEXT = {
    QueueStatus.ABSENT_QUEUE: "queue is absent",
    QueueStatus.ALLOCATION_FAILURE: "allocation failed",
    QueueStatus.EMPTY_QUEUE: "queue is empty",
    QueueStatus.INVALID_VALUE: "value is not a string",
}


class QueueHarness:
    """
    Queue を外側から操作するテストドライバ

    - new / free: 生成・解放（free 時にリークを確認）
    - ih / it / rh / rhq / reverse / sort / size / show: Queue 操作
    - check: リストを辿って head / tail / size を検証
    - execute / run_script: 1 行 1 コマンド

    ※ すべての操作は (ok, message) を返し、ログに記録する
    """

    def __init__(
        self,
        allocator: Optional[BlockAllocator] = None,
        string_length: int = 1024,
        seed: Optional[int] = None,
        log_size: int = 50,
    ) -> None:
        self.allocator = allocator or BlockAllocator(seed=seed)
        self.queue: Optional[StringQueue] = None
        self.string_length = string_length
        self._rng = random.Random(seed)
        self.log: Deque[str] = deque(maxlen=log_size)

        self._commands: Dict[str, Callable[[List[str]], Result]] = {
            "new": lambda args: self.new(),
            "free": lambda args: self.free(),
            "ih": lambda args: self._insert_command(self.insert_head, args),
            "it": lambda args: self._insert_command(self.insert_tail, args),
            "rh": lambda args: self.remove_head(args[0] if args else None),
            "rhq": lambda args: self.remove_head_quiet(),
            "reverse": lambda args: self.reverse(),
            "sort": lambda args: self.sort(),
            "size": lambda args: self.size(int(args[0]) if args else None),
            "show": lambda args: self.show(),
            "check": lambda args: self.check(),
            "option": self._option_command,
        }

    # -------------------------
    # 生成・解放
    # -------------------------
    def new(self) -> Result:
        if self.queue is not None:
            self._free_current()
        self.queue = sq.new_queue(self.allocator)
        if self.queue is None:
            return self._record(False, "new: allocation failed")
        return self._record(True, "new: empty queue")

    def free(self) -> Result:
        if self.queue is None:
            return self._record(True, "free: no queue")
        self._free_current()
        leaked = self.allocator.live()
        if leaked:
            logger.error("Blocks still live after free: %s", self.allocator.snapshot())
            return self._record(False, f"free: {leaked} blocks still allocated")
        return self._record(True, "free: queue released")

    # -------------------------
    # 追加・取り出し
    # -------------------------
    def insert_head(self, text: str, count: int = 1) -> Result:
        return self._insert(sq.insert_head, "ih", text, count)

    def insert_tail(self, text: str, count: int = 1) -> Result:
        return self._insert(sq.insert_tail, "it", text, count)

    def remove_head(self, expected: Optional[str] = None) -> Result:
        buf = bytearray(self.string_length)
        before = sq.queue_size(self.queue)
        if not sq.remove_head(self.queue, buf, len(buf)):
            return self._record(False, f"rh: {self._failure_reason()}")

        removed = sq.buffer_text(buf)
        if sq.queue_size(self.queue) != before - 1:
            return self._record(False, "rh: size did not drop by one")
        if expected is not None and removed != expected:
            return self._record(False, f"rh: removed {removed!r}, expected {expected!r}")
        ok, problem = self._check_queue()
        if not ok:
            return self._record(False, f"rh: {problem}")
        return self._record(True, f"rh: removed {removed!r}")

    def remove_head_quiet(self) -> Result:
        """バッファなしで取り出す（Queue 側は値を渡していないので False を返す）"""
        before = sq.queue_size(self.queue)
        if sq.remove_head(self.queue):
            return self._record(False, "rhq: reported a delivered value without a buffer")
        if before == 0 or sq.queue_size(self.queue) != before - 1:
            return self._record(False, f"rhq: {self._failure_reason()}")
        return self._record(True, "rhq: removed")

    # -------------------------
    # 並べ替え
    # -------------------------
    def reverse(self) -> Result:
        if self.queue is None:
            return self._record(False, "reverse: queue is absent")
        expected = self.queue.to_list()[::-1]
        sq.reverse(self.queue)
        if self.queue.to_list() != expected:
            return self._record(False, "reverse: order is not inverted")
        ok, problem = self._check_queue()
        return self._record(ok, "reverse: done" if ok else f"reverse: {problem}")

    def sort(self) -> Result:
        if self.queue is None:
            return self._record(False, "sort: queue is absent")
        # sorted() は安定なので、同じ値のノードの順序まで一致するはず
        expected = sorted(self._nodes(), key=lambda node: node.value)
        sq.sort(self.queue)
        actual = self._nodes()
        if len(actual) != len(expected):
            return self._record(False, f"sort: {len(actual)} nodes after sort, expected {len(expected)}")
        for i, (got, want) in enumerate(zip(actual, expected)):
            if got is not want:
                if got.value != want.value:
                    return self._record(False, f"sort: not ascending at position {i}")
                return self._record(False, f"sort: equal values reordered at position {i}")
        ok, problem = self._check_queue()
        return self._record(ok, "sort: done" if ok else f"sort: {problem}")

    # -------------------------
    # 表示・検証
    # -------------------------
    def size(self, expected: Optional[int] = None) -> Result:
        n = sq.queue_size(self.queue)
        if expected is not None and n != expected:
            return self._record(False, f"size: {n}, expected {expected}")
        return self._record(True, f"size: {n}")

    def show(self) -> Result:
        if self.queue is None:
            return self._record(True, "q = NULL")
        return self._record(True, "q = [" + " ".join(self.queue.to_list()) + "]")

    def contents(self) -> Optional[List[str]]:
        return None if self.queue is None else self.queue.to_list()

    def check(self) -> Result:
        ok, problem = self._check_queue()
        return self._record(ok, "check: ok" if ok else f"check: {problem}")

    # -------------------------
    # オプション
    # -------------------------
    def set_fail_probability(self, probability: float) -> Result:
        try:
            self.allocator.set_fail_probability(probability)
        except ValueError as e:
            return self._record(False, f"option fail: {e}")
        return self._record(True, f"option fail: {probability}")

    def set_string_length(self, length: int) -> Result:
        if length < 1:
            return self._record(False, "option length: must be >= 1")
        self.string_length = length
        return self._record(True, f"option length: {length}")

    # -------------------------
    # コマンド
    # -------------------------
    def execute(self, line: str) -> Result:
        line = line.strip()
        if not line or line.startswith("#"):
            return True, ""
        try:
            words = shlex.split(line)
        except ValueError as e:
            return self._record(False, f"{line}: {e}")

        handler = self._commands.get(words[0])
        if handler is None:
            return self._record(False, f"unknown command {words[0]!r}")
        try:
            return handler(words[1:])
        except (ValueError, IndexError) as e:
            return self._record(False, f"{words[0]}: bad arguments ({e})")

    def run_script(self, text: str) -> Result:
        """1 行ずつ実行し、最初の失敗で止める"""
        executed = 0
        for lineno, line in enumerate(text.splitlines(), start=1):
            ok, msg = self.execute(line)
            if not ok:
                return False, f"line {lineno}: {msg}"
            if msg:
                executed += 1
        return True, f"script ok ({executed} commands)"

    # -------------------------
    # 内部
    # -------------------------
    def _insert(self, op: Callable[[Optional[StringQueue], str], bool], name: str, text: str, count: int) -> Result:
        if count < 1:
            return self._record(False, f"{name}: count must be >= 1")
        before = sq.queue_size(self.queue)
        for i in range(count):
            value = self._random_string() if text == RAND_TOKEN else text
            if not op(self.queue, value):
                return self._record(False, f"{name}: insertion {i + 1} of {count} failed, {self._failure_reason()}")
            if sq.queue_size(self.queue) != before + i + 1:
                return self._record(False, f"{name}: size is off after insertion {i + 1}")
        ok, problem = self._check_queue()
        if not ok:
            return self._record(False, f"{name}: {problem}")
        return self._record(True, f"{name}: inserted {count} x {text!r}")

    def _insert_command(self, method: Callable[[str, int], Result], args: List[str]) -> Result:
        count = int(args[1]) if len(args) > 1 else 1
        return method(args[0], count)

    def _option_command(self, args: List[str]) -> Result:
        name, value = args[0], args[1]
        if name == "fail":
            return self.set_fail_probability(float(value))
        if name == "length":
            return self.set_string_length(int(value))
        return self._record(False, f"option: unknown option {name!r}")

    def _free_current(self) -> None:
        sq.free_queue(self.queue)
        self.queue = None

    def _failure_reason(self) -> str:
        if self.queue is None:
            return _STATUS_TEXT[QueueStatus.ABSENT_QUEUE]
        return _STATUS_TEXT.get(self.queue.last_status, self.queue.last_status.value)

    def _random_string(self) -> str:
        n = self._rng.randint(RAND_MIN_LENGTH, RAND_MAX_LENGTH)
        return "".join(self._rng.choice(string.ascii_lowercase) for _ in range(n))

    def _nodes(self) -> List[ListNode]:
        nodes: List[ListNode] = []
        node = None if self.queue is None else self.queue.head
        # 壊れたリストでも止まるように size+1 個で打ち切る
        limit = 0 if self.queue is None else self.queue.size() + 1
        while node is not None and len(nodes) < limit:
            nodes.append(node)
            node = node.next
        return nodes

    def _check_queue(self) -> Tuple[bool, str]:
        q = self.queue
        if q is None:
            return True, ""
        n = q.size()
        if (n == 0) != (q.head is None) or (n == 0) != (q.tail is None):
            return self._violation("head/tail do not agree with size")

        count = 0
        last = None
        node = q.head
        while node is not None:
            count += 1
            if count > n:
                return self._violation(f"chain is longer than size {n} (cycle?)")
            last = node
            node = node.next
        if count != n:
            return self._violation(f"chain has {count} nodes, size says {n}")
        if last is not q.tail:
            return self._violation("tail is not the last node")

        live_nodes = self.allocator.live(BlockKind.NODE)
        if live_nodes != n:
            return self._violation(f"{live_nodes} node blocks live for {n} nodes")
        return True, ""

    def _violation(self, problem: str) -> Tuple[bool, str]:
        logger.error("Queue invariant violated: %s", problem)
        return False, problem

    def _record(self, ok: bool, message: str) -> Result:
        self.log.appendleft(("OK " if ok else "ERR ") + message)
        logger.debug("%s", message)
        return ok, message
