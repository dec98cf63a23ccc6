from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class BlockKind(Enum):
    QUEUE = "QUEUE"
    NODE = "NODE"
    STRING = "STRING"


class QueueStatus(Enum):
    OK = "OK"
    ABSENT_QUEUE = "ABSENT_QUEUE"
    ALLOCATION_FAILURE = "ALLOCATION_FAILURE"
    EMPTY_QUEUE = "EMPTY_QUEUE"
    INVALID_VALUE = "INVALID_VALUE"         # str 以外は格納しない
    OUTPUT_TRUNCATED = "OUTPUT_TRUNCATED"   # 切り詰め（エラーではない）


@dataclass(eq=False)
class ListNode:
    value: str
    next: Optional["ListNode"] = None   # 次ノード（所有リンク）

    def __repr__(self) -> str:
        # リストが長くなるので next は辿らない
        return f"ListNode({self.value!r})"
