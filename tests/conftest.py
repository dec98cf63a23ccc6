"""Shared fixtures for the queue tests."""

import logging

import pytest

from allocator import BlockAllocator
from app import create_app
from queue_harness import QueueHarness
from string_queue import new_queue

logger = logging.getLogger(__name__)


@pytest.fixture
def allocator():
    return BlockAllocator(seed=1234)


@pytest.fixture
def queue(allocator):
    q = new_queue(allocator)
    assert q is not None
    yield q
    q.free()


@pytest.fixture
def harness(allocator):
    return QueueHarness(allocator=allocator, string_length=64, seed=42)


@pytest.fixture
def client():
    app = create_app({"TESTING": True, "QUEUE_SEED": 7, "QUEUE_STRING_LENGTH": 64})
    with app.test_client() as c:
        yield c

