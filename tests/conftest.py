"""Shared fixtures for udprelay tests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterator

import pytest

from udprelay import DatagramInbox, ListenerConfig, ListenerController, QueueSink

from tests.utils import reserve_port


@pytest.fixture(autouse=True)
def reset_udprelay_logger() -> Iterator[None]:
    yield
    logger = logging.getLogger("udprelay")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def free_port() -> int:
    return reserve_port()


@pytest.fixture
def fast_config() -> ListenerConfig:
    return ListenerConfig(poll_interval=0.02, error_backoff=0.01)


@pytest.fixture
def sink() -> QueueSink:
    return QueueSink()


@pytest.fixture
async def controller(
    sink: QueueSink, fast_config: ListenerConfig
) -> AsyncIterator[ListenerController]:
    ctrl = ListenerController(sink, config=fast_config)
    yield ctrl
    await ctrl.stop()


@pytest.fixture
async def receiver() -> AsyncIterator[tuple[int, DatagramInbox]]:
    """A bare bound endpoint whose inbox collects raw datagrams."""
    loop = asyncio.get_running_loop()
    transport, inbox = await loop.create_datagram_endpoint(
        DatagramInbox, local_addr=("127.0.0.1", 0)
    )
    port = transport.get_extra_info("sockname")[1]
    yield port, inbox
    transport.close()
