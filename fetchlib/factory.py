"""Construction helpers and the process-wide shared :class:`Fetcher`.

Prefer ``create_fetcher`` with an explicit config. The shared instance is for
call sites that have nowhere to hold one, and for tests that swap its transport.
"""

import logging
import threading
from typing import Optional

from .config import FetchConfig
from .fetcher import Fetcher
from .net import UrllibTransport
from .types import TransportProtocol


logger = logging.getLogger(__name__)

_shared: Optional[Fetcher] = None
# Transport the factory built itself and so may close on replacement.
_owned: Optional[UrllibTransport] = None
_lock = threading.Lock()


def create_fetcher(config: FetchConfig | None = None, transport: TransportProtocol | None = None) -> Fetcher:
    return Fetcher(config=config, transport=transport)


def get_fetcher() -> Fetcher:
    global _shared, _owned
    with _lock:
        if _shared is None:
            _shared = Fetcher()
            _owned = _shared.transport
        return _shared


def _replace(fetcher: Fetcher, transport: TransportProtocol, owned: Optional[UrllibTransport]) -> None:
    global _owned
    with _lock:
        previous = fetcher.transport
        fetcher.set_transport(transport)
        if previous is _owned and previous is not transport:
            previous.close()
        _owned = owned


def set_transport(transport: TransportProtocol) -> None:
    _replace(get_fetcher(), transport, None)
    logger.debug("Shared fetcher transport set to %s", type(transport).__name__)


def reset_transport() -> None:
    fetcher = get_fetcher()
    transport = UrllibTransport(fetcher.config)
    _replace(fetcher, transport, transport)
    logger.debug("Shared fetcher transport reset to default")
