from dataclasses import dataclass, field
from typing import Mapping


DEFAULT_USER_AGENT = "fetchlib/1.0 (+https://example.com; contact: fetchlib@example.com)"


@dataclass(frozen=True)
class FetchConfig:
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = 15.0
    connect_timeout: float = 5.0
    max_connections: int = 16
    num_pools: int = 8
    max_redirects: int = 5
    default_headers: Mapping[str, str] = field(default_factory=dict)
    # Data errors drop the status code unless this is set.
    keep_status_on_data_error: bool = False
