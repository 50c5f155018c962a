from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Protocol


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


@dataclass(frozen=True)
class FetchRequest:
    url: str
    method: HttpMethod
    body: Optional[bytes] = None
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RawResponse:
    status: Optional[int]
    headers: Optional[Dict[str, str]]
    body: Optional[bytes]

    @property
    def is_http(self) -> bool:
        return self.status is not None and self.headers is not None


class TransportProtocol(Protocol):
    async def execute(self, request: FetchRequest) -> RawResponse: ...
