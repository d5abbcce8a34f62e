"""Routing of buckets to the credentialed S3 clients that serve them."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Union

from .exceptions import NoClientForBucketError
from .settings import S3Settings


@dataclass(frozen=True)
class SingleClient:
    """One client shared by every bucket."""

    client: Any

    def resolve(self, bucket: str) -> Any:
        return self.client


@dataclass(frozen=True)
class BucketClients:
    """One client per bucket."""

    clients: Mapping[str, Any]

    def __post_init__(self) -> None:
        object.__setattr__(self, "clients", MappingProxyType(dict(self.clients)))

    def resolve(self, bucket: str) -> Any:
        client = self.clients.get(bucket)
        if client is None:
            raise NoClientForBucketError(bucket)
        return client


ClientRouting = Union[SingleClient, BucketClients]


def routing_from_value(value: ClientRouting | Mapping[str, Any] | S3Settings | Any) -> ClientRouting:
    """Turn what the caller passed into an explicit routing variant.

    Parameters
    ----------
    value : ClientRouting | Mapping[str, Any] | S3Settings | Any
        An existing routing, a ``{bucket: client}`` mapping, :class:`S3Settings`
        (which creates one client), or a single boto3 S3 client.

    Returns
    -------
    ClientRouting
    """
    if isinstance(value, (SingleClient, BucketClients)):
        return value
    if isinstance(value, S3Settings):
        return SingleClient(value.create_client())
    if isinstance(value, Mapping):
        return BucketClients(value)
    if value is None:
        raise ValueError("An S3 client, a mapping of bucket to client, or S3Settings is required")
    return SingleClient(value)


def resolve_client(routing: ClientRouting, bucket: str) -> Any:
    """Return the client responsible for *bucket*.

    Raises
    ------
    NoClientForBucketError
        If *routing* maps buckets to clients and has none for *bucket*.
    """
    return routing.resolve(bucket)
