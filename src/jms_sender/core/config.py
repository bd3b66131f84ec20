from dataclasses import dataclass


DEFAULT_CONTEXT_FACTORY = "pulsar"
DEFAULT_PROTOCOL = "pulsar"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 6650
DEFAULT_USER = "admin"


@dataclass(frozen=True)
class ConnectionConfig:
    """
    Where and as whom to connect. Built once from the command line and
    never modified afterwards.
    """

    protocol: str
    host: str
    port: int
    principal: str
    credential: str
    context_factory: str = DEFAULT_CONTEXT_FACTORY

    @property
    def provider_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    def __repr__(self) -> str:
        return (
            f"ConnectionConfig(url={self.provider_url!r}, principal={self.principal!r}, "
            f"context_factory={self.context_factory!r})"
        )
