from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class TextMessage:
    """
    Represents a single, immutable text message handed to the broker.
    Only a BrokerSession creates one, right before it is sent.
    """

    text: str

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def payload(self) -> bytes:
        return self.text.encode("utf-8")
