from dataclasses import dataclass, field
from typing import Callable

from .errors import CloseError
from .progress import ProgressSink, null_sink


@dataclass
class CloseReport:
    """Failures collected while releasing resources. Empty means clean shutdown."""

    errors: list[CloseError] = field(default_factory=list)

    def add(self, error: CloseError) -> None:
        self.errors.append(error)

    @property
    def ok(self) -> bool:
        return not self.errors

    def __len__(self) -> int:
        return len(self.errors)

    def __str__(self) -> str:
        return "; ".join(str(error) for error in self.errors)


class Teardown:
    """
    Ordered registry of acquired resources.

    Resources are registered in acquisition order and closed in reverse
    order by close_all(). Every close has its own error boundary, so a
    failing resource never stops the ones after it from being closed.
    """

    def __init__(self, progress: ProgressSink = null_sink):
        self._progress = progress
        self._resources: list[tuple[str, Callable[[], None]]] = []
        self._report: CloseReport | None = None

    def register(self, kind: str, close: Callable[[], None]) -> None:
        if self._report is not None:
            raise RuntimeError(f"Cannot register '{kind}' after teardown has run.")
        self._resources.append((kind, close))

    @property
    def kinds(self) -> list[str]:
        return [kind for kind, _ in self._resources]

    def close_all(self) -> CloseReport:
        if self._report is not None:
            return self._report

        self._report = CloseReport()
        self._progress("DEBUG", "closing the resources...")
        for kind, close in reversed(self._resources):
            self._progress("DEBUG", f"   closing {kind}...")
            try:
                close()
            except Exception as e:
                self._report.add(CloseError(kind, e))

        if not self._report.ok:
            self._progress(
                "WARNING",
                f"{len(self._report)} resource(s) could not be closed cleanly: {self._report}",
            )
        return self._report
