"""Notification sinks for long-running payment jobs.

The repair jobs report start, periodic progress and completion through a
``Notifier``. Delivery is best effort from the job's point of view: the job
never inspects the result.
"""

from typing import Protocol

from rich.console import Console

from ...utils.logging import get_logger
from ..domain.enums import NotificationKind

logger = get_logger(__name__)


class Notifier(Protocol):
    """Anything that can deliver a job notification to a user."""

    def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        title: str,
        message: str,
        progress: int | None = None,
    ) -> None: ...


class LoggingNotifier:
    """Writes notifications to the structured log."""

    def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        title: str,
        message: str,
        progress: int | None = None,
    ) -> None:
        log = logger.error if kind is NotificationKind.ERROR else logger.info
        log(
            "job_notification",
            user_id=user_id,
            kind=kind.value,
            title=title,
            message=message,
            progress=progress,
        )


class ConsoleNotifier:
    """Prints notifications to the terminal with Rich."""

    _STYLES = {
        NotificationKind.PROGRESS: "cyan",
        NotificationKind.SUCCESS: "green",
        NotificationKind.ERROR: "red",
    }

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def notify(
        self,
        user_id: str,
        kind: NotificationKind,
        title: str,
        message: str,
        progress: int | None = None,
    ) -> None:
        style = self._STYLES[kind]
        suffix = f" [dim]({progress}%)[/]" if progress is not None else ""
        self.console.print(f"[{style}]{title}[/]: {message}{suffix}")
