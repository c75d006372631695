from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from siteharden.csp.policy import ContentSecurityPolicy
from siteharden.model.results import PublishResult

ProgressCallback = Callable[[str, dict[str, int | str]], None] | None


class PolicyPublisher(Protocol):
    """Narrow seam between policy assembly and the serving layer."""

    def apply(self, policy: ContentSecurityPolicy) -> PublishResult:  # pragma: no cover - typing
        ...
