from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path

from siteharden.csp.policy import ContentSecurityPolicy, rewrite_config
from siteharden.ingest.file_io import atomic_write_text, read_text
from siteharden.model.options import DEFAULT_RELOAD_COMMAND, CspUpdateMode
from siteharden.model.results import PublishResult, PublishStatus

logger = logging.getLogger(__name__)


class PolicyPublishError(RuntimeError):
    pass


class NginxPolicyPublisher:
    """Write the policy into an nginx snippet and reload the server.

    - conf_path: snippet holding the security headers
    - mode: whole-header or per-directive rewrite
    - reload_command: argv run after writing; None disables the reload

    A missing snippet is expected outside the production host (CI, local
    builds) and yields a ``skipped`` result. A failed reload raises
    :class:`PolicyPublishError`: the file on disk then no longer matches the
    policy being served.
    """

    def __init__(
        self,
        conf_path: Path,
        *,
        mode: CspUpdateMode = CspUpdateMode.HEADER,
        reload_command: Sequence[str] | None = DEFAULT_RELOAD_COMMAND,
    ) -> None:
        self.conf_path = conf_path
        self.mode = mode
        self.reload_command = list(reload_command) if reload_command else None

    def apply(self, policy: ContentSecurityPolicy) -> PublishResult:
        if not self.conf_path.exists():
            logger.info("Skipping nginx update: %s not found (likely CI environment).", self.conf_path)
            return PublishResult(
                status=PublishStatus.SKIPPED,
                target=self.conf_path,
                message=f"{self.conf_path} not found",
            )

        logger.info("Updating %s", self.conf_path)
        try:
            original = read_text(self.conf_path)
            updated = rewrite_config(original, policy, self.mode)
            if updated != original:
                atomic_write_text(self.conf_path, updated)
        except OSError as exc:
            raise PolicyPublishError(f"Could not update {self.conf_path}: {exc}") from exc
        logger.info("nginx configuration updated.")

        if self.reload_command is None:
            return PublishResult(status=PublishStatus.APPLIED, target=self.conf_path)

        self._reload()
        return PublishResult(status=PublishStatus.APPLIED, target=self.conf_path, reloaded=True)

    def _reload(self) -> None:
        assert self.reload_command is not None
        try:
            subprocess.run(self.reload_command, capture_output=True, text=True, check=True)
        except subprocess.CalledProcessError as exc:
            raise PolicyPublishError(
                f"Reload failed (exit {exc.returncode}): {exc.stderr or exc.stdout}"
            ) from exc
        except OSError as exc:
            raise PolicyPublishError(f"Reload command could not be started: {exc}") from exc
        logger.info("nginx reloaded successfully.")


__all__ = [
    "NginxPolicyPublisher",
    "PolicyPublishError",
]
