"""Publish trigger: hand a cleanly built output root to a deployment target"""

import shlex
import subprocess
from pathlib import Path
from typing import Callable, Optional

import structlog

from mdsite.core.models import BuildReport
from mdsite.errors import PublishError


log = structlog.get_logger(__name__)

Deployer = Callable[[Path, BuildReport], None]


class CommandDeployer:
    """Run a deployment command; a literal `{output}` argument becomes the output root."""

    def __init__(self, command: str):
        self.argv = shlex.split(command)

    def __call__(self, output_root: Path, report: BuildReport) -> None:
        argv = [a.replace("{output}", str(output_root)) for a in self.argv]
        try:
            subprocess.run(argv, capture_output=True, text=True, check=True)
        except subprocess.CalledProcessError as e:
            raise PublishError(f"{argv[0]} exited {e.returncode}: {e.stderr.strip()}") from e
        except FileNotFoundError as e:
            raise PublishError(f"{argv[0]} not found") from e


def publish(report: BuildReport, output_root: Path, deployer: Optional[Deployer]) -> bool:
    """Invoke deployer only for an error-free build. Returns whether it ran."""
    if deployer is None:
        return False
    if not report.ok:
        log.warning("publish_blocked", errors=len(report.errors))
        return False
    log.info("publish_started", output=str(output_root))
    deployer(output_root, report)
    log.info("publish_finished", output=str(output_root))
    return True
