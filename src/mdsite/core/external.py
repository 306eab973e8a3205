"""External fenced-block renderers.
A renderer is any callable (kind token, payload) -> markup that raises on failure.
"""

import shlex
import subprocess
from typing import Callable, Optional

import structlog


log = structlog.get_logger(__name__)

ExternalRenderer = Callable[[str, str], str]


class RendererFailure(RuntimeError):
    """An external renderer could not produce markup for a block."""


class CommandRenderer:
    """
    Run a shell command per block: payload on stdin, markup on stdout.

    Args:
        command: Command line; a literal `{token}` argument is replaced by the
            block's kind token (e.g. `node highlight.js {token}`).
        timeout: Seconds before the command is treated as failed.
    """

    def __init__(self, command: str, timeout: float = 30.0):
        self.argv = shlex.split(command)
        self.timeout = timeout

    def __call__(self, token: str, payload: str) -> str:
        argv = [a.replace("{token}", token) for a in self.argv]
        try:
            result = subprocess.run(
                argv,
                input=payload.rstrip('\n'),
                capture_output=True,
                text=True,
                check=True,
                timeout=self.timeout,
            )
        except subprocess.CalledProcessError as e:
            raise RendererFailure(f"{argv[0]} exited {e.returncode}: {e.stderr.strip()}") from e
        except subprocess.TimeoutExpired as e:
            raise RendererFailure(f"{argv[0]} timed out after {self.timeout}s") from e
        except FileNotFoundError as e:
            raise RendererFailure(f"{argv[0]} not found") from e
        log.debug("external_render", command=argv[0], token=token)
        return result.stdout.rstrip('\n')


def command_renderer(command: Optional[str]) -> Optional[CommandRenderer]:
    """Return a CommandRenderer for a configured command, or None when unset."""
    return CommandRenderer(command) if command else None
