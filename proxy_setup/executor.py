import contextlib
import logging
import subprocess
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from proxy_setup.errors import SetupError, StepError
from proxy_setup.models import ProvisioningStep
from proxy_setup.runner import CommandResult
from proxy_setup.ui import console

logger = logging.getLogger(__name__)


def _output_text(output: Union[bytes, str, None]) -> str:
    if isinstance(output, bytes):
        return output.decode(errors="replace").strip()
    return (output or "").strip()


@dataclass
class StepOutcome:
    description: str
    status: str = "pending"
    elapsed: Optional[float] = None
    message: str = ""


class StepExecutor:
    """
    Runs provisioning steps strictly in order.

    The first failing step aborts the run: the error is raised and no later
    step is started. Steps are expected to be idempotent so the whole plan can
    be re-run once the cause is fixed by hand. There is no rollback and no
    timeout handling.
    """

    def __init__(self, dry_run: bool = False, show_progress: bool = True):
        self.dry_run = dry_run
        self.show_progress = show_progress
        self.outcomes: List[StepOutcome] = []

    def run(self, steps: Iterable[ProvisioningStep]) -> List[StepOutcome]:
        steps = list(steps)
        outcomes = [StepOutcome(step.description) for step in steps]
        self.outcomes.extend(outcomes)
        for step, outcome in zip(steps, outcomes):
            if self.dry_run:
                outcome.status = "skipped"
                outcome.message = "dry run"
                logger.info(f"Dry run, skipping: {step.description}")
                continue
            self._execute(step, outcome)
        return outcomes

    def _spinner(self, step: ProvisioningStep):
        if self.show_progress and not step.interactive:
            return console.status(f"[bold nord8]{step.description}...[/]")
        return contextlib.nullcontext()

    def _execute(self, step: ProvisioningStep, outcome: StepOutcome) -> None:
        logger.debug(f"Starting step: {step.description}")
        start = time.time()
        try:
            with self._spinner(step):
                try:
                    result = step.action()
                except subprocess.CalledProcessError as e:
                    raise StepError(step.description, e.returncode, _output_text(e.stderr or e.output))
                except OSError as e:
                    raise StepError(step.description, None, str(e))
            if isinstance(result, CommandResult) and not result.ok:
                raise StepError(step.description, result.returncode, result.stderr.strip())
        except SetupError as e:
            outcome.elapsed = time.time() - start
            outcome.status = "failed"
            outcome.message = str(e)
            console.print(f"[nord11][✗] {step.description} failed in {outcome.elapsed:.2f}s[/]")
            logger.error(str(e))
            raise
        outcome.elapsed = time.time() - start
        outcome.status = "success"
        console.print(f"[nord14][✓] {step.description} completed in {outcome.elapsed:.2f}s[/]")
        logger.debug(f"Step succeeded: {step.description}")
