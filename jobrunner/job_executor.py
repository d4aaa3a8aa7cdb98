"""Assembly of a job's steps into one executable pipeline."""

from __future__ import annotations

import logging
from concurrent.futures import CancelledError
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Optional, Protocol, Sequence

Executor = Callable[["JobState"], None]

_log = logging.getLogger("jobrunner")


class InvalidStepError(ValueError):
    """Raised when a job lists a step that has neither ``run`` nor ``uses``."""


def _default_logger() -> logging.LoggerAdapter:
    return logging.LoggerAdapter(_log, {})


@dataclass
class JobState:
    """Shared state of one running job: its logger and its first failure."""

    logger: logging.LoggerAdapter = field(default_factory=_default_logger)
    error: Optional[BaseException] = None
    cancelled: bool = False

    def fail(self, error: BaseException) -> None:
        """Record ``error`` as the job's error."""
        self.error = error

    @contextmanager
    def step_logger(self, step_name: str) -> Iterator[logging.LoggerAdapter]:
        """Tag log records with ``step_name`` for the duration of the block."""
        previous = self.logger
        extra = dict(previous.extra or {})
        extra["step"] = step_name
        self.logger = logging.LoggerAdapter(previous.logger, extra)
        try:
            yield self.logger
        finally:
            self.logger = previous


class Step(Protocol):
    """A step with pre, main and post phases."""

    def pre(self, state: JobState) -> None:
        ...

    def main(self, state: JobState) -> None:
        ...

    def post(self, state: JobState) -> None:
        ...


class StepFactory(Protocol):
    """Builds a runnable step from a step model."""

    def new_step(self, step_model: Any, run_context: Any) -> Step:
        ...


class JobInfo(Protocol):
    """What the job executor needs to know about and do for a job."""

    matrix: Mapping[str, Any]
    steps: Sequence[Any]

    def start_container(self, state: JobState) -> None:
        ...

    def stop_container(self, state: JobState) -> None:
        ...

    def close_container(self, state: JobState) -> None:
        ...

    def interpolate_outputs(self, state: JobState) -> None:
        ...

    def result(self, result: str) -> None:
        ...


def pipeline(*executors: Optional[Executor]) -> Executor:
    """Run executors in order, stopping at the first that raises; ``None`` is skipped."""
    chain = [executor for executor in executors if executor is not None]

    def run(state: JobState) -> None:
        for executor in chain:
            executor(state)

    return run


def _guarded(main: Executor, step_name: str) -> Executor:
    """Run a step's main phase, recording failures on the job instead of raising."""

    def run(state: JobState) -> None:
        with state.step_logger(step_name) as logger:
            try:
                main(state)
            except Exception as err:  # noqa: BLE001 - a failed step fails the job
                logger.error("%s", err)
                state.fail(err)
            else:
                if state.cancelled:
                    cancelled = CancelledError("job cancelled")
                    logger.error("%s", cancelled)
                    state.fail(cancelled)

    return run


def new_job_executor(info: JobInfo, step_factory: StepFactory, run_context: Any) -> Executor:
    """Build the executor that runs every phase of every step of a job.

    A step that cannot be built makes the executor raise its error when run.
    """
    step_models = list(info.steps)
    if not step_models:
        def no_steps(state: JobState) -> None:
            state.logger.debug("No steps found")

        return no_steps

    def log_matrix(state: JobState) -> None:
        if info.matrix:
            state.logger.info("\U0001F9EA  Matrix: %s", dict(info.matrix))

    pre_steps: list[Executor] = [info.start_container]
    main_steps: list[Executor] = [log_matrix]
    post_steps: list[Executor] = []
    setup_error: Optional[BaseException] = None

    for index, step_model in enumerate(step_models):
        if step_model is None:
            setup_error = InvalidStepError(f"invalid Step {index}: missing run or uses key")
            break
        if not step_model.id:
            step_model.id = str(index)
        try:
            step = step_factory.new_step(step_model, run_context)
        except Exception as err:  # noqa: BLE001 - reported when the job runs
            setup_error = err
            break
        pre_steps.append(step.pre)
        main_steps.append(_guarded(step.main, str(step_model)))
        post_steps.insert(0, step.post)

    def conclude(state: JobState) -> None:
        if state.error is not None:
            info.result("failure")
        else:
            info.stop_container(state)
            info.result("success")

    post_steps.append(conclude)
    job = pipeline(*pre_steps, *main_steps, *post_steps)

    def run(state: JobState) -> None:
        if setup_error is not None:
            raise setup_error
        try:
            try:
                job(state)
            finally:
                info.interpolate_outputs(state)
        finally:
            info.close_container(state)

    return run