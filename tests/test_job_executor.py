from dataclasses import dataclass

import pytest

from jobrunner.job_executor import InvalidStepError, JobState, new_job_executor, pipeline


@dataclass
class StepModel:
    id: str = ""

    def __str__(self):
        return f"step {self.id}"


class FakeStep:
    def __init__(self, model, order, has_pre, has_post, fails, seen_extra):
        self.model = model
        self.order = order
        self.has_pre = has_pre
        self.has_post = has_post
        self.fails = fails
        self.seen_extra = seen_extra

    def pre(self, state):
        if self.has_pre:
            self.order.append("pre" + self.model.id)

    def main(self, state):
        self.order.append("step" + self.model.id)
        self.seen_extra.append(dict(state.logger.extra))
        if self.fails:
            raise RuntimeError("error")

    def post(self, state):
        if self.has_post:
            self.order.append("post" + self.model.id)


class FakeFactory:
    def __init__(self, order, pre_flags, post_flags, fails):
        self.order = order
        self.pre_flags = pre_flags
        self.post_flags = post_flags
        self.fails = fails
        self.calls = []
        self.seen_extra = []

    def new_step(self, model, run_context):
        index = len(self.calls)
        self.calls.append((model, run_context))
        return FakeStep(model, self.order, self.pre_flags[index], self.post_flags[index],
                        self.fails, self.seen_extra)


class FakeInfo:
    def __init__(self, steps, order, start_error=None):
        self.steps = steps
        self.matrix = {}
        self.order = order
        self.results = []
        self.start_error = start_error

    def start_container(self, state):
        self.order.append("startContainer")
        if self.start_error is not None:
            raise self.start_error

    def stop_container(self, state):
        self.order.append("stopContainer")

    def close_container(self, state):
        self.order.append("closeContainer")

    def interpolate_outputs(self, state):
        self.order.append("interpolateOutputs")

    def result(self, result):
        self.results.append(result)


CASES = [
    ("zeroSteps", [], [], [], [], None, False),
    ("stepWithoutPrePost", ["1"], [False], [False],
     ["startContainer", "step1", "stopContainer", "interpolateOutputs", "closeContainer"],
     "success", False),
    ("stepWithFailure", ["1"], [False], [False],
     ["startContainer", "step1", "interpolateOutputs", "closeContainer"],
     "failure", True),
    ("stepWithPre", ["1"], [True], [False],
     ["startContainer", "pre1", "step1", "stopContainer", "interpolateOutputs",
      "closeContainer"],
     "success", False),
    ("stepWithPost", ["1"], [False], [True],
     ["startContainer", "step1", "post1", "stopContainer", "interpolateOutputs",
      "closeContainer"],
     "success", False),
    ("stepWithPreAndPost", ["1"], [True], [True],
     ["startContainer", "pre1", "step1", "post1", "stopContainer", "interpolateOutputs",
      "closeContainer"],
     "success", False),
    ("stepsWithPreAndPost", ["1", "2", "3"], [True, False, True], [False, True, True],
     ["startContainer", "pre1", "pre3", "step1", "step2", "step3", "post3", "post2",
      "stopContainer", "interpolateOutputs", "closeContainer"],
     "success", False),
]


@pytest.mark.parametrize(
    "name, ids, pre_flags, post_flags, expected_order, result, has_error", CASES,
    ids=[case[0] for case in CASES])
def test_new_job_executor(name, ids, pre_flags, post_flags, expected_order, result, has_error):
    order = []
    models = [StepModel(id=step_id) for step_id in ids]
    info = FakeInfo(models, order)
    factory = FakeFactory(order, pre_flags, post_flags, has_error)
    run_context = object()

    executor = new_job_executor(info, factory, run_context)
    state = JobState()
    executor(state)

    assert order == expected_order
    assert info.results == ([result] if result else [])
    assert factory.calls == [(model, run_context) for model in models]
    assert (state.error is not None) == has_error


def test_nil_step_is_reported():
    info = FakeInfo([None], [])
    executor = new_job_executor(info, FakeFactory([], [False], [False], False), object())
    with pytest.raises(InvalidStepError, match="invalid Step 0: missing run or uses key"):
        executor(JobState())


def test_factory_error_is_raised_when_run():
    class BrokenFactory:
        def new_step(self, model, run_context):
            raise ValueError("Invalid run/uses syntax")

    order = []
    executor = new_job_executor(FakeInfo([StepModel("1")], order), BrokenFactory(), object())
    assert order == []
    with pytest.raises(ValueError, match="Invalid run/uses syntax"):
        executor(JobState())


def test_missing_step_ids_default_to_index():
    models = [StepModel(), StepModel()]
    order = []
    factory = FakeFactory(order, [False, False], [False, False], False)
    new_job_executor(FakeInfo(models, order), factory, object())(JobState())
    assert [model.id for model in models] == ["0", "1"]
    assert "step0" in order and "step1" in order


def test_main_runs_with_step_logger():
    order = []
    factory = FakeFactory(order, [False], [False], False)
    state = JobState()
    new_job_executor(FakeInfo([StepModel("7")], order), factory, object())(state)
    assert factory.seen_extra == [{"step": "step 7"}]
    assert state.logger.extra == {}


def test_cancelled_job_fails():
    order = []
    info = FakeInfo([StepModel("1")], order)
    state = JobState(cancelled=True)
    new_job_executor(info, FakeFactory(order, [False], [False], False), object())(state)
    assert info.results == ["failure"]
    assert "stopContainer" not in order


def test_cleanup_runs_when_start_fails():
    order = []
    info = FakeInfo([StepModel("1")], order, start_error=RuntimeError("no image"))
    executor = new_job_executor(info, FakeFactory(order, [False], [False], False), object())
    with pytest.raises(RuntimeError, match="no image"):
        executor(JobState())
    assert order == ["startContainer", "interpolateOutputs", "closeContainer"]
    assert info.results == []


def test_pipeline_stops_at_first_error_and_skips_none():
    calls = []

    def first(state):
        calls.append("first")

    def failing(state):
        calls.append("failing")
        raise RuntimeError("boom")

    def never(state):
        calls.append("never")

    with pytest.raises(RuntimeError, match="boom"):
        pipeline(first, None, failing, never)(JobState())
    assert calls == ["first", "failing"]