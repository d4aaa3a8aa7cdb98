# jobrunner

`jobrunner` is a library of building blocks for running CI workflow jobs on
your own machine. It handles `${{ ... }}` expressions, puts the steps of a job
together into one pipeline, formats job log output, names containers and works
out their volumes, and builds the `github` context and the environment
variables that come from it. It has no command-line entry point. You import it
as a library.

## Installation

```
pip install .
```

To install the test dependencies as well:

```
pip install ".[test]"
```

## Modules

### `jobrunner.expression`

- `rewrite_sub_expression(text, force_format=False)` turns text that contains
  `${{ ... }}` blocks into a single `format('...', ...)` expression. If the text
  is exactly one expression it is returned unchanged, unless `force_format` is
  set. An unclosed string or expression raises `ExpressionError`.
- `escape_format_string(text)` doubles every `{` and `}`.
- `ExpressionEvaluator(interpreter)` wraps an interpreter object. That object
  must have a method `evaluate(expression, is_if_expression)`.
  - `evaluate` passes an expression through to the interpreter.
  - `interpolate` replaces the expressions in a string. If evaluation fails, the
    error is logged and an empty string is returned. If the result is not a
    string, `ExpressionError` is raised.
  - `evaluate_yaml_node` evaluates the expressions inside a PyYAML node and
    returns the node to use in its place. Keys that match `${{ insert }}` have
    their mapping merged into the parent. List items that evaluate to a list
    are spliced into the parent list.
- `eval_bool(evaluator, expression, truthy)` evaluates an `if:` condition and
  judges the result with the `truthy` callable you pass in.

### `jobrunner.logger`

- `JobLogFormatter(color, masker, stream=None)` is a `logging.Formatter`. It
  writes `[job] message` lines and honours the `raw_output` and `dryrun` record
  attributes. It adds ANSI colour when the stream is a terminal, or when
  `CLICOLOR_FORCE` or `CLICOLOR` ask for it (see `is_colored`).
- `JsonJobLogFormatter(masker)` writes each record as one JSON object. The
  object has the fields `job`, `dryrun`, `step`, `raw_output`, `level`, `msg`
  and `time`.
- `value_masker(insecure_secrets, secrets, masks=None)` returns a function that
  replaces secret values and mask values with `***`. The `masks` collection is
  read again on every call.
- `next_color()` returns the next colour in turn from a fixed palette. It is
  safe to call from several threads.

### `jobrunner.job_executor`

- `pipeline(*executors)` runs callables in order and skips any that are `None`.
  Each callable takes a `JobState`.
- `JobState` holds a job's logger adapter, its recorded error and a cancelled
  flag.
- `new_job_executor(info, step_factory, run_context)` builds the executor for a
  job. The executor runs in this order:
  1. start the container
  2. every step's pre phase
  3. log the matrix
  4. every step's main phase
  5. the post phases, in reverse order
  6. stop the container and record the result, `"success"` or `"failure"`
  7. interpolate outputs and close the container, which always happen

  A failing main phase is logged and recorded on the `JobState`; it is not
  raised. A missing step raises `InvalidStepError` when the job runs.

### `jobrunner.steps`

- `RemoteAction` and `new_remote_action(action)` parse `org/repo[/path]@ref`.
  `new_remote_action` returns `None` if there is no ref.
- `action_cache_name(uses)` gives the directory name an action is cached under.
- `merge_into_map(target, *maps)` copies entries into `target`.
- `apply_path(env, extra_path)` sets a default `PATH` and puts the extra
  entries in front of it.
- `get_script_name(step_id, parent_steps)` names a step's script file.
- `wrap_script(shell, script, name)` adds the file extension and the
  prologue and epilogue for `bash`, `sh`, `pwsh`, `powershell`, `cmd` and
  `python`.

### `jobrunner.config`

- `Config` holds the runner settings. `container_path` and `container_workdir`
  map host paths to container paths. On Windows hosts, `C:\path` becomes
  `/mnt/c/path`.
- `check_results(runs)` raises `JobFailedError` for the first run whose result
  is `"failure"`.

### `jobrunner.containers`

- `create_container_name(*parts)` and `trim_to_len(text, length)` build
  container names. A trailing `-<number>` on a part is kept.
- `binds_and_mounts(config, container_name, volumes=(), selinux_enabled=None, platform=None)`
  returns the binds and named-volume mounts for a job container. These cover
  the Docker socket, the tool cache, the environment volume, the job's volumes
  and the working directory.
- `ACT_PATH` is the directory inside the container where workflow files live.

### `jobrunner.context`

- `GithubContext` holds the values of the `github` context.
  - `apply_defaults` fills in the run id, run number, retention days, perflog,
    actor and repository owner. For `pull_request` events it also fills in the
    base and head refs.
  - `set_ref_type` derives `ref_type` and `ref_name` from a tag or branch ref.
- `github_env(github, job_name, github_instance="github.com")` builds the
  `GITHUB_*` and `RUNNER_*` variables. For other instances the server, API and
  GraphQL URLs point at that instance.
- `image_os(labels)` derives the `ImageOS` value from the `runs-on` labels.
- `merge_maps`, `nested_map_lookup` and `as_string` are small helpers for
  dictionaries and values.

## Example

```python
from jobrunner.expression import rewrite_sub_expression
from jobrunner.steps import new_remote_action

rewrite_sub_expression("Hello ${{ 'World' }}", False)
# "format('Hello {0}', 'World')"

action = new_remote_action("actions/checkout@v3")
action.is_checkout()   # True
action.clone_url()     # "https://github.com/actions/checkout"
```

## What it does not do

- It has no expression interpreter of its own. `ExpressionEvaluator` needs one
  passed in.
- It does not read or plan workflow files.
- It does not talk to a container engine.
- It does not clone action repositories.
- It has no command to run workflows.

The steps, job information and containers that `new_job_executor` drives are
supplied by the caller.

## Running the tests

```
pytest
```