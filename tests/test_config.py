import os

import pytest

from jobrunner.config import Config, JobFailedError, check_results


@pytest.mark.parametrize(
    "source, expected",
    [
        ("/home/act/go/src/github.com/nektos/act", "/home/act/go/src/github.com/nektos/act"),
        ("/home/act/", "/home/act"),
    ],
)
def test_container_path_posix(source, expected):
    config = Config(workdir=source, host_os="linux")
    assert config.container_path(config.workdir) == expected


def test_container_path_relative_resolves_to_cwd():
    config = Config(workdir=".", host_os="linux")
    assert config.container_path(config.workdir) == os.getcwd()


@pytest.mark.parametrize(
    "source, expected",
    [
        ("C:\\Users\\act\\go\\src\\github.com\\nektos\\act\\",
         "/mnt/c/Users/act/go/src/github.com/nektos/act"),
        ("F:\\work\\dir", "/mnt/f/work/dir"),
        ("C:\\Users\\Test Path with Spaces\\MyTestPath",
         "/mnt/c/Users/Test Path with Spaces/MyTestPath"),
    ],
)
def test_container_path_windows(source, expected):
    config = Config(workdir=source, host_os="windows")
    assert config.container_path(config.workdir) == expected


def test_container_path_linux_style_on_windows_is_rejected():
    config = Config(host_os="windows")
    assert config.container_path("/LinuxPathOnWindowsShouldFail") == ""


def test_container_workdir_uses_workdir():
    config = Config(workdir="C:\\Users\\TestPath\\MyTestPath", host_os="windows")
    assert config.container_workdir() == "/mnt/c/Users/TestPath/MyTestPath"


def test_check_results_reports_failed_job():
    with pytest.raises(JobFailedError, match="Job 'ci/test' failed"):
        check_results({"ci/build": "success", "ci/test": "failure"})


def test_check_results_reports_first_failure_in_order():
    runs = [("wf/a", "success"), ("wf/b", "failure"), ("wf/c", "failure")]
    with pytest.raises(JobFailedError) as info:
        check_results(runs)
    assert str(info.value) == "Job 'wf/b' failed"


def test_config_defaults():
    config = Config()
    assert config.env == {}
    assert config.secrets == {}
    assert config.platforms == {}
    assert config.container_cap_add is None