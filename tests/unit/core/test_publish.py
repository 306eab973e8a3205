"""Unit tests for core/publish.py"""

import shlex
import sys

import pytest

from mdsite.core.models import BuildIssue, BuildReport, Severity
from mdsite.core.publish import CommandDeployer, publish
from mdsite.errors import PublishError


def _report(*issues: BuildIssue) -> BuildReport:
    return BuildReport(processed=("a",), issues=issues, artifacts=("a/index.html",))


def test_publish_clean_build_invokes_deployer(tmp_path):
    calls = []
    report = _report()
    assert publish(report, tmp_path, lambda root, rep: calls.append((root, rep))) is True
    assert calls == [(tmp_path, report)]


def test_publish_warnings_only_still_deploys(tmp_path):
    calls = []
    report = _report(BuildIssue(severity=Severity.warning, kind="AnnotationWarning", message="w"))
    assert publish(report, tmp_path, lambda root, rep: calls.append(root)) is True
    assert calls == [tmp_path]


def test_publish_never_runs_with_errors(tmp_path):
    """Any recorded error blocks the deployment target."""
    calls = []
    report = _report(BuildIssue(severity=Severity.error, kind="RenderError", message="bad"))
    assert publish(report, tmp_path, lambda root, rep: calls.append(root)) is False
    assert calls == []


def test_publish_without_deployer(tmp_path):
    assert publish(_report(), tmp_path, None) is False


def test_command_deployer_substitutes_output(tmp_path):
    script = "import pathlib, sys; pathlib.Path(sys.argv[1], 'deployed').write_text('ok')"
    deployer = CommandDeployer(f"{shlex.quote(sys.executable)} -c {shlex.quote(script)} {{output}}")
    deployer(tmp_path, _report())
    assert (tmp_path / "deployed").read_text() == "ok"


def test_command_deployer_failure(tmp_path):
    deployer = CommandDeployer(f"{shlex.quote(sys.executable)} -c 'import sys; sys.exit(4)'")
    with pytest.raises(PublishError, match="exited 4"):
        deployer(tmp_path, _report())


def test_report_exit_codes():
    assert _report().exit_code == 0
    assert _report(BuildIssue(severity=Severity.error, kind="IOError", message="x")).exit_code == 1
    assert _report().artifact_count == 1
