"""Integration tests for the CLI commands (build, check, tags, init)"""

import json

from typer.testing import CliRunner

from mdsite.cli.cli import app


runner = CliRunner()


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "build" in result.output


def test_build_cmd_writes_site(tmp_path, write_doc, first_post):
    """build writes one index.html per page plus listings and a JSON report."""
    write_doc("posts/first-post.md", first_post)

    result = runner.invoke(app, [
        "build", "content",
        "--out-dir", str(tmp_path / "dist"),
        "--report", str(tmp_path / "report.json"),
    ])

    assert result.exit_code == 0, result.output
    assert (tmp_path / "dist/posts/first-post/index.html").exists()
    assert (tmp_path / "dist/index.html").exists()
    report = json.loads((tmp_path / "report.json").read_text())
    assert report["processed"] == ["posts/first-post"]
    assert report["artifact_count"] == len(report["artifacts"])
    assert "Build succeeded" in result.output


def test_build_cmd_reports_failing_documents(write_doc):
    """A document error gives exit code 1 and names the document and error kind."""
    write_doc("good.md", "Fine.\n")
    write_doc("bad.md", "| a | b |\n|---|---|\n| 1 |\n")

    result = runner.invoke(app, ["build", "content"])

    assert result.exit_code == 1
    assert "error [RenderError] bad.md" in result.output
    assert "Build failed" in result.output


def test_build_cmd_lists_warnings_and_exits_zero(write_doc):
    write_doc("a.md", "```klingon\nQapla'\n```\n")
    result = runner.invoke(app, ["build", "content"])
    assert result.exit_code == 0
    assert "warning [AnnotationWarning] a.md" in result.output


def test_build_cmd_missing_content_dir():
    result = runner.invoke(app, ["build", "nowhere"])
    assert result.exit_code == 2


def test_build_cmd_publish(tmp_path, write_doc):
    """--publish runs the deploy command against the output directory after a clean build."""
    write_doc("a.md", "A\n")
    result = runner.invoke(app, [
        "build", "content", "--publish",
        "--deploy-cmd", "cp -r {output} " + str(tmp_path / "deployed"),
    ])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "deployed/a/index.html").exists()


def test_build_cmd_publish_blocked_by_errors(tmp_path, write_doc):
    write_doc("a.md", "```\nopen\n")
    result = runner.invoke(app, [
        "build", "content", "--publish",
        "--deploy-cmd", "cp -r {output} " + str(tmp_path / "deployed"),
    ])
    assert result.exit_code == 1
    assert "Publish skipped" in result.output
    assert not (tmp_path / "deployed").exists()


def test_check_cmd(write_doc):
    write_doc("a.md", "A\n")
    result = runner.invoke(app, ["check", "content"])
    assert result.exit_code == 0
    assert "1 page(s)" in result.output


def test_tags_cmd(write_doc, first_post):
    write_doc("posts/first-post.md", first_post)
    result = runner.invoke(app, ["tags", "content"])
    assert result.exit_code == 0
    assert "hugo (1)" in result.output
    assert "  posts/first-post" in result.output


def test_init_cmd(tmp_path):
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0
    assert (tmp_path / "config.yaml").exists()
    assert (tmp_path / "content").is_dir()

    again = runner.invoke(app, ["init"])
    assert again.exit_code == 1


def test_build_cmd_unwritable_report_is_fatal(tmp_path, write_doc):
    write_doc("a.md", "A\n")
    result = runner.invoke(app, ["build", "content", "--report", str(tmp_path / "missing/dir/report.json")])
    assert result.exit_code == 2
    assert not isinstance(result.exception, OSError)
