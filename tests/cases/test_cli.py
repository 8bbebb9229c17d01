"""Tests for the git-tools command line."""

import json

import pytest

from git_tools import main
from conftest import git

DIFF = (
    "+++ b/a.js\n"
    "@@ -1,2 +1,3 @@\n"
    " unchanged\n"
    "+added line\n"
    " trailing\n"
)


def test_locate_prints_json(tmp_path, capsys):
    diff_file = tmp_path / "changes.diff"
    diff_file.write_text(DIFF, encoding="utf-8")

    main(["locate", str(diff_file)])

    assert json.loads(capsys.readouterr().out) == {"a.js": [2]}


def test_locate_pretty(tmp_path, capsys):
    diff_file = tmp_path / "changes.diff"
    diff_file.write_text(DIFF, encoding="utf-8")

    main(["locate", str(diff_file), "--format", "pretty"])

    out = capsys.readouterr().out
    assert "a.js" in out
    assert "--- 1 file(s), 1 added line(s)" in out


@pytest.mark.git
def test_comment_command(repo, capsys):
    main(["comment", "cli note", "--source", "file", "--file", "util.js", "--line", "1"])

    resp = json.loads(capsys.readouterr().out)
    assert resp["success"] is True
    assert (repo / "util.js").read_text(encoding="utf-8") == "// FLYF-228: cli note\nconst a = 1;\n"


@pytest.mark.git
def test_comment_command_exits_non_zero_without_changes(repo, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["comment", "nothing to do"])

    assert exc.value.code == 1
    assert json.loads(capsys.readouterr().out)["message"] == "No staged changes found"


@pytest.mark.git
def test_commit_message_command(repo, capsys):
    (repo / "util.js").write_text("const a = 2;\n", encoding="utf-8")
    git(repo, "add", "util.js")

    main(["commit-message", "--no-issues", "--no-limitations", "--no-comments"])

    assert capsys.readouterr().out == "FLYF-228: implemented functionality\n"
