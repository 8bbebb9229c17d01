#!/usr/bin/env python3
# git_tools.py
# Git automation tools (branch-tagged code comments, commit messages, work logs) via MCP
# Usage:
#   git-tools locate < changes.diff
#   git-tools comment "explain the retry" [--source staged|unstaged|file] [--file PATH --line N]
#   git-tools commit-message [--no-issues] [--no-limitations] [--no-comments]
#   git-tools worklog [--date YYYY-MM-DD]
#   git-tools mcp   # Run as MCP server (stdio)
#   git-tools http  # Run the HTTP status / webhook server

import argparse
import dataclasses
import datetime
import json
import logging
import os
import re
import subprocess
import sys
from typing import Any

from dotenv import load_dotenv

load_dotenv()

SERVER_NAME = "mcp-git-tools"
SERVER_VERSION = "1.0.0"

BRANCH_CODE_PATTERN = os.environ.get("GIT_TOOLS_BRANCH_CODE_PATTERN", r"FLY[A-Z]-\d{3}")
BRANCH_CODE_RE = re.compile(BRANCH_CODE_PATTERN)
COMMENT_TOKEN = "//"
SUMMARY_MAX_CHARS = 30
LOG_LIMIT_DEFAULT = 10
HTTP_HOST_DEFAULT = os.environ.get("HTTP_HOST", "127.0.0.1")
HTTP_PORT_DEFAULT = int(os.environ.get("HTTP_PORT", "4000"))

SOURCES = ("staged", "unstaged", "file")

# Per-file annotation outcomes
INSERTED = "inserted"
SKIPPED_DUPLICATE = "skipped-duplicate"
SKIPPED_INVALID_LINE = "skipped-invalid-line"
SOURCE_UNAVAILABLE = "source-unavailable"
WRITE_FAILURE = "write-failure"

logger = logging.getLogger(__name__)

# ---------- Utility ----------

def run(cmd: list[str], cwd: str | None = None, check: bool = True, input_text: str | None = None) -> str:
    env = os.environ.copy()
    env.setdefault("LC_ALL", "C")
    env.setdefault("LANG", "C")
    logger.debug("running %s (cwd=%s)", " ".join(cmd), cwd or ".")
    p = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, encoding="utf-8", errors="replace",
                       input=input_text, env=env)
    if check and p.returncode != 0:
        raise subprocess.CalledProcessError(p.returncode, cmd, p.stdout, p.stderr)
    return p.stdout

def git(args: list[str], repo: str | None = None, check: bool = True) -> str:
    return run(["git", *args], cwd=repo, check=check)

def error_text(e: Exception) -> str:
    if isinstance(e, subprocess.CalledProcessError) and e.stderr:
        return e.stderr.strip()
    return str(e)

# ---------- Branch code ----------

@dataclasses.dataclass
class BranchCode:
    branch_name: str
    code: str | None
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.code is not None

def extract_branch_code(branch_name: str | None) -> BranchCode:
    """Find the ticket code (e.g. FLYF-228) inside a branch name.

    The first match anywhere in the name wins, so "feature/FLYF-228-login"
    and "FLYF-228" both yield "FLYF-228".
    """
    if not branch_name or not branch_name.strip():
        return BranchCode(branch_name or "", None, "Branch name is empty")
    m = BRANCH_CODE_RE.search(branch_name)
    if not m:
        return BranchCode(
            branch_name,
            None,
            "No valid branch code found. Expected format: FLY[A-Z]-[0-9]{3}",
        )
    return BranchCode(branch_name, m.group(0))

def is_valid_branch_code(code: str) -> bool:
    return bool(BRANCH_CODE_RE.search(code or ""))

def format_comment(tag: str, text: str) -> str:
    return f"{COMMENT_TOKEN} {tag}: {text}"

def has_existing_comment(line: str, tag: str) -> bool:
    pattern = re.escape(COMMENT_TOKEN) + r"\s*" + re.escape(tag) + ":"
    return re.search(pattern, line) is not None

# ---------- Diff locator ----------

HUNK_RE = re.compile(r'^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@')

def locate_added_lines(diff_text: str | None) -> dict[str, list[int]]:
    """Map each file of a unified diff to the new-file line numbers it adds.

    Args:
        diff_text: Unified diff as produced by `git diff`

    Returns:
        Dict keyed by the path of each `+++ b/<path>` header, in order of first
        appearance, with the strictly increasing 1-based line numbers of added
        lines in the post-change file.

    Note:
        Never raises. Lines that cannot be placed (additions before any file
        header or hunk header, malformed hunk headers) are dropped, so garbage
        input produces an empty or partial map.
    """
    added: dict[str, list[int]] = {}
    cur_path: str | None = None
    cursor: int | None = None

    text = diff_text or ""
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()

    for raw in lines:
        raw = raw.rstrip("\r")
        if raw.startswith("+++ "):
            target = raw[4:].rstrip("\t")
            if target.startswith("b/"):
                cur_path = target[2:]
                added[cur_path] = []
            else:
                cur_path = None
            cursor = None
            continue

        if raw.startswith("@@"):
            m = HUNK_RE.match(raw)
            cursor = int(m.group(1)) if m else None
            continue

        if cur_path is None or cursor is None:
            continue

        if raw.startswith("+"):
            added[cur_path].append(cursor)
            cursor += 1
        elif raw.startswith("-") or raw.startswith("\\"):
            # Removed lines are absent from the new file; "\ No newline" is metadata
            continue
        else:
            cursor += 1

    return added

# ---------- Annotation engine ----------

@dataclasses.dataclass
class Annotation:
    content: str
    outcome: str

    @property
    def applied(self) -> bool:
        return self.outcome == INSERTED

@dataclasses.dataclass
class AnnotationResult:
    files_modified: list[str] = dataclasses.field(default_factory=list)
    outcomes: dict[str, str] = dataclasses.field(default_factory=dict)

    @property
    def success(self) -> bool:
        return bool(self.files_modified)

    def record(self, path: str, outcome: str) -> None:
        self.outcomes[path] = outcome
        if outcome == INSERTED and path not in self.files_modified:
            self.files_modified.append(path)

def split_content(content: str) -> tuple[list[str], bool]:
    """Split file text on "\\n" the way git numbers lines.

    A "\\r" before the newline stays on its line, so files with mixed endings
    keep git's line count.
    """
    if not content:
        return [], False
    had_trailing_nl = content.endswith("\n")
    lines = content.split("\n")
    if had_trailing_nl:
        lines.pop()
    return lines, had_trailing_nl

def annotate_text(content: str, line_number: int, tag: str, comment: str) -> Annotation:
    """Insert `// <tag>: <comment>` above line `line_number` of `content`.

    The new line copies the indentation of the line it sits above. A target
    line that already carries a comment for `tag` is left alone, which makes
    repeating the same request a no-op.

    Args:
        content: Whole file text
        line_number: 1-based anchor line in `content`
        tag: Branch code used as comment prefix
        comment: Comment text (single line)

    Returns:
        Annotation with the (possibly unchanged) content and one of the
        outcomes INSERTED, SKIPPED_DUPLICATE or SKIPPED_INVALID_LINE
    """
    lines, had_trailing_nl = split_content(content)
    if not 1 <= line_number <= len(lines):
        return Annotation(content, SKIPPED_INVALID_LINE)

    target = lines[line_number - 1]
    if has_existing_comment(target, tag):
        return Annotation(content, SKIPPED_DUPLICATE)

    indent = re.match(r"[ \t]*", target).group(0)
    # The comment line takes the ending of the line it sits above
    ending = "\r" if target.endswith("\r") else ""
    lines.insert(line_number - 1, indent + format_comment(tag, comment) + ending)

    new_text = "\n".join(lines)
    if had_trailing_nl:
        new_text += "\n"
    return Annotation(new_text, INSERTED)

def annotate_file(path: str, line_number: int, tag: str, comment: str, root: str | None = None) -> str:
    """Read-modify-write one file. Returns the outcome; never raises for I/O."""
    full_path = os.path.join(root, path) if root else path
    try:
        with open(full_path, "r", encoding="utf-8", newline="") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("cannot read %s: %s", full_path, e)
        return SOURCE_UNAVAILABLE

    result = annotate_text(content, line_number, tag, comment)
    if not result.applied:
        logger.info("%s:%d %s", path, line_number, result.outcome)
        return result.outcome

    try:
        with open(full_path, "w", encoding="utf-8", newline="") as f:
            f.write(result.content)
    except OSError as e:
        logger.error("cannot write %s: %s", full_path, e)
        return WRITE_FAILURE

    logger.info("%s:%d annotated with %s", path, line_number, tag)
    return INSERTED

def annotate_locations(locations: dict[str, list[int]], tag: str, comment: str, root: str | None = None) -> AnnotationResult:
    """Annotate the first added line of every file, one file at a time.

    Only the lowest line number of each file is used as anchor; later hunks
    are ignored. A failure in one file never stops the others.
    """
    result = AnnotationResult()
    for path, line_numbers in locations.items():
        if not line_numbers:
            continue
        result.record(path, annotate_file(path, line_numbers[0], tag, comment, root))
    return result

def annotate_diff(diff_text: str, tag: str, comment: str, root: str | None = None) -> AnnotationResult:
    return annotate_locations(locate_added_lines(diff_text), tag, comment, root)

# ---------- Git collaborator ----------

def current_branch(repo: str | None = None) -> str:
    return git(["branch", "--show-current"], repo).strip()

def repository_root(repo: str | None = None) -> str:
    return git(["rev-parse", "--show-toplevel"], repo).strip()

def is_git_repository(repo: str | None = None) -> bool:
    try:
        git(["rev-parse", "--git-dir"], repo)
    except (subprocess.CalledProcessError, OSError):
        return False
    return True

def has_commits(repo: str | None = None) -> bool:
    return bool(git(["rev-parse", "--verify", "--quiet", "HEAD"], repo, check=False).strip())

def get_diff(staged: bool = False, repo: str | None = None, file: str | None = None) -> str:
    cmd = ["diff", "--no-color", "--no-ext-diff"]
    if staged:
        cmd.append("--cached")
    if file:
        cmd += ["--", file]
    return git(cmd, repo)

def staged_files(repo: str | None = None) -> list[str]:
    out = git(["diff", "--cached", "--name-only"], repo)
    return [line for line in out.splitlines() if line]

def staged_numstat(repo: str | None = None) -> list[dict[str, Any]]:
    """Per-file added/removed line counts of the index ("-" for binaries counts as 0)."""
    stats = []
    for line in git(["diff", "--cached", "--numstat"], repo).splitlines():
        parts = line.split("\t", 2)
        if len(parts) != 3:
            continue
        additions = int(parts[0]) if parts[0].isdigit() else 0
        deletions = int(parts[1]) if parts[1].isdigit() else 0
        stats.append({
            "file": parts[2],
            "additions": additions,
            "deletions": deletions,
            "changes": additions + deletions,
        })
    return stats

LOG_FIELDS = ("hash", "author_name", "author_email", "date", "message", "body")
LOG_FORMAT = "%x1f".join(["%H", "%an", "%ae", "%aI", "%s", "%b"]) + "%x1e"

def get_commits(repo: str | None = None, limit: int | None = None, branch: str | None = None,
                since: str | None = None, until: str | None = None) -> list[dict[str, str]]:
    if not has_commits(repo):
        return []
    cmd = ["log", f"--format={LOG_FORMAT}"]
    if limit:
        cmd.append(f"--max-count={limit}")
    if since:
        cmd.append(f"--since={since}")
    if until:
        cmd.append(f"--until={until}")
    if branch:
        cmd += [branch, "--"]
    commits = []
    for record in git(cmd, repo).split("\x1e"):
        record = record.strip("\n")
        if not record:
            continue
        values = record.split("\x1f")
        values += [""] * (len(LOG_FIELDS) - len(values))
        commit = dict(zip(LOG_FIELDS, values))
        commit["body"] = commit["body"].strip()
        commits.append(commit)
    return commits

def commits_by_date(day: datetime.date, repo: str | None = None) -> list[dict[str, str]]:
    next_day = day + datetime.timedelta(days=1)
    return get_commits(repo, since=f"{day.isoformat()} 00:00:00", until=f"{next_day.isoformat()} 00:00:00")

STATUS_AHEAD_RE = re.compile(r"ahead (\d+)")
STATUS_BEHIND_RE = re.compile(r"behind (\d+)")
CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}

def get_status(repo: str | None = None) -> dict[str, Any]:
    """Parse `git status --porcelain=v1 -b` into file buckets.

    Returns:
        Dictionary with branch, ahead, behind and the lists staged, modified,
        untracked, deleted, renamed ({from, to}) and conflicted
    """
    status: dict[str, Any] = {
        "branch": "HEAD",
        "ahead": 0,
        "behind": 0,
        "staged": [],
        "modified": [],
        "untracked": [],
        "deleted": [],
        "renamed": [],
        "conflicted": [],
    }
    out = git(["status", "--porcelain=v1", "-b", "--untracked-files=all"], repo)
    for line in out.splitlines():
        if line.startswith("## "):
            head = line[3:]
            if head.startswith("No commits yet on "):
                head = head[len("No commits yet on "):]
            status["branch"] = head.split("...", 1)[0].split(" ", 1)[0]
            m = STATUS_AHEAD_RE.search(head)
            if m:
                status["ahead"] = int(m.group(1))
            m = STATUS_BEHIND_RE.search(head)
            if m:
                status["behind"] = int(m.group(1))
            continue
        if len(line) < 4:
            continue
        code, path = line[:2], line[3:]
        if code == "??":
            status["untracked"].append(path)
            continue
        if code in CONFLICT_CODES:
            status["conflicted"].append(path)
            continue
        x, y = code[0], code[1]
        if x == "R":
            old, _, new = path.partition(" -> ")
            status["renamed"].append({"from": old, "to": new})
            path = new
        if x not in " ?":
            status["staged"].append(path)
        if y == "M":
            status["modified"].append(path)
        if "D" in code:
            status["deleted"].append(path)
    return status

def get_branches(repo: str | None = None) -> dict[str, Any]:
    refs = git(["for-each-ref", "--format=%(refname)", "refs/heads", "refs/remotes"], repo)
    local: list[str] = []
    remote: list[str] = []
    for ref in refs.splitlines():
        if ref.startswith("refs/heads/"):
            local.append(ref[len("refs/heads/"):])
        elif ref.startswith("refs/remotes/") and not ref.endswith("/HEAD"):
            remote.append("remotes/" + ref[len("refs/remotes/"):])
    current = current_branch(repo)
    if current and current not in local:
        local.insert(0, current)
    return {"current": current, "all": local + remote, "local": local, "remote": remote}

def create_branch(name: str, repo: str | None = None) -> None:
    git(["checkout", "-b", name], repo)

def switch_branch(name: str, repo: str | None = None) -> None:
    git(["checkout", name], repo)

def delete_branch(name: str, repo: str | None = None, force: bool = False) -> None:
    git(["branch", "-D" if force else "-d", name], repo)

def create_commit(message: str, repo: str | None = None, add_all: bool = False) -> None:
    if add_all:
        git(["add", "-A"], repo)
    git(["commit", "-m", message], repo)

def get_repository_info(repo: str | None = None) -> dict[str, Any]:
    if not is_git_repository(repo):
        return {"isRepo": False}
    try:
        remotes = sorted({
            " ".join(line.split()[:2]).replace(" ", ": ", 1)
            for line in git(["remote", "-v"], repo).splitlines()
            if line.endswith("(fetch)")
        })
        return {
            "isRepo": True,
            "currentBranch": current_branch(repo),
            "remotes": remotes,
            "rootPath": repository_root(repo),
            "status": get_status(repo),
        }
    except subprocess.CalledProcessError as e:
        return {"isRepo": False, "error": error_text(e)}

def diff_for_source(source: str, repo: str | None = None) -> str:
    return get_diff(staged=(source == "staged"), repo=repo)

# ---------- add_code_comments ----------

def add_comments(comment: str, source: str = "staged", file_path: str | None = None,
                 line_number: int | None = None, repo: str | None = None) -> dict[str, Any]:
    """Insert a branch-tagged comment into changed code.

    With source "staged" or "unstaged" the matching git diff is read and the
    first added line of every file receives `// <BRANCH-CODE>: <comment>`.
    With source "file", the comment goes above `line_number` of `file_path`.

    Args:
        comment: Comment text without the branch code prefix
        source: "staged" (default), "unstaged" or "file"
        file_path: Target file, required for source "file"
        line_number: 1-based target line, required for source "file"
        repo: Repository directory (default: current directory)

    Returns:
        Dictionary with keys success, message and, when known, branchCode,
        filesModified and error. success is True when at least one file was
        modified.
    """
    try:
        if not comment or not comment.strip():
            return {"success": False, "message": "Comment text is required", "error": "Missing comment parameter"}
        if "\n" in comment or "\r" in comment:
            return {"success": False, "message": "Comment must be a single line", "error": "Comment contains a newline"}
        if source not in SOURCES:
            return {
                "success": False,
                "message": f"Unknown source: {source}",
                "error": f"source must be one of: {', '.join(SOURCES)}",
            }

        branch = extract_branch_code(current_branch(repo))
        if not branch.is_valid:
            return {"success": False, "message": "Failed to extract branch code", "error": branch.error}
        tag = branch.code

        if source == "file":
            if not file_path:
                return {
                    "success": False,
                    "message": "File path required when source is \"file\"",
                    "error": "Missing filePath parameter",
                    "branchCode": tag,
                }
            if line_number is None:
                return {
                    "success": False,
                    "message": "Line number required when specifying a file",
                    "error": "Missing lineNumber parameter",
                    "branchCode": tag,
                }
            result = AnnotationResult()
            result.record(file_path, annotate_file(file_path, line_number, tag, comment, repo))
            outcome = result.outcomes[file_path]
            if result.success:
                message = f"Comment added to {file_path} at line {line_number}"
            elif outcome == SKIPPED_DUPLICATE:
                message = f"Comment for {tag} already exists at {file_path}:{line_number}"
            elif outcome == SKIPPED_INVALID_LINE:
                message = f"Invalid line number {line_number} for {file_path}"
            elif outcome == SOURCE_UNAVAILABLE:
                message = f"Cannot read {file_path}"
            else:
                message = f"Cannot write {file_path}"
            return {
                "success": result.success,
                "message": message,
                "branchCode": tag,
                "filesModified": result.files_modified,
                "outcomes": result.outcomes,
            }

        diff_text = diff_for_source(source, repo)
        if not diff_text.strip():
            return {"success": False, "message": f"No {source} changes found", "branchCode": tag}

        result = annotate_diff(diff_text, tag, comment, repository_root(repo))
        if result.success:
            message = f"Comments added to {len(result.files_modified)} file(s)"
        else:
            message = "No comments were added (may already exist or no valid lines found)"
        return {
            "success": result.success,
            "message": message,
            "branchCode": tag,
            "filesModified": result.files_modified,
            "outcomes": result.outcomes,
        }
    except (subprocess.CalledProcessError, OSError) as e:
        logger.exception("add_comments failed")
        return {"success": False, "message": "Error adding comments", "error": error_text(e)}

# ---------- generate_commit_message ----------

def added_and_removed(diff_text: str) -> tuple[list[str], list[str]]:
    lines = diff_text.splitlines()
    added = [ln for ln in lines if ln.startswith("+") and not ln.startswith("+++")]
    removed = [ln for ln in lines if ln.startswith("-") and not ln.startswith("---")]
    return added, removed

def summarize_change(diff_text: str, files: list[str]) -> str:
    added, removed = added_and_removed(diff_text)

    if any("test" in f for f in files):
        return "added tests"
    if len(added) > len(removed) * 2:
        return "added new features"
    if len(removed) > len(added) * 2:
        return "removed code"

    content = " ".join(added).lower()
    if "function" in content or "const" in content or "let" in content:
        return "implemented functionality"
    if "fix" in content or "bug" in content:
        return "fixed bugs"
    if "refactor" in content:
        return "refactored code"
    if "update" in content:
        return "updated implementation"

    return "updated file" if len(files) == 1 else "updated multiple files"

def truncate_summary(summary: str, limit: int = SUMMARY_MAX_CHARS) -> str:
    if len(summary) <= limit:
        return summary
    return summary[:limit - 3] + "..."

def issues_addressed(diff_text: str, stats: list[dict[str, Any]]) -> list[str]:
    issues = []
    for change in stats:
        if change["additions"] > 0:
            issues.append(f"Added {change['additions']} line(s) in {change['file']}")
        if change["deletions"] > 0:
            issues.append(f"Removed {change['deletions']} line(s) from {change['file']}")

    added, _ = added_and_removed(diff_text)
    if any("TODO" in ln or "FIXME" in ln for ln in added):
        issues.append("Added TODO/FIXME markers for future work")
    if any("test" in ln or "spec" in ln for ln in added):
        issues.append("Added test coverage")
    return issues[:3]

def limitations(stats: list[dict[str, Any]]) -> list[str]:
    found = []
    if not any("test" in s["file"] or "spec" in s["file"] for s in stats):
        found.append("No test coverage included")
    if not any(s["file"].endswith(".md") or "README" in s["file"] or "doc" in s["file"] for s in stats):
        found.append("Documentation not updated")
    if not found:
        found.append("May require additional testing")
    return found[:2]

def review_comments(stats: list[dict[str, Any]]) -> list[str]:
    found = []
    total = sum(s["changes"] for s in stats)
    if total > 100:
        found.append("Large changeset - consider breaking into smaller commits")
    elif total < 5:
        found.append("Minor changes made")
    if len(stats) > 5:
        found.append(f"Modified {len(stats)} files - review carefully")
    if not found:
        found.append("Review changes before merging")
    return found[:2]

def build_commit_message(include_issues: bool = True, include_limitations: bool = True,
                         include_comments: bool = True, repo: str | None = None) -> dict[str, Any]:
    """Build `<BRANCH-CODE>: <summary>` plus optional review sections from the index."""
    try:
        branch = extract_branch_code(current_branch(repo))
        if not branch.is_valid:
            return {"success": False, "error": branch.error or "Invalid branch code"}

        files = staged_files(repo)
        if not files:
            return {"success": False, "error": "No staged changes found. Stage your changes first using git add."}
        diff_text = get_diff(staged=True, repo=repo)
        stats = staged_numstat(repo)

        parts = [f"{branch.code}: {truncate_summary(summarize_change(diff_text, files))}"]
        sections = [
            (include_issues, "Issues Addressed", lambda: issues_addressed(diff_text, stats)),
            (include_limitations, "Limitations", lambda: limitations(stats)),
            (include_comments, "Comments", lambda: review_comments(stats)),
        ]
        for enabled, title, build in sections:
            if enabled:
                parts.append(f"{title}:\n" + "\n".join(f"- {item}" for item in build()))

        return {"success": True, "commitMessage": "\n\n".join(parts), "branchCode": branch.code}
    except (subprocess.CalledProcessError, OSError) as e:
        logger.exception("build_commit_message failed")
        return {"success": False, "error": error_text(e)}

# ---------- generate_daily_worklog ----------

WORKLOG_CATEGORIES = [
    ("features", "Features", ("feat", "add", "implement")),
    ("fixes", "Bug Fixes", ("fix", "bug", "resolve")),
    ("refactors", "Refactoring", ("refactor", "restructure", "improve")),
]

def parse_date(value: str | None) -> datetime.date:
    if value:
        try:
            return datetime.date.fromisoformat(value.strip())
        except ValueError:
            logger.warning("invalid date %r, using today", value)
    return datetime.date.today()

def categorize_commits(commits: list[dict[str, str]]) -> dict[str, list[str]]:
    categories: dict[str, list[str]] = {key: [] for key, _, _ in WORKLOG_CATEGORIES}
    categories["others"] = []
    for commit in commits:
        subject = commit["message"].split("\n", 1)[0]
        lowered = commit["message"].lower()
        for key, _, keywords in WORKLOG_CATEGORIES:
            if any(k in lowered for k in keywords):
                categories[key].append(subject)
                break
        else:
            categories["others"].append(subject)
    return categories

def pending_work(repo: str | None = None) -> list[str]:
    try:
        files = staged_files(repo)
    except subprocess.CalledProcessError as e:
        logger.warning("cannot list staged files: %s", error_text(e))
        return []
    if not files:
        return ["No pending changes"]
    return [f"{len(files)} file(s) staged but not committed", "Review and commit staged changes"]

def generate_worklog(date: str | None = None, repo: str | None = None) -> dict[str, Any]:
    try:
        day = parse_date(date)
        date_str = day.isoformat()
        branch_name = current_branch(repo)
        branch = extract_branch_code(branch_name)
        code = branch.code if branch.is_valid else "N/A"

        commits = commits_by_date(day, repo)
        if not commits:
            log = (
                f"Date: {date_str}\nBranch: {code}\n\nWork Log:\n- No commits found for this date\n\n"
                "Pending:\n- Check for uncommitted changes"
            )
            return {"success": True, "workLog": log, "date": date_str, "branchCode": code}

        lines = [f"Date: {date_str}", f"Branch: {code}", f"Commits: {len(commits)}", "", "Work Log:"]
        categories = categorize_commits(commits)
        titles = [(key, title) for key, title, _ in WORKLOG_CATEGORIES] + [("others", "Other Changes")]
        for key, title in titles:
            if categories[key]:
                lines += ["", f"{title}:"] + [f"- {msg}" for msg in categories[key]]

        lines += ["", "Pending:"] + [f"- {item}" for item in pending_work(repo)]
        lines += [
            "",
            "Summary:",
            f"- Total commits: {len(commits)}",
            "- Files modified: Check git log for details",
            f"- Branch: {branch_name}",
        ]
        return {"success": True, "workLog": "\n".join(lines) + "\n", "date": date_str, "branchCode": code}
    except (subprocess.CalledProcessError, OSError) as e:
        logger.exception("generate_worklog failed")
        return {"success": False, "error": error_text(e)}

# ---------- Markdown reports ----------

def bullet_list(items: list[str], empty: str) -> str:
    return "\n".join(f"- {item}" for item in items) if items else empty

def format_status_report(status: dict[str, Any], info: dict[str, Any]) -> str:
    renamed = [f"{r['from']} → {r['to']}" for r in status["renamed"]]
    sections = [
        ("Staged Files", status["staged"], "No staged files"),
        ("Modified Files", status["modified"], "No modified files"),
        ("Untracked Files", status["untracked"], "No untracked files"),
        ("Deleted Files", status["deleted"], "No deleted files"),
        ("Renamed Files", renamed, "No renamed files"),
        ("Conflicted Files", status["conflicted"], "No conflicts"),
    ]
    lines = [
        "# Git Status Report",
        "",
        "## Repository Information",
        f"- **Branch:** {status['branch']}",
        f"- **Repository Root:** {info.get('rootPath') or 'N/A'}",
        f"- **Is Git Repository:** {'Yes' if info.get('isRepo') else 'No'}",
        "",
        "## Branch Status",
        f"- **Ahead:** {status['ahead']} commits",
        f"- **Behind:** {status['behind']} commits",
        "",
        "## File Changes",
    ]
    for title, items, empty in sections:
        lines += [f"### {title} ({len(items)})", bullet_list(items, empty), ""]
    lines += ["## Remote Information", bullet_list(info.get("remotes") or [], "No remotes configured")]
    return "\n".join(lines) + "\n"

def format_log_report(commits: list[dict[str, str]], branch: str, limit: int) -> str:
    lines = ["# Git Commit History", "", f"## Branch: {branch}", f"**Showing last {limit} commits**", ""]
    for i, c in enumerate(commits, start=1):
        lines += [
            f"### {i}. {c['hash'][:8]} - {c['date']}",
            f"**Author:** {c['author_name']} <{c['author_email']}>",
            f"**Message:** {c['message']}",
        ]
        if c["body"]:
            lines.append(f"**Body:** {c['body']}")
        lines += ["---", ""]
    lines.append(f"**Total commits shown:** {len(commits)}")
    return "\n".join(lines) + "\n"

def format_diff_report(diff_text: str, staged: bool, file: str | None) -> str:
    kind = "staged" if staged else "unstaged"
    if not diff_text.strip():
        target = f" for file: {file}" if file else ""
        return f"# Git Diff\n\nNo {kind} changes found{target}.\nUse `git add <file>` to stage changes.\n"
    title = "(Staged Changes)" if staged else "(Working Directory)"
    header = f"# Git Diff {title}\n"
    if file:
        header += f"\n**File:** {file}\n"
    return f"{header}\n```diff\n{diff_text.rstrip()}\n```\n"

def format_branch_list(branches: dict[str, Any]) -> str:
    local = [
        f"* {b} (current)" if b == branches["current"] else f"  {b}"
        for b in branches["local"]
    ]
    remote = [f"  {b}" for b in branches["remote"]] or ["No remote branches"]
    return "\n".join([
        "# Git Branches",
        "",
        f"## Current Branch: {branches['current']}",
        "",
        "### Local Branches",
        *local,
        "",
        "### Remote Branches",
        *remote,
        "",
        f"**Total:** {len(branches['local'])} local, {len(branches['remote'])} remote",
    ]) + "\n"

def branch_action(action: str, name: str | None = None, repo: str | None = None) -> str:
    """Run a git-branch tool action. Raises ValueError for bad arguments."""
    if action == "list":
        return format_branch_list(get_branches(repo))
    handlers = {
        "create": (create_branch, "Successfully created and switched to branch"),
        "switch": (switch_branch, "Successfully switched to branch"),
        "delete": (delete_branch, "Successfully deleted branch"),
    }
    if action not in handlers:
        raise ValueError(f"Unknown branch action: {action}. Use: list, create, switch, delete")
    if not name:
        raise ValueError(f"Branch name is required for {action} action")
    handler, done = handlers[action]
    handler(name, repo)
    return f"✅ {done}: {name}"

def commit_report(message: str, add_all: bool = False, repo: str | None = None) -> str:
    if not message or not message.strip():
        raise ValueError("Commit message is required")

    before = get_status(repo)
    if not add_all and not before["staged"]:
        return (
            "❌ No staged changes to commit.\n\n"
            "**Available changes:**\n"
            f"- Modified: {len(before['modified'])} files\n"
            f"- Untracked: {len(before['untracked'])} files\n"
            f"- Deleted: {len(before['deleted'])} files\n\n"
            "Use `addAll: true` to stage all changes, or stage files manually with git add.\n"
        )

    create_commit(message, repo, add_all)
    latest = get_commits(repo, limit=1)[0]
    if add_all:
        changed = len(before["modified"]) + len(before["untracked"]) + len(before["deleted"])
    else:
        changed = len(before["staged"])

    lines = [
        "✅ Successfully created commit!",
        "",
        "**Commit Details:**",
        f"- **Hash:** {latest['hash'][:8]}",
        f"- **Message:** {message}",
        f"- **Author:** {latest['author_name']} <{latest['author_email']}>",
        f"- **Date:** {latest['date']}",
        f"- **Files Changed:** {changed}",
    ]
    if add_all:
        lines += ["", "**Auto-staged and committed:**"]
        for label, key in (("Modified", "modified"), ("Added", "untracked"), ("Deleted", "deleted")):
            if before[key]:
                lines.append(f"- {label}: {', '.join(before[key])}")
    return "\n".join(lines) + "\n"

def health_check() -> dict[str, str]:
    return {"status": "healthy", "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat()}

# ---------- Pretty output ----------

ANSI_RED = "\033[31m"
ANSI_GREEN = "\033[32m"
ANSI_CYAN = "\033[36m"
ANSI_RESET = "\033[0m"
ANSI_BOLD = "\033[1m"

def format_locations_pretty(locations: dict[str, list[int]]) -> str:
    lines = []
    for path, numbers in locations.items():
        shown = ", ".join(str(n) for n in numbers) if numbers else "(no added lines)"
        lines.append(f"{ANSI_CYAN}{ANSI_BOLD}{path}{ANSI_RESET}: {shown}")
    lines.append(f"--- {len(locations)} file(s), {sum(len(v) for v in locations.values())} added line(s)")
    return "\n".join(lines)

def format_comments_pretty(result: dict[str, Any]) -> str:
    color = ANSI_GREEN if result.get("success") else ANSI_RED
    lines = [f"{color}{result.get('message', '')}{ANSI_RESET}"]
    if result.get("branchCode"):
        lines.append(f"  branch code: {result['branchCode']}")
    for path in result.get("filesModified", []):
        lines.append(f"  {ANSI_CYAN}{path}{ANSI_RESET}")
    if result.get("error"):
        lines.append(f"{ANSI_RED}Error: {result['error']}{ANSI_RESET}")
    return "\n".join(lines)

# ---------- MCP Server ----------

def create_mcp_server():
    """Create and configure MCP server with FastMCP."""
    try:
        from fastmcp import FastMCP
        from fastmcp.exceptions import ToolError
        from mcp.types import ToolAnnotations
    except ImportError:
        print("Error: fastmcp package not found. Install with: pip install fastmcp", file=sys.stderr)
        sys.exit(1)

    mcp = FastMCP(SERVER_NAME)

    @mcp.tool(annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False
    ))
    def add_code_comments(
        comment: str,
        source: str = "staged",
        filePath: str | None = None,
        lineNumber: int | None = None,
        path: str | None = None
    ) -> str:
        """Add inline comments to code changes with branch code prefix.

        Reads the staged or unstaged git diff (or a specific file and line) and inserts
        `// <BRANCH-CODE>: <comment>` above the first added line of every changed file,
        keeping the indentation of that line. The branch code (e.g. FLYF-228) is taken
        from the current branch name. Running the same request twice is a no-op.

        Args:
            comment: The comment text to add (without branch code prefix)
            source: Source of code changes: "staged" (default), "unstaged", or "file"
            filePath: File path (required when source is "file")
            lineNumber: 1-based line number to comment (required when source is "file")
            path: Path to the Git repository (defaults to current directory)

        Returns:
            JSON string with format: {success, message, branchCode, filesModified, error}
        """
        result = add_comments(comment, source, filePath, lineNumber, path)
        return json.dumps(result, ensure_ascii=False, indent=2)

    @mcp.tool(annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=False
    ))
    def generate_commit_message(
        includeIssues: bool = True,
        includeLimitations: bool = True,
        includeComments: bool = True,
        path: str | None = None
    ) -> str:
        """Generate a structured commit message from staged changes.

        Format: `<BRANCH-CODE>: <message within 30 chars>` followed by Issues Addressed,
        Limitations, and Comments sections.

        Args:
            includeIssues: Include "Issues Addressed" section (default: true)
            includeLimitations: Include "Limitations" section (default: true)
            includeComments: Include "Comments" section (default: true)
            path: Path to the Git repository (defaults to current directory)
        """
        result = build_commit_message(includeIssues, includeLimitations, includeComments, path)
        if not result["success"]:
            raise ToolError(f"Error: {result['error']}")
        return result["commitMessage"]

    @mcp.tool(annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=False
    ))
    def generate_daily_worklog(date: str | None = None, path: str | None = None) -> str:
        """Generate a daily work log summarizing commits and changes for a specific date.

        Includes work completed (grouped into features, fixes, refactoring and other
        changes), pending staged work, and commit statistics.

        Args:
            date: Date in YYYY-MM-DD format (defaults to today)
            path: Path to the Git repository (defaults to current directory)
        """
        result = generate_worklog(date, path)
        if not result["success"]:
            raise ToolError(f"Error: {result['error']}")
        return result["workLog"]

    @mcp.tool(name="git-status", annotations=ToolAnnotations(readOnlyHint=True))
    def git_status(path: str | None = None) -> str:
        """Get the current Git status of the repository.

        Args:
            path: Path to the Git repository (defaults to current directory)
        """
        try:
            return format_status_report(get_status(path), get_repository_info(path))
        except (subprocess.CalledProcessError, OSError) as e:
            raise ToolError(f"Error getting Git status: {error_text(e)}")

    @mcp.tool(name="git-log", annotations=ToolAnnotations(readOnlyHint=True))
    def git_log(path: str | None = None, limit: int = LOG_LIMIT_DEFAULT, branch: str | None = None) -> str:
        """Get Git commit history.

        Args:
            path: Path to the Git repository (defaults to current directory)
            limit: Number of commits to retrieve (default: 10)
            branch: Branch to get log from (defaults to current branch)
        """
        try:
            limit = limit or LOG_LIMIT_DEFAULT
            commits = get_commits(path, limit=limit, branch=branch)
            return format_log_report(commits, branch or current_branch(path), limit)
        except (subprocess.CalledProcessError, OSError) as e:
            raise ToolError(f"Error getting Git log: {error_text(e)}")

    @mcp.tool(name="git-diff", annotations=ToolAnnotations(readOnlyHint=True))
    def git_diff(path: str | None = None, staged: bool = False, file: str | None = None) -> str:
        """Get Git diff for changes.

        Args:
            path: Path to the Git repository (defaults to current directory)
            staged: Show staged changes (default: false)
            file: Specific file to show diff for
        """
        try:
            return format_diff_report(get_diff(staged, path, file), staged, file)
        except (subprocess.CalledProcessError, OSError) as e:
            raise ToolError(f"Error getting Git diff: {error_text(e)}")

    @mcp.tool(name="git-branch", annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=True
    ))
    def git_branch(path: str | None = None, action: str = "list", branchName: str | None = None) -> str:
        """List, create, or switch Git branches.

        Args:
            path: Path to the Git repository (defaults to current directory)
            action: Action to perform with branches: list (default), create, switch, delete
            branchName: Branch name (required for create, switch, delete actions)
        """
        try:
            return branch_action(action, branchName, path)
        except (ValueError, subprocess.CalledProcessError, OSError) as e:
            raise ToolError(f"Error with Git branch operation: {error_text(e)}")

    @mcp.tool(name="git-commit", annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False
    ))
    def git_commit(message: str, path: str | None = None, addAll: bool = False) -> str:
        """Create a Git commit with staged changes.

        Args:
            message: Commit message
            path: Path to the Git repository (defaults to current directory)
            addAll: Stage all changes before committing (default: false)
        """
        try:
            return commit_report(message, addAll, path)
        except (ValueError, subprocess.CalledProcessError, OSError) as e:
            raise ToolError(f"Error creating commit: {error_text(e)}")

    @mcp.tool(name="health-check", annotations=ToolAnnotations(readOnlyHint=True))
    def health() -> str:
        """Check server health status."""
        return json.dumps(health_check(), indent=2)

    @mcp.resource(
        "git://repository-info",
        name="Repository Information",
        description="Current Git repository information",
        mime_type="application/json",
    )
    def repository_info() -> str:
        try:
            body = {"repository": get_repository_info(), "server": SERVER_NAME}
        except OSError as e:
            body = {"error": "Failed to get repository information", "message": str(e)}
        body["timestamp"] = health_check()["timestamp"]
        return json.dumps(body, ensure_ascii=False, indent=2)

    @mcp.prompt(name="commit-message", description="Generate a commit message based on staged changes")
    def commit_message_prompt(path: str | None = None) -> str:
        """Generate a commit message based on staged changes."""
        target = f" for the repository at {path}" if path else ""
        return (
            f"Call generate_commit_message{target}, review the draft against the staged diff "
            "(git-diff with staged=true), and adjust the summary line if it does not describe the change."
        )

    return mcp

# ---------- CLI ----------

def parse_args(argv: list[str] | None = None):
    p = argparse.ArgumentParser(prog="git-tools", description="Git automation tools")
    p.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "WARNING"), help="Logging level (default: WARNING)")
    p.add_argument("--repo", default=None, help="Repository directory (default: current directory)")
    sub = p.add_subparsers(dest="cmd", required=True)

    loc = sub.add_parser("locate", help="Print added line numbers per file of a unified diff")
    loc.add_argument("diff_file", nargs="?", default="-", help="Diff file (default: stdin)")
    loc.add_argument("--format", choices=["json", "pretty"], default="json", help="Output format (default: json)")

    c = sub.add_parser("comment", help="Insert a branch-tagged comment above changed code")
    c.add_argument("comment", help="Comment text (without branch code prefix)")
    c.add_argument("--source", choices=SOURCES, default="staged", help="Where to find the changes (default: staged)")
    c.add_argument("--file", dest="file_path", default=None, help="Target file (source=file)")
    c.add_argument("--line", dest="line_number", type=int, default=None, help="Target line (source=file)")
    c.add_argument("--format", choices=["json", "pretty"], default="json", help="Output format (default: json)")

    m = sub.add_parser("commit-message", help="Generate a commit message from staged changes")
    m.add_argument("--no-issues", action="store_true", help="Omit the Issues Addressed section")
    m.add_argument("--no-limitations", action="store_true", help="Omit the Limitations section")
    m.add_argument("--no-comments", action="store_true", help="Omit the Comments section")

    w = sub.add_parser("worklog", help="Generate a daily work log")
    w.add_argument("--date", default=None, help="Date in YYYY-MM-DD format (default: today)")

    sub.add_parser("mcp", help="Run as MCP server (stdio)")

    h = sub.add_parser("http", help="Run the HTTP status and webhook server")
    h.add_argument("--host", default=HTTP_HOST_DEFAULT, help="Bind address")
    h.add_argument("--port", type=int, default=HTTP_PORT_DEFAULT, help="Port (default: HTTP_PORT or 4000)")

    return p.parse_args(argv)

def read_diff_input(diff_file: str) -> str:
    if diff_file == "-":
        return sys.stdin.read()
    with open(diff_file, "r", encoding="utf-8", errors="replace") as f:
        return f.read()

def emit_json(obj: Any) -> None:
    json.dump(obj, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")

def main(argv: list[str] | None = None):
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "locate":
        locations = locate_added_lines(read_diff_input(args.diff_file))
        if args.format == "pretty":
            print(format_locations_pretty(locations))
        else:
            emit_json(locations)
        return

    if args.cmd == "comment":
        resp = add_comments(args.comment, args.source, args.file_path, args.line_number, args.repo)
        if args.format == "pretty":
            print(format_comments_pretty(resp))
        else:
            emit_json(resp)
        if not resp["success"]:
            sys.exit(1)
        return

    if args.cmd == "commit-message":
        resp = build_commit_message(not args.no_issues, not args.no_limitations, not args.no_comments, args.repo)
        if not resp["success"]:
            print(f"{ANSI_RED}Error: {resp['error']}{ANSI_RESET}", file=sys.stderr)
            sys.exit(1)
        print(resp["commitMessage"])
        return

    if args.cmd == "worklog":
        resp = generate_worklog(args.date, args.repo)
        if not resp["success"]:
            print(f"{ANSI_RED}Error: {resp['error']}{ANSI_RESET}", file=sys.stderr)
            sys.exit(1)
        print(resp["workLog"])
        return

    if args.cmd == "mcp":
        mcp = create_mcp_server()
        logger.info("%s running on stdio", SERVER_NAME)
        mcp.run()
        return

    if args.cmd == "http":
        import uvicorn
        from git_tools_http import app
        logger.info("HTTP server running on http://%s:%d", args.host, args.port)
        uvicorn.run(app, host=args.host, port=args.port)
        return

if __name__ == "__main__":
    main()
