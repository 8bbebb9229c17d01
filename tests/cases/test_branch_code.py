"""Tests for branch code extraction and comment formatting."""

import pytest

from git_tools import (
    extract_branch_code,
    format_comment,
    has_existing_comment,
    is_valid_branch_code,
)


@pytest.mark.parametrize("branch, code", [
    ("feature/FLYF-228-test-branch", "FLYF-228"),
    ("FLYZ-101", "FLYZ-101"),
    ("bugfix/FLYA-999/FLYB-000", "FLYA-999"),
])
def test_code_is_found_anywhere_in_branch_name(branch, code):
    result = extract_branch_code(branch)
    assert result.is_valid
    assert result.code == code
    assert result.branch_name == branch
    assert result.error is None


@pytest.mark.parametrize("branch", ["main", "feature/fly-228", "FLYF-22", "FLY1-228"])
def test_branch_without_code(branch):
    result = extract_branch_code(branch)
    assert not result.is_valid
    assert result.error == "No valid branch code found. Expected format: FLY[A-Z]-[0-9]{3}"


@pytest.mark.parametrize("branch", ["", "   ", None])
def test_empty_branch_name(branch):
    result = extract_branch_code(branch)
    assert not result.is_valid
    assert result.error == "Branch name is empty"


def test_is_valid_branch_code():
    assert is_valid_branch_code("FLYF-228")
    assert not is_valid_branch_code("ABC-123")
    assert not is_valid_branch_code("")


def test_format_comment():
    assert format_comment("FLYF-228", "handles retries") == "// FLYF-228: handles retries"


def test_has_existing_comment():
    assert has_existing_comment("    // FLYF-228: note", "FLYF-228")
    assert has_existing_comment("x = 1;  //FLYF-228: trailing", "FLYF-228")
    assert not has_existing_comment("    // FLYF-229: note", "FLYF-228")
    assert not has_existing_comment("FLYF-228: no comment token", "FLYF-228")
