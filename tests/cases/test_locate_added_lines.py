"""Tests for mapping unified diffs to added line numbers."""

from git_tools import locate_added_lines


def test_single_addition_between_context_lines():
    diff = (
        "+++ b/a.js\n"
        "@@ -1,2 +1,3 @@\n"
        " unchanged\n"
        "+added line\n"
        " trailing\n"
    )
    assert locate_added_lines(diff) == {"a.js": [2]}


def test_removal_does_not_consume_new_line_number():
    diff = (
        "+++ b/a.js\n"
        "@@ -5,1 +5,1 @@\n"
        "-removed\n"
        "+added\n"
    )
    assert locate_added_lines(diff) == {"a.js": [5]}


def test_multi_file_diff_keeps_order_and_independent_sequences():
    diff = (
        "diff --git a/a.js b/a.js\n"
        "index 1111111..2222222 100644\n"
        "--- a/a.js\n"
        "+++ b/a.js\n"
        "@@ -10,3 +10,4 @@ function x() {\n"
        " ctx\n"
        "+one\n"
        " ctx\n"
        " ctx\n"
        "diff --git a/b.js b/b.js\n"
        "--- a/b.js\n"
        "+++ b/b.js\n"
        "@@ -1,1 +1,3 @@\n"
        "+first\n"
        "+second\n"
        " old\n"
    )
    result = locate_added_lines(diff)
    assert list(result) == ["a.js", "b.js"]
    assert result["a.js"] == [11]
    assert result["b.js"] == [1, 2]


def test_multiple_hunks_in_one_file():
    diff = (
        "+++ b/src/main.py\n"
        "@@ -1,2 +1,3 @@\n"
        " import os\n"
        "+import re\n"
        " \n"
        "@@ -40,3 +41,4 @@ def main():\n"
        "     a = 1\n"
        "-    b = 2\n"
        "+    b = 3\n"
        "+    c = 4\n"
        "     return a\n"
    )
    assert locate_added_lines(diff) == {"src/main.py": [2, 42, 43]}


def test_hunk_header_without_counts():
    diff = (
        "+++ b/one.txt\n"
        "@@ -1 +1 @@\n"
        "-old\n"
        "+new\n"
    )
    assert locate_added_lines(diff) == {"one.txt": [1]}


def test_new_file_from_dev_null():
    diff = (
        "diff --git a/new.txt b/new.txt\n"
        "new file mode 100644\n"
        "--- /dev/null\n"
        "+++ b/new.txt\n"
        "@@ -0,0 +1,2 @@\n"
        "+hello\n"
        "+world\n"
    )
    assert locate_added_lines(diff) == {"new.txt": [1, 2]}


def test_deleted_file_does_not_leak_into_previous_file():
    diff = (
        "+++ b/kept.txt\n"
        "@@ -1,1 +1,2 @@\n"
        " a\n"
        "+b\n"
        "--- a/gone.txt\n"
        "+++ /dev/null\n"
        "@@ -1,2 +0,0 @@\n"
        "-x\n"
        "-y\n"
    )
    assert locate_added_lines(diff) == {"kept.txt": [2]}


def test_no_newline_marker_is_ignored():
    diff = (
        "+++ b/a.txt\n"
        "@@ -1,1 +1,2 @@\n"
        "-last\n"
        "\\ No newline at end of file\n"
        "+last\n"
        "+more\n"
    )
    assert locate_added_lines(diff) == {"a.txt": [1, 2]}


def test_blank_context_line_advances_cursor():
    diff = (
        "+++ b/a.txt\n"
        "@@ -1,2 +1,3 @@\n"
        "\n"
        " x\n"
        "+y\n"
    )
    assert locate_added_lines(diff) == {"a.txt": [3]}


def test_file_with_only_removals_has_empty_sequence():
    diff = (
        "+++ b/a.txt\n"
        "@@ -1,2 +1,1 @@\n"
        " keep\n"
        "-drop\n"
    )
    assert locate_added_lines(diff) == {"a.txt": []}


def test_empty_and_whitespace_input():
    assert locate_added_lines("") == {}
    assert locate_added_lines("   \n\t\n") == {}
    assert locate_added_lines(None) == {}


def test_garbage_input_yields_empty_map():
    assert locate_added_lines("+orphan addition\n@@ nonsense @@\n+more\n") == {}


def test_malformed_hunk_header_unsets_cursor_until_next_valid_one():
    diff = (
        "+++ b/a.txt\n"
        "@@ -1,1 +1,2 @@\n"
        "+a\n"
        "@@ broken @@\n"
        "+dropped\n"
        "@@ -9,1 +10,2 @@\n"
        " ctx\n"
        "+b\n"
    )
    assert locate_added_lines(diff) == {"a.txt": [1, 11]}


def test_addition_before_hunk_header_is_dropped():
    diff = (
        "+++ b/a.txt\n"
        "+not in a hunk\n"
        "@@ -1,0 +1,1 @@\n"
        "+in a hunk\n"
    )
    assert locate_added_lines(diff) == {"a.txt": [1]}


def test_crlf_diff():
    diff = "+++ b/a.txt\r\n@@ -1,1 +1,2 @@\r\n x\r\n+y\r\n"
    assert locate_added_lines(diff) == {"a.txt": [2]}


def test_only_newline_separates_lines():
    diff = "+++ b/a.c\n@@ -0,0 +1,3 @@\n+a\x0cb\n+c\u2028d\n+e\n"
    assert locate_added_lines(diff) == {"a.c": [1, 2, 3]}
