"""Tests for obstatus.logs."""

from unittest.mock import patch

import pytest

from obstatus.logs import (
    ELEVATED_USER_ERROR,
    MAX_LINES,
    MIN_LINES,
    PERMISSION_HELP,
    PRIORITIES,
    SYSTEM_FILTERS,
    USER_FILTERS,
    JournalReader,
    LogQuery,
    LogResult,
    LogStatus,
    build_journal_args,
    clamp_lines,
    classify,
    main,
    narrow_output,
)
from obstatus.runner import CommandError, CommandResult


# ── LogQuery ──────────────────────────────────────────────────────────────


class TestLogQuery:
    def test_defaults(self) -> None:
        query = LogQuery()
        assert query.filter == "all"
        assert query.priority == "all"
        assert query.since == "5 minutes ago"

    def test_unknown_filter(self) -> None:
        with pytest.raises(ValueError, match="filter"):
            LogQuery(filter="printer")

    def test_system_only_filter_rejected_for_user(self) -> None:
        with pytest.raises(ValueError):
            LogQuery(filter="kernel", user=True)

    def test_user_only_filter_rejected_for_system(self) -> None:
        with pytest.raises(ValueError):
            LogQuery(filter="shell")

    def test_unknown_priority(self) -> None:
        with pytest.raises(ValueError, match="priority"):
            LogQuery(priority="loud")

    def test_closed_sets(self) -> None:
        assert len(SYSTEM_FILTERS) == 9
        assert len(USER_FILTERS) == 5
        assert list(PRIORITIES)[1:] == ["emerg", "alert", "crit", "err", "warning", "notice", "info", "debug"]


@pytest.mark.parametrize(
    ("lines", "expected"),
    [(10, MIN_LINES), (50, 50), (200, 200), (1000, 1000), (5000, MAX_LINES)],
)
def test_clamp_lines(lines: int, expected: int) -> None:
    assert clamp_lines(lines) == expected


# ── Argument building ─────────────────────────────────────────────────────


class TestBuildJournalArgs:
    def test_system_all(self) -> None:
        assert build_journal_args(LogQuery()) == ["--since", "5 minutes ago", "--no-pager", "-q"]

    def test_kernel_errors(self) -> None:
        args = build_journal_args(LogQuery(filter="kernel", priority="err"))
        assert args == ["--since", "5 minutes ago", "--no-pager", "-q", "-p", "err", "-k"]

    def test_unit_filter(self) -> None:
        args = build_journal_args(LogQuery(filter="network"))
        assert args[-2:] == ["-u", "NetworkManager"]

    def test_user_shell(self) -> None:
        args = build_journal_args(LogQuery(filter="shell", user=True))
        assert args == ["--since", "5 minutes ago", "--no-pager", "--user", "-q", "_COMM=gnome-shell"]

    def test_user_services_has_no_extra_args(self) -> None:
        args = build_journal_args(LogQuery(filter="services", user=True))
        assert args[-1] == "-q"

    def test_line_limit_clamped(self) -> None:
        args = build_journal_args(LogQuery(lines=5))
        assert args[args.index("-n") + 1] == str(MIN_LINES)

    def test_no_since(self) -> None:
        assert "--since" not in build_journal_args(LogQuery(since=None))

    def test_usb_uses_kernel_log(self) -> None:
        assert build_journal_args(LogQuery(filter="usb"))[-1] == "-k"


class TestNarrowOutput:
    KERNEL = "usb 1-2: new device\nACPI: thermal\nxhci_hcd: USB disconnect\n"

    def test_usb_keeps_matching_lines(self) -> None:
        result = narrow_output(LogQuery(filter="usb"), CommandResult(self.KERNEL, ""))
        assert result.stdout == "usb 1-2: new device\nxhci_hcd: USB disconnect"

    def test_other_filters_untouched(self) -> None:
        original = CommandResult(self.KERNEL, "")
        assert narrow_output(LogQuery(filter="kernel"), original) is original


# ── Classification ────────────────────────────────────────────────────────


class TestClassify:
    def test_ok(self) -> None:
        result = classify(CommandResult("line one\nline two", ""), elevated=False)
        assert result == LogResult(LogStatus.OK, "line one\nline two")
        assert result.entry_count == 2

    def test_empty_system(self) -> None:
        result = classify(CommandResult("", ""), elevated=False)
        assert result.status is LogStatus.EMPTY
        assert result.text == "No logs found"

    def test_empty_user(self) -> None:
        assert classify(CommandResult("  \n", ""), elevated=False, user=True).text == "No user logs found"

    def test_insufficient_permissions_with_partial_output(self) -> None:
        err = "Hint: You are currently not seeing messages from other users. insufficient permissions"
        result = classify(CommandResult("my entry", err), elevated=False)
        assert result.status is LogStatus.PERMISSION
        assert result.text == PERMISSION_HELP + "my entry"
        assert "systemd-journal" in result.text

    def test_insufficient_permissions_no_output(self) -> None:
        result = classify(CommandResult("", "insufficient permissions"), elevated=False)
        assert result.text.endswith("No accessible logs found")

    def test_permission_marker_ignored_when_elevated(self) -> None:
        result = classify(CommandResult("", "insufficient permissions", 1), elevated=True)
        assert result.status is LogStatus.ERROR

    def test_pkexec_dismissed_exit_code(self) -> None:
        result = classify(CommandResult("", "", 126), elevated=True)
        assert result.status is LogStatus.CANCELLED
        assert result.text == "Authentication cancelled by user."

    def test_pkexec_dismissed_message(self) -> None:
        err = "Error executing command as another user: Request dismissed"
        result = classify(CommandResult("", err, 127), elevated=True)
        assert result.status is LogStatus.CANCELLED

    def test_exit_126_without_pkexec_is_not_cancelled(self) -> None:
        result = classify(CommandResult("", "", 126), elevated=False)
        assert result.status is LogStatus.EMPTY

    def test_pkexec_not_authorised_is_error(self) -> None:
        result = classify(CommandResult("", "Not authorized\n", 127), elevated=True)
        assert result.status is LogStatus.ERROR

    def test_elevated_error(self) -> None:
        result = classify(CommandResult("", "boom", 1), elevated=True)
        assert result.is_error
        assert result.text == "Error reading logs with elevated permissions:\nboom\n\nOutput:\nNo output"

    def test_system_error_keeps_output(self) -> None:
        result = classify(CommandResult("partial", "bad option"), elevated=False)
        assert result.text == "Error reading logs:\nbad option\n\nOutput:\npartial"

    def test_user_error(self) -> None:
        result = classify(CommandResult("partial", "bad option"), elevated=False, user=True)
        assert result.text == "Error reading logs:\nbad option"


# ── JournalReader ─────────────────────────────────────────────────────────


class TestJournalReader:
    def test_plain_read(self, fake_runner) -> None:
        query = LogQuery(filter="boot")
        fake_runner.responses[("journalctl", *build_journal_args(query))] = "booted\n"
        result = JournalReader(fake_runner).read(query)
        assert result.status is LogStatus.OK
        assert fake_runner.calls == [("journalctl", "--since", "5 minutes ago", "--no-pager", "-q", "-b")]

    def test_elevated_goes_through_pkexec(self, fake_runner) -> None:
        query = LogQuery(filter="auth")
        fake_runner.responses[("pkexec", "journalctl", *build_journal_args(query))] = "login ok\n"
        result = JournalReader(fake_runner).read(query, elevated=True)
        assert result.status is LogStatus.OK
        assert fake_runner.calls[0][:2] == ("pkexec", "journalctl")

    def test_elevated_cancelled(self, fake_runner) -> None:
        query = LogQuery()
        fake_runner.responses[("pkexec", "journalctl", *build_journal_args(query))] = CommandResult("", "", 126)
        assert JournalReader(fake_runner).read(query, elevated=True).status is LogStatus.CANCELLED

    def test_elevated_user_is_error_result(self, fake_runner) -> None:
        result = JournalReader(fake_runner).read(LogQuery(user=True), elevated=True)
        assert result.status is LogStatus.ERROR
        assert result.text == ELEVATED_USER_ERROR
        assert fake_runner.calls == []

    def test_spawn_failure(self, fake_runner) -> None:
        query = LogQuery()
        fake_runner.responses[("journalctl", *build_journal_args(query))] = CommandError(
            ["journalctl"], "command not found",
        )
        result = JournalReader(fake_runner).read(query)
        assert result.status is LogStatus.ERROR
        assert result.text.startswith("Error loading logs:")

    def test_usb_narrowed(self, fake_runner) -> None:
        query = LogQuery(filter="usb")
        fake_runner.responses[("journalctl", *build_journal_args(query))] = "usb 3-1: reset\nlid closed\n"
        result = JournalReader(fake_runner).read(query)
        assert result.text == "usb 3-1: reset"

    def test_usb_no_matches_is_empty(self, fake_runner) -> None:
        query = LogQuery(filter="usb")
        fake_runner.responses[("journalctl", *build_journal_args(query))] = "lid closed\n"
        assert JournalReader(fake_runner).read(query).status is LogStatus.EMPTY


# ── CLI ───────────────────────────────────────────────────────────────────


class TestMain:
    @patch("obstatus.logs.JournalReader")
    def test_user_and_elevated_rejected(self, mock_reader, capsys) -> None:
        with patch("sys.argv", ["obstatus-logs", "--user", "--elevated"]):
            with pytest.raises(SystemExit) as exc:
                main()
        assert exc.value.code == 2
        assert "--elevated only applies to system logs" in capsys.readouterr().err
        mock_reader.assert_not_called()
