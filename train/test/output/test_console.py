"""Tests for train.output.console module."""

from __future__ import annotations

import pytest

from train.output.console import ConsoleProtocol, MockConsole, RichConsole, Style, diff_line_style


class TestDiffLineStyle:
    @pytest.mark.parametrize(
        ("line", "style"),
        [
            ("--- a/pom.xml", "cyan"),
            ("+++ b/pom.xml", "cyan"),
            ("@@ -4,7 +4,7 @@", "cyan"),
            ("-    <version>11.0</version>", "red"),
            ("+    <version>12.0</version>", "green"),
            ("diff --git a/pom.xml b/pom.xml", "yellow"),
            ("index 3b18e51..a9c7d2f 100644", "yellow"),
            ("     <artifactId>api</artifactId>", ""),
            ("", ""),
        ],
    )
    def test_styles(self, line: str, style: str) -> None:
        assert diff_line_style(line) == style


class TestMockConsole:
    def test_records_styles(self) -> None:
        console = MockConsole()
        console.print("plain")
        console.success("done")
        console.warning("careful")
        console.error("broken")
        console.info("fyi")
        console.header("Phase 1")
        console.newline()

        assert console.messages == [
            "plain",
            "OK done",
            "warning: careful",
            "error: broken",
            "info: fyi",
            "Phase 1",
            "",
        ]
        assert console.has_error()
        assert console.has_warning()
        assert console.outputs[5].style == Style.HEADER

    def test_diff_splits_lines(self) -> None:
        console = MockConsole()
        console.diff("-a\n+b\n")
        assert console.messages == ["-a", "+b"]

    def test_find(self) -> None:
        console = MockConsole()
        console.print("proezd-api: 2/2 pom.xml files updated")
        console.print("proezd-bo: 1/1 pom.xml files updated")
        assert len(console.find("proezd-api")) == 1
        assert console.find("missing") == []

    def test_satisfies_protocol(self) -> None:
        console: ConsoleProtocol = MockConsole()
        console.print("x", Style.DIM)


class TestRichConsole:
    def test_markup_in_messages_is_not_interpreted(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        console = RichConsole()
        console.info("tag [release-12.0] created")
        console.print("[bold]raw[/bold]")
        out = capsys.readouterr().out
        assert "[release-12.0]" in out
        assert "[bold]raw[/bold]" in out

    def test_diff_prints_every_line(self, capsys: pytest.CaptureFixture[str]) -> None:
        RichConsole().diff("-    <version>11.0</version>\n+    <version>12.0</version>")
        out = capsys.readouterr().out
        assert "11.0" in out
        assert "12.0" in out
