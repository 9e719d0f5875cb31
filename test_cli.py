"""Tests for the command line interface and report renderers."""

import json

import pytest
import yaml
from apidiff import (
    ChangeKind,
    HtmlRenderer,
    MarkdownRenderer,
    SpecificationChangeSet,
    TextRenderer,
    Verdict,
)
from apidiff.cli import ExitPolicy, exit_code, main
from apidiff.models import ChangeSet, NodeKind


def write_doc(path, paths):
    path.write_text(yaml.safe_dump({"openapi": "3.0.3", "paths": paths}))
    return str(path)


OK = {"responses": {"200": {"description": "OK"}}}


@pytest.fixture
def documents(tmp_path):
    """Baseline plus one compatible and one breaking revision."""
    return {
        "old": write_doc(tmp_path / "old.yaml", {"/users": {"get": OK}}),
        "same": write_doc(tmp_path / "same.yaml", {"/users": {"get": OK}}),
        "compatible": write_doc(tmp_path / "compatible.yaml", {"/users": {"get": OK}, "/orders": {"get": OK}}),
        "breaking": write_doc(tmp_path / "breaking.yaml", {}),
    }


def result_with(*verdicts):
    root = SpecificationChangeSet(old_id="v1", new_id="v2")
    paths = ChangeSet(element="paths", kind=NodeKind.PATHS, location="$.paths")
    for verdict in verdicts:
        paths.add_change(ChangeKind.PATH_ADDED, verdict, f"change <{verdict.name}>")
    root.add_child(paths)
    return root


class TestExitCode:
    """Test mapping results to exit codes."""

    @pytest.mark.parametrize("verdicts,policy,expected", [
        ((), ExitPolicy.COMPATIBLE, 0),
        ((Verdict.COMPATIBLE,), ExitPolicy.COMPATIBLE, 0),
        ((Verdict.BREAKING,), ExitPolicy.COMPATIBLE, 1),
        ((), ExitPolicy.FAIL_ON_CHANGED, 0),
        ((Verdict.COMPATIBLE,), ExitPolicy.FAIL_ON_CHANGED, 1),
        ((Verdict.BREAKING,), ExitPolicy.PRINT_STATE, 0),
    ])
    def test_policies(self, verdicts, policy, expected):
        """Test each exit policy."""
        assert exit_code(result_with(*verdicts), policy) == expected


class TestMain:
    """Test the apidiff command."""

    def test_compatible(self, documents):
        """Test compatible changes exit 0 by default."""
        assert main(["--old", documents["old"], "--new", documents["compatible"]]) == 0

    def test_breaking(self, documents):
        """Test breaking changes exit 1 by default."""
        assert main(["-o", documents["old"], "-n", documents["breaking"]]) == 1

    def test_fail_on_changed(self, documents):
        """Test any change fails with fail-on-changed."""
        args = ["--exit", "fail-on-changed", "--old", documents["old"]]
        assert main(args + ["--new", documents["compatible"]]) == 1
        assert main(args + ["--new", documents["same"]]) == 0

    def test_print_state(self, documents, capsys):
        """Test print-state prints the verdict and exits 0."""
        code = main(["--old", documents["old"], "--new", documents["breaking"], "--exit", "print-state"])
        assert code == 0
        assert capsys.readouterr().out.strip() == "Breaking"

    def test_console(self, documents, capsys):
        """Test the console report."""
        main(["--old", documents["old"], "--new", documents["compatible"], "--console"])
        out = capsys.readouterr().out
        assert "old -> compatible" in out
        assert "Path /orders added" in out

    def test_report_files(self, documents, tmp_path):
        """Test every report format is written."""
        outputs = {fmt: tmp_path / f"report.{fmt}" for fmt in ("markdown", "html", "text", "json")}
        args = ["--old", documents["old"], "--new", documents["breaking"]]
        for fmt, path in outputs.items():
            args += [f"--{fmt}", str(path)]

        assert main(args) == 1
        assert outputs["markdown"].read_text().startswith("# API changes: old -> breaking")
        assert "<html>" in outputs["html"].read_text()
        assert "Path /users removed" in outputs["text"].read_text()

        data = json.loads(outputs["json"].read_text())
        assert data["is_compatible"] is False
        assert data["summary"]["paths_removed"] == 1

    def test_unwritable_report(self, documents, tmp_path):
        """Test a failed report write does not change the exit code."""
        target = tmp_path / "missing" / "report.md"
        code = main(["--old", documents["old"], "--new", documents["compatible"], "--markdown", str(target)])
        assert code == 0
        assert not target.exists()

    def test_missing_document(self, documents, tmp_path):
        """Test a missing document is an input error."""
        assert main(["--old", documents["old"], "--new", str(tmp_path / "nope.yaml")]) == 2

    def test_strict_document_error(self, documents, tmp_path):
        """Test strict mode turns document issues into an input error."""
        broken = tmp_path / "broken.yaml"
        broken.write_text("openapi: 3.0.3\n")
        assert main(["--old", documents["old"], "--new", str(broken)]) == 1
        assert main(["--old", documents["old"], "--new", str(broken), "--strict"]) == 2

    def test_ignore(self, documents):
        """Test ignored nodes are left out of the comparison."""
        args = ["--old", documents["old"], "--new", documents["breaking"]]
        assert main(args + ["--ignore", "$.paths.'/users'"]) == 0

    def test_config_file(self, documents, tmp_path):
        """Test options are read from a config file."""
        config = tmp_path / "apidiff.yaml"
        config.write_text("ignore_paths:\n  - \"$.paths.'/users'\"\n")
        args = ["--old", documents["old"], "--new", documents["breaking"], "--config", str(config)]
        assert main(args) == 0

    def test_invalid_config(self, documents, tmp_path):
        """Test an invalid config file is an input error."""
        config = tmp_path / "apidiff.yaml"
        config.write_text("colour: blue\n")
        args = ["--old", documents["old"], "--new", documents["same"], "--config", str(config)]
        assert main(args) == 2


class TestRenderers:
    """Test report rendering."""

    def test_text_unchanged(self):
        """Test an unchanged result renders a short report."""
        text = TextRenderer().render(result_with())
        assert "Result: Unchanged" in text
        assert "No changes." in text

    def test_text_tree(self):
        """Test findings are listed under their node."""
        text = TextRenderer().render(result_with(Verdict.BREAKING, Verdict.COMPATIBLE))
        assert "Result: Breaking (1 breaking, 1 compatible)" in text
        assert "paths [Breaking]" in text
        assert "BREAKING" in text

    def test_markdown(self):
        """Test the Markdown report."""
        markdown = MarkdownRenderer().render(result_with(Verdict.COMPATIBLE))
        assert markdown.startswith("# API changes: v1 -> v2")
        assert "**Result:** Compatible" in markdown
        assert "| 0 | 1 |" in markdown
        assert "`$.paths`" in markdown

    def test_html_escapes(self):
        """Test the HTML report escapes messages."""
        page = HtmlRenderer().render(result_with(Verdict.BREAKING))
        assert "change &lt;BREAKING&gt;" in page
        assert "change <BREAKING>" not in page
        assert "Result: Breaking" in page
