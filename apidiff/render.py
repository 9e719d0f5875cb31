"""Human-readable reports of a comparison result."""

from __future__ import annotations

import html

from .models import ChangeEntry, ChangeSet, SpecificationChangeSet, Verdict


def _title(change_set: ChangeSet) -> str:
    if isinstance(change_set, SpecificationChangeSet):
        return f"{change_set.old_id} -> {change_set.new_id}"
    return change_set.element or change_set.location


def _counts(change_set: ChangeSet) -> tuple[int, int]:
    breaking = compatible = 0
    for entry in change_set.entries():
        if entry.verdict == Verdict.BREAKING:
            breaking += 1
        elif entry.verdict == Verdict.COMPATIBLE:
            compatible += 1
    return breaking, compatible


class TextRenderer:
    """Indented plain-text tree, also used for console output."""

    indent = "  "

    def render(self, change_set: ChangeSet) -> str:
        breaking, compatible = _counts(change_set)
        lines = [
            f"API comparison: {_title(change_set)}",
            f"Result: {change_set.verdict.label} "
            f"({breaking} breaking, {compatible} compatible)",
        ]
        if change_set.is_unchanged():
            lines.append("No changes.")
            return "\n".join(lines) + "\n"

        lines.append("")
        for depth, node in change_set.walk():
            if depth > 0:
                lines.append(f"{self.indent * (depth - 1)}{node.element} [{node.verdict.label}]")
            for entry in node.changes:
                lines.append(f"{self.indent * depth}{self._entry(entry)}")
        return "\n".join(lines) + "\n"

    def _entry(self, entry: ChangeEntry) -> str:
        return f"{entry.verdict.name:<10} {entry.message} ({entry.location})"


class MarkdownRenderer:
    def render(self, change_set: ChangeSet) -> str:
        breaking, compatible = _counts(change_set)
        lines = [
            f"# API changes: {_title(change_set)}",
            "",
            f"**Result:** {change_set.verdict.label}",
            "",
            "| Breaking | Compatible |",
            "|---:|---:|",
            f"| {breaking} | {compatible} |",
        ]
        if change_set.is_unchanged():
            lines += ["", "No changes."]
            return "\n".join(lines) + "\n"

        for depth, node in change_set.walk():
            if not node.changes:
                continue
            heading = "#" * min(depth + 2, 6)
            lines += ["", f"{heading} {self._escape(node.element or node.location)}", ""]
            for entry in node.changes:
                lines.append(
                    f"- **{entry.verdict.label}** {self._escape(entry.message)} "
                    f"`{entry.location}`"
                )
        return "\n".join(lines) + "\n"

    @staticmethod
    def _escape(text: str) -> str:
        for char in ("\\", "*", "_", "`", "|", "<", ">"):
            text = text.replace(char, "\\" + char)
        return text


class HtmlRenderer:
    """Standalone HTML page with one nested list per result node."""

    def render(self, change_set: ChangeSet) -> str:
        breaking, compatible = _counts(change_set)
        title = html.escape(_title(change_set))
        parts = [
            "<!DOCTYPE html>",
            "<html>",
            f"<head><meta charset=\"utf-8\"><title>API changes: {title}</title></head>",
            "<body>",
            f"<h1>API changes: {title}</h1>",
            f"<p class=\"verdict {change_set.verdict.name.lower()}\">"
            f"Result: {change_set.verdict.label} "
            f"({breaking} breaking, {compatible} compatible)</p>",
        ]
        if change_set.is_unchanged():
            parts.append("<p>No changes.</p>")
        else:
            parts.append(self._node(change_set))
        parts += ["</body>", "</html>"]
        return "\n".join(parts) + "\n"

    def _node(self, node: ChangeSet) -> str:
        items = [
            f"<li class=\"{entry.verdict.name.lower()}\">"
            f"<strong>{entry.verdict.label}</strong> {html.escape(entry.message)} "
            f"<code>{html.escape(entry.location)}</code></li>"
            for entry in node.changes
        ]
        for child in node.children:
            items.append(
                f"<li><span class=\"{child.verdict.name.lower()}\">"
                f"{html.escape(child.element)}</span>{self._node(child)}</li>"
            )
        return "<ul>" + "".join(items) + "</ul>"
