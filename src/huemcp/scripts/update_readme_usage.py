#!/usr/bin/env python3
"""Regenerate the README ``## Usage`` section from the CLI parser.

The section gets one fenced block for ``huemcp --help`` and one per
subcommand, so flags like ``--port`` or ``--sequential`` stay documented.
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from markdown_it import MarkdownIt

from huemcp.main import build_args

ROOT = Path(__file__).resolve().parent.parent.parent.parent
README_PATH = ROOT / "README.md"
HELP_COLUMNS = "80"

HelpBlock = tuple[str, str]


def collect_help(parser: argparse.ArgumentParser) -> list[HelpBlock]:
    """Return ``(command line, help text)`` for the parser and each subcommand."""
    blocks = [(f"{parser.prog} --help", parser.format_help().rstrip())]
    for action in parser._actions:
        if not isinstance(action, argparse._SubParsersAction):
            continue
        for name, subparser in action.choices.items():
            blocks.append((f"{parser.prog} {name} --help", subparser.format_help().rstrip()))
    return blocks


def build_usage_section(blocks: list[HelpBlock]) -> list[str]:
    lines = ["## Usage", ""]
    for command_line, help_text in blocks:
        lines += ["```text", f"$ {command_line}", help_text, "```", ""]
    return lines


def find_usage_bounds(readme_text: str) -> tuple[int, int, list[str]]:
    """Return the line span of the ``## Usage`` section and the README lines."""
    tokens = MarkdownIt().parse(readme_text)
    headings = [
        (token.map[0], tokens[index + 1].content.strip())
        for index, token in enumerate(tokens)
        if token.type == "heading_open" and token.tag == "h2" and token.map
    ]
    lines = readme_text.splitlines()

    starts = [line for line, title in headings if title == "Usage"]
    if not starts:
        raise RuntimeError("Could not find '## Usage' in README.md.")
    start = starts[0]
    end = next((line for line, _ in headings if line > start), len(lines))
    return start, end, lines


def replace_usage(readme_text: str, blocks: list[HelpBlock]) -> str:
    start, end, lines = find_usage_bounds(readme_text)
    return "\n".join(lines[:start] + build_usage_section(blocks) + lines[end:]).rstrip() + "\n"


def main() -> int:
    # argparse wraps help text to $COLUMNS.
    os.environ["COLUMNS"] = HELP_COLUMNS
    readme_text = README_PATH.read_text(encoding="utf-8")
    updated = replace_usage(readme_text, collect_help(build_args()))

    if updated == readme_text:
        print("README usage section is up to date.")
        return 0

    README_PATH.write_text(updated, encoding="utf-8")
    print(f"Updated usage section in {README_PATH.name}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
