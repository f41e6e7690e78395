"""
Syntax validation tests for Notion MCP server source files.
"""

import ast
import py_compile
from pathlib import Path

import pytest


SRC_DIR = Path(__file__).parent.parent / "notion_mcp"


class TestSyntaxValidation:
    """Test that all Python source files have valid syntax."""

    SOURCE_FILES = [
        "__init__.py",
        "cache.py",
        "client.py",
        "config.py",
        "conversations.py",
        "credentials.py",
        "discovery.py",
        "errors.py",
        "projects.py",
        "rate_limiter.py",
        "retry.py",
        "scheduler.py",
        "server.py",
        "templates.py",
        "tools.py",
        "usage.py",
        "utils.py",
        "watcher.py",
    ]

    @pytest.mark.parametrize("filename", SOURCE_FILES)
    def test_source_file_syntax(self, filename: str):
        """Test that source file has valid Python syntax."""
        filepath = SRC_DIR / filename
        assert filepath.exists(), f"Source file {filename} does not exist"

        try:
            py_compile.compile(str(filepath), doraise=True)
        except py_compile.PyCompileError as e:
            pytest.fail(f"Syntax error in {filename}: {e}")

    @pytest.mark.parametrize("filename", SOURCE_FILES)
    def test_source_file_parseable(self, filename: str):
        """Test that source file is parseable as AST."""
        filepath = SRC_DIR / filename

        with open(filepath, "r", encoding="utf-8") as f:
            source = f.read()

        try:
            ast.parse(source, filename=filename)
        except SyntaxError as e:
            pytest.fail(f"AST parse error in {filename}: {e}")

    def test_no_unexpected_modules(self):
        """Every module in the package is covered by the list above."""
        present = {p.name for p in SRC_DIR.glob("*.py")}
        assert present == set(self.SOURCE_FILES)
