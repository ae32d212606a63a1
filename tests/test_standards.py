"""
Tests for the development standards capabilities.
"""

from unittest.mock import AsyncMock

import pytest

from activo.providers.llm.base import GatewayError, Message
from activo.tools.standards import (
    CheckCodeQualityTool,
    ListStandardsTool,
    build_review_prompt,
    count_rules,
    create_standards_tools,
)

NAMING_RULES = """# Naming

## NAME-001: Class names use PascalCase
- Severity: warning

## NAME-002: Constants use UPPER_CASE
- Severity: info
"""

ERROR_RULES = """# Errors

## ERR-1: Never swallow exceptions
"""


@pytest.fixture
def standards_dir(tmp_path):
    directory = tmp_path / ".activo" / "standards"
    directory.mkdir(parents=True)
    (directory / "naming.md").write_text(NAMING_RULES)
    (directory / "errors.md").write_text(ERROR_RULES)
    (directory / "_index.md").write_text("## IDX-1: not a rule file\n")
    return directory


@pytest.fixture
def review_gateway():
    gateway = AsyncMock()
    gateway.complete.return_value = Message.assistant("No violations")
    return gateway


def test_count_rules():
    assert count_rules(NAMING_RULES) == 2
    assert count_rules("### NAME-003: too deep\n## lowercase-1\n") == 0


def test_review_prompt_sections():
    prompt = build_review_prompt("class foo: pass\n", "src/app.py", "## NAME-001: PascalCase")

    assert prompt.startswith("You are a code quality expert.")
    assert "[Development standards]\n## NAME-001: PascalCase" in prompt
    assert "File: src/app.py\n```python\nclass foo: pass" in prompt
    assert "3. Overall code quality assessment" in prompt


def test_review_prompt_without_standards():
    prompt = build_review_prompt("x = 1", "main.go", "")

    assert "[Development standards]" not in prompt
    assert "```text\nx = 1" in prompt


def test_group_without_gateway():
    assert [t.name for t in create_standards_tools()] == ["list_standards"]


def test_group_with_gateway(review_gateway):
    names = [t.name for t in create_standards_tools(review_gateway)]
    assert names == ["list_standards", "check_code_quality"]


class TestListStandards:
    """Tests for list_standards."""

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path):
        tool = ListStandardsTool(tmp_path / "nope")
        result = await tool.execute({})

        assert result.success is True
        assert result.content.startswith("No standards directory found")

    @pytest.mark.asyncio
    async def test_empty_directory(self, tmp_path):
        (tmp_path / "_index.md").write_text("# Index\n")
        result = await ListStandardsTool(tmp_path).execute({})

        assert result.content == "No standard files found."

    @pytest.mark.asyncio
    async def test_counts_rules_per_file(self, standards_dir):
        result = await ListStandardsTool(standards_dir).execute({})

        assert result.success is True
        assert result.content == (
            f"Standards Directory: {standards_dir}\n\n"
            "errors.md: 1 rules\n"
            "naming.md: 2 rules\n\n"
            "Total: 2 files, 3 rules"
        )

    @pytest.mark.asyncio
    async def test_directory_argument_overrides_default(self, tmp_path, standards_dir):
        tool = ListStandardsTool(tmp_path / "nope")
        result = await tool.execute({"directory": str(standards_dir)})

        assert result.content.endswith("Total: 2 files, 3 rules")


class TestCheckCodeQuality:
    """Tests for check_code_quality."""

    @pytest.mark.asyncio
    async def test_sends_code_and_rules_to_model(self, project_dir, standards_dir, review_gateway):
        tool = CheckCodeQualityTool(review_gateway, standards_dir)

        result = await tool.execute({"filepath": "src/app.py"})

        assert result.success is True
        assert result.content == "No violations"
        sent = review_gateway.complete.call_args.args[0]
        assert len(sent) == 1
        prompt = sent[0].content
        assert "# TODO: remove" in prompt
        assert "## NAME-001: Class names use PascalCase" in prompt
        assert "## ERR-1: Never swallow exceptions" in prompt
        assert "IDX-1" not in prompt

    @pytest.mark.asyncio
    async def test_missing_file(self, project_dir, review_gateway):
        tool = CheckCodeQualityTool(review_gateway)

        result = await tool.execute({"filepath": "missing.py"})

        assert result.success is False
        assert result.error == "Path not found: missing.py"
        review_gateway.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_directory_rejected(self, project_dir, review_gateway):
        tool = CheckCodeQualityTool(review_gateway)

        result = await tool.execute({"filepath": "src"})

        assert result.error == "Directory check not yet supported. Specify a file."

    @pytest.mark.asyncio
    async def test_reviews_without_standards(self, project_dir, review_gateway):
        tool = CheckCodeQualityTool(review_gateway, project_dir / "no-standards")

        result = await tool.execute({"filepath": "src/app.py"})

        assert result.success is True
        prompt = review_gateway.complete.call_args.args[0][0].content
        assert "[Development standards]" not in prompt

    @pytest.mark.asyncio
    async def test_gateway_error_becomes_failure(self, project_dir, review_gateway):
        review_gateway.complete.side_effect = GatewayError("Ollama error: model not found")
        tool = CheckCodeQualityTool(review_gateway)

        result = await tool.execute({"filepath": "src/app.py"})

        assert result.success is False
        assert result.error == "Ollama error: model not found"
