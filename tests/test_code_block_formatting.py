"""Tests for repairs inside fenced code blocks."""

import pytest

from docpatch.services.post_processors import CodeBlockFormattingProcessor
from docpatch.services.post_processors.code_block_formatting import (
    expand_collapsed_fences,
    format_code_blocks,
    split_concatenated_commands,
)


def _fence(body: str, lang: str = "bash") -> str:
    return f"```{lang}\n{body}\n```"


def _format(text: str) -> str:
    return format_code_blocks(text, [])


# ---------------------------------------------------------------------------
# Command splitting
# ---------------------------------------------------------------------------


class TestCommandSplitting:
    def test_two_commands_on_one_line(self):
        assert _format(_fence("cd /tmp ls -la")) == _fence("cd /tmp\nls -la")

    def test_echo_after_url(self):
        assert _format(_fence("curl http://api echo done")) == _fence("curl http://api\necho done")

    def test_three_commands(self):
        assert split_concatenated_commands("mkdir app cd app git init .") == "mkdir app\ncd app\ngit init ."

    @pytest.mark.parametrize("line", [
        "ls -la | grep foo",
        "npm install && npm run build",
        "cd /tmp; ls -la",
        "make || echo failed",
    ])
    def test_operators_keep_line(self, line):
        assert split_concatenated_commands(line) == line

    @pytest.mark.parametrize("line", [
        "sudo apt install curl wget",
        "docker run -it ubuntu bash -l",
        "ssh host ls -la",
        "pip install python-dotenv",
    ])
    def test_runner_arguments_kept(self, line):
        assert split_concatenated_commands(line) == line

    def test_same_command_after_runner_splits(self):
        assert split_concatenated_commands("npm install npm test") == "npm install\nnpm test"

    def test_wrapper_before_command(self):
        assert split_concatenated_commands("xargs rm -f") == "xargs rm -f"

    def test_quoted_arguments_kept(self):
        line = 'echo "cd /tmp ls" done'
        assert split_concatenated_commands(line) == line

    def test_unbalanced_quote_left_alone(self):
        line = 'echo "unterminated cd /tmp ls -la'
        assert split_concatenated_commands(line) == line

    def test_comment_line_left_alone(self):
        assert split_concatenated_commands("# cd /tmp ls -la") == "# cd /tmp ls -la"

    def test_command_without_argument_not_split(self):
        assert split_concatenated_commands("echo build ls") == "echo build ls"

    def test_indentation_preserved(self):
        assert split_concatenated_commands("    cd /tmp ls -la") == "    cd /tmp\n    ls -la"

    def test_prompt_is_skipped(self):
        assert split_concatenated_commands("$ cd /tmp ls -la") == "$ cd /tmp\nls -la"

    def test_split_before_wrapper(self):
        assert split_concatenated_commands("cd /srv sudo rm -rf cache") == "cd /srv\nsudo rm -rf cache"


# ---------------------------------------------------------------------------
# Stray "O" characters
# ---------------------------------------------------------------------------


class TestStrayO:
    def test_glued_to_previous_word(self):
        assert _format(_fence("echo helloO cd /tmp")) == _fence("echo hello\ncd /tmp")

    def test_standalone_between_commands(self):
        assert _format(_fence("npm install O git status")) == _fence("npm install\ngit status")

    def test_uppercase_words_kept(self):
        body = "echo HELLO cd"
        assert _format(_fence(body)) == _fence(body)

    def test_lowercase_o_kept(self):
        assert _format(_fence("echo hello cd")) == _fence("echo hello cd")


# ---------------------------------------------------------------------------
# Language gating
# ---------------------------------------------------------------------------


class TestLanguages:
    @pytest.mark.parametrize("lang", ["", "bash", "sh", "shell", "console", "zsh"])
    def test_shell_languages_split(self, lang):
        assert _format(_fence("cd /tmp ls -la", lang)) == _fence("cd /tmp\nls -la", lang)

    @pytest.mark.parametrize("lang", ["python", "yaml", "text"])
    def test_other_languages_untouched(self, lang):
        text = _fence("cd /tmp ls -la\nx = 'curlO ls -la'", lang)
        assert _format(text) == text

    def test_language_with_attributes(self):
        text = '```json title="config.json"\n{"a": 1}\n```'
        assert _format(text) == '```json title="config.json"\n{\n  "a": 1\n}\n```'

    def test_prose_outside_blocks_untouched(self):
        text = "Run cd /tmp ls -la then\n\n" + _fence("cd /tmp ls -la")
        assert _format(text) == "Run cd /tmp ls -la then\n\n" + _fence("cd /tmp\nls -la")


# ---------------------------------------------------------------------------
# Fences collapsed onto one line
# ---------------------------------------------------------------------------


class TestCollapsedFences:
    def test_escapes_expanded(self):
        assert expand_collapsed_fences("```bash\\nls -la\\ncd /tmp\\n```") == _fence("ls -la\ncd /tmp")

    def test_escaped_backslash_kept(self):
        assert expand_collapsed_fences("```sh\\necho C:\\\\new\\n```") == _fence("echo C:\\\\new", "sh")

    @pytest.mark.parametrize("text", [
        "```sh\nprintf 'a\\n'\n```",
        "Print `a\\nb` now",
        "No code at all\\n here",
    ])
    def test_other_text_untouched(self, text):
        assert expand_collapsed_fences(text) == text

    def test_expanded_then_split_in_one_pass(self, md_context):
        processor = CodeBlockFormattingProcessor()
        once = processor.process("```bash\\ncurl http://x/api echo done\\n```", md_context)
        assert once.text == _fence("curl http://x/api\necho done")
        assert once.was_modified
        assert processor.process(once.text, md_context).was_modified is False

    def test_not_expanded_outside_markdown(self, yaml_context):
        text = "```bash\\ncurl http://x/api echo done\\n```"
        result = CodeBlockFormattingProcessor().process(text, yaml_context)
        assert result.text == text
        assert not result.was_modified


# ---------------------------------------------------------------------------
# JSON blocks
# ---------------------------------------------------------------------------


class TestJsonBlocks:
    def test_single_line_object_pretty_printed(self):
        text = _fence('{"a":1,"b":[1,2]}', "json")
        assert _format(text) == _fence('{\n  "a": 1,\n  "b": [\n    1,\n    2\n  ]\n}', "json")

    def test_untagged_json_detected(self):
        assert _format(_fence('{"a": 1}', "")) == _fence('{\n  "a": 1\n}', "")

    def test_multiline_json_unchanged(self):
        text = _fence('{\n  "a": 1\n}', "json")
        assert _format(text) == text

    def test_non_ascii_kept(self):
        assert _format(_fence('{"name":"café"}', "json")) == _fence('{\n  "name": "café"\n}', "json")

    def test_broken_tagged_json_repaired_with_warning(self):
        warnings = []
        result = format_code_blocks(_fence('{"a": 1, "b": 2', "json"), warnings)
        assert result == _fence('{\n  "a": 1,\n  "b": 2\n}', "json")
        assert warnings == ["Repaired invalid JSON in code block"]

    def test_untagged_non_json_left_alone(self):
        text = _fence("{not json}", "")
        assert _format(text) == text


# ---------------------------------------------------------------------------
# CodeBlockFormattingProcessor
# ---------------------------------------------------------------------------


class TestCodeBlockFormattingProcessor:
    def test_runs_on_every_target(self, md_context, yaml_context, html_context):
        processor = CodeBlockFormattingProcessor()
        assert processor.should_process(md_context)
        assert processor.should_process(yaml_context)
        assert processor.should_process(html_context)

    def test_process_flags_modification(self, md_context):
        result = CodeBlockFormattingProcessor().process(_fence("cd /tmp ls -la"), md_context)
        assert result.text == _fence("cd /tmp\nls -la")
        assert result.was_modified

    def test_process_without_blocks(self, md_context):
        result = CodeBlockFormattingProcessor().process("No code here.", md_context)
        assert result.text == "No code here."
        assert not result.was_modified

    def test_idempotent(self, md_context):
        processor = CodeBlockFormattingProcessor()
        once = processor.process(_fence("cd /tmp ls -la") + "\n\n" + _fence('{"a":1}', "json"), md_context)
        twice = processor.process(once.text, md_context)
        assert twice.text == once.text
        assert not twice.was_modified
