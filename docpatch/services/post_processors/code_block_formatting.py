"""Code block formatting post-processor.

Unlike the other processors this one works on the content of fenced code
blocks, since its job is to repair the code itself:

- In markdown targets, fences serialized onto one line with literal ``\\n``
  escapes are expanded first, so the repairs below see their real lines.
- Shell blocks: commands emitted on one line are split back into separate
  lines, and stray ``O`` characters (corrupted newlines) between two commands
  are removed.
- JSON blocks: single-line objects/arrays are pretty-printed. Broken JSON in
  a ``json`` block is repaired with ``json_repair`` when possible.

Blocks in any other language are left byte-identical.
"""

import json
import logging
import re
from typing import List

from json_repair import repair_json

from .base import ProcessingContext, ProcessResult, never_raises

logger = logging.getLogger(__name__)

CLI_COMMANDS = frozenset({
    "curl", "echo", "cat", "grep", "awk", "sed", "cd", "ls", "mkdir", "rm",
    "cp", "mv", "chmod", "chown", "sudo", "apt", "yum", "npm", "yarn", "pnpm",
    "node", "python", "pip", "docker", "git", "ssh", "scp", "wget", "tar",
    "unzip", "systemctl", "service", "journalctl", "export", "source", "bash",
    "sh", "zsh",
})

SHELL_LANGUAGES = frozenset({"", "bash", "sh", "shell", "console", "zsh"})

# Commands that take another command (or its verb) as an argument.
COMMAND_WRAPPERS = frozenset({
    "sudo", "time", "nohup", "exec", "env", "nice", "watch", "xargs", "which",
    "man", "type", "command",
})

# Commands whose arguments routinely include other command names
# ("docker run img bash", "apt install curl").
COMMAND_RUNNERS = frozenset({
    "docker", "podman", "ssh", "kubectl", "sudo", "su", "apt", "apt-get",
    "yum", "dnf", "brew", "pip", "pip3", "npm", "yarn", "pnpm", "apk",
})

SHELL_OPERATORS = frozenset({"|", "||", "&&", ";", "&"})

_COMMAND_ALTERNATION = "|".join(sorted((re.escape(cmd) for cmd in CLI_COMMANDS), key=len, reverse=True))

# A whole fence serialized onto one line: ```bash\nls\n```
_COLLAPSED_FENCE_RE = re.compile(r"```[^\n`]*\\n[^\n]*?```")
_LITERAL_NEWLINE_RE = re.compile(r"(?<!\\)\\n")
_FENCED_BLOCK_RE = re.compile(r"^(?P<open>[ \t]*```(?P<info>[^\n`]*)\n)(?P<body>[\s\S]*?)```", re.MULTILINE)
_GLUED_STRAY_O_RE = re.compile(rf"(?<=[a-z0-9_\-])O[ \t]*(?=(?:{_COMMAND_ALTERNATION})[ \t])")
_SPACED_STRAY_O_RE = re.compile(rf"(?<=[^\s|;&])[ \t]+O[ \t]+(?=(?:{_COMMAND_ALTERNATION})[ \t])")
_SHELL_TOKEN_RE = re.compile(r"""(?:[^\s"']+|"(?:[^"\\]|\\.)*"|'[^']*')+""")
_ENDS_COMMAND_RE = re.compile(r"""['")\w-]$""")
_ENV_ASSIGNMENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")


def expand_collapsed_fences(text: str) -> str:
    """Turn literal ``\\n`` escapes back into newlines in one-line fences.

    Fences that already span several lines are left alone, so a real
    ``printf 'a\\n'`` inside a block keeps its escape.
    """
    return _COLLAPSED_FENCE_RE.sub(lambda m: _LITERAL_NEWLINE_RE.sub("\n", m.group(0)), text)


def _remove_stray_o(body: str) -> str:
    body = _GLUED_STRAY_O_RE.sub("\n", body)
    return _SPACED_STRAY_O_RE.sub("\n", body)


def _split_command_line(line: str) -> str:
    """Break one shell line at every command that starts mid-line."""
    stripped = line.lstrip()
    if not stripped or stripped.startswith("#"):
        return line

    tokens = list(_SHELL_TOKEN_RE.finditer(line))
    position = 0
    for token in tokens:
        if line[position:token.start()].strip():
            return line  # unbalanced quote
        position = token.end()
    if line[position:].strip():
        return line

    cuts: List[int] = []
    expect_command = True
    command = None

    for i, token in enumerate(tokens):
        word = token.group(0)
        if i == 0 and word == "$":
            continue
        if word in SHELL_OPERATORS:
            expect_command, command = True, None
            continue

        if expect_command:
            if word not in COMMAND_WRAPPERS and not _ENV_ASSIGNMENT_RE.match(word):
                expect_command, command = False, word
        elif (
            word in CLI_COMMANDS
            and i + 1 < len(tokens)
            and _ENDS_COMMAND_RE.search(tokens[i - 1].group(0))
            and (command not in COMMAND_RUNNERS or word == command)
        ):
            cuts.append(token.start())
            command = word
            expect_command = word in COMMAND_WRAPPERS

        if word.endswith(";") and word != ";":
            expect_command, command = True, None

    if not cuts:
        return line

    indent = line[:len(line) - len(stripped)]
    bounds = [len(indent)] + cuts + [len(line)]
    commands = [line[start:end].rstrip() for start, end in zip(bounds, bounds[1:])]
    return indent + f"\n{indent}".join(commands)


def split_concatenated_commands(body: str) -> str:
    """e.g. ``curl http://api echo done`` -> ``curl http://api\\necho done``"""
    return "\n".join(_split_command_line(line) for line in body.split("\n"))


def _is_json_candidate(body: str) -> bool:
    stripped = body.strip()
    return bool(stripped) and "\n" not in stripped and stripped[0] in "{["


def format_json_body(body: str, lang: str, warnings: List[str]) -> str:
    """Pretty-print a single-line JSON body, keeping surrounding whitespace."""
    if not _is_json_candidate(body):
        return body

    stripped = body.strip()
    try:
        parsed = json.loads(stripped)
    except ValueError:
        if lang != "json":
            return body
        parsed = repair_json(stripped, return_objects=True)
        if not isinstance(parsed, (dict, list)) or not parsed:
            warnings.append("JSON code block is invalid and could not be repaired")
            return body
        warnings.append("Repaired invalid JSON in code block")

    if not isinstance(parsed, (dict, list)):
        return body

    formatted = json.dumps(parsed, indent=2, ensure_ascii=False)
    leading = body[:len(body) - len(body.lstrip())]
    trailing = body[len(body.rstrip()):]
    return f"{leading}{formatted}{trailing}"


def _is_untagged_json(body: str) -> bool:
    if not _is_json_candidate(body):
        return False
    try:
        return isinstance(json.loads(body.strip()), (dict, list))
    except ValueError:
        return False


def format_code_blocks(text: str, warnings: List[str]) -> str:
    """Repair shell and JSON fenced blocks; appends to ``warnings``."""

    def _format_block(match: re.Match) -> str:
        info = match.group("info").strip()
        lang = info.split()[0].lower() if info else ""
        body = match.group("body")

        if lang == "json" or (not lang and _is_untagged_json(body)):
            new_body = format_json_body(body, lang or "json", warnings)
        elif lang in SHELL_LANGUAGES:
            new_body = split_concatenated_commands(_remove_stray_o(body))
        else:
            return match.group(0)

        return f"{match.group('open')}{new_body}```"

    return _FENCED_BLOCK_RE.sub(_format_block, text)


class CodeBlockFormattingProcessor:
    """Fixes concatenated commands and collapsed JSON inside code blocks."""

    name = "code-block-formatting"
    description = "Fixes formatting issues inside code blocks like concatenated commands"

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def should_process(self, context: ProcessingContext) -> bool:
        return True

    @never_raises
    def process(self, text: str, context: ProcessingContext) -> ProcessResult:
        if not text:
            return ProcessResult(text="")

        warnings: List[str] = []
        source = expand_collapsed_fences(text) if context.is_markdown else text
        result = format_code_blocks(source, warnings)
        was_modified = result != text
        if was_modified:
            logger.debug("[PostProcess] Reformatted code blocks for %s", context.target_file_path)
        return ProcessResult(text=result, warnings=warnings, was_modified=was_modified)
