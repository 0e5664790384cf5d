# agentexec/executors/code.py

import logging
import re
import textwrap
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from agentexec.errors import ExecutionFailure, ParameterError, UnsupportedOperation
from agentexec.executors.base import SnapshotCapable, TaskExecutor
from agentexec.observability.trace import SourceReference, SourceType
from agentexec.rollback.snapshot import ActionSnapshot, ActionType, SnapshotData
from agentexec.security.validator import validate_file_path
from agentexec.tasks.schema import Task, TaskResult, TaskType

logger = logging.getLogger(__name__)

# modification_type -> parameters it needs besides file_path
REQUIRED_PARAMETERS: Dict[str, Tuple[str, ...]] = {
    "replace_content": ("new_content",),
    "replace_text": ("old_text", "new_text"),
    "insert_code": ("code_to_insert",),
    "add_import": ("import_statement",),
    "add_method": ("class_name", "method_code"),
    "modify_method": ("method_name", "new_content"),
}

PYTHON_SUFFIXES = (".py", ".pyi")
INDENT = "    "

_IMPORT_LINE = re.compile(r"^(?:import|from)\s+\S.*$", re.MULTILINE)
_PACKAGE_LINE = re.compile(r"^package\s+[\w.]+\s*;?\s*$", re.MULTILINE)


class CodeModificationExecutor(TaskExecutor, SnapshotCapable):
    """
    Text-level edits of an existing source file.

    Python files are navigated by indentation, every other language by
    brace matching. Strings and comments are not parsed, so a brace inside a
    string literal can throw the matcher off.
    """

    handles = TaskType.CODE_MODIFICATION

    def validate_parameters(self, task: Task) -> None:
        validate_file_path(self.require(task, "file_path"), self.project_root)
        modification = self.operation_of(task, "modification_type")
        if modification not in REQUIRED_PARAMETERS:
            raise UnsupportedOperation(f"Unsupported modification type: {modification}")
        for key in REQUIRED_PARAMETERS[modification]:
            # Empty replacement text is legitimate
            if task.get_parameter(key, str) is None:
                raise ParameterError(key)

    def _run(self, task: Task) -> TaskResult:
        file_path = task.get_parameter("file_path", str)
        target = validate_file_path(file_path, self.project_root)
        if not target.is_file():
            raise ExecutionFailure(f"File not found: {file_path}")

        modification = self.operation_of(task, "modification_type")
        original, newline = _read_source(target, file_path)
        updated, message = getattr(self, f"_{modification}")(task, target, original)

        if updated != original:
            target.write_bytes(_restore_newlines(updated, newline).encode("utf-8"))
        logger.info("%s on %s: %s", modification, file_path, message)

        return TaskResult.ok(message, {
            "file_path": file_path,
            "modification_type": modification,
            "changed": updated != original,
            "sources": [SourceReference(uri=str(target), type=SourceType.FILE,
                                        description=f"{modification} in {file_path}")],
        })

    # ------------------------------------------------------------
    # Modifications: each returns (new_text, message)
    # ------------------------------------------------------------
    def _replace_content(self, task: Task, target: Path, text: str):
        return task.get_parameter("new_content", str), f"Content of {target.name} replaced"

    def _replace_text(self, task: Task, target: Path, text: str):
        old = task.get_parameter("old_text", str)
        new = task.get_parameter("new_text", str)
        if not old:
            raise ParameterError("old_text", "Parameter 'old_text' cannot be empty")
        count = text.count(old)
        if count == 0:
            raise ExecutionFailure(f"Text to replace not found in {target.name}")
        if count > 1:
            raise ExecutionFailure(
                f"Text to replace occurs {count} times in {target.name}; it must be unique"
            )
        return text.replace(old, new, 1), f"Replaced 1 occurrence in {target.name}"

    def _insert_code(self, task: Task, target: Path, text: str):
        code = task.get_parameter("code_to_insert", str)
        line_number = task.get_parameter("line_number", int)
        position = task.get_parameter("position", int)

        if line_number is not None:
            lines = text.splitlines(keepends=True)
            if not 1 <= line_number <= len(lines) + 1:
                raise ExecutionFailure(
                    f"Line {line_number} out of range (file has {len(lines)} lines)"
                )
            if lines and not lines[-1].endswith("\n") and line_number == len(lines) + 1:
                lines[-1] += "\n"
            lines.insert(line_number - 1, _with_newline(code))
            return "".join(lines), f"Code inserted at line {line_number}"

        if position is not None:
            if not 0 <= position <= len(text):
                raise ExecutionFailure(f"Position {position} out of range (file has {len(text)} chars)")
            return text[:position] + code + text[position:], f"Code inserted at position {position}"

        prefix = text if not text or text.endswith("\n") else text + "\n"
        return prefix + _with_newline(code), "Code appended"

    def _add_import(self, task: Task, target: Path, text: str):
        statement = task.get_parameter("import_statement", str).strip()
        if target.suffix not in PYTHON_SUFFIXES and not statement.startswith("import "):
            # Brace languages: "java.util.List" -> "import java.util.List;"
            statement = f"import {statement.rstrip(';')};"

        if any(line.strip() == statement for line in text.splitlines()):
            return text, f"Import already present: {statement}"

        imports = list(_IMPORT_LINE.finditer(text))
        if imports:
            insert_at = imports[-1].end()
        else:
            package = _PACKAGE_LINE.search(text)
            insert_at = package.end() if package else None

        if insert_at is None:
            return f"{statement}\n{text}", f"Import added: {statement}"
        return text[:insert_at] + "\n" + statement + text[insert_at:], f"Import added: {statement}"

    def _add_method(self, task: Task, target: Path, text: str):
        class_name = task.get_parameter("class_name", str)
        method_code = textwrap.dedent(task.get_parameter("method_code", str)).strip("\n")

        if target.suffix in PYTHON_SUFFIXES:
            match = re.search(rf"^([ \t]*)class\s+{re.escape(class_name)}\b[^\n]*:[ \t]*$", text, re.MULTILINE)
            if not match:
                raise ExecutionFailure(f"Class '{class_name}' not found in {target.name}")
            indent = match.group(1)
            lines = text.splitlines(keepends=True)
            start_line = text.count("\n", 0, match.start())
            end_line = _python_block_end(lines, start_line, len(indent))
            block = "\n" + textwrap.indent(method_code, indent + INDENT) + "\n"
            if end_line > 0 and not lines[end_line - 1].endswith("\n"):
                lines[end_line - 1] += "\n"
            lines.insert(end_line, block)
            return "".join(lines), f"Method added to class {class_name}"

        match = re.search(rf"^([ \t]*)[^\n]*\bclass\s+{re.escape(class_name)}\b[^{{;]*\{{", text, re.MULTILINE)
        if not match:
            raise ExecutionFailure(f"Class '{class_name}' not found in {target.name}")
        close = _matching_brace(text, match.end() - 1)
        body = textwrap.indent(method_code, match.group(1) + INDENT)
        # Insert on its own line just before the closing brace of the class
        line_start = text.rfind("\n", 0, close) + 1
        if text[line_start:close].strip():
            insert = f"\n{body}\n{match.group(1)}"
            return text[:close] + insert + text[close:], f"Method added to class {class_name}"
        return text[:line_start] + f"\n{body}\n" + text[line_start:], f"Method added to class {class_name}"

    def _modify_method(self, task: Task, target: Path, text: str):
        method_name = task.get_parameter("method_name", str)
        new_content = textwrap.dedent(task.get_parameter("new_content", str)).strip("\n")

        if target.suffix in PYTHON_SUFFIXES:
            match = re.search(
                rf"^([ \t]*)(?:async\s+)?def\s+{re.escape(method_name)}\s*\(", text, re.MULTILINE
            )
            if not match:
                raise ExecutionFailure(f"Method '{method_name}' not found in {target.name}")
            indent = match.group(1)
            lines = text.splitlines(keepends=True)
            def_line = text.count("\n", 0, match.start())
            start_line = def_line
            # Decorators belong to the definition
            while start_line > 0 and lines[start_line - 1].strip().startswith("@"):
                start_line -= 1
            end_line = _python_block_end(lines, def_line, len(indent))
            # Keep trailing blank lines that separate it from the next definition
            while end_line > def_line + 1 and not lines[end_line - 1].strip():
                end_line -= 1
            replacement = textwrap.indent(new_content, indent) + "\n"
            lines[start_line:end_line] = [replacement]
            return "".join(lines), f"Method '{method_name}' modified"

        match = re.search(
            rf"^([ \t]*)[^\n;{{}}]*\b{re.escape(method_name)}\s*\([^)]*\)[^;{{}}]*\{{", text, re.MULTILINE
        )
        if not match:
            raise ExecutionFailure(f"Method '{method_name}' not found in {target.name}")
        close = _matching_brace(text, match.end() - 1)
        replacement = textwrap.indent(new_content, match.group(1))
        return text[:match.start()] + replacement + text[close + 1:], f"Method '{method_name}' modified"

    # ------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------
    def capture_before_snapshot(self, task: Task) -> Optional[ActionSnapshot]:
        file_path = self.require(task, "file_path")
        target = validate_file_path(file_path, self.project_root)
        if not target.is_file():
            return None
        return ActionSnapshot(
            action_id=self.new_action_id(task),
            task_id=task.id,
            action_type=ActionType.FILE_MODIFY,
            before_state=SnapshotData.for_file(file_path, target.read_bytes()),
            metadata=self.snapshot_metadata(
                task, modification_type=task.get_parameter("modification_type", str)
            ),
        )

    def capture_after_snapshot(self, task: Task, before: ActionSnapshot) -> Optional[ActionSnapshot]:
        if before is None:
            return None
        file_path = self.require(task, "file_path")
        target = validate_file_path(file_path, self.project_root)
        return before.with_after_state(SnapshotData.for_file(file_path, target.read_bytes()))


def _read_source(target: Path, file_path: str) -> Tuple[str, str]:
    """
    Decode a source file for editing. A file whose line endings are all CRLF
    is edited in LF form and written back with CRLF endings.
    """
    raw = target.read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ExecutionFailure(f"{file_path} is not UTF-8 text: {e}")
    if "\r\n" in text and text.count("\r\n") == text.count("\n"):
        return text.replace("\r\n", "\n"), "\r\n"
    return text, "\n"


def _restore_newlines(text: str, newline: str) -> str:
    if newline == "\n":
        return text
    return text.replace("\r\n", "\n").replace("\n", newline)


def _with_newline(code: str) -> str:
    return code if code.endswith("\n") else code + "\n"


def _python_block_end(lines: List[str], header_line: int, header_indent: int) -> int:
    """Index of the first line after the indented block opened at header_line."""
    end = header_line + 1
    for i in range(header_line + 1, len(lines)):
        stripped = lines[i].strip()
        if not stripped:
            continue
        indent = len(lines[i]) - len(lines[i].lstrip())
        if indent <= header_indent:
            break
        end = i + 1
    return end


def _matching_brace(text: str, open_index: int) -> int:
    depth = 0
    for i in range(open_index, len(text)):
        if text[i] == "{":
            depth += 1
        elif text[i] == "}":
            depth -= 1
            if depth == 0:
                return i
    raise ExecutionFailure("Unbalanced braces: no closing brace found")
