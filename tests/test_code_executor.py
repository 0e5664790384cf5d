# tests/test_code_executor.py

import textwrap

import pytest

from agentexec.executors import CodeModificationExecutor
from agentexec.rollback.snapshot import ActionType
from agentexec.tasks import TaskType

from conftest import make_task

PYTHON_SOURCE = textwrap.dedent('''\
    import os

    class Greeter:
        def hello(self):
            return "hi"


    def other():
        pass
''')

JAVA_SOURCE = textwrap.dedent('''\
    package demo;

    import java.util.List;

    public class Foo {
        public int a() {
            return 1;
        }
    }
''')


@pytest.fixture
def executor(project):
    return CodeModificationExecutor(project)


def code_task(**parameters):
    return make_task(TaskType.CODE_MODIFICATION, **parameters)


def test_replace_content(executor, project):
    (project / "a.py").write_text("x = 1\n")
    result = executor.execute(code_task(file_path="a.py", modification_type="replace_content",
                                        new_content="x = 2\n"))
    assert result.success
    assert (project / "a.py").read_text() == "x = 2\n"


def test_replace_text_requires_unique_match(executor, project):
    (project / "a.py").write_text("x = 1\nx = 1\n")
    result = executor.execute(code_task(file_path="a.py", modification_type="replace_text",
                                        old_text="x = 1", new_text="x = 2"))
    assert not result.success
    assert "occurs 2 times" in result.error_message
    assert (project / "a.py").read_text() == "x = 1\nx = 1\n"


def test_replace_text(executor, project):
    (project / "a.py").write_text("x = 1\ny = 1\n")
    result = executor.execute(code_task(file_path="a.py", modification_type="replace_text",
                                        old_text="y = 1", new_text="y = 3"))
    assert result.message == "Replaced 1 occurrence in a.py"
    assert (project / "a.py").read_text() == "x = 1\ny = 3\n"


def test_insert_code_at_line(executor, project):
    (project / "a.py").write_text("a\nb\n")
    result = executor.execute(code_task(file_path="a.py", modification_type="insert_code",
                                        code_to_insert="X", line_number=2))
    assert result.message == "Code inserted at line 2"
    assert (project / "a.py").read_text() == "a\nX\nb\n"


def test_insert_code_appends_by_default(executor, project):
    (project / "a.py").write_text("a")
    executor.execute(code_task(file_path="a.py", modification_type="insert_code", code_to_insert="b"))
    assert (project / "a.py").read_text() == "a\nb\n"


def test_insert_code_line_out_of_range(executor, project):
    (project / "a.py").write_text("a\n")
    result = executor.execute(code_task(file_path="a.py", modification_type="insert_code",
                                        code_to_insert="X", line_number=9))
    assert "out of range" in result.error_message


def test_add_import_python(executor, project):
    (project / "g.py").write_text(PYTHON_SOURCE)
    executor.execute(code_task(file_path="g.py", modification_type="add_import",
                               import_statement="import sys"))
    assert (project / "g.py").read_text().startswith("import os\nimport sys\n\nclass Greeter:")


def test_add_import_java_after_existing_imports(executor, project):
    (project / "Foo.java").write_text(JAVA_SOURCE)
    result = executor.execute(code_task(file_path="Foo.java", modification_type="add_import",
                                        import_statement="java.util.Map"))
    assert result.message == "Import added: import java.util.Map;"
    assert "import java.util.List;\nimport java.util.Map;\n" in (project / "Foo.java").read_text()


def test_add_import_already_present(executor, project):
    (project / "Foo.java").write_text(JAVA_SOURCE)
    result = executor.execute(code_task(file_path="Foo.java", modification_type="add_import",
                                        import_statement="import java.util.List;"))
    assert result.success
    assert result.data["changed"] is False


def test_add_method_python(executor, project):
    (project / "g.py").write_text(PYTHON_SOURCE)
    result = executor.execute(code_task(file_path="g.py", modification_type="add_method",
                                        class_name="Greeter",
                                        method_code="def bye(self):\n    return 'bye'"))
    assert result.message == "Method added to class Greeter"
    text = (project / "g.py").read_text()
    assert "    def bye(self):\n        return 'bye'\n" in text
    assert text.index("def bye") < text.index("def other")


def test_add_method_java(executor, project):
    (project / "Foo.java").write_text(JAVA_SOURCE)
    executor.execute(code_task(file_path="Foo.java", modification_type="add_method",
                               class_name="Foo", method_code="public int b() { return 2; }"))
    text = (project / "Foo.java").read_text()
    assert text.endswith("    public int b() { return 2; }\n}\n")
    assert "return 1;" in text


def test_add_method_unknown_class(executor, project):
    (project / "g.py").write_text(PYTHON_SOURCE)
    result = executor.execute(code_task(file_path="g.py", modification_type="add_method",
                                        class_name="Missing", method_code="def x(self): pass"))
    assert result.error_message == "Class 'Missing' not found in g.py"


def test_modify_method_python_replaces_decorators(executor, project):
    (project / "a.py").write_text(textwrap.dedent('''\
        class A:
            @property
            def value(self):
                return 1

            def other(self):
                return 2
    '''))
    executor.execute(code_task(file_path="a.py", modification_type="modify_method",
                               method_name="value", new_content="def value(self):\n    return 42"))
    assert (project / "a.py").read_text() == textwrap.dedent('''\
        class A:
            def value(self):
                return 42

            def other(self):
                return 2
    ''')


def test_modify_method_java(executor, project):
    (project / "Foo.java").write_text(JAVA_SOURCE)
    result = executor.execute(code_task(file_path="Foo.java", modification_type="modify_method",
                                        method_name="a", new_content="public int a() {\n    return 7;\n}"))
    assert result.message == "Method 'a' modified"
    text = (project / "Foo.java").read_text()
    assert "return 7;" in text
    assert "return 1;" not in text
    assert text.rstrip().endswith("}")


def test_missing_modification_parameter(executor, project):
    (project / "a.py").write_text("")
    result = executor.execute(code_task(file_path="a.py", modification_type="replace_text", old_text="x"))
    assert result.error_message == "Missing required parameter 'new_text'"


def test_unknown_modification_type(executor, project):
    (project / "a.py").write_text("")
    result = executor.execute(code_task(file_path="a.py", modification_type="rename_symbol"))
    assert result.error_message == "Unsupported modification type: rename_symbol"


def test_target_must_exist(executor):
    result = executor.execute(code_task(file_path="nope.py", modification_type="replace_content",
                                        new_content=""))
    assert result.error_message == "File not found: nope.py"


def test_snapshot_is_file_modify(executor, project):
    (project / "a.py").write_text("x = 1\n")
    task = code_task(file_path="a.py", modification_type="replace_content", new_content="x = 2\n")
    before = executor.capture_before_snapshot(task)
    executor.execute(task)
    after = executor.capture_after_snapshot(task, before)
    assert after.action_type == ActionType.FILE_MODIFY
    assert after.before_state.file_content == b"x = 1\n"
    assert after.after_state.file_content == b"x = 2\n"


# ------------------------------------------------------------
# Line endings and encodings
# ------------------------------------------------------------
def test_crlf_file_keeps_crlf(executor, project):
    (project / "a.py").write_bytes(b"class A:\r\n    pass\r\n")
    result = executor.execute(code_task(file_path="a.py", modification_type="add_method",
                                        class_name="A", method_code="def run(self):\n    return 1"))
    assert result.success, result.error_message
    assert (project / "a.py").read_bytes() == (
        b"class A:\r\n    pass\r\n\r\n    def run(self):\r\n        return 1\r\n"
    )


def test_mixed_line_endings_untouched_outside_edit(executor, project):
    (project / "a.py").write_bytes(b"x = 1\r\ny = 2\n")
    result = executor.execute(code_task(file_path="a.py", modification_type="replace_text",
                                        old_text="y = 2", new_text="y = 3"))
    assert result.success
    assert (project / "a.py").read_bytes() == b"x = 1\r\ny = 3\n"


def test_non_utf8_source_is_refused(executor, project):
    original = b"s = 'caf\xe9'\n"
    (project / "a.py").write_bytes(original)
    result = executor.execute(code_task(file_path="a.py", modification_type="replace_content",
                                        new_content=""))
    assert not result.success
    assert result.error_message.startswith("a.py is not UTF-8 text")
    assert (project / "a.py").read_bytes() == original


def test_snapshot_keeps_raw_bytes(executor, project):
    (project / "A.java").write_bytes(b"class A {\r\n}\r\n")
    task = code_task(file_path="A.java", modification_type="replace_content", new_content="")
    assert executor.capture_before_snapshot(task).before_state.file_content == b"class A {\r\n}\r\n"
