import json

import pytest

from englang import QUICK_REFERENCE, run_cli


def _feed(monkeypatch, lines):
    pending = list(lines)

    def fake_input(prompt=""):
        if not pending:
            raise EOFError
        return pending.pop(0)

    monkeypatch.setattr("builtins.input", fake_input)


def test_runs_a_program_file(tmp_path, capsys):
    program = tmp_path / "hello.eng"
    program.write_text('set name to "World"\nprint "Hello," name\n')
    assert run_cli([str(program)]) == 0
    assert capsys.readouterr().out == "Hello, World\n"


def test_stop_exits_successfully(tmp_path, capsys):
    program = tmp_path / "stop.eng"
    program.write_text("print 1\nstop\nprint 2\n")
    assert run_cli([str(program)]) == 0
    assert capsys.readouterr().out == "1\n"


def test_missing_file_fails(tmp_path, capsys):
    missing = tmp_path / "missing.eng"
    assert run_cli([str(missing)]) == 1
    assert capsys.readouterr().err.startswith(f"Failed to read {missing}")


def test_literal_source(capsys):
    assert run_cli(["-source", "set x to 2\nmultiply x by 21 into y\nprint y"]) == 0
    assert capsys.readouterr().out == "42\n"


def test_source_flag_needs_a_program(capsys):
    assert run_cli(["-source"]) == 1
    assert "requires a program" in capsys.readouterr().err


def test_diagnostics_do_not_change_exit_status(capsys):
    assert run_cli(["-source", "dance\nprint 1"]) == 0
    captured = capsys.readouterr()
    assert captured.out == "1\n"
    assert captured.err == "Warning: unknown instruction on line 1: 'dance'\n"


def test_fatal_error_prints_traceback(tmp_path, capsys):
    program = tmp_path / "loop.eng"
    program.write_text("define loop as\ncall loop\nend define\ncall loop\n")
    assert run_cli([str(program)]) == 1
    err = capsys.readouterr().err
    assert err.startswith("Traceback (most recent call last):")
    assert f'File "{program}", line 4, in <top-level>' in err
    assert err.rstrip().endswith("EngRuntimeError: maximum call depth exceeded (rule: CALL)")


def test_traceback_json(capsys):
    assert run_cli(["-source", "call boom\nset a to 1", "--traceback-json"]) == 0
    assert run_cli(["-source", "define f as\ncall f\nend define\ncall f", "--traceback-json"]) == 1
    err = capsys.readouterr().err
    payload = json.loads(err[err.index("{"):])
    assert payload["error"]["type"] == "EngRuntimeError"
    assert payload["error"]["message"] == "maximum call depth exceeded"
    assert payload["traceback"][0]["name"] == "<top-level>"
    assert payload["traceback"][-1]["name"] == "f"


def test_verbose_traceback_includes_snapshot(capsys):
    assert run_cli(["-source", "set n to 3\ndefine f as\ncall f\nend define\ncall f", "-verbose"]) == 1
    assert "Env snapshot: n=NUM:3" in capsys.readouterr().err


def test_help_shows_quick_reference(capsys):
    with pytest.raises(SystemExit) as info:
        run_cli(["--help"])
    assert info.value.code == 0
    assert QUICK_REFERENCE.splitlines()[0] in capsys.readouterr().out


def test_repl_buffers_blocks_until_blank_line(monkeypatch, capsys):
    _feed(monkeypatch, ["set x to 2", "repeat 2 times", "print x", "end repeat", "", "print x"])
    assert run_cli([]) == 0
    out = capsys.readouterr().out
    assert "ENGLANG" in out
    assert out.count("2\n") == 3


def test_repl_keeps_running_after_fatal_error(monkeypatch, capsys):
    _feed(monkeypatch, ["define f as", "call f", "end define", "", "call f", "print 7"])
    assert run_cli([]) == 0
    captured = capsys.readouterr()
    assert "maximum call depth exceeded" in captured.err
    assert "7\n" in captured.out


def test_repl_stop_returns_exit_code(monkeypatch, capsys):
    _feed(monkeypatch, ["print 1", "stop", "print 2"])
    assert run_cli([]) == 0
    out = capsys.readouterr().out
    assert "1\n" in out
    assert "2\n" not in out


def test_deep_recursion_runs_to_completion(capsys):
    source = "\n".join(
        [
            "define down with n as",
            "if n is greater than 0 then",
            "subtract 1 from n into m",
            "call down with m",
            "end if",
            "end define",
            "call down with 500",
            'print "done"',
        ]
    )
    assert run_cli(["-source", source]) == 0
    assert capsys.readouterr().out == "done\n"
