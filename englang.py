"""ENGLANG entry point and REPL wiring."""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from interpreter import ExitSignal, Frame, Interpreter, TracebackFormatter
from lexer import EngRuntimeError, split_words, strip_line

BLOCK_KEYWORDS = ("if", "while", "repeat", "for", "define")

# Room for MAX_CALL_DEPTH nested calls, each a few blocks deep.
RECURSION_LIMIT = 10000

QUICK_REFERENCE = """\
Language Quick Reference:
  set x to 42
  set greeting to "Hello, World!"
  set total to price times count
  add x and y into result
  subtract a from b into diff
  multiply x by y into product
  divide a by b into quotient
  increment counter
  decrement counter by 5
  print x and y
  ask "Enter a number:" into num
  if x is greater than 5 then
    print x
  otherwise
    print "small"
  end if
  while x is less than 100 then
    increment x
  end while
  repeat 10 times
    print x
  end repeat
  for i from 1 to 10 step 1 then
    print i
  end for
  define factorial with n as
    ...
  end define
  call factorial with 5
  push 42 onto stack
  pop from stack into x
  store x at address 0
  load from address 0 into y
  create array nums
  append 10 to array nums
  get element 0 of array nums into val
  square root of x into root
  length of mystring into len
"""


def _opens_block(stripped: str) -> bool:
    words = split_words(stripped)
    return bool(words) and words[0] in BLOCK_KEYWORDS


def _run_entry(interpreter: Interpreter, source_text: str, global_frame: Frame) -> Optional[int]:
    try:
        interpreter.execute_source(source_text)
    except ExitSignal as sig:
        return sig.code
    except EngRuntimeError as error:
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error, verbose=interpreter.verbose), file=sys.stderr)
        # reset call stack to single top-level frame to keep REPL usable
        interpreter.call_stack = [global_frame]
    return None


def run_repl(verbose: bool) -> int:
    print("\x1b[38;2;153;221;255mENGLANG\033[0m REPL. Enter statements, blank line to run a block.")
    interpreter = Interpreter(source="", filename="<string>", verbose=verbose, input_provider=(lambda: input()))
    global_frame = interpreter._new_frame("<top-level>", None)
    interpreter.call_stack.append(global_frame)
    buffer: List[str] = []

    while True:
        prompt = "\x1b[38;2;153;221;255m>>>\033[0m " if not buffer else "\x1b[38;2;153;221;255m..>\033[0m "
        try:
            line = input(prompt)
        except EOFError:
            print()
            break

        stripped = strip_line(line)
        if not buffer:
            if stripped == "":
                continue
            if not _opens_block(stripped):
                code = _run_entry(interpreter, line, global_frame)
                if code is not None:
                    return code
                continue

        if stripped == "":
            source_text = "\n".join(buffer)
            buffer.clear()
            code = _run_entry(interpreter, source_text, global_frame)
            if code is not None:
                return code
            continue

        buffer.append(line)
    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="ENGLANG interpreter: a programming language with plain English syntax",
        epilog=QUICK_REFERENCE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("program", nargs="?", help="Source file path or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Emit variable snapshots in tracebacks")
    parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    args = parser.parse_args(argv)

    sys.setrecursionlimit(max(sys.getrecursionlimit(), RECURSION_LIMIT))

    if args.program is None:
        if args.source_mode:
            print("-source requires a program string", file=sys.stderr)
            return 1
        return run_repl(verbose=args.verbose)

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8", newline="") as handle:
                source_text = handle.read()
        except OSError as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    interpreter = Interpreter(source=source_text, filename=filename, verbose=args.verbose)
    try:
        interpreter.run()
    except ExitSignal as sig:
        return sig.code
    except EngRuntimeError as error:
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error, verbose=args.verbose), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(run_cli())
