"""
Questions asked while setting up a secret.

Enrollment only talks to a prompter through ask_yes_no() and ask_code(), so
the console can be swapped for scripted answers (tests, non-interactive
wrappers).
"""

from typing import Iterable, Optional, TextIO
import sys


class PromptAborted(EOFError):
    """Input ended while a question was pending."""


class ConsolePrompter:
    """Reads answers from stdin, the way the setup tool always has."""

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout

    def _readline(self) -> str:
        line = self.stdin.readline()
        if not line:
            print(file=self.stdout)
            raise PromptAborted("No answer on standard input")
        return line

    def ask_yes_no(self, msg: str) -> bool:
        """Repeat the question until the answer starts with y/Y or n/N."""
        print(file=self.stdout)
        while True:
            print(f"{msg} (y/n) ", end="", file=self.stdout, flush=True)
            answer = self._readline()[:1]
            if answer in ("y", "Y"):
                return True
            if answer in ("n", "N"):
                return False

    def ask_code(self, msg: str) -> Optional[int]:
        """
        Read one integer. The whole line (surrounding blanks aside) must be a
        number: "123456abc" returns None rather than 123456. None never
        matches a code, so the caller just asks again.
        """
        print(f"{msg} ", end="", file=self.stdout, flush=True)
        try:
            return int(self._readline().strip())
        except ValueError:
            return None


class ScriptedPrompter:
    """
    Answers questions from fixed values.

    `yes_no` is either a bool used for every question or a callable that
    receives the question text. `codes` is consumed one answer per ask_code();
    when it runs out the code check is skipped (-1).
    """

    def __init__(self, yes_no=False, codes: Iterable[Optional[int]] = ()):
        self._yes_no = yes_no
        self._codes = iter(codes)
        self.questions = []

    def ask_yes_no(self, msg: str) -> bool:
        self.questions.append(msg)
        if callable(self._yes_no):
            return bool(self._yes_no(msg))
        return bool(self._yes_no)

    def ask_code(self, msg: str) -> Optional[int]:
        self.questions.append(msg)
        return next(self._codes, -1)
