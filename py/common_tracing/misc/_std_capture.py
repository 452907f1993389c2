import io
import sys
import typing as tp


class StdCapture:
    r"""Redirect stdout (and optionally stderr) into a list of lines for the duration of a with block.

    Example:
    ```python
    with StdCapture(stderr=True) as out:
        print('hello')
        sys.stderr.write('world')
    print(out)  # ['hello', 'world']
    ```
    """

    _capture_stderr: bool
    _orig_stdout: "tp.TextIO"
    _orig_stderr: "tp.TextIO"
    _buf: "io.StringIO"
    _lines: "list[str]"

    def __init__(self, stderr: bool = False):
        self._capture_stderr = stderr
        self._lines = []
        self._buf = io.StringIO()
        self._orig_stdout = sys.stdout
        self._orig_stderr = sys.stderr

    @property
    def buffer(self) -> "io.StringIO":
        """The stream standing in for stdout while capturing."""
        return self._buf

    def __enter__(self) -> list[str]:
        sys.stdout = self._buf
        if self._capture_stderr:
            sys.stderr = self._buf
        return self._lines

    def __exit__(self, *args):  # type: ignore
        sys.stdout = self._orig_stdout
        sys.stderr = self._orig_stderr
        self._lines.extend(self._buf.getvalue().splitlines())
