# Flipped by the test suite's conftest.py, formatters use it to emit parseable output.
IS_TEST = False


def mark_testing():
    """Run by conftest.py to switch the package into test mode."""
    global IS_TEST
    IS_TEST = True
