"""界面层的输入解析（不需要显示器）。"""

from __future__ import annotations

import pytest

tk = pytest.importorskip("tkinter")

from webp_toolkit.gui.app import read_number  # noqa: E402


def _raise_tcl_error() -> float:
    raise tk.TclError('expected floating-point number but got "abc"')


def test_read_number_accepts_numeric_input() -> None:
    assert read_number(lambda: 85.0) == 85.0
    assert read_number(lambda: "42") == 42.0


def test_read_number_rejects_non_numeric_input() -> None:
    assert read_number(_raise_tcl_error) is None
    assert read_number(lambda: "abc") is None
