import pytest

from squidconfig.compilationunit import CompilationUnitSettings, parse_define
from squidconfig.compiler_macros import MacroDefinition


class TestParseDefine:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("NAME", ("NAME", None)),
            ("NAME=VALUE", ("NAME", "VALUE")),
            ("NAME#VALUE", ("NAME", "VALUE")),
            ("NAME VALUE", ("NAME", "VALUE")),
            ("  _M_IX86 600  ", ("_M_IX86", "600")),
            ('__DATE__ "??? ?? ????"', ("__DATE__", '"??? ?? ????"')),
            ("NAME=", ("NAME", None)),
            ("MAX(a,b)=((a)>(b)?(a):(b))", ("MAX(a,b)", "((a)>(b)?(a):(b))")),
        ],
    )
    def test_forms(self, text, expected):
        assert parse_define(text) == expected

    @pytest.mark.parametrize("text", ["", "=1", "1ABC", "  "])
    def test_malformed(self, text):
        with pytest.raises(ValueError):
            parse_define(text)


class TestCompilationUnitSettings:
    def test_empty(self):
        settings = CompilationUnitSettings()
        assert settings.get_include_directories() == []
        assert settings.get_defines() == {}

    def test_include_order_and_dedup(self):
        settings = CompilationUnitSettings(include_directories=["dir1", "dir2", "dir1"])
        assert settings.get_include_directories() == ["dir1", "dir2"]
        settings.add_include_directory("dir2")
        settings.add_include_directory("dir3")
        assert settings.get_include_directories() == ["dir1", "dir2", "dir3"]

    def test_getters_return_copies(self):
        settings = CompilationUnitSettings(include_directories=["a"], defines={"A": "1"})
        settings.get_include_directories().append("b")
        settings.get_defines()["B"] = None
        assert settings.get_include_directories() == ["a"]
        assert settings.get_defines() == {"A": "1"}

    def test_last_define_wins_keeping_position(self):
        settings = CompilationUnitSettings()
        settings.add_define("A", "1")
        settings.add_define("B")
        settings.add_define("A", "2")
        assert list(settings.get_defines().items()) == [("A", "2"), ("B", None)]

    def test_set_defines_forms(self):
        settings = CompilationUnitSettings()
        settings.set_defines(["A=1", "B 2", MacroDefinition("C"), "D"])
        assert settings.get_defines() == {"A": "1", "B": "2", "C": None, "D": None}

        settings.set_defines({"X": "9"})
        assert settings.get_defines() == {"X": "9"}

        settings.set_defines(None)
        assert settings.get_defines() == {}

    def test_remove_define(self):
        settings = CompilationUnitSettings(defines={"A": None, "B": "1"})
        settings.remove_define("A")
        settings.remove_define("NOT_THERE")
        assert settings.get_defines() == {"B": "1"}

    def test_define_strings(self):
        settings = CompilationUnitSettings(defines=["_M_IX86=600", "_CPPUNWIND"])
        assert settings.define_strings() == ["_M_IX86 600", "_CPPUNWIND"]

    def test_equality(self):
        first = CompilationUnitSettings("a.cpp", ["inc"], {"A": "1"})
        second = CompilationUnitSettings("a.cpp", ["inc"], {"A": "1"})
        assert first == second
        second.add_define("B")
        assert first != second
        assert "a.cpp" in repr(first)
