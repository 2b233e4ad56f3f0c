import re

import squidconfig.utils
from squidconfig.compiler_macros import MacroDefinition

_DEFINE_RE = re.compile(r"^\s*([A-Za-z_]\w*(?:\([^)]*\))?)(?:\s*[=#]\s*|\s+)?(.*?)\s*$")


def parse_define(text):
    """ Split a define as written on a command line or in a config file.
        "NAME=VALUE", "NAME#VALUE" and "NAME VALUE" all give (NAME, VALUE).
        A lone "NAME" gives (NAME, None).
    """
    match = _DEFINE_RE.match(text)
    if not match:
        raise ValueError("Cannot parse a macro definition from '" + text + "'")
    name, value = match.groups()
    if value == "":
        value = None
    return name, value


class CompilationUnitSettings(object):
    """ The include directories and defines one source file was compiled with.

        Include directories are kept in order with duplicates removed
        (the first occurrence decides the position).  Defines map the
        macro name to its value; redefining a name replaces its value
        but keeps its original position.
    """

    def __init__(self, filename=None, include_directories=None, defines=None):
        self.filename = filename
        self._include_directories = []
        self._defines = {}
        if include_directories:
            self.set_include_directories(include_directories)
        if defines:
            self.set_defines(defines)

    def set_include_directories(self, directories):
        self._include_directories = squidconfig.utils.ordered_unique(
            directories or []
        )

    def add_include_directory(self, directory):
        if directory not in self._include_directories:
            self._include_directories.append(directory)

    def get_include_directories(self):
        return list(self._include_directories)

    def set_defines(self, defines):
        """ defines may be a mapping of name to value or an iterable of
            "NAME VALUE" strings and MacroDefinitions
        """
        self._defines = {}
        if not defines:
            return
        if hasattr(defines, "items"):
            for name, value in defines.items():
                self.add_define(name, value)
            return
        for define in defines:
            if isinstance(define, MacroDefinition):
                self.add_macro(define)
            else:
                self.add_define(*parse_define(define))

    def add_define(self, name, value=None):
        self._defines[name] = value

    def add_macro(self, macro):
        self._defines[macro.name] = macro.value

    def remove_define(self, name):
        self._defines.pop(name, None)

    def get_defines(self):
        return dict(self._defines)

    def define_strings(self):
        """ The defines rendered as "NAME VALUE" (or "NAME") """
        return [str(MacroDefinition(name, value)) for name, value in self._defines.items()]

    def __eq__(self, other):
        if not isinstance(other, CompilationUnitSettings):
            return NotImplemented
        return (
            self.filename == other.filename
            and self._include_directories == other._include_directories
            and list(self._defines.items()) == list(other._defines.items())
        )

    def __repr__(self):
        return "{0}(filename={1!r}, include_directories={2!r}, defines={3!r})".format(
            self.__class__.__name__,
            self.filename,
            self._include_directories,
            self._defines,
        )
