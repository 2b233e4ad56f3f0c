"""Build log parsing.

A build log is the captured text output of a build tool.  The parsers here
pick the compiler invocations out of that text and turn every compiled
source file into a CompilationUnitSettings holding the include directories,
the explicit defines and the macros the compiler would have predefined.
"""

import codecs
import dataclasses
import re
from abc import ABC, abstractmethod
from io import open
from typing import Dict, List, Optional

import squidconfig.utils
import squidconfig.wrappedos
import squidconfig.compiler_macros as cm
from squidconfig.compilationunit import CompilationUnitSettings, parse_define

DEFAULT_TOOLSET_KEY = "Visual C++"

# Toolset keys as users write them -> parser class name
_TOOLSET_PARSERS = {
    "visual c++": "VCppBuildLogParser",
    "vc++": "VCppBuildLogParser",
    "vc": "VCppBuildLogParser",
    "msvc": "VCppBuildLogParser",
    "cl": "VCppBuildLogParser",
}


def toolset_keys():
    return sorted(_TOOLSET_PARSERS)


def create(toolset_key=DEFAULT_TOOLSET_KEY, basedir=".", verbose=0):
    """BuildLogParser Factory"""
    try:
        classname = _TOOLSET_PARSERS[toolset_key.strip().lower()]
    except (KeyError, AttributeError):
        raise ValueError(
            "Unsupported toolset key {0!r}. Choose from {1}".format(
                toolset_key, ", ".join(toolset_keys())
            )
        )
    if verbose >= 4:
        print("Creating " + classname + " to parse build logs.")
    parserclass = globals()[classname]
    return parserclass(basedir=basedir, verbose=verbose)


def parse_log(lines, toolset_key=DEFAULT_TOOLSET_KEY, charset="utf-8", basedir=".", verbose=0):
    """Parse the lines of a build log.

    lines may be str or bytes (bytes are decoded with charset).  None or an
    empty sequence gives an empty list.
    """
    parser = create(toolset_key, basedir=basedir, verbose=verbose)
    if not lines:
        return []
    codecs.lookup(charset)
    return parser.parse(
        line.decode(charset) if isinstance(line, bytes) else line for line in lines
    )


class BuildLogParser(ABC):
    """Base for the toolset specific build log parsers.

    A parser instance can parse any number of logs.  Each call to parse
    starts from a clean slate.
    """

    def __init__(self, basedir=".", verbose=0):
        self.basedir = basedir
        self.verbose = verbose
        self._units = {}

    def parse(self, lines) -> List[CompilationUnitSettings]:
        self._units = {}
        self._reset()
        if lines is None:
            return []
        for line in lines:
            self._parse_line(line.rstrip("\r\n"))
        return list(self._units.values())

    def parse_file(self, filename, charset="utf-8") -> List[CompilationUnitSettings]:
        """Read the whole of filename as charset and parse it.

        An unknown charset raises LookupError before the file is opened.
        Read and decode failures propagate to the caller.
        """
        codecs.lookup(charset)
        if self.verbose >= 3:
            print("Parsing build log " + str(filename) + " as " + charset)
        with open(filename, encoding=charset) as ff:
            return self.parse(ff)

    def _install(self, settings):
        """A file seen again replaces its earlier settings wholesale"""
        if self.verbose >= 5 and settings.filename in self._units:
            print("Replacing earlier settings for " + settings.filename)
        self._units[settings.filename] = settings

    @abstractmethod
    def _reset(self):
        """Forget the context collected from the previous log"""

    @abstractmethod
    def _parse_line(self, line):
        """Derived classes implement this method"""


@dataclasses.dataclass
class _LogContext:
    """What the log has revealed so far for one MSBuild project instance"""
    projectdir: str
    toolset: Optional[int] = None
    full_version: Optional[str] = None
    arch: cm.Arch = cm.Arch.UNSPECIFIED


@dataclasses.dataclass
class _Invocation:
    includes: List[str] = dataclasses.field(default_factory=list)
    sources: List[str] = dataclasses.field(default_factory=list)
    # ("D", name, value) or ("U", name, None) in command line order
    defines: List[tuple] = dataclasses.field(default_factory=list)
    toggles: Dict[cm.Feature, bool] = dataclasses.field(default_factory=dict)
    runtime: frozenset = frozenset()
    arch_features: frozenset = frozenset()
    language: frozenset = frozenset()

    def features(self):
        enabled = {feature for feature, on in self.toggles.items() if on}
        return frozenset(enabled | self.runtime | self.arch_features | self.language)


F = cm.Feature

_RUNTIME_SWITCHES = {
    "MT": frozenset([F.MULTITHREADED_RUNTIME]),
    "MTd": frozenset([F.MULTITHREADED_RUNTIME, F.DEBUG_RUNTIME]),
    "MD": frozenset([F.MULTITHREADED_RUNTIME, F.DYNAMIC_RUNTIME]),
    "MDd": frozenset([F.MULTITHREADED_RUNTIME, F.DYNAMIC_RUNTIME, F.DEBUG_RUNTIME]),
}

# Keys are upper cased as cl accepts /arch:avx2 as well as /arch:AVX2
_ARCH_SWITCHES = {
    "IA32": frozenset([F.ARCH_IA32]),
    "SSE": frozenset([F.ARCH_SSE]),
    "SSE2": frozenset(),
    "AVX": frozenset([F.AVX]),
    "AVX2": frozenset([F.AVX, F.AVX2]),
    "AVX512": frozenset([F.AVX, F.AVX2, F.AVX512]),
    "VFPV4": frozenset([F.ARM_FP]),
    "ARMV7VE": frozenset([F.ARM_FP]),
}

_LANGUAGE_SWITCHES = {
    "std:c++14": frozenset([F.STD_CPP14]),
    "std:c++17": frozenset([F.STD_CPP17]),
    "std:c++20": frozenset([F.STD_CPP20]),
    "std:c++latest": frozenset([F.STD_CPPLATEST]),
}

_TOGGLE_SWITCHES = {
    "openmp": (F.OPENMP, True),
    "openmp:experimental": (F.OPENMP, True),
    "openmp:llvm": (F.OPENMP, True),
    "openmp-": (F.OPENMP, False),
    "ZW": (F.WINRT, True),
    "clr": (F.CLR, True),
    "clr:pure": (F.CLR, True),
    "clr:safe": (F.CLR, True),
    "clr:netcore": (F.CLR, True),
    "GX": (F.EXCEPTIONS, True),
    "GX-": (F.EXCEPTIONS, False),
    "GR": (F.RTTI, True),
    "GR-": (F.RTTI, False),
    "LDd": (F.DEBUG_RUNTIME, True),
    "Zl": (F.NO_DEFAULT_LIB, True),
    "Zc:wchar_t": (F.NATIVE_WCHAR_T, True),
    "Zc:wchar_t-": (F.NATIVE_WCHAR_T, False),
    "Wp64": (F.WP64, True),
    "J": (F.CHAR_UNSIGNED, True),
    "Zc:__cplusplus": (F.CPLUSPLUS_CONFORMANCE, True),
    "Zc:__cplusplus-": (F.CPLUSPLUS_CONFORMANCE, False),
}

# Switches whose value may be attached or be the next token, longest first
_VALUE_SWITCHES = ("external:I", "Tp", "Tc", "I", "D", "U")

_EXCEPTION_SWITCH_RE = re.compile(r"^EH((?:[asc]-?|r-?)+)$")
_RUNTIME_CHECK_SWITCH_RE = re.compile(r"^RTC[1csu]+$")


def _exception_model(letters):
    """Whether /EH<letters> leaves C++ exception handling switched on"""
    enabled = {}
    for match in re.finditer(r"([asc])(-?)", letters):
        enabled[match.group(1)] = not match.group(2)
    return enabled.get("s", False) or enabled.get("a", False)


class VCppBuildLogParser(BuildLogParser):
    """Parse the logs of MSBuild, devenv and TFS builds that drive cl.exe

    Context lines (project, platform toolset, platform and the compiler
    banner) are remembered per MSBuild project instance ("12>" prefixes)
    so that the interleaved output of a parallel build is attributed
    correctly.  Unprefixed lines continue the most recent prefixed one.
    Markers in the cl.exe path of an invocation override the context.
    """

    _PREFIX_RE = re.compile(
        r"^\s*(?:\d{4}-\d{2}-\d{2}T[\d:.]+Z\s*)?(?:(\d+)>)?"
    )
    _IS_BUILDING_RE = re.compile(r'\bis building\s+"([^"]+)"\s+\((\d+)\)', re.I)
    _PROJECT_RES = (
        re.compile(r'^\s*Target\s+"?ClCompile"?.*?\bfrom project\s+"([^"]+)"', re.I),
        re.compile(r'^\s*Project\s+"([^"]+)"\s+on node', re.I),
        re.compile(r'^\s*Building project\s+"([^"]+)"', re.I),
    )
    _TOOLSET_RE = re.compile(r'\bPlatform\s*Toolset\s*[=:]\s*"?(v?\d+(?:\.\d+)*)', re.I)
    _PLATFORM_RES = (
        re.compile(r'\bPlatform\s*[=:]\s*"?(Win32|x86|x64|amd64|ARM)\b', re.I),
        re.compile(r'\bconfiguration\s+"[^"|]*\|(Win32|x86|x64|ARM)"', re.I),
        re.compile(r'\bConfiguration:\s*\S+\s+(Win32|x86|x64|ARM)\b', re.I),
    )
    _BANNER_RE = re.compile(
        r"C/C\+\+ Optimizing Compiler Version\s+(\d+\.\d+\.\d+)(?:\.\d+)?\s+for\s+(\w+)",
        re.I,
    )
    _CL_RE = re.compile(r'(?:^|(?<=[\s\\/"]))cl(?:\.exe)?"?(?=\s+[/@-])', re.I)
    _TOKEN_RE = re.compile(r'(?:[^\s"]+|"(?:\\.|[^"\\])*")+')

    # Matched against the lower cased, forward slashed cl.exe path
    _PATH_ARCHS = (
        (re.compile(r"/hostx(?:86|64)/x64/$"), cm.Arch.X64),
        (re.compile(r"/hostx(?:86|64)/x86/$"), cm.Arch.X86),
        (re.compile(r"/hostx(?:86|64)/arm/$"), cm.Arch.ARM),
        (re.compile(r"/bin/(?:x86_|amd64_)arm/$"), cm.Arch.ARM),
        (re.compile(r"/bin/(?:x86_)?amd64/$"), cm.Arch.X64),
        (re.compile(r"/vc/bin/$"), cm.Arch.X86),
    )
    _PATH_VERSIONS = (
        re.compile(r"/msvc/(\d+\.\d+)\.\d+/"),
        re.compile(r"visual studio (\d+\.\d+)/"),
    )

    def __init__(self, basedir=".", verbose=0):
        BuildLogParser.__init__(self, basedir=basedir, verbose=verbose)
        self._contexts = {}
        self._lastnode = None

    def _reset(self):
        self._contexts = {
            None: _LogContext(projectdir=squidconfig.wrappedos.normpath(self.basedir))
        }
        self._lastnode = None

    def _context(self, node, parent=None):
        if node not in self._contexts:
            # A new project instance starts from what its parent knew
            if parent is None:
                parent = self._contexts[None]
            self._contexts[node] = dataclasses.replace(parent)
        return self._contexts[node]

    def _parse_line(self, line):
        prefix = self._PREFIX_RE.match(line)
        node = prefix.group(1)
        prefixed = node is not None
        if not prefixed:
            node = self._lastnode
        else:
            self._lastnode = node
        text = line[prefix.end():]
        context = self._context(node)

        match = self._CL_RE.search(text)
        if match:
            self._parse_invocation(context, text[: match.start()], text[match.end():])
            return

        self._parse_context(context, text, prefixed)

    def _set_projectdir(self, context, projectfile):
        projectfile = squidconfig.wrappedos.normpath(projectfile, self.basedir)
        context.projectdir = squidconfig.wrappedos.dirname(projectfile) or "."
        if self.verbose >= 6:
            print("Build log project directory is now " + context.projectdir)

    def _parse_context(self, context, text, prefixed=True):
        match = self._IS_BUILDING_RE.search(text)
        if match:
            child = self._context(match.group(2), parent=context)
            self._set_projectdir(child, match.group(1))
            if not prefixed:
                # Without node prefixes the output that follows is the child's
                self._lastnode = match.group(2)
            return

        for regex in self._PROJECT_RES:
            match = regex.search(text)
            if match:
                self._set_projectdir(context, match.group(1))
                return

        match = self._BANNER_RE.search(text)
        if match:
            context.full_version = match.group(1)
            context.toolset = cm.toolset_from_compiler_version(match.group(1))
            arch = cm.parse_arch(match.group(2))
            if arch is not cm.Arch.UNSPECIFIED:
                context.arch = arch
            if self.verbose >= 6:
                print(
                    "Build log compiler banner: version {0} for {1}".format(
                        context.full_version, context.arch.value
                    )
                )
            return

        match = self._TOOLSET_RE.search(text)
        if match:
            toolset = cm.parse_toolset_version(match.group(1))
            if toolset is None and self.verbose >= 2:
                print(
                    "Unknown platform toolset {0}. Known toolsets are {1}".format(
                        match.group(1), ", ".join(str(vv) for vv in cm.known_versions())
                    )
                )
            if toolset != context.toolset:
                context.toolset = toolset
                context.full_version = None
            if self.verbose >= 6:
                print("Build log platform toolset {0} -> {1}".format(match.group(1), toolset))
            return

        for regex in self._PLATFORM_RES:
            match = regex.search(text)
            if match:
                context.arch = cm.parse_arch(match.group(1))
                if self.verbose >= 6:
                    print("Build log platform is now " + context.arch.value)
                return

    def _profile(self, context, clpath, invocation):
        toolpath = clpath.replace("\\", "/").lower()

        arch = None
        for regex, patharch in self._PATH_ARCHS:
            if regex.search(toolpath):
                arch = patharch
                break
        if arch is None:
            arch = context.arch
        if arch is cm.Arch.UNSPECIFIED:
            # MSBuild builds Win32 unless told otherwise
            arch = cm.Arch.X86

        toolset = None
        for regex in self._PATH_VERSIONS:
            match = regex.search(toolpath)
            if match:
                toolset = cm.parse_toolset_version(match.group(1))
                break
        if toolset is None:
            toolset = context.toolset

        full_version = None
        if context.full_version and cm.toolset_from_compiler_version(context.full_version) == toolset:
            full_version = context.full_version

        return cm.ToolsetProfile(
            family=cm.Family.MSVC,
            version=toolset,
            full_version=full_version,
            arch=arch,
            features=invocation.features(),
        )

    @staticmethod
    def _unquote(token):
        return re.sub(r'(?<!\\)"', "", token).replace('\\"', '"')

    def _parse_arguments(self, argtext):
        invocation = _Invocation()
        tokens = [self._unquote(tt) for tt in self._TOKEN_RE.findall(argtext)]

        ii = 0
        while ii < len(tokens):
            token = tokens[ii]
            ii += 1
            if not token or token.startswith("@"):
                continue
            if token[0] not in "/-":
                if squidconfig.utils.issource(token):
                    invocation.sources.append(token)
                continue

            switch = token[1:]
            for name in _VALUE_SWITCHES:
                if switch.startswith(name):
                    value = switch[len(name):]
                    if not value and ii < len(tokens):
                        value = tokens[ii]
                        ii += 1
                    self._apply_value_switch(invocation, name, value)
                    break
            else:
                self._apply_feature_switch(invocation, switch)

        return invocation

    def _apply_value_switch(self, invocation, name, value):
        if not value:
            return
        if name in ("I", "external:I"):
            invocation.includes.append(value)
        elif name in ("Tp", "Tc"):
            invocation.sources.append(value)
        elif name == "D":
            try:
                macroname, macrovalue = parse_define(value)
            except ValueError:
                if self.verbose >= 2:
                    print("Ignoring malformed cl switch /D" + value)
                return
            invocation.defines.append(("D", macroname, macrovalue))
        elif name == "U":
            invocation.defines.append(("U", value.strip(), None))

    def _apply_feature_switch(self, invocation, switch):
        if switch in _RUNTIME_SWITCHES:
            invocation.runtime = _RUNTIME_SWITCHES[switch]
        elif switch in _LANGUAGE_SWITCHES:
            invocation.language = _LANGUAGE_SWITCHES[switch]
        elif switch.startswith("arch:") and switch[5:].upper() in _ARCH_SWITCHES:
            invocation.arch_features = _ARCH_SWITCHES[switch[5:].upper()]
        elif switch in _TOGGLE_SWITCHES:
            feature, enabled = _TOGGLE_SWITCHES[switch]
            invocation.toggles[feature] = enabled
        elif _RUNTIME_CHECK_SWITCH_RE.match(switch):
            invocation.toggles[F.RUNTIME_CHECKS] = True
        else:
            match = _EXCEPTION_SWITCH_RE.match(switch)
            if match:
                invocation.toggles[F.EXCEPTIONS] = _exception_model(match.group(1))
            elif self.verbose >= 9:
                print("Ignoring cl switch /" + switch)

    def _parse_invocation(self, context, clpath, argtext):
        invocation = self._parse_arguments(argtext)
        if not invocation.sources:
            if self.verbose >= 7:
                print("Ignoring cl invocation without sources: " + argtext)
            return

        profile = self._profile(context, clpath, invocation)
        predefined = cm.as_dict(cm.resolve(profile))
        includes = squidconfig.utils.ordered_unique(
            squidconfig.wrappedos.normpath(inc, context.projectdir)
            for inc in invocation.includes
        )

        for source in invocation.sources:
            filename = squidconfig.wrappedos.normpath(source, context.projectdir)
            settings = CompilationUnitSettings(
                filename, include_directories=includes, defines=predefined
            )
            for operation, macroname, macrovalue in invocation.defines:
                if operation == "D":
                    settings.add_define(macroname, macrovalue)
                else:
                    settings.remove_define(macroname)
            self._install(settings)

            if self.verbose >= 5:
                print(
                    "Parsed cl invocation for {0}: toolset={1} arch={2} "
                    "{3} include directories, {4} defines".format(
                        filename,
                        profile.version,
                        profile.arch.value,
                        len(includes),
                        len(settings.get_defines()),
                    )
                )
