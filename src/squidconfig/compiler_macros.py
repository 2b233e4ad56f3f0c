"""Predefined compiler macro catalog.

Build logs are usually captured on a machine that is not the one doing the
analysis, so the compiler cannot be asked for its predefined macros.  This
module instead looks them up in static tables keyed by the toolset version,
the target architecture and the command line features that were seen in the
log.  Adding a new toolset version is a new row in MSVC_TOOLSETS.
"""

import enum
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, Optional, Tuple


class Family(enum.Enum):
    MSVC = "msvc"


class Arch(enum.Enum):
    X86 = "x86"
    X64 = "x64"
    ARM = "arm"
    UNSPECIFIED = "unspecified"


class Feature(enum.Enum):
    """Command line features that change the predefined macro set.

    Resolution walks the members in definition order so the output
    order never depends on set iteration.
    """
    OPENMP = "openmp"
    WINRT = "winrt"
    CLR = "clr"
    EXCEPTIONS = "exceptions"
    RTTI = "rtti"
    AVX = "avx"
    AVX2 = "avx2"
    AVX512 = "avx512"
    ARM_FP = "arm_fp"
    ARCH_IA32 = "arch_ia32"
    ARCH_SSE = "arch_sse"
    MULTITHREADED_RUNTIME = "multithreaded_runtime"
    DEBUG_RUNTIME = "debug_runtime"
    DYNAMIC_RUNTIME = "dynamic_runtime"
    NO_DEFAULT_LIB = "no_default_lib"
    NATIVE_WCHAR_T = "native_wchar_t"
    WP64 = "wp64"
    CHAR_UNSIGNED = "char_unsigned"
    RUNTIME_CHECKS = "runtime_checks"
    STD_CPP14 = "std_cpp14"
    STD_CPP17 = "std_cpp17"
    STD_CPP20 = "std_cpp20"
    STD_CPPLATEST = "std_cpplatest"
    CPLUSPLUS_CONFORMANCE = "cplusplus_conformance"


@dataclass(frozen=True)
class MacroDefinition:
    """A preprocessor symbol.  A value of None means defined without a value."""
    name: str
    value: Optional[str] = None

    def __str__(self):
        if self.value is None:
            return self.name
        return f"{self.name} {self.value}"


@dataclass(frozen=True)
class ToolsetProfile:
    """One recognised compiler configuration.

    version is the platform toolset number (e.g., 141) or None when the log
    did not reveal it.  full_version is the compiler's own build number as
    printed in its banner (e.g., "19.10.24629").
    """
    family: Family = Family.MSVC
    version: Optional[int] = None
    full_version: Optional[str] = None
    arch: Arch = Arch.UNSPECIFIED
    features: FrozenSet[Feature] = frozenset()

    def __post_init__(self):
        # Callers may hand over any iterable but the profile must stay hashable
        object.__setattr__(self, "features", frozenset(self.features))


@dataclass(frozen=True)
class ToolsetVersion:
    msc_ver: str
    msc_full_ver: str
    atl_ver: str


# Placeholders for the values that only exist inside a real build
BASELINE_MACROS = (
    MacroDefinition("_INTEGRAL_MAX_BITS", "64"),
    MacroDefinition("_MSC_BUILD", "1"),
    MacroDefinition("__COUNTER__", "0"),
    MacroDefinition("__DATE__", '"??? ?? ????"'),
    MacroDefinition("__FILE__", '"file"'),
    MacroDefinition("__LINE__", "1"),
    MacroDefinition("__TIME__", '"??:??:??"'),
    MacroDefinition("__TIMESTAMP__", '"??? ?? ???? ??:??:??"'),
)

# Platform toolset -> version macros.  See atldef.h for _ATL_VER.
MSVC_TOOLSETS = {
    90: ToolsetVersion("1500", "150030729", "0x0900"),  # Visual Studio 2008
    100: ToolsetVersion("1600", "160040219", "0x0A00"),  # Visual Studio 2010
    110: ToolsetVersion("1700", "170061030", "0x0B00"),  # Visual Studio 2012
    120: ToolsetVersion("1800", "180031101", "0x0C00"),  # Visual Studio 2013
    140: ToolsetVersion("1900", "190024215", "0x0E00"),  # Visual Studio 2015
    141: ToolsetVersion("1910", "191024629", "0x0E00"),  # Visual Studio 2017
    142: ToolsetVersion("1920", "192027508", "0x0E00"),  # Visual Studio 2019
    143: ToolsetVersion("1930", "193030705", "0x0E00"),  # Visual Studio 2022
}

# cl.exe major version -> platform toolset, for the pre 19.x compilers
_LEGACY_COMPILER_TOOLSETS = {15: 90, 16: 100, 17: 110, 18: 120}

# _MSVC_LANG first appeared with the 2015 toolset
_MSVC_LANG_MIN_TOOLSET = 140
_CONFORMANCE_MIN_TOOLSET = 141

_LANGUAGE_STANDARDS = (
    (Feature.STD_CPPLATEST, "202004L"),
    (Feature.STD_CPP20, "202002L"),
    (Feature.STD_CPP17, "201703L"),
    (Feature.STD_CPP14, "201402L"),
)

FEATURE_MACROS = {
    Feature.OPENMP: (MacroDefinition("_OPENMP", "200203"),),
    Feature.WINRT: (MacroDefinition("__cplusplus_winrt", "201009"),),
    Feature.CLR: (
        MacroDefinition("__cplusplus_cli", "200406"),
        MacroDefinition("_MANAGED", "1"),
        MacroDefinition("_M_CEE", "001"),
    ),
    Feature.EXCEPTIONS: (MacroDefinition("_CPPUNWIND"),),
    Feature.RTTI: (MacroDefinition("_CPPRTTI"),),
    Feature.AVX: (MacroDefinition("__AVX__", "1"),),
    Feature.AVX2: (MacroDefinition("__AVX2__", "1"),),
    Feature.AVX512: (
        MacroDefinition("__AVX512F__", "1"),
        MacroDefinition("__AVX512CD__", "1"),
        MacroDefinition("__AVX512BW__", "1"),
        MacroDefinition("__AVX512DQ__", "1"),
        MacroDefinition("__AVX512VL__", "1"),
    ),
    Feature.ARM_FP: (MacroDefinition("_M_ARM_FP"),),
    Feature.MULTITHREADED_RUNTIME: (MacroDefinition("_MT"),),
    Feature.DEBUG_RUNTIME: (MacroDefinition("_DEBUG"),),
    Feature.DYNAMIC_RUNTIME: (MacroDefinition("_DLL"),),
    Feature.NO_DEFAULT_LIB: (MacroDefinition("_VC_NODEFAULTLIB"),),
    Feature.NATIVE_WCHAR_T: (
        MacroDefinition("_WCHAR_T_DEFINED", "1"),
        MacroDefinition("_NATIVE_WCHAR_T_DEFINED", "1"),
    ),
    Feature.WP64: (MacroDefinition("_Wp64"),),
    Feature.CHAR_UNSIGNED: (MacroDefinition("_CHAR_UNSIGNED", "1"),),
    Feature.RUNTIME_CHECKS: (MacroDefinition("__MSVC_RUNTIME_CHECKS"),),
}

_ARCH_NAMES = {
    "x86": Arch.X86,
    "win32": Arch.X86,
    "i386": Arch.X86,
    "ia32": Arch.X86,
    "x64": Arch.X64,
    "amd64": Arch.X64,
    "x86_64": Arch.X64,
    "arm": Arch.ARM,
}

_COMPILER_VERSION_RE = re.compile(r"^\s*(\d+)\.(\d+)(?:\.(\d+))?")
_TOOLSET_NUMBER_RE = re.compile(r"^v?(\d{2,3})$", re.IGNORECASE)
_DOTTED_VERSION_RE = re.compile(r"^(\d+)\.(\d+)(?:\.\d+)*$")


def parse_arch(text) -> Arch:
    """Map a platform or architecture name (Win32, x64, amd64, ARM) to an Arch"""
    if not text:
        return Arch.UNSPECIFIED
    return _ARCH_NAMES.get(text.strip().strip('"').lower(), Arch.UNSPECIFIED)


def toolset_from_compiler_version(text) -> Optional[int]:
    """Map a cl.exe version (e.g., "19.10.24629") to its platform toolset"""
    if not text:
        return None
    match = _COMPILER_VERSION_RE.match(text)
    if not match:
        return None
    major = int(match.group(1))
    minor = int(match.group(2))
    if major in _LEGACY_COMPILER_TOOLSETS:
        return _LEGACY_COMPILER_TOOLSETS[major]
    if major != 19:
        return None
    if minor < 10:
        return 140
    if minor < 20:
        return 141
    if minor < 30:
        return 142
    if minor < 50:
        return 143
    return None


def parse_toolset_version(text) -> Optional[int]:
    """Convert the many spellings of a toolset version into a toolset number.

    Accepts the MSBuild PlatformToolset ("v141"), the bare number ("141"),
    the short product version ("14.1"), the VC tools directory version
    ("14.16.27023"), the Visual Studio directory version ("12.0") and the
    compiler version ("19.10.24629").

    Returns:
        The toolset number when it is in the catalog, otherwise None
    """
    if not text:
        return None
    text = text.strip().strip('"')

    match = _TOOLSET_NUMBER_RE.match(text)
    if match:
        toolset = int(match.group(1))
        return toolset if toolset in MSVC_TOOLSETS else None

    match = _DOTTED_VERSION_RE.match(text)
    if not match:
        return None
    major = int(match.group(1))
    minortext = match.group(2)
    minor = int(minortext)

    toolset = None
    if major == 14:
        if len(minortext) == 1:
            toolset = 140 + minor
        else:
            # Tools directory versions such as 14.16 or 14.29
            toolset = toolset_from_compiler_version("19.{:02d}".format(minor))
    elif 9 <= major <= 12 and minor == 0:
        toolset = major * 10
    elif major >= 15:
        toolset = toolset_from_compiler_version(text)

    return toolset if toolset in MSVC_TOOLSETS else None


def _version_macros(profile, toolset):
    entry = MSVC_TOOLSETS[toolset]
    msc_ver = entry.msc_ver
    msc_full_ver = entry.msc_full_ver

    if profile.full_version:
        match = _COMPILER_VERSION_RE.match(profile.full_version)
        if match and match.group(3):
            major, minor, build = (int(gg) for gg in match.groups())
            msc_ver = "{0}{1:02d}".format(major, minor)
            msc_full_ver = "{0}{1:02d}{2:05d}".format(major, minor, build)

    macros = [
        MacroDefinition("_MSC_VER", msc_ver),
        MacroDefinition("_MSC_FULL_VER", msc_full_ver),
        MacroDefinition("_ATL_VER", entry.atl_ver),
    ]

    cplusplus = "199711L"
    if toolset >= _MSVC_LANG_MIN_TOOLSET:
        msvc_lang = "201402L"
        for feature, value in _LANGUAGE_STANDARDS:
            if feature in profile.features:
                msvc_lang = value
                break
        macros.append(MacroDefinition("_MSVC_LANG", msvc_lang))
        if (
            Feature.CPLUSPLUS_CONFORMANCE in profile.features
            and toolset >= _CONFORMANCE_MIN_TOOLSET
        ):
            cplusplus = msvc_lang
    macros.append(MacroDefinition("__cplusplus", cplusplus))
    return macros


def _arch_macros(profile):
    macros = [MacroDefinition("_WIN32")]
    if profile.arch is Arch.X86:
        if Feature.ARCH_IA32 in profile.features:
            ix86_fp = "0"
        elif Feature.ARCH_SSE in profile.features:
            ix86_fp = "1"
        else:
            ix86_fp = "2"
        macros.append(MacroDefinition("_M_IX86", "600"))
        macros.append(MacroDefinition("_M_IX86_FP", ix86_fp))
    elif profile.arch is Arch.X64:
        macros.append(MacroDefinition("_WIN64"))
        macros.append(MacroDefinition("_M_X64", "100"))
        macros.append(MacroDefinition("_M_AMD64", "100"))
    elif profile.arch is Arch.ARM:
        macros.append(MacroDefinition("_M_ARM", "7"))
        macros.append(MacroDefinition("_M_ARM_NT", "1"))
    return macros


def _feature_macros(profile):
    macros = []
    for feature in Feature:
        if feature in profile.features:
            macros.extend(FEATURE_MACROS.get(feature, ()))
    return macros


@lru_cache(maxsize=128)
def resolve(profile: ToolsetProfile) -> Tuple[MacroDefinition, ...]:
    """Resolve the macros a toolset predefines.

    Args:
        profile: The toolset, architecture and features detected in a log

    Returns:
        A tuple of MacroDefinition with unique names.  An unknown toolset
        version contributes no version macros rather than failing.
    """
    layers = [BASELINE_MACROS]

    if profile.family is Family.MSVC:
        toolset = profile.version
        if toolset is None:
            toolset = toolset_from_compiler_version(profile.full_version)
        if toolset in MSVC_TOOLSETS:
            layers.append(_version_macros(profile, toolset))
        layers.append(_arch_macros(profile))
        layers.append(_feature_macros(profile))

    resolved = {}
    for layer in layers:
        for macro in layer:
            resolved[macro.name] = macro
    return tuple(resolved.values())


def as_dict(macros: Iterable[MacroDefinition]) -> Dict[str, Optional[str]]:
    """Convert MacroDefinitions into an ordered name -> value dict"""
    return {macro.name: macro.value for macro in macros}


def known_versions():
    """The toolset numbers the catalog knows about, oldest first"""
    return sorted(MSVC_TOOLSETS)


def clear_cache():
    """Clear the LRU cache for resolve."""
    resolve.cache_clear()
