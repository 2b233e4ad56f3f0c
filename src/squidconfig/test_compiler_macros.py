"""Tests for the compiler_macros module."""

import pytest

import squidconfig.compiler_macros as cm
import squidconfig.unittesthelper as uth

BASELINE = {
    "_INTEGRAL_MAX_BITS": "64",
    "_MSC_BUILD": "1",
    "__COUNTER__": "0",
    "__DATE__": '"??? ?? ????"',
    "__FILE__": '"file"',
    "__LINE__": "1",
    "__TIME__": '"??:??:??"',
    "__TIMESTAMP__": '"??? ?? ???? ??:??:??"',
}


def _resolve(**kwargs):
    return cm.as_dict(cm.resolve(cm.ToolsetProfile(**kwargs)))


class TestResolve:
    def setup_method(self):
        uth.reset()

    def test_resolve_is_deterministic(self):
        profile = cm.ToolsetProfile(
            version=141,
            arch=cm.Arch.X86,
            features=[cm.Feature.EXCEPTIONS, cm.Feature.OPENMP],
        )
        first = cm.resolve(profile)
        cm.clear_cache()
        second = cm.resolve(
            cm.ToolsetProfile(
                version=141,
                arch=cm.Arch.X86,
                features={cm.Feature.OPENMP, cm.Feature.EXCEPTIONS},
            )
        )
        assert first == second
        assert len(first) == len(second)

    @pytest.mark.parametrize("version", [None, 90, 110, 141, 143, 999])
    @pytest.mark.parametrize("arch", list(cm.Arch))
    def test_baseline_always_present(self, version, arch):
        macros = _resolve(version=version, arch=arch, features=list(cm.Feature))
        for name, value in BASELINE.items():
            assert macros[name] == value

    def test_names_are_unique(self):
        macros = cm.resolve(
            cm.ToolsetProfile(version=143, arch=cm.Arch.X64, features=list(cm.Feature))
        )
        names = [macro.name for macro in macros]
        assert len(names) == len(set(names))

    def test_exact_v141_x86_exceptions(self):
        macros = _resolve(version=141, arch=cm.Arch.X86, features=[cm.Feature.EXCEPTIONS])
        expected = dict(BASELINE)
        expected.update(
            {
                "_MSC_VER": "1910",
                "_MSC_FULL_VER": "191024629",
                "_ATL_VER": "0x0E00",
                "_MSVC_LANG": "201402L",
                "__cplusplus": "199711L",
                "_WIN32": None,
                "_M_IX86": "600",
                "_M_IX86_FP": "2",
                "_CPPUNWIND": None,
            }
        )
        assert macros == expected
        assert list(macros)[:8] == list(BASELINE)

    def test_v141_x64(self):
        macros = _resolve(version=141, arch=cm.Arch.X64, features=[cm.Feature.EXCEPTIONS])
        assert "_M_IX86" not in macros
        assert "_M_IX86_FP" not in macros
        assert macros["_M_X64"] == "100"
        assert macros["_M_AMD64"] == "100"
        assert "_WIN64" in macros
        assert "_WIN32" in macros

    @pytest.mark.parametrize("version", [None] + cm.known_versions())
    def test_arch_exclusivity(self, version):
        for arch in cm.Arch:
            macros = _resolve(version=version, arch=arch)
            assert "_WIN32" in macros
            if arch is cm.Arch.X86:
                assert "_M_IX86" in macros
                assert "_M_IX86_FP" in macros
            else:
                assert "_M_IX86" not in macros
                assert "_M_IX86_FP" not in macros
            if arch is cm.Arch.X64:
                assert "_WIN64" in macros
            else:
                assert "_WIN64" not in macros
                assert "_M_X64" not in macros
            if arch is not cm.Arch.ARM:
                assert "_M_ARM" not in macros

    def test_ix86_fp_follows_arch_switch(self):
        assert _resolve(arch=cm.Arch.X86)["_M_IX86_FP"] == "2"
        assert _resolve(arch=cm.Arch.X86, features=[cm.Feature.ARCH_SSE])["_M_IX86_FP"] == "1"
        assert _resolve(arch=cm.Arch.X86, features=[cm.Feature.ARCH_IA32])["_M_IX86_FP"] == "0"

    def test_arm(self):
        macros = _resolve(version=110, arch=cm.Arch.ARM, features=[cm.Feature.ARM_FP])
        assert macros["_M_ARM"] == "7"
        assert macros["_M_ARM_NT"] == "1"
        assert "_M_ARM_FP" in macros
        assert macros["_MSC_VER"] == "1700"
        assert macros["_MSC_FULL_VER"] == "170061030"
        assert macros["_ATL_VER"] == "0x0B00"

    def test_unknown_version_keeps_baseline_arch_and_features(self):
        macros = _resolve(version=999, arch=cm.Arch.X64, features=[cm.Feature.OPENMP])
        assert "_MSC_VER" not in macros
        assert "_MSC_FULL_VER" not in macros
        assert "_ATL_VER" not in macros
        assert "__cplusplus" not in macros
        assert macros["_OPENMP"] == "200203"
        assert "_WIN64" in macros

    def test_no_version_is_baseline_only_plus_arch(self):
        macros = _resolve()
        expected = dict(BASELINE)
        expected["_WIN32"] = None
        assert macros == expected

    def test_full_version_overrides_table(self):
        macros = _resolve(version=141, full_version="19.16.27023", arch=cm.Arch.X86)
        assert macros["_MSC_VER"] == "1916"
        assert macros["_MSC_FULL_VER"] == "191627023"

    def test_full_version_alone_selects_toolset(self):
        macros = _resolve(full_version="19.00.23918", arch=cm.Arch.X64)
        assert macros["_MSC_VER"] == "1900"
        assert macros["_MSC_FULL_VER"] == "190023918"
        assert macros["_ATL_VER"] == "0x0E00"

    def test_msvc_lang_only_from_2015(self):
        assert "_MSVC_LANG" not in _resolve(version=120)
        assert _resolve(version=140)["_MSVC_LANG"] == "201402L"

    def test_language_standard(self):
        macros = _resolve(version=142, features=[cm.Feature.STD_CPP17])
        assert macros["_MSVC_LANG"] == "201703L"
        assert macros["__cplusplus"] == "199711L"

        macros = _resolve(
            version=142,
            features=[cm.Feature.STD_CPP20, cm.Feature.CPLUSPLUS_CONFORMANCE],
        )
        assert macros["_MSVC_LANG"] == "202002L"
        assert macros["__cplusplus"] == "202002L"

        # /Zc:__cplusplus arrived after the 2015 toolset
        macros = _resolve(version=140, features=[cm.Feature.CPLUSPLUS_CONFORMANCE])
        assert macros["__cplusplus"] == "199711L"

    def test_feature_macros(self):
        macros = _resolve(
            version=120,
            arch=cm.Arch.X86,
            features=[
                cm.Feature.OPENMP,
                cm.Feature.WINRT,
                cm.Feature.AVX2,
                cm.Feature.MULTITHREADED_RUNTIME,
                cm.Feature.DEBUG_RUNTIME,
                cm.Feature.DYNAMIC_RUNTIME,
                cm.Feature.NO_DEFAULT_LIB,
                cm.Feature.NATIVE_WCHAR_T,
            ],
        )
        assert macros["_OPENMP"] == "200203"
        assert macros["__cplusplus_winrt"] == "201009"
        assert macros["__AVX2__"] == "1"
        assert "__AVX__" not in macros
        for name in ["_MT", "_DEBUG", "_DLL", "_VC_NODEFAULTLIB"]:
            assert name in macros
            assert macros[name] is None
        assert macros["_WCHAR_T_DEFINED"] == "1"
        assert macros["_NATIVE_WCHAR_T_DEFINED"] == "1"

    def test_clr(self):
        macros = _resolve(version=100, features=[cm.Feature.CLR])
        assert macros["__cplusplus_cli"] == "200406"
        assert macros["_MANAGED"] == "1"
        assert macros["_M_CEE"] == "001"

    def test_feature_order_is_stable(self):
        macros = list(
            _resolve(features=[cm.Feature.RUNTIME_CHECKS, cm.Feature.EXCEPTIONS, cm.Feature.RTTI])
        )
        assert macros[-3:] == ["_CPPUNWIND", "_CPPRTTI", "__MSVC_RUNTIME_CHECKS"]


class TestMacroDefinition:
    def test_str(self):
        assert str(cm.MacroDefinition("_M_IX86", "600")) == "_M_IX86 600"
        assert str(cm.MacroDefinition("_CPPUNWIND")) == "_CPPUNWIND"

    def test_profile_is_hashable(self):
        profile = cm.ToolsetProfile(features=[cm.Feature.OPENMP])
        assert isinstance(profile.features, frozenset)
        assert hash(profile) == hash(cm.ToolsetProfile(features={cm.Feature.OPENMP}))


class TestVersionParsing:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("v141", 141),
            ("V120", 120),
            ("141", 141),
            ("14.1", 141),
            ("14.0", 140),
            ("14.16.27023", 141),
            ("14.29.30133", 142),
            ("14.35.32215", 143),
            ("12.0", 120),
            ("11.0", 110),
            ("19.10.24629", 141),
            ("18.00.31101", 120),
            ("v999", None),
            ("vX", None),
            ("", None),
            (None, None),
            ("banana", None),
        ],
    )
    def test_parse_toolset_version(self, text, expected):
        assert cm.parse_toolset_version(text) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("15.00.30729", 90),
            ("16.00.40219", 100),
            ("17.00.61030", 110),
            ("18.00.31101", 120),
            ("19.00.24215.1", 140),
            ("19.16.27023", 141),
            ("19.29.30133", 142),
            ("19.35.32215", 143),
            ("20.00.00000", None),
            ("nonsense", None),
        ],
    )
    def test_toolset_from_compiler_version(self, text, expected):
        assert cm.toolset_from_compiler_version(text) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Win32", cm.Arch.X86),
            ("x86", cm.Arch.X86),
            ("x64", cm.Arch.X64),
            ("AMD64", cm.Arch.X64),
            ("ARM", cm.Arch.ARM),
            ("", cm.Arch.UNSPECIFIED),
            ("Itanium", cm.Arch.UNSPECIFIED),
        ],
    )
    def test_parse_arch(self, text, expected):
        assert cm.parse_arch(text) is expected

    def test_known_versions(self):
        assert cm.known_versions() == [90, 100, 110, 120, 140, 141, 142, 143]
