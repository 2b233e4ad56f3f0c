import configargparse
import os
import contextlib
import shutil
from io import open
import tempfile
import textwrap
from pathlib import Path
import squidconfig.apptools
import squidconfig.compiler_macros
import squidconfig.configutils
import squidconfig.utils
import squidconfig.wrappedos

# The abbreviation "uth" is often used for this "unittesthelper"


def reset():
    delete_existing_parsers()
    squidconfig.apptools.resetcallbacks()
    squidconfig.compiler_macros.clear_cache()
    squidconfig.utils.clear_cache()
    squidconfig.wrappedos.clear_cache()


def delete_existing_parsers():
    """The singleton parsers supplied by configargparse
    don't play well with the unittest framework.
    This function will delete them so you are
    starting with a clean slate
    """
    configargparse._parsers = {}


def scdir():
    return os.path.dirname(os.path.realpath(__file__))


def samplesdir():
    return os.path.realpath(os.path.join(scdir(), "samples"))


def buildlogsdir():
    return os.path.join(samplesdir(), "buildlogs")


def buildlog(name):
    """Full path of one of the sample build logs"""
    return os.path.join(buildlogsdir(), name)


def create_temp_config(tempdir=None, filename=None, extralines=None):
    """User is responsible for removing the config file when
    they are finished
    """
    if not filename:
        tf_handle, filename = tempfile.mkstemp(suffix=".conf", text=True, dir=tempdir)
        os.close(tf_handle)

    with open(filename, "w") as ff:
        ff.write("toolset = Visual C++\n")
        ff.write("charset = utf-8\n")
        for line in extralines or []:
            ff.write(line + "\n")

    return filename


def create_temp_squidconfig_conf(tempdir, extralines=None):
    """Write a squidconfig.conf into tempdir so that the default config
    file search finds it
    """
    return create_temp_config(
        tempdir=tempdir,
        filename=os.path.join(tempdir, squidconfig.configutils.CONFIG_FILENAME),
        extralines=extralines,
    )


class TempDirectoryContext:
    """Context manager for temporary directories with optional directory changing."""

    def __init__(self, change_dir=True, prefix=None, suffix=None, dir=None):
        self.change_dir = change_dir
        self.prefix = prefix
        self.suffix = suffix
        self.dir = dir
        self._tmpdir = None
        self._origdir = None

    def __enter__(self):
        if self.change_dir:
            self._origdir = os.getcwd()

        self._tmpdir = tempfile.mkdtemp(prefix=self.prefix, suffix=self.suffix, dir=self.dir)

        if self.change_dir:
            os.chdir(self._tmpdir)

        return self._tmpdir

    def __exit__(self, exc_type, exc_value, traceback):
        if self.change_dir and self._origdir:
            os.chdir(self._origdir)
        if self._tmpdir:
            shutil.rmtree(self._tmpdir, ignore_errors=True)


class TempDirContextNoChange(TempDirectoryContext):
    """Temp directory without directory change."""
    def __init__(self, prefix=None, suffix=None, dir=None):
        super().__init__(change_dir=False, prefix=prefix, suffix=suffix, dir=dir)


class TempDirContextWithChange(TempDirectoryContext):
    """Temp directory with directory change."""
    def __init__(self, prefix=None, suffix=None, dir=None):
        super().__init__(change_dir=True, prefix=prefix, suffix=suffix, dir=dir)


@contextlib.contextmanager
def EnvironmentContext(env_vars):
    """Context manager for temporarily setting environment variables.

    Args:
        env_vars: Dictionary of environment variables to set
    """
    original_values = {}

    for key, value in env_vars.items():
        if value:  # Only set non-empty values
            original_values[key] = os.getenv(key)
            os.environ[key] = value

    try:
        yield
    finally:
        for key in env_vars:
            if key in original_values:
                if original_values[key] is not None:
                    os.environ[key] = original_values[key]
                else:
                    os.environ.pop(key, None)


@contextlib.contextmanager
def ParserContext():
    """Context manager for temporarily resetting configargparse state."""
    saved_parsers = configargparse._parsers.copy()
    delete_existing_parsers()
    squidconfig.apptools.resetcallbacks()

    try:
        yield
    finally:
        configargparse._parsers = saved_parsers
        squidconfig.apptools.resetcallbacks()


def write_logs(mapping, target_dir=None, encoding="utf-8"):
    """Write build logs for a test.

    Args:
        mapping: Dictionary of {relative_path: content}
        target_dir: Directory to create files in (defaults to current directory)

    Returns:
        Dictionary of {relative_path: str path} for created files
    """
    if target_dir is None:
        base_path = Path(os.getcwd())
    else:
        base_path = Path(target_dir)

    paths = {}
    for rel, text in mapping.items():
        p = base_path / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(textwrap.dedent(text).lstrip(), encoding=encoding)
        paths[rel] = str(p)
    return paths
