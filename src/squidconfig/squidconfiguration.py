import codecs
import os
import sys

import squidconfig.buildlog
import squidconfig.utils
import squidconfig.wrappedos
from squidconfig.compilationunit import CompilationUnitSettings


class SquidConfiguration(object):
    """ The preprocessor configuration of a whole project.

        Holds a project wide set of include directories and defines plus
        a CompilationUnitSettings per source file.  A file with its own
        settings sees only those; every other file sees the project wide
        set.  Build logs install per file settings and fold what they
        found into the project wide set.
    """

    def __init__(self, basedir=".", verbose=0):
        self.verbose = verbose
        self.set_base_dir(basedir)
        self._project = CompilationUnitSettings()
        self._units = {}

    def set_base_dir(self, basedir):
        self._basedir = basedir
        # Source file keys are absolute paths
        self._root = squidconfig.wrappedos.normpath(os.path.abspath(str(basedir)))

    def get_base_dir(self):
        return self._basedir

    def _key(self, filename):
        return squidconfig.wrappedos.normpath(str(filename), self._root)

    # Project wide defaults

    def set_include_directories(self, directories):
        self._project.set_include_directories(directories)

    def add_include_directory(self, directory):
        self._project.add_include_directory(directory)

    def set_defines(self, defines):
        self._project.set_defines(defines)

    def add_define(self, name, value=None):
        self._project.add_define(name, value)

    # Per file settings

    def add_compilation_unit_settings(self, filename, settings):
        """ Install settings for filename, replacing any earlier settings """
        key = self._key(filename)
        if self.verbose >= 5 and key in self._units:
            print("Replacing compilation unit settings for " + key)
        self._units[key] = settings

    def get_compilation_unit_settings(self, filename):
        return self._units.get(self._key(filename))

    def get_compilation_unit_source_files(self):
        return list(self._units)

    def get_include_directories(self, filename=None):
        settings = self._project
        if filename is not None:
            settings = self.get_compilation_unit_settings(filename) or self._project
        return settings.get_include_directories()

    def get_defines(self, filename=None):
        settings = self._project
        if filename is not None:
            settings = self.get_compilation_unit_settings(filename) or self._project
        return settings.get_defines()

    def set_compilation_properties_with_build_log(
        self, log_files, toolset_key=squidconfig.buildlog.DEFAULT_TOOLSET_KEY, charset="utf-8"
    ):
        """ Parse each build log and install the settings it describes.

            None or an empty list does nothing.  A log that cannot be read
            or decoded is reported and skipped so the remaining logs still
            contribute.  An unknown toolset_key (ValueError) or charset
            (LookupError) is the caller's mistake and is raised.
        """
        if not log_files:
            return
        if not squidconfig.utils.is_nonstr_iter(log_files):
            log_files = [log_files]

        parser = squidconfig.buildlog.create(
            toolset_key, basedir=self._root, verbose=self.verbose
        )
        codecs.lookup(charset)

        for log_file in log_files:
            try:
                units = parser.parse_file(log_file, charset)
            except (OSError, UnicodeDecodeError) as err:
                print(
                    "Skipping build log {0}. Error={1}".format(log_file, err),
                    file=sys.stderr,
                )
                continue

            for settings in units:
                self.add_compilation_unit_settings(settings.filename, settings)
                self._merge_into_project(settings)

            if self.verbose >= 1:
                print(
                    "Build log {0} described {1} compilation units".format(
                        log_file, len(units)
                    )
                )

    def _merge_into_project(self, settings):
        self._project.set_include_directories(
            squidconfig.utils.ordered_union(
                self._project.get_include_directories(),
                settings.get_include_directories(),
            )
        )
        for name, value in settings.get_defines().items():
            self._project.add_define(name, value)
