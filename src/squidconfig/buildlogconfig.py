import sys

from rich.console import Console
from rich.table import Table

import squidconfig.apptools
import squidconfig.buildlog
import squidconfig.utils
from squidconfig.compilationunit import CompilationUnitSettings, parse_define
from squidconfig.squidconfiguration import SquidConfiguration


def add_arguments(cap):
    cap.add("logfiles", nargs="*", help="Build log file(s) to parse")
    cap.add(
        "--toolset",
        default=squidconfig.buildlog.DEFAULT_TOOLSET_KEY,
        help="Toolset that produced the build logs. One of "
        + ", ".join(squidconfig.buildlog.toolset_keys()),
    )
    cap.add("--charset", default="utf-8", help="Character set of the build logs")
    cap.add(
        "--basedir",
        default=".",
        help="Directory that relative paths in the build logs are resolved against",
    )
    cap.add(
        "--include",
        nargs="*",
        default=[],
        help="Project wide include directories, used for files the logs do not mention",
    )
    cap.add(
        "--define",
        nargs="*",
        default=[],
        help="Project wide defines as NAME or NAME=VALUE",
    )
    cap.add(
        "--file",
        nargs="*",
        default=[],
        help="Only show the configuration of these source files",
    )
    squidconfig.utils.add_flag_argument(
        cap,
        "summary",
        default=False,
        help="Only show how many include directories and defines were found.",
    )

    # Figure out what style classes are available and add them to the command
    # line options
    styles = [st[:-5].lower() for st in dict(globals()) if st.endswith("Style")]
    cap.add("--style", choices=styles, default="table", help="Output formatting style")


def _define_strings(defines):
    return CompilationUnitSettings(defines=defines).define_strings()


class TableStyle(object):
    def __init__(self, console):
        self.console = console

    def append_unit(self, title, includes, defines):
        table = Table(title=title, show_lines=False)
        table.add_column("Include directories")
        table.add_column("Defines")
        define_strings = _define_strings(defines)
        for ii in range(max(len(includes), len(define_strings))):
            table.add_row(
                includes[ii] if ii < len(includes) else "",
                define_strings[ii] if ii < len(define_strings) else "",
            )
        self.console.print(table)

    def append_summary(self, title, includes, defines):
        self.console.print(
            "{0}: {1} include directories, {2} defines".format(title, len(includes), len(defines))
        )


class FlatStyle(object):
    def __init__(self, console):
        self.console = console

    def append_unit(self, title, includes, defines):
        self.console.print(title + ":", markup=False, highlight=False, soft_wrap=True)
        for inc in includes:
            self.console.print("    /I " + inc, markup=False, highlight=False, soft_wrap=True)
        for define in _define_strings(defines):
            self.console.print("    /D " + define, markup=False, highlight=False, soft_wrap=True)

    def append_summary(self, title, includes, defines):
        self.console.print(
            "{0} {1} {2}".format(title, len(includes), len(defines)),
            markup=False,
            highlight=False,
            soft_wrap=True,
        )


def build_configuration(args):
    """ Create the SquidConfiguration described by the parsed arguments """
    config = SquidConfiguration(basedir=args.basedir, verbose=args.verbose)
    config.set_include_directories(args.include)
    for define in args.define:
        config.add_define(*parse_define(define))
    config.set_compilation_properties_with_build_log(
        args.logfiles, toolset_key=args.toolset, charset=args.charset
    )
    return config


def report(config, args, console=None):
    if console is None:
        console = Console(file=sys.stdout)
    styleclass = globals()[args.style.title() + "Style"]
    style = styleclass(console)
    append = style.append_summary if args.summary else style.append_unit

    filenames = args.file or config.get_compilation_unit_source_files()
    if not args.file:
        append(
            "<project>",
            config.get_include_directories(),
            config.get_defines(),
        )
    for filename in filenames:
        append(
            filename,
            config.get_include_directories(filename),
            config.get_defines(filename),
        )


def main(argv=None):
    cap = squidconfig.apptools.create_parser(
        "Derive the include directories and defines of C/C++ files from build logs"
    )
    add_arguments(cap)
    args = squidconfig.apptools.parseargs(cap, argv)

    try:
        config = build_configuration(args)
    except (ValueError, LookupError) as err:
        print(str(err), file=sys.stderr)
        return 1

    report(config, args)
    return 0
