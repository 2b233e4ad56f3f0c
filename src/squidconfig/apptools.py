import argparse
import os
import sys

import configargparse
from rich.console import Console
from rich.table import Table
from rich_rst import RestructuredText

from squidconfig.version import __version__
import squidconfig.configutils


def readme_path():
    return os.path.join(os.path.dirname(os.path.realpath(__file__)), "README.squidconfig.rst")


def show_man(console=None):
    """ Render the README as a man page """
    if console is None:
        console = Console()
    with open(readme_path(), encoding="utf-8") as ff:
        console.print(RestructuredText(ff.read()))


class _ManAction(argparse.Action):
    def __init__(self, option_strings, dest=argparse.SUPPRESS, default=argparse.SUPPRESS, help=None):
        super().__init__(option_strings=option_strings, dest=dest, default=default, nargs=0, help=help)

    def __call__(self, parser, namespace, values, option_string=None):
        show_man()
        parser.exit()


def add_base_arguments(cap):
    cap.add(
        "-v",
        "--verbose",
        help="Output verbosity. Add more v's to make it more verbose",
        action="count",
        default=0)
    cap.add(
        "-q",
        "--quiet",
        help="Decrement verbosity. Useful in apps where the default verbosity > 0.",
        action="count",
        default=0)
    cap.add(
        "--version",
        action="version",
        version=__version__)
    cap.add(
        "--man",
        action=_ManAction,
        help="Show the manual page")
    cap.add(
        "-?",
        action='help',
        help='Help')


def create_parser(description, include_config=True, user_config_dir=None, system_config_dir=None):
    """ Create the configargparse singleton with the base arguments.
        When include_config is True the squidconfig.conf files are read and
        -c/--config names an extra config file.
    """
    kwargs = {
        "description": description,
        "formatter_class": configargparse.ArgumentDefaultsHelpFormatter,
        "auto_env_var_prefix": "SQUIDCONFIG_",
        "ignore_unknown_config_file_keys": True,
    }
    if include_config:
        kwargs["default_config_files"] = squidconfig.configutils.defaultconfigs(
            user_config_dir=user_config_dir, system_config_dir=system_config_dir
        )
        kwargs["args_for_setting_config_path"] = ["-c", "--config"]

    cap = configargparse.getArgumentParser(**kwargs)
    add_base_arguments(cap)
    return cap


def _commonsubstitutions(args):
    """ Fold the quiet count into the verbosity """
    args.verbose -= args.quiet


# List to store the callback functions for parse args
_substitutioncallbacks = [_commonsubstitutions]


def resetcallbacks():
    """ Useful in tests to clear out the substitution callbacks """
    global _substitutioncallbacks
    _substitutioncallbacks = [_commonsubstitutions]


def registercallback(callback):
    """ Use this to register a function to be called back during the
        substitutions call (usually during parseargs).
        The callback function will later be given "args" as its argument.
    """
    _substitutioncallbacks.append(callback)


def substitutions(args, verbose=None):
    if verbose is None:
        verbose = args.verbose

    for func in _substitutioncallbacks:
        func(args)

    if verbose >= 2:
        verboseprintconfig(args)


def parseargs(cap, argv=None, verbose=None):
    args = cap.parse_args(args=argv)

    if verbose is None:
        verbose = args.verbose

    substitutions(args, verbose)
    return args


def verboseprintconfig(args, console=None):
    if args.verbose >= 3:
        cap = configargparse.getArgumentParser()
        cap.print_values()

    if args.verbose >= 2:
        verbose_print_args(args, console=console)


def verbose_print_args(args, console=None):
    """ Print the args in two columns Attr: Value """
    if console is None:
        console = Console(file=sys.stdout)
    table = Table(
        title="Final aggregated variables", show_header=False, box=None, expand=True
    )
    table.add_column("attr", style="bold")
    table.add_column("value", overflow="fold")
    for attr, value in sorted(args.__dict__.items()):
        table.add_row(attr, "" if value is None else str(value))
    console.print(table)
