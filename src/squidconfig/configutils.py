import os

import appdirs

import squidconfig.utils
import squidconfig.wrappedos

CONFIG_FILENAME = "squidconfig.conf"
APPNAME = "squidconfig"


def default_config_directories(user_config_dir=None, system_config_dir=None, verbose=0):
    # Use configuration in the order (lowest to highest priority)
    # 1) system config (XDG compliant.  /etc/xdg/squidconfig)
    # 2) user config   (XDG compliant. ~/.config/squidconfig)
    # 3) current working directory
    # 4) environment variables
    # 5) given on the command line

    # These variables are settable to assist writing tests
    if user_config_dir is None:
        user_config_dir = appdirs.user_config_dir(appname=APPNAME)
    if system_config_dir is None:
        system_config_dir = appdirs.site_config_dir(appname=APPNAME)

    results = squidconfig.utils.ordered_unique(
        [os.getcwd(), user_config_dir, system_config_dir]
    )
    if verbose >= 9:
        print(" ".join(["Default config directories"] + results))

    return results


def defaultconfigs(user_config_dir=None, system_config_dir=None, verbose=0):
    """ Find the squidconfig.conf files, lowest priority first """
    candidates = [
        os.path.join(defaultdir, CONFIG_FILENAME)
        for defaultdir in reversed(
            default_config_directories(
                user_config_dir=user_config_dir,
                system_config_dir=system_config_dir,
                verbose=verbose,
            )
        )
    ]

    # Only return the configs that exist
    configs = [cfg for cfg in candidates if squidconfig.wrappedos.isfile(cfg)]
    if verbose >= 8:
        print(" ".join(["Default configs are "] + configs))
    return configs


