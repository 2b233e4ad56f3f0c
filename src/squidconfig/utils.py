import functools


def is_nonstr_iter(obj):
    """ A python 3 only method for deciding if the given variable
        is a non-string iterable
    """
    if isinstance(obj, str):
        return False
    return hasattr(obj, "__iter__")


@functools.lru_cache(maxsize=None)
def issource(filename):
    """ Is the filename a C or C++ source file?"""
    return filename.split(".")[-1].lower() in ["cpp", "cxx", "cc", "c", "c++"]


def clear_cache():
    issource.cache_clear()


def add_flag_argument(parser, name, dest=None, default=False, help=None):
    """ Add a flag argument to an ArgumentParser instance.
        Either the --flag is present or the --no-flag is present.
        A flag never consumes the following command line token.
    """
    if not dest:
        dest = name
    group = parser.add_mutually_exclusive_group()
    bool_help = help + " Use --no-" + name + " to turn the feature off."
    group.add_argument(
        "--" + name, dest=dest, default=default, action="store_true", help=bool_help
    )
    group.add_argument(
        "--no-" + name, dest=dest, action="store_false", default=not default
    )


def ordered_unique(iterable):
    """Return unique items from iterable preserving insertion order.

    Uses dict.fromkeys() which is guaranteed to preserve insertion order.
    """
    return list(dict.fromkeys(iterable))


def ordered_union(*iterables):
    """Union of the iterables, keeping the first position of each item"""
    result = {}
    for iterable in iterables:
        result.update(dict.fromkeys(iterable))
    return list(result)
