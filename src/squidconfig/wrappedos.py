""" Wrap and memoize a variety of os and path calls """
import os
import ntpath
import posixpath
import functools


@functools.lru_cache(maxsize=None)
def isfile(trialpath):
    """ Cached version of os.path.isfile """
    return os.path.isfile(trialpath)


@functools.lru_cache(maxsize=None)
def isabs(trialpath):
    """ Absolute on either a posix or a windows host.
        Build logs are commonly captured on windows and analysed elsewhere.
    """
    return posixpath.isabs(trialpath) or bool(ntpath.splitdrive(trialpath)[0])


@functools.lru_cache(maxsize=None)
def normpath(trialpath, basedir=None):
    """ Normalise a path taken from a build log.
        Back slashes become forward slashes, relative paths are joined
        onto basedir and the result is collapsed with posixpath.normpath.
        The file system is never consulted.
    """
    path = trialpath.strip().strip('"').replace("\\", "/")
    if basedir and not isabs(path):
        path = posixpath.join(basedir.replace("\\", "/"), path)
    if not path:
        return path
    return posixpath.normpath(path)


def dirname(trialpath):
    """ The directory part of a log path, regardless of separator style """
    return posixpath.dirname(trialpath.replace("\\", "/"))


def clear_cache():
    isfile.cache_clear()
    isabs.cache_clear()
    normpath.cache_clear()
