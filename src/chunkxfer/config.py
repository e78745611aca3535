""" Configuration defaults for chunked transfers. The built-in defaults can
    be overridden per process via environment variables; explicit arguments
    to :func:`chunkxfer.make_producer` or :func:`chunkxfer.download` always
    take precedence over both.
"""

import math
import os
import threading

from . import errors


default_maxchunk = 1024000
default_timeout = None

maxchunk_variable = 'CHUNKXFER_MAXCHUNK'
timeout_variable = 'CHUNKXFER_TIMEOUT'


def maxchunk(default=None):
    """ Return the maximum chunk size, in bytes. An explicit *default*, such
        as the value a producer was configured with, is used as-is; otherwise
        the ``CHUNKXFER_MAXCHUNK`` environment variable is consulted, and
        failing that the built-in default of 1,024,000 bytes.
    """

    if default is None:
        found = os.environ.get(maxchunk_variable)
        if found is None or found == '':
            return default_maxchunk
    else:
        found = default

    try:
        found = int(found)
    except (TypeError, ValueError):
        raise errors.ConfigurationError('invalid maximum chunk size: ' + repr(found))

    if found < 1:
        raise errors.ConfigurationError('maximum chunk size must be positive: ' + repr(found))

    return found



def timeout(default=None):
    """ Return the inactivity timeout, in seconds. An explicit *default*, such
        as the timeout requested for a single download, is used as-is;
        otherwise the ``CHUNKXFER_TIMEOUT`` environment variable is consulted.
        None is returned if the timeout is disabled, which is the default; a
        value of zero also disables the timeout.
    """

    if default is None:
        found = os.environ.get(timeout_variable)
        if found == '':
            found = None
    else:
        found = default

    if found is None:
        return default_timeout

    try:
        found = float(found)
    except (TypeError, ValueError):
        raise errors.ConfigurationError('invalid timeout: ' + repr(found))

    if not math.isfinite(found):
        raise errors.ConfigurationError('timeout must be finite: ' + repr(found))

    if found < 0:
        raise errors.ConfigurationError('timeout cannot be negative: ' + repr(found))

    # Waits longer than this cannot be expressed by the threading primitives.

    if found > threading.TIMEOUT_MAX:
        raise errors.ConfigurationError('timeout is too large: ' + repr(found))

    if found == 0:
        return None

    return found


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
