"""
Utilities for obtaining a configuration for apigen services.

A configuration is a plain (nested) dictionary; it is typically read from a YAML or JSON file
with :py:func:`load_from_file` and layered over a set of defaults with :py:func:`merge_config`.
Logging for a deployed service is set up once at startup with :py:func:`configure_log`.
"""
import os, sys, json, logging
from copy import deepcopy
from collections.abc import Mapping

import yaml

from . import APIGenException

__all__ = [ "ConfigurationException", "load_from_file", "merge_config", "configure_log",
            "global_logdir", "global_logfile" ]

global_logdir = None
global_logfile = None
_log_handler = None

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"

class ConfigurationException(APIGenException):
    """
    a class indicating an error in the configuration of a service, including the absence of a
    required collaborator.  This is not a client error: it signals that the service itself was
    set up incorrectly.
    """
    def __init__(self, message: str=None, cause: Exception=None):
        if not message:
            message = "Configuration error"
            if cause:
                message += ": " + str(cause)
        super(ConfigurationException, self).__init__(message, cause)

def load_from_file(configfile: str) -> Mapping:
    """
    read the configuration from the given file and return it as a dictionary.  The file format
    is determined by the file name extension: ``.yml`` and ``.yaml`` files are read as YAML;
    anything else is read as JSON.

    :param str configfile:  the path to the configuration file
    :raises ConfigurationException:  if the file cannot be read or parsed
    """
    try:
        with open(configfile) as fd:
            if configfile.endswith('.yml') or configfile.endswith('.yaml'):
                out = yaml.safe_load(fd)
            else:
                out = json.load(fd)
    except (IOError, OSError) as ex:
        raise ConfigurationException("%s: unable to read config file: %s" % (configfile, str(ex)), ex)
    except (ValueError, yaml.YAMLError) as ex:
        raise ConfigurationException("%s: config file not parseable: %s" % (configfile, str(ex)), ex)

    if out is None:
        out = {}
    if not isinstance(out, Mapping):
        raise ConfigurationException("%s: config file does not contain an object" % configfile)
    return out

def merge_config(primary: Mapping, defconf: Mapping) -> Mapping:
    """
    merge the values of one configuration over a set of defaults.  Values in ``primary`` win;
    where both values are dictionaries, they are merged recursively.  A new dictionary is
    returned; neither input is changed.

    :param dict primary:  the overriding configuration values
    :param dict defconf:  the default values
    """
    out = deepcopy(defconf)
    for key, val in primary.items():
        if isinstance(val, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = merge_config(val, out[key])
        else:
            out[key] = deepcopy(val)
    return out

def configure_log(logfile: str=None, level: int=None, format: str=None, config: Mapping=None,
                  addstderr=False):
    """
    configure the root logger to record messages to a file.

    :param str logfile:  the path to the log file; if relative, it is taken relative to the
                         ``logdir`` config parameter (or the current directory).  If not provided,
                         the ``logfile`` config parameter is used.
    :param int   level:  the logging level threshold; default: the ``loglevel`` config parameter
                         or INFO.
    :param str  format:  the message format; default: :py:data:`LOG_FORMAT`.
    :param dict config:  the configuration from which defaults are taken
    :param bool addstderr:  if True, also send messages to standard error
    """
    global global_logdir, global_logfile, _log_handler
    if config is None:
        config = {}
    if not logfile:
        logfile = config.get('logfile', 'apigen.log')
    if level is None:
        level = config.get('loglevel', logging.INFO)
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
    if not format:
        format = config.get('logformat', LOG_FORMAT)

    if not os.path.isabs(logfile):
        global_logdir = config.get('logdir', global_logdir or os.getcwd())
        logfile = os.path.join(global_logdir, logfile)
    else:
        global_logdir = os.path.dirname(logfile)
    global_logfile = logfile

    rootlog = logging.getLogger()
    if _log_handler:
        rootlog.removeHandler(_log_handler)
    _log_handler = logging.FileHandler(logfile)
    _log_handler.setFormatter(logging.Formatter(format))
    rootlog.addHandler(_log_handler)
    rootlog.setLevel(level)

    if addstderr:
        hdlr = logging.StreamHandler(sys.stderr)
        hdlr.setFormatter(logging.Formatter(format))
        rootlog.addHandler(hdlr)

    rootlog.info("Logging configured: %s", logfile)
