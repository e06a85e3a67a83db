"""
the uWSGI script for launching an apigen web service.

This script launches the web service using uwsgi.  For example, one can
launch the service with the following command:

  uwsgi --plugin python3 --http-socket :9090 --wsgi-file apigen-uwsgi.py     \
        --set-ph apigen_config_file=apigen_conf.yml --set-ph apigen_working_dir=_test

The configuration file can be in YAML or JSON format.  See the documentation for apigen.api.wsgi
for the configuration parameters supported by this service.

This script also pays attention to the following environment variable:

   APIGEN_CONFIG_FILE   The configuration file to use if one is not given via the
                          apigen_config_file uwsgi variable.
"""
import os, logging

from apigen.base import config
from apigen.api import wsgi

import uwsgi

def _dec(obj):
    # decode an object if it is not None
    return obj.decode() if isinstance(obj, (bytes, bytearray)) else obj

# determine where the configuration is coming from
confsrc = _dec(uwsgi.opt.get("apigen_config_file")) or os.environ.get('APIGEN_CONFIG_FILE')
if not confsrc:
    raise config.ConfigurationException("apigen: configuration file not provided")
cfg = config.load_from_file(confsrc)

workdir = _dec(uwsgi.opt.get("apigen_working_dir"))
if workdir:
    cfg['working_dir'] = workdir
    cfg.setdefault('logdir', workdir)

if uwsgi.opt.get("apigen_log_file"):
    cfg["logfile"] = _dec(uwsgi.opt.get("apigen_log_file"))

config.configure_log(config=cfg)

application = wsgi.app(cfg, logging.getLogger(cfg.get('name', 'apigen')))
logging.info("apigen service ready with resources: %s", ", ".join(cfg.get('resources', {}).keys()))
