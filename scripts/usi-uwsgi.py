"""
The uWSGI script for launching the USI verification web service.

This script launches the web service using uwsgi.  For example, one can
launch the service with the following command:

  uwsgi --plugin python3 --http-socket :9090 --wsgi-file usi-uwsgi.py \
        --set-ph usi_config_file=usi_conf.yml

The configuration data can be provided to this script via a file (as illustrated above) or it
can be fetched from a configuration service, depending on the environment (see below).  See the
documentation for usi.verify.wsgi and usi.config for the configuration parameters supported by
this service.

This script also pays attention to the following environment variables:

   USI_HOME            The directory where the USI web service is installed; this
                          is used to find the python package, usi.
   USI_PYTHONPATH      The directory containing the python package, usi.
                          This overrides what is implied by USI_HOME.
   USI_CONFIG_FILE     The path (or file: URL) to the configuration file; this is
                          overridden by the usi_config_file uwsgi variable.
   USI_CONFIG_SERVICE  The URL for retrieving the configuration from a configuration
                          service; this is overridden by the usi_config_service uwsgi
                          variable.
"""
import os, sys, logging

try:
    import usi
except ImportError:
    usipath = os.environ.get('USI_PYTHONPATH')
    if not usipath and 'USI_HOME' in os.environ:
        usipath = os.path.join(os.environ['USI_HOME'], "lib", "python")
    if usipath:
        sys.path.insert(0, usipath)
    import usi

from usi import config
from usi.verify import wsgi

try:
    import uwsgi
    uwsgi_opt = uwsgi.opt
except ImportError:
    # not running under uwsgi; rely on the environment
    uwsgi_opt = {}

def _dec(obj):
    # decode an object if it is not None
    return obj.decode() if isinstance(obj, (bytes, bytearray)) else obj

# determine where the configuration is coming from
confsrc = _dec(uwsgi_opt.get("usi_config_file")) or os.environ.get("USI_CONFIG_FILE")
cfgsvc = _dec(uwsgi_opt.get("usi_config_service")) or os.environ.get("USI_CONFIG_SERVICE")
if confsrc:
    cfg = config.resolve_configuration(confsrc)

elif cfgsvc:
    cfg = config.load_from_service(cfgsvc)

else:
    raise config.ConfigurationException("usi: configuration not provided")

config.configure_log(config=cfg)

application = wsgi.app(cfg)
logging.info("USI web service ready")
