# This module configures logging for airspace_intrusions modules
#
# To use it, set up the following in the top of your module
# note you can control logger.level at module level
# if logger.level is not set in the module, the level is set here
#
# import logging
# from .intrusion_logger import Logger
# logger = logging.getLogger(__name__)
# #logger.level = logging.DEBUG
# LOGGER = Logger()
#

import logging
import logging.handlers
import os

logger = logging.getLogger(__name__)

log_level = logging.INFO
LOG_FORMAT = '%(asctime)s %(levelname)s airspace_intrusions %(module)s:%(lineno)d: %(message)s'

class Logger:
  def __init__(self, level=None, log_file=None):
    # basicConfig is a no-op once the root logger has handlers, so the
    # first caller sets the format; later callers may still change the
    # level and add a log file.
    logging.basicConfig(
        level=level or log_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()],
    )
    root = logging.getLogger()
    if level:
      root.setLevel(level)
    if log_file and not any(isinstance(h, logging.FileHandler) and
                            h.baseFilename == os.path.abspath(log_file)
                            for h in root.handlers):
      handler = logging.FileHandler(log_file, encoding="utf-8")
      handler.setFormatter(logging.Formatter(LOG_FORMAT))
      root.addHandler(handler)
