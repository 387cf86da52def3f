from typing import Any, List, Dict, Optional
import logging
from logging.handlers import RotatingFileHandler
import os
from datetime import datetime

from reasoner_pydantic.shared import LogEntry

# TRAPI LogEntry 'level' values
DEBUG = "DEBUG"
INFO = "INFO"
WARNING = "WARNING"
ERROR = "ERROR"


class LoggerWrapper(logging.LoggerAdapter):

    # query logs are shared by all wrapped loggers, so that one
    # query execution collects the entries of every component
    query_log: Dict[str, List[Dict[str, Any]]] = {}

    def __init__(self, logger, extra=None):
        super().__init__(logger, extra)

    def process(self, msg, kwargs):
        """
        Process the logging message and keyword arguments passed in to
        a logging call to insert contextual information. Messages tagged
        with a 'query_id' are also captured as TRAPI LogEntry records,
        for later export in the query response.
        """
        level = kwargs.pop("level") if "level" in kwargs else None
        code = kwargs.pop("code") if "code" in kwargs else None
        query_id = kwargs.pop("query_id") if "query_id" in kwargs else None
        if query_id:
            if query_id not in self.query_log:
                self.query_log[query_id] = []
            log_entry: LogEntry = LogEntry(
                timestamp=datetime.now(),
                level=level,
                code=code,
                message=msg
            )
            self.query_log[query_id].append(log_entry.model_dump(mode="json"))
        return msg, kwargs

    @classmethod
    def get_logs(cls, query_id: str) -> List[Dict[str, Any]]:
        if query_id in cls.query_log:
            return list(cls.query_log[query_id])
        else:
            return []

    @classmethod
    def clear_logs(cls, query_id: str):
        cls.query_log.pop(query_id, None)

    def debug(self, msg, /, *args, query_id: Optional[str] = None, code: Optional[str] = None, **kwargs):
        """
        Delegate a debug call to the underlying logger
        after capturing the message for later export
        """
        msg, kwargs = self.process(msg, dict(kwargs, query_id=query_id, code=code, level=DEBUG))
        self.logger.debug(msg, *args, **kwargs)

    def info(self, msg, /, *args, query_id: Optional[str] = None, code: Optional[str] = None, **kwargs):
        msg, kwargs = self.process(msg, dict(kwargs, query_id=query_id, code=code, level=INFO))
        self.logger.info(msg, *args, **kwargs)

    def warning(self, msg, /, *args, query_id: Optional[str] = None, code: Optional[str] = None, **kwargs):
        """
        Delegate a warning call to the underlying logger
        after capturing the message for later export
        """
        msg, kwargs = self.process(msg, dict(kwargs, query_id=query_id, code=code, level=WARNING))
        self.logger.warning(msg, *args, **kwargs)

    def error(self, msg, /, *args, query_id: Optional[str] = None, code: Optional[str] = None, **kwargs):
        msg, kwargs = self.process(msg, dict(kwargs, query_id=query_id, code=code, level=ERROR))
        self.logger.error(msg, *args, **kwargs)


class LoggingUtil(object):
    """ Logging utility controlling format and setting initial logging level """

    @staticmethod
    def init_logging(name, level=logging.INFO, format_sel='medium', log_file_level=None):

        # file logging only happens if a log file is configured
        log_file_path = os.environ.get('FKGQ_LOG_FILE', None)

        # get the named logger
        logger = logging.getLogger(name)

        # already initialized by an earlier call
        if logger.handlers:
            return LoggerWrapper(logger)

        # define the output types
        format_types = {
            "short": '[%(name)s.%(funcName)s] : %(message)s',
            "medium": '[%(name)s.%(funcName)s] - %(asctime)-15s: %(message)s',
            "long": '[%(name)s.%(funcName)s] - %(asctime)-15s %(filename)s %(levelname)s: %(message)s'
        }[format_sel or 'medium']

        # create a stream handler (default to console)
        stream_handler = logging.StreamHandler()

        # create a formatter
        formatter = logging.Formatter(format_types)

        # set the formatter on the console stream
        stream_handler.setFormatter(formatter)

        # set the logging level
        logger.setLevel(level or logging.INFO)

        # if there was a file path configured use it
        if log_file_path is not None:
            # create a rotating file handler, 1mb max per file with a max number of 10 files
            file_handler = RotatingFileHandler(filename=log_file_path, maxBytes=1000000, backupCount=10)

            # set the formatter
            file_handler.setFormatter(formatter)

            # if a log level for the file was passed in use it
            if log_file_level is not None:
                level = log_file_level

            # set the log level
            file_handler.setLevel(level or logging.INFO)

            # add the handler to the logger
            logger.addHandler(file_handler)

        # add the console handler to the logger
        logger.addHandler(stream_handler)

        # return to the caller
        return LoggerWrapper(logger)
