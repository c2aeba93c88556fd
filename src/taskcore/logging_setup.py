from __future__ import annotations
import os, logging
from logging.config import dictConfig
from logging import Filter

DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class HealthCheckFilter(Filter):
    """
    Drop uvicorn access-log lines for health, readiness and metrics checks.

    Orchestrators hit /health, /readyz and /metrics every few seconds; those
    lines drown out the request log without telling anyone anything.
    """
    QUIET_PATHS = ("/health", "/readyz", "/metrics")

    def filter(self, record):
        if record.name != "uvicorn.access":
            return True
        message = record.getMessage()
        return not any(f'"GET {path} ' in message for path in self.QUIET_PATHS)

_STDOUT_ONLY = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "std": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"}
    },
    "handlers": {
        "stdout": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "std",
            "level": DEFAULT_LEVEL,
            "filters": ["health_check_filter"],
        }
    },
    "filters": {
        "health_check_filter": {
            "()": "taskcore.logging_setup.HealthCheckFilter",
        }
    },
    "root": {"level": DEFAULT_LEVEL, "handlers": ["stdout"]},
}

_configured = False


def _nuke_file_handlers():
    root = logging.getLogger()
    for h in list(root.handlers):
        if hasattr(h, "baseFilename"):
            root.removeHandler(h)
            h.close()


def setup_logging(app_name: str = "", config_path_env: str = "TASKCORE_LOGCFG"):
    """
    Call this as the FIRST thing in your entrypoint.
    - If TASKCORE_LOGCFG points to a YAML/JSON dictConfig file, we load it.
    - Otherwise we force a stdout-only config and remove any pre-attached FileHandlers.
    Repeated calls are no-ops.
    """
    global _configured
    if _configured:
        return
    _configured = True

    cfg_path = os.getenv(config_path_env, "").strip()
    if cfg_path and os.path.exists(cfg_path):
        import json, io
        with open(cfg_path, "r", encoding="utf-8") as fh:
            text = fh.read()
        try:
            dictConfig(json.loads(text))
        except json.JSONDecodeError:
            import yaml
            dictConfig(yaml.safe_load(io.StringIO(text)))
        logging.getLogger(app_name or __name__).info("Logging configured from %s", cfg_path)
        return

    _nuke_file_handlers()
    dictConfig(_STDOUT_ONLY)
