"""Service runner: flags, config, logging and registry, then ``main``.

Usage::

    from gsrunner import Runner

    runner = Runner("gschat-mailhub")
    port = runner.flag_uint("port", "gschat.mailhub.port", 13516, "listen port")

    def main(runner: Runner) -> None:
        runner.logger.info("listening on %d", port.value)

    runner.run(main)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from .boot.logging import add_file_sink, configure_logging, join_logging, set_level
from .config.store import ConfigStore
from .exceptions import ConfigError, RunnerError
from .flags import FlagHandle, FlagKind, FlagSet
from .observability.metrics import STARTUP_FAILURES, ensure_metrics_registered
from .registry.loader import load_registry_file
from .registry.rpc import ServiceRegistry, default_registry
from .runtime_config import RuntimeSettings, load_runtime_settings

__all__ = [
    "CONFIG_KEY",
    "LOG_KEY",
    "LOG_LEVEL_KEY",
    "LOG_MAXSIZE_KEY",
    "PPROF_KEY",
    "REGISTRY_KEY",
    "Runner",
    "run",
]

LOG_KEY = "gsrunner.log"
LOG_LEVEL_KEY = "gsrunner.log.level"
LOG_MAXSIZE_KEY = "gsrunner.log.maxsize"
PPROF_KEY = "gsrunner.pprof"
CONFIG_KEY = "gsrunner.config"
REGISTRY_KEY = "gsrunner.registry"

EntryPoint = Callable[["Runner"], Any]


class Runner:
    """Bootstrap a service process and hand control to its entry point.

    The runner pre-declares ``-log``, ``-level``, ``-pprof``, ``-config``
    and ``-registry``. Callers add their own flags through :meth:`declare`
    or the typed helpers before calling :meth:`run`.
    """

    def __init__(
        self,
        name: str = "gsrunner",
        *,
        registry: ServiceRegistry | None = None,
        settings: RuntimeSettings | None = None,
        prog: str | None = None,
        configure_console: bool = True,
    ) -> None:
        self.name = name
        self.logger = logging.getLogger(name)
        self.config = ConfigStore()
        self.flags = FlagSet(prog=prog, store=self.config)
        self.registry = registry if registry is not None else default_registry
        self.settings = settings
        self._configure_console = configure_console
        self._stage = "idle"
        ensure_metrics_registered()

        self.log_root = self.flag_string("log", LOG_KEY, "", "the gsrunner log root path")
        self.log_level = self.flag_string("level", LOG_LEVEL_KEY, "", "the gsrunner log level")
        self.pprof = self.flag_string("pprof", PPROF_KEY, "", "set gsrunner pprof listen address")
        self.config_file = self.flag_string("config", CONFIG_KEY, "", "set gsrunner config file")
        self.registry_file = self.flag_string(
            "registry", REGISTRY_KEY, "", "set the rpc services registry file"
        )

    # ------------------------------------------------------------ declaration
    def declare(
        self,
        kind: FlagKind | str,
        name: str,
        fullname: str,
        default: Any,
        description: str = "",
    ) -> FlagHandle:
        return self.flags.declare(kind, name, fullname, default, description)

    def flag_string(self, name: str, fullname: str, default: str, description: str = "") -> FlagHandle:
        return self.declare(FlagKind.STRING, name, fullname, default, description)

    def flag_int(self, name: str, fullname: str, default: int, description: str = "") -> FlagHandle:
        return self.declare(FlagKind.INT, name, fullname, default, description)

    def flag_uint(self, name: str, fullname: str, default: int, description: str = "") -> FlagHandle:
        return self.declare(FlagKind.UINT, name, fullname, default, description)

    def flag_float32(self, name: str, fullname: str, default: float, description: str = "") -> FlagHandle:
        return self.declare(FlagKind.FLOAT32, name, fullname, default, description)

    def flag_float64(self, name: str, fullname: str, default: float, description: str = "") -> FlagHandle:
        return self.declare(FlagKind.FLOAT64, name, fullname, default, description)

    def seconds(self, name: str, fullname: str, default: int, description: str = "") -> FlagHandle:
        return self.declare(FlagKind.SECONDS, name, fullname, default, description)

    def milliseconds(self, name: str, fullname: str, default: int, description: str = "") -> FlagHandle:
        return self.declare(FlagKind.MILLISECONDS, name, fullname, default, description)

    @property
    def args(self) -> list[str]:
        """Positional arguments that followed the flags."""

        return self.flags.args

    # ---------------------------------------------------------------- startup
    def _load_config(self, path: str) -> None:
        if Path(path).suffix.lower() == ".json":
            self.config.load_json(path)
        else:
            self.logger.warning("can't load config file :%s", path)

    def _open_log(self, log_root: str, settings: RuntimeSettings) -> None:
        fullpath = Path(log_root).expanduser().resolve()
        max_bytes = self.config.uint64(LOG_MAXSIZE_KEY, 0)
        try:
            add_file_sink(fullpath.parent, fullpath.name, max_bytes=max_bytes, settings=settings)
        except OSError as exc:
            raise ConfigError(f"open log file error :{fullpath}: {exc}", path=str(fullpath)) from exc

    def _startup(self, argv: Sequence[str] | None) -> None:
        settings = self.settings or load_runtime_settings()
        if self._configure_console and not logging.getLogger().handlers:
            configure_logging(settings=settings)

        self._stage = "flags"
        self.flags.parse(argv)

        self._stage = "config"
        config_path = self.flags.value("config")
        self.logger.debug("config file path :%s", config_path)
        if config_path:
            self._load_config(config_path)
        self.flags.apply()

        log_root = self.config.string(LOG_KEY, "")
        self.logger.debug("log root path :%s", log_root)
        log_level = self.config.string(LOG_LEVEL_KEY, "")
        self.logger.debug("log level :%s", log_level)
        registry_file = self.config.string(REGISTRY_KEY, "")
        self.logger.debug("registry file:%s", registry_file)
        pprof = self.config.string(PPROF_KEY, "")
        if pprof:
            self.logger.debug("pprof listen address :%s (not served)", pprof)

        self._stage = "logging"
        if log_root:
            self._open_log(log_root, settings)
        if log_level:
            try:
                set_level(log_level)
            except ValueError:
                self.logger.warning("unknown log level :%s", log_level)

        self._stage = "registry"
        if registry_file:
            self.logger.info("load gsrpc services registry file :%s", registry_file)
            load_registry_file(registry_file, self.registry)
            self.logger.info("load gsrpc services registry file :%s -- success", registry_file)

        self.config.freeze()
        self._stage = "main"

    def run(self, main: EntryPoint, argv: Sequence[str] | None = None) -> int:
        """Run startup then ``main(self)``; always logs and joins on exit.

        Fatal startup errors (:class:`~gsrunner.exceptions.RunnerError`)
        abort with :class:`SystemExit` after shutdown. Any other exception,
        including one escaping ``main``, is logged and absorbed.
        """

        fatal: RunnerError | None = None
        try:
            try:
                self._startup(argv)
            except RunnerError as exc:
                STARTUP_FAILURES.labels(stage=self._stage).inc()
                self.logger.critical("%s", exc)
                fatal = exc
            else:
                self.logger.info("service started.")
                main(self)
        except Exception:
            self.logger.exception("catch unknown exception")
        finally:
            self.logger.info("service stopped.")
            join_logging()

        if fatal is not None:
            raise SystemExit(f"{self.name}: {fatal}") from fatal
        return 0


def run(main: EntryPoint, name: str = "gsrunner", argv: Sequence[str] | None = None) -> int:
    """Shortcut for ``Runner(name).run(main, argv)``."""

    return Runner(name).run(main, argv)
