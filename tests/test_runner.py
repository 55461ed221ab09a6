"""End-to-end tests for :class:`gsrunner.runner.Runner`."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest
from prometheus_client import REGISTRY

import gsrunner.runner as runner_module
from gsrunner.boot.logging import installed_sinks
from gsrunner.exceptions import ConfigError, FlagError
from gsrunner.runner import Runner


@pytest.fixture
def join_calls(monkeypatch: pytest.MonkeyPatch) -> list[int]:
    calls: list[int] = []
    original = runner_module.join_logging

    def _join() -> None:
        calls.append(1)
        original()

    monkeypatch.setattr(runner_module, "join_logging", _join)
    return calls


def _runner(registry) -> Runner:
    return Runner("svc", registry=registry, configure_console=False)


def test_predeclared_flags(recording_registry) -> None:
    runner = _runner(recording_registry)
    assert [(o.short_name, o.full_name) for o in runner.flags.options] == [
        ("log", "gsrunner.log"),
        ("level", "gsrunner.log.level"),
        ("pprof", "gsrunner.pprof"),
        ("config", "gsrunner.config"),
        ("registry", "gsrunner.registry"),
    ]
    with pytest.raises(FlagError):
        runner.flag_uint("log", "svc.log", 0)
    with pytest.raises(FlagError):
        runner.flag_string("loglevel", "gsrunner.log.level", "")


def test_run_invokes_main_with_resolved_flags(recording_registry, join_calls) -> None:
    runner = _runner(recording_registry)
    port = runner.flag_uint("port", "svc.port", 13516, "listen port")
    seen: dict[str, object] = {}

    def main(r: Runner) -> None:
        seen["runner"] = r
        seen["port"] = port.value
        seen["args"] = r.args
        seen["frozen"] = r.config.frozen

    assert runner.run(main, ["-port", "9000", "extra"]) == 0
    assert seen == {"runner": runner, "port": 9000, "args": ["extra"], "frozen": True}
    assert runner.config.get("svc.port") == 9000
    assert join_calls == [1]
    assert recording_registry.updates == []


def test_command_line_overrides_json_config(write_file, recording_registry, join_calls) -> None:
    config = write_file(
        "svc.json",
        json.dumps({"svc": {"port": 1000, "name": "from-config"}, "gsrunner.pprof": ":6060"}),
    )
    runner = _runner(recording_registry)
    port = runner.flag_uint("port", "svc.port", 13516)
    name = runner.flag_string("name", "svc.name", "default")
    seen: dict[str, object] = {}

    def main(r: Runner) -> None:
        seen.update(port=port.value, name=name.value, pprof=r.pprof.value)

    runner.run(main, ["-config", str(config), "-port", "2000"])
    assert seen == {"port": 2000, "name": "from-config", "pprof": ":6060"}
    assert join_calls == [1]


def test_config_file_supplies_log_level(write_file, recording_registry) -> None:
    config = write_file("svc.json", json.dumps({"gsrunner": {"log": {"level": "debug"}}}))
    _runner(recording_registry).run(lambda r: None, ["-config", str(config)])
    assert logging.getLogger().level == logging.DEBUG


def test_unknown_config_extension_is_skipped(
    write_file, recording_registry, join_calls, caplog: pytest.LogCaptureFixture
) -> None:
    config = write_file("svc.yaml", "svc:\n  port: 1\n")
    runner = _runner(recording_registry)
    called: list[bool] = []

    caplog.set_level(logging.WARNING, logger="svc")
    assert runner.run(lambda r: called.append(True), ["-config", str(config)]) == 0

    assert called == [True]
    assert f"can't load config file :{config}" in caplog.text
    assert "svc.port" not in runner.config
    assert join_calls == [1]


def test_broken_json_config_aborts(write_file, recording_registry, join_calls) -> None:
    config = write_file("svc.json", "{broken")
    called: list[bool] = []

    with pytest.raises(SystemExit) as exc:
        _runner(recording_registry).run(lambda r: called.append(True), ["-config", str(config)])

    assert "load config file error" in str(exc.value.code)
    assert isinstance(exc.value.__cause__, ConfigError)
    assert called == []
    assert join_calls == [1]


def test_registry_is_loaded_before_main(write_file, recording_registry, join_calls) -> None:
    registry_file = write_file("services.txt", "gschat.MailHub=1\ngschat.Push=2\n")
    published: list[int] = []

    def main(r: Runner) -> None:
        published.append(len(recording_registry.updates))

    _runner(recording_registry).run(main, ["-registry", str(registry_file)])

    assert published == [1]
    assert recording_registry.updates == [{"gschat.MailHub": 1, "gschat.Push": 2}]
    assert join_calls == [1]


def test_invalid_registry_aborts_without_publish(write_file, recording_registry, join_calls) -> None:
    registry_file = write_file("services.txt", "a.b=1\na.c=2\na-d=3\n")
    called: list[bool] = []

    with pytest.raises(SystemExit) as exc:
        _runner(recording_registry).run(lambda r: called.append(True), ["-registry", str(registry_file)])

    assert "invalid format" in str(exc.value.code)
    assert f"{registry_file}(2)" in str(exc.value.code)
    assert recording_registry.updates == []
    assert called == []
    assert join_calls == [1]


def test_missing_registry_file_aborts(tmp_path, recording_registry, join_calls) -> None:
    with pytest.raises(SystemExit):
        _runner(recording_registry).run(lambda r: None, ["-registry", str(tmp_path / "nope.txt")])
    assert join_calls == [1]


def test_entry_point_fault_is_logged_and_absorbed(
    recording_registry, join_calls, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.INFO, logger="svc")

    def main(r: Runner) -> None:
        raise RuntimeError("boom")

    assert _runner(recording_registry).run(main, []) == 0
    assert "catch unknown exception" in caplog.text
    assert "boom" in caplog.text
    assert caplog.records[-1].getMessage() == "service stopped."
    assert join_calls == [1]


def test_entry_point_system_exit_propagates_after_shutdown(recording_registry, join_calls) -> None:
    def main(r: Runner) -> None:
        raise SystemExit(3)

    with pytest.raises(SystemExit) as exc:
        _runner(recording_registry).run(main, [])
    assert exc.value.code == 3
    assert join_calls == [1]


def test_bad_flag_value_exits_with_usage_error(recording_registry, join_calls) -> None:
    runner = _runner(recording_registry)
    runner.flag_uint("port", "svc.port", 0)
    with pytest.raises(SystemExit) as exc:
        runner.run(lambda r: None, ["-port", "-5"])
    assert exc.value.code == 2
    assert join_calls == [1]


def test_log_file_sink(tmp_path: Path, recording_registry) -> None:
    log_path = tmp_path / "logs" / "svc.log"
    sinks: list[object] = []

    def main(r: Runner) -> None:
        sinks.extend(installed_sinks())
        r.logger.info("hello from main")

    _runner(recording_registry).run(main, ["-log", str(log_path), "-level", "info"])

    assert len(sinks) == 1 and not isinstance(sinks[0], RotatingFileHandler)
    assert installed_sinks() == ()
    text = log_path.read_text(encoding="utf-8")
    assert "service started." in text
    assert "hello from main" in text
    assert "service stopped." in text


def test_log_maxsize_enables_rotation(tmp_path: Path, write_file, recording_registry) -> None:
    config = write_file("svc.json", json.dumps({"gsrunner": {"log": {"maxsize": 4096}}}))
    sinks: list[object] = []

    _runner(recording_registry).run(
        lambda r: sinks.extend(installed_sinks()),
        ["-config", str(config), "-log", str(tmp_path / "svc.log")],
    )
    assert len(sinks) == 1
    assert isinstance(sinks[0], RotatingFileHandler)
    assert sinks[0].maxBytes == 4096


def test_unknown_log_level_warns(recording_registry, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="svc")
    called: list[bool] = []
    _runner(recording_registry).run(lambda r: called.append(True), ["-level", "chatty"])
    assert called == [True]
    assert "unknown log level :chatty" in caplog.text


def test_config_is_read_only_inside_main(recording_registry) -> None:
    errors: list[Exception] = []

    def main(r: Runner) -> None:
        try:
            r.config.update("svc.port", 1)
        except ConfigError as exc:
            errors.append(exc)

    _runner(recording_registry).run(main, [])
    assert len(errors) == 1


def test_config_value_of_wrong_kind_aborts(write_file, recording_registry, join_calls) -> None:
    config = write_file("svc.json", json.dumps({"svc": {"port": "not-a-number"}}))
    runner = _runner(recording_registry)
    runner.flag_uint("port", "svc.port", 1)
    called: list[bool] = []

    with pytest.raises(SystemExit) as exc:
        runner.run(lambda r: called.append(True), ["-config", str(config)])

    assert "svc.port" in str(exc.value.code)
    assert isinstance(exc.value.__cause__, ConfigError)
    assert called == []
    assert join_calls == [1]


def test_startup_metrics_are_exposed(write_file, recording_registry) -> None:
    def sample(name: str, labels: dict[str, str]) -> float:
        return REGISTRY.get_sample_value(name, labels) or 0.0

    registry_file = write_file("services.txt", "gschat.MailHub=1\n")
    bad_file = write_file("bad.txt", "gschat-MailHub=1\n")
    good, bad = _runner(recording_registry), _runner(recording_registry)
    loads = sample("gsrunner_registry_loads_total", {"outcome": "success"})
    failures = sample("gsrunner_startup_failures_total", {"stage": "registry"})

    good.run(lambda r: None, ["-registry", str(registry_file)])
    with pytest.raises(SystemExit):
        bad.run(lambda r: None, ["-registry", str(bad_file)])

    assert sample("gsrunner_registry_loads_total", {"outcome": "success"}) == loads + 1
    assert sample("gsrunner_startup_failures_total", {"stage": "registry"}) == failures + 1
