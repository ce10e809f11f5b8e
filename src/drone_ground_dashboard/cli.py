"""Command line interface wiring the session manager and UI layers."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Coroutine, Optional, Sequence

import tomli as tomllib

from .core import (
    SUPPORTED_BAUD_RATES,
    SessionSettings,
    SimCommandInterface,
    TelemetrySessionManager,
)
from .core.session import DEFAULT_BAUD_RATE
from .core.sim import DEFAULT_SIM_PORTS
from .logging_config import LoggingSetupResult, configure_logging
from .shutdown import GracefulShutdown
from .ui import DroneDashboardApp

logger = logging.getLogger(__name__)

LOG_CONFIG_ENV_VAR = "DRONE_DASH_LOG_CONFIG"
LOG_DIR_ENV_VAR = "DRONE_DASH_LOG_DIR"
DEFAULT_CONFIG_PATH = Path("config/default.toml")


def _run_coroutine(factory: Callable[[], Coroutine[Any, Any, Any]]) -> None:
    try:
        asyncio.run(factory())
    except RuntimeError:
        loop = asyncio.new_event_loop()
        try:
            loop.run_until_complete(factory())
        finally:
            loop.close()


def _ensure_session_closed(session: TelemetrySessionManager) -> None:
    if session.multiplexer.is_attached or session.is_connected:
        logger.warning("会话在界面退出后仍处于 %s 状态，执行清理", session.state.value)
        _run_coroutine(session.shutdown)


def _request_app_exit(app: DroneDashboardApp) -> None:
    try:
        if getattr(app, "is_running", False):
            app.call_from_thread(app.exit)
            return
    except RuntimeError:
        logger.debug("调用 call_from_thread 失败，尝试直接退出", exc_info=True)

    app.exit()


def _load_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    if not config_path.exists():
        return {}
    try:
        with open(config_path, "rb") as f:
            config = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Failed to load config from %s: %s", config_path, e)
        return {}
    # Empty strings in the TOML file mean "not set"
    for table, keys in (("logging", ("dir", "config")), ("session", ("export_dir",)), ("general", ("port",))):
        section = config.get(table)
        if isinstance(section, dict):
            for key in keys:
                if section.get(key) == "":
                    section[key] = None
    return config


def _resolve_optional_path(value: Optional[Path | str]) -> Optional[Path]:
    if value is None or value == "":
        return None
    return Path(value).expanduser()


def _configure_logging_from_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> LoggingSetupResult:
    config_path = _resolve_optional_path(args.log_config)
    if config_path is None:
        config_path = _resolve_optional_path(os.getenv(LOG_CONFIG_ENV_VAR))

    log_dir = _resolve_optional_path(args.log_dir)
    if log_dir is None:
        log_dir = _resolve_optional_path(os.getenv(LOG_DIR_ENV_VAR))

    try:
        result = configure_logging(
            level=args.log_level,
            console=not args.no_log_console,
            log_dir=log_dir,
            config_path=config_path,
            trace_telemetry=args.trace_telemetry or None,
        )
    except FileNotFoundError as exc:
        parser.error(f"指定的日志配置文件不存在: {exc}")
    except ValueError as exc:
        parser.error(f"日志配置文件解析失败: {exc}")
    except OSError as exc:  # pragma: no cover - filesystem specific
        parser.error(f"初始化日志系统失败: {exc}")

    logger.info("日志已初始化，输出目录：%s", result.directory)
    for name, file_path in result.handler_files.items():
        logger.debug("日志处理器 %s 写入文件 %s", name, file_path)

    return result


def _install_global_exception_hook() -> None:
    original_hook = sys.excepthook

    def _handle(exc_type: type[BaseException], exc_value: BaseException, exc_traceback) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            original_hook(exc_type, exc_value, exc_traceback)
            return
        logger.critical("未处理异常导致应用退出", exc_info=(exc_type, exc_value, exc_traceback))
        original_hook(exc_type, exc_value, exc_traceback)

    sys.excepthook = _handle


def _create_config_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to configuration file (TOML).",
    )
    return parser


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"必须为正数: {value}")
    return number


def _create_parser(config: dict[str, Any]) -> argparse.ArgumentParser:
    general = config.get("general", {})
    session = config.get("session", {})
    sim = config.get("sim", {})
    logging_cfg = config.get("logging", {})

    parser = argparse.ArgumentParser(description="Drone ground-control telemetry dashboard")
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to configuration file (TOML).",
    )
    parser.add_argument(
        "--port",
        default=general.get("port"),
        help="默认选中的串口；配合 --auto-connect 在启动时直接连接。",
    )
    parser.add_argument(
        "--baud",
        type=int,
        choices=SUPPORTED_BAUD_RATES,
        default=general.get("baud", DEFAULT_BAUD_RATE),
        help="串口波特率。",
    )
    parser.add_argument(
        "--auto-connect",
        action="store_true",
        default=general.get("auto_connect", False),
        help="启动后自动连接 --port 指定的串口。",
    )
    parser.add_argument(
        "--refresh-interval",
        type=_positive_float,
        default=general.get("refresh_interval", 0.5),
        help="Interval (seconds) between UI refreshes of the telemetry view.",
    )
    parser.add_argument(
        "--connect-timeout",
        type=_positive_float,
        default=session.get("connect_timeout"),
        help="等待飞控确认连接的超时时间（秒）。",
    )
    parser.add_argument(
        "--keep-history",
        action="store_true",
        default=not session.get("clear_on_connect", True),
        help="重新连接时保留上一会话的遥测历史与 GPS 日志。",
    )
    parser.add_argument(
        "--export-dir",
        type=Path,
        default=session.get("export_dir"),
        help="导出文件的目录，默认使用当前工作目录。",
    )
    parser.add_argument(
        "--sim-ports",
        nargs="+",
        default=sim.get("ports", list(DEFAULT_SIM_PORTS)),
        help="模拟器报告的可用串口列表。",
    )
    parser.add_argument(
        "--sim-rate",
        type=_positive_float,
        default=sim.get("stream_interval", 0.5),
        help="模拟遥测事件的发布间隔（秒）。",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=sim.get("seed"),
        help="模拟器随机数种子，便于复现。",
    )
    parser.add_argument(
        "--log-level",
        default=logging_cfg.get("level", "INFO"),
        help="Python logging level (e.g. INFO, DEBUG).",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=logging_cfg.get("dir"),
        help="日志文件输出目录，默认使用系统日志目录。",
    )
    parser.add_argument(
        "--log-config",
        type=Path,
        default=logging_cfg.get("config"),
        help="日志配置文件（TOML/JSON），覆盖默认配置。",
    )
    parser.add_argument(
        "--no-log-console",
        action="store_true",
        default=logging_cfg.get("no_console", False),
        help="关闭控制台日志输出，仅写入文件。",
    )
    parser.add_argument(
        "--trace-telemetry",
        action="store_true",
        default=logging_cfg.get("trace_telemetry", False),
        help="将逐条遥测事件的调试日志写入独立的 drone-telemetry.log。",
    )
    return parser


def _make_session_settings(
    parser: argparse.ArgumentParser,
    args: argparse.Namespace,
    config: dict[str, Any],
) -> SessionSettings:
    try:
        settings = SessionSettings.from_mapping(config.get("session", {}))
    except (TypeError, ValueError) as exc:
        parser.error(f"会话配置无效: {exc}")
    if args.connect_timeout is not None:
        settings.connect_timeout = args.connect_timeout
    settings.clear_on_connect = not args.keep_history
    if args.export_dir is not None:
        settings.export_dir = _resolve_optional_path(args.export_dir)
    return settings


def _make_command_interface(args: argparse.Namespace, config: dict[str, Any]) -> SimCommandInterface:
    sim = config.get("sim", {})
    return SimCommandInterface(
        ports=args.sim_ports,
        rejected_ports=sim.get("rejected_ports", ()),
        latency=float(sim.get("latency", 0.2)),
        stream_interval=args.sim_rate,
        seed=args.seed,
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    config_parser = _create_config_parser()
    config_args, remaining = config_parser.parse_known_args(argv)
    config = _load_config(config_args.config)
    parser = _create_parser(config)
    args = parser.parse_args(remaining)
    _configure_logging_from_args(parser, args)
    _install_global_exception_hook()

    settings = _make_session_settings(parser, args, config)
    session = TelemetrySessionManager(_make_command_interface(args, config), settings)
    app = DroneDashboardApp(
        session,
        refresh_interval=args.refresh_interval,
        default_port=args.port,
        default_baud=args.baud,
        auto_connect=args.auto_connect,
    )

    with GracefulShutdown() as shutdown:
        shutdown.register_callback(lambda: _request_app_exit(app), name="exit-ui")

        try:
            app.run()
        except KeyboardInterrupt:
            logger.info("检测到用户中断，正在退出…")
            shutdown.request_shutdown("用户中断 (Ctrl+C)")
            return
        finally:
            if not shutdown.triggered:
                shutdown.request_shutdown("主循环退出")
            shutdown.wait_for_callbacks(timeout=2.0)
            _ensure_session_closed(session)


__all__ = ["main"]
