#
# prune
#
# A small cross-platform CLI tool to prune timestamped files with grandfather-father-son retention policies.
#
# Copyright (c) 2025-2026 Thomas Kuhlmann
#
# Licensed under the MIT License. See LICENSE file in the project root for license information.
#

import argparse
import re
import sys
import traceback
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields
from datetime import datetime, tzinfo
from enum import IntEnum
from pathlib import Path
from types import SimpleNamespace
from typing import Any, NoReturn, Optional, TextIO, no_type_check

import yaml
from dateutil import tz
from dateutil.relativedelta import relativedelta


VERSION: str = "dev-1.0.0"

MS_IN_SECOND: int = 1_000
MS_IN_HOUR: int = 3_600_000
NS_IN_MS: int = 1_000_000

# Window boundary before anything is retained, newer than every file
WINDOW_UNBOUNDED: int = sys.maxsize

AGE_TYPES: tuple[str, ...] = ("atime", "mtime", "ctime")

CONFIG_KEYS: tuple[str, ...] = ("dry_run", "force_confirm", "start_of_week", "age_type", "timezone", "ignore_strings", "default", "directories")


class IntegrityCheckFailedError(Exception):
    pass


class ConfigNamespace(SimpleNamespace):
    pass


class LogLevel(IntEnum):
    ERROR = 0
    WARN = 1
    INFO = 2
    DEBUG = 3

    @classmethod
    def from_name_or_number(cls, prefix: str) -> "LogLevel":
        try:
            return next(m for m in cls if prefix.strip() and m.name.startswith(prefix.strip().upper()))
        except StopIteration:
            try:
                return cls(int(prefix))
            except ValueError:
                raise ValueError("Invalid log level: " + prefix)


class Weekday(IntEnum):
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

    @classmethod
    def from_name_or_number(cls, prefix: str) -> "Weekday":
        try:
            return next(m for m in cls if prefix.strip() and m.name.startswith(prefix.strip().upper()))
        except StopIteration:
            try:
                return cls(int(prefix))
            except ValueError:
                raise ValueError("Invalid weekday: " + prefix)


class Interval(IntEnum):
    """Retention tiers, in the order they are applied (newest files first)."""

    LAST = 0
    HOURLY = 1
    DAILY = 2
    WEEKLY = 3
    MONTHLY = 4
    YEARLY = 5

    @property
    def mode(self) -> str:
        return self.name.lower()


def _to_ms(moment: datetime) -> int:
    return int(moment.timestamp()) * MS_IN_SECOND


def interval_start(interval: Interval, timestamp_ms: int, offset: int = 0, start_of_week: int = 0, zone: tzinfo = tz.UTC) -> int:
    """
    Returns the start (ms since epoch) of the bucket containing timestamp_ms, moved by offset buckets.

    Floors are computed on the wall clock of zone. Hours are added as absolute time, days, weeks,
    months and years as calendar steps. LAST is no bucketing at all and returns timestamp_ms unchanged.
    """
    if interval == Interval.LAST:
        return timestamp_ms

    moment = datetime.fromtimestamp(timestamp_ms // MS_IN_SECOND, zone)
    if interval == Interval.HOURLY:
        return _to_ms(moment.replace(minute=0, second=0, microsecond=0)) + offset * MS_IN_HOUR

    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    if interval == Interval.DAILY:
        start = midnight + relativedelta(days=offset)
    elif interval == Interval.WEEKLY:
        days_since_week_start = (midnight.isoweekday() % 7 - start_of_week) % 7  # isoweekday: monday = 1, sunday = 7
        start = midnight + relativedelta(days=-days_since_week_start, weeks=offset)
    elif interval == Interval.MONTHLY:
        start = midnight.replace(day=1) + relativedelta(months=offset)
    elif interval == Interval.YEARLY:
        start = midnight.replace(month=1, day=1) + relativedelta(years=offset)
    else:
        raise ValueError(f"invalid interval: {interval}")
    return _to_ms(start)


def interval_end(interval: Interval, start_ms: int, start_of_week: int = 0, zone: tzinfo = tz.UTC) -> int:
    return interval_start(interval, start_ms, 1, start_of_week, zone) - 1


def format_timestamp(timestamp_ms: int, zone: tzinfo) -> str:
    if timestamp_ms >= WINDOW_UNBOUNDED:
        return "unbounded"
    return datetime.fromtimestamp(timestamp_ms / MS_IN_SECOND, zone).isoformat(sep=" ", timespec="milliseconds")


def resolve_timezone(name: str) -> tzinfo:
    if name.strip().lower() == "local":
        return tz.tzlocal()
    if name.strip().upper() == "UTC":
        return tz.UTC
    zone = tz.gettz(name.strip())
    if zone is None:
        raise ValueError(f"Invalid timezone: '{name}' (use 'local', 'UTC' or an IANA name like 'Europe/Berlin')")
    return zone


@dataclass(frozen=True)
class RetentionPolicy:
    path: str = ""
    file_name_pattern: str = ""
    keep_last: int = -1
    keep_hourly: int = -1
    keep_daily: int = -1
    keep_weekly: int = -1
    keep_monthly: int = -1
    keep_yearly: int = -1

    def tiers(self) -> list[tuple[Interval, int]]:
        return [
            (Interval.LAST, self.keep_last),
            (Interval.HOURLY, self.keep_hourly),
            (Interval.DAILY, self.keep_daily),
            (Interval.WEEKLY, self.keep_weekly),
            (Interval.MONTHLY, self.keep_monthly),
            (Interval.YEARLY, self.keep_yearly),
        ]

    def has_retention_rules(self) -> bool:
        return any(keep_count >= 1 for _, keep_count in self.tiers())


BUILTIN_DEFAULT_POLICY = RetentionPolicy(path=".", keep_last=0, keep_hourly=0, keep_daily=0, keep_weekly=0, keep_monthly=0, keep_yearly=0)


def _inherit_string(value: str, default: str) -> str:
    return value if value.strip() else default


def _inherit_count(value: int, default: int) -> int:
    return value if value >= 0 else max(default, 0)


def resolve_policy(policy: RetentionPolicy, default: RetentionPolicy) -> RetentionPolicy:
    """Blank strings and negative counts of policy are taken from default."""
    return RetentionPolicy(
        path=_inherit_string(policy.path, default.path),
        file_name_pattern=_inherit_string(policy.file_name_pattern, default.file_name_pattern),
        keep_last=_inherit_count(policy.keep_last, default.keep_last),
        keep_hourly=_inherit_count(policy.keep_hourly, default.keep_hourly),
        keep_daily=_inherit_count(policy.keep_daily, default.keep_daily),
        keep_weekly=_inherit_count(policy.keep_weekly, default.keep_weekly),
        keep_monthly=_inherit_count(policy.keep_monthly, default.keep_monthly),
        keep_yearly=_inherit_count(policy.keep_yearly, default.keep_yearly),
    )


def compile_file_name_pattern(pattern: str) -> Optional[re.Pattern[str]]:
    if not pattern.strip():
        return None
    try:
        return re.compile(pattern, re.UNICODE)
    except re.error as e:
        raise ValueError(f"Invalid regular expression: {pattern} ({e})")


@dataclass(frozen=True)
class CandidateFile:
    path: Path
    name: str
    timestamp_ms: int

    @classmethod
    def from_path(cls, path: Path, age_type: str) -> "CandidateFile":
        return cls(path, path.name, getattr(path.stat(), f"st_{age_type}_ns") // NS_IN_MS)


def sort_files(files: Iterable[CandidateFile]) -> list[CandidateFile]:
    return sorted(files, key=lambda file: file.timestamp_ms, reverse=True)  # stable, ties keep their order


class Logger:
    _decisions: dict[CandidateFile, list[tuple[str, Optional[str]]]]
    _args: ConfigNamespace

    def __init__(self, args: ConfigNamespace) -> None:
        self._args = args
        self._decisions = defaultdict(list)

    def _get_file_attributes(self, file: CandidateFile) -> str:
        return f"{self._args.age_type}: {format_timestamp(file.timestamp_ms, self._args.tzinfo)}"

    def has_log_level(self, level: LogLevel) -> bool:
        return level <= int(self._args.verbose)

    def _raw_verbose(self, level: LogLevel, message: str, file: Optional[TextIO] = None, prefix: str = "") -> None:
        print(f"[{prefix or LogLevel(level).name}] {message}", file=file or sys.stderr)

    def verbose(self, level: LogLevel, message: str, file: Optional[TextIO] = None, prefix: str = "") -> None:
        if self.has_log_level(level):
            self._raw_verbose(level, message, file, prefix)

    def add_decision(self, level: LogLevel, file: CandidateFile, message: str, debug: Optional[str] = None, pos: int = 0) -> None:
        if self.has_log_level(level):
            if self.has_log_level(LogLevel.DEBUG):  # Decision history, debug message and file details only with debug log level
                details = ", ".join(part for part in (debug, self._get_file_attributes(file)) if part)
                self._decisions[file].insert(pos, (message, details))
            else:  # Without debug log level no decision history
                if self._decisions[file]:
                    self._decisions[file][0] = (message, None)
                else:
                    self._decisions[file].insert(0, (message, None))

    def _format_decision(self, decision: tuple[str, Optional[str]]) -> str:
        message, debug = decision
        return message + (f" ({debug})" if debug is not None else "")

    def print_decisions(self) -> None:
        """Prints all collected decisions (newest file first) and starts over with an empty history."""
        if not self._decisions:
            return
        longest_file_name_length = max(len(file.name) for file in self._decisions)
        for file in sort_files(self._decisions):
            decisions = self._decisions[file]
            if not decisions:
                continue
            self._raw_verbose(LogLevel.INFO, f"{file.name:<{longest_file_name_length}}: {self._format_decision(decisions[0])}")
            if not self.has_log_level(LogLevel.DEBUG):
                continue
            for idx, decision in enumerate(decisions[1:]):
                self._raw_verbose(LogLevel.DEBUG, f"{' ' * ((longest_file_name_length + 2) + idx * 4)}└── {self._format_decision(decision)}")
        self._decisions.clear()


class ModernHelpFormatter(argparse.HelpFormatter):
    @no_type_check
    def __init__(self, *a, **kw) -> None:  # noqa: ANN002, ANN003
        super().__init__(*a, max_help_position=30, width=160, **kw)

    @no_type_check
    def start_section(self, heading) -> None:  # noqa: ANN001
        super().start_section(heading.capitalize())


class ModernStrictArgumentParser(argparse.ArgumentParser):
    @no_type_check
    def __init__(self, *a, **kw) -> None:  # noqa: ANN002, ANN003
        super().__init__(*a, **kw)
        self._errors: list[str] = []

    def add_error(self, msg: str) -> None:
        if msg not in self._errors:
            self._errors.append(msg)

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        print("\nError(s):", file=sys.stderr)
        for line in message.split("\n"):
            print(f"  • {line}", file=sys.stderr)
        print("\nHint: Try '--help' for more information.", file=sys.stderr)
        sys.exit(2)

    # Argument type helpers
    def non_negative_int_argument(self, value: str) -> int:
        try:
            int_value = int(value)
            if int_value < 0:
                raise ValueError
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid value '{value}': must be an integer >= 0")
        return int_value

    def verbose_argument(self, value: str) -> LogLevel:
        try:
            return LogLevel.from_name_or_number(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid verbose value '{value}' (use ERROR, WARN, INFO, DEBUG or 0, 1, 2, 3)")

    def weekday_argument(self, value: str) -> Weekday:
        try:
            return Weekday.from_name_or_number(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid weekday '{value}' (use SUNDAY .. SATURDAY or 0 .. 6)")

    # Internal helper methods
    def _suggest(self, argument: str) -> list[str]:
        opts = [o for a in self._actions for o in a.option_strings if o.startswith("--")]
        cand = [o for o in opts if abs(len(o) - len(argument)) <= 2 and sum(a != b for a, b in zip(o, argument)) <= 2]
        return cand[:1]

    @no_type_check
    def _collect_raw_args(self, args):  # noqa: ANN202, ANN001
        if args is not None:
            return list(args)
        return sys.argv[1:]  # default argparse behavior

    @no_type_check
    def _detect_duplicate_flags(self, raw_args) -> None:  # noqa: ANN001
        # Normalize option strings, repeatable options (append) are allowed more than once
        alias = {opt: action.option_strings[0] for action in self._actions for opt in action.option_strings}
        repeatable = {action.option_strings[0] for action in self._actions if isinstance(action, argparse._AppendAction)}
        seen = set()

        for tok in raw_args:
            if not tok.startswith("-"):
                continue

            # Extract option (handles -d3, -d=3, --daily=5)
            opt = tok.split("=", 1)[0]

            # Handle -d3 → -d
            if len(opt) > 2 and opt.startswith("-") and not opt.startswith("--"):
                opt = opt[:2]

            key = alias.get(opt, opt)
            if key in repeatable:
                continue

            if key in seen:
                self.add_error(f"Duplicate flag: {key}")
            seen.add(key)

    def _compile_regex(self, regex: str) -> Optional[re.Pattern[str]]:
        try:
            return compile_file_name_pattern(regex)
        except ValueError:
            self.add_error(f"Invalid regular expression : {regex}")
            return None

    @no_type_check
    def _validate_arguments(self, ns) -> None:  # noqa: ANN001
        # Default verbosity, if none given
        if ns.verbose is None:
            ns.verbose = LogLevel.INFO

        # regex validation
        if ns.pattern is not None:
            self._compile_regex(ns.pattern)

        # retention arguments describe the policy of the positional path
        if ns.path is None:
            for name in ("pattern", "last", "hourly", "daily", "weekly", "monthly", "yearly"):
                if getattr(ns, name) is not None:
                    self.add_error(f"--{name} requires a path")

        # something to prune
        if ns.path is None and ns.config is None:
            self.add_error("Either a path or --config must be given")

    # Main hook
    @no_type_check
    def parse_known_args(self, args=None, namespace=None) -> tuple[argparse.Namespace, list[str]]:  # noqa: ANN001
        self._errors = []
        raw_args = self._collect_raw_args(args)
        self._detect_duplicate_flags(raw_args)

        ns, unknown = super().parse_known_args(raw_args, namespace or argparse.Namespace())

        if unknown:
            sug = self._suggest(unknown[0])
            if sug:
                self.add_error(f"Unknown option: {unknown[0]} (did you mean {sug[0]}?)")
            else:
                self.add_error(f"Unknown option: {unknown[0]}")

        self._validate_arguments(ns)

        if self._errors:
            msg = "\n".join(f"{e}" for e in self._errors)
            self.error(msg)

        return ns, unknown


def create_parser() -> ModernStrictArgumentParser:
    parser: ModernStrictArgumentParser = ModernStrictArgumentParser(
        description=f"prune {VERSION}\n\nA small cross-platform CLI tool to prune timestamped files with grandfather-father-son retention policies",
        usage=("prune [path] [options]\n\nExamples:\n  prune /data/backups -p 'db-.*[.]sql[.]gz' -l 2 -d 7 -w 4 -m 6\n  prune --config prune.yaml --dry-run"),
        epilog="Use with caution!! This tool deletes files unless --dry-run is set.",
        formatter_class=ModernHelpFormatter,
        add_help=False,
    )

    g_main = parser.add_argument_group("Main arguments")
    g_ret = parser.add_argument_group("Retention arguments")
    g_behavior = parser.add_argument_group("Behavior arguments")
    g_common = parser.add_argument_group("Common arguments")

    # positional and config arguments
    g_main.add_argument("path", nargs="?", default=None, help="Directory to prune (recursion is not supported), in addition to the directories of --config")
    g_main.add_argument("--config", "-c", type=str, metavar="file", default=None, help="YAML (or JSON) config file with settings, a default policy and directory policies")

    # optional retention arguments for path (validated, unset values are inherited from the default policy)
    g_ret.add_argument("--pattern", "-p", type=str, metavar="regex", default=None, help="Only consider files whose names match the regex (default: all files)")
    g_ret.add_argument("--last", "-l", type=parser.non_negative_int_argument, metavar="N", help="Always keep the N most recent files")
    g_ret.add_argument("--hourly", "-h", type=parser.non_negative_int_argument, metavar="N", help="Keep one file per hour for N hours")
    g_ret.add_argument("--daily", "-d", type=parser.non_negative_int_argument, metavar="N", help="Keep one file per day for N days")
    g_ret.add_argument("--weekly", "-w", type=parser.non_negative_int_argument, metavar="N", help="Keep one file per week for N weeks")
    g_ret.add_argument("--monthly", "-m", type=parser.non_negative_int_argument, metavar="N", help="Keep one file per month for N months")
    g_ret.add_argument("--yearly", "-y", type=parser.non_negative_int_argument, metavar="N", help="Keep one file per year for N years")

    # behavior flags (unset values are taken from the config file)
    # fmt: off
    g_behavior.add_argument("--dry-run", "-X", action="store_true", default=None, help="Show planned actions but do not delete any files")
    g_behavior.add_argument("--force-confirm", "-i", action="store_true", default=None, help="Ask for confirmation before each deletion")
    g_behavior.add_argument("--start-of-week", "-s", type=parser.weekday_argument, metavar="day", default=None,
        help="First day of a week for weekly retention: 0 = sunday .. 6 = saturday (use numbers or names, default: sunday)")
    g_behavior.add_argument("--age-type", type=str, choices=AGE_TYPES, metavar="time", default=None, help="Used time attribute for file age: atime, mtime, ctime (default: atime)")
    g_behavior.add_argument("--timezone", "-t", type=str, metavar="zone", default=None, help="Time zone for bucket boundaries: local, UTC or an IANA name (default: local)")
    g_behavior.add_argument("--ignore", type=str, action="append", metavar="str", default=None, help="Ignore files whose names contain str (case-insensitive, repeatable)")
    g_behavior.add_argument("--verbose", "-V", "-v", type=parser.verbose_argument, default=None, nargs="?", const=LogLevel.INFO, metavar="lev",
        help="Verbosity level: 0 = error, 1 = warn, 2 = info, 3 = debug (default: 'info'; use numbers or names)")
    # fmt: on

    # common flags
    g_common.add_argument("--version", "-R", action="version", version=f"%(prog)s {VERSION}")
    g_common.add_argument("--help", "-H", action="help", help="Show this help message and exit")
    g_common.add_argument("--stacktrace", action="store_true", help=argparse.SUPPRESS)

    return parser


def parse_arguments() -> ConfigNamespace:
    parser = create_parser()
    args = parser.parse_args()
    return ConfigNamespace(**vars(args))


def load_config(config_file: Path) -> dict[str, Any]:
    if not config_file.is_file():
        raise FileNotFoundError(f"Config file not found: {config_file}")
    try:
        raw = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid config file '{config_file}': {e}")
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Invalid config file '{config_file}': top level must be a mapping")
    for key in raw:
        if key not in CONFIG_KEYS:
            raise ValueError(f"Invalid config: unknown key '{key}'")
    return dict(raw)


def _config_value(config: Mapping[str, Any], key: str, expected: type, default: Any) -> Any:
    value = config.get(key)
    if value is None:
        return default
    if not isinstance(value, expected) or (expected is not bool and isinstance(value, bool)):
        raise ValueError(f"Invalid config: '{key}' must be of type {expected.__name__}, got {value!r}")
    return value


def _config_weekday(value: Any) -> Weekday:
    try:
        if isinstance(value, bool):
            raise ValueError
        return Weekday(value) if isinstance(value, int) else Weekday.from_name_or_number(str(value))
    except ValueError:
        raise ValueError(f"Invalid config: 'start_of_week' must be 0 .. 6 or a weekday name, got {value!r}")


POLICY_STRING_KEYS: tuple[str, ...] = ("path", "file_name_pattern")
POLICY_KEYS: tuple[str, ...] = tuple(field.name for field in fields(RetentionPolicy))


def policy_from_mapping(raw: Any, where: str) -> RetentionPolicy:
    if raw is None:
        return RetentionPolicy()
    if not isinstance(raw, Mapping):
        raise ValueError(f"Invalid config: '{where}' must be a mapping")
    values: dict[str, Any] = {}
    for key, value in raw.items():
        if key not in POLICY_KEYS:
            raise ValueError(f"Invalid config: unknown key '{where}.{key}'")
        if value is None:
            continue
        if key in POLICY_STRING_KEYS:
            if not isinstance(value, str):
                raise ValueError(f"Invalid config: '{where}.{key}' must be a string, got {value!r}")
        elif isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Invalid config: '{where}.{key}' must be an integer, got {value!r}")
        values[key] = value
    return RetentionPolicy(**values)


def _cli_count(value: Optional[int]) -> int:
    return -1 if value is None else value


def apply_config(args: ConfigNamespace, config: Mapping[str, Any]) -> None:
    """Fills every setting not given on the command line from the config (or the builtin default)."""
    if args.dry_run is None:
        args.dry_run = _config_value(config, "dry_run", bool, False)
    if args.force_confirm is None:
        args.force_confirm = _config_value(config, "force_confirm", bool, False)
    if args.start_of_week is None:
        args.start_of_week = _config_weekday(config["start_of_week"]) if config.get("start_of_week") is not None else Weekday.SUNDAY
    if args.age_type is None:
        args.age_type = _config_value(config, "age_type", str, "atime")
        if args.age_type not in AGE_TYPES:
            raise ValueError(f"Invalid config: 'age_type' must be one of {', '.join(AGE_TYPES)}, got {args.age_type!r}")
    if args.timezone is None:
        args.timezone = _config_value(config, "timezone", str, "local")
    args.tzinfo = resolve_timezone(args.timezone)

    ignore_strings = _config_value(config, "ignore_strings", list, [])
    if not all(isinstance(value, str) for value in ignore_strings):
        raise ValueError("Invalid config: 'ignore_strings' must be a list of strings")
    args.ignore_strings = list(ignore_strings) + list(args.ignore or [])
    if args.config is not None:
        args.ignore_strings.append(Path(args.config).name)  # never prune the config file itself

    # dry-run implies verbose
    if args.dry_run and args.verbose < LogLevel.INFO:
        args.verbose = LogLevel.INFO


def resolve_policies(args: ConfigNamespace, config: Mapping[str, Any]) -> list[RetentionPolicy]:
    default = resolve_policy(policy_from_mapping(config.get("default"), "default"), BUILTIN_DEFAULT_POLICY)

    raw_directories = config.get("directories") or []
    if not isinstance(raw_directories, list):
        raise ValueError("Invalid config: 'directories' must be a list")
    policies = [policy_from_mapping(raw, f"directories[{idx}]") for idx, raw in enumerate(raw_directories)]

    if args.path is not None:
        policies.append(
            RetentionPolicy(
                path=args.path,
                file_name_pattern=args.pattern or "",
                keep_last=_cli_count(args.last),
                keep_hourly=_cli_count(args.hourly),
                keep_daily=_cli_count(args.daily),
                keep_weekly=_cli_count(args.weekly),
                keep_monthly=_cli_count(args.monthly),
                keep_yearly=_cli_count(args.yearly),
            )
        )

    if not policies:
        raise ValueError("No directories to prune: pass a path or list them under 'directories' in the config file")

    resolved = [resolve_policy(policy, default) for policy in policies]
    for policy in resolved:
        compile_file_name_pattern(policy.file_name_pattern)  # fail early on invalid regex
    return resolved


def build_settings(args: ConfigNamespace) -> list[RetentionPolicy]:
    config = load_config(Path(args.config)) if args.config is not None else {}
    apply_config(args, config)
    return resolve_policies(args, config)


def read_filelist(policy: RetentionPolicy, args: ConfigNamespace, logger: Logger) -> list[CandidateFile]:
    base: Path = Path(policy.path).expanduser()
    if not base.exists():
        logger.verbose(LogLevel.ERROR, f"Directory '{base}' does not exist")
        return []
    if not base.is_dir():
        logger.verbose(LogLevel.ERROR, f"Path is not a directory: {base}")
        return []

    pattern = compile_file_name_pattern(policy.file_name_pattern)
    ignore_strings = [value.lower() for value in args.ignore_strings if value]

    files: list[CandidateFile] = []
    for entry in sorted(base.iterdir()):
        if not entry.is_file():
            continue
        if any(value in entry.name.lower() for value in ignore_strings):
            logger.verbose(LogLevel.DEBUG, f"Ignoring '{entry.name}' (matched by ignore strings)")
            continue
        if pattern is not None and not pattern.match(entry.name):
            continue
        files.append(CandidateFile.from_path(entry, args.age_type))

    # sort by time (youngest first)
    return sort_files(files)


@dataclass(frozen=True)
class ScanState:
    cursor: int = 0
    window_boundary: int = WINDOW_UNBOUNDED


@dataclass
class RetentionsResult:
    keep: set[Path]
    prune: set[Path]
    decisions_log: Logger


class RetentionLogic:
    """
    Selects the files to keep in one pass over files sorted newest first.

    The tiers are applied from LAST to YEARLY. They share a single ScanState: the cursor never
    moves backwards, so every file is visited by at most one tier, and the window boundary is
    handed from one tier to the next, so a coarser tier never claims the bucket a finer tier
    just retained a file in.
    """

    _files: list[CandidateFile]
    _policy: RetentionPolicy
    _keep: set[Path]
    _state: ScanState
    _args: ConfigNamespace
    _logger: Logger

    def __init__(self, files: list[CandidateFile], policy: RetentionPolicy, args: ConfigNamespace, logger: Logger) -> None:
        self._files = files
        self._policy = policy
        self._keep = set()
        self._state = ScanState()
        self._args = args
        self._logger = logger

    def _interval_start(self, interval: Interval, timestamp_ms: int, offset: int = 0) -> int:
        return interval_start(interval, timestamp_ms, offset, self._args.start_of_week, self._args.tzinfo)

    def _current_bucket(self, interval: Interval, window_boundary: int) -> tuple[int, int]:
        if window_boundary >= WINDOW_UNBOUNDED:
            return WINDOW_UNBOUNDED, WINDOW_UNBOUNDED
        start = self._interval_start(interval, window_boundary)
        return start, interval_end(interval, start, self._args.start_of_week, self._args.tzinfo)

    def _format_bucket(self, start: int, end: int) -> str:
        return f"bucket: {format_timestamp(start, self._args.tzinfo)} .. {format_timestamp(end, self._args.tzinfo)}"

    def _check_sorted(self) -> None:
        for newer, older in zip(self._files, self._files[1:]):
            if newer.timestamp_ms < older.timestamp_ms:
                raise IntegrityCheckFailedError(f"Files are not sorted by time (newest first): '{newer.name}' before '{older.name}'")

    def _process_tier(self, state: ScanState, interval: Interval, keep_count: int) -> ScanState:
        cursor, window_boundary = state.cursor, state.window_boundary

        # Step behind the bucket (of this tier) holding the file a previous tier retained last
        if self._keep:
            window_boundary = self._interval_start(interval, window_boundary) - 1

        kept = 0
        while cursor < len(self._files) and kept < keep_count:
            bucket_start, bucket_end = self._current_bucket(interval, window_boundary)
            file = self._files[cursor]
            cursor += 1
            if interval == Interval.LAST or file.timestamp_ms <= bucket_end:
                kept += 1
                self._keep.add(file.path)
                window_boundary = self._interval_start(interval, file.timestamp_ms, -1)
                if interval == Interval.LAST:
                    self._logger.add_decision(LogLevel.INFO, file, f"Keeping last {kept:02d}/{keep_count:02d}")
                else:
                    self._logger.add_decision(LogLevel.INFO, file, f"Keeping for mode '{interval.mode}' {kept:02d}/{keep_count:02d}", debug=self._format_bucket(bucket_start, bucket_end))
            else:
                self._logger.add_decision(LogLevel.INFO, file, f"Pruning: newer than current bucket of mode '{interval.mode}'", debug=self._format_bucket(bucket_start, bucket_end))

        return ScanState(cursor, window_boundary)

    def select(self) -> set[Path]:
        self._check_sorted()
        self._keep = set()
        state = ScanState()
        for interval, keep_count in self._policy.tiers():
            if keep_count < 1:
                continue
            state = self._process_tier(state, interval, keep_count)
            if self._logger.has_log_level(LogLevel.DEBUG):
                self._logger.verbose(LogLevel.DEBUG, f"Scan state after mode '{interval.mode}': cursor {state.cursor}/{len(self._files)}, window boundary {format_timestamp(state.window_boundary, self._args.tzinfo)}")
        self._state = state
        return set(self._keep)

    def process_retention_logic(self) -> RetentionsResult:
        if not self._policy.has_retention_rules():
            self._logger.verbose(LogLevel.WARN, f"No retention rules specified for '{self._policy.path}', pruning all files")

        keep = self.select()
        prune = {file.path for file in self._files} - keep

        # Files the scan never reached
        for file in self._files[self._state.cursor :]:
            self._logger.add_decision(LogLevel.INFO, file, "Pruning: not matched by any retention rule")

        # Simple integrity checks
        if not len(self._files) == len(keep) + len(prune):
            raise IntegrityCheckFailedError(f"File count mismatch: some files are neither kept nor pruned (all: {len(self._files)}, keep: {len(keep)}, prune: {len(prune)})!!")
        if keep & prune:
            raise IntegrityCheckFailedError("Files marked to keep and to prune at the same time!!")

        return RetentionsResult(keep, prune, self._logger)


def _confirm_deletion(file: CandidateFile) -> bool:
    try:
        answer = input(f"Are you sure you want to remove '{file.path}'? [y/n]: ")
    except EOFError:  # no interactive input available => no confirmation
        answer = ""
    return answer.strip().lower() == "y"


def run_deletion(file: CandidateFile, args: ConfigNamespace, logger: Logger) -> bool:
    time = format_timestamp(file.timestamp_ms, args.tzinfo)
    if args.dry_run:
        logger.verbose(LogLevel.INFO, f"DRY-RUN DELETE: {file.name} ({args.age_type}: {time})")  # Just simulate deletion
        return True
    if args.force_confirm and not _confirm_deletion(file):
        logger.verbose(LogLevel.INFO, f"SKIPPED (not confirmed): {file.name}")
        return False
    logger.verbose(LogLevel.INFO, f"DELETING: {file.name} ({args.age_type}: {time})")
    try:
        file.path.unlink()
    except OSError as e:  # Catch deletion error, print it, and continue
        logger.verbose(LogLevel.WARN, f"Error while deleting file '{file.name}': {e}")
        return False
    return True


def remove_files(files: Iterable[CandidateFile], args: ConfigNamespace, logger: Logger) -> int:
    removed = 0
    for file in files:
        if run_deletion(file, args, logger):
            removed += 1
    return removed


def prune_directory(policy: RetentionPolicy, args: ConfigNamespace, logger: Logger) -> int:
    logger.verbose(LogLevel.INFO, f"Pruning '{policy.path}'")
    logger.verbose(LogLevel.DEBUG, f"Policy: {policy}")

    files = read_filelist(policy, args, logger)
    logger.verbose(LogLevel.INFO, f"Found {len(files)} files" + (f" using pattern '{policy.file_name_pattern}'" if policy.file_name_pattern else ""))
    logger.verbose(LogLevel.DEBUG, "Files found: " + ", ".join(f'"{file.name}"' for file in files))

    retentions_result = RetentionLogic(files, policy, args, logger).process_retention_logic()

    logger.print_decisions()

    logger.verbose(LogLevel.INFO, f"Total files found:   {len(files):03d}")
    logger.verbose(LogLevel.INFO, f"Total files keep:    {len(retentions_result.keep):03d}")
    logger.verbose(LogLevel.INFO, f"Total files prune:   {len(retentions_result.prune):03d}")

    removed = remove_files([file for file in files if file.path in retentions_result.prune], args, logger)
    logger.verbose(LogLevel.INFO, f"Total files removed: {removed:03d}")
    return removed


def prune_directories(policies: Iterable[RetentionPolicy], args: ConfigNamespace, logger: Logger) -> int:
    return sum(prune_directory(policy, args, logger) for policy in policies)


def handle_exception(exception: Exception, exit_code: int, stacktrace: bool, prefix: str = "") -> None:
    if stacktrace:
        traceback.print_exc()
    print(f"[{prefix or LogLevel.ERROR.name}] {exception}", file=sys.stderr)
    sys.exit(exit_code)


def main() -> None:
    args: Optional[ConfigNamespace] = None

    try:
        args = parse_arguments()
        logger = Logger(args)

        logger.verbose(LogLevel.DEBUG, f"Parsed arguments: {args}")

        policies = build_settings(args)
        logger.verbose(LogLevel.DEBUG, f"Resolved {len(policies)} directory policies")

        prune_directories(policies, args, logger)

    except OSError as e:
        handle_exception(e, 1, args.stacktrace if args is not None else True)
    except ValueError as e:
        handle_exception(e, 2, args.stacktrace if args is not None else True)
    except IntegrityCheckFailedError as e:
        handle_exception(e, 7, args.stacktrace if args is not None else True)
    except Exception as e:
        handle_exception(e, 9, args.stacktrace if args is not None else True, prefix="UNEXPECTED ERROR")


if __name__ == "__main__":
    main()
