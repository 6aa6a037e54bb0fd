from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from importlib import metadata
from pathlib import Path
from typing import Any, Dict, List, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .config import load_config
from .engine import TemplateEngine
from .errors import CliptplUserError
from .report import CheckReport, RenderReport, ReportError
from .template.context import RenderError
from .template.nodes import dump_ast
from .validation import validate_variables

logger = logging.getLogger(__name__)

_yaml = YAML(typ="safe")


def _tool_version() -> str:
    try:
        return metadata.version("cliptpl")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="cliptpl",
        description="Web clipper template engine",
        add_help=True,
    )
    p.add_argument("-v", "--version", action="version", version=f"%(prog)s {_tool_version()}")
    p.add_argument("--verbose", action="store_true", help="отладочный вывод в stderr")
    p.add_argument("--config", metavar="FILE", help="файл настроек (по умолчанию ./cliptpl.yaml)")
    sub = p.add_subparsers(dest="cmd", required=True)

    sp_render = sub.add_parser("render", help="Отрендерить шаблон")
    sp_render.add_argument("template", help="файл шаблона или - для чтения из stdin")
    sp_render.add_argument("--vars", metavar="FILE", help="переменные страницы (YAML или JSON)")
    sp_render.add_argument(
        "--var",
        action="append",
        metavar="KEY=VALUE",
        help="переменная (можно указать несколько; перекрывает --vars)",
    )
    sp_render.add_argument("--url", default="", help="URL страницы для фильтров ссылок")
    sp_render.add_argument("--json", action="store_true", help="JSON-отчёт вместо текста")

    sp_check = sub.add_parser("check", help="Проверить синтаксис и переменные шаблона")
    sp_check.add_argument("template", help="файл шаблона или - для чтения из stdin")
    sp_check.add_argument(
        "--known",
        action="append",
        metavar="NAME",
        help="дополнительное известное имя переменной",
    )
    sp_check.add_argument("--json", action="store_true", help="JSON-отчёт вместо текста")
    sp_check.add_argument("--ast", action="store_true", help="вывести разобранное дерево в JSON")

    sub.add_parser("filters", help="Список встроенных фильтров")

    return p


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
        stream=sys.stderr,
    )


def _read_template(source: str) -> str:
    """Читает шаблон из файла или stdin (-)."""
    if source == "-":
        return sys.stdin.read()
    path = Path(source)
    if not path.is_file():
        raise CliptplUserError(f"Template file not found: {path}")
    return path.read_text(encoding="utf-8")


def _load_vars(path_arg: Optional[str], pairs: Optional[List[str]]) -> Dict[str, Any]:
    """
    Собирает переменные из файла и пар KEY=VALUE.

    Файл читается как YAML (JSON - его подмножество) и должен быть отображением.
    """
    variables: Dict[str, Any] = {}
    if path_arg:
        path = Path(path_arg)
        if not path.is_file():
            raise CliptplUserError(f"Variables file not found: {path}")
        try:
            raw = _yaml.load(path.read_text(encoding="utf-8")) or {}
        except YAMLError as e:
            raise CliptplUserError(f"Cannot parse variables file {path}: {e}") from e
        if not isinstance(raw, dict):
            raise CliptplUserError(f"Variables file must be a mapping: {path}")
        variables.update(raw)

    for pair in pairs or []:
        if "=" not in pair:
            raise CliptplUserError(f"Invalid variable '{pair}'. Expected KEY=VALUE")
        key, value = pair.split("=", 1)
        variables[key.strip()] = value
    return variables


def _report_errors(errors: List[RenderError]) -> List[ReportError]:
    return [ReportError(message=e.message, line=e.line, column=e.column) for e in errors]


async def _render(engine: TemplateEngine, text: str, variables: Dict[str, Any], url: str) -> RenderReport:
    context = engine.create_context(variables, url)
    result = await engine.render(text, context)
    output = result.output
    if result.has_deferred_variables:
        output = await engine.post_processor().process(output, context.variables, url)
    return RenderReport(
        output=output,
        errors=_report_errors(result.errors),
        has_deferred_variables=result.has_deferred_variables,
    )


def _cmd_render(ns: argparse.Namespace, engine: TemplateEngine) -> int:
    text = _read_template(ns.template)
    variables = _load_vars(ns.vars, ns.var)
    report = asyncio.run(_render(engine, text, variables, ns.url))

    if ns.json:
        sys.stdout.write(json.dumps(report.model_dump(by_alias=True), ensure_ascii=False, indent=2) + "\n")
    else:
        sys.stdout.write(report.output)
        for error in report.errors:
            sys.stderr.write(f"Line {error.line}: {error.message}\n")
    return 2 if report.errors else 0


def _cmd_check(ns: argparse.Namespace, engine: TemplateEngine) -> int:
    parsed = engine.parse(_read_template(ns.template))
    errors = [ReportError(message=e.message, line=e.line, column=e.column) for e in parsed.errors]
    warnings = [
        ReportError(message=w.message, line=w.line, column=w.column)
        for w in validate_variables(parsed.ast, ns.known or ())
    ]
    report = CheckReport(ok=not errors, errors=errors, warnings=warnings)

    if ns.json:
        sys.stdout.write(json.dumps(report.model_dump(), ensure_ascii=False, indent=2) + "\n")
    else:
        for error in report.errors:
            sys.stderr.write(f"error: line {error.line}, column {error.column}: {error.message}\n")
        for warning in report.warnings:
            sys.stderr.write(f"warning: line {warning.line}, column {warning.column}: {warning.message}\n")
        if ns.ast and report.ok:
            sys.stdout.write(dump_ast(parsed.ast) + "\n")
        elif report.ok:
            sys.stdout.write("OK\n")
    return 0 if report.ok else 2


def _cmd_filters(engine: TemplateEngine) -> int:
    width = max((len(name) for name in engine.registry.names()), default=0)
    for spec in engine.registry.specs():
        sys.stdout.write(f"{spec.name.ljust(width)}  {spec.description}\n")
    return 0


def main(argv: list[str] | None = None) -> int:
    ns = _build_parser().parse_args(argv)
    _setup_logging(ns.verbose)

    try:
        config = load_config(Path(ns.config) if ns.config else None)
        engine = TemplateEngine(config)

        if ns.cmd == "render":
            return _cmd_render(ns, engine)
        if ns.cmd == "check":
            return _cmd_check(ns, engine)
        if ns.cmd == "filters":
            return _cmd_filters(engine)

    except CliptplUserError as e:
        sys.stderr.write(str(e).rstrip() + "\n")
        return 2

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
