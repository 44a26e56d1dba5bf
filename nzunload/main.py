from __future__ import annotations

import logging
import time
from pathlib import Path

import typer

from nzunload.common.run_id import generate_run_id
from nzunload.common.sanitize import maskSecret, printableSql
from nzunload.common.time import getDurationMs
from nzunload.config import Settings, loadSettings
from nzunload.domain.error_codes import ErrorCode
from nzunload.domain.exceptions import UnloadError
from nzunload.domain.unload.filters import parse_filter_expressions
from nzunload.domain.unload.query_builder import build_unload_query
from nzunload.infra.artifacts.report_writer import createEmptyReport, finalizeReport, writeReportJson
from nzunload.infra.logging.setup import closeCommandLogger, createCommandLogger, logEvent, mapLogLevel
from nzunload.infra.unload.reader import PipeRecordReader
from nzunload.infra.warehouse.connection import missingConnectionSettings, openWarehouseConnection
from nzunload.usecases.export_usecase import ExportUseCase

app = typer.Typer(no_args_is_help=True, add_completion=False)


def ensureDir(path: str) -> None:
    """
    Назначение:
        Создаёт каталог, если он отсутствует.
    """
    Path(path).mkdir(parents=True, exist_ok=True)


def requireConnection(settings: Settings) -> None:
    """
    Назначение:
        Проверяет наличие параметров подключения к хранилищу.

    Поведение:
        - Если чего-то не хватает - exit code 2.
    """
    missing = missingConnectionSettings(settings)
    if missing:
        typer.echo(f"ERROR: missing connection settings: {', '.join(missing)}", err=True)
        raise typer.Exit(code=2)


def printRunHeader(runId: str, command: str, settings: Settings, sources: list[str]) -> None:
    """
    Назначение:
        Печатает безопасную сводку параметров запуска (без секретов).
    """
    typer.echo(
        f"run_id={runId} command={command} "
        f"host={settings.host} port={settings.port} database={settings.database} "
        f"username={settings.username} password={maskSecret(settings.password)} sources={sources}"
    )


def runWithReport(
    ctx: typer.Context,
    commandName: str,
    requiresConnection: bool,
    runner,
) -> None:
    """
    Назначение:
        Унифицированная обвязка выполнения команд:
        - создаёт логгер + файл лога
        - создаёт report.json skeleton
        - валидирует параметры подключения
        - гарантирует запись отчёта в finally

    Поведение:
        - На ошибках обязательных параметров: пишет ошибку в лог и report и завершает exit code 2.
    """
    runId = ctx.obj["runId"]
    settings: Settings = ctx.obj["settings"]
    sources = ctx.obj["sources"]

    startMonotonic = time.monotonic()

    logger, logFilePath = createCommandLogger(
        commandName=commandName,
        logDir=settings.log_dir,
        runId=runId,
        logLevel=settings.log_level,
    )

    report = createEmptyReport(runId=runId, command=commandName, settings=settings, configSources=sources)

    exitCode: int | None = None

    try:
        logEvent(logger, logging.INFO, runId, "core", "Command started")
        printRunHeader(runId, commandName, settings, sources)

        if requiresConnection:
            try:
                requireConnection(settings)
            except typer.Exit:
                logEvent(logger, logging.ERROR, runId, "config", "Missing connection settings")
                report.add_error(ErrorCode.CONFIG_ERROR.value, "Missing connection settings")
                exitCode = 2
                return

        exitCode = runner(logger, report)

    finally:
        durationMs = getDurationMs(startMonotonic, time.monotonic())
        finalizeReport(report=report, durationMs=durationMs, logFile=logFilePath)
        reportPath = writeReportJson(report, settings.report_dir)
        logEvent(logger, logging.INFO, runId, "report", f"Report written: {reportPath}")
        closeCommandLogger(logger)

        if exitCode:
            raise typer.Exit(code=exitCode)


def runShowQueryCommand(table: str, columns: list[str] | None, filters: list[str] | None) -> None:
    try:
        parsed = parse_filter_expressions(filters)
        query = build_unload_query("<pipe>", table, columns or [], parsed)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=2)
    typer.echo(printableSql(query))


def runExportCommand(
    ctx: typer.Context,
    table: str,
    columns: list[str] | None,
    filters: list[str] | None,
    outPath: str,
    header: bool,
) -> None:
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger, report) -> int:
        report.meta.table = table
        report.meta.output_path = outPath
        try:
            parsed = parse_filter_expressions(filters)
        except ValueError as exc:
            typer.echo(f"ERROR: {exc}", err=True)
            report.add_error(ErrorCode.CONFIG_ERROR.value, str(exc))
            return 2

        try:
            conn = openWarehouseConnection(settings)
        except UnloadError as exc:
            logEvent(logger, logging.ERROR, runId, "warehouse", str(exc))
            report.add_error(exc.code.value, exc.message)
            typer.echo("ERROR: failed to connect (see logs/report)", err=True)
            return 2

        try:
            def readerFactory() -> PipeRecordReader:
                return PipeRecordReader(
                    conn,
                    table,
                    columns or [],
                    parsed,
                    pipe_dir=settings.pipe_dir,
                    encoding=settings.encoding,
                    remote_source=settings.remote_source,
                    poll_interval=settings.poll_interval_seconds,
                )

            useCase = ExportUseCase(readerFactory)
            code = useCase.run(
                out_path=outPath,
                header=(columns or None) if header else None,
                logger=logger,
                run_id=runId,
                report=report,
            )
            if code != 0:
                typer.echo("ERROR: export failed (see logs/report)", err=True)
                return 2
            typer.echo(f"rows={report.summary.rows_total} out={outPath}")
            return 0
        except ValueError as exc:
            report.add_error(ErrorCode.CONFIG_ERROR.value, str(exc))
            typer.echo(f"ERROR: {exc}", err=True)
            return 2
        finally:
            conn.close()

    runWithReport(
        ctx=ctx,
        commandName="export",
        requiresConnection=True,
        runner=execute,
    )


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(None, "--config", help="Path to config.yml"),
    runId: str | None = typer.Option(None, "--run-id", help="Run identifier (UUID). If omitted, generated."),
    logLevel: str | None = typer.Option(None, "--log-level", help="Log level: ERROR|WARN|INFO|DEBUG"),
    logDir: str | None = typer.Option(None, "--log-dir", help="Directory for logs."),
    reportDir: str | None = typer.Option(None, "--report-dir", help="Directory for reports."),
    pipeDir: str | None = typer.Option(None, "--pipe-dir", help="Directory for named pipes."),
    host: str | None = typer.Option(None, "--host", help="Netezza host"),
    port: int | None = typer.Option(None, "--port", help="Netezza port"),
    database: str | None = typer.Option(None, "--database", help="Netezza database"),
    username: str | None = typer.Option(None, "--username", help="Netezza username"),
    password: str | None = typer.Option(None, "--password", help="Netezza password (avoid; use env/file)"),
    passwordFile: str | None = typer.Option(None, "--password-file", help="Read password from file"),
    encoding: str | None = typer.Option(None, "--encoding", help="Encoding of unloaded data"),
):
    """
    Назначение:
        Глобальная инициализация CLI:
        - генерирует/принимает run_id
        - загружает настройки (CLI > ENV > config > defaults)
        - создаёт каталоги log/report
        - сохраняет всё в ctx.obj для подкоманд
    """
    if passwordFile and not password:
        p = Path(passwordFile)
        if not p.exists() or not p.is_file():
            typer.echo(f"ERROR: password-file not found: {passwordFile}", err=True)
            raise typer.Exit(code=2)
        password = p.read_text(encoding="utf-8").strip()

    if not runId:
        runId = generate_run_id()

    cliOverrides = {
        "host": host,
        "port": port,
        "database": database,
        "username": username,
        "password": password,
        "log_level": logLevel,
        "log_dir": logDir,
        "report_dir": reportDir,
        "pipe_dir": pipeDir,
        "encoding": encoding,
    }
    try:
        loaded = loadSettings(config_path=config, cli_overrides=cliOverrides)
        mapLogLevel(loaded.settings.log_level)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=2)

    ensureDir(loaded.settings.log_dir)
    ensureDir(loaded.settings.report_dir)

    ctx.obj = {
        "runId": runId,
        "settings": loaded.settings,
        "sources": loaded.sources_used,
        "configPath": config,
    }


@app.command("show-query")
def showQuery(
    table: str = typer.Option(..., "--table", help="Source table"),
    column: list[str] | None = typer.Option(None, "--column", help="Column to unload (repeatable)"),
    filterExpr: list[str] | None = typer.Option(None, "--filter", help="Filter, e.g. \"age>=30\" (repeatable)"),
):
    runShowQueryCommand(table, column, filterExpr)


@app.command("export")
def export(
    ctx: typer.Context,
    table: str = typer.Option(..., "--table", help="Source table"),
    column: list[str] | None = typer.Option(None, "--column", help="Column to unload (repeatable)"),
    filterExpr: list[str] | None = typer.Option(None, "--filter", help="Filter, e.g. \"age>=30\" (repeatable)"),
    out: str = typer.Option(..., "--out", help="Output CSV path"),
    header: bool = typer.Option(False, "--header", help="Write column names as the first CSV row"),
):
    runExportCommand(ctx, table, column, filterExpr, out, header)


if __name__ == "__main__":
    app()
