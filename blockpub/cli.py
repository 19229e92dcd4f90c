from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Sequence

from .blocks import Block, parse_blocks, validate_block_order
from .charts import ChartSelections, calculate_trend, coerce_chart_type, describe, prepare
from .coerce import DataRow
from .config import load_config_or_default, resolve_media_token
from .config_schema import AppConfig
from .errors import BadInputError, ConfigError, ExportError
from .event_log import EventLog
from .excerpt import ManualExcerpt, analyze_content, build_post_excerpt, generate_excerpt, seo_description
from .fields import analyze, suggest_chart_options
from .ingest import ingest_file
from .media import MediaResolver, ReferenceFailure
from .resolver import resolve_blocks
from .url_cache import CachingMediaResolver


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file (defaults apply when omitted).",
    )
    p.add_argument(
        "--log",
        default=None,
        help="Write JSON Lines events to this file.",
    )
    p.add_argument(
        "--offline",
        action="store_true",
        help="Use the built-in sample data instead of input files (and no network).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blockpub")

    subparsers = parser.add_subparsers(dest="command", required=True)

    exc = subparsers.add_parser(
        "excerpt",
        help="Generate the preview excerpt for a post's blocks.",
    )
    exc.add_argument("--blocks", help="Path to a JSON array of blocks.")
    exc.add_argument("--char-limit", type=int, default=None, help="Override excerpt.char_limit.")
    exc.add_argument("--manual-text", default=None, help="Manual excerpt text override.")
    exc.add_argument("--manual-image", default=None, help="Manual excerpt image file id.")
    exc.add_argument("--byline", default=None, help="Manual excerpt byline.")
    _add_common(exc)
    exc.set_defaults(_handler=_cmd_excerpt)

    res = subparsers.add_parser(
        "resolve",
        help="Resolve every media reference in a post's blocks.",
    )
    res.add_argument("--blocks", help="Path to a JSON array of blocks.")
    _add_common(res)
    res.set_defaults(_handler=_cmd_resolve)

    ana = subparsers.add_parser(
        "analyze",
        help="Infer field types and chart roles for tabular data.",
    )
    ana.add_argument("--data", help="Path to a .json or .csv data file.")
    ana.add_argument("--media-type", default=None, help="Override the media type guessed from the extension.")
    _add_common(ana)
    ana.set_defaults(_handler=_cmd_analyze)

    chart = subparsers.add_parser(
        "chart",
        help="Prepare chart data from tabular data and a role selection.",
    )
    chart.add_argument("--data", help="Path to a .json or .csv data file.")
    chart.add_argument("--media-type", default=None, help="Override the media type guessed from the extension.")
    chart.add_argument("--type", dest="chart_type", default=None, help="LINE, AREA, BAR or PIE (default: suggested).")
    chart.add_argument("--x", dest="x_axis", default=None)
    chart.add_argument("--y", dest="y_axis", default=None)
    chart.add_argument("--series", default=None, help="Comma-separated series fields.")
    chart.add_argument("--label", dest="label_key", default=None)
    chart.add_argument("--value", dest="value_key", default=None)
    chart.add_argument("--out", default=None, help="Also write an .xlsx workbook to this path.")
    _add_common(chart)
    chart.set_defaults(_handler=_cmd_chart)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False, sort_keys=True, default=str))


def _load_blocks(args: argparse.Namespace) -> list[Block]:
    if args.offline and not args.blocks:
        from .offline import offline_blocks

        raw: Any = offline_blocks()
    else:
        if not args.blocks:
            raise BadInputError("--blocks is required unless --offline is set")
        p = Path(args.blocks)
        try:
            raw = json.loads(p.read_text(encoding="utf-8"))
        except OSError as e:
            raise BadInputError(f"Failed to read blocks file: {p}: {e}") from e
        except json.JSONDecodeError as e:
            raise BadInputError(f"Blocks file is not valid JSON: {p}: {e}") from e

    if not isinstance(raw, list):
        raise BadInputError("Blocks file must contain a JSON array")

    blocks = parse_blocks(raw)
    validate_block_order(blocks)
    return sorted(blocks, key=lambda b: (b.post_id, b.order))


def _load_rows(args: argparse.Namespace) -> list[DataRow]:
    if args.offline and not args.data:
        from .offline import offline_rows

        return offline_rows()
    if not args.data:
        raise BadInputError("--data is required unless --offline is set")
    return ingest_file(args.data, args.media_type)


def _open_log(args: argparse.Namespace) -> EventLog:
    if args.log:
        return EventLog.open(args.log, command=args.command)
    return EventLog.disabled()


def _cmd_excerpt(args: argparse.Namespace, cfg: AppConfig, log: EventLog) -> int:
    blocks = _load_blocks(args)
    char_limit = args.char_limit if args.char_limit is not None else cfg.excerpt.char_limit

    generated = generate_excerpt(blocks, char_limit, ellipsis=cfg.excerpt.ellipsis)
    post = build_post_excerpt(
        blocks,
        ManualExcerpt(text=args.manual_text, image_file_id=args.manual_image, byline=args.byline),
        char_limit=char_limit,
        ellipsis=cfg.excerpt.ellipsis,
        words_per_minute=cfg.excerpt.words_per_minute,
    )
    content = analyze_content(blocks)

    log.info(
        "excerpt_generated",
        blocks=len(blocks),
        word_count=generated.word_count,
        is_manual=post.is_manual,
    )

    print(f"word_count={generated.word_count}")
    print(f"read_time={post.read_time}")
    print(f"image_file_id={post.image_file_id or ''}")
    print(f"is_manual={str(post.is_manual).lower()}")
    print("excerpt=")
    _print_json(
        {
            "generated": generated.to_dict(),
            "post": post.to_dict(),
            "seoDescription": seo_description(
                blocks, cfg.excerpt.seo_char_limit, ellipsis=cfg.excerpt.ellipsis
            ),
            "content": content.to_dict(),
        }
    )
    return 0


def _media_for(args: argparse.Namespace, cfg: AppConfig) -> MediaResolver:
    if args.offline:
        from .offline import OfflineMediaResolver

        return OfflineMediaResolver()

    if not cfg.media.base_url:
        raise ConfigError("media.base_url must be set in the config file (or pass --offline)")

    from .media_client import HttpMediaClient

    return HttpMediaClient(
        cfg.media.base_url,
        token=resolve_media_token(cfg),
        timeout_seconds=cfg.media.timeout_seconds,
    )


async def _resolve_all(blocks: Sequence[Block], media: MediaResolver, cfg: AppConfig, log: EventLog) -> list[Any]:
    resolver: MediaResolver = media
    if cfg.cache.enabled:
        resolver = CachingMediaResolver(
            media,
            ttl_seconds=cfg.cache.ttl_seconds,
            max_entries=cfg.cache.max_entries,
        )

    def _on_failure(failure: ReferenceFailure) -> None:
        log.reference_failed(
            block_id=failure.block_id,
            path=failure.path,
            file_id=failure.file_id,
            kind=failure.kind,
        )

    try:
        return await resolve_blocks(blocks, resolver, on_failure=_on_failure)
    finally:
        aclose = getattr(media, "aclose", None)
        if aclose is not None:
            await aclose()


def _cmd_resolve(args: argparse.Namespace, cfg: AppConfig, log: EventLog) -> int:
    blocks = _load_blocks(args)
    media = _media_for(args, cfg)

    resolved = asyncio.run(_resolve_all(blocks, media, cfg, log))

    total = 0
    degraded = 0
    out: list[dict[str, Any]] = []
    for item in resolved:
        refs: dict[str, str | None] = {}
        for path, ref in item.references.items():
            total += 1
            if ref is None:
                degraded += 1
            refs[path] = ref.url if ref is not None else None
        out.append({"blockId": item.block.id, "type": item.block.type.value, "references": refs})

    log.info("references_resolved", blocks=len(blocks), references=total, degraded=degraded)

    print(f"blocks={len(blocks)}")
    print(f"references={total}")
    print(f"degraded={degraded}")
    print("resolved=")
    _print_json(out)
    return 0


def _cmd_analyze(args: argparse.Namespace, cfg: AppConfig, log: EventLog) -> int:
    rows = _load_rows(args)
    options = analyze(rows, settings=cfg.analysis)
    suggestions = suggest_chart_options(rows, options=options)

    log.info("fields_analyzed", rows=len(rows), fields=len(options))

    print(f"rows={len(rows)}")
    print(f"fields={len(options)}")
    for o in options:
        print(f"field={o.key}:{o.inferred_type.value}")
    print("chart_options=")
    _print_json(suggestions.to_dict())
    return 0


def _selections_from_args(args: argparse.Namespace, suggested: ChartSelections) -> ChartSelections:
    series = suggested.series
    if args.series is not None:
        series = [s.strip() for s in args.series.split(",")]
    return ChartSelections(
        x_axis=args.x_axis if args.x_axis is not None else suggested.x_axis,
        y_axis=args.y_axis if args.y_axis is not None else suggested.y_axis,
        series=series,
        label_key=args.label_key if args.label_key is not None else suggested.label_key,
        value_key=args.value_key if args.value_key is not None else suggested.value_key,
    )


def _cmd_chart(args: argparse.Namespace, cfg: AppConfig, log: EventLog) -> int:
    rows = _load_rows(args)
    options = analyze(rows, settings=cfg.analysis)
    suggestions = suggest_chart_options(rows, options=options)

    chart_type = coerce_chart_type(args.chart_type) if args.chart_type else suggestions.suggested_chart_type
    selections = _selections_from_args(args, suggestions.suggested)
    prepared = prepare(rows, selections, chart_type)
    trend = calculate_trend(prepared)

    log.info(
        "chart_prepared",
        rows=len(rows),
        chart_type=chart_type.value,
        selections=selections.model_dump(by_alias=True),
    )

    if args.out:
        from .export_excel import export_chart_workbook

        log.info("export_excel_started", path=str(args.out))
        path = export_chart_workbook(rows, options, prepared, args.out)
        log.info("export_excel_completed", path=str(path))
        print(f"chart_xlsx={path}")

    print(f"chart_type={chart_type.value}")
    print(f"description={describe(prepared)}")
    if trend is not None:
        print(f"trend={trend.change:.2f}")
    print("prepared=")
    _print_json(prepared.to_dict())
    return 0


def _run(args: argparse.Namespace) -> int:
    with _open_log(args) as log:
        log.info("command_started", config_path=args.config, offline=bool(args.offline))
        try:
            cfg = load_config_or_default(args.config)
            handler = getattr(args, "_handler")
            code = int(handler(args, cfg, log))
            log.info("command_completed", exit_code=code)
            return code
        except Exception as e:
            log.exception("command_failed", exc=e)
            raise


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        return _run(args)
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (BadInputError, ExportError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
