from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping, Sequence

from .blocks import Block, iter_references
from .errors import ReferenceResolutionError
from .media import MediaResolver, ReferenceFailure, ResolvedReference

FailureHook = Callable[[ReferenceFailure], None]


@dataclass(frozen=True)
class ResolvedBlock:
    """
    A block paired with the outcome of each of its external references.

    `references` maps a reference path (`images.0`, `video`, `avatar`, ...) to the
    resolved locator, or to None when that one reference could not be resolved.
    """

    block: Block
    references: Mapping[str, ResolvedReference | None] = field(default_factory=dict)

    def reference(self, path: str) -> ResolvedReference | None:
        return self.references.get(path)

    @property
    def degraded_paths(self) -> list[str]:
        return [p for p, ref in self.references.items() if ref is None]

    def url(self, path: str) -> str | None:
        ref = self.references.get(path)
        return ref.url if ref is not None else None


async def _resolve_one(
    media: MediaResolver,
    *,
    block: Block,
    path: str,
    file_id: str,
    on_failure: FailureHook | None,
) -> ResolvedReference | None:
    try:
        return await media.resolve_reference(file_id)
    except ReferenceResolutionError as e:
        if on_failure is not None:
            on_failure(
                ReferenceFailure(
                    block_id=block.id,
                    path=path,
                    file_id=file_id,
                    kind=e.kind,
                    message=str(e),
                )
            )
        return None


async def resolve_blocks(
    blocks: Sequence[Block],
    media: MediaResolver,
    *,
    on_failure: FailureHook | None = None,
) -> list[ResolvedBlock]:
    """
    Resolve every external reference across `blocks` concurrently.

    One `resolve_reference` call is made per reference and all calls are awaited
    together. A ReferenceResolutionError degrades only its own path to None.
    Any other exception is re-raised, first in plan order, once every sibling
    call has finished. Output order matches input order.
    """
    plan: list[tuple[int, str, str]] = []
    for index, block in enumerate(blocks):
        for path, file_id in iter_references(block):
            plan.append((index, path, file_id))

    outcomes = await asyncio.gather(
        *(
            _resolve_one(
                media,
                block=blocks[index],
                path=path,
                file_id=file_id,
                on_failure=on_failure,
            )
            for index, path, file_id in plan
        ),
        return_exceptions=True,
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome

    per_block: list[dict[str, ResolvedReference | None]] = [{} for _ in blocks]
    for (index, path, _), outcome in zip(plan, outcomes):
        per_block[index][path] = outcome

    return [
        ResolvedBlock(block=block, references=MappingProxyType(refs))
        for block, refs in zip(blocks, per_block)
    ]
