"""
Stream helpers for consumers of `LLMRouter.route_stream`.
"""

from __future__ import annotations

from typing import AsyncIterator, Callable, Optional

from switchboard.llm.types import StreamChunk


async def collect_stream(
    stream: AsyncIterator[StreamChunk],
    on_chunk: Optional[Callable[[str], None]] = None,
) -> tuple[str, StreamChunk]:
    """
    Consume a full stream and return (full_text, final_chunk).

    Draining the stream completely is what triggers the router's usage
    accounting, so prefer this over breaking out of the loop:

        text, final = await collect_stream(router.route_stream(request))
        print(text)
        if final.usage:
            print(f"Tokens: {final.usage.total_tokens}")

    `on_chunk` is called with each non-empty content piece as it arrives.
    """
    collected = []
    final_chunk = StreamChunk(done=True)

    async for chunk in stream:
        if chunk.content:
            collected.append(chunk.content)
            if on_chunk is not None:
                on_chunk(chunk.content)
        if chunk.done:
            final_chunk = chunk

    return "".join(collected), final_chunk
