"""
tablr — Lazy, windowed browsing of large partitioned Parquet datasets.

## Responsibilities
- Present one or many Parquet files as a single logical table without loading it.
- Turn viewport positions into bounded row windows fetched on demand, cached, coalesced and
  cancelled when the user scrolls past them.

## Layers
- tablr.core — ranges, windows, schema widening, errors, defaults (zero IO).
- tablr.io — settings, path discovery, catalog, lazy plans, window fetcher.
- tablr.view — window cache, scroll controller, session facade, background runner.

## Examples
```python
import asyncio
from tablr.view import open_session

async def main() -> None:
    async with await open_session(["data/events/"]) as session:  # doctest: +SKIP
        session.subscribe(lambda ev: print(ev.rows, ev.window.height))
        session.viewport_changed(0, 50)
        await asyncio.sleep(0.5)

asyncio.run(main())  # doctest: +SKIP
```
"""
