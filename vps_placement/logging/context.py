from collections.abc import Iterator
from contextlib import contextmanager

import structlog


@contextmanager
def placement_context(**values: object) -> Iterator[None]:
    """Bind placement identifiers (order_id, region_id, vm_id...) for a block.

    None values are skipped so callers can pass optional ids unconditionally.
    Previous bindings are restored on exit.
    """
    bound = {k: v for k, v in values.items() if v is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield
