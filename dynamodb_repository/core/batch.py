"""
Batch execution helpers.

run_in_waves applies one async per-entity operation across a collection with
at most ``max_in_flight`` calls running at once. Calls are launched in fixed
waves: the next wave starts only after every call of the current wave has
finished, successfully or not. The first failure (in input order) of a wave
is re-raised once that wave has settled, and no later wave is launched.
Other failures from the same wave are logged and dropped.

suppress_not_found turns the store's "entity not found" failure into a no-op,
which is how the repository's if-exists operations are built.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, TypeVar

from ..exceptions import EntityNotFoundError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_MAX_IN_FLIGHT = 10


def is_not_found(error: BaseException) -> bool:
    """True when error is the store's "entity not found" signal."""
    return isinstance(error, EntityNotFoundError)


async def suppress_not_found(operation: Callable[[T], Awaitable[Any]], entity: T) -> Optional[Any]:
    """Run operation(entity), treating EntityNotFoundError as success.

    Returns the operation's result, or None when the entity did not exist.

    Raises:
        ValidationError: If entity is None (operation is not invoked)
    """
    if entity is None:
        raise ValidationError("Entity cannot be None")

    try:
        return await operation(entity)
    except EntityNotFoundError as e:
        logger.debug(f"Ignoring missing entity: {e}")
        return None


async def run_in_waves(
    operation: Callable[[T], Awaitable[Any]],
    entities: Iterable[T],
    max_in_flight: int = DEFAULT_MAX_IN_FLIGHT
) -> List[Any]:
    """Apply operation to every entity, max_in_flight at a time.

    Args:
        operation: Async callable invoked once per entity
        entities: Entities in the order they should be processed
        max_in_flight: Size of each wave

    Returns:
        Results in input order

    Raises:
        ValidationError: If entities is None or max_in_flight is below 1
        Exception: The first failure of the first failing wave
    """
    if entities is None:
        raise ValidationError("Entities cannot be None")
    if max_in_flight < 1:
        raise ValidationError(f"max_in_flight must be at least 1, got {max_in_flight}")

    pending = list(entities)
    results = []

    for start in range(0, len(pending), max_in_flight):
        wave = pending[start:start + max_in_flight]
        tasks = [asyncio.create_task(operation(entity)) for entity in wave]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        if failures:
            wave_number = start // max_in_flight + 1
            for dropped in failures[1:]:
                logger.debug(f"Additional failure in wave {wave_number} not raised: {dropped!r}")
            logger.debug(f"Wave {wave_number} failed, {len(pending) - start - len(wave)} entities not attempted")
            raise failures[0]

        results.extend(outcomes)

    return results
