from __future__ import annotations

import random
from typing import Iterable, Optional

from api.schemas.shelters import ShelterRecord


def simulate_occupancy(
    records: Iterable[ShelterRecord], rng: Optional[random.Random] = None
) -> list[ShelterRecord]:
    """Display-only decorator: copies with a random `current_occupancy`.

    Occupancy is drawn uniformly from [0, capacity]. There is no real occupancy
    feed; the cached records are never modified and the value is never stored.
    """

    r = rng or random
    return [
        rec.model_copy(update={"current_occupancy": r.randint(0, rec.capacity)})
        for rec in records
    ]
