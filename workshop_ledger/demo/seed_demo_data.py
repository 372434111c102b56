# workshop_ledger/demo/seed_demo_data.py

from typing import List

from workshop_ledger.config.logging import get_logger
from workshop_ledger.core.errors import ValidationError
from workshop_ledger.storage.models import Workshop
from workshop_ledger.storage.repository import LedgerRepository, initialize_schema

logger = get_logger(__name__)

DEFAULT_WORKSHOPS = [
    "01- ورشة عدنان",
    "02- ورشة بلال",
    "03- ورشة قيس",
    "04- ورشة زكرياء",
    "05- ورشة عمي براهيم",
    "06- ورشة المزابي",
    "07- ورشة الخير",
    "08- ورشة أشرف",
]


def seed_default_workshops(repository: LedgerRepository) -> List[Workshop]:
    """Insert the default workshops into an empty store.

    Does nothing when any workshop already exists.
    """
    if repository.count_workshops() > 0:
        logger.info("seed_skipped", reason="workshops already exist")
        return []

    created = []
    for name in DEFAULT_WORKSHOPS:
        try:
            created.append(repository.create_workshop(name))
        except ValidationError:
            continue
    logger.info("seed_completed", created=len(created))
    return created


if __name__ == "__main__":
    initialize_schema()
    seeded = seed_default_workshops(LedgerRepository())
    print(f"Seeded {len(seeded)} workshops")
