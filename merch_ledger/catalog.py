import logging

from sqlmodel import Session, select

from .errors import ItemNotFound
from .models import Item

logger = logging.getLogger(__name__)

DEFAULT_ITEMS = {
    "t-shirt": 80,
    "cup": 20,
    "book": 50,
    "pen": 10,
    "powerbank": 200,
    "hoody": 300,
    "umbrella": 200,
    "socks": 10,
    "wallet": 50,
    "pink-hoody": 500,
}


def get_by_name(session: Session, name: str) -> Item:
    item = session.exec(select(Item).where(Item.name == name)).first()
    if item is None:
        raise ItemNotFound(f"Item {name!r} does not exist", details={"item": name})
    return item


def seed_items(session: Session, items=None):
    """Insert catalog items that are not present yet. Existing prices are kept."""
    items = DEFAULT_ITEMS if items is None else items
    existing = set(session.exec(select(Item.name)).all())
    for name, price in items.items():
        if name in existing:
            continue
        session.add(Item(name=name, price=price))
        logger.info("seeded catalog item %s (price %d)", name, price)
    session.flush()
