from typing import Any, Dict

from logging_config import logger


def upsert_document(collection, filter: Dict[str, Any], data: Dict[str, Any], entity_type: str = "document") -> str:
    """Replace the document matching ``filter`` or insert ``data`` when none matches.

    Returns ``"replaced"`` or ``"inserted"``. Store errors are logged and re-raised.
    """
    try:
        existing = collection.find_one(filter)
        if existing:
            collection.replace_one(filter, data)
            action = "replaced"
        else:
            collection.insert_one(data)
            action = "inserted"
        collection.save()
        logger.info(f"Saved {entity_type} → {action} ({filter})")
        return action
    except Exception as e:
        logger.error(f"Saving {entity_type} failed: {e}", exc_info=True)
        raise
