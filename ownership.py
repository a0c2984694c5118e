from errors import AccessDenied


def ensure_owner(record: dict, seller_id: str, message: str = "Access denied.") -> dict:
    """Raise AccessDenied unless `record` belongs to `seller_id`. Returns the record."""
    owner = record.get("seller")
    if isinstance(owner, dict):
        owner = owner.get("_id", owner.get("id"))
    if owner is None or str(owner) != str(seller_id):
        raise AccessDenied(message)
    return record
