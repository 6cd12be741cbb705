"""
Tenant Scoping: accessible shop ids

WHY: Every core entry point receives the list of shop ids the caller may act
on. The core trusts that list and never re-derives it, except for the HTTP
layer which builds it once per request via get_accessible_shop_ids().

SECURITY INVARIANTS:
1. A shop id taken from client input is used only after it is found in the
   accessible list (resolve_shop_filter / require_shop_access)
2. Queries touching shop-owned rows filter by the accessible list
3. A shop outside the list is reported as unauthorized, never silently
   widened to "all shops"

USAGE:
    shop_ids = resolve_shop_filter(accessible_shop_ids, request.args.get("shopId"))
    query = query.filter(Order.shop_id.in_(shop_ids))
"""

from __future__ import annotations

from ..errors import InvalidShopId, UnauthorizedShopAccess
from ..extensions import db
from ..models import Shop


def _as_shop_id(value) -> int:
    if isinstance(value, bool):
        raise InvalidShopId("Invalid shop id", details={"shop_id": value})
    try:
        shop_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidShopId("Invalid shop id", details={"shop_id": value})
    if shop_id <= 0:
        raise InvalidShopId("Invalid shop id", details={"shop_id": value})
    return shop_id


def normalize_shop_ids(shop_ids) -> list[int]:
    """Deduplicate and sort; rejects anything that is not a positive integer."""
    if shop_ids is None:
        return []
    if isinstance(shop_ids, (int, str)):
        shop_ids = [shop_ids]
    return sorted({_as_shop_id(value) for value in shop_ids})


def resolve_shop_filter(accessible_shop_ids, requested=None) -> list[int]:
    """
    Narrow a query to one requested shop, or to all accessible shops.

    Raises:
        InvalidShopId: requested value is not a shop id
        UnauthorizedShopAccess: requested shop is outside the accessible list
    """
    accessible = normalize_shop_ids(accessible_shop_ids)
    if requested is None or (isinstance(requested, str) and not requested.strip()):
        return accessible
    shop_id = _as_shop_id(requested)
    if shop_id not in accessible:
        raise UnauthorizedShopAccess(
            "You do not have access to this shop",
            details={"shop_id": shop_id},
        )
    return [shop_id]


def require_shop_access(shop_id, accessible_shop_ids) -> int:
    if shop_id is None:
        raise InvalidShopId("shop_id is required")
    return resolve_shop_filter(accessible_shop_ids, shop_id)[0]


def get_accessible_shop_ids(shop_id) -> list[int]:
    """
    Shops a user of `shop_id` may operate on.

    A head shop and its branches form one group: the result is the group root
    plus every active shop whose parent is that root. The caller's own shop
    is always included.
    """
    shop = db.session.get(Shop, _as_shop_id(shop_id))
    if shop is None:
        raise InvalidShopId("Shop not found", details={"shop_id": shop_id})

    root_id = shop.parent_shop_id or shop.id
    branch_ids = [
        row.id
        for row in db.session.query(Shop.id)
        .filter(Shop.parent_shop_id == root_id, Shop.is_active.is_(True))
        .all()
    ]
    return sorted({shop.id, root_id, *branch_ids})
