# Overview: Pytest coverage for accessible-shop scoping helpers.

import pytest
from shopcore.errors import InvalidShopId, UnauthorizedShopAccess
from shopcore.services.tenant_service import (
    get_accessible_shop_ids,
    normalize_shop_ids,
    require_shop_access,
    resolve_shop_filter,
)


class TestShopFilter:
    """resolve_shop_filter narrows to one shop or keeps the full list."""

    def test_no_requested_shop_returns_all_accessible(self):
        assert resolve_shop_filter([3, 1, 3]) == [1, 3]

    def test_requested_shop_inside_list(self):
        assert resolve_shop_filter([1, 2], "2") == [2]

    def test_requested_shop_outside_list(self):
        with pytest.raises(UnauthorizedShopAccess):
            resolve_shop_filter([1, 2], 9)

    def test_requested_shop_not_an_id(self):
        with pytest.raises(InvalidShopId):
            resolve_shop_filter([1, 2], "abc")

    def test_normalize_rejects_non_positive(self):
        with pytest.raises(InvalidShopId):
            normalize_shop_ids([1, 0])

    def test_require_shop_access_missing(self):
        with pytest.raises(InvalidShopId):
            require_shop_access(None, [1])


class TestAccessibleShops:
    """A head shop and its branches form one access group."""

    def test_head_shop_sees_branches(self, db_session, shop_a, branch_a, shop_b):
        assert get_accessible_shop_ids(shop_a.id) == sorted([shop_a.id, branch_a.id])

    def test_branch_sees_head_shop(self, db_session, shop_a, branch_a):
        assert get_accessible_shop_ids(branch_a.id) == sorted([shop_a.id, branch_a.id])

    def test_other_tenant_is_isolated(self, db_session, shop_a, branch_a, shop_b):
        assert get_accessible_shop_ids(shop_b.id) == [shop_b.id]

    def test_unknown_shop(self, db_session):
        with pytest.raises(InvalidShopId):
            get_accessible_shop_ids(99999)
