"""Unit tests for the route access policy."""

import pytest

from credential_service.api.middleware import ROUTE_POLICIES, RoutePolicy, resolve_policy


class TestResolvePolicy:
    """Tests for resolve_policy."""

    @pytest.mark.parametrize(
        "path",
        [
            "/auth/register",
            "/auth/login",
            "/auth/refresh",
            "/auth/logout",
            "/auth/forgot-password",
            "/auth/reset-password",
        ],
    )
    def test_lifecycle_routes_are_public(self, path):
        assert resolve_policy("POST", path) is RoutePolicy.PUBLIC

    def test_me_is_protected(self):
        assert resolve_policy("GET", "/auth/me") is RoutePolicy.PROTECTED

    def test_unknown_route_defaults_to_protected(self):
        assert resolve_policy("DELETE", "/users/1") is RoutePolicy.PROTECTED

    def test_method_is_part_of_the_key(self):
        assert resolve_policy("GET", "/auth/login") is RoutePolicy.PROTECTED

    def test_trailing_slash_and_case_are_normalized(self):
        assert resolve_policy("post", "/auth/login/") is RoutePolicy.PUBLIC

    def test_preflight_is_public(self):
        assert resolve_policy("OPTIONS", "/auth/me") is RoutePolicy.PUBLIC

    def test_table_covers_every_auth_route(self):
        from credential_service.api.auth import router

        for route in router.routes:
            for method in route.methods - {"HEAD"}:
                assert (method, route.path) in ROUTE_POLICIES
