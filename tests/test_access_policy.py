"""
Role visibility - the single predicate behind the menu and the API gates.
"""

import pytest

from ase_fidel.core.exceptions import PermissionDeniedError
from ase_fidel.models.auth import VALID_ROLES
from ase_fidel.services import access_policy


class TestIsVisible:
    @pytest.mark.parametrize("roles", [None, [], ()])
    def test_unrestricted_item_visible_to_everyone(self, roles):
        for role in VALID_ROLES:
            assert access_policy.is_visible(role, roles) is True

    def test_restricted_item(self):
        assert access_policy.is_visible("VISUALIZADOR", ["SUPER_ADMIN"]) is False
        assert access_policy.is_visible("SUPER_ADMIN", ["SUPER_ADMIN"]) is True
        assert access_policy.is_visible("GERENTE", ["SUPER_ADMIN", "ADMIN", "GERENTE"]) is True

    def test_missing_role_only_sees_unrestricted(self):
        assert access_policy.is_visible(None, None) is True
        assert access_policy.is_visible(None, ["ADMIN"]) is False


class TestMenu:
    def _keys(self, role):
        return [item["key"] for item in access_policy.filter_menu(role)]

    def test_admin_sees_everything(self):
        assert self._keys("SUPER_ADMIN") == [
            "dashboard", "ase_new", "ase_my", "ase_all", "cadastros", "relatorios", "logs",
        ]

    def test_gerente_sees_all_ase_but_not_logs(self):
        keys = self._keys("GERENTE")
        assert "ase_all" in keys
        assert "logs" not in keys

    def test_default_role_for_missing_profile(self):
        assert self._keys(None) == self._keys("VISUALIZADOR")
        assert "ase_all" not in self._keys(None)

    def test_children_kept_and_roles_stripped(self):
        cadastros = next(i for i in access_policy.filter_menu("ENCARREGADO") if i["key"] == "cadastros")
        assert [c["key"] for c in cadastros["children"]][:3] == ["efetivo", "pessoas", "setores"]
        for item in access_policy.filter_menu("ADMIN"):
            assert "roles" not in item


class TestFeatureGates:
    def test_menu_and_gate_share_the_role_table(self):
        for role in VALID_ROLES:
            menu_has_all = "ase_all" in [i["key"] for i in access_policy.filter_menu(role)]
            assert menu_has_all == access_policy.can(role, "ase.all")

    def test_unknown_feature_denied(self):
        assert access_policy.can("SUPER_ADMIN", "nope.feature") is False

    def test_ensure_raises(self):
        access_policy.ensure("ADMIN", "ase.dispatch")
        with pytest.raises(PermissionDeniedError):
            access_policy.ensure("GERENTE", "ase.dispatch")

    def test_features_for(self):
        features = access_policy.features_for("COORDENADOR")
        assert "cadastros.manage" in features
        assert "ase.approve" not in features
