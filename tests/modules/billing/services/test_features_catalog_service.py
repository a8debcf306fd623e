import pytest

from src.core.utils.exceptions import DuplicateError
from src.modules.billing.enums.feature_type import FeatureType
from src.modules.billing.exceptions import FeatureNotFoundError
from src.modules.billing.models.feature import FeatureCreate, FeatureUpdate


@pytest.fixture
def catalog(features_catalog):
    features_catalog.create_feature(
        FeatureCreate(feature_id="projects", name="Projects", unit="project", category="core")
    )
    features_catalog.create_feature(
        FeatureCreate(feature_id="sso", name="Single sign-on", feature_type=FeatureType.BOOLEAN, category="security")
    )
    features_catalog.create_feature(
        FeatureCreate(feature_id="api_calls", name="API calls", category="core")
    )
    return features_catalog


def test_register_duplicate(catalog):
    with pytest.raises(DuplicateError):
        catalog.create_feature(FeatureCreate(feature_id="sso", name="SSO again"))


def test_invalid_feature_id():
    with pytest.raises(ValueError):
        FeatureCreate(feature_id="API Calls", name="bad")


def test_get_feature(catalog):
    feature = catalog.get_feature("projects")

    assert feature.unit == "project"
    assert feature.feature_type == FeatureType.QUOTA


def test_get_unknown_feature(catalog):
    with pytest.raises(FeatureNotFoundError):
        catalog.get_feature("audit_log")

    assert catalog.find_feature("audit_log") is None


def test_filters(catalog):
    assert [f.feature_id for f in catalog.get_all_features()] == ["api_calls", "projects", "sso"]
    assert [f.feature_id for f in catalog.get_all_features(category="core")] == ["api_calls", "projects"]
    assert [f.feature_id for f in catalog.get_all_features(feature_type=FeatureType.BOOLEAN)] == ["sso"]


def test_update_feature(catalog):
    updated = catalog.update_feature("sso", FeatureUpdate(is_premium=True))

    assert updated.is_premium
    assert updated.name == "Single sign-on"


def test_update_unknown_feature(catalog):
    with pytest.raises(FeatureNotFoundError):
        catalog.update_feature("audit_log", FeatureUpdate(name="Audit"))
