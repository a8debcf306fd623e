from typing import List, Optional

from src.core.utils import get_logger
from src.core.utils.exceptions import DuplicateError
from src.modules.billing.enums.feature_type import FeatureType
from src.modules.billing.exceptions import FeatureNotFoundError
from src.modules.billing.models.feature import Feature, FeatureCreate, FeatureUpdate
from src.modules.billing.repositories.interfaces import IFeatureRepository

logger = get_logger(__name__)


class FeaturesCatalogService:
    """
    Manages the global feature catalog.
    """

    def __init__(self, feature_repository: IFeatureRepository):
        self.feature_repo = feature_repository

    def create_feature(self, feature: FeatureCreate) -> Feature:
        """
        Register a feature in the catalog.

        Raises:
            DuplicateError: if the feature id is already registered
        """
        if self.feature_repo.find_by_id(feature.feature_id):
            raise DuplicateError(
                f"Feature '{feature.feature_id}' already exists", feature_id=feature.feature_id
            )

        created = self.feature_repo.create(feature.model_dump())
        logger.info("Feature registered", feature_id=created.feature_id, type=created.feature_type.value)
        return created

    def get_feature(self, feature_id: str) -> Feature:
        feature = self.feature_repo.find_by_id(feature_id)
        if not feature:
            raise FeatureNotFoundError(f"Feature '{feature_id}' not found in catalog", feature_id=feature_id)
        return feature

    def find_feature(self, feature_id: str) -> Optional[Feature]:
        return self.feature_repo.find_by_id(feature_id)

    def get_all_features(
        self,
        category: Optional[str] = None,
        feature_type: Optional[FeatureType] = None,
    ) -> List[Feature]:
        features = (
            self.feature_repo.find_by_category(category)
            if category
            else self.feature_repo.find_all()
        )
        if feature_type:
            features = [f for f in features if f.feature_type == feature_type]
        return features

    def update_feature(self, feature_id: str, changes: FeatureUpdate) -> Feature:
        self.get_feature(feature_id)
        return self.feature_repo.update(feature_id, changes.model_dump(exclude_unset=True))
