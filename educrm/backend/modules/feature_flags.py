from typing import Any, Dict, List, Optional


class FeatureFlags:
    """
    Read-only view over a school's `features` JSON column.

    Each feature maps to a dict such as {"enabled": true, "qr_code_scanning": false}.
    A feature counts as enabled only when its "enabled" key is literally true.
    """

    def __init__(self, features: Optional[Dict[str, Any]]):
        self._features = features or {}

    def is_enabled(self, feature: str, sub_feature: Optional[str] = None) -> bool:
        config = self._features.get(feature)
        if not isinstance(config, dict):
            return False
        if sub_feature:
            return config.get(sub_feature) is True
        return config.get("enabled") is True

    def get_config(self, feature: str) -> Optional[Dict[str, Any]]:
        return self._features.get(feature) or None

    def has_all(self, *features: str) -> bool:
        return all(self.is_enabled(f) for f in features)

    def has_any(self, *features: str) -> bool:
        return any(self.is_enabled(f) for f in features)

    def get_all_enabled_features(self) -> List[str]:
        return [key for key in self._features if self.is_enabled(key)]

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._features)
