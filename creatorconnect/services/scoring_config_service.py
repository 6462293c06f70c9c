"""
Scoring configuration service.

Reads and replaces a brand's scoring rules and caps. Reads fall back to the
platform defaults in app config so a brand that never saved settings still
scores creators.
"""
from decimal import Decimal
from typing import Any, Dict, Tuple
from flask import current_app

from ..extensions import db
from ..models import Brand, BrandScoringRules, BrandScoringCaps, Campaign, CampaignScoringRules
from ..scoring.rules import ScoringRuleSet, ScoringCaps, default_rules, default_caps, validate_overrides
from ..utils.exceptions import BrandNotFoundError, CampaignNotFoundError, ConfigurationMissingError


class ScoringConfigService:
    """
    Per-brand scoring settings.

    Usage:
        service = ScoringConfigService(brand_id)
        rules, is_default = service.get_rules()
        service.save_rules(request.json, updated_by='ops@brand.com')
    """

    def __init__(self, brand_id: int):
        self.brand_id = brand_id

    def _get_brand(self) -> Brand:
        brand = Brand.query.get(self.brand_id)
        if not brand:
            raise BrandNotFoundError(self.brand_id)
        return brand

    # ==================== Rules ====================

    def get_rules(self, campaign_id: int = None) -> Tuple[ScoringRuleSet, bool]:
        """
        Rule set in effect for the brand, with the campaign's overrides applied
        when campaign_id is given.

        Returns:
            (rule set, True if the brand part is the platform default)

        Raises:
            ConfigurationMissingError: no saved rules and defaults are disabled
        """
        row = BrandScoringRules.query.filter_by(brand_id=self.brand_id).first()
        if row:
            rules, is_default = row.to_rule_set(), False
        elif not current_app.config.get('SCORING_DEFAULTS_ENABLED', True):
            raise ConfigurationMissingError(self.brand_id)
        else:
            rules, is_default = default_rules(current_app.config), True

        if campaign_id is not None:
            rules = rules.merged(self.get_campaign_overrides(campaign_id))
        return rules, is_default

    def save_rules(self, data: Dict[str, Any], updated_by: str = None) -> ScoringRuleSet:
        """
        Replace the brand's rules with a full payload.

        Validation runs before anything is written; an invalid payload leaves
        the stored rules untouched.
        """
        self._get_brand()
        rule_set = ScoringRuleSet.from_dict(data)

        row = BrandScoringRules.query.filter_by(brand_id=self.brand_id).first()
        if not row:
            row = BrandScoringRules(brand_id=self.brand_id)
            db.session.add(row)
        row.apply(rule_set)
        row.updated_by = updated_by
        db.session.commit()

        current_app.logger.info(
            f'[ScoringConfig] Brand {self.brand_id} rules replaced by {updated_by or "unknown"}'
        )
        return rule_set

    # ==================== Caps ====================

    def get_caps(self, campaign_id: int = None) -> Tuple[ScoringCaps, bool]:
        """Caps in effect, and whether the brand part is the platform default."""
        row = BrandScoringCaps.query.filter_by(brand_id=self.brand_id).first()
        if row:
            caps, is_default = row.to_caps(), False
        else:
            caps, is_default = default_caps(current_app.config), True

        if campaign_id is not None:
            caps = caps.merged(self.get_campaign_overrides(campaign_id))
        return caps, is_default

    def save_caps(self, data: Dict[str, Any], updated_by: str = None) -> ScoringCaps:
        """Replace the brand's caps. Omitted caps become unlimited."""
        self._get_brand()
        caps = ScoringCaps.from_dict(data)

        row = BrandScoringCaps.query.filter_by(brand_id=self.brand_id).first()
        if not row:
            row = BrandScoringCaps(brand_id=self.brand_id)
            db.session.add(row)
        row.apply(caps)
        row.updated_by = updated_by
        db.session.commit()

        current_app.logger.info(
            f'[ScoringConfig] Brand {self.brand_id} caps replaced by {updated_by or "unknown"}'
        )
        return caps

    # ==================== Campaign overrides ====================

    def _get_campaign(self, campaign_id: int) -> Campaign:
        campaign = Campaign.query.filter_by(id=campaign_id, brand_id=self.brand_id).first()
        if not campaign:
            raise CampaignNotFoundError(campaign_id)
        return campaign

    def get_campaign_overrides(self, campaign_id: int) -> Dict[str, Any]:
        """Fields the campaign overrides; empty when it uses the brand's settings."""
        row = CampaignScoringRules.query.filter_by(campaign_id=campaign_id).first()
        return row.overrides() if row else {}

    def save_campaign_overrides(self, campaign_id: int, data: Dict[str, Any],
                                updated_by: str = None) -> Dict[str, Any]:
        """
        Merge a partial set of overrides into the campaign's. A null value
        clears that field. Nothing is written when any value is invalid.
        """
        self._get_campaign(campaign_id)
        values = validate_overrides(data)

        row = CampaignScoringRules.query.filter_by(campaign_id=campaign_id).first()
        merged = dict(row.overrides()) if row else {}
        merged.update(values)
        merged = {k: v for k, v in merged.items() if v is not None}

        # Raises ConfigurationMissingError before writing when no brand rules exist
        self.get_rules()

        if not row:
            row = CampaignScoringRules(campaign_id=campaign_id)
            db.session.add(row)
        row.apply(values)
        row.updated_by = updated_by
        db.session.commit()

        current_app.logger.info(
            f'[ScoringConfig] Campaign {campaign_id} overrides set by {updated_by or "unknown"}: '
            f'{sorted(merged)}'
        )
        return merged

    def clear_campaign_overrides(self, campaign_id: int) -> None:
        self._get_campaign(campaign_id)
        CampaignScoringRules.query.filter_by(campaign_id=campaign_id).delete(synchronize_session=False)
        db.session.commit()

    def campaign_to_dict(self, campaign_id: int) -> Dict[str, Any]:
        self._get_campaign(campaign_id)
        rules, _ = self.get_rules(campaign_id)
        caps, _ = self.get_caps(campaign_id)
        return {
            'campaign_id': campaign_id,
            'overrides': {
                k: float(v) if isinstance(v, Decimal) else v
                for k, v in self.get_campaign_overrides(campaign_id).items()
            },
            'rules': rules.to_dict(),
            'caps': caps.to_dict(),
        }

    def seed_defaults(self, updated_by: str = 'system') -> Dict[str, Any]:
        """Persist the platform defaults as the brand's own settings if none exist."""
        self._get_brand()
        created = []

        if not BrandScoringRules.query.filter_by(brand_id=self.brand_id).first():
            row = BrandScoringRules(brand_id=self.brand_id, updated_by=updated_by)
            row.apply(default_rules(current_app.config))
            db.session.add(row)
            created.append('rules')

        if not BrandScoringCaps.query.filter_by(brand_id=self.brand_id).first():
            row = BrandScoringCaps(brand_id=self.brand_id, updated_by=updated_by)
            row.apply(default_caps(current_app.config))
            db.session.add(row)
            created.append('caps')

        db.session.commit()
        return {'brand_id': self.brand_id, 'created': created}

    def to_dict(self) -> Dict[str, Any]:
        rules, rules_default = self.get_rules()
        caps, caps_default = self.get_caps()
        return {
            'brand_id': self.brand_id,
            'rules': rules.to_dict(),
            'rules_are_default': rules_default,
            'caps': caps.to_dict(),
            'caps_are_default': caps_default,
        }
