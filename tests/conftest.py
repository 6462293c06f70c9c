"""
Shared pytest fixtures.

Every test gets a fresh in-memory SQLite database inside a pushed app
context, so fixtures and test-client requests share one session.
"""
import pytest
from datetime import datetime, timedelta

from creatorconnect import create_app
from creatorconnect.extensions import db
from creatorconnect.models import (
    Brand,
    Creator,
    Campaign,
    CampaignParticipant,
    BrandTier,
    Membership,
)


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sample_brand(app):
    brand = Brand(name='Glow Skincare', slug='glow-skincare', coupon_prefix='GLOW')
    db.session.add(brand)
    db.session.commit()
    return brand


@pytest.fixture
def other_brand(app):
    brand = Brand(name='Trail Outfitters', slug='trail-outfitters')
    db.session.add(brand)
    db.session.commit()
    return brand


@pytest.fixture
def make_creator(app):
    counter = {'n': 0}

    def _make(handle=None):
        counter['n'] += 1
        creator = Creator(
            name=f'Creator {counter["n"]}',
            handle=handle or f'creator{counter["n"]}',
            email=f'creator{counter["n"]}@example.com',
        )
        db.session.add(creator)
        db.session.commit()
        return creator

    return _make


@pytest.fixture
def sample_creator(make_creator):
    return make_creator('maya.makes')


@pytest.fixture
def sample_campaign(sample_brand):
    campaign = Campaign(brand_id=sample_brand.id, name='Summer Glow UGC', status='open')
    db.session.add(campaign)
    db.session.commit()
    return campaign


@pytest.fixture
def sample_tiers(sample_brand):
    tiers = [
        BrandTier(brand_id=sample_brand.id, tier_name='Bronze', sort_order=1, min_points=0, color='#cd7f32'),
        BrandTier(brand_id=sample_brand.id, tier_name='Silver', sort_order=2, min_points=500, color='#c0c0c0'),
        BrandTier(brand_id=sample_brand.id, tier_name='Gold', sort_order=3, min_points=2000, color='#d4af37'),
    ]
    db.session.add_all(tiers)
    db.session.commit()
    return {t.tier_name: t for t in tiers}


@pytest.fixture
def sample_membership(sample_brand, sample_creator):
    membership = Membership(
        brand_id=sample_brand.id,
        creator_id=sample_creator.id,
        status='active',
        source='invite',
        points_cache=0,
    )
    db.session.add(membership)
    db.session.commit()
    return membership


@pytest.fixture
def sample_participant(sample_campaign, sample_creator, sample_membership):
    participant = CampaignParticipant(
        campaign_id=sample_campaign.id,
        creator_id=sample_creator.id,
        status='accepted',
        accepted_at=datetime.utcnow() - timedelta(days=3),
    )
    db.session.add(participant)
    db.session.commit()
    return participant


@pytest.fixture
def brand_headers(sample_brand):
    return {
        'X-Brand-ID': str(sample_brand.id),
        'X-Operator-Email': 'ops@glow.example',
        'Content-Type': 'application/json',
    }


@pytest.fixture
def creator_headers(sample_creator):
    return {
        'X-Creator-ID': str(sample_creator.id),
        'Content-Type': 'application/json',
    }
