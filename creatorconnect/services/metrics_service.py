"""
Post metrics sync processor.

Each sync reports a post's current view/like/comment counts. Points are only
awarded for what changed since the last award:

- The first METRICS_MIN_BASELINE_SAMPLES syncs of a post seed its baseline
  and award nothing
- View points are awarded per 1,000-view milestone crossed
- A view or like jump larger than METRICS_SPIKE_FACTOR x the post's average
  delta flags the post for review; points still follow the brand's caps
- All metrics of one post share its max_points_per_post allowance
- Every award carries an event key built from the post and the new count,
  so replaying a sync cannot double count
"""
from datetime import datetime
from typing import Any, Dict, List
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Brand, Campaign, CampaignParticipant, Membership, PostMetricSnapshot
from ..scoring.calculator import validate_facts
from ..utils.exceptions import (
    CampaignNotFoundError,
    NotFoundError,
    InvalidEventFactsError,
    MembershipArchivedError,
    DuplicateEventError,
    ConcurrencyConflictError,
    ConfigurationMissingError,
)
from .points_service import PointsService

SUPPORTED_PLATFORMS = ('instagram', 'tiktok', 'youtube', 'facebook')


class MetricsService:
    """Metric snapshots and delta awards for one brand."""

    def __init__(self, brand_id: int):
        self.brand_id = brand_id
        self.points_service = PointsService(brand_id)

    # ==================== Sync ====================

    def sync_post_metrics(
        self,
        campaign_id: int,
        creator_id: int,
        platform: str,
        post_id: str,
        views: int,
        likes: int,
        comments: int
    ) -> Dict[str, Any]:
        """
        Store a metrics snapshot for a post and award any new points.

        Raises:
            InvalidEventFactsError: missing or negative counts, unknown platform
            MembershipArchivedError: creator's membership is archived
        """
        views = validate_facts('view_milestone', {'view_count': views})['view_count']
        likes = validate_facts('like', {'like_count': likes})['like_count']
        comments = validate_facts('comment', {'comment_count': comments})['comment_count']
        if platform not in SUPPORTED_PLATFORMS:
            raise InvalidEventFactsError(
                f"platform must be one of: {', '.join(SUPPORTED_PLATFORMS)}", field='platform'
            )
        if not post_id:
            raise InvalidEventFactsError('post_id is required', field='post_id')
        post_id = str(post_id)

        if not Campaign.query.filter_by(id=campaign_id, brand_id=self.brand_id).first():
            raise CampaignNotFoundError(campaign_id)
        participant = CampaignParticipant.query.filter_by(
            campaign_id=campaign_id, creator_id=creator_id, status='accepted'
        ).first()
        if not participant:
            raise NotFoundError('Campaign participant', creator_id)

        membership = Membership.query.filter_by(brand_id=self.brand_id, creator_id=creator_id).first()
        if membership and membership.is_archived:
            raise MembershipArchivedError(membership.id)

        snapshot = PostMetricSnapshot.query.filter_by(
            campaign_id=campaign_id, platform=platform, post_id=post_id
        ).first()
        if not snapshot:
            snapshot = PostMetricSnapshot(
                brand_id=self.brand_id,
                campaign_id=campaign_id,
                creator_id=creator_id,
                platform=platform,
                post_id=post_id,
                last_views=0,
                last_likes=0,
                last_comments=0,
                awarded_views=0,
                awarded_likes=0,
                awarded_comments=0,
                update_count=0,
                view_delta_sum=0,
                like_delta_sum=0,
                points_awarded=0,
            )
            db.session.add(snapshot)
        elif snapshot.creator_id != creator_id:
            raise InvalidEventFactsError(
                f'Post {platform}:{post_id} belongs to another creator', field='post_id'
            )

        # Counts can drop (deleted comments, platform corrections); never go backwards
        view_delta = max(0, views - snapshot.last_views)
        like_delta = max(0, likes - snapshot.last_likes)
        comment_delta = max(0, comments - snapshot.last_comments)

        previous_samples = snapshot.update_count
        if previous_samples > 1:
            spike_reason = self._spike_reason(snapshot, previous_samples - 1, view_delta, like_delta)
            if spike_reason:
                snapshot.flagged_for_review = True
                snapshot.flag_reason = spike_reason
                current_app.logger.warning(
                    f'[Metrics] Flagged {platform}:{post_id} for review: {snapshot.flag_reason}'
                )

        snapshot.last_views += view_delta
        snapshot.last_likes += like_delta
        snapshot.last_comments += comment_delta
        snapshot.update_count = previous_samples + 1
        if previous_samples > 0:
            snapshot.view_delta_sum += view_delta
            snapshot.like_delta_sum += like_delta
        snapshot.last_synced_at = datetime.utcnow()

        participant.total_views = (participant.total_views or 0) + view_delta
        participant.total_likes = (participant.total_likes or 0) + like_delta
        participant.total_comments = (participant.total_comments or 0) + comment_delta

        baseline = snapshot.update_count <= current_app.config.get('METRICS_MIN_BASELINE_SAMPLES', 3)
        if baseline:
            snapshot.awarded_views = snapshot.last_views
            snapshot.awarded_likes = snapshot.last_likes
            snapshot.awarded_comments = snapshot.last_comments
        db.session.commit()

        awards = [] if baseline else self.award_snapshot(snapshot)
        return {
            'success': True,
            'snapshot': snapshot.to_dict(),
            'baseline': baseline,
            'awards': awards,
            'points_status': 'pending' if any(a['status'] == 'pending' for a in awards) else 'awarded',
        }

    @staticmethod
    def _spike_reason(snapshot: PostMetricSnapshot, samples: int, view_delta: int, like_delta: int):
        """Reason string when this sync's views or likes jump far past the post's average."""
        spike_factor = current_app.config.get('METRICS_SPIKE_FACTOR', 10)
        average_views = snapshot.view_delta_sum / samples
        if average_views > 0 and view_delta > spike_factor * average_views:
            return f'View jump of {view_delta} vs average {average_views:.0f} per sync'
        average_likes = snapshot.like_delta_sum / samples
        if average_likes > 0 and like_delta > spike_factor * average_likes:
            return f'Like jump of {like_delta} vs average {average_likes:.0f} per sync'
        return None

    # ==================== Awards ====================

    def award_snapshot(self, snapshot: PostMetricSnapshot) -> List[Dict[str, Any]]:
        """
        Score the unawarded part of a snapshot, one metric per transaction.

        A metric whose scoring fails for an internal reason stays unawarded
        and is picked up by the next process_outstanding() run.
        """
        snapshot_id = snapshot.id
        prefix = f'{snapshot.platform}:{snapshot.post_id}'
        awards = []

        for metric in ('views', 'likes', 'comments'):
            snapshot = PostMetricSnapshot.query.get(snapshot_id)
            seen = getattr(snapshot, f'last_{metric}')
            awarded = getattr(snapshot, f'awarded_{metric}')

            if metric == 'views':
                milestones = seen // 1000 - awarded // 1000
                if milestones <= 0:
                    continue
                event_type, facts = 'view_milestone', {'view_count': milestones * 1000}
                event_key = f'{prefix}:views:{(seen // 1000) * 1000}'
            else:
                delta = seen - awarded
                if delta <= 0:
                    continue
                if metric == 'likes':
                    event_type, facts = 'like', {'like_count': delta}
                else:
                    event_type, facts = 'comment', {'comment_count': delta}
                event_key = f'{prefix}:{metric}:{seen}'

            award = {'metric': metric, 'event_type': event_type, 'event_key': event_key}
            try:
                outcome = self.points_service.record_event(
                    snapshot.creator_id,
                    event_type,
                    facts,
                    campaign_id=snapshot.campaign_id,
                    event_key=event_key,
                    ref_type='post',
                    ref_id=prefix,
                    created_by='system:metrics',
                    commit=False,
                )
                award.update(status='awarded', points=outcome['entry']['capped_points'])
            except DuplicateEventError:
                award.update(status='duplicate', points=0)
            except MembershipArchivedError:
                award.update(status='skipped', points=0)
            except (ConcurrencyConflictError, ConfigurationMissingError) as e:
                current_app.logger.error(f'[Metrics] Award for {event_key} deferred: {e.message}')
                award.update(status='pending', points=0)
                awards.append(award)
                continue
            except SQLAlchemyError as e:
                current_app.logger.error(f'[Metrics] Award for {event_key} deferred: {e}')
                award.update(status='pending', points=0)
                awards.append(award)
                continue

            snapshot = PostMetricSnapshot.query.get(snapshot_id)
            setattr(snapshot, f'awarded_{metric}', seen)
            snapshot.points_awarded = (snapshot.points_awarded or 0) + award['points']
            db.session.commit()
            awards.append(award)

        return awards

    def process_outstanding(self, campaign_id: int = None) -> Dict[str, Any]:
        """Award every snapshot past its baseline that still has unawarded counts."""
        min_samples = current_app.config.get('METRICS_MIN_BASELINE_SAMPLES', 3)
        query = PostMetricSnapshot.query.filter(
            PostMetricSnapshot.brand_id == self.brand_id,
            PostMetricSnapshot.update_count > min_samples,
        )
        if campaign_id:
            query = query.filter(PostMetricSnapshot.campaign_id == campaign_id)

        results = {'brand_id': self.brand_id, 'snapshots': 0, 'awarded': 0, 'pending': 0}
        for snapshot in query.all():
            if not snapshot.has_unawarded:
                continue
            results['snapshots'] += 1
            for award in self.award_snapshot(snapshot):
                if award['status'] == 'awarded':
                    results['awarded'] += 1
                elif award['status'] == 'pending':
                    results['pending'] += 1
        return results

    def list_snapshots(self, campaign_id: int, flagged_only: bool = False) -> List[Dict[str, Any]]:
        if not Campaign.query.filter_by(id=campaign_id, brand_id=self.brand_id).first():
            raise CampaignNotFoundError(campaign_id)
        query = PostMetricSnapshot.query.filter_by(campaign_id=campaign_id)
        if flagged_only:
            query = query.filter_by(flagged_for_review=True)
        return [s.to_dict() for s in query.order_by(PostMetricSnapshot.id.asc()).all()]


def process_all_outstanding(brand_id: int = None, campaign_id: int = None) -> List[Dict[str, Any]]:
    """Run process_outstanding for one brand or every active brand."""
    if brand_id:
        brand_ids = [brand_id]
    else:
        brand_ids = [b.id for b in Brand.query.filter_by(is_active=True).all()]
    return [MetricsService(bid).process_outstanding(campaign_id=campaign_id) for bid in brand_ids]
