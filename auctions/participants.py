# auctions/participants.py
import json
import logging

from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from rest_framework.exceptions import ValidationError

from notifications.utils import notify

from .clock import get_clock
from .exceptions import AuctionAccessDenied, AuctionNotFound, InvariantViolation, ParticipantNotFound
from .models import Auction, AuctionParticipant, ParticipantStatus

logger = logging.getLogger(__name__)

User = get_user_model()


def parse_phone_list(raw):
    """
    Normalise a participant list into unique phone numbers, keeping the
    original order. Accepts a list, a JSON array string or a comma separated
    string.
    """
    if raw is None or raw == '':
        return []
    if isinstance(raw, str):
        text = raw.strip()
        try:
            loaded = json.loads(text)
        except ValueError:
            loaded = None
        if isinstance(loaded, list):
            items = loaded
        elif isinstance(loaded, (int, str)) and not isinstance(loaded, bool):
            items = [loaded]
        else:
            items = text.strip('[]').split(',')
    elif isinstance(raw, (list, tuple, set)):
        items = list(raw)
    else:
        raise ValidationError({'participants': 'Expected a list of phone numbers.'})

    phones = []
    for item in items:
        phone = str(item).strip().strip('"\'').strip()
        if phone and phone not in phones:
            phones.append(phone)
    return phones


def get_auction(auction_id, lock=False):
    qs = Auction.objects.select_for_update() if lock else Auction.objects.all()
    try:
        return qs.get(pk=auction_id)
    except Auction.DoesNotExist:
        raise AuctionNotFound()


def can_manage(auction, user):
    return bool(user and (auction.created_by_id == user.pk or getattr(user, 'is_admin', False)))


def invite_participants(auction, phones):
    """Create invitation rows for phones not yet on the auction. Returns the new rows."""
    phones = parse_phone_list(phones)
    if not phones:
        return []
    existing = set(auction.participants.filter(phone_number__in=phones).values_list('phone_number', flat=True))
    users = {u.phone_number: u for u in User.objects.filter(phone_number__in=phones)}
    created = AuctionParticipant.objects.bulk_create([
        AuctionParticipant(auction=auction, phone_number=phone, user=users.get(phone))
        for phone in phones if phone not in existing
    ])
    if created:
        logger.info("Invited %s participants to auction %s", len(created), auction.pk)
    return created


def notify_invited(auction, created):
    if not created:
        return
    registered = [p.user_id for p in created if p.user_id]
    transaction.on_commit(lambda: notify(
        registered, 'added_to_auction', auction,
        f"You have been invited to auction \"{auction.title}\".",
        {'auction_id': auction.pk},
    ))
    transaction.on_commit(lambda: notify(
        auction.created_by_id, 'participant_added', auction,
        f"{len(created)} participant(s) added to \"{auction.title}\".",
        {'auction_id': auction.pk, 'count': len(created)},
    ))


@transaction.atomic
def add_participants(auction_id, phones, actor):
    auction = get_auction(auction_id, lock=True)
    if not can_manage(auction, actor):
        raise AuctionAccessDenied('Only the auction creator can add participants')
    if not auction.is_open:
        raise InvariantViolation(f"Cannot add participants to a {auction.status} auction")
    phones = parse_phone_list(phones)
    if not phones:
        raise ValidationError({'participants': 'Provide at least one phone number.'})
    created = invite_participants(auction, phones)
    notify_invited(auction, created)
    return {'added': len(created), 'skipped': len(phones) - len(created)}


@transaction.atomic
def join_auction(auction_id, user, clock=None):
    clock = clock or get_clock()
    auction = get_auction(auction_id)
    if not auction.is_open:
        raise InvariantViolation(f"Cannot join a {auction.status} auction")

    participant = (AuctionParticipant.objects.select_for_update()
                   .filter(auction=auction, phone_number=user.phone_number).first())
    if participant is None:
        if not auction.open_to_all:
            raise AuctionAccessDenied('You are not invited to this auction')
        return AuctionParticipant.objects.create(
            auction=auction, user=user, phone_number=user.phone_number,
            status=ParticipantStatus.JOINED, joined_at=clock.now(),
        )

    if participant.status in (ParticipantStatus.REMOVED, ParticipantStatus.DECLINED):
        raise AuctionAccessDenied(f"You cannot join this auction ({participant.status})")
    if participant.status == ParticipantStatus.INVITED:
        participant.status = ParticipantStatus.JOINED
        participant.joined_at = clock.now()
    participant.user = user
    participant.save(update_fields=['status', 'joined_at', 'user'])
    return participant


def register_bidder(auction_id, user, clock=None):
    """
    Make sure a bidder appears on the participant list. Best effort: a failure
    is logged and never propagates to the bid that triggered it.
    """
    clock = clock or get_clock()
    try:
        with transaction.atomic():
            participant, created = AuctionParticipant.objects.get_or_create(
                auction_id=auction_id, phone_number=user.phone_number,
                defaults={'user': user, 'status': ParticipantStatus.APPROVED, 'joined_at': clock.now()},
            )
            if not created and participant.user_id is None:
                participant.user = user
                participant.save(update_fields=['user'])
            return participant
    except DatabaseError:
        logger.warning("Could not register bidder %s on auction %s", user.pk, auction_id, exc_info=True)
        return None


@transaction.atomic
def update_participant_status(auction_id, participant_id, new_status, actor, clock=None):
    clock = clock or get_clock()
    if not getattr(actor, 'is_admin', False):
        raise AuctionAccessDenied('Admin access required')
    if new_status not in ParticipantStatus.values:
        raise ValidationError({'status': f"Must be one of: {', '.join(ParticipantStatus.values)}"})
    try:
        participant = AuctionParticipant.objects.select_for_update().get(pk=participant_id, auction_id=auction_id)
    except AuctionParticipant.DoesNotExist:
        raise ParticipantNotFound()

    participant.status = new_status
    if new_status in (ParticipantStatus.JOINED, ParticipantStatus.APPROVED) and participant.joined_at is None:
        participant.joined_at = clock.now()
    participant.save(update_fields=['status', 'joined_at'])
    logger.info("Participant %s on auction %s set to %s by %s", participant.pk, auction_id, new_status, actor.pk)
    return participant


def list_participants(auction_id):
    auction = get_auction(auction_id)
    return auction, auction.participants.select_related('user').order_by('invited_at', 'id')


def is_removed(auction, user):
    return AuctionParticipant.objects.filter(
        auction=auction, phone_number=user.phone_number, status=ParticipantStatus.REMOVED,
    ).exists()


def link_invitations(user):
    """Attach a newly registered account to invitations sent to its phone number."""
    if not user.phone_number:
        return 0
    linked = AuctionParticipant.objects.filter(phone_number=user.phone_number, user__isnull=True).update(user=user)
    if linked:
        logger.info("Linked %s pending invitations to user %s", linked, user.pk)
    return linked
