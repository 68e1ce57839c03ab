# auctions/models.py
from django.db import models
from django.conf import settings
from django.core.validators import MinValueValidator
from decimal import Decimal


class AuctionStatus(models.TextChoices):
    UPCOMING = 'upcoming', 'Upcoming'    # scheduled, start instant not reached
    LIVE = 'live', 'Live'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'  # admin action only


OPEN_STATUSES = (AuctionStatus.UPCOMING, AuctionStatus.LIVE)
CLOSED_STATUSES = (AuctionStatus.COMPLETED, AuctionStatus.CANCELLED)


class Auction(models.Model):
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    # civil date/time in settings.AUCTION_TIME_ZONE
    auction_date = models.DateField()
    start_time = models.TimeField()
    duration = models.PositiveIntegerField(help_text="Minutes")
    end_time = models.DateTimeField(null=True, blank=True)

    currency = models.CharField(max_length=10, default='INR')
    decremental_value = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0'))])
    starting_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True,
                                         validators=[MinValueValidator(Decimal('0.01'))])
    current_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))

    status = models.CharField(max_length=20, choices=AuctionStatus.choices, default=AuctionStatus.UPCOMING)
    open_to_all = models.BooleanField(default=False)
    pre_bid_allowed = models.BooleanField(default=True)

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='auctions')
    winner = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
                               related_name='won_auctions')

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'auction_date', 'start_time'], name='auctions_au_status_4b1c2e_idx'),
            models.Index(fields=['created_by', 'status'], name='auctions_au_created_9d7f3a_idx'),
        ]

    def __str__(self):
        return f"{self.title} (#{self.id})"

    @property
    def starting_ceiling(self):
        """Highest amount the first bid may carry."""
        if self.starting_price is not None:
            return self.starting_price
        return self.decremental_value

    @property
    def auction_no(self):
        return f"AUC{self.id:03d}" if self.id else None

    @property
    def is_open(self):
        return self.status in OPEN_STATUSES


class ParticipantStatus(models.TextChoices):
    INVITED = 'invited', 'Invited'
    JOINED = 'joined', 'Joined'
    APPROVED = 'approved', 'Approved'
    DECLINED = 'declined', 'Declined'
    REMOVED = 'removed', 'Removed'


class AuctionParticipant(models.Model):
    auction = models.ForeignKey(Auction, on_delete=models.CASCADE, related_name='participants')
    # null until the phone number resolves to a registered account
    user = models.ForeignKey(settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL,
                             related_name='auction_participations')
    phone_number = models.CharField(max_length=20)
    status = models.CharField(max_length=20, choices=ParticipantStatus.choices, default=ParticipantStatus.INVITED)
    invited_at = models.DateTimeField(auto_now_add=True)
    joined_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-invited_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['auction', 'phone_number'], name='unique_auction_participant_phone'),
        ]

    def __str__(self):
        return f"{self.phone_number} on {self.auction_id} ({self.status})"


class BidStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'


class BidQuerySet(models.QuerySet):
    def active(self):
        return self.exclude(status=BidStatus.REJECTED)

    def ranked(self):
        # lowest amount first, earliest submission breaks ties
        return self.order_by('amount', 'placed_at', 'id')

    def winning(self):
        return self.filter(is_winning=True)


class Bid(models.Model):
    auction = models.ForeignKey(Auction, on_delete=models.CASCADE, related_name='bids')
    bidder = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='bids')
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    placed_at = models.DateTimeField()
    is_winning = models.BooleanField(default=False)
    is_pre_bid = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=BidStatus.choices, default=BidStatus.APPROVED)

    objects = BidQuerySet.as_manager()

    class Meta:
        ordering = ['amount', 'placed_at', 'id']
        indexes = [
            models.Index(fields=['auction', 'amount', 'placed_at'], name='auctions_bi_auction_2c8e51_idx'),
            models.Index(fields=['auction', 'is_winning'], name='auctions_bi_auction_7a0d94_idx'),
        ]

    def __str__(self):
        return f"Bid {self.amount} on {self.auction_id} by {self.bidder_id}"


class AuctionDocument(models.Model):
    auction = models.ForeignKey(Auction, on_delete=models.CASCADE, related_name='documents')
    file = models.FileField(upload_to='auction_documents/')
    file_name = models.CharField(max_length=255)
    file_type = models.CharField(max_length=100, blank=True)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-uploaded_at']

    def __str__(self):
        return self.file_name
