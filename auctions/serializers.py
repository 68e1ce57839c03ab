from rest_framework import serializers
from decimal import Decimal

from .clock import get_clock
from .models import Auction, AuctionDocument, AuctionParticipant, Bid, ParticipantStatus
from .participants import parse_phone_list
from .ranking import best_rank_by_bidder, rank_bids

TIME_INPUT_FORMATS = ['%H:%M', '%H:%M:%S', '%I:%M %p', '%I:%M%p']


class PhoneListField(serializers.Field):
    """Accepts a list, a JSON array string or a comma separated string of phones."""

    def to_internal_value(self, data):
        return parse_phone_list(data)

    def to_representation(self, value):
        return value


class AuctionCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    auction_date = serializers.DateField()
    start_time = serializers.TimeField(input_formats=TIME_INPUT_FORMATS)
    duration = serializers.IntegerField(min_value=1, help_text="Minutes")
    decremental_value = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    starting_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'),
                                              required=False, allow_null=True, default=None)
    currency = serializers.CharField(max_length=10, required=False, allow_blank=True)
    open_to_all = serializers.BooleanField(required=False, default=False)
    pre_bid_allowed = serializers.BooleanField(required=False, default=True)
    participants = PhoneListField(required=False, default=list)

    def validate_title(self, value):
        if not value.strip():
            raise serializers.ValidationError("Title cannot be blank.")
        return value.strip()


class PlaceBidSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))


class ExtendAuctionSerializer(serializers.Serializer):
    additional_minutes = serializers.IntegerField(min_value=1)


class DecrementalValueSerializer(serializers.Serializer):
    decremental_value = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))


class AddParticipantsSerializer(serializers.Serializer):
    participants = PhoneListField()

    def validate_participants(self, value):
        if not value:
            raise serializers.ValidationError("Provide at least one phone number.")
        return value


class ParticipantStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ParticipantStatus.choices)


class CancelAuctionSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class BidSerializer(serializers.ModelSerializer):
    bidder_name = serializers.CharField(source='bidder.person_name', read_only=True)
    company_name = serializers.CharField(source='bidder.company_name', read_only=True)

    class Meta:
        model = Bid
        fields = [
            'id', 'auction', 'bidder', 'bidder_name', 'company_name', 'amount',
            'placed_at', 'is_winning', 'is_pre_bid', 'status',
        ]
        read_only_fields = fields


class RankedBidSerializer(serializers.Serializer):
    def to_representation(self, instance):
        data = BidSerializer(instance.bid, context=self.context).data
        data['rank'] = instance.rank
        return data


class AuctionDocumentSerializer(serializers.ModelSerializer):
    file_url = serializers.SerializerMethodField()

    class Meta:
        model = AuctionDocument
        fields = ['id', 'file_name', 'file_type', 'file_url', 'uploaded_at']

    def get_file_url(self, obj):
        if not obj.file:
            return None
        request = self.context.get('request')
        url = obj.file.url
        return request.build_absolute_uri(url) if request else url


class ParticipantSerializer(serializers.ModelSerializer):
    person_name = serializers.CharField(source='user.person_name', read_only=True, allow_null=True)
    company_name = serializers.CharField(source='user.company_name', read_only=True, allow_null=True)
    rank = serializers.SerializerMethodField()
    best_bid = serializers.SerializerMethodField()

    class Meta:
        model = AuctionParticipant
        fields = [
            'id', 'user', 'phone_number', 'person_name', 'company_name',
            'status', 'invited_at', 'joined_at', 'rank', 'best_bid',
        ]
        read_only_fields = fields

    def _standing(self, obj):
        ranks = self.context.get('ranks') or {}
        return ranks.get(obj.user_id) if obj.user_id else None

    def get_rank(self, obj):
        standing = self._standing(obj)
        return standing[0] if standing else None

    def get_best_bid(self, obj):
        standing = self._standing(obj)
        return str(standing[1]) if standing else None


class AuctionListSerializer(serializers.ModelSerializer):
    auction_no = serializers.CharField(read_only=True)
    creator_name = serializers.CharField(source='created_by.display_name', read_only=True)
    formatted_start_time = serializers.SerializerMethodField()
    formatted_end_time = serializers.SerializerMethodField()
    time_status = serializers.SerializerMethodField()
    time_value = serializers.SerializerMethodField()

    class Meta:
        model = Auction
        fields = [
            'id', 'auction_no', 'title', 'status', 'auction_date', 'start_time', 'duration',
            'formatted_start_time', 'formatted_end_time', 'time_status', 'time_value',
            'currency', 'decremental_value', 'current_price', 'open_to_all', 'pre_bid_allowed',
            'created_by', 'creator_name', 'created_at',
        ]

    @property
    def clock(self):
        return self.context.get('clock') or get_clock()

    def get_formatted_start_time(self, obj):
        return self.clock.format_time(obj.start_time)

    def get_formatted_end_time(self, obj):
        return self.clock.format_time(self.clock.end_time_for(obj))

    def get_time_status(self, obj):
        return self.clock.countdown(obj).time_status

    def get_time_value(self, obj):
        return self.clock.countdown(obj).time_value


class AuctionDetailSerializer(AuctionListSerializer):
    time_remaining = serializers.SerializerMethodField()
    is_creator = serializers.SerializerMethodField()
    has_joined = serializers.SerializerMethodField()
    has_bid = serializers.SerializerMethodField()
    creator_info = serializers.SerializerMethodField()
    winner_info = serializers.SerializerMethodField()
    participants = serializers.SerializerMethodField()
    bids = serializers.SerializerMethodField()
    documents = AuctionDocumentSerializer(many=True, read_only=True)
    statistics = serializers.SerializerMethodField()

    class Meta(AuctionListSerializer.Meta):
        fields = AuctionListSerializer.Meta.fields + [
            'description', 'starting_price', 'end_time', 'winner', 'time_remaining',
            'is_creator', 'has_joined', 'has_bid', 'creator_info', 'winner_info',
            'participants', 'bids', 'documents', 'statistics',
        ]

    def _user(self):
        request = self.context.get('request')
        return getattr(request, 'user', None)

    def _ranked(self, obj):
        cache = self.context.setdefault('_ranked', {})
        if obj.pk not in cache:
            cache[obj.pk] = rank_bids(obj.bids.active().select_related('bidder'))
        return cache[obj.pk]

    def get_time_remaining(self, obj):
        return self.clock.countdown(obj).seconds_remaining

    def get_is_creator(self, obj):
        user = self._user()
        return bool(user and obj.created_by_id == user.pk)

    def get_has_joined(self, obj):
        user = self._user()
        if not user or not user.is_authenticated:
            return False
        return obj.participants.filter(
            phone_number=user.phone_number,
            status__in=[ParticipantStatus.JOINED, ParticipantStatus.APPROVED],
        ).exists()

    def get_has_bid(self, obj):
        user = self._user()
        return bool(user and user.is_authenticated and any(r.bid.bidder_id == user.pk for r in self._ranked(obj)))

    def get_creator_info(self, obj):
        creator = obj.created_by
        return {
            'company_name': creator.company_name,
            'person_name': creator.person_name,
            'phone': creator.phone_number,
            'email': creator.email,
        }

    def get_winner_info(self, obj):
        winning = next((r.bid for r in self._ranked(obj) if r.bid.is_winning), None)
        if winning is None:
            return None
        return {
            'user_id': winning.bidder_id,
            'person_name': winning.bidder.person_name,
            'company_name': winning.bidder.company_name,
            'amount': str(winning.amount),
        }

    def get_participants(self, obj):
        context = dict(self.context, ranks=best_rank_by_bidder(self._ranked(obj)))
        rows = obj.participants.select_related('user').order_by('invited_at', 'id')
        return ParticipantSerializer(rows, many=True, context=context).data

    def get_bids(self, obj):
        return RankedBidSerializer(self._ranked(obj), many=True, context=self.context).data

    def get_statistics(self, obj):
        ranked = self._ranked(obj)
        amounts = [r.amount for r in ranked]
        participants = list(obj.participants.values_list('status', flat=True))
        return {
            'total_participants': len(participants),
            'active_participants': sum(1 for s in participants if s in (ParticipantStatus.JOINED,
                                                                          ParticipantStatus.APPROVED)),
            'total_bids': len(ranked),
            'unique_bidders': len({r.bid.bidder_id for r in ranked}),
            'highest_bid': str(max(amounts)) if amounts else None,
            'lowest_bid': str(min(amounts)) if amounts else None,
        }


class AdminAuctionSerializer(AuctionListSerializer):
    """List row for the admin console, with participant counts by status."""
    auctioneer_phone = serializers.CharField(source='created_by.phone_number', read_only=True)
    auctioneer_company = serializers.CharField(source='created_by.company_name', read_only=True)
    total_participants = serializers.IntegerField(read_only=True)
    joined_participants = serializers.IntegerField(read_only=True)
    invited_participants = serializers.IntegerField(read_only=True)
    declined_participants = serializers.IntegerField(read_only=True)

    class Meta(AuctionListSerializer.Meta):
        fields = AuctionListSerializer.Meta.fields + [
            'auctioneer_phone', 'auctioneer_company', 'winner', 'end_time',
            'total_participants', 'joined_participants', 'invited_participants', 'declined_participants',
        ]
