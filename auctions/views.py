# auctions/views.py
import logging

from rest_framework import permissions, status
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissionsUsers import IsSuperAdminOrAdmin

from .exceptions import AuctionAccessDenied
from .lifecycle import run_sweep
from .participants import add_participants, join_auction, list_participants, update_participant_status
from .ranking import best_rank_by_bidder, ranked_bids_for
from .serializers import (
    AddParticipantsSerializer, AdminAuctionSerializer, AuctionCreateSerializer, AuctionDetailSerializer,
    AuctionListSerializer, BidSerializer, CancelAuctionSerializer, DecrementalValueSerializer,
    ExtendAuctionSerializer, ParticipantSerializer, ParticipantStatusSerializer, PlaceBidSerializer,
    RankedBidSerializer,
)
from .services import (
    admin_get_auction, admin_list_auctions, approve_pre_bid, auction_timers, cancel_auction, close_auction,
    create_auction, delete_auction, extend_auction, get_auction_details, get_my_pre_bid, list_auction_bids,
    list_live_auctions, list_pre_bids, list_user_auctions, place_bid, reject_pre_bid, update_decremental_value,
    user_can_view,
)

logger = logging.getLogger(__name__)


class LiveAuctionListView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        qs = list_live_auctions()
        return Response({
            'count': qs.count(),
            'auctions': AuctionListSerializer(qs, many=True, context={'request': request}).data,
        })


class AuctionCreateView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        ser = AuctionCreateSerializer(data=request.data)
        if not ser.is_valid():
            return Response(ser.errors, status=400)
        auction = create_auction(request.user, **ser.validated_data)
        data = AuctionDetailSerializer(auction, context={'request': request}).data
        return Response({'message': 'Auction created successfully', 'auction': data}, status=201)


class MyAuctionsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        params = request.query_params
        qs = list_user_auctions(request.user, status=params.get('status'), kind=params.get('type'),
                                search=params.get('search'))
        return Response(AuctionListSerializer(qs, many=True, context={'request': request}).data)


class AuctionTimersView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response({'timers': auction_timers(request.user)})


class RefreshAuctionStatusesView(APIView):
    """Run the status sweep on demand."""
    permission_classes = [permissions.IsAuthenticated, IsSuperAdminOrAdmin]

    def post(self, request):
        result = run_sweep()
        return Response({
            'activated': result.activated,
            'completed': result.completed,
            'message': f'{result.changed} auction(s) updated',
        })


class AuctionDetailView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        auction = get_auction_details(pk, request.user)
        return Response(AuctionDetailSerializer(auction, context={'request': request}).data)


class PlaceBidView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        ser = PlaceBidSerializer(data=request.data)
        if not ser.is_valid():
            return Response(ser.errors, status=400)

        placement = place_bid(pk, request.user, ser.validated_data['amount'])
        return Response({
            'message': 'Pre-bid submitted' if placement.bid.is_pre_bid else 'Bid placed successfully',
            'bid': BidSerializer(placement.bid).data,
            'auction': {
                'id': placement.auction.pk,
                'status': placement.auction.status,
                'current_price': str(placement.auction.current_price),
            },
            'bids': RankedBidSerializer(placement.bids, many=True).data,
        }, status=201)


class CloseAuctionView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        auction, winning = close_auction(pk, request.user)
        return Response({
            'message': 'Auction closed successfully',
            'auction': AuctionDetailSerializer(auction, context={'request': request}).data,
            'winner': BidSerializer(winning).data if winning else None,
        })


class ExtendAuctionView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        ser = ExtendAuctionSerializer(data=request.data)
        if not ser.is_valid():
            return Response(ser.errors, status=400)
        auction = extend_auction(pk, ser.validated_data['additional_minutes'], request.user)
        return Response({
            'message': f"Auction extended by {ser.validated_data['additional_minutes']} minutes",
            'auction': AuctionListSerializer(auction, context={'request': request}).data,
        })


class DecrementalValueView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def patch(self, request, pk):
        ser = DecrementalValueSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        auction = update_decremental_value(pk, ser.validated_data['decremental_value'], request.user)
        return Response(AuctionListSerializer(auction, context={'request': request}).data)


class AuctionParticipantsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        auction, participants = list_participants(pk)
        if not user_can_view(auction, request.user):
            raise AuctionAccessDenied()
        ranks = best_rank_by_bidder(ranked_bids_for(auction))
        data = ParticipantSerializer(participants, many=True, context={'ranks': ranks}).data
        return Response({'count': len(data), 'participants': data})

    def post(self, request, pk):
        ser = AddParticipantsSerializer(data=request.data)
        if not ser.is_valid():
            return Response(ser.errors, status=400)
        result = add_participants(pk, ser.validated_data['participants'], request.user)
        return Response({'message': 'Participants added successfully', **result}, status=201)


class JoinAuctionView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, pk):
        participant = join_auction(pk, request.user)
        return Response({
            'message': 'Joined auction successfully',
            'participant': ParticipantSerializer(participant).data,
        })


class AuctionBidsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        auction, ranked = list_auction_bids(pk, request.user)
        return Response({
            'auction_id': auction.pk,
            'count': len(ranked),
            'bids': RankedBidSerializer(ranked, many=True).data,
        })


class MyPreBidView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        bid = get_my_pre_bid(pk, request.user)
        return Response({
            'has_prebid': bid is not None,
            'prebid': BidSerializer(bid).data if bid else None,
        })


class PreBidListView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, pk):
        auction, bids = list_pre_bids(pk, request.user)
        return Response({'auction_id': auction.pk, 'prebids': BidSerializer(bids, many=True).data})


class ApprovePreBidView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, bid_id):
        bid = approve_pre_bid(bid_id, request.user)
        return Response({'message': 'Pre-bid approved', 'bid': BidSerializer(bid).data})


class RejectPreBidView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, bid_id):
        auction = reject_pre_bid(bid_id, request.user)
        return Response({
            'message': 'Pre-bid rejected',
            'auction': {'id': auction.pk, 'current_price': str(auction.current_price)},
        })


class AdminCancelAuctionView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsSuperAdminOrAdmin]

    def post(self, request, pk):
        ser = CancelAuctionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        auction = cancel_auction(pk, request.user, reason=ser.validated_data['reason'])
        return Response({'message': 'Auction cancelled', 'status': auction.status})


class AdminAuctionPagination(PageNumberPagination):
    page_size = 10
    page_size_query_param = 'limit'
    max_page_size = 100


class AdminAuctionListView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsSuperAdminOrAdmin]
    pagination_class = AdminAuctionPagination

    def get(self, request):
        qs = admin_list_auctions(request.user, status=request.query_params.get('status'),
                                 search=request.query_params.get('search'))
        paginator = self.pagination_class()
        page = paginator.paginate_queryset(qs, request)
        data = AdminAuctionSerializer(page, many=True, context={'request': request}).data
        return paginator.get_paginated_response(data)


class AdminAuctionView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsSuperAdminOrAdmin]

    def get(self, request, pk):
        auction = admin_get_auction(pk, request.user)
        return Response(AdminAuctionSerializer(auction, context={'request': request}).data)

    def delete(self, request, pk):
        summary = delete_auction(pk, request.user)
        return Response({'message': 'Auction deleted', 'deleted': summary})


class AdminParticipantStatusView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsSuperAdminOrAdmin]

    def patch(self, request, pk, participant_id):
        ser = ParticipantStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        participant = update_participant_status(pk, participant_id, ser.validated_data['status'], request.user)
        return Response(ParticipantSerializer(participant).data)
