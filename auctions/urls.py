# auctions/urls.py
from django.urls import path
from .views import (
    LiveAuctionListView, AuctionCreateView, MyAuctionsView, AuctionTimersView,
    RefreshAuctionStatusesView, AuctionDetailView, PlaceBidView, CloseAuctionView,
    ExtendAuctionView, DecrementalValueView, AuctionParticipantsView, JoinAuctionView,
    PreBidListView, ApprovePreBidView, RejectPreBidView,
    AuctionBidsView, MyPreBidView,
    AdminAuctionListView, AdminAuctionView, AdminCancelAuctionView, AdminParticipantStatusView,
)

urlpatterns = [
    path('', LiveAuctionListView.as_view(), name='auction-list'),
    path('create/', AuctionCreateView.as_view(), name='auction-create'),
    path('mine/', MyAuctionsView.as_view(), name='my-auctions'),
    path('timers/', AuctionTimersView.as_view(), name='auction-timers'),
    path('status/refresh/', RefreshAuctionStatusesView.as_view(), name='auction-status-refresh'),
    path('<int:pk>/', AuctionDetailView.as_view(), name='auction-detail'),

    # bidding
    path('<int:pk>/bid/', PlaceBidView.as_view(), name='auction-bid'),
    path('<int:pk>/bids/', AuctionBidsView.as_view(), name='auction-bids'),
    path('<int:pk>/prebids/', PreBidListView.as_view(), name='auction-prebids'),
    path('<int:pk>/prebids/mine/', MyPreBidView.as_view(), name='auction-my-prebid'),
    path('prebids/<int:bid_id>/approve/', ApprovePreBidView.as_view(), name='prebid-approve'),
    path('prebids/<int:bid_id>/reject/', RejectPreBidView.as_view(), name='prebid-reject'),

    # creator
    path('<int:pk>/close/', CloseAuctionView.as_view(), name='auction-close'),
    path('<int:pk>/extend/', ExtendAuctionView.as_view(), name='auction-extend'),
    path('<int:pk>/decremental-value/', DecrementalValueView.as_view(), name='auction-decremental-value'),
    path('<int:pk>/participants/', AuctionParticipantsView.as_view(), name='auction-participants'),
    path('<int:pk>/join/', JoinAuctionView.as_view(), name='auction-join'),

    # admin
    path('admin/', AdminAuctionListView.as_view(), name='auction-admin-list'),
    path('admin/<int:pk>/cancel/', AdminCancelAuctionView.as_view(), name='auction-admin-cancel'),
    path('admin/<int:pk>/', AdminAuctionView.as_view(), name='auction-admin-detail'),
    path('admin/<int:pk>/participants/<int:participant_id>/', AdminParticipantStatusView.as_view(),
         name='auction-admin-participant-status'),
]
