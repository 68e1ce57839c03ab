from django.contrib import admin

from .models import Auction, AuctionDocument, AuctionParticipant, Bid


class AuctionParticipantInline(admin.TabularInline):
    model = AuctionParticipant
    extra = 0


class BidInline(admin.TabularInline):
    model = Bid
    extra = 0
    readonly_fields = ('bidder', 'amount', 'placed_at', 'is_winning', 'is_pre_bid', 'status')


@admin.register(Auction)
class AuctionAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'status', 'auction_date', 'start_time', 'duration', 'current_price', 'created_by')
    list_filter = ('status', 'open_to_all', 'pre_bid_allowed')
    search_fields = ('title', 'created_by__phone_number')
    inlines = [AuctionParticipantInline, BidInline]


admin.site.register(AuctionDocument)
