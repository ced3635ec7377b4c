from django.contrib import admin

from events.models import Event, Payment, Ticket, TicketType


class TicketTypeInline(admin.TabularInline):
    model = TicketType
    extra = 1


class TicketInline(admin.TabularInline):
    model = Ticket
    extra = 0
    can_delete = False
    readonly_fields = ["confirmation_code", "ticket_type", "attendee_name", "attendee_email", "status"]
    fields = readonly_fields


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ["name", "location", "starts_at", "created_at"]
    search_fields = ["name", "location"]
    inlines = [TicketTypeInline]


@admin.register(TicketType)
class TicketTypeAdmin(admin.ModelAdmin):
    list_display = ["name", "event", "price", "capacity"]
    list_filter = ["event"]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ["reference", "event", "amount", "status", "failure_reason", "created_at"]
    list_filter = ["status", "failure_reason"]
    search_fields = ["reference", "customer_email"]
    readonly_fields = ["reference", "amount", "platform_fee", "organizer_amount", "metadata", "gateway_data"]
    inlines = [TicketInline]


@admin.register(Ticket)
class TicketAdmin(admin.ModelAdmin):
    list_display = ["confirmation_code", "event", "ticket_type", "attendee_email", "status"]
    list_filter = ["status", "event"]
    search_fields = ["confirmation_code", "attendee_email"]
