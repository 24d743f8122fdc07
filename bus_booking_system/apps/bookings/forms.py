"""
Forms for Booking operations.
"""

from django import forms
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from apps.gateway.schemas import BookingStatus, SeatType

from .utils import ALL_STATUSES


class SelectionActionForm(forms.Form):
    """One change on the seat selection page: bus, seat type, user or seat."""

    SELECT_BUS = 'select_bus'
    SELECT_SEAT_TYPE = 'select_seat_type'
    SELECT_USER = 'select_user'
    SELECT_SEAT = 'select_seat'

    action = forms.ChoiceField(choices=[
        (SELECT_BUS, _('Select bus')),
        (SELECT_SEAT_TYPE, _('Select seat type')),
        (SELECT_USER, _('Select user')),
        (SELECT_SEAT, _('Select seat')),
    ])
    value = forms.CharField(required=False, max_length=50)

    def clean(self):
        cleaned_data = super().clean()
        action = cleaned_data.get('action')
        value = (cleaned_data.get('value') or '').strip()

        if action in (self.SELECT_BUS, self.SELECT_USER):
            if not value and action == self.SELECT_BUS:
                cleaned_data['value'] = None
                return cleaned_data
            try:
                cleaned_data['value'] = int(value)
            except ValueError:
                raise forms.ValidationError(_('Invalid selection.'))
        elif action == self.SELECT_SEAT_TYPE:
            try:
                cleaned_data['value'] = SeatType(value)
            except ValueError:
                raise forms.ValidationError(_('Invalid seat type.'))
        elif action == self.SELECT_SEAT:
            if not value:
                raise forms.ValidationError(_('Invalid seat.'))
            cleaned_data['value'] = value

        return cleaned_data


class BookingForm(forms.Form):
    """Final step of seat selection; hands the draft over to payment."""

    booking_date = forms.DateTimeField(
        label=_('Booking Date'),
        input_formats=['%Y-%m-%dT%H:%M', '%Y-%m-%d %H:%M', '%Y-%m-%dT%H:%M:%S'],
        widget=forms.DateTimeInput(
            attrs={'class': 'form-control', 'type': 'datetime-local'},
            format='%Y-%m-%dT%H:%M',
        )
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if not self.is_bound:
            self.fields['booking_date'].initial = timezone.now().strftime('%Y-%m-%dT%H:%M')


class BookingFilterForm(forms.Form):
    """Form for filtering bookings."""
    status = forms.ChoiceField(
        label=_('Status'),
        choices=[(ALL_STATUSES, _('All Status'))] + [
            (status.value, status.value.title()) for status in BookingStatus
        ],
        required=False,
        initial=ALL_STATUSES,
        widget=forms.Select(attrs={'class': 'form-control'})
    )

    def selected_status(self) -> str:
        if self.is_valid():
            return self.cleaned_data.get('status') or ALL_STATUSES
        return ALL_STATUSES


class CancelBookingForm(forms.Form):
    """Confirmation prompt for cancelling a booking."""
    confirm = forms.BooleanField(
        label=_('Yes, cancel this booking'),
        required=True,
        widget=forms.CheckboxInput(attrs={'class': 'form-check-input'}),
        error_messages={'required': _('Please confirm the cancellation.')},
    )
    status = forms.CharField(required=False, widget=forms.HiddenInput())


class TransferSeatForm(forms.Form):
    """Pick one of your confirmed bookings and the recipient's email."""
    booking_id = forms.TypedChoiceField(
        label=_('Booking'),
        coerce=int,
        widget=forms.RadioSelect(attrs={'class': 'form-check-input'})
    )
    recipient_email = forms.EmailField(
        label=_("Recipient's Email"),
        widget=forms.EmailInput(attrs={
            'class': 'form-control',
            'placeholder': _("Enter recipient's email address")
        })
    )

    def __init__(self, *args, bookings=(), owner_email='', **kwargs):
        super().__init__(*args, **kwargs)
        self.owner_email = (owner_email or '').lower()
        self.fields['booking_id'].choices = [
            (booking.id, f"{booking.seat_number} - {booking.booking_date:%Y-%m-%d %H:%M}")
            for booking in bookings
        ]

    def clean_recipient_email(self):
        email = self.cleaned_data['recipient_email'].strip().lower()
        if email == self.owner_email:
            raise forms.ValidationError(_('You cannot transfer a seat to yourself.'))
        return email
