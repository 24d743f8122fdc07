"""
Forms for Bus operations.
"""

from django import forms
from django.utils.translation import gettext_lazy as _

from apps.gateway.schemas import Bus, BusInput, SeatStatus


class BusSearchForm(forms.Form):
    """Form for searching buses."""
    name = forms.CharField(
        label=_('Bus Name'),
        max_length=100,
        required=False,
        widget=forms.TextInput(attrs={
            'class': 'form-control',
            'placeholder': _('Search by bus name')
        })
    )
    route = forms.CharField(
        label=_('Route'),
        max_length=100,
        required=False,
        widget=forms.TextInput(attrs={
            'class': 'form-control',
            'placeholder': _('Search by route')
        })
    )
    departure = forms.CharField(
        label=_('Departure'),
        max_length=20,
        required=False,
        widget=forms.TimeInput(attrs={'class': 'form-control', 'type': 'time'})
    )
    arrival = forms.CharField(
        label=_('Arrival'),
        max_length=20,
        required=False,
        widget=forms.TimeInput(attrs={'class': 'form-control', 'type': 'time'})
    )

    def search_params(self):
        """Non-empty search terms, or an empty dict when the form is blank or invalid."""
        if not self.is_valid():
            return {}
        return {
            key: value.strip()
            for key, value in self.cleaned_data.items()
            if value and value.strip()
        }


class BusForm(forms.Form):
    """Form for admin to create or update a bus."""
    name = forms.CharField(
        label=_('Bus Name'),
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    route = forms.CharField(
        label=_('Route'),
        max_length=200,
        widget=forms.TextInput(attrs={'class': 'form-control'})
    )
    departure_date = forms.DateField(
        label=_('Departure Date'),
        input_formats=['%Y-%m-%d'],
        widget=forms.DateInput(attrs={'class': 'form-control', 'type': 'date'}, format='%Y-%m-%d')
    )
    departure_time = forms.TimeField(
        label=_('Departure Time'),
        widget=forms.TimeInput(attrs={'class': 'form-control', 'type': 'time'}, format='%H:%M')
    )
    arrival_time = forms.TimeField(
        label=_('Arrival Time'),
        widget=forms.TimeInput(attrs={'class': 'form-control', 'type': 'time'}, format='%H:%M')
    )
    total_seats = forms.IntegerField(
        label=_('Total Seats'),
        min_value=1,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    available_seats = forms.IntegerField(
        label=_('Available Seats'),
        min_value=0,
        widget=forms.NumberInput(attrs={'class': 'form-control'})
    )
    price = forms.DecimalField(
        label=_('Price'),
        min_value=0,
        max_digits=10,
        decimal_places=2,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01'})
    )

    def clean(self):
        cleaned_data = super().clean()
        total_seats = cleaned_data.get('total_seats')
        available_seats = cleaned_data.get('available_seats')

        if total_seats is not None and available_seats is not None:
            if available_seats > total_seats:
                self.add_error('available_seats', _('Available seats cannot exceed total seats.'))

        return cleaned_data

    def to_input(self) -> BusInput:
        """Payload for the backend; the date goes out as dd-mm-yyyy."""
        data = self.cleaned_data
        return BusInput(
            name=data['name'],
            route=data['route'],
            departure_date=data['departure_date'],
            departure_time=data['departure_time'].strftime('%H:%M'),
            arrival_time=data['arrival_time'].strftime('%H:%M'),
            total_seats=data['total_seats'],
            available_seats=data['available_seats'],
            price=data['price'],
        )

    @staticmethod
    def initial_from_bus(bus: Bus) -> dict:
        return {
            'name': bus.name,
            'route': bus.route,
            'departure_date': bus.departure_date,
            'departure_time': (bus.departure_time or '')[:5],
            'arrival_time': (bus.arrival_time or '')[:5],
            'total_seats': bus.total_seats,
            'available_seats': bus.available_seats,
            'price': bus.price,
        }


class SeatStatusForm(forms.Form):
    """Admin override of a single seat's status."""
    status = forms.ChoiceField(
        label=_('Status'),
        choices=[(status.value, status.value.title()) for status in SeatStatus],
        widget=forms.Select(attrs={'class': 'form-control'})
    )
